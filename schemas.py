from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import CurrencyCode, RecurrenceKind, TransactionStatus, TransactionType
from periods import to_calendar_day


SortField = Literal["anchor_date", "description", "category", "amount"]


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def _calendar_day_or_none(value):
    if value is None or value == "":
        return None
    if isinstance(value, (str, date)):
        return to_calendar_day(value)
    return value


class TransactionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=200)
    anchor_date: date
    status: TransactionStatus = TransactionStatus.pending
    recurrence_kind: RecurrenceKind = RecurrenceKind.none
    recurrence_end_date: Optional[date] = None

    @field_validator("anchor_date", "recurrence_end_date", mode="before")
    @classmethod
    def normalize_days(cls, value):
        return _calendar_day_or_none(value)

    @model_validator(mode="after")
    def check_recurrence(self) -> "TransactionIn":
        if self.recurrence_end_date is not None:
            if self.recurrence_kind == RecurrenceKind.none:
                raise ValueError("End date requires a recurring transaction")
            if self.recurrence_end_date < self.anchor_date:
                raise ValueError("End date must not be before the anchor date")
        return self

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class TransactionUpdate(BaseModel):
    """Partial update; only fields the caller actually sent are applied."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=14, decimal_places=2
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    anchor_date: Optional[date] = None
    status: Optional[TransactionStatus] = None
    recurrence_kind: Optional[RecurrenceKind] = None
    recurrence_end_date: Optional[date] = None

    @field_validator("anchor_date", "recurrence_end_date", mode="before")
    @classmethod
    def normalize_days(cls, value):
        return _calendar_day_or_none(value)

    @model_validator(mode="after")
    def check_required(self) -> "TransactionUpdate":
        for name in ("type", "amount", "category", "anchor_date", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        if "recurrence_kind" in self.model_fields_set and self.recurrence_kind is None:
            raise ValueError("recurrence_kind cannot be cleared")
        return self

    def changes(self) -> dict[str, object]:
        data = self.model_dump(include=self.model_fields_set)
        if "amount" in data:
            data["amount_cents"] = to_cents(data.pop("amount"))
        return data


class CategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    order: int = 0


class OwnerSettingsIn(BaseModel):
    emergency_fund: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    currency_code: CurrencyCode = CurrencyCode.brl

    @property
    def emergency_fund_cents(self) -> int:
        return to_cents(self.emergency_fund)


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: TransactionType
    amount_cents: int
    category: str
    description: str
    anchor_date: date
    status: TransactionStatus
    recurrence_kind: RecurrenceKind
    recurrence_end_date: Optional[date]
    group_id: Optional[str]


class OccurrenceOut(BaseModel):
    transaction_id: int
    occurrence_date: date
    type: TransactionType
    amount_cents: int
    category: str
    description: str
    status: TransactionStatus
    recurrence_kind: RecurrenceKind
    group_id: Optional[str]
