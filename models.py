from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class RecurrenceKind(str, Enum):
    none = "none"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"


class CurrencyCode(str, Enum):
    brl = "BRL"
    usd = "USD"
    eur = "EUR"


CURRENCY_CODE_ENUM = SAEnum(
    CurrencyCode,
    name="currencycode",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)

DEFAULT_CATEGORIES: dict[TransactionType, tuple[str, ...]] = {
    TransactionType.income: ("Salary", "Investments", "Gifts", "Other"),
    TransactionType.expense: (
        "Food",
        "Housing",
        "Transportation",
        "Leisure",
        "Utilities",
        "Health",
        "Personal",
        "Education",
        "Other",
    ),
}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    anchor_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.pending
    )
    recurrence_kind: Mapped[RecurrenceKind] = mapped_column(
        SAEnum(RecurrenceKind), nullable=False, default=RecurrenceKind.none
    )
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date)
    group_id: Mapped[Optional[str]] = mapped_column(String(36))

    __table_args__ = (
        Index("ix_transactions_user_anchor", "user_id", "anchor_date"),
        Index("ix_transactions_user_group", "user_id", "group_id"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "recurrence_end_date IS NULL OR recurrence_end_date >= anchor_date",
            name="ck_transactions_end_after_anchor",
        ),
    )


class OwnerSettings(Base, TimestampMixin):
    __tablename__ = "owner_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    emergency_fund_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.brl
    )

    __table_args__ = (
        CheckConstraint(
            "emergency_fund_cents >= 0", name="ck_owner_settings_fund_positive"
        ),
    )
