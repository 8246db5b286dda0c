from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from models import TransactionStatus, TransactionType
from recurrence import Occurrence


@dataclass(frozen=True)
class Summary:
    total_income: int = 0
    total_expense: int = 0
    by_category_income: dict[str, int] = field(default_factory=dict)
    by_category_expense: dict[str, int] = field(default_factory=dict)

    @property
    def balance(self) -> int:
        return self.total_income - self.total_expense

    def as_dict(self) -> dict[str, object]:
        return {
            "total_income": self.total_income,
            "total_expense": self.total_expense,
            "balance": self.balance,
            "by_category_income": dict(self.by_category_income),
            "by_category_expense": dict(self.by_category_expense),
        }


@dataclass
class DaySummary:
    income: int = 0
    expense: int = 0
    paid_income: int = 0
    paid_expense: int = 0

    @property
    def balance(self) -> int:
        return self.income - self.expense

    def as_dict(self) -> dict[str, int]:
        return {
            "income": self.income,
            "expense": self.expense,
            "paid_income": self.paid_income,
            "paid_expense": self.paid_expense,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class ReserveStatus:
    total: int
    used: int

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.used)

    @property
    def used_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.used / self.total * 100)


def summarize(occurrences: Iterable[Occurrence]) -> Summary:
    """Realized totals over a set of occurrences.

    Only ``paid`` occurrences count. Category keys are summed exactly as
    stored, so "Food" and "food" stay separate buckets.
    """
    total_income = 0
    total_expense = 0
    by_category_income: dict[str, int] = {}
    by_category_expense: dict[str, int] = {}

    for occ in occurrences:
        if occ.status != TransactionStatus.paid:
            continue
        amount = occ.amount_cents
        if occ.type == TransactionType.income:
            total_income += amount
            by_category_income[occ.category] = (
                by_category_income.get(occ.category, 0) + amount
            )
        else:
            total_expense += amount
            by_category_expense[occ.category] = (
                by_category_expense.get(occ.category, 0) + amount
            )

    return Summary(
        total_income=total_income,
        total_expense=total_expense,
        by_category_income=by_category_income,
        by_category_expense=by_category_expense,
    )


def day_summaries(occurrences: Iterable[Occurrence]) -> dict[date, DaySummary]:
    # Calendar cells show scheduled amounts next to what is already paid.
    days: dict[date, DaySummary] = {}
    for occ in occurrences:
        day = days.setdefault(occ.occurrence_date, DaySummary())
        paid = occ.status == TransactionStatus.paid
        if occ.type == TransactionType.income:
            day.income += occ.amount_cents
            if paid:
                day.paid_income += occ.amount_cents
        else:
            day.expense += occ.amount_cents
            if paid:
                day.paid_expense += occ.amount_cents
    return days


def category_breakdown(by_category: dict[str, int]) -> list[dict[str, object]]:
    total = sum(by_category.values())
    if total == 0:
        return []
    items = sorted(by_category.items(), key=lambda x: (-x[1], x[0]))
    return [
        {
            "name": name,
            "amount_cents": amount,
            "percent": amount / total * 100,
        }
        for name, amount in items
    ]


def percent_change(current: int, previous: int) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous) * 100


def emergency_fund_used(summary: Summary) -> int:
    return max(0, summary.total_expense - summary.total_income)


def reserve_status(fund_total_cents: int, used_cents: int) -> ReserveStatus:
    return ReserveStatus(total=max(0, fund_total_cents), used=max(0, used_cents))
