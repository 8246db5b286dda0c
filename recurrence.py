from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from config import get_settings
from models import RecurrenceKind, TransactionStatus, TransactionType
from periods import DayLike, days_in_month, to_calendar_day

if TYPE_CHECKING:  # pragma: no cover
    from services import TransactionRecord


STEP_DAYS = {
    RecurrenceKind.weekly: 7,
    RecurrenceKind.biweekly: 14,
}


@dataclass(frozen=True)
class RecurrenceRule:
    kind: RecurrenceKind
    anchor_date: date
    end_date: Optional[date] = None
    group_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind == RecurrenceKind.none:
            if self.group_id is not None:
                raise ValueError("A non-recurring transaction cannot belong to a group")
            if self.end_date is not None:
                raise ValueError("A non-recurring transaction cannot have an end date")
        if self.end_date is not None and self.end_date < self.anchor_date:
            raise ValueError("Recurrence end date must not be before the anchor date")

    @property
    def is_recurring(self) -> bool:
        return self.kind != RecurrenceKind.none

    @property
    def is_materialized(self) -> bool:
        return self.group_id is not None

    @property
    def day_of_month(self) -> Optional[int]:
        if self.kind == RecurrenceKind.monthly:
            return self.anchor_date.day
        return None

    @property
    def weekday(self) -> Optional[int]:
        if self.kind in STEP_DAYS:
            return self.anchor_date.weekday()
        return None


@dataclass(frozen=True)
class Occurrence:
    transaction: "TransactionRecord"
    occurrence_date: date

    def __post_init__(self) -> None:
        assert self.occurrence_date >= self.transaction.anchor_date, (
            f"occurrence {self.occurrence_date} precedes anchor "
            f"{self.transaction.anchor_date} of transaction {self.transaction.id}"
        )

    @property
    def transaction_id(self) -> int:
        return self.transaction.id

    @property
    def type(self) -> TransactionType:
        return self.transaction.type

    @property
    def amount_cents(self) -> int:
        return self.transaction.amount_cents

    @property
    def category(self) -> str:
        return self.transaction.category

    @property
    def description(self) -> str:
        return self.transaction.description

    @property
    def status(self) -> TransactionStatus:
        return self.transaction.status

    @property
    def is_recurring(self) -> bool:
        return self.transaction.recurrence.is_recurring


def _add_months(base: date, months: int, *, desired_day: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    return date(year, month, min(desired_day, days_in_month(year, month)))


def _months_between(earlier: date, later: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def nth_occurrence(rule: RecurrenceRule, n: int) -> date:
    """Date of the n-th (0-based) occurrence of a series.

    Monthly dates are always derived from the anchor rather than from the
    previous occurrence, so a series anchored on the 31st returns to the 31st
    after passing through a short month.
    """
    if n < 0:
        raise ValueError("Occurrence index must not be negative")
    if rule.kind == RecurrenceKind.none:
        if n:
            raise ValueError("A non-recurring transaction has a single occurrence")
        return rule.anchor_date
    if rule.kind == RecurrenceKind.monthly:
        return _add_months(rule.anchor_date, n, desired_day=rule.anchor_date.day)
    return rule.anchor_date + timedelta(days=STEP_DAYS[rule.kind] * n)


def series_bound(rule: RecurrenceRule, *, horizon_days: int) -> date:
    if rule.end_date is not None:
        return rule.end_date
    return rule.anchor_date + timedelta(days=horizon_days)


def _first_index_on_or_after(rule: RecurrenceRule, target: date) -> int:
    if target <= rule.anchor_date:
        return 0
    if rule.kind == RecurrenceKind.monthly:
        return max(0, _months_between(rule.anchor_date, target))
    step = STEP_DAYS[rule.kind]
    return -(-(target - rule.anchor_date).days // step)


def occurrence_dates(
    rule: RecurrenceRule,
    window_start: date,
    window_end: date,
    *,
    horizon_days: int,
) -> list[date]:
    if window_start > window_end:
        return []
    if not rule.is_recurring or rule.is_materialized:
        if window_start <= rule.anchor_date <= window_end:
            return [rule.anchor_date]
        return []

    bound = min(series_bound(rule, horizon_days=horizon_days), window_end)
    dates: list[date] = []
    n = _first_index_on_or_after(rule, window_start)
    candidate = nth_occurrence(rule, n)
    while candidate <= bound:
        if candidate >= window_start:
            dates.append(candidate)
        n += 1
        candidate = nth_occurrence(rule, n)
    return dates


def series_dates(rule: RecurrenceRule, *, horizon_days: int) -> list[date]:
    return occurrence_dates(
        rule,
        rule.anchor_date,
        series_bound(rule, horizon_days=horizon_days),
        horizon_days=horizon_days,
    )


def next_occurrence(
    rule: RecurrenceRule, after: date, *, horizon_days: Optional[int] = None
) -> Optional[date]:
    if horizon_days is None:
        horizon_days = get_settings().recurrence_horizon_days
    if not rule.is_recurring or rule.is_materialized:
        return rule.anchor_date if rule.anchor_date > after else None
    n = _first_index_on_or_after(rule, after + timedelta(days=1))
    candidate = nth_occurrence(rule, n)
    if candidate <= after:
        candidate = nth_occurrence(rule, n + 1)
    if candidate > series_bound(rule, horizon_days=horizon_days):
        return None
    return candidate


def expand(
    transactions: Iterable["TransactionRecord"],
    window_start: DayLike,
    window_end: DayLike,
    *,
    horizon_days: Optional[int] = None,
) -> list[Occurrence]:
    start = to_calendar_day(window_start)
    end = to_calendar_day(window_end)
    if horizon_days is None:
        horizon_days = get_settings().recurrence_horizon_days

    occurrences: list[Occurrence] = []
    if start > end:
        return occurrences
    for txn in transactions:
        for occurrence_date in occurrence_dates(
            txn.recurrence, start, end, horizon_days=horizon_days
        ):
            occurrences.append(Occurrence(txn, occurrence_date))
    # list.sort is stable with reverse=True, so ties keep input order.
    occurrences.sort(key=lambda occ: occ.occurrence_date, reverse=True)
    return occurrences


def occurrences_on(occurrences: Sequence[Occurrence], day: date) -> list[Occurrence]:
    return [occ for occ in occurrences if occ.occurrence_date == day]
