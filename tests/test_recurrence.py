from datetime import date

import pytest

from models import RecurrenceKind, TransactionStatus, TransactionType
from recurrence import (
    Occurrence,
    RecurrenceRule,
    expand,
    next_occurrence,
    nth_occurrence,
    series_dates,
)
from services import TransactionRecord


def _record(
    id: int = 1,
    kind: RecurrenceKind = RecurrenceKind.none,
    anchor: date = date(2024, 1, 31),
    end: date | None = None,
    group_id: str | None = None,
    type: TransactionType = TransactionType.expense,
    amount_cents: int = 1000,
    status: TransactionStatus = TransactionStatus.paid,
) -> TransactionRecord:
    return TransactionRecord(
        id=id,
        user_id=1,
        type=type,
        amount_cents=amount_cents,
        category="Housing",
        description="Rent",
        anchor_date=anchor,
        status=status,
        recurrence_kind=kind,
        recurrence_end_date=end,
        group_id=group_id,
    )


def _dates(occurrences):
    return [occ.occurrence_date for occ in occurrences]


def test_one_off_occurs_only_on_its_anchor():
    txn = _record(anchor=date(2024, 3, 10))
    assert _dates(expand([txn], date(2024, 3, 10), date(2024, 3, 10))) == [
        date(2024, 3, 10)
    ]
    assert expand([txn], date(2024, 3, 11), date(2024, 3, 31)) == []
    assert expand([txn], date(2024, 3, 1), date(2024, 3, 9)) == []


def test_monthly_clamps_to_short_months_without_drifting():
    txn = _record(kind=RecurrenceKind.monthly, anchor=date(2024, 1, 31))
    occurrences = expand([txn], date(2024, 1, 1), date(2024, 4, 30), horizon_days=365)
    assert _dates(occurrences) == [
        date(2024, 4, 30),
        date(2024, 3, 31),
        date(2024, 2, 29),
        date(2024, 1, 31),
    ]


def test_monthly_clamps_february_in_common_year():
    txn = _record(kind=RecurrenceKind.monthly, anchor=date(2023, 1, 31))
    occurrences = expand([txn], "2023-02-01", "2023-02-28", horizon_days=365)
    assert _dates(occurrences) == [date(2023, 2, 28)]


def test_weekly_keeps_the_anchor_weekday():
    # 2024-01-03 is a Wednesday.
    txn = _record(kind=RecurrenceKind.weekly, anchor=date(2024, 1, 3))
    occurrences = expand([txn], date(2024, 1, 1), date(2024, 1, 31), horizon_days=365)
    assert _dates(occurrences) == [
        date(2024, 1, 31),
        date(2024, 1, 24),
        date(2024, 1, 17),
        date(2024, 1, 10),
        date(2024, 1, 3),
    ]
    assert {d.weekday() for d in _dates(occurrences)} == {2}


def test_weekly_window_starting_mid_series():
    txn = _record(kind=RecurrenceKind.weekly, anchor=date(2024, 1, 3))
    occurrences = expand([txn], date(2024, 1, 10), date(2024, 1, 20), horizon_days=365)
    assert _dates(occurrences) == [date(2024, 1, 17), date(2024, 1, 10)]


def test_biweekly_steps_fourteen_days():
    txn = _record(kind=RecurrenceKind.biweekly, anchor=date(2024, 1, 3))
    occurrences = expand([txn], date(2024, 1, 1), date(2024, 2, 29), horizon_days=365)
    assert _dates(occurrences) == [
        date(2024, 2, 28),
        date(2024, 2, 14),
        date(2024, 1, 31),
        date(2024, 1, 17),
        date(2024, 1, 3),
    ]


def test_end_date_stops_the_series():
    txn = _record(
        kind=RecurrenceKind.monthly, anchor=date(2024, 1, 15), end=date(2024, 3, 20)
    )
    occurrences = expand([txn], date(2024, 1, 1), date(2024, 12, 31), horizon_days=365)
    assert _dates(occurrences) == [
        date(2024, 3, 15),
        date(2024, 2, 15),
        date(2024, 1, 15),
    ]


def test_open_ended_series_stops_at_horizon():
    txn = _record(kind=RecurrenceKind.monthly, anchor=date(2024, 1, 15))
    yearly = expand([txn], date(2024, 1, 1), date(2026, 12, 31), horizon_days=365)
    assert len(yearly) == 12
    assert yearly[0].occurrence_date == date(2024, 12, 15)

    short = expand([txn], date(2024, 1, 1), date(2026, 12, 31), horizon_days=60)
    assert _dates(short) == [date(2024, 3, 15), date(2024, 2, 15), date(2024, 1, 15)]


def test_sorted_descending_with_ties_in_input_order():
    first = _record(id=1, anchor=date(2024, 5, 1))
    second = _record(id=2, anchor=date(2024, 5, 1))
    later = _record(id=3, anchor=date(2024, 5, 20))
    occurrences = expand([first, second, later], date(2024, 5, 1), date(2024, 5, 31))
    assert [occ.transaction_id for occ in occurrences] == [3, 1, 2]

    swapped = expand([second, first, later], date(2024, 5, 1), date(2024, 5, 31))
    assert [occ.transaction_id for occ in swapped] == [3, 2, 1]


def test_empty_window_yields_nothing():
    txn = _record(kind=RecurrenceKind.weekly, anchor=date(2024, 1, 3))
    assert expand([txn], date(2024, 2, 1), date(2024, 1, 1)) == []
    assert expand([], date(2024, 1, 1), date(2024, 12, 31)) == []


def test_materialized_record_is_taken_literally():
    txn = _record(
        kind=RecurrenceKind.monthly, anchor=date(2024, 2, 29), group_id="series-1"
    )
    occurrences = expand([txn], date(2024, 1, 1), date(2024, 12, 31), horizon_days=365)
    assert _dates(occurrences) == [date(2024, 2, 29)]


def test_occurrence_before_anchor_is_rejected():
    txn = _record(anchor=date(2024, 1, 31))
    with pytest.raises(AssertionError):
        Occurrence(txn, date(2024, 1, 1))


def test_rule_rejects_inconsistent_schedules():
    with pytest.raises(ValueError):
        RecurrenceRule(RecurrenceKind.none, date(2024, 1, 1), group_id="series-1")
    with pytest.raises(ValueError):
        RecurrenceRule(RecurrenceKind.none, date(2024, 1, 1), end_date=date(2024, 2, 1))
    with pytest.raises(ValueError):
        RecurrenceRule(
            RecurrenceKind.monthly, date(2024, 3, 1), end_date=date(2024, 2, 1)
        )


def test_schedule_fields_follow_the_kind():
    monthly = RecurrenceRule(RecurrenceKind.monthly, date(2024, 1, 31))
    assert monthly.day_of_month == 31
    assert monthly.weekday is None

    weekly = RecurrenceRule(RecurrenceKind.weekly, date(2024, 1, 3))
    assert weekly.weekday == 2
    assert weekly.day_of_month is None

    once = RecurrenceRule(RecurrenceKind.none, date(2024, 1, 3))
    assert once.weekday is None
    assert once.day_of_month is None
    assert not once.is_recurring


def test_nth_occurrence_is_derived_from_the_anchor():
    rule = RecurrenceRule(RecurrenceKind.monthly, date(2024, 1, 31))
    assert nth_occurrence(rule, 0) == date(2024, 1, 31)
    assert nth_occurrence(rule, 1) == date(2024, 2, 29)
    assert nth_occurrence(rule, 2) == date(2024, 3, 31)
    assert nth_occurrence(rule, 12) == date(2025, 1, 31)


def test_next_occurrence():
    weekly = RecurrenceRule(RecurrenceKind.weekly, date(2024, 1, 3))
    assert next_occurrence(weekly, date(2023, 12, 1), horizon_days=365) == date(
        2024, 1, 3
    )
    assert next_occurrence(weekly, date(2024, 1, 3), horizon_days=365) == date(
        2024, 1, 10
    )
    assert next_occurrence(weekly, date(2024, 1, 5), horizon_days=365) == date(
        2024, 1, 10
    )

    monthly = RecurrenceRule(RecurrenceKind.monthly, date(2024, 1, 31))
    assert next_occurrence(monthly, date(2024, 2, 10), horizon_days=365) == date(
        2024, 2, 29
    )

    finished = RecurrenceRule(
        RecurrenceKind.monthly, date(2024, 1, 31), end_date=date(2024, 1, 31)
    )
    assert next_occurrence(finished, date(2024, 1, 31), horizon_days=365) is None


def test_series_dates_cover_anchor_to_end():
    rule = RecurrenceRule(
        RecurrenceKind.biweekly, date(2024, 1, 3), end_date=date(2024, 1, 31)
    )
    assert series_dates(rule, horizon_days=365) == [
        date(2024, 1, 3),
        date(2024, 1, 17),
        date(2024, 1, 31),
    ]
