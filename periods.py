from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


DayLike = Union[date, datetime, str]


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def to_calendar_day(value: DayLike) -> date:
    """Reduce a date, datetime or ISO string to a plain calendar day.

    Aware datetimes are read in the configured local timezone before the
    time part is dropped, so an instant never lands on a neighbouring day
    just because it was serialized in UTC. Naive datetimes keep their own
    wall-clock day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(get_settings().timezone))
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return to_calendar_day(datetime.fromisoformat(text))
    raise TypeError(f"Cannot interpret {type(value).__name__} as a calendar day")


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=days_in_month(d.year, d.month))


def add_months(d: date, count: int) -> date:
    """First day of the month ``count`` months away from ``d``."""
    month_index = (d.year * 12) + (d.month - 1) + count
    return date(month_index // 12, (month_index % 12) + 1, 1)


def start_of_year(d: date) -> date:
    return date(d.year, 1, 1)


def month_period(year: int, month: int) -> Period:
    first = date(year, month, 1)
    return Period(f"{year:04d}-{month:02d}", first, month_end(first))


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if period == "all":
        return Period("all", date(1970, 1, 1), month_end(today))
    if period == "last_month":
        last_month_start = add_months(today, -1)
        return Period("last_month", last_month_start, month_end(last_month_start))
    if period in ("3m", "6m"):
        months = int(period[0])
        return Period(period, add_months(today, -(months - 1)), month_end(today))
    if period == "ytd":
        return Period("ytd", start_of_year(today), today)
    if period == "1y":
        return Period("1y", start_of_year(today), month_end(today))
    if period == "custom" or (not period and start and end):
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = to_calendar_day(start)
        end_date = to_calendar_day(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period and period != "this_month":
        raise ValueError(f"Unknown period: {period}")

    first = month_start(today)
    return Period("this_month", first, month_end(first))
