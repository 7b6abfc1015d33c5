"""
Calendar helpers for template expansion.

Template days follow the calendar convention 0=Sunday ... 6=Saturday,
while Python's ``date.weekday()`` counts from Monday.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Union

from ..models.schedule import TemplateSlot


DateLike = Union[date, datetime]


def sunday_based_weekday(day: date) -> int:
    """
    Day of week with Sunday as 0.

    Examples:
        >>> sunday_based_weekday(date(2024, 1, 7))  # a Sunday
        0
        >>> sunday_based_weekday(date(2024, 1, 1))  # a Monday
        1
    """
    return (day.weekday() + 1) % 7


def to_local_date(value: DateLike, tz: tzinfo) -> date:
    """Calendar date of ``value`` in ``tz`` (plain dates pass through)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def start_of_day(day: date, tz: tzinfo) -> datetime:
    """Local midnight of ``day`` as an aware datetime."""
    return datetime.combine(day, time(0, 0), tzinfo=tz)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date in [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def slot_start(day: date, slot: TemplateSlot, tz: tzinfo) -> datetime:
    """
    Aware start time of ``slot`` on ``day``.

    Examples:
        >>> slot_start(date(2024, 1, 1), TemplateSlot(day=1, time="16:30"), ZoneInfo("Asia/Seoul"))
        datetime.datetime(2024, 1, 1, 16, 30, tzinfo=zoneinfo.ZoneInfo(key='Asia/Seoul'))
    """
    hour, minute = slot.hour_minute
    return datetime.combine(day, time(hour, minute), tzinfo=tz)
