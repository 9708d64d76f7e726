"""Conversions between calendar dates and recovery days.

Recovery day 0 is the surgery date. The canonical rule is the floor of the
midnight-to-midnight difference between two calendar dates, so the time of
day never shifts the result. Aware datetimes are first converted into the
caller's timezone and reduced to their calendar date there.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

DateLike = Union[date, datetime]


def _calendar_date(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def today_in(tz: Optional[Union[tzinfo, str]] = None) -> date:
    """Return today's calendar date in *tz* (local time when omitted)."""
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    if tz is None:
        return date.today()
    return datetime.now(tz).date()


def day_for(
    surgery_date: DateLike,
    as_of: Optional[DateLike] = None,
    tz: Optional[tzinfo] = None,
) -> int:
    """Return the recovery day of *as_of* (default: today) relative to surgery."""
    if as_of is None:
        as_of = today_in(tz)
    return (_calendar_date(as_of, tz) - _calendar_date(surgery_date, tz)).days


def date_for(surgery_date: DateLike, day: int, tz: Optional[tzinfo] = None) -> date:
    """Return the calendar date of recovery *day*."""
    return _calendar_date(surgery_date, tz) + timedelta(days=day)


def day_label(day: int) -> str:
    """Short display label: ``Surgery``, ``Pre-Op 3`` or ``Post-Op 12``."""
    if day == 0:
        return "Surgery"
    if day < 0:
        return f"Pre-Op {abs(day)}"
    return f"Post-Op {day}"
