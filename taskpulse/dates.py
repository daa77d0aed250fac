"""Calendar helpers: day keys, Monday-start weeks and short labels.

All functions read the local calendar fields of the value they are given, so
day boundaries follow the user's wall clock rather than UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


WEEKDAY_KEYS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
WEEKDAY_LABELS_EN = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def day_key(d: date) -> str:
    """Format a date's local year/month/day as 'YYYY-MM-DD'."""
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_day_key(key: str) -> date:
    """Parse 'YYYY-MM-DD' back into a date. Raises ValueError if malformed."""
    parts = key.split("-")
    if len(parts) != 3:
        raise ValueError(f"Invalid day key: {key!r}")
    y, m, d = (int(p) for p in parts)
    return date(y, m, d)


def is_day_key(value: object) -> bool:
    """True only for a canonical 'YYYY-MM-DD' key of a real calendar day."""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        return day_key(parse_day_key(value)) == value
    except ValueError:
        return False


def add_days(d: date, days: int) -> date:
    """Offset by *days* (may be negative), keeping the time of day."""
    return d + timedelta(days=days)


def start_of_week_monday(d: datetime) -> datetime:
    """Monday 00:00:00 of the week containing *d*."""
    # date.weekday() is Mon=0..Sun=6, i.e. Sunday rolls back six days.
    monday = d - timedelta(days=d.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def week_keys_mon_sun(d: datetime) -> list[str]:
    start = start_of_week_monday(d)
    return [day_key(add_days(start, i)) for i in range(7)]


def last_n_day_keys(now: date, n: int) -> list[str]:
    """The *n* day keys ending today, oldest first."""
    return [day_key(add_days(now, -i)) for i in range(n - 1, -1, -1)]


def label_weekday_en(key: str) -> str:
    """'2026-10-19' -> 'Mon'."""
    return WEEKDAY_LABELS_EN[parse_day_key(key).weekday()]


def label_date(key: str) -> str:
    """'2026-10-19' -> '19.10.'"""
    _, m, d = key.split("-")
    return f"{d}.{m}."


def weekday_key_from_date(d: date) -> str:
    return WEEKDAY_KEYS[d.weekday()]
