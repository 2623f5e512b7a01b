"""
Date helpers for month keys, due days and profile birthdates.

A month key is a ``YYYY-MM`` string partitioning a client's payment history.
"""

import calendar
import re
from datetime import date, datetime
from typing import Any, Optional


MONTH_KEY_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}")
DATE_KEY_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def get_month_key(value: Optional[date] = None) -> str:
    """Month key for ``value`` (today when omitted)."""
    value = value or date.today()
    return f"{value.year:04d}-{value.month:02d}"


def is_month_key(value: Any) -> bool:
    """Shape check only; ``2024-13`` passes."""
    return isinstance(value, str) and bool(MONTH_KEY_PATTERN.fullmatch(value))


def parse_month_key(month_key: str) -> tuple[int, int]:
    """
    Split a month key into ``(year, month)``.

    Raises:
        ValueError: If the key is malformed or the month is not 1-12
    """
    if not is_month_key(month_key):
        raise ValueError(f"Malformed month key: {month_key!r}")
    year, month = (int(part) for part in month_key.split("-"))
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in key: {month_key!r}")
    return year, month


def get_date_key(value: Any = None) -> str:
    """``YYYY-MM-DD`` for a date, datetime or ISO string; empty string if unparseable."""
    if value is None:
        value = date.today()
    if isinstance(value, datetime):
        value = value.date()
    elif isinstance(value, str):
        try:
            value = datetime.fromisoformat(value).date()
        except ValueError:
            return ""
    if not isinstance(value, date):
        return ""
    return value.isoformat()


def clamp_due_day(due_day: int, year: int, month: int) -> int:
    """Clamp a day-of-month to the length of the given month."""
    last_day = calendar.monthrange(year, month)[1]
    return max(1, min(int(due_day), last_day))


def due_date_for(due_day: int, month_key: str) -> date:
    """Due date of an obligation in the month named by ``month_key``."""
    year, month = parse_month_key(month_key)
    return date(year, month, clamp_due_day(due_day, year, month))


def normalize_birthdate(value: Any) -> str:
    """Keep only well-shaped ``YYYY-MM-DD`` birthdates; anything else becomes ``""``."""
    if not value:
        return ""
    date_key = str(value).strip()
    return date_key if DATE_KEY_PATTERN.fullmatch(date_key) else ""


def age_from_birthdate(date_key: str, today: Optional[date] = None) -> Optional[int]:
    """Age in whole years on ``today``, or None if the birthdate cannot be read."""
    if not date_key:
        return None
    parts = str(date_key).split("-")
    if len(parts) != 3:
        return None
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        return None

    today = today or date.today()
    age = today.year - year
    if (today.month, today.day) < (month, day):
        age -= 1
    return age
