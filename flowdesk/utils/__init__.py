"""Money and date helpers."""

from flowdesk.utils.dates import (
    age_from_birthdate,
    clamp_due_day,
    due_date_for,
    get_date_key,
    get_month_key,
    is_month_key,
    normalize_birthdate,
    parse_month_key,
)
from flowdesk.utils.money import (
    format_brl,
    is_valid_money_input,
    normalize_money_input,
    parse_money_input,
    safe_money_number,
)

__all__ = [
    # Dates
    "age_from_birthdate",
    "clamp_due_day",
    "due_date_for",
    "get_date_key",
    "get_month_key",
    "is_month_key",
    "normalize_birthdate",
    "parse_month_key",
    # Money
    "format_brl",
    "is_valid_money_input",
    "normalize_money_input",
    "parse_money_input",
    "safe_money_number",
]
