"""
Money helpers.

Amounts are plain numbers in the ledger; these helpers turn them into
Brazilian-real display strings and parse what users type back into numbers.
"""

import math
import re
from decimal import Decimal
from typing import Any


_STRIP_SYMBOL = re.compile(r"[R$\s]", re.IGNORECASE)
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def safe_money_number(value: Any, fallback: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, returning ``fallback`` otherwise."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        numeric = float(value)
    else:
        try:
            numeric = float(str(value).strip())
        except (TypeError, ValueError):
            return fallback
    if not math.isfinite(numeric):
        return fallback
    return numeric


def format_brl(value: Any, symbol: str = "R$") -> str:
    """
    Format an amount the way pt-BR currency formatting does.

    >>> format_brl(1234.5)
    'R$ 1.234,50'
    """
    numeric = safe_money_number(value, 0.0)
    grouped = f"{abs(numeric):,.2f}"
    # 1,234.50 -> 1.234,50
    localized = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if numeric < 0 and localized.strip("0,.") else ""
    return f"{sign}{symbol} {localized}"


def normalize_money_input(text: str) -> str:
    """Strip currency symbol, thousands dots and whitespace; comma becomes the decimal point."""
    if not text:
        return ""
    normalized = _STRIP_SYMBOL.sub("", str(text))
    normalized = normalized.replace(".", "").replace(",", ".")
    return _NON_NUMERIC.sub("", normalized)


def parse_money_input(text: str) -> float:
    normalized = normalize_money_input(text)
    if not normalized:
        return 0.0
    try:
        parsed = float(normalized)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def is_valid_money_input(text: str) -> bool:
    normalized = normalize_money_input(text)
    if not normalized:
        return False
    try:
        return math.isfinite(float(normalized))
    except ValueError:
        return False
