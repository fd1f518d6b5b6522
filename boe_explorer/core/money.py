"""
Money parsing utilities for Spanish-formatted amounts.

Handles various formats:
- "1.234.567,89" → 1234567.89
- "5.785,12 euros" → 5785.12
- "3.000 €" → 3000.0
- "no consta" → None
"""

import math
import re
from typing import Optional, Union


# Trailing currency words/symbols stripped before parsing
_CURRENCY_RE = re.compile(r"\s*(?:euros?|eur|€)\s*$", re.IGNORECASE)

_NUMERIC_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def parse_spanish_amount(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Parse a Spanish-formatted numeric string into a float.

    The "." thousands separators are removed and the decimal comma becomes a
    decimal point. Anything that is not numeric after that cleanup yields
    None: a missing amount means "unknown", never zero.

    Examples:
        "1.234.567,89" → 1234567.89
        "9.000,00 euros" → 9000.0
        "12,5" → 12.5
        "abc" → None

    Args:
        value: Raw amount text (numbers are passed through as floats)

    Returns:
        Parsed amount, or None if the input is not numeric
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = _CURRENCY_RE.sub("", value.strip())
    text = text.replace(" ", "").replace("\u00a0", "")
    if not text:
        return None

    # Strip thousands separators, then convert the decimal comma
    text = text.replace(".", "").replace(",", ".")

    if not _NUMERIC_RE.match(text):
        return None

    try:
        number = float(text)
    except ValueError:
        return None

    return number if math.isfinite(number) else None


def format_eur_amount(amount: Optional[float]) -> str:
    """
    Format an amount for display in Spanish style.

    Examples:
        1234567.891 → "1.234.567,89 €"
        None → "No consta"
    """
    if amount is None:
        return "No consta"

    formatted = f"{amount:,.2f}"
    # 1,234,567.89 → 1.234.567,89
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{formatted} €"
