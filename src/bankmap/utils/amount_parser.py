"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

_CURRENCY_SYMBOLS = re.compile(r"[$€£¥]|\b(?:USD|EUR|GBP|CAD|AUD)\b", re.IGNORECASE)
_EUROPEAN_THOUSANDS = re.compile(r"^\d{1,3}(\.\d{3})+(,\d+)?$")
_US_THOUSANDS = re.compile(r"^\d{1,3}(,\d{3})+(\.\d+)?$")
_DECIMAL_COMMA = re.compile(r"^\d+,\d{1,2}$")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45", "-123.45", "+123.45"
    - "$123.45", "-$123.45", "€ 12,00"
    - "1,234.56" (US thousands separators)
    - "1.234,56" and "12,50" (European decimal comma)
    - "(123.45)" (negative in parentheses)
    - "123.45-" (trailing minus)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if amount_str is None or not amount_str.strip():
        raise ValueError("Empty amount string")

    value = amount_str.strip().strip("\"'").strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if value.startswith("(") and value.endswith(")"):
        is_negative = True
        value = value[1:-1]

    value = _CURRENCY_SYMBOLS.sub("", value)
    value = value.replace(" ", "").replace("\u00a0", "")

    if value.endswith("-"):
        is_negative = not is_negative
        value = value[:-1]
    if value.startswith("-"):
        is_negative = not is_negative
        value = value[1:]
    elif value.startswith("+"):
        value = value[1:]

    value = _normalize_separators(value)

    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str.strip()}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'")
    return -amount if is_negative else amount


def _normalize_separators(value: str) -> str:
    """Rewrite thousands/decimal separators to a plain dotted decimal."""
    if "," in value and "." in value:
        # Whichever separator comes last is the decimal point
        if value.rfind(",") > value.rfind("."):
            return value.replace(".", "").replace(",", ".")
        return value.replace(",", "")
    if _EUROPEAN_THOUSANDS.match(value) and value.count(".") > 1:
        return value.replace(".", "").replace(",", ".")
    if _US_THOUSANDS.match(value):
        return value.replace(",", "")
    if _DECIMAL_COMMA.match(value):
        return value.replace(",", ".")
    return value.replace(",", "")
