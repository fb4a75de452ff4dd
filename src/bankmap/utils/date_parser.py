"""Date parsing utilities."""

from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

# Detected format labels mapped onto strptime patterns, tried in order.
DATE_FORMATS: dict[str, tuple[str, ...]] = {
    "MM/DD/YYYY": ("%m/%d/%Y", "%m/%d/%y"),
    "MM/DD/YY": ("%m/%d/%y",),
    "YYYY-MM-DD": ("%Y-%m-%d",),
    "DD-MM-YYYY": ("%d-%m-%Y",),
    "DD.MM.YYYY": ("%d.%m.%Y",),
    "DD.MM.YY": ("%d.%m.%y",),
    "MMM DD, YYYY": ("%b %d, %Y", "%b %d %Y"),
    "YYYY/MM/DD": ("%Y/%m/%d",),
    "MM-DD-YYYY": ("%m-%d-%Y", "%m-%d-%y"),
}

MIN_YEAR = 1900
MAX_YEAR = 2100


def parse_date(date_str: str, date_format: Optional[str] = None) -> date:
    """Parse a statement date string into a date object.

    The detected format label (e.g. "MM/DD/YYYY") is tried first. Anything
    else goes through dateutil, reading day-first when the detected format
    puts the day first.

    Args:
        date_str: Date string as it appears in the export
        date_format: Optional detected format label

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed or falls outside 1900-2100
    """
    value = " ".join(date_str.strip().strip("\"'").split())
    if not value:
        raise ValueError("Empty date string")

    if date_format in DATE_FORMATS:
        for fmt in DATE_FORMATS[date_format]:
            try:
                return _check_year(datetime.strptime(value, fmt).date(), value)
            except ValueError:
                continue

    dayfirst = bool(date_format) and date_format.startswith("DD")
    try:
        dt = date_parser.parse(value, dayfirst=dayfirst)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}")
    return _check_year(dt.date(), value)


def _check_year(parsed: date, value: str) -> date:
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        raise ValueError(f"Date '{value}' is outside {MIN_YEAR}-{MAX_YEAR}")
    return parsed
