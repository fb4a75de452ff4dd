"""Content pattern matchers.

Classify a column by the shape of its values rather than its header. Every
matcher takes the sampled cell values of one column and returns a score in
[0, 1]: the share of values that look like the field type.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence

from bankmap.utils.date_parser import parse_date


@dataclass(frozen=True)
class DatePattern:
    regex: re.Pattern
    format: str


# Order matters: the first matching pattern names the value's format.
DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern(re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$"), "MM/DD/YY"),
    DatePattern(re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), "MM/DD/YYYY"),
    DatePattern(re.compile(r"^\d{4}-\d{2}-\d{2}$"), "YYYY-MM-DD"),
    DatePattern(re.compile(r"^\d{2}-\d{2}-\d{4}$"), "DD-MM-YYYY"),
    DatePattern(re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"), "DD.MM.YYYY"),
    DatePattern(re.compile(r"^\d{1,2}\.\d{1,2}\.\d{2}$"), "DD.MM.YY"),
    DatePattern(re.compile(r"^[A-Za-z]{3}\s+\d{1,2},?\s+\d{4}$"), "MMM DD, YYYY"),
    DatePattern(re.compile(r"^\d{4}/\d{2}/\d{2}$"), "YYYY/MM/DD"),
    DatePattern(re.compile(r"^\d{1,2}-\d{1,2}-\d{2,4}$"), "MM-DD-YYYY"),
)

_FORMAT_ORDER = {pattern.format: index for index, pattern in enumerate(DATE_PATTERNS)}

AMOUNT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"^-?\$?\d{1,3}(,?\d{3})*(\.\d{2})?$"),  # $1,234.56 or -1234.56
    re.compile(r"^-?\d{1,3}(\.\d{3})*(,\d{2})?$"),  # 1.234,56
    re.compile(r"^\(\d+\.\d{2}\)$"),  # (123.45)
    re.compile(r"^-?\d+\.\d{2}$"),  # -12.50
    re.compile(r"^-?\$\d+\.\d{2}$"),  # $123.45
)

_DATE_LIKE = re.compile(r"^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}$")
_PLAIN_NUMBER = re.compile(r"^[-+(]?[$€£¥]?[\d,.\s]+\)?$")
_NUMBER_NOISE = re.compile(r"[$,\s()]")
_LEADING_NUMBER = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")

GENERIC_DATE_MIN_LENGTH = 8
DESCRIPTION_MIN_LENGTH = 2
DESCRIPTION_MAX_LENGTH = 200
BALANCE_MIN_AVERAGE = 1000.0
BALANCE_MIN_NON_NEGATIVE_SHARE = 0.8
BALANCE_SCORE = 0.7

AUTO_DATE_FORMAT = "auto"


def clean_cell(value: str) -> str:
    """Trim whitespace and surrounding quotes from a cell."""
    return value.strip().strip("\"'").strip()


def leading_number(value: str) -> Optional[float]:
    """Read the leading number of a cell after dropping ``$``, ``,``, spaces and parentheses.

    "2024-01-15" reads as 2024, the same way a spreadsheet's lenient
    float parsing would.
    """
    match = _LEADING_NUMBER.match(_NUMBER_NOISE.sub("", value.strip()))
    if match is None:
        return None
    return float(match.group())


def match_date_pattern(value: str) -> Optional[str]:
    """Return the format label of the first fixed date pattern matching value."""
    for pattern in DATE_PATTERNS:
        if pattern.regex.match(value):
            return pattern.format
    return None


def is_amount_value(value: str) -> bool:
    if not value or _DATE_LIKE.match(value):
        return False
    return any(pattern.match(value) for pattern in AMOUNT_PATTERNS)


def _is_generic_date(value: str) -> bool:
    if len(value) < GENERIC_DATE_MIN_LENGTH or _PLAIN_NUMBER.match(value):
        return False
    try:
        parse_date(value)
    except ValueError:
        return False
    return True


def _most_common_format(format_counts: Counter) -> str:
    # Ties go to the earlier pattern in DATE_PATTERNS
    return max(format_counts, key=lambda label: (format_counts[label], -_FORMAT_ORDER[label]))


def is_date_column(values: Sequence[str]) -> tuple[float, Optional[str]]:
    """Score how date-like a column is.

    Returns:
        Tuple of (score, format). ``format`` is the most frequent fixed
        pattern label, ``"auto"`` when only the generic parser accepted
        values, or None when nothing matched.
    """
    if not values:
        return 0.0, None

    matches = 0
    generic_matched = False
    format_counts: Counter = Counter()

    for value in values:
        cleaned = clean_cell(value)
        if not cleaned:
            continue
        label = match_date_pattern(cleaned)
        if label is not None:
            matches += 1
            format_counts[label] += 1
        elif _is_generic_date(cleaned):
            matches += 1
            generic_matched = True

    if format_counts:
        detected = _most_common_format(format_counts)
    elif generic_matched:
        detected = AUTO_DATE_FORMAT
    else:
        detected = None
    return matches / len(values), detected


def detect_date_format(values: Sequence[str]) -> Optional[str]:
    """Infer the single most-represented date format among values."""
    return is_date_column(values)[1]


def is_amount_column(values: Sequence[str]) -> float:
    """Score how amount-like a column is."""
    if not values:
        return 0.0
    matches = sum(1 for value in values if is_amount_value(clean_cell(value)))
    return matches / len(values)


def is_description_column(values: Sequence[str]) -> float:
    """Score how much a column reads like free-text descriptions."""
    if not values:
        return 0.0

    def looks_like_text(value: str) -> bool:
        text = value.strip()
        if not DESCRIPTION_MIN_LENGTH <= len(text) <= DESCRIPTION_MAX_LENGTH:
            return False
        if not any(ch.isalpha() for ch in text) or text.isdigit():
            return False
        if match_date_pattern(text) is not None:
            return False
        return not any(pattern.match(text) for pattern in AMOUNT_PATTERNS)

    return sum(1 for value in values if looks_like_text(value)) / len(values)


def is_balance_column(values: Sequence[str]) -> float:
    """Score a column as a running balance.

    Balances are large and rarely negative. They are detected only so they
    can be kept out of field assignment.
    """
    numbers = [n for n in (leading_number(value) for value in values) if n is not None]
    if not numbers:
        return 0.0

    average = sum(numbers) / len(numbers)
    non_negative_share = sum(1 for n in numbers if n >= 0) / len(numbers)
    if average > BALANCE_MIN_AVERAGE and non_negative_share >= BALANCE_MIN_NON_NEGATIVE_SHARE:
        return BALANCE_SCORE
    return 0.0
