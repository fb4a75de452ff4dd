"""Tests for content pattern matchers."""

import pytest

from bankmap.domain.pattern_matchers import (
    AUTO_DATE_FORMAT,
    detect_date_format,
    is_amount_column,
    is_amount_value,
    is_balance_column,
    is_date_column,
    is_description_column,
    leading_number,
    match_date_pattern,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("01/15/24", "MM/DD/YY"),
        ("1/5/2024", "MM/DD/YYYY"),
        ("2024-01-15", "YYYY-MM-DD"),
        ("15-01-2024", "DD-MM-YYYY"),
        ("15.01.2024", "DD.MM.YYYY"),
        ("15.01.24", "DD.MM.YY"),
        ("Jan 15, 2024", "MMM DD, YYYY"),
        ("2024/01/15", "YYYY/MM/DD"),
        ("1-5-24", "MM-DD-YYYY"),
        ("hello", None),
    ],
)
def test_match_date_pattern(value, expected):
    assert match_date_pattern(value) == expected


def test_is_date_column_scores_share_of_dates():
    score, date_format = is_date_column(["01/15/2024", "01/16/2024", "not a date", "01/18/2024"])
    assert score == 0.75
    assert date_format == "MM/DD/YYYY"


def test_is_date_column_empty():
    assert is_date_column([]) == (0.0, None)


def test_is_date_column_generic_fallback_is_auto():
    score, date_format = is_date_column(["January 15th 2024", "February 3rd 2024"])
    assert score == 1.0
    assert date_format == AUTO_DATE_FORMAT


def test_is_date_column_ignores_plain_numbers():
    """Long digit strings are not dates even though a lenient parser might accept them."""
    score, date_format = is_date_column(["20240115", "12345678"])
    assert score == 0.0
    assert date_format is None


def test_date_format_tie_goes_to_earlier_pattern():
    assert detect_date_format(["2024-01-15", "01/15/24"]) == "MM/DD/YY"


@pytest.mark.parametrize(
    "value",
    ["123.45", "-123.45", "$1,234.56", "1.234,56", "(123.45)", "-$12.00", "1000"],
)
def test_amount_values(value):
    assert is_amount_value(value)


@pytest.mark.parametrize("value", ["", "01/15/2024", "12-05-24", "abc", "12.5"])
def test_not_amount_values(value):
    assert not is_amount_value(value)


def test_is_amount_column():
    assert is_amount_column(["-5.75", "2500.00", "STARBUCKS", "84.12"]) == 0.75
    assert is_amount_column([]) == 0.0


def test_is_description_column():
    values = ["STARBUCKS STORE 1234", "PAYROLL", "123.45", "01/15/2024", "1234"]
    assert is_description_column(values) == pytest.approx(0.4)


def test_description_rejects_overlong_text():
    assert is_description_column(["x" * 201]) == 0.0


def test_leading_number():
    assert leading_number("$1,234.50") == 1234.5
    assert leading_number("2024-01-15") == 2024.0
    assert leading_number("(12.00)") == 12.0
    assert leading_number("abc") is None


def test_balance_column_needs_large_mostly_positive_values():
    assert is_balance_column(["3,800.00", "6,800.00", "6,734.60"]) == 0.7
    assert is_balance_column(["12.00", "40.00"]) == 0.0
    assert is_balance_column(["-3800.00", "-6800.00"]) == 0.0
    assert is_balance_column(["n/a"]) == 0.0
