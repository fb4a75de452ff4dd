"""Tests for command-line mapping overrides."""

from conftest import CHASE_ROWS

from bankmap.cli.mapping_options import describe_mapping, has_mapping_options, overlay_mapping
from bankmap.domain.entities import AmountSignConvention, ColumnMapping


BASE = ColumnMapping(
    date_column=0,
    description_column=1,
    amount_column=2,
    amount_sign_convention=AmountSignConvention.POSITIVE_IS_INCOME,
    date_format="MM/DD/YYYY",
)


def test_has_mapping_options():
    assert not has_mapping_options({"date_col": None, "headers": None})
    assert has_mapping_options({"headers": False})
    assert has_mapping_options({"amount_col": 0})


def test_untouched_fields_keep_base_values():
    mapping = overlay_mapping(BASE, CHASE_ROWS, {"description_col": 0})
    assert mapping.description_column == 0
    assert mapping.amount_sign_convention == AmountSignConvention.POSITIVE_IS_INCOME
    assert mapping.date_format == "MM/DD/YYYY"


def test_new_amount_column_reinfers_signs():
    rows = [["Date", "Description", "Charge"], ["01/02/2024", "A", "5.00"], ["01/03/2024", "B", "7.00"], ["01/04/2024", "C", "1.00"]]
    mapping = overlay_mapping(BASE, rows, {"amount_col": 2})
    assert mapping.amount_sign_convention == AmountSignConvention.POSITIVE_IS_EXPENSE


def test_debit_credit_columns_switch_layout():
    mapping = overlay_mapping(BASE, CHASE_ROWS, {"debit_col": 2, "credit_col": 3})
    assert mapping.amount_column is None
    assert (mapping.debit_column, mapping.credit_column) == (2, 3)
    assert mapping.amount_sign_convention == AmountSignConvention.SEPARATE_DEBIT_CREDIT


def test_type_column_switches_layout():
    mapping = overlay_mapping(BASE, CHASE_ROWS, {"type_col": 3})
    assert mapping.transaction_type_column == 3
    assert mapping.amount_sign_convention == AmountSignConvention.SEPARATE_COLUMN


def test_explicit_sign_convention_and_auto_date_format():
    mapping = overlay_mapping(
        BASE, CHASE_ROWS, {"amount_col": 2, "sign_convention": "POSITIVE_IS_EXPENSE", "date_format": "auto"}
    )
    assert mapping.amount_sign_convention == AmountSignConvention.POSITIVE_IS_EXPENSE
    assert mapping.date_format is None


def test_describe_mapping_names_headers():
    lines = describe_mapping(BASE, CHASE_ROWS[0])
    assert "  Date:        0 (Transaction Date)" in lines
    assert "  Signs:       positive_is_income" in lines
    assert not any(line.strip().startswith("Debit:") for line in lines)
