"""Shared column mapping options for the import and remap commands."""

from dataclasses import replace
from typing import Any, Optional, Sequence

import click

from bankmap.domain.entities import AmountSignConvention, ColumnMapping
from bankmap.domain.pattern_matchers import AUTO_DATE_FORMAT
from bankmap.domain.transaction_parser import detect_amount_sign_convention
from bankmap.utils.date_parser import DATE_FORMATS

COLUMN_OPTIONS = ("date_col", "description_col", "amount_col", "debit_col", "credit_col", "type_col")
MAPPING_OPTIONS = COLUMN_OPTIONS + ("sign_convention", "date_format", "headers")

_OPTIONS = [
    click.option("--date-col", type=click.IntRange(min=0), help="Date column index (0-based)"),
    click.option("--description-col", type=click.IntRange(min=0), help="Description column index"),
    click.option("--amount-col", type=click.IntRange(min=0), help="Single amount column index"),
    click.option("--debit-col", type=click.IntRange(min=0), help="Debit (money out) column index"),
    click.option("--credit-col", type=click.IntRange(min=0), help="Credit (money in) column index"),
    click.option("--type-col", type=click.IntRange(min=0), help="Transaction type column index"),
    click.option(
        "--sign-convention",
        type=click.Choice([c.value for c in AmountSignConvention], case_sensitive=False),
        help="How amounts encode expenses (inferred when omitted)",
    ),
    click.option(
        "--date-format",
        type=click.Choice([*DATE_FORMATS, AUTO_DATE_FORMAT]),
        help="Date format of the date column ('auto' lets the parser decide)",
    ),
    click.option("--headers/--no-headers", default=None, help="Whether the first row is a header"),
]


def mapping_options(func):
    """Attach the column mapping options to a command."""
    for option in reversed(_OPTIONS):
        func = option(func)
    return func


def has_mapping_options(options: dict[str, Any]) -> bool:
    return any(options.get(name) is not None for name in MAPPING_OPTIONS)


def overlay_mapping(
    base: ColumnMapping, rows: Sequence[Sequence[str]], options: dict[str, Any]
) -> ColumnMapping:
    """Apply command-line overrides on top of a suggested or current mapping.

    Choosing debit/credit columns without an amount column switches to a
    debit/credit layout, and a type column switches to a separate-column
    layout. The sign convention is re-inferred when the amount column changes
    and no convention was given.
    """
    mapping = base
    if options.get("headers") is not None:
        mapping = replace(mapping, has_headers=options["headers"])
    if options.get("date_col") is not None:
        mapping = replace(mapping, date_column=options["date_col"])
    if options.get("description_col") is not None:
        mapping = replace(mapping, description_column=options["description_col"])

    split_columns = options.get("debit_col") is not None or options.get("credit_col") is not None
    if options.get("amount_col") is not None:
        mapping = replace(mapping, amount_column=options["amount_col"])
        if not split_columns:
            mapping = replace(mapping, debit_column=None, credit_column=None)
    if split_columns:
        mapping = replace(
            mapping,
            debit_column=_pick(options.get("debit_col"), mapping.debit_column),
            credit_column=_pick(options.get("credit_col"), mapping.credit_column),
        )
        if options.get("amount_col") is None:
            mapping = replace(
                mapping,
                amount_column=None,
                amount_sign_convention=AmountSignConvention.SEPARATE_DEBIT_CREDIT,
            )
    if options.get("type_col") is not None:
        mapping = replace(
            mapping,
            transaction_type_column=options["type_col"],
            amount_sign_convention=AmountSignConvention.SEPARATE_COLUMN,
        )

    if options.get("sign_convention") is not None:
        mapping = replace(
            mapping, amount_sign_convention=AmountSignConvention(options["sign_convention"].lower())
        )
    elif options.get("amount_col") is not None and not split_columns and options.get("type_col") is None:
        mapping = replace(
            mapping,
            amount_sign_convention=detect_amount_sign_convention(
                rows, mapping.amount_column, mapping.has_headers
            ),
        )

    date_format = options.get("date_format")
    if date_format is not None:
        mapping = replace(mapping, date_format=None if date_format == AUTO_DATE_FORMAT else date_format)
    return mapping


def _pick(value: Optional[int], current: Optional[int]) -> Optional[int]:
    return value if value is not None else current


def describe_mapping(mapping: ColumnMapping, headers: Optional[Sequence[str]] = None) -> list[str]:
    """Human-readable lines describing a mapping."""

    def column(index: Optional[int]) -> str:
        if index is None:
            return "-"
        if headers is not None and index < len(headers) and headers[index].strip():
            return f"{index} ({headers[index].strip()})"
        return str(index)

    lines = [
        f"  Date:        {column(mapping.date_column)}",
        f"  Description: {column(mapping.description_column)}",
        f"  Amount:      {column(mapping.amount_column)}",
    ]
    if mapping.debit_column is not None or mapping.credit_column is not None:
        lines.append(f"  Debit:       {column(mapping.debit_column)}")
        lines.append(f"  Credit:      {column(mapping.credit_column)}")
    if mapping.transaction_type_column is not None:
        lines.append(f"  Type:        {column(mapping.transaction_type_column)}")
    lines.append(f"  Signs:       {mapping.amount_sign_convention.value}")
    lines.append(f"  Date format: {mapping.date_format or 'auto'}")
    lines.append(f"  Headers:     {'yes' if mapping.has_headers else 'no'}")
    return lines
