"""Row parsing: turn raw cells into staged transactions using a column mapping."""

import logging
import re
from decimal import Decimal
from typing import Optional, Sequence

from bankmap.domain.entities import (
    AmountSignConvention,
    ColumnMapping,
    CSVAnalysisResult,
    ParsedTransaction,
    TransactionType,
)
from bankmap.domain.errors import ValidationError
from bankmap.domain.pattern_matchers import AUTO_DATE_FORMAT
from bankmap.utils.amount_parser import parse_amount
from bankmap.utils.date_parser import parse_date

logger = logging.getLogger(__name__)

SIGN_SAMPLE_ROWS = 20
SIGN_MIN_AMOUNTS = 3
SIGN_NEGATIVE_RATIO = 1.5

INCOME_TYPE_MARKERS = ("INCOME", "CREDIT", "DEPOSIT")

DATE_ERROR_PREFIX = "date:"
AMOUNT_ERROR_PREFIX = "amount:"

_MERCHANT_PREFIXES = re.compile(r"^(SQ \*|TST\*|PAR\*|AMZN MKTP|AMAZON MKTPL\*)", re.IGNORECASE)
_PHONE_SUFFIX = re.compile(r"\s+\d{3}-\d{3}-\d{4}.*$")
_STATE_SUFFIX = re.compile(r"\s+[A-Z]{2}$")
_NULL_SUFFIX = re.compile(r"\s+null\s+.*$", re.IGNORECASE)
_LOCATION_SPLIT = re.compile(r"\s{2,}|\s+[A-Z]{2}\s+")


def extract_merchant(description: str) -> str:
    """Derive a merchant name from a raw statement description.

    Strips card-processor prefixes (``SQ *``, ``TST*``), phone numbers,
    trailing state codes and anything after a location gap. Falls back to
    the description when nothing is left.
    """
    merchant = _MERCHANT_PREFIXES.sub("", description)
    merchant = _PHONE_SUFFIX.sub("", merchant)
    merchant = _STATE_SUFFIX.sub("", merchant)
    merchant = _NULL_SUFFIX.sub("", merchant).strip()
    merchant = _LOCATION_SPLIT.split(merchant)[0].strip()
    return merchant or description


def _cell(row: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def _data_rows(rows: Sequence[Sequence[str]], has_headers: bool) -> list[tuple[int, Sequence[str]]]:
    """Pair each data row with its 1-based line number in the source file."""
    start = 1 if has_headers else 0
    return [(index + 1, rows[index]) for index in range(start, len(rows))]


def detect_amount_sign_convention(
    rows: Sequence[Sequence[str]], amount_column: Optional[int], has_headers: bool
) -> AmountSignConvention:
    """Infer how a single amount column encodes expenses.

    Exports that are mostly negative (checking-account style) store expenses
    as negatives, so positive amounts are income. Everything else, including
    too few non-zero samples, is treated as credit-card style.
    """
    if amount_column is None:
        return AmountSignConvention.POSITIVE_IS_EXPENSE

    negatives = 0
    positives = 0
    for _, row in _data_rows(rows, has_headers)[:SIGN_SAMPLE_ROWS]:
        value = _cell(row, amount_column)
        if not value:
            continue
        try:
            amount = parse_amount(value)
        except ValueError:
            continue
        if amount == 0:
            continue
        if amount < 0:
            negatives += 1
        else:
            positives += 1

    if negatives + positives < SIGN_MIN_AMOUNTS:
        return AmountSignConvention.POSITIVE_IS_EXPENSE
    if negatives > positives * SIGN_NEGATIVE_RATIO:
        return AmountSignConvention.POSITIVE_IS_INCOME
    return AmountSignConvention.POSITIVE_IS_EXPENSE


def mapping_from_analysis(
    analysis: CSVAnalysisResult, rows: Sequence[Sequence[str]]
) -> ColumnMapping:
    """Build a mapping from detected columns.

    A debit or credit column without a single amount column makes the
    mapping a debit/credit layout; otherwise the sign convention is inferred
    from the amount samples.
    """
    date_format = analysis.date_format
    if date_format == AUTO_DATE_FORMAT:
        date_format = None

    if analysis.amount_column is None and (
        analysis.debit_column is not None or analysis.credit_column is not None
    ):
        return ColumnMapping(
            date_column=analysis.date_column,
            description_column=analysis.description_column,
            debit_column=analysis.debit_column,
            credit_column=analysis.credit_column,
            amount_sign_convention=AmountSignConvention.SEPARATE_DEBIT_CREDIT,
            date_format=date_format,
            has_headers=analysis.has_headers,
        )

    return ColumnMapping(
        date_column=analysis.date_column,
        description_column=analysis.description_column,
        amount_column=analysis.amount_column,
        amount_sign_convention=detect_amount_sign_convention(
            rows, analysis.amount_column, analysis.has_headers
        ),
        date_format=date_format,
        has_headers=analysis.has_headers,
    )


def validate_mapping(mapping: ColumnMapping, column_count: Optional[int] = None) -> None:
    """Check that a mapping can parse rows.

    Args:
        mapping: Mapping to check
        column_count: Width of the source table, when known

    Raises:
        ValidationError: If a required column is missing or out of range
    """
    if mapping.date_column is None or mapping.description_column is None:
        raise ValidationError("Date and description columns must be mapped")

    convention = mapping.amount_sign_convention
    if convention == AmountSignConvention.SEPARATE_DEBIT_CREDIT:
        if mapping.debit_column is None or mapping.credit_column is None:
            raise ValidationError("Debit/credit layouts need both a debit and a credit column")
    elif convention == AmountSignConvention.SEPARATE_COLUMN:
        if mapping.amount_column is None:
            raise ValidationError("An amount column must be mapped")
        if mapping.transaction_type_column is None:
            raise ValidationError("A transaction type column must be mapped")
    elif mapping.amount_column is None:
        raise ValidationError("An amount column must be mapped")

    if column_count is None:
        return
    indexes = [
        mapping.date_column,
        mapping.description_column,
        mapping.amount_column,
        mapping.debit_column,
        mapping.credit_column,
        mapping.transaction_type_column,
    ]
    for index in indexes:
        if index is not None and not 0 <= index < column_count:
            raise ValidationError(
                f"Column {index} is out of range for a file with {column_count} columns"
            )


def _signed_amount(
    row: Sequence[str], mapping: ColumnMapping
) -> tuple[Optional[Decimal], Optional[str]]:
    """Return (signed amount with expenses negative, error)."""
    convention = mapping.amount_sign_convention

    if convention == AmountSignConvention.SEPARATE_DEBIT_CREDIT:
        debit_value = _cell(row, mapping.debit_column)
        credit_value = _cell(row, mapping.credit_column)
        if not debit_value and not credit_value:
            return None, "Missing amount"
        try:
            debit = abs(parse_amount(debit_value)) if debit_value else Decimal("0")
            credit = abs(parse_amount(credit_value)) if credit_value else Decimal("0")
        except ValueError as e:
            return None, str(e)
        if debit > 0:
            return -debit, None
        return credit, None

    value = _cell(row, mapping.amount_column)
    if not value:
        return None, "Missing amount"
    try:
        amount = parse_amount(value)
    except ValueError as e:
        return None, str(e)

    if convention == AmountSignConvention.SEPARATE_COLUMN:
        type_value = _cell(row, mapping.transaction_type_column).upper()
        if any(marker in type_value for marker in INCOME_TYPE_MARKERS):
            return abs(amount), None
        return -abs(amount), None
    if convention == AmountSignConvention.POSITIVE_IS_EXPENSE:
        return -amount, None
    return amount, None


def transaction_type_for(amount: Optional[Decimal]) -> TransactionType:
    if amount is not None and amount > 0:
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def parse_row(row_number: int, row: Sequence[str], mapping: ColumnMapping) -> ParsedTransaction:
    """Parse one data row. Malformed date or amount cells are flagged, not raised."""
    errors = []

    parsed_date = None
    date_value = _cell(row, mapping.date_column)
    if not date_value:
        errors.append(f"{DATE_ERROR_PREFIX} Missing date")
    else:
        try:
            parsed_date = parse_date(date_value, mapping.date_format)
        except ValueError as e:
            errors.append(f"{DATE_ERROR_PREFIX} {e}")

    amount, amount_error = _signed_amount(row, mapping)
    if amount_error is not None:
        errors.append(f"{AMOUNT_ERROR_PREFIX} {amount_error}")

    description = " ".join(_cell(row, mapping.description_column).split())
    return ParsedTransaction(
        row_number=row_number,
        date=parsed_date,
        description=description,
        amount=amount,
        transaction_type=transaction_type_for(amount),
        merchant=extract_merchant(description) if description else "",
        original_row=list(row),
        errors=errors,
    )


def parse_rows(rows: Sequence[Sequence[str]], mapping: ColumnMapping) -> list[ParsedTransaction]:
    """Parse every non-blank data row of a table.

    Args:
        rows: Raw rows, header row included when ``mapping.has_headers``
        mapping: Validated column mapping

    Returns:
        Parsed transactions in file order
    """
    validate_mapping(mapping)

    transactions = []
    for row_number, row in _data_rows(rows, mapping.has_headers):
        if not any(cell.strip() for cell in row):
            continue
        transactions.append(parse_row(row_number, row, mapping))

    flagged = sum(1 for t in transactions if t.errors)
    if flagged:
        logger.info("Flagged %d of %d rows with malformed cells", flagged, len(transactions))
    return transactions
