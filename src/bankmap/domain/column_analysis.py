"""Column analysis for delimited bank exports.

Blends header synonym scores with content pattern scores to decide which
column holds the date, amount, description and debit/credit values, and
fingerprints the layout so a confirmed mapping can be reused.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from bankmap.domain.entities import (
    ColumnAnalysis,
    CSVAnalysisResult,
    DetectionMethod,
    FieldType,
)
from bankmap.domain.errors import EmptyInputError
from bankmap.domain.header_matching import fuzzy_match_header
from bankmap.domain.pattern_matchers import (
    detect_date_format,
    is_amount_column,
    is_balance_column,
    is_date_column,
    is_description_column,
    leading_number,
)

logger = logging.getLogger(__name__)

# Argmax order; ties go to the earlier field.
SCORED_FIELDS: tuple[FieldType, ...] = (
    FieldType.DATE,
    FieldType.AMOUNT,
    FieldType.DESCRIPTION,
    FieldType.DEBIT,
    FieldType.CREDIT,
    FieldType.BALANCE,
)

ASSIGNABLE_FIELDS: tuple[FieldType, ...] = (
    FieldType.DATE,
    FieldType.AMOUNT,
    FieldType.DESCRIPTION,
    FieldType.DEBIT,
    FieldType.CREDIT,
)

AUTO_ACCEPT_FIELDS: tuple[FieldType, ...] = (
    FieldType.DATE,
    FieldType.AMOUNT,
    FieldType.DESCRIPTION,
)


@dataclass(frozen=True)
class AnalyzerThresholds:
    """Tunable cut-offs for column analysis.

    Weights are (header_weight, content_weight) pairs chosen by how decisive
    a column's strongest content score is.
    """

    auto_accept: float = 0.85
    field_assignment: float = 0.5
    unknown: float = 0.3
    debit_credit_header: float = 0.5
    header_evidence: float = 0.5
    hybrid_confidence: float = 0.7
    strong_content: float = 0.9
    strong_content_weights: tuple[float, float] = (0.2, 0.8)
    moderate_content: float = 0.7
    moderate_content_weights: tuple[float, float] = (0.3, 0.7)
    fallback_weights: tuple[float, float] = (0.6, 0.4)
    no_header_weights: tuple[float, float] = (0.0, 1.0)
    sample_rows: int = 10
    preview_values: int = 3


DEFAULT_THRESHOLDS = AnalyzerThresholds()


def _is_numeric_cell(value: str) -> bool:
    return leading_number(value) is not None


def detect_headers(rows: Sequence[Sequence[str]]) -> bool:
    """Decide whether the first row is a header row.

    Row 0 is a header only when row 1 has strictly more numeric cells.
    A single row is assumed to be a header.
    """
    if len(rows) < 2:
        return True
    first_numeric = sum(1 for cell in rows[0] if _is_numeric_cell(cell))
    second_numeric = sum(1 for cell in rows[1] if _is_numeric_cell(cell))
    return second_numeric > first_numeric


def generate_fingerprint(first_row: Sequence[str]) -> str:
    """Fingerprint a layout from its literal first row.

    Cells are lowercased, trimmed and joined with ``|``, then hashed with a
    signed 32-bit ``h * 31 + code`` rolling hash.

    Returns:
        ``"{column_count}-{abs(hash) as hex}"``
    """
    text = "|".join(cell.strip().lower() for cell in first_row)
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"{len(first_row)}-{abs(h):x}"


def is_auto_acceptable(
    result: CSVAnalysisResult, thresholds: AnalyzerThresholds = DEFAULT_THRESHOLDS
) -> bool:
    """Whether a layout can be imported without a human confirming the mapping.

    Date, amount and description must all be matched, each by a column with
    confidence at or above ``thresholds.auto_accept``.
    """
    for field_type in AUTO_ACCEPT_FIELDS:
        index = result.best_column(field_type)
        if index is None:
            return False
        if result.columns[index].confidence < thresholds.auto_accept:
            return False
    return True


class ColumnAnalyzer:
    """Classifies the columns of a raw 2-D table of string cells."""

    def __init__(self, thresholds: AnalyzerThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def analyze(self, rows: Sequence[Sequence[str]]) -> CSVAnalysisResult:
        """Analyze a table and pick the best column for each field.

        Args:
            rows: Raw rows, header row included when present

        Returns:
            CSVAnalysisResult for the table

        Raises:
            EmptyInputError: If there are no rows or the first row has no cells
        """
        if not rows or not rows[0]:
            raise EmptyInputError("Cannot analyze an empty file")

        has_headers = detect_headers(rows)
        first_row = rows[0]
        if has_headers:
            headers = list(first_row)
            data_rows = rows[1 : 1 + self.thresholds.sample_rows]
        else:
            headers = [f"Column {i + 1}" for i in range(len(first_row))]
            data_rows = rows[: self.thresholds.sample_rows]

        samples = [self._column_values(data_rows, index) for index in range(len(headers))]
        columns = tuple(
            self._analyze_column(index, header, samples[index], has_headers)
            for index, header in enumerate(headers)
        )

        best = {field_type: self._best_match(columns, field_type) for field_type in ASSIGNABLE_FIELDS}

        date_format = None
        date_column = best[FieldType.DATE]
        if date_column is not None:
            date_format = detect_date_format(samples[date_column])

        result = CSVAnalysisResult(
            columns=columns,
            has_headers=has_headers,
            date_column=date_column,
            amount_column=best[FieldType.AMOUNT],
            description_column=best[FieldType.DESCRIPTION],
            debit_column=best[FieldType.DEBIT],
            credit_column=best[FieldType.CREDIT],
            date_format=date_format,
            fingerprint=generate_fingerprint(first_row),
        )
        logger.debug(
            "Analyzed %d columns (headers=%s, fingerprint=%s)",
            len(columns),
            has_headers,
            result.fingerprint,
        )
        return result

    def is_auto_acceptable(self, result: CSVAnalysisResult) -> bool:
        return is_auto_acceptable(result, self.thresholds)

    @staticmethod
    def _column_values(data_rows: Sequence[Sequence[str]], index: int) -> list[str]:
        values = []
        for row in data_rows:
            value = row[index] if index < len(row) else ""
            if value.strip():
                values.append(value)
        return values

    def _weights(self, has_headers: bool, max_content: float) -> tuple[float, float]:
        t = self.thresholds
        if not has_headers:
            return t.no_header_weights
        if max_content >= t.strong_content:
            return t.strong_content_weights
        if max_content >= t.moderate_content:
            return t.moderate_content_weights
        return t.fallback_weights

    def _analyze_column(
        self, index: int, header: str, values: list[str], has_headers: bool
    ) -> ColumnAnalysis:
        t = self.thresholds

        if has_headers:
            header_scores = {ft: fuzzy_match_header(header, ft) for ft in SCORED_FIELDS}
        else:
            header_scores = {ft: 0.0 for ft in SCORED_FIELDS}

        amount_content = is_amount_column(values)
        content_scores = {
            FieldType.DATE: is_date_column(values)[0],
            FieldType.AMOUNT: amount_content,
            FieldType.DESCRIPTION: is_description_column(values),
            FieldType.DEBIT: amount_content,
            FieldType.CREDIT: amount_content,
            FieldType.BALANCE: is_balance_column(values),
        }
        max_content = max(content_scores.values())
        header_weight, content_weight = self._weights(has_headers, max_content)

        combined = {
            ft: header_scores[ft] * header_weight + content_scores[ft] * content_weight
            for ft in SCORED_FIELDS
        }

        debit_header = header_scores[FieldType.DEBIT]
        credit_header = header_scores[FieldType.CREDIT]
        use_debit_credit = max(debit_header, credit_header) > t.debit_credit_header
        # A header that names both equally suppresses both
        if not (use_debit_credit and debit_header > credit_header):
            combined[FieldType.DEBIT] = 0.0
        if not (use_debit_credit and credit_header > debit_header):
            combined[FieldType.CREDIT] = 0.0

        winner = FieldType.UNKNOWN
        confidence = 0.0
        for field_type in SCORED_FIELDS:
            if combined[field_type] > confidence:
                winner = field_type
                confidence = combined[field_type]
        confidence = min(1.0, max(0.0, confidence))

        winner_header = header_scores.get(winner, 0.0)
        if not has_headers or winner_header <= t.header_evidence:
            method = DetectionMethod.CONTENT
        elif confidence > t.hybrid_confidence:
            method = DetectionMethod.HYBRID
        else:
            method = DetectionMethod.HEADER

        return ColumnAnalysis(
            column_index=index,
            header_name=header,
            field_type=winner if confidence > t.unknown else FieldType.UNKNOWN,
            confidence=confidence,
            sample_values=tuple(values[: t.preview_values]),
            detection_method=method,
        )

    def _best_match(self, columns: Sequence[ColumnAnalysis], field_type: FieldType) -> Optional[int]:
        best: Optional[ColumnAnalysis] = None
        for column in columns:
            if column.field_type != field_type:
                continue
            if best is None or column.confidence > best.confidence:
                best = column
        if best is None or best.confidence <= self.thresholds.field_assignment:
            return None
        return best.column_index
