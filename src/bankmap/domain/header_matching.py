"""Header synonym matching.

Scores a column header against per-field synonym lists using exact,
substring and edit-distance matching.
"""

from rapidfuzz.distance import Levenshtein

from bankmap.domain.entities import FieldType

FIELD_SYNONYMS: dict[FieldType, tuple[str, ...]] = {
    FieldType.DATE: (
        "date",
        "transaction date",
        "trans date",
        "post date",
        "posting date",
        "posted date",
        "value date",
        "booking date",
        "effective date",
        "settlement date",
        "fecha",
        "datum",
        "data",
        "tarih",
    ),
    FieldType.AMOUNT: (
        "amount",
        "total",
        "sum",
        "value",
        "charge",
        "payment",
        "transaction amount",
        "monto",
        "betrag",
        "importo",
        "montant",
    ),
    FieldType.DESCRIPTION: (
        "description",
        "merchant",
        "payee",
        "memo",
        "details",
        "narrative",
        "reference",
        "merchant name",
        "vendor",
        "payee name",
        "transaction details",
        "descripción",
        "beschreibung",
    ),
    FieldType.DEBIT: (
        "debit",
        "withdrawal",
        "expense",
        "charge",
        "débito",
        "withdraw",
        "outgoing",
    ),
    FieldType.CREDIT: (
        "credit",
        "deposit",
        "income",
        "payment",
        "crédito",
        "incoming",
        "deposit amount",
    ),
    FieldType.BALANCE: (
        "balance",
        "running balance",
        "account balance",
        "current balance",
        "saldo",
        "guthaben",
    ),
}

EXACT_SCORE = 1.0
SUBSTRING_SCORE = 0.85
# (max edit distance, score), checked in order
DISTANCE_BANDS: tuple[tuple[int, float], ...] = ((2, 0.7), (4, 0.5), (6, 0.3))


def fuzzy_match_header(header: str, field_type: FieldType) -> float:
    """Score how well a header names the given field type.

    Args:
        header: Raw header cell
        field_type: Candidate field type

    Returns:
        Confidence in [0, 1]; 0 for blank headers and for ``UNKNOWN``
    """
    synonyms = FIELD_SYNONYMS.get(field_type)
    normalized = header.strip().lower()
    if not synonyms or not normalized:
        return 0.0

    if normalized in synonyms:
        return EXACT_SCORE

    if any(s in normalized or normalized in s for s in synonyms):
        return SUBSTRING_SCORE

    min_distance = min(Levenshtein.distance(normalized, s) for s in synonyms)
    for max_distance, score in DISTANCE_BANDS:
        if min_distance <= max_distance:
            return score
    return max(0.0, 1 - min_distance / 10)
