"""Category suggestions for staged transactions.

The pipeline treats the suggester as a black box: merchants go in, one
optional suggestion per merchant comes back in the same order.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from bankmap.database.base import Database
from bankmap.domain.duplicates import apply_default_statuses
from bankmap.domain.entities import CategorySplit, ParsedTransaction
from bankmap.domain.errors import StepUnavailableError

logger = logging.getLogger(__name__)

CATEGORIZATION_STEP = "Categorization"


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: int
    confidence: float


class CategorySuggester(Protocol):
    def suggest(self, merchants: Sequence[str]) -> list[Optional[CategorySuggestion]]:
        """Return one suggestion (or None) per merchant, positionally aligned."""
        ...


class HistoryCategorySuggester:
    """Suggests the category most often used for a merchant in committed history.

    Confidence is that category's share of the merchant's categorized splits.
    """

    def __init__(self, db: Database, min_confidence: float = 0.0):
        self.db = db
        self.min_confidence = min_confidence

    def suggest(self, merchants: Sequence[str]) -> list[Optional[CategorySuggestion]]:
        counts = self.db.get_merchant_category_counts(merchants)
        suggestions: list[Optional[CategorySuggestion]] = []
        for merchant in merchants:
            by_category = counts.get(merchant.lower()) if merchant else None
            if not by_category:
                suggestions.append(None)
                continue
            # Most used category; lowest ID on ties
            category_id, used = max(by_category.items(), key=lambda item: (item[1], -item[0]))
            confidence = used / sum(by_category.values())
            if confidence < self.min_confidence:
                suggestions.append(None)
            else:
                suggestions.append(CategorySuggestion(category_id=category_id, confidence=confidence))
        return suggestions


def apply_suggestions(
    transactions: Sequence[ParsedTransaction], suggestions: Sequence[Optional[CategorySuggestion]]
) -> int:
    """Attach suggestions to rows and give suggested rows a single full-amount split.

    Rows that already carry splits keep them. Rows beyond the end of
    ``suggestions`` stay uncategorized.

    Returns:
        Number of rows that received a category
    """
    categorized = 0
    for txn, suggestion in zip(transactions, suggestions):
        if suggestion is None:
            continue
        txn.suggested_category_id = suggestion.category_id
        txn.suggestion_confidence = suggestion.confidence
        if not txn.splits and txn.amount is not None:
            txn.splits = [CategorySplit(category_id=suggestion.category_id, amount=txn.amount)]
            categorized += 1
    return categorized


def categorize_transactions(
    suggester: CategorySuggester, transactions: Sequence[ParsedTransaction]
) -> int:
    """Request suggestions for every uncategorized row and apply them.

    Raises:
        StepUnavailableError: If the suggester fails; rows are left untouched
    """
    pending = [txn for txn in transactions if not txn.is_categorized]
    if not pending:
        return 0
    try:
        suggestions = suggester.suggest([txn.merchant for txn in pending])
    except Exception as e:
        raise StepUnavailableError(CATEGORIZATION_STEP, str(e)) from e

    categorized = apply_suggestions(pending, suggestions)
    apply_default_statuses(transactions)
    logger.info("Categorized %d of %d uncategorized rows", categorized, len(pending))
    return categorized
