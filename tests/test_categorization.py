"""Tests for category suggestions."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import FailingSuggester, StaticSuggester, commit_history

from bankmap.domain.categorization import (
    CategorySuggestion,
    HistoryCategorySuggester,
    apply_suggestions,
    categorize_transactions,
)
from bankmap.domain.entities import (
    CategorySplit,
    ParsedTransaction,
    TransactionStatus,
    TransactionType,
)
from bankmap.domain.errors import StepUnavailableError


def make_txn(merchant, amount="-10.00", splits=None):
    value = Decimal(amount)
    return ParsedTransaction(
        row_number=2,
        date=date(2024, 3, 1),
        description=merchant,
        amount=value,
        transaction_type=TransactionType.EXPENSE,
        merchant=merchant,
        splits=list(splits or []),
        status=TransactionStatus.EXCLUDED,
    )


def test_history_suggests_most_used_category(temp_db, sample_account, sample_categories):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    groceries = sample_categories["Food & Dining > Groceries"]
    commit_history(
        temp_db,
        sample_account.id,
        [
            (date(2024, 1, 2), "Blue Bottle", Decimal("-4.00"), coffee),
            (date(2024, 1, 3), "BLUE BOTTLE", Decimal("-5.00"), coffee),
            (date(2024, 1, 4), "Blue Bottle", Decimal("-30.00"), groceries),
            (date(2024, 1, 5), "Uncategorized Shop", Decimal("-1.00"), None),
        ],
    )

    suggester = HistoryCategorySuggester(temp_db)
    blue_bottle, unknown, uncategorized = suggester.suggest(["blue bottle", "Nowhere", "Uncategorized Shop"])

    assert blue_bottle.category_id == coffee
    assert blue_bottle.confidence == pytest.approx(2 / 3)
    assert unknown is None
    assert uncategorized is None


def test_history_min_confidence(temp_db, sample_account, sample_categories):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    groceries = sample_categories["Food & Dining > Groceries"]
    commit_history(
        temp_db,
        sample_account.id,
        [
            (date(2024, 1, 2), "Corner Store", Decimal("-4.00"), coffee),
            (date(2024, 1, 3), "Corner Store", Decimal("-5.00"), groceries),
        ],
    )
    # tie goes to the lower category ID
    assert HistoryCategorySuggester(temp_db).suggest(["Corner Store"])[0].category_id == min(coffee, groceries)
    assert HistoryCategorySuggester(temp_db, min_confidence=0.75).suggest(["Corner Store"]) == [None]


def test_apply_suggestions_gives_full_amount_split():
    rows = [make_txn("A"), make_txn("B"), make_txn("C", splits=[CategorySplit(category_id=9, amount=Decimal("-10.00"))])]
    suggestions = [CategorySuggestion(category_id=3, confidence=0.8), None, CategorySuggestion(4, 0.5)]

    assert apply_suggestions(rows, suggestions) == 1
    assert rows[0].splits == [CategorySplit(category_id=3, amount=Decimal("-10.00"))]
    assert rows[0].suggested_category_id == 3
    assert rows[0].suggestion_confidence == 0.8
    assert rows[1].splits == []
    # existing splits are kept, the suggestion is still recorded
    assert rows[2].splits[0].category_id == 9
    assert rows[2].suggested_category_id == 4


def test_short_suggestion_list_leaves_rest_uncategorized():
    rows = [make_txn("A"), make_txn("B")]
    assert apply_suggestions(rows, [CategorySuggestion(category_id=3, confidence=1.0)]) == 1
    assert rows[1].splits == []


def test_categorize_only_asks_about_uncategorized_rows():
    rows = [make_txn("A"), make_txn("B", splits=[CategorySplit(category_id=1, amount=Decimal("-10.00"))])]
    suggester = StaticSuggester({"A": 5})

    assert categorize_transactions(suggester, rows) == 1
    assert suggester.requests == [["A"]]
    # categorized rows become reviewable
    assert rows[0].status == TransactionStatus.PENDING


def test_categorize_failure_leaves_rows_untouched():
    rows = [make_txn("A")]
    with pytest.raises(StepUnavailableError) as exc_info:
        categorize_transactions(FailingSuggester(), rows)

    assert exc_info.value.step == "Categorization"
    assert "timed out" in str(exc_info.value)
    assert rows[0].splits == []
    assert rows[0].status == TransactionStatus.EXCLUDED
