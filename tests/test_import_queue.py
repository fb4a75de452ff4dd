"""Tests for reviewing and committing staged import batches."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import CHASE_ROWS, FailingLookup, FailingSuggester, StaticSuggester, commit_history

from bankmap.domain.entities import (
    AmountSignConvention,
    CategorySplit,
    ColumnMapping,
    DuplicateType,
    TransactionStatus,
    TransactionType,
)
from bankmap.domain.errors import ConflictError, NotFoundError, StepUnavailableError, ValidationError
from bankmap.domain.import_queue import BatchRunGuard, ImportQueueService


BROKEN_ROWS = CHASE_ROWS + [["01/19/2024", "MYSTERY CHARGE", "abc"]]

MAPPING = ColumnMapping(
    date_column=0,
    description_column=1,
    amount_column=2,
    amount_sign_convention=AmountSignConvention.POSITIVE_IS_INCOME,
    date_format="MM/DD/YYYY",
)


@pytest.fixture
def batch(pipeline, sample_account):
    """A staged batch of four good rows and one with a malformed amount."""
    return pipeline.start(BROKEN_ROWS, "chase.csv", sample_account.id, manual_mapping=MAPPING).batch


def row_ids(batch):
    return [t.id for t in batch.transactions]


def test_list_and_load(queue_service, batch, sleeps):
    assert [b.batch_id for b in queue_service.list_batches()] == [batch.batch_id]
    loaded = queue_service.load_batch(batch.batch_id)
    assert row_ids(loaded) == row_ids(batch)
    assert sleeps == []


def test_load_missing_batch_retries_then_fails(queue_service, sleeps):
    with pytest.raises(NotFoundError, match="nope"):
        queue_service.load_batch("nope")
    assert sleeps == pytest.approx([0.2, 0.4])


def test_include_and_exclude(temp_db, queue_service, batch):
    starbucks, payroll = row_ids(batch)[:2]

    assert queue_service.include(batch.batch_id, [starbucks, payroll]) == 2
    assert queue_service.exclude(batch.batch_id, [payroll]) == 1

    stored = temp_db.get_batch(batch.batch_id, fresh=True)
    assert stored.get_transaction(starbucks).status == TransactionStatus.CONFIRMED
    assert stored.get_transaction(payroll).status == TransactionStatus.EXCLUDED
    assert stored.get_transaction(payroll).user_reviewed


def test_include_rejects_malformed_rows(queue_service, batch):
    broken = row_ids(batch)[-1]
    with pytest.raises(ValidationError, match="amount:"):
        queue_service.include(batch.batch_id, [broken])


def test_include_unknown_row(queue_service, batch):
    with pytest.raises(NotFoundError):
        queue_service.include(batch.batch_id, [999999])


def test_include_all_skips_duplicates_unless_asked(pipeline, queue_service, sample_account):
    batch = pipeline.start(
        CHASE_ROWS + [CHASE_ROWS[3]], "chase.csv", sample_account.id, manual_mapping=MAPPING
    ).batch

    assert queue_service.include_all(batch.batch_id) == 4
    assert queue_service.include_all(batch.batch_id, include_duplicates=True) == 5


def test_include_all_skips_malformed_rows(queue_service, batch):
    assert queue_service.include_all(batch.batch_id) == 4


def test_fixing_amount_requires_recheck_before_commit(temp_db, queue_service, batch):
    broken = row_ids(batch)[-1]

    txn = queue_service.edit_transaction(batch.batch_id, broken, amount=Decimal("-12.00"))

    assert txn.errors == []
    assert txn.transaction_type == TransactionType.EXPENSE
    assert temp_db.get_batch(batch.batch_id, fresh=True).duplicate_check_pending
    queue_service.include(batch.batch_id, [broken])
    with pytest.raises(ConflictError, match="re-check"):
        queue_service.commit(batch.batch_id)

    rechecked = queue_service.recheck_duplicates(batch.batch_id)
    assert not rechecked.duplicate_check_pending

    result = queue_service.commit(batch.batch_id)
    assert result.committed == 1
    assert result.skipped == 4
    [committed] = temp_db.list_transactions()
    assert committed.amount == Decimal("-12.00")
    assert committed.description == "MYSTERY CHARGE"


def test_edit_description_rederives_merchant(queue_service, batch):
    starbucks = row_ids(batch)[0]
    before = batch.transactions[0].content_hash

    txn = queue_service.edit_transaction(batch.batch_id, starbucks, description="  SQ *BLUE   BOTTLE ")

    assert txn.description == "SQ *BLUE BOTTLE"
    assert txn.merchant == "BLUE BOTTLE"
    assert txn.content_hash != before


def test_edit_date_clears_date_error(pipeline, queue_service, sample_account):
    rows = CHASE_ROWS + [["13/45/2024", "LATE FEE", "-25.00"]]
    batch = pipeline.start(rows, "chase.csv", sample_account.id, manual_mapping=MAPPING).batch
    late_fee = batch.transactions[-1]
    assert late_fee.errors[0].startswith("date:")

    txn = queue_service.edit_transaction(batch.batch_id, late_fee.id, date=date(2024, 1, 20))
    assert txn.errors == []
    assert txn.date == date(2024, 1, 20)


def test_edit_splits(queue_service, batch, sample_categories):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    groceries = sample_categories["Food & Dining > Groceries"]
    starbucks = row_ids(batch)[0]

    txn = queue_service.edit_transaction(
        batch.batch_id, starbucks, splits=[CategorySplit(category_id=coffee, amount=Decimal("-5.75"))]
    )
    assert txn.status == TransactionStatus.PENDING

    # a single split follows the new amount
    txn = queue_service.edit_transaction(batch.batch_id, starbucks, amount=Decimal("-6.00"))
    assert txn.splits == [CategorySplit(category_id=coffee, amount=Decimal("-6.00"))]

    txn = queue_service.edit_transaction(
        batch.batch_id,
        starbucks,
        splits=[
            CategorySplit(category_id=coffee, amount=Decimal("-4.00")),
            CategorySplit(category_id=groceries, amount=Decimal("-2.00")),
        ],
    )
    assert len(txn.splits) == 2

    with pytest.raises(ValidationError, match="split"):
        queue_service.edit_transaction(batch.batch_id, starbucks, amount=Decimal("-7.00"))


def test_edit_splits_must_sum_to_amount(queue_service, batch, sample_categories):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    starbucks = row_ids(batch)[0]

    with pytest.raises(ValidationError, match="total"):
        queue_service.edit_transaction(
            batch.batch_id, starbucks, splits=[CategorySplit(category_id=coffee, amount=Decimal("-5.00"))]
        )
    with pytest.raises(NotFoundError):
        queue_service.edit_transaction(
            batch.batch_id, starbucks, splits=[CategorySplit(category_id=99999, amount=Decimal("-5.75"))]
        )


def test_recheck_finds_newly_committed_history(temp_db, queue_service, batch):
    commit_history(temp_db, batch.account_id, [(date(2024, 1, 15), "STARBUCKS STORE 1234", Decimal("-5.75"), None)])

    rechecked = queue_service.recheck_duplicates(batch.batch_id)

    assert rechecked.transactions[0].duplicate_type == DuplicateType.DATABASE
    assert rechecked.transactions[1].duplicate_type == DuplicateType.NONE


def test_failed_recheck_keeps_batch_pending(temp_db, batch, sleeps):
    queue = ImportQueueService(temp_db, duplicate_lookup=FailingLookup(), sleep=sleeps.append, guard=BatchRunGuard())

    with pytest.raises(StepUnavailableError):
        queue.recheck_duplicates(batch.batch_id)

    assert temp_db.get_batch(batch.batch_id, fresh=True).duplicate_check_pending


def test_categorize(temp_db, batch, sample_categories, sleeps):
    groceries = sample_categories["Food & Dining > Groceries"]
    suggester = StaticSuggester({"WHOLE FOODS MARKET": groceries})
    queue = ImportQueueService(temp_db, suggester=suggester, sleep=sleeps.append, guard=BatchRunGuard())

    assert queue.categorize(batch.batch_id) == 1

    stored = temp_db.get_batch(batch.batch_id, fresh=True)
    whole_foods = stored.transactions[2]
    assert whole_foods.splits == [CategorySplit(category_id=groceries, amount=Decimal("-84.12"))]
    assert whole_foods.status == TransactionStatus.PENDING


def test_failed_categorize_marks_batch(temp_db, batch, sleeps):
    queue = ImportQueueService(temp_db, suggester=FailingSuggester(), sleep=sleeps.append, guard=BatchRunGuard())

    with pytest.raises(StepUnavailableError):
        queue.categorize(batch.batch_id)

    stored = temp_db.get_batch(batch.batch_id, fresh=True)
    assert stored.categorization_pending
    assert all(not t.splits for t in stored.transactions)


def test_runs_on_one_batch_are_serialized(queue_service, batch):
    with queue_service.guard.hold(batch.batch_id, "duplicate check"):
        with pytest.raises(ConflictError, match="already in progress"):
            queue_service.categorize(batch.batch_id)
        with pytest.raises(ConflictError):
            queue_service.recheck_duplicates(batch.batch_id)

    queue_service.recheck_duplicates(batch.batch_id)


def test_commit_waits_for_running_duplicate_check(temp_db, queue_service, batch):
    with queue_service.guard.hold(batch.batch_id, "duplicate check"):
        with pytest.raises(ConflictError, match="already in progress"):
            queue_service.commit(batch.batch_id)
    assert temp_db.get_batch(batch.batch_id, fresh=True) is not None

    queue_service.commit(batch.batch_id)
    assert temp_db.get_batch(batch.batch_id, fresh=True) is None

def test_remap_reparses_under_same_batch(temp_db, queue_service, batch):
    queue_service.include(batch.batch_id, row_ids(batch)[:1])
    flipped = ColumnMapping(date_column=0, description_column=1, amount_column=2, date_format="MM/DD/YYYY")

    remapped = queue_service.remap(batch.batch_id, flipped, template_name="Flipped", save_template=True)

    assert remapped.batch_id == batch.batch_id
    assert [t.amount for t in remapped.transactions[:4]] == [
        Decimal("5.75"),
        Decimal("-2500.00"),
        Decimal("84.12"),
        Decimal("40.00"),
    ]
    # review state of the old rows is gone
    assert not any(t.user_reviewed for t in remapped.transactions)
    assert remapped.mapping_name == "Flipped"
    assert temp_db.lookup_template(batch.fingerprint).name == "Flipped"
    assert temp_db.get_batch(batch.batch_id, fresh=True).mapping == flipped


def test_remap_rejects_out_of_range_mapping(queue_service, batch):
    with pytest.raises(ValidationError):
        queue_service.remap(batch.batch_id, ColumnMapping(date_column=0, description_column=1, amount_column=9))


def test_commit_writes_reviewed_rows(temp_db, queue_service, batch, sample_categories):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    starbucks, payroll = row_ids(batch)[:2]
    queue_service.edit_transaction(
        batch.batch_id, starbucks, splits=[CategorySplit(category_id=coffee, amount=Decimal("-5.75"))]
    )
    queue_service.include(batch.batch_id, [payroll])

    result = queue_service.commit(batch.batch_id)

    assert result.committed == 2
    assert result.skipped == 3
    assert temp_db.get_batch(batch.batch_id) is None
    committed = {t.description: t for t in temp_db.list_transactions()}
    assert committed["STARBUCKS STORE 1234"].category_id == coffee
    assert committed["PAYROLL DEPOSIT"].category_id is None
    assert committed["PAYROLL DEPOSIT"].amount == Decimal("2500.00")


def test_commit_included_duplicate(temp_db, pipeline, queue_service, sample_account):
    batch = pipeline.start(
        CHASE_ROWS + [CHASE_ROWS[3]], "chase.csv", sample_account.id, manual_mapping=MAPPING
    ).batch
    duplicate = batch.transactions[-1]

    queue_service.include(batch.batch_id, [duplicate.id])
    result = queue_service.commit(batch.batch_id)

    assert result.committed == 1
    assert len(temp_db.list_transactions()) == 1


def test_delete(temp_db, queue_service, batch):
    queue_service.delete(batch.batch_id)
    assert temp_db.get_batch(batch.batch_id) is None
    assert temp_db.list_transactions() == []
    with pytest.raises(NotFoundError):
        queue_service.delete(batch.batch_id)
