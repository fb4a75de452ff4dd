"""Tests for the import pipeline."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import (
    CHASE_ROWS,
    DEBIT_CREDIT_ROWS,
    FailingLookup,
    FailingSuggester,
    StaticSuggester,
    commit_history,
)

from bankmap.domain.column_analysis import generate_fingerprint
from bankmap.domain.entities import (
    AmountSignConvention,
    ColumnMapping,
    DuplicateType,
    TransactionStatus,
)
from bankmap.domain.errors import ConflictError, EmptyInputError, NotFoundError, ValidationError
from bankmap.domain.import_pipeline import ImportPipeline, PipelineState


def test_confident_layout_is_staged_without_review(temp_db, pipeline, sample_account):
    context = pipeline.start(CHASE_ROWS, "chase_activity.csv", sample_account.id)

    assert context.state == PipelineState.STAGED
    assert context.history == [
        PipelineState.ANALYZING,
        PipelineState.AUTO_ACCEPTED,
        PipelineState.PARSED,
        PipelineState.DEDUPLICATED,
        PipelineState.CATEGORIZATION_SKIPPED,
    ]
    assert context.mapping_name == "Chase Style Data"
    assert context.template_id is None
    assert context.warnings == []

    batch = temp_db.get_batch("batch0001", fresh=True)
    assert batch.fingerprint == generate_fingerprint(CHASE_ROWS[0])
    assert [t.amount for t in batch.transactions] == [
        Decimal("-5.75"),
        Decimal("2500.00"),
        Decimal("-84.12"),
        Decimal("-40.00"),
    ]
    # nothing is categorized yet
    assert all(t.status == TransactionStatus.EXCLUDED for t in batch.transactions)


def test_uncertain_layout_waits_for_mapping(temp_db, pipeline, sample_account):
    context = pipeline.start(DEBIT_CREDIT_ROWS, "export.csv", sample_account.id)

    assert context.awaiting_mapping
    assert context.batch is None
    assert temp_db.list_batches() == []
    assert context.suggested_mapping.amount_sign_convention == AmountSignConvention.SEPARATE_DEBIT_CREDIT

    context = pipeline.resume_with_mapping(context, context.suggested_mapping)

    assert context.state == PipelineState.STAGED
    assert context.mapping_name == "Bank Statement Format (Debit/Credit)"
    template = temp_db.get_template(context.template_id)
    assert template.fingerprint == context.fingerprint
    assert template.mapping == context.suggested_mapping
    assert [t.amount for t in context.batch.transactions] == [
        Decimal("-1200.00"),
        Decimal("3000.00"),
        Decimal("-65.40"),
    ]


def test_saved_template_skips_analysis(temp_db, pipeline, sample_account):
    first = pipeline.start(DEBIT_CREDIT_ROWS, "export.csv", sample_account.id)
    first = pipeline.resume_with_mapping(first, first.suggested_mapping, template_name="Credit Union")

    second = pipeline.start(DEBIT_CREDIT_ROWS, "march.csv", sample_account.id)

    assert second.state == PipelineState.STAGED
    assert second.analysis is None
    assert second.template.id == first.template_id
    assert second.mapping_name == "Credit Union"
    assert temp_db.get_template(first.template_id).usage_count == 1


def test_template_with_other_width_is_ignored(temp_db, pipeline, template_service, sample_account):
    wide = ColumnMapping(date_column=0, description_column=1, amount_column=4)
    template_service.save(generate_fingerprint(CHASE_ROWS[0]), wide, "Wide", 5)

    context = pipeline.start(CHASE_ROWS, "chase.csv", sample_account.id)

    assert context.template is None
    assert context.analysis is not None
    assert context.mapping.amount_column == 2


def test_manual_mapping_overrides_detection(temp_db, pipeline, sample_account):
    mapping = ColumnMapping(date_column=0, description_column=1, amount_column=2, date_format="MM/DD/YYYY")
    context = pipeline.start(
        CHASE_ROWS, "chase.csv", sample_account.id, manual_mapping=mapping, template_name="  My Card  "
    )

    assert context.state == PipelineState.STAGED
    assert PipelineState.AWAITING_MANUAL_MAPPING in context.history
    assert context.mapping_name == "My Card"
    # positive means expense under this mapping
    assert context.batch.transactions[0].amount == Decimal("5.75")
    assert temp_db.get_template(context.template_id).name == "My Card"


def test_invalid_manual_mapping(pipeline, sample_account):
    with pytest.raises(ValidationError):
        pipeline.start(
            CHASE_ROWS,
            "chase.csv",
            sample_account.id,
            manual_mapping=ColumnMapping(date_column=0, description_column=1, amount_column=7),
        )


def test_resume_requires_waiting_context(pipeline, sample_account):
    context = pipeline.start(CHASE_ROWS, "chase.csv", sample_account.id)
    with pytest.raises(ConflictError):
        pipeline.resume_with_mapping(context, context.mapping)


def test_resume_without_saving_template(temp_db, pipeline, sample_account):
    context = pipeline.start(DEBIT_CREDIT_ROWS, "export.csv", sample_account.id)
    context = pipeline.resume_with_mapping(context, context.suggested_mapping, save_template=False)
    assert context.template_id is None
    assert temp_db.list_templates() == []


def test_database_and_within_file_duplicates(temp_db, pipeline, sample_account):
    commit_history(
        temp_db, sample_account.id, [(date(2024, 1, 15), "STARBUCKS STORE 1234", Decimal("-5.75"), None)]
    )
    rows = CHASE_ROWS + [CHASE_ROWS[3]]

    batch = pipeline.start(rows, "chase.csv", sample_account.id).batch

    assert [t.duplicate_type for t in batch.transactions] == [
        DuplicateType.DATABASE,
        DuplicateType.NONE,
        DuplicateType.NONE,
        DuplicateType.NONE,
        DuplicateType.WITHIN_FILE,
    ]


def test_failed_duplicate_lookup_stages_batch_for_recheck(temp_db, sample_account, batch_ids):
    lookup = FailingLookup()
    pipeline = ImportPipeline(temp_db, duplicate_lookup=lookup, batch_id_factory=batch_ids)

    context = pipeline.start(CHASE_ROWS, "chase.csv", sample_account.id)

    assert context.state == PipelineState.STAGED
    assert lookup.calls == 1
    assert any("Duplicate check unavailable" in w for w in context.warnings)
    stored = temp_db.get_batch(context.batch.batch_id, fresh=True)
    assert stored.duplicate_check_pending
    assert all(t.content_hash for t in stored.transactions)


def test_deferred_duplicate_check_still_flags_repeats_in_file(temp_db, sample_account, batch_ids):
    pipeline = ImportPipeline(temp_db, duplicate_lookup=FailingLookup(), batch_id_factory=batch_ids)

    context = pipeline.start(CHASE_ROWS + [CHASE_ROWS[3]], "chase.csv", sample_account.id)

    stored = temp_db.get_batch(context.batch.batch_id, fresh=True)
    assert stored.duplicate_check_pending
    assert [t.duplicate_type for t in stored.transactions] == [
        DuplicateType.NONE,
        DuplicateType.NONE,
        DuplicateType.NONE,
        DuplicateType.NONE,
        DuplicateType.WITHIN_FILE,
    ]
    assert stored.transactions[-1].status == TransactionStatus.EXCLUDED


def test_categorization_while_staging(temp_db, sample_account, sample_categories, batch_ids):
    coffee = sample_categories["Food & Dining > Coffee & Snacks"]
    suggester = StaticSuggester({"STARBUCKS STORE 1234": coffee})
    pipeline = ImportPipeline(temp_db, suggester=suggester, batch_id_factory=batch_ids)

    context = pipeline.start(CHASE_ROWS, "chase.csv", sample_account.id, categorize=True)

    assert PipelineState.CATEGORIZATION_PENDING in context.history
    starbucks = context.batch.transactions[0]
    assert starbucks.splits[0].category_id == coffee
    assert starbucks.status == TransactionStatus.PENDING
    assert context.batch.transactions[1].status == TransactionStatus.EXCLUDED
    assert not context.batch.categorization_pending


def test_failed_categorization_is_deferred(temp_db, sample_account, batch_ids):
    pipeline = ImportPipeline(temp_db, suggester=FailingSuggester(), batch_id_factory=batch_ids)

    context = pipeline.start(CHASE_ROWS, "chase.csv", sample_account.id, categorize=True)

    assert context.state == PipelineState.STAGED
    assert temp_db.get_batch(context.batch.batch_id, fresh=True).categorization_pending
    assert any("Categorization unavailable" in w for w in context.warnings)


@pytest.mark.parametrize("rows", [[], [[]]])
def test_empty_input(pipeline, sample_account, rows):
    with pytest.raises(EmptyInputError):
        pipeline.start(rows, "empty.csv", sample_account.id)


def test_missing_account(pipeline):
    with pytest.raises(NotFoundError):
        pipeline.start(CHASE_ROWS, "chase.csv", 999)
