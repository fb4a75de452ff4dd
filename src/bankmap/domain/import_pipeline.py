"""Import pipeline: from raw rows to a staged, reviewable batch.

States::

    ANALYZING -> AUTO_ACCEPTED | AWAITING_MANUAL_MAPPING
              -> PARSED -> DEDUPLICATED
              -> CATEGORIZATION_PENDING | CATEGORIZATION_SKIPPED
              -> STAGED -> COMMITTED | DELETED

A saved template for the layout fingerprint short-circuits analysis. A
layout the analyzer cannot confidently resolve suspends in
AWAITING_MANUAL_MAPPING until ``resume_with_mapping`` supplies a confirmed
mapping, which is saved as a template before parsing continues.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from bankmap.database.base import Database
from bankmap.domain.categorization import (
    CategorySuggester,
    HistoryCategorySuggester,
    categorize_transactions,
)
from bankmap.domain.column_analysis import (
    DEFAULT_THRESHOLDS,
    AnalyzerThresholds,
    ColumnAnalyzer,
    generate_fingerprint,
)
from bankmap.domain.duplicates import (
    DatabaseDuplicateLookup,
    DuplicateDetector,
    DuplicateLookup,
    apply_default_statuses,
)
from bankmap.domain.entities import (
    ColumnMapping,
    CSVAnalysisResult,
    MappingTemplate,
    ParsedTransaction,
    QueuedImportBatch,
    SourceType,
)
from bankmap.domain.errors import (
    ConflictError,
    DomainError,
    EmptyInputError,
    NotFoundError,
    StepUnavailableError,
    account_not_found,
)
from bankmap.domain.mapping_template import MappingTemplateService, generate_mapping_name
from bankmap.domain.transaction_parser import mapping_from_analysis, parse_rows, validate_mapping

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    ANALYZING = "analyzing"
    AUTO_ACCEPTED = "auto_accepted"
    AWAITING_MANUAL_MAPPING = "awaiting_manual_mapping"
    PARSED = "parsed"
    DEDUPLICATED = "deduplicated"
    CATEGORIZATION_PENDING = "categorization_pending"
    CATEGORIZATION_SKIPPED = "categorization_skipped"
    STAGED = "staged"
    COMMITTED = "committed"
    DELETED = "deleted"


@dataclass
class ImportPipelineContext:
    """Everything one import carries between pipeline stages."""

    rows: list[list[str]]
    file_name: str
    account_id: int
    source_type: SourceType = SourceType.CSV
    categorize: bool = False
    state: PipelineState = PipelineState.ANALYZING
    fingerprint: str = ""
    analysis: Optional[CSVAnalysisResult] = None
    template: Optional[MappingTemplate] = None
    suggested_mapping: Optional[ColumnMapping] = None
    mapping: Optional[ColumnMapping] = None
    mapping_name: str = ""
    template_id: Optional[int] = None
    transactions: list[ParsedTransaction] = field(default_factory=list)
    batch: Optional[QueuedImportBatch] = None
    warnings: list[str] = field(default_factory=list)
    history: list[PipelineState] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def awaiting_mapping(self) -> bool:
        return self.state == PipelineState.AWAITING_MANUAL_MAPPING

    def transition(self, state: PipelineState) -> None:
        logger.info("Import of %s: %s -> %s", self.file_name, self.state.value, state.value)
        self.history.append(self.state)
        self.state = state


def new_batch_id() -> str:
    return uuid.uuid4().hex[:12]


class ImportPipeline:
    """Runs a file through analysis, parsing, duplicate detection and staging."""

    def __init__(
        self,
        db: Database,
        thresholds: AnalyzerThresholds = DEFAULT_THRESHOLDS,
        suggester: Optional[CategorySuggester] = None,
        duplicate_lookup: Optional[DuplicateLookup] = None,
        batch_id_factory: Callable[[], str] = new_batch_id,
    ):
        """Initialize import pipeline.

        Args:
            db: Database instance
            thresholds: Analyzer thresholds, including the auto-accept cut-off
            suggester: Category suggestion service (defaults to merchant history)
            duplicate_lookup: History lookup (defaults to committed transactions)
            batch_id_factory: Produces IDs for new batches
        """
        self.db = db
        self.analyzer = ColumnAnalyzer(thresholds)
        self.templates = MappingTemplateService(db)
        self.suggester = suggester if suggester is not None else HistoryCategorySuggester(db)
        self.detector = DuplicateDetector(
            duplicate_lookup if duplicate_lookup is not None else DatabaseDuplicateLookup(db)
        )
        self.batch_id_factory = batch_id_factory

    def start(
        self,
        rows: Sequence[Sequence[str]],
        file_name: str,
        account_id: int,
        source_type: SourceType = SourceType.CSV,
        categorize: bool = False,
        manual_mapping: Optional[ColumnMapping] = None,
        template_name: Optional[str] = None,
    ) -> ImportPipelineContext:
        """Begin an import.

        Args:
            rows: Raw rows of the file
            file_name: Source file name, used for mapping names
            account_id: Account the batch will be committed to
            source_type: Where the rows came from
            categorize: Request category suggestions while staging
            manual_mapping: Mapping confirmed up front; skips auto-accept and templates
            template_name: Name for the template saved from ``manual_mapping``

        Returns:
            Context in STAGED state, or AWAITING_MANUAL_MAPPING when the layout
            needs a human-confirmed mapping

        Raises:
            EmptyInputError: If the file has no rows
            NotFoundError: If the account does not exist
            ValidationError: If ``manual_mapping`` is incomplete
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))

        table = [[str(cell) for cell in row] for row in rows]
        if not table or not table[0]:
            raise EmptyInputError("Cannot import an empty file")

        context = ImportPipelineContext(
            rows=table,
            file_name=file_name,
            account_id=account_id,
            source_type=source_type,
            categorize=categorize,
            fingerprint=generate_fingerprint(table[0]),
        )

        if manual_mapping is None:
            template = self._lookup_template(context)
            if template is not None:
                self._use_template(context, template)
                return self._continue(context)

        context.analysis = self.analyzer.analyze(table)
        context.suggested_mapping = mapping_from_analysis(context.analysis, table)

        if manual_mapping is not None:
            context.transition(PipelineState.AWAITING_MANUAL_MAPPING)
            return self.resume_with_mapping(context, manual_mapping, template_name=template_name)

        if self.analyzer.is_auto_acceptable(context.analysis):
            context.mapping = context.suggested_mapping
            context.mapping_name = generate_mapping_name(context.analysis, file_name)
            context.transition(PipelineState.AUTO_ACCEPTED)
            return self._continue(context)

        context.transition(PipelineState.AWAITING_MANUAL_MAPPING)
        return context

    def resume_with_mapping(
        self,
        context: ImportPipelineContext,
        mapping: ColumnMapping,
        template_name: Optional[str] = None,
        save_template: bool = True,
    ) -> ImportPipelineContext:
        """Continue a suspended import with a human-confirmed mapping.

        Args:
            context: Context returned by ``start`` in AWAITING_MANUAL_MAPPING
            mapping: Confirmed mapping
            template_name: Template name; generated from the layout when omitted
            save_template: Store the mapping under the layout fingerprint

        Returns:
            Context in STAGED state

        Raises:
            ConflictError: If the context is not waiting for a mapping
            ValidationError: If the mapping is incomplete or out of range
        """
        if not context.awaiting_mapping:
            raise ConflictError(f"Import of {context.file_name} is not waiting for a mapping")

        validate_mapping(mapping, context.column_count)
        name = (template_name or "").strip()
        if not name:
            name = generate_mapping_name(context.analysis, context.file_name) if context.analysis else ""
        context.mapping = mapping
        context.mapping_name = name or context.file_name

        if save_template:
            context.template_id = self._save_template(context)
        return self._continue(context)

    def _lookup_template(self, context: ImportPipelineContext) -> Optional[MappingTemplate]:
        try:
            template = self.templates.lookup(context.fingerprint)
        except Exception as e:
            logger.warning("Template lookup failed, analyzing instead", exc_info=True)
            context.warnings.append(f"Template lookup failed: {e}")
            return None
        if template is not None and template.column_count != context.column_count:
            logger.warning(
                "Template %s expects %d columns, file has %d; analyzing instead",
                template.id,
                template.column_count,
                context.column_count,
            )
            return None
        return template

    def _use_template(self, context: ImportPipelineContext, template: MappingTemplate) -> None:
        context.template = template
        context.template_id = template.id
        context.mapping = template.mapping
        context.mapping_name = template.name
        try:
            self.templates.record_usage(template.id)
        except Exception as e:
            logger.warning("Could not record usage of template %s", template.id, exc_info=True)
            context.warnings.append(f"Template usage not recorded: {e}")
        context.transition(PipelineState.AUTO_ACCEPTED)

    def _save_template(self, context: ImportPipelineContext) -> Optional[int]:
        try:
            return self.templates.save(
                context.fingerprint, context.mapping, context.mapping_name, context.column_count
            )
        except DomainError:
            raise
        except Exception as e:
            logger.warning("Template save failed; the layout will be analyzed again next time", exc_info=True)
            context.warnings.append(f"Template not saved: {e}")
            return None

    def _continue(self, context: ImportPipelineContext) -> ImportPipelineContext:
        context.transactions = parse_rows(context.rows, context.mapping)
        context.transition(PipelineState.PARSED)

        batch = QueuedImportBatch(
            batch_id=self.batch_id_factory(),
            file_name=context.file_name,
            source_type=context.source_type,
            account_id=context.account_id,
            raw_rows=context.rows,
            mapping=context.mapping,
            fingerprint=context.fingerprint,
            mapping_name=context.mapping_name,
            template_id=context.template_id,
            transactions=context.transactions,
        )
        context.batch = batch

        try:
            self.detector.detect(context.account_id, batch.transactions)
        except StepUnavailableError as e:
            logger.warning("Duplicate check deferred for batch %s: %s", batch.batch_id, e.reason)
            context.warnings.append(str(e))
            batch.duplicate_check_pending = True
            apply_default_statuses(batch.transactions)
        context.transition(PipelineState.DEDUPLICATED)

        if context.categorize:
            context.transition(PipelineState.CATEGORIZATION_PENDING)
            try:
                categorize_transactions(self.suggester, batch.transactions)
            except StepUnavailableError as e:
                logger.warning("Categorization deferred for batch %s: %s", batch.batch_id, e.reason)
                context.warnings.append(str(e))
                batch.categorization_pending = True
        else:
            context.transition(PipelineState.CATEGORIZATION_SKIPPED)

        self.db.save_batch(batch)
        context.transition(PipelineState.STAGED)
        return context
