"""Import queue domain service: review, re-check, re-map and commit staged batches."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterator, Optional, Sequence

from bankmap.database.base import Database
from bankmap.domain.categorization import (
    CategorySuggester,
    HistoryCategorySuggester,
    categorize_transactions,
)
from bankmap.domain.duplicates import (
    DatabaseDuplicateLookup,
    DuplicateDetector,
    DuplicateLookup,
    apply_default_statuses,
    compute_content_hash,
)
from bankmap.domain.entities import (
    CategorySplit,
    ColumnMapping,
    ParsedTransaction,
    QueuedImportBatch,
    TransactionStatus,
)
from bankmap.domain.errors import (
    ConflictError,
    NotFoundError,
    StepUnavailableError,
    ValidationError,
    batch_not_found,
    batch_operation_in_flight,
    category_not_found,
    staged_transaction_not_found,
)
from bankmap.domain.mapping_template import MappingTemplateService
from bankmap.domain.transaction_parser import (
    AMOUNT_ERROR_PREFIX,
    DATE_ERROR_PREFIX,
    extract_merchant,
    parse_rows,
    transaction_type_for,
    validate_mapping,
)
from bankmap.utils.retry import NotYetAvailable, linear_backoff, retry_until_ready

logger = logging.getLogger(__name__)


class BatchRunGuard:
    """Allows one duplicate-check or categorization run per batch at a time."""

    def __init__(self):
        self._lock = threading.Lock()
        self._running: set[str] = set()

    @contextmanager
    def hold(self, batch_id: str, operation: str) -> Iterator[None]:
        with self._lock:
            if batch_id in self._running:
                raise ConflictError(batch_operation_in_flight(batch_id, operation))
            self._running.add(batch_id)
        try:
            yield
        finally:
            with self._lock:
                self._running.discard(batch_id)


_default_guard = BatchRunGuard()


@dataclass(frozen=True)
class CommitResult:
    batch_id: str
    transaction_ids: tuple[int, ...]
    skipped: int

    @property
    def committed(self) -> int:
        return len(self.transaction_ids)


class ImportQueueService:
    """Service for reviewing staged import batches until commit or delete."""

    def __init__(
        self,
        db: Database,
        suggester: Optional[CategorySuggester] = None,
        duplicate_lookup: Optional[DuplicateLookup] = None,
        retry_attempts: int = 3,
        retry_backoff: Callable[[int], float] = linear_backoff(0.2),
        sleep: Callable[[float], None] = time.sleep,
        guard: BatchRunGuard = _default_guard,
    ):
        """Initialize import queue service.

        Args:
            db: Database instance
            suggester: Category suggestion service (defaults to merchant history)
            duplicate_lookup: History lookup (defaults to committed transactions)
            retry_attempts: Loads attempted before falling back to a direct read
            retry_backoff: Delay before each retry, by attempt number
            sleep: Sleep function, replaceable in tests
            guard: Serializes duplicate-check and categorization runs per batch
        """
        self.db = db
        self.suggester = suggester if suggester is not None else HistoryCategorySuggester(db)
        self.detector = DuplicateDetector(
            duplicate_lookup if duplicate_lookup is not None else DatabaseDuplicateLookup(db)
        )
        self.templates = MappingTemplateService(db)
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.sleep = sleep
        self.guard = guard

    def list_batches(self, account_id: Optional[int] = None) -> list[QueuedImportBatch]:
        """List staged batches, newest first."""
        return self.db.list_batches(account_id=account_id)

    def load_batch(self, batch_id: str) -> QueuedImportBatch:
        """Load a staged batch, retrying while a just-written batch becomes visible.

        Args:
            batch_id: Batch ID

        Returns:
            The batch

        Raises:
            NotFoundError: If the batch is still missing after a direct read
        """
        result = retry_until_ready(
            lambda: self.db.get_batch(batch_id),
            lambda batch: batch is not None,
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            sleep=self.sleep,
        )
        if isinstance(result, NotYetAvailable):
            logger.info("Batch %s not visible after %d attempts, reading directly", batch_id, result.attempts)
            result = self.db.get_batch(batch_id, fresh=True)
        if result is None:
            raise NotFoundError(batch_not_found(batch_id))
        return result

    def recheck_duplicates(self, batch_id: str) -> QueuedImportBatch:
        """Recompute hashes and duplicate marks from the batch's current rows.

        Raises:
            ConflictError: If a run is already in flight for the batch
            StepUnavailableError: If the history lookup fails; the batch keeps
                its previous marks and stays flagged for a re-check
        """
        with self.guard.hold(batch_id, "duplicate check"):
            batch = self.load_batch(batch_id)
            try:
                self.detector.detect(batch.account_id, batch.transactions)
            except StepUnavailableError:
                batch.duplicate_check_pending = True
                self.db.save_batch(batch)
                raise
            batch.duplicate_check_pending = False
            self.db.save_batch(batch)
            return batch

    def categorize(self, batch_id: str) -> int:
        """Request category suggestions for the batch's uncategorized rows.

        Returns:
            Number of rows that received a category

        Raises:
            ConflictError: If a run is already in flight for the batch
            StepUnavailableError: If the suggester fails; rows are unchanged
        """
        with self.guard.hold(batch_id, "categorization"):
            batch = self.load_batch(batch_id)
            try:
                categorized = categorize_transactions(self.suggester, batch.transactions)
            except StepUnavailableError:
                batch.categorization_pending = True
                self.db.save_batch(batch)
                raise
            batch.categorization_pending = False
            self.db.save_batch(batch)
            return categorized

    def _get_row(self, batch: QueuedImportBatch, transaction_id: int) -> ParsedTransaction:
        txn = batch.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(staged_transaction_not_found(transaction_id, batch.batch_id))
        return txn

    def include(self, batch_id: str, transaction_ids: Sequence[int]) -> int:
        """Mark rows to be committed, overriding duplicate exclusion.

        Raises:
            NotFoundError: If a row is not part of the batch
            ValidationError: If a row still has a malformed date or amount
        """
        batch = self.load_batch(batch_id)
        rows = [self._get_row(batch, transaction_id) for transaction_id in transaction_ids]
        for txn in rows:
            if txn.errors:
                raise ValidationError(
                    f"Transaction {txn.id} cannot be included until it is fixed: {'; '.join(txn.errors)}"
                )
        for txn in rows:
            txn.status = TransactionStatus.CONFIRMED
            txn.user_reviewed = True
        self.db.save_batch(batch)
        return len(rows)

    def include_all(self, batch_id: str, include_duplicates: bool = False) -> int:
        """Include every well-formed row, leaving duplicates out unless asked."""
        batch = self.load_batch(batch_id)
        included = 0
        for txn in batch.transactions:
            if txn.errors or (txn.is_duplicate and not include_duplicates):
                continue
            txn.status = TransactionStatus.CONFIRMED
            txn.user_reviewed = True
            included += 1
        self.db.save_batch(batch)
        return included

    def exclude(self, batch_id: str, transaction_ids: Sequence[int]) -> int:
        """Mark rows to be left out of the commit."""
        batch = self.load_batch(batch_id)
        rows = [self._get_row(batch, transaction_id) for transaction_id in transaction_ids]
        for txn in rows:
            txn.status = TransactionStatus.EXCLUDED
            txn.user_reviewed = True
        self.db.save_batch(batch)
        return len(rows)

    def edit_transaction(
        self,
        batch_id: str,
        transaction_id: int,
        date: Optional[date] = None,
        description: Optional[str] = None,
        amount: Optional[Decimal] = None,
        splits: Optional[Sequence[CategorySplit]] = None,
    ) -> ParsedTransaction:
        """Edit a staged row.

        Fixing a date or amount clears that field's error. Changing date,
        description or amount flags the batch for a duplicate re-check.

        Args:
            batch_id: Batch ID
            transaction_id: Staged row ID
            date: New date
            description: New description (merchant is re-derived)
            amount: New signed amount (expenses negative)
            splits: New category splits; must sum to the amount

        Returns:
            The edited row

        Raises:
            NotFoundError: If the row or a split category does not exist
            ValidationError: If splits do not sum to the amount
        """
        batch = self.load_batch(batch_id)
        txn = self._get_row(batch, transaction_id)

        if date is not None:
            txn.date = date
            txn.errors = [e for e in txn.errors if not e.startswith(DATE_ERROR_PREFIX)]
        if description is not None:
            txn.description = " ".join(description.split())
            txn.merchant = extract_merchant(txn.description) if txn.description else ""
        if amount is not None:
            txn.amount = amount
            txn.transaction_type = transaction_type_for(amount)
            txn.errors = [e for e in txn.errors if not e.startswith(AMOUNT_ERROR_PREFIX)]
            if splits is None and txn.splits:
                if len(txn.splits) > 1:
                    raise ValidationError("Amount changed on a split transaction; provide new splits")
                txn.splits = [CategorySplit(category_id=txn.splits[0].category_id, amount=amount)]

        if splits is not None:
            txn.splits = self._validate_splits(txn, splits)

        if date is not None or description is not None or amount is not None:
            txn.content_hash = compute_content_hash(txn.date, txn.description, txn.amount)
            batch.duplicate_check_pending = True
        apply_default_statuses([txn])

        self.db.save_batch(batch)
        return txn

    def _validate_splits(self, txn: ParsedTransaction, splits: Sequence[CategorySplit]) -> list[CategorySplit]:
        if not splits:
            return []
        if txn.amount is None:
            raise ValidationError("Cannot split a transaction without a valid amount")
        for split in splits:
            if self.db.get_category(split.category_id) is None:
                raise NotFoundError(category_not_found(split.category_id))
        total = sum((split.amount for split in splits), Decimal("0"))
        if total != txn.amount:
            raise ValidationError(f"Splits total {total} but the transaction amount is {txn.amount}")
        return list(splits)

    def remap(
        self,
        batch_id: str,
        mapping: ColumnMapping,
        template_name: Optional[str] = None,
        save_template: bool = False,
    ) -> QueuedImportBatch:
        """Re-parse a batch's raw rows with a new mapping under the same batch ID.

        Review state of the old rows is discarded. Duplicate detection runs
        again on the new rows.

        Raises:
            ConflictError: If a run is already in flight for the batch
            ValidationError: If the mapping is incomplete or out of range
        """
        with self.guard.hold(batch_id, "remap"):
            batch = self.load_batch(batch_id)
            column_count = len(batch.raw_rows[0]) if batch.raw_rows else 0
            validate_mapping(mapping, column_count)

            batch.transactions = parse_rows(batch.raw_rows, mapping)
            batch.mapping = mapping
            if template_name:
                batch.mapping_name = template_name.strip()
            if save_template:
                batch.template_id = self.templates.save(
                    batch.fingerprint, mapping, batch.mapping_name, column_count
                )

            try:
                self.detector.detect(batch.account_id, batch.transactions)
                batch.duplicate_check_pending = False
            except StepUnavailableError as e:
                logger.warning("Duplicate check deferred after remap of %s: %s", batch_id, e.reason)
                batch.duplicate_check_pending = True
                apply_default_statuses(batch.transactions)
            batch.categorization_pending = False

            self.db.save_batch(batch)
            logger.info("Remapped batch %s: %d rows", batch_id, len(batch.transactions))
            return batch

    def commit(self, batch_id: str) -> CommitResult:
        """Write the batch's committable rows and discard the batch.

        Rows that are excluded, duplicates not explicitly included, or still
        malformed are skipped. Nothing is written if the database write fails.

        Raises:
            ConflictError: If the batch still needs a duplicate re-check, or
                another run on it is in progress
        """
        with self.guard.hold(batch_id, "commit"):
            batch = self.load_batch(batch_id)
            if batch.duplicate_check_pending:
                raise ConflictError(
                    f"Batch '{batch_id}' needs a duplicate re-check before it can be committed"
                )

            rows = [txn for txn in batch.transactions if txn.is_committable and not txn.errors]
            for txn in rows:
                if txn.splits and sum((s.amount for s in txn.splits), Decimal("0")) != txn.amount:
                    raise ValidationError(f"Splits of transaction {txn.id} do not sum to its amount")

            transaction_ids = self.db.commit_batch(batch_id, rows)
        result = CommitResult(
            batch_id=batch_id,
            transaction_ids=tuple(transaction_ids),
            skipped=len(batch.transactions) - len(rows),
        )
        logger.info("Committed batch %s: %d written, %d skipped", batch_id, result.committed, result.skipped)
        return result

    def delete(self, batch_id: str) -> None:
        """Discard a batch without writing anything."""
        self.load_batch(batch_id)
        self.db.delete_batch(batch_id)
        logger.info("Deleted batch %s", batch_id)
