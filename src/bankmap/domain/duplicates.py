"""Duplicate detection for staged transactions."""

import hashlib
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from bankmap.domain.entities import DuplicateType, ParsedTransaction, TransactionStatus
from bankmap.domain.errors import StepUnavailableError

if TYPE_CHECKING:
    from bankmap.database.base import Database

logger = logging.getLogger(__name__)

DUPLICATE_CHECK_STEP = "Duplicate check"


def normalize_description(description: str) -> str:
    return " ".join(description.lower().split())


def compute_content_hash(txn_date: Optional[date], description: str, amount: Optional[Decimal]) -> str:
    """Deterministic hash of a transaction's date, normalized description and amount."""
    date_part = txn_date.isoformat() if txn_date is not None else ""
    amount_part = f"{amount:.2f}" if amount is not None else ""
    data = f"{date_part}|{normalize_description(description)}|{amount_part}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TransactionSummary:
    """What the history lookup sees of each staged transaction."""

    hash: str
    date: Optional[date]
    description: str
    amount: Optional[Decimal]


class DuplicateLookup(Protocol):
    """Returns the subset of hashes already present in permanent storage."""

    def find_duplicates(self, account_id: int, transactions: Sequence[TransactionSummary]) -> set[str]:
        ...


class DatabaseDuplicateLookup:
    """History lookup against committed transactions of one account."""

    def __init__(self, db: "Database"):
        self.db = db

    def find_duplicates(self, account_id: int, transactions: Sequence[TransactionSummary]) -> set[str]:
        hashes = {t.hash for t in transactions}
        if not hashes:
            return set()
        return self.db.find_existing_hashes(account_id, hashes)


def default_status(txn: ParsedTransaction) -> TransactionStatus:
    """Status a row gets when nobody has reviewed it.

    Duplicates, uncategorized rows and rows with malformed cells are
    excluded until a user includes them.
    """
    if txn.is_duplicate or not txn.is_categorized or txn.errors:
        return TransactionStatus.EXCLUDED
    return TransactionStatus.PENDING


def apply_default_statuses(transactions: Sequence[ParsedTransaction]) -> None:
    for txn in transactions:
        if not txn.user_reviewed:
            txn.status = default_status(txn)


class DuplicateDetector:
    """Marks within-file and already-imported duplicates."""

    def __init__(self, lookup: Optional[DuplicateLookup] = None):
        """Initialize duplicate detector.

        Args:
            lookup: History lookup; without one only the within-file pass runs
        """
        self.lookup = lookup

    @staticmethod
    def assign_hashes(transactions: Sequence[ParsedTransaction]) -> None:
        for txn in transactions:
            txn.content_hash = compute_content_hash(txn.date, txn.description, txn.amount)

    @staticmethod
    def mark_within_file(transactions: Sequence[ParsedTransaction], keep_existing: bool = False) -> int:
        """Flag every repeat of an earlier hash in file order.

        Args:
            transactions: Rows in file order
            keep_existing: Only add marks; existing marks (database ones
                included) are left as they are

        Returns:
            Number of within-file duplicates
        """
        seen: set[str] = set()
        count = 0
        for txn in transactions:
            if txn.content_hash in seen:
                count += 1
                if keep_existing and txn.duplicate_type == DuplicateType.DATABASE:
                    continue
                txn.is_duplicate = True
                txn.duplicate_type = DuplicateType.WITHIN_FILE
            else:
                seen.add(txn.content_hash)
                if not keep_existing:
                    txn.is_duplicate = False
                    txn.duplicate_type = DuplicateType.NONE
        return count

    @staticmethod
    def mark_database(transactions: Sequence[ParsedTransaction], existing: set[str]) -> int:
        """Flag rows whose hash is already stored. Overrides within-file marks."""
        count = 0
        for txn in transactions:
            if txn.content_hash in existing:
                txn.is_duplicate = True
                txn.duplicate_type = DuplicateType.DATABASE
                count += 1
        return count

    def find_existing(self, account_id: int, transactions: Sequence[ParsedTransaction]) -> set[str]:
        """Ask the history lookup which hashes are already stored.

        Raises:
            StepUnavailableError: If the lookup fails
        """
        if self.lookup is None:
            return set()
        summaries = [
            TransactionSummary(hash=t.content_hash, date=t.date, description=t.description, amount=t.amount)
            for t in transactions
        ]
        try:
            return self.lookup.find_duplicates(account_id, summaries)
        except Exception as e:
            raise StepUnavailableError(DUPLICATE_CHECK_STEP, str(e)) from e

    def detect(self, account_id: int, transactions: Sequence[ParsedTransaction]) -> None:
        """Recompute hashes and duplicate flags from current row state.

        Marks are only cleared once the history lookup has answered. When the
        lookup fails, repeats within the rows are still flagged, and the
        previous marks and statuses are left in place.

        Args:
            account_id: Account the rows will be committed to
            transactions: Rows to check, in file order

        Raises:
            StepUnavailableError: If the history lookup fails
        """
        self.assign_hashes(transactions)
        try:
            existing = self.find_existing(account_id, transactions)
        except StepUnavailableError:
            self.mark_within_file(transactions, keep_existing=True)
            raise

        within_file = self.mark_within_file(transactions)
        database = self.mark_database(transactions, existing)
        apply_default_statuses(transactions)
        logger.info(
            "Duplicate check: %d within file, %d already imported, %d rows",
            within_file,
            database,
            len(transactions),
        )
