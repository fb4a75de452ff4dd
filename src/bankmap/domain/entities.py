"""Domain model entities for bankmap.

These are pure data classes representing business concepts, independent of
database schema. Analysis results are frozen; staged import rows and batches
are mutable because duplicate detection, categorization and review edit them
in place.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class FieldType(str, Enum):
    """Closed set of roles a source column can play."""

    DATE = "date"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    DEBIT = "debit"
    CREDIT = "credit"
    BALANCE = "balance"
    UNKNOWN = "unknown"


class DetectionMethod(str, Enum):
    """Which evidence decided a column's field type."""

    HEADER = "header"
    CONTENT = "content"
    HYBRID = "hybrid"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class DuplicateType(str, Enum):
    NONE = "none"
    WITHIN_FILE = "within_file"
    DATABASE = "database"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXCLUDED = "excluded"


class AmountSignConvention(str, Enum):
    """How raw amount cells map onto signed amounts (expenses negative)."""

    POSITIVE_IS_EXPENSE = "positive_is_expense"
    POSITIVE_IS_INCOME = "positive_is_income"
    SEPARATE_DEBIT_CREDIT = "separate_debit_credit"
    SEPARATE_COLUMN = "separate_column"


class SourceType(str, Enum):
    CSV = "csv"
    PDF = "pdf"
    MANUAL = "manual"


@dataclass(frozen=True)
class Account:
    """Bank account domain entity."""

    id: int
    name: str
    bank_name: str
    created_at: datetime


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class ColumnAnalysis:
    """Classification of a single source column."""

    column_index: int
    header_name: str
    field_type: FieldType
    confidence: float
    sample_values: tuple[str, ...]
    detection_method: DetectionMethod


@dataclass(frozen=True)
class CSVAnalysisResult:
    """Column analysis for a whole file.

    Each best-match index, when set, points into ``columns`` at a column whose
    ``field_type`` is the matching field.
    """

    columns: tuple[ColumnAnalysis, ...]
    has_headers: bool
    date_column: Optional[int]
    amount_column: Optional[int]
    description_column: Optional[int]
    debit_column: Optional[int]
    credit_column: Optional[int]
    date_format: Optional[str]
    fingerprint: str

    def best_column(self, field_type: FieldType) -> Optional[int]:
        """Return the best-match column index for an assignable field type."""
        best = {
            FieldType.DATE: self.date_column,
            FieldType.AMOUNT: self.amount_column,
            FieldType.DESCRIPTION: self.description_column,
            FieldType.DEBIT: self.debit_column,
            FieldType.CREDIT: self.credit_column,
            FieldType.BALANCE: None,
            FieldType.UNKNOWN: None,
        }
        return best[field_type]


@dataclass(frozen=True)
class ColumnMapping:
    """Resolved assignment of source columns to transaction fields."""

    date_column: Optional[int]
    description_column: Optional[int]
    amount_column: Optional[int] = None
    debit_column: Optional[int] = None
    credit_column: Optional[int] = None
    transaction_type_column: Optional[int] = None
    amount_sign_convention: AmountSignConvention = AmountSignConvention.POSITIVE_IS_EXPENSE
    date_format: Optional[str] = None
    has_headers: bool = True


@dataclass(frozen=True)
class MappingTemplate:
    """Stored, human-confirmed mapping keyed by a layout fingerprint."""

    id: int
    fingerprint: str
    name: str
    column_count: int
    mapping: ColumnMapping
    usage_count: int
    last_used: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class CategorySplit:
    """Portion of a transaction amount assigned to one category."""

    category_id: int
    amount: Decimal


@dataclass
class ParsedTransaction:
    """One source row after parsing, staged for review."""

    row_number: int
    date: Optional[date]
    description: str
    amount: Optional[Decimal]
    transaction_type: TransactionType
    merchant: str
    original_row: list[str] = field(default_factory=list)
    content_hash: str = ""
    is_duplicate: bool = False
    duplicate_type: DuplicateType = DuplicateType.NONE
    status: TransactionStatus = TransactionStatus.PENDING
    splits: list[CategorySplit] = field(default_factory=list)
    suggested_category_id: Optional[int] = None
    suggestion_confidence: Optional[float] = None
    errors: list[str] = field(default_factory=list)
    user_reviewed: bool = False
    id: Optional[int] = None

    @property
    def is_categorized(self) -> bool:
        return bool(self.splits)

    @property
    def is_committable(self) -> bool:
        """Whether commit writes this row.

        An explicit include (CONFIRMED) overrides duplicate exclusion.
        """
        if self.status == TransactionStatus.CONFIRMED:
            return True
        return self.status == TransactionStatus.PENDING and not self.is_duplicate


@dataclass
class QueuedImportBatch:
    """Transactions staged from one file, reviewable until commit or delete."""

    batch_id: str
    file_name: str
    source_type: SourceType
    account_id: int
    raw_rows: list[list[str]]
    mapping: ColumnMapping
    fingerprint: str
    mapping_name: str
    template_id: Optional[int] = None
    transactions: list[ParsedTransaction] = field(default_factory=list)
    duplicate_check_pending: bool = False
    categorization_pending: bool = False
    created_at: Optional[datetime] = None

    @property
    def within_file_duplicates(self) -> int:
        return sum(1 for t in self.transactions if t.duplicate_type == DuplicateType.WITHIN_FILE)

    @property
    def database_duplicates(self) -> int:
        return sum(1 for t in self.transactions if t.duplicate_type == DuplicateType.DATABASE)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for t in self.transactions if t.is_duplicate)

    def get_transaction(self, transaction_id: int) -> Optional[ParsedTransaction]:
        for txn in self.transactions:
            if txn.id == transaction_id:
                return txn
        return None


@dataclass(frozen=True)
class Transaction:
    """Committed transaction domain entity."""

    id: int
    account_id: int
    date: date
    amount: Decimal
    description: str
    merchant: Optional[str]
    category_id: Optional[int]
    content_hash: str
    batch_id: Optional[str]
    imported_at: datetime
    splits: tuple[CategorySplit, ...] = ()
