"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Iterable
from datetime import date, datetime

# Import entities directly to avoid circular import through domain/__init__.py
from bankmap.domain.entities import (
    Account,
    Category,
    ColumnMapping,
    MappingTemplate,
    ParsedTransaction,
    QueuedImportBatch,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for bankmap."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(self, name: str, bank_name: str) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path (e.g., 'Food & Dining > Groceries')."""
        pass

    @abstractmethod
    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally filtered by parent."""
        pass

    @abstractmethod
    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy.

        Returns a list of dictionaries with category data and nested 'children' lists.
        """
        pass

    # Mapping template operations
    @abstractmethod
    def lookup_template(self, fingerprint: str) -> Optional[MappingTemplate]:
        """Get the mapping template stored for a layout fingerprint."""
        pass

    @abstractmethod
    def save_template(self, fingerprint: str, name: str, column_count: int, mapping: ColumnMapping) -> int:
        """Store a mapping template, replacing any template with the same fingerprint.

        Returns template ID.
        """
        pass

    @abstractmethod
    def get_template(self, template_id: int) -> Optional[MappingTemplate]:
        """Get mapping template by ID."""
        pass

    @abstractmethod
    def list_templates(self) -> list[MappingTemplate]:
        """List all mapping templates."""
        pass

    @abstractmethod
    def delete_template(self, template_id: int) -> None:
        """Delete a mapping template."""
        pass

    @abstractmethod
    def record_template_usage(self, template_id: int, used_at: datetime) -> None:
        """Increment a template's usage count and set its last-used time."""
        pass

    # Import batch operations
    @abstractmethod
    def save_batch(self, batch: QueuedImportBatch) -> None:
        """Insert or update a batch and its staged rows.

        Staged rows without an ID are inserted and get their ID assigned in
        place; stored rows missing from the batch are removed.
        """
        pass

    @abstractmethod
    def get_batch(self, batch_id: str, fresh: bool = False) -> Optional[QueuedImportBatch]:
        """Get a staged batch by ID.

        Args:
            batch_id: Batch ID
            fresh: Discard cached state and read straight from storage
        """
        pass

    @abstractmethod
    def list_batches(self, account_id: Optional[int] = None) -> list[QueuedImportBatch]:
        """List staged batches, newest first."""
        pass

    @abstractmethod
    def delete_batch(self, batch_id: str) -> None:
        """Delete a batch and its staged rows."""
        pass

    @abstractmethod
    def commit_batch(self, batch_id: str, transactions: list[ParsedTransaction]) -> list[int]:
        """Write transactions and discard the batch in one database transaction.

        Returns the committed transaction IDs.
        """
        pass

    # Committed transaction operations
    @abstractmethod
    def find_existing_hashes(self, account_id: int, hashes: Iterable[str]) -> set[str]:
        """Return the hashes already committed for an account."""
        pass

    @abstractmethod
    def get_merchant_category_counts(self, merchants: Iterable[str]) -> dict[str, dict[int, int]]:
        """Count committed splits per category for each merchant (case-insensitive).

        Returns a mapping of lowercased merchant to {category_id: count}.
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_id: Optional[int] = None,
    ) -> list[Transaction]:
        """List committed transactions with optional filters.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            account_id: Optional account ID filter
        """
        pass
