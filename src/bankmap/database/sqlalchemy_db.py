"""Generic SQLAlchemy database implementation."""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Optional, Any, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from bankmap.database.base import Database
from bankmap.database.models import (
    Account,
    Category,
    ImportBatch,
    MappingTemplate,
    StagedTransaction,
    Transaction,
    TransactionSplit,
    create_session_factory,
)
from bankmap.database.mappers import (
    account_to_domain,
    apply_staged,
    batch_to_domain,
    category_to_domain,
    mapping_to_json,
    template_to_domain,
    transaction_to_domain,
)
from bankmap.domain.entities import (
    Account as DomainAccount,
    Category as DomainCategory,
    ColumnMapping,
    MappingTemplate as DomainMappingTemplate,
    ParsedTransaction,
    QueuedImportBatch,
    Transaction as DomainTransaction,
)
from bankmap.domain.errors import NotFoundError, batch_not_found, template_not_found

logger = logging.getLogger(__name__)


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of Database interface."""

    def __init__(self, database_url: str):
        """Initialize SQLAlchemy database.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        # Schema is created automatically by create_session_factory
        pass

    # Account operations
    def create_account(self, name: str, bank_name: str) -> int:
        """Create a new account. Returns account ID."""
        session = self._get_session()
        account = Account(name=name, bank_name=bank_name)
        session.add(account)
        session.commit()
        return account.id

    def get_account(self, account_id: int) -> Optional[DomainAccount]:
        """Get account by ID."""
        session = self._get_session()
        account = session.query(Account).filter(Account.id == account_id).first()
        if account is None:
            return None
        return account_to_domain(account)

    def list_accounts(self) -> list[DomainAccount]:
        """List all accounts."""
        session = self._get_session()
        accounts = session.query(Account).order_by(Account.name).all()
        return [account_to_domain(acc) for acc in accounts]

    # Category operations
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        session = self._get_session()
        category = Category(name=name, parent_id=parent_id)
        session.add(category)
        session.commit()
        return category.id

    def get_category(self, category_id: int) -> Optional[DomainCategory]:
        """Get category by ID."""
        session = self._get_session()
        cat = session.query(Category).filter(Category.id == category_id).first()
        if cat is None:
            return None
        return category_to_domain(cat)

    def get_category_by_path(self, path: str) -> Optional[DomainCategory]:
        """Get category by path (e.g., 'Food & Dining > Groceries')."""
        parts = [p.strip() for p in path.split(">")]
        session = self._get_session()

        cat = None
        current_parent_id = None
        for part in parts:
            query = session.query(Category).filter(Category.name == part)
            if current_parent_id is None:
                query = query.filter(Category.parent_id.is_(None))
            else:
                query = query.filter(Category.parent_id == current_parent_id)

            cat = query.first()
            if cat is None:
                return None
            current_parent_id = cat.id

        if cat is None:
            return None
        return category_to_domain(cat)

    def list_categories(self, parent_id: Optional[int] = None) -> list[DomainCategory]:
        """List categories, optionally filtered by parent."""
        session = self._get_session()
        query = session.query(Category)
        if parent_id is None:
            query = query.filter(Category.parent_id.is_(None))
        else:
            query = query.filter(Category.parent_id == parent_id)
        categories = query.order_by(Category.name).all()
        return [category_to_domain(cat) for cat in categories]

    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy."""
        session = self._get_session()
        all_categories = session.query(Category).order_by(Category.name).all()

        def build_tree(parent_id: Optional[int] = None) -> list[dict[str, Any]]:
            result = []
            for cat in all_categories:
                if cat.parent_id == parent_id:
                    result.append(
                        {
                            "id": cat.id,
                            "name": cat.name,
                            "parent_id": cat.parent_id,
                            "created_at": cat.created_at,
                            "children": build_tree(cat.id),
                        }
                    )
            return result

        return build_tree()

    # Mapping template operations
    def lookup_template(self, fingerprint: str) -> Optional[DomainMappingTemplate]:
        """Get the mapping template stored for a layout fingerprint."""
        session = self._get_session()
        template = session.query(MappingTemplate).filter(MappingTemplate.fingerprint == fingerprint).first()
        if template is None:
            return None
        return template_to_domain(template)

    def save_template(self, fingerprint: str, name: str, column_count: int, mapping: ColumnMapping) -> int:
        """Store a mapping template, replacing any template with the same fingerprint."""
        session = self._get_session()
        try:
            existing = session.query(MappingTemplate).filter(MappingTemplate.fingerprint == fingerprint).first()
            if existing is not None:
                self._detach_template(session, existing.id)
                session.delete(existing)
                session.flush()
            template = MappingTemplate(
                fingerprint=fingerprint,
                name=name,
                column_count=column_count,
                mapping=mapping_to_json(mapping),
                usage_count=0,
            )
            session.add(template)
            session.commit()
        except Exception:
            session.rollback()
            raise
        return template.id

    def get_template(self, template_id: int) -> Optional[DomainMappingTemplate]:
        """Get mapping template by ID."""
        session = self._get_session()
        template = session.query(MappingTemplate).filter(MappingTemplate.id == template_id).first()
        if template is None:
            return None
        return template_to_domain(template)

    def list_templates(self) -> list[DomainMappingTemplate]:
        """List all mapping templates."""
        session = self._get_session()
        templates = session.query(MappingTemplate).order_by(MappingTemplate.name, MappingTemplate.id).all()
        return [template_to_domain(t) for t in templates]

    def delete_template(self, template_id: int) -> None:
        """Delete a mapping template."""
        session = self._get_session()
        template = session.query(MappingTemplate).filter(MappingTemplate.id == template_id).first()
        if template is None:
            raise NotFoundError(template_not_found(template_id))
        self._detach_template(session, template_id)
        session.delete(template)
        session.commit()

    def record_template_usage(self, template_id: int, used_at: datetime) -> None:
        """Increment a template's usage count and set its last-used time."""
        session = self._get_session()
        template = session.query(MappingTemplate).filter(MappingTemplate.id == template_id).first()
        if template is None:
            raise NotFoundError(template_not_found(template_id))
        template.usage_count = template.usage_count + 1
        template.last_used = used_at
        session.commit()

    @staticmethod
    def _detach_template(session: Session, template_id: int) -> None:
        """Clear batch references to a template that is about to go away."""
        session.query(ImportBatch).filter(ImportBatch.template_id == template_id).update(
            {ImportBatch.template_id: None}, synchronize_session="fetch"
        )

    # Import batch operations
    def save_batch(self, batch: QueuedImportBatch) -> None:
        """Insert or update a batch and its staged rows."""
        session = self._get_session()
        try:
            orm_batch = session.query(ImportBatch).filter(ImportBatch.id == batch.batch_id).first()
            if orm_batch is None:
                orm_batch = ImportBatch(id=batch.batch_id)
                session.add(orm_batch)
            orm_batch.file_name = batch.file_name
            orm_batch.source_type = batch.source_type.value
            orm_batch.account_id = batch.account_id
            orm_batch.raw_rows = [list(row) for row in batch.raw_rows]
            orm_batch.mapping = mapping_to_json(batch.mapping)
            orm_batch.fingerprint = batch.fingerprint
            orm_batch.mapping_name = batch.mapping_name
            orm_batch.template_id = batch.template_id
            orm_batch.duplicate_check_pending = batch.duplicate_check_pending
            orm_batch.categorization_pending = batch.categorization_pending
            if batch.created_at is not None:
                orm_batch.created_at = batch.created_at

            stored = {s.id: s for s in orm_batch.staged_transactions}
            keep: list[StagedTransaction] = []
            pending: list[tuple[StagedTransaction, ParsedTransaction]] = []
            for txn in batch.transactions:
                orm_staged = stored.get(txn.id) if txn.id is not None else None
                if orm_staged is None:
                    orm_staged = StagedTransaction()
                    pending.append((orm_staged, txn))
                apply_staged(orm_staged, txn)
                keep.append(orm_staged)
            # delete-orphan removes stored rows left out of the batch
            orm_batch.staged_transactions = keep

            session.flush()
            for orm_staged, txn in pending:
                txn.id = orm_staged.id
            session.commit()
            if batch.created_at is None:
                batch.created_at = orm_batch.created_at
        except Exception:
            session.rollback()
            raise

    def get_batch(self, batch_id: str, fresh: bool = False) -> Optional[QueuedImportBatch]:
        """Get a staged batch by ID."""
        session = self._get_session()
        if fresh:
            session.expire_all()
        orm_batch = session.query(ImportBatch).filter(ImportBatch.id == batch_id).first()
        if orm_batch is None:
            return None
        return batch_to_domain(orm_batch)

    def list_batches(self, account_id: Optional[int] = None) -> list[QueuedImportBatch]:
        """List staged batches, newest first."""
        session = self._get_session()
        query = session.query(ImportBatch)
        if account_id is not None:
            query = query.filter(ImportBatch.account_id == account_id)
        batches = query.order_by(ImportBatch.created_at.desc(), ImportBatch.id).all()
        return [batch_to_domain(b) for b in batches]

    def delete_batch(self, batch_id: str) -> None:
        """Delete a batch and its staged rows."""
        session = self._get_session()
        orm_batch = session.query(ImportBatch).filter(ImportBatch.id == batch_id).first()
        if orm_batch is None:
            raise NotFoundError(batch_not_found(batch_id))
        session.delete(orm_batch)
        session.commit()

    def commit_batch(self, batch_id: str, transactions: list[ParsedTransaction]) -> list[int]:
        """Write transactions and discard the batch in one database transaction."""
        session = self._get_session()
        orm_batch = session.query(ImportBatch).filter(ImportBatch.id == batch_id).first()
        if orm_batch is None:
            raise NotFoundError(batch_not_found(batch_id))

        try:
            created = []
            for txn in transactions:
                orm_txn = Transaction(
                    account_id=orm_batch.account_id,
                    date=txn.date,
                    amount=txn.amount,
                    description=txn.description,
                    merchant=txn.merchant or None,
                    category_id=txn.splits[0].category_id if txn.splits else None,
                    content_hash=txn.content_hash,
                    batch_id=batch_id,
                )
                orm_txn.splits = [
                    TransactionSplit(category_id=s.category_id, amount=s.amount) for s in txn.splits
                ]
                session.add(orm_txn)
                created.append(orm_txn)
            session.flush()
            session.delete(orm_batch)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Commit of batch %s rolled back", batch_id)
            raise
        return [orm_txn.id for orm_txn in created]

    # Committed transaction operations
    def find_existing_hashes(self, account_id: int, hashes: Iterable[str]) -> set[str]:
        """Return the hashes already committed for an account."""
        wanted = list(set(hashes))
        if not wanted:
            return set()
        session = self._get_session()
        found: set[str] = set()
        # Stay well under SQLite's bound-parameter limit
        for start in range(0, len(wanted), 500):
            chunk = wanted[start : start + 500]
            rows = (
                session.query(Transaction.content_hash)
                .filter(Transaction.account_id == account_id, Transaction.content_hash.in_(chunk))
                .distinct()
                .all()
            )
            found.update(row[0] for row in rows)
        return found

    def get_merchant_category_counts(self, merchants: Iterable[str]) -> dict[str, dict[int, int]]:
        """Count committed splits per category for each merchant (case-insensitive)."""
        names = list({m.lower() for m in merchants if m})
        if not names:
            return {}
        session = self._get_session()
        rows = (
            session.query(func.lower(Transaction.merchant), TransactionSplit.category_id, func.count())
            .join(TransactionSplit, TransactionSplit.transaction_id == Transaction.id)
            .filter(func.lower(Transaction.merchant).in_(names))
            .group_by(func.lower(Transaction.merchant), TransactionSplit.category_id)
            .all()
        )
        counts: dict[str, dict[int, int]] = defaultdict(dict)
        for merchant, category_id, count in rows:
            counts[merchant][category_id] = count
        return dict(counts)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_id: Optional[int] = None,
    ) -> list[DomainTransaction]:
        """List committed transactions with optional filters."""
        session = self._get_session()
        query = session.query(Transaction)

        if start_date is not None:
            query = query.filter(Transaction.date >= start_date)
        if end_date is not None:
            query = query.filter(Transaction.date <= end_date)
        if account_id is not None:
            query = query.filter(Transaction.account_id == account_id)

        transactions = query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()
        return [transaction_to_domain(txn) for txn in transactions]
