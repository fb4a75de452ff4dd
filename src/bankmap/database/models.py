"""SQLAlchemy models for bankmap database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    bank_name = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="account", cascade="all, delete-orphan")
    import_batches = relationship("ImportBatch", back_populates="account", cascade="all, delete-orphan")


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")


class MappingTemplate(Base):
    """Human-confirmed column mapping keyed by layout fingerprint."""

    __tablename__ = "mapping_templates"

    id = Column(Integer, primary_key=True)
    fingerprint = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    column_count = Column(Integer, nullable=False)
    mapping = Column(JSON, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class ImportBatch(Base):
    """Staged import awaiting review."""

    __tablename__ = "import_batches"

    id = Column(String, primary_key=True)
    file_name = Column(String, nullable=False)
    source_type = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    raw_rows = Column(JSON, nullable=False)
    mapping = Column(JSON, nullable=False)
    fingerprint = Column(String, nullable=False)
    mapping_name = Column(String, nullable=False)
    template_id = Column(Integer, ForeignKey("mapping_templates.id"), nullable=True)
    duplicate_check_pending = Column(Boolean, default=False, nullable=False)
    categorization_pending = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    account = relationship("Account", back_populates="import_batches")
    staged_transactions = relationship(
        "StagedTransaction",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="StagedTransaction.row_number",
    )


class StagedTransaction(Base):
    """One parsed row of an import batch."""

    __tablename__ = "staged_transactions"

    id = Column(Integer, primary_key=True)
    batch_id = Column(String, ForeignKey("import_batches.id"), nullable=False)
    row_number = Column(Integer, nullable=False)
    date = Column(Date, nullable=True)
    description = Column(String, nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=True)
    transaction_type = Column(String, nullable=False)
    merchant = Column(String, nullable=False, default="")
    original_row = Column(JSON, nullable=False)
    content_hash = Column(String, nullable=False, default="")
    is_duplicate = Column(Boolean, default=False, nullable=False)
    duplicate_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    splits = Column(JSON, nullable=False)
    suggested_category_id = Column(Integer, nullable=True)
    suggestion_confidence = Column(Float, nullable=True)
    errors = Column(JSON, nullable=False)
    user_reviewed = Column(Boolean, default=False, nullable=False)

    # Relationships
    batch = relationship("ImportBatch", back_populates="staged_transactions")


class Transaction(Base):
    """Committed transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String, nullable=False)
    merchant = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    content_hash = Column(String, nullable=False, index=True)
    batch_id = Column(String, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    account = relationship("Account", back_populates="transactions")
    splits = relationship("TransactionSplit", back_populates="transaction", cascade="all, delete-orphan")


class TransactionSplit(Base):
    """Portion of a committed transaction assigned to a category."""

    __tablename__ = "transaction_splits"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="splits")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
