"""Shared pytest fixtures for bankmap tests."""

import itertools
import os
import tempfile
from pathlib import Path

import pytest

from bankmap.database.factories import create_sqlite_database
from bankmap.domain.account import AccountService
from bankmap.domain.category import CategoryService
from bankmap.domain.categorization import CategorySuggestion
from bankmap.domain.duplicates import compute_content_hash
from bankmap.domain.entities import (
    CategorySplit,
    ColumnMapping,
    ParsedTransaction,
    QueuedImportBatch,
    SourceType,
    TransactionStatus,
)
from bankmap.domain.import_pipeline import ImportPipeline
from bankmap.domain.import_queue import BatchRunGuard, ImportQueueService
from bankmap.domain.mapping_template import MappingTemplateService
from bankmap.domain.transaction import TransactionService
from bankmap.domain.transaction_parser import extract_merchant, transaction_type_for


CHASE_ROWS = [
    ["Transaction Date", "Description", "Amount"],
    ["01/15/2024", "STARBUCKS STORE 1234", "-5.75"],
    ["01/16/2024", "PAYROLL DEPOSIT", "2500.00"],
    ["01/17/2024", "WHOLE FOODS MARKET", "-84.12"],
    ["01/18/2024", "SHELL OIL 5744", "-40.00"],
]

DEBIT_CREDIT_ROWS = [
    ["Date", "Description", "Debit", "Credit"],
    ["2024-02-01", "RENT PAYMENT", "1200.00", ""],
    ["2024-02-03", "SALARY ACME CORP", "", "3000.00"],
    ["2024-02-05", "GROCERY OUTLET", "65.40", ""],
]


class FailingLookup:
    """Duplicate lookup that is always unavailable."""

    def __init__(self):
        self.calls = 0

    def find_duplicates(self, account_id, transactions):
        self.calls += 1
        raise ConnectionError("history service unreachable")


class FailingSuggester:
    def suggest(self, merchants):
        raise TimeoutError("suggestion service timed out")


class StaticSuggester:
    """Suggests a fixed category for known merchants."""

    def __init__(self, by_merchant: dict[str, int], confidence: float = 0.9):
        self.by_merchant = by_merchant
        self.confidence = confidence
        self.requests: list[list[str]] = []

    def suggest(self, merchants):
        self.requests.append(list(merchants))
        return [
            CategorySuggestion(category_id=self.by_merchant[m], confidence=self.confidence)
            if m in self.by_merchant
            else None
            for m in merchants
        ]


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def template_service(temp_db):
    """Create a MappingTemplateService with a temporary database."""
    return MappingTemplateService(temp_db)


@pytest.fixture
def batch_ids():
    """Predictable batch IDs: batch0001, batch0002, ..."""
    counter = itertools.count(1)
    return lambda: f"batch{next(counter):04d}"


@pytest.fixture
def pipeline(temp_db, batch_ids):
    """Create an ImportPipeline with predictable batch IDs."""
    return ImportPipeline(temp_db, batch_id_factory=batch_ids)


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def queue_service(temp_db, sleeps):
    """Create an ImportQueueService that never really sleeps."""
    return ImportQueueService(temp_db, sleep=sleeps.append, guard=BatchRunGuard())


@pytest.fixture
def sample_account(account_service):
    """Create a sample account for testing."""
    account_id = account_service.create_account(name="Test Account", bank_name="Test Bank")
    return account_service.get_account(account_id)


@pytest.fixture
def sample_categories(category_service):
    """Initialize categories and return category IDs keyed by path."""
    from bankmap.cli.commands.init_categories import INITIAL_CATEGORIES

    category_ids = {}
    for category_name, parent_name in INITIAL_CATEGORIES:
        category_id = category_service.create_category(name=category_name, parent_path=parent_name)
        key = f"{parent_name} > {category_name}" if parent_name else category_name
        category_ids[key] = category_id
    return category_ids


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


def commit_history(db, account_id, entries, batch_id="history"):
    """Commit (date, description, amount, category_id) entries straight to the database."""
    transactions = []
    for row_number, (txn_date, description, amount, category_id) in enumerate(entries, start=1):
        transactions.append(
            ParsedTransaction(
                row_number=row_number,
                date=txn_date,
                description=description,
                amount=amount,
                transaction_type=transaction_type_for(amount),
                merchant=extract_merchant(description),
                content_hash=compute_content_hash(txn_date, description, amount),
                status=TransactionStatus.CONFIRMED,
                splits=[CategorySplit(category_id=category_id, amount=amount)] if category_id else [],
            )
        )
    batch = QueuedImportBatch(
        batch_id=batch_id,
        file_name="history.csv",
        source_type=SourceType.MANUAL,
        account_id=account_id,
        raw_rows=[],
        mapping=ColumnMapping(date_column=0, description_column=1, amount_column=2),
        fingerprint="0-0",
        mapping_name="History",
        transactions=transactions,
    )
    db.save_batch(batch)
    return db.commit_batch(batch_id, transactions)
