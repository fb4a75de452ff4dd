"""Committed transaction domain service."""

from datetime import date
from decimal import Decimal
from typing import Optional

from bankmap.database.base import Database
from bankmap.domain.entities import Transaction


class TransactionService:
    """Read access to transactions committed from import batches."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def list_transactions(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Transaction]:
        """List committed transactions, newest first.

        Args:
            account_id: Optional account ID filter
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)

        Returns:
            List of transaction entities
        """
        return self.db.list_transactions(start_date=start_date, end_date=end_date, account_id=account_id)

    def totals(self, transactions: list[Transaction]) -> tuple[Decimal, Decimal]:
        """Return (income, expenses) of the given transactions, expenses as a positive sum."""
        income = sum((t.amount for t in transactions if t.amount > 0), Decimal("0"))
        expenses = sum((-t.amount for t in transactions if t.amount < 0), Decimal("0"))
        return income, expenses
