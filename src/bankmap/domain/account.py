"""Account domain service."""

from typing import Optional

from bankmap.database.base import Database
from bankmap.domain.entities import Account
from bankmap.domain.errors import ConflictError, NotFoundError, ValidationError, account_not_found


class AccountService:
    """Accounts are the targets staged batches are committed to."""

    def __init__(self, db: Database):
        self.db = db

    def create_account(self, name: str, bank_name: str) -> int:
        """Create an account.

        Args:
            name: Unique account name (surrounding whitespace is dropped)
            bank_name: Bank the account is held at

        Returns:
            Account ID

        Raises:
            ValidationError: If the name is blank
            ConflictError: If the name is taken
        """
        name = name.strip()
        if not name:
            raise ValidationError("Account name cannot be empty")
        if self.get_account_by_name(name) is not None:
            raise ConflictError(f"Account with name '{name}' already exists")
        return self.db.create_account(name=name, bank_name=bank_name.strip() or name)

    def get_account(self, account_id: int) -> Optional[Account]:
        return self.db.get_account(account_id)

    def get_account_by_name(self, name: str) -> Optional[Account]:
        for account in self.db.list_accounts():
            if account.name == name:
                return account
        return None

    def list_accounts(self) -> list[Account]:
        """List accounts ordered by name."""
        return self.db.list_accounts()

    def resolve(self, account: str | int) -> int:
        """Turn an account name or ID into an account ID.

        Digits are read as an ID; anything else is matched against names.

        Raises:
            NotFoundError: If no account matches
        """
        if isinstance(account, int) or account.strip().isdigit():
            account_id = int(account)
            if self.db.get_account(account_id) is None:
                raise NotFoundError(account_not_found(account_id))
            return account_id

        match = self.get_account_by_name(account.strip())
        if match is None:
            raise NotFoundError(f"Account '{account}' not found")
        return match.id
