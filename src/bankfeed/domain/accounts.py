"""Chart-of-accounts domain service."""

from typing import Optional

from bankfeed.database import mappers
from bankfeed.database.base import ACCOUNTS, RecordStore
from bankfeed.domain.collaborators import Directory
from bankfeed.domain.entities import Account
from bankfeed.domain.errors import ConflictError, ValidationError


class AccountService:
    """Service for managing directory accounts."""

    def __init__(self, store: RecordStore, directory: Directory):
        """Initialize account service.

        Args:
            store: RecordStore instance
            directory: Directory used for lookups
        """
        self.store = store
        self.directory = directory

    def create_account(
        self, name: str, account_type: str = "Bank", account_number: Optional[str] = None
    ) -> Account:
        """Create a new account.

        Args:
            name: Account name
            account_type: Account type, e.g. Bank, CreditCard, Expense, Income
            account_number: Optional account number

        Returns:
            The new Account

        Raises:
            ValidationError: If the name is empty
            ConflictError: If an account with the same name exists
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name is required", {"name": "is required"})

        for account in self.directory.list_accounts():
            if account.name.lower() == name.lower():
                raise ConflictError(f"Account with name '{name}' already exists")

        record = self.store.create(
            ACCOUNTS,
            {"name": name, "account_type": account_type, "account_number": account_number},
        )
        return mappers.account_to_domain(record)

    def get_account(self, account_id: int) -> Optional[Account]:
        return self.directory.get_account(account_id)

    def find_account(self, name: str) -> Optional[Account]:
        """Find an account by name, ignoring case."""
        for account in self.directory.list_accounts():
            if account.name.lower() == name.strip().lower():
                return account
        return None

    def list_accounts(self) -> list[Account]:
        return self.directory.list_accounts()
