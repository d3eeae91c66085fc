"""Bank transaction domain service."""

from datetime import date
from decimal import Decimal
from typing import Optional

from bankfeed.database import mappers
from bankfeed.database.base import BANK_TRANSACTIONS, MATCH_SUGGESTIONS, Condition, RecordStore
from bankfeed.domain.collaborators import Directory
from bankfeed.domain.entities import BankTransaction, SourceType, TransactionStatus
from bankfeed.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    transaction_not_found,
)


class TransactionService:
    """Service for recording and browsing bank transactions."""

    def __init__(self, store: RecordStore, directory: Directory):
        """Initialize transaction service.

        Args:
            store: RecordStore instance
            directory: Directory used to validate the bank account
        """
        self.store = store
        self.directory = directory

    def create_manual_transaction(
        self,
        account_id: int,
        transaction_date: date,
        amount: Decimal,
        description: str,
        reference_number: Optional[str] = None,
        check_number: Optional[str] = None,
    ) -> BankTransaction:
        """Record a transaction entered by hand.

        Args:
            account_id: Bank account ID
            transaction_date: Transaction date
            amount: Signed amount; negative is money out
            description: Transaction description
            reference_number: Optional reference number
            check_number: Optional check number

        Returns:
            The new Pending BankTransaction

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the description is empty
        """
        account = self.directory.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if not description or not description.strip():
            raise ValidationError("Description is required", {"description": "is required"})

        record = self.store.create(
            BANK_TRANSACTIONS,
            {
                "source_type": SourceType.MANUAL.value,
                "source_name": account.name,
                "source_account_id": account_id,
                "transaction_date": transaction_date,
                "amount": amount,
                "description": description.strip(),
                "transaction_type": "Deposit" if amount > 0 else "Withdrawal",
                "reference_number": reference_number,
                "check_number": check_number,
                "confidence_score": 0,
                "status": TransactionStatus.PENDING.value,
            },
        )
        return mappers.transaction_to_domain(record)

    def get_transaction(self, transaction_id: int) -> Optional[BankTransaction]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            BankTransaction or None if not found
        """
        record = self.store.get(BANK_TRANSACTIONS, transaction_id)
        return mappers.transaction_to_domain(record) if record else None

    def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        account_id: Optional[int] = None,
        import_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[BankTransaction]:
        """List transactions, newest first.

        Args:
            status: Optional status filter
            account_id: Optional bank account filter
            import_id: Optional import batch filter
            limit: Optional maximum number of transactions

        Returns:
            List of BankTransaction entities
        """
        conditions = []
        if status is not None:
            conditions.append(Condition("status", "eq", TransactionStatus(status).value))
        if account_id is not None:
            conditions.append(Condition("source_account_id", "eq", account_id))
        if import_id is not None:
            conditions.append(Condition("import_id", "eq", import_id))
        records = self.store.query(
            BANK_TRANSACTIONS, conditions, order_by=["-transaction_date", "-id"], limit=limit
        )
        return [mappers.transaction_to_domain(r) for r in records]

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction that has not been posted.

        Raises:
            NotFoundError: If the transaction doesn't exist
            ConflictError: If the transaction is Posted
        """
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        if transaction.status == TransactionStatus.POSTED:
            raise ConflictError(f"Transaction {transaction_id} is Posted and cannot be deleted")

        for suggestion in self.store.query(
            MATCH_SUGGESTIONS, [Condition("bank_transaction_id", "eq", transaction_id)]
        ):
            self.store.delete(MATCH_SUGGESTIONS, suggestion["id"])
        self.store.delete(BANK_TRANSACTIONS, transaction_id)
