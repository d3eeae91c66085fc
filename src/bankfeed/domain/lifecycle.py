"""Bank transaction review lifecycle.

Pending transactions are approved, rejected, excluded or matched to an
invoice; approved transactions are posted to the ledger. Every transition
is checked against ``ALLOWED_TRANSITIONS`` before anything is written.
"""

import hashlib
import logging
from datetime import datetime, UTC
from typing import Callable, Optional, Sequence

from bankfeed.constants import HIGH_CONFIDENCE_THRESHOLD, NEEDS_MANUAL_CATEGORIZATION
from bankfeed.database import mappers
from bankfeed.database.base import BANK_TRANSACTIONS, Condition, RecordStore
from bankfeed.domain.collaborators import Directory, LedgerPoster
from bankfeed.domain.entities import (
    BankTransaction,
    BulkResult,
    ItemOutcome,
    PostingReceipt,
    TransactionStatus,
)
from bankfeed.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PostingError,
    ValidationError,
    account_not_found,
    invalid_transition,
    not_editable,
    transaction_not_found,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset(
        {
            TransactionStatus.APPROVED,
            TransactionStatus.REJECTED,
            TransactionStatus.EXCLUDED,
            TransactionStatus.MATCHED,
        }
    ),
    TransactionStatus.APPROVED: frozenset({TransactionStatus.POSTED}),
}

# Per-item failures a bulk operation reports instead of raising
ITEM_ERRORS = (ValidationError, NotFoundError, ConflictError)


def idempotency_key(transaction_ids: Sequence[int]) -> str:
    """Derive a stable posting key from a set of transaction IDs."""
    joined = ",".join(str(i) for i in sorted(set(transaction_ids)))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class TransactionLifecycleService:
    """Service for reviewing, approving and posting bank transactions."""

    def __init__(
        self,
        store: RecordStore,
        directory: Optional[Directory] = None,
        ledger: Optional[LedgerPoster] = None,
    ):
        """Initialize lifecycle service.

        Args:
            store: RecordStore instance
            directory: Directory used to resolve account names on edit
            ledger: LedgerPoster used by post
        """
        self.store = store
        self.directory = directory
        self.ledger = ledger

    def get_transaction(self, transaction_id: int) -> BankTransaction:
        """Get transaction by ID.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        record = self.store.get(BANK_TRANSACTIONS, transaction_id)
        if record is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return mappers.transaction_to_domain(record)

    def _check_transition(self, transaction: BankTransaction, target: TransactionStatus) -> None:
        if not can_transition(transaction.status, target):
            raise InvalidTransitionError(
                invalid_transition(transaction.id, transaction.status.value, target.value)
            )

    def _set_status(
        self, transaction_id: int, target: TransactionStatus, **changes
    ) -> BankTransaction:
        transaction = self.get_transaction(transaction_id)
        self._check_transition(transaction, target)
        changes["status"] = target.value
        record = self.store.update(BANK_TRANSACTIONS, transaction_id, changes)
        return mappers.transaction_to_domain(record)

    def _bulk(
        self, transaction_ids: Sequence[int], action: Callable[[int], BankTransaction]
    ) -> BulkResult:
        outcomes = []
        for transaction_id in transaction_ids:
            try:
                action(transaction_id)
            except ITEM_ERRORS as e:
                logger.warning("Transaction %d: %s", transaction_id, e)
                outcomes.append(ItemOutcome(transaction_id, False, str(e)))
            else:
                outcomes.append(ItemOutcome(transaction_id, True))
        return BulkResult(tuple(outcomes))

    def approve(self, transaction_id: int) -> BankTransaction:
        """Approve a Pending transaction with its suggested classification.

        Args:
            transaction_id: Transaction ID

        Returns:
            Updated BankTransaction

        Raises:
            NotFoundError: If the transaction doesn't exist
            InvalidTransitionError: If the transaction is not Pending
            ValidationError: If there is no suggested account
        """
        transaction = self.get_transaction(transaction_id)
        self._check_transition(transaction, TransactionStatus.APPROVED)
        if transaction.suggested_account_id is None:
            raise ValidationError(
                f"Transaction {transaction_id} {NEEDS_MANUAL_CATEGORIZATION}",
                {"suggested_account_id": NEEDS_MANUAL_CATEGORIZATION},
            )
        record = self.store.update(
            BANK_TRANSACTIONS,
            transaction_id,
            {
                "approved_account_id": transaction.suggested_account_id,
                "approved_category": transaction.suggested_category,
                "approved_memo": transaction.suggested_memo,
                "status": TransactionStatus.APPROVED.value,
            },
        )
        return mappers.transaction_to_domain(record)

    def bulk_approve(self, transaction_ids: Sequence[int]) -> BulkResult:
        """Approve several transactions, reporting each failure separately."""
        result = self._bulk(transaction_ids, self.approve)
        logger.info("Approved %d, failed %d", result.succeeded, result.failed)
        return result

    def reject(self, transaction_id: int) -> BankTransaction:
        """Reject a Pending transaction."""
        return self._set_status(transaction_id, TransactionStatus.REJECTED)

    def bulk_reject(self, transaction_ids: Sequence[int]) -> BulkResult:
        return self._bulk(transaction_ids, self.reject)

    def exclude(self, transaction_id: int) -> BankTransaction:
        """Exclude a Pending transaction from the books."""
        return self._set_status(transaction_id, TransactionStatus.EXCLUDED)

    def bulk_exclude(self, transaction_ids: Sequence[int]) -> BulkResult:
        return self._bulk(transaction_ids, self.exclude)

    def edit(
        self,
        transaction_id: int,
        account_id: Optional[int] = None,
        memo: Optional[str] = None,
        is_personal: Optional[bool] = None,
        vendor_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        class_id: Optional[int] = None,
        payee: Optional[str] = None,
    ) -> BankTransaction:
        """Override the suggestion of a Pending transaction.

        Arguments left as None are unchanged.

        Args:
            transaction_id: Transaction ID
            account_id: New suggested account; the category becomes its name
            memo: New suggested memo
            is_personal: Personal flag
            vendor_id: Vendor link
            customer_id: Customer link
            class_id: Class link
            payee: Payee name

        Returns:
            Updated BankTransaction

        Raises:
            NotFoundError: If the transaction doesn't exist
            InvalidTransitionError: If the transaction is not Pending
            ValidationError: If the account doesn't exist
        """
        transaction = self.get_transaction(transaction_id)
        if transaction.status != TransactionStatus.PENDING:
            raise InvalidTransitionError(not_editable(transaction_id, transaction.status.value))

        changes = {}
        if account_id is not None:
            account = self.directory.get_account(account_id) if self.directory else None
            if account is None:
                raise ValidationError(account_not_found(account_id), {"account_id": "not found"})
            changes["suggested_account_id"] = account.id
            changes["suggested_category"] = account.name
        if memo is not None:
            changes["suggested_memo"] = memo
        if is_personal is not None:
            changes["is_personal"] = is_personal
        if vendor_id is not None:
            changes["vendor_id"] = vendor_id
        if customer_id is not None:
            changes["customer_id"] = customer_id
        if class_id is not None:
            changes["class_id"] = class_id
        if payee is not None:
            changes["payee"] = payee

        if not changes:
            return transaction
        record = self.store.update(BANK_TRANSACTIONS, transaction_id, changes)
        return mappers.transaction_to_domain(record)

    def match_to_invoice(self, transaction_id: int, payment_id: int) -> BankTransaction:
        """Mark a Pending deposit as settled by a recorded payment."""
        return self._set_status(
            transaction_id,
            TransactionStatus.MATCHED,
            matched_payment_id=payment_id,
            matched_at=datetime.now(UTC),
        )

    def post(self, transaction_ids: Optional[Sequence[int]] = None) -> PostingReceipt:
        """Post Approved transactions to the ledger as one request.

        Args:
            transaction_ids: IDs to post; defaults to every Approved transaction

        Returns:
            PostingReceipt from the ledger

        Raises:
            NotFoundError: If an ID doesn't exist
            InvalidTransitionError: If any transaction is not Approved
            PostingError: If the ledger refuses or its receipt does not cover
                every transaction; nothing is changed
        """
        if transaction_ids is None:
            records = self.store.query(
                BANK_TRANSACTIONS,
                [Condition("status", "eq", TransactionStatus.APPROVED.value)],
            )
            transaction_ids = [r["id"] for r in records]
        else:
            transaction_ids = list(dict.fromkeys(transaction_ids))
            for transaction_id in transaction_ids:
                transaction = self.get_transaction(transaction_id)
                self._check_transition(transaction, TransactionStatus.POSTED)

        if not transaction_ids:
            return PostingReceipt(count=0, journal_entry_ids={})
        if self.ledger is None:
            raise PostingError("No ledger is configured")

        receipt = self.ledger.post(transaction_ids, idempotency_key(transaction_ids))
        missing = [i for i in transaction_ids if receipt.journal_entry_ids.get(i) is None]
        if missing:
            raise PostingError(
                f"Ledger receipt has no journal entry for transaction(s) "
                f"{', '.join(map(str, missing))}"
            )
        if receipt.count != len(transaction_ids):
            raise PostingError(
                f"Ledger reported {receipt.count} posting(s) "
                f"for {len(transaction_ids)} transaction(s)"
            )
        for transaction_id in transaction_ids:
            self.store.update(
                BANK_TRANSACTIONS,
                transaction_id,
                {
                    "status": TransactionStatus.POSTED.value,
                    "journal_entry_id": receipt.journal_entry_ids[transaction_id],
                },
            )
        logger.info("Posted %d transaction(s)", len(transaction_ids))
        return receipt

    def approve_high_confidence(self, threshold: int = HIGH_CONFIDENCE_THRESHOLD) -> BulkResult:
        """Bulk approve Pending transactions whose confidence meets the threshold."""
        records = self.store.query(
            BANK_TRANSACTIONS,
            [
                Condition("status", "eq", TransactionStatus.PENDING.value),
                Condition("confidence_score", "ge", threshold),
            ],
        )
        return self.bulk_approve([r["id"] for r in records])
