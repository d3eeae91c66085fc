"""Interfaces of the systems the reconciliation core talks to.

The core reads reference data from a ``Directory``, hands approved
transactions to a ``LedgerPoster`` and records invoice payments through a
``PaymentRecorder``. Store-backed implementations live in
``bankfeed.database``.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

from bankfeed.domain.entities import (
    Account,
    BankTransaction,
    Customer,
    OpenInvoice,
    PostingReceipt,
    TrackingClass,
    Vendor,
)


class Directory(ABC):
    """Read-only view of accounts, parties, classes and open invoices."""

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    def find_account_by_name(self, name: str) -> Optional[Account]:
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        pass

    @abstractmethod
    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        pass

    @abstractmethod
    def list_vendors(self) -> list[Vendor]:
        pass

    @abstractmethod
    def get_customer(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    def list_customers(self) -> list[Customer]:
        pass

    @abstractmethod
    def get_class(self, class_id: int) -> Optional[TrackingClass]:
        pass

    @abstractmethod
    def list_classes(self) -> list[TrackingClass]:
        pass

    @abstractmethod
    def list_open_invoices(self) -> list[OpenInvoice]:
        """Return invoices whose status is neither Paid nor Draft."""
        pass


class LedgerPoster(ABC):
    """Accepts approved transactions and writes them to the general ledger."""

    @abstractmethod
    def post(self, transaction_ids: Sequence[int], idempotency_key: str) -> PostingReceipt:
        """Post the given transactions as one request.

        Args:
            transaction_ids: IDs of Approved transactions
            idempotency_key: Stable key identifying this batch of IDs

        Returns:
            PostingReceipt with the journal entry ID of every transaction

        Raises:
            PostingError: If the ledger refuses the request
        """
        pass


class PaymentRecorder(ABC):
    """Records a customer payment that settles (part of) an invoice."""

    @abstractmethod
    def record_payment(
        self, transaction: BankTransaction, invoice_id: int, amount: Decimal
    ) -> int:
        """Record a payment and return its ID."""
        pass
