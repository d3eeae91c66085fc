"""Payment recorder implementation over a record store."""

from decimal import Decimal

from bankfeed.database.base import INVOICES, PAYMENTS, RecordStore
from bankfeed.domain.collaborators import PaymentRecorder
from bankfeed.domain.entities import BankTransaction
from bankfeed.domain.errors import NotFoundError


class StorePaymentRecorder(PaymentRecorder):
    """Creates a payments record and applies it to the invoice balance."""

    def __init__(self, store: RecordStore):
        self.store = store

    def record_payment(
        self, transaction: BankTransaction, invoice_id: int, amount: Decimal
    ) -> int:
        invoice = self.store.get(INVOICES, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        payment = self.store.create(
            PAYMENTS,
            {
                "payment_number": f"PMT-{transaction.id}-{invoice_id}",
                "customer_id": invoice.get("customer_id"),
                "invoice_id": invoice_id,
                "bank_transaction_id": transaction.id,
                "payment_date": transaction.transaction_date,
                "amount": amount,
                "payment_method": "Bank Deposit",
            },
        )

        amount_paid = Decimal(str(invoice.get("amount_paid") or 0)) + amount
        total = Decimal(str(invoice["total_amount"]))
        self.store.update(
            INVOICES,
            invoice_id,
            {
                "amount_paid": amount_paid,
                "status": "Paid" if amount_paid >= total else "Partial",
            },
        )
        return payment["id"]
