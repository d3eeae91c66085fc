"""Reference ledger that writes journal entries into the record store."""

import logging
from typing import Sequence

from bankfeed.database.base import (
    BANK_TRANSACTIONS,
    JOURNAL_ENTRIES,
    JOURNAL_LINES,
    Condition,
    RecordStore,
)
from bankfeed.domain.collaborators import LedgerPoster
from bankfeed.domain.entities import PostingReceipt, TransactionStatus
from bankfeed.domain.errors import PostingError

logger = logging.getLogger(__name__)


class StoreLedgerPoster(LedgerPoster):
    """Writes one balanced two-line journal entry per bank transaction.

    A request whose idempotency key was already posted is answered with the
    original receipt and writes nothing.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def post(self, transaction_ids: Sequence[int], idempotency_key: str) -> PostingReceipt:
        existing = self.store.query(
            JOURNAL_ENTRIES, [Condition("idempotency_key", "eq", idempotency_key)]
        )
        if existing:
            logger.info("Replaying posting receipt for key %s", idempotency_key)
            return PostingReceipt(
                count=len(existing),
                journal_entry_ids={e["bank_transaction_id"]: e["id"] for e in existing},
            )

        records = []
        for transaction_id in transaction_ids:
            record = self.store.get(BANK_TRANSACTIONS, transaction_id)
            if record is None:
                raise PostingError(f"Unknown bank transaction {transaction_id}")
            if record["status"] != TransactionStatus.APPROVED.value:
                raise PostingError(f"Bank transaction {transaction_id} is not approved")
            if record.get("approved_account_id") is None:
                raise PostingError(f"Bank transaction {transaction_id} has no approved account")
            records.append(record)

        journal_entry_ids = {}
        for record in records:
            entry = self.store.create(
                JOURNAL_ENTRIES,
                {
                    "reference": f"BANK-{record['id']}",
                    "entry_date": record["transaction_date"],
                    "description": record.get("approved_memo") or record["description"],
                    "idempotency_key": idempotency_key,
                    "bank_transaction_id": record["id"],
                },
            )
            self._write_lines(entry["id"], record)
            journal_entry_ids[record["id"]] = entry["id"]

        logger.info("Posted %d journal entries", len(journal_entry_ids))
        return PostingReceipt(count=len(journal_entry_ids), journal_entry_ids=journal_entry_ids)

    def _write_lines(self, journal_entry_id: int, record: dict) -> None:
        amount = abs(record["amount"])
        bank_account = record["source_account_id"]
        offset_account = record["approved_account_id"]
        memo = record.get("approved_memo") or record["description"]

        # Money in debits the bank account; money out credits it
        if record["amount"] > 0:
            debit_account, credit_account = bank_account, offset_account
        else:
            debit_account, credit_account = offset_account, bank_account

        self.store.create(
            JOURNAL_LINES,
            {
                "journal_entry_id": journal_entry_id,
                "account_id": debit_account,
                "debit": amount,
                "credit": 0,
                "description": memo,
            },
        )
        self.store.create(
            JOURNAL_LINES,
            {
                "journal_entry_id": journal_entry_id,
                "account_id": credit_account,
                "debit": 0,
                "credit": amount,
                "description": memo,
            },
        )
