"""Duplicate detection for parsed statement drafts."""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from bankfeed.database.base import BANK_TRANSACTIONS, Condition, RecordStore
from bankfeed.domain.entities import ParsedTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupeResult:
    """Drafts that survived deduplication and what was removed."""

    transactions: list[ParsedTransaction]
    duplicate_count: int = 0
    duplicate_ids: list[str] = field(default_factory=list)


class DuplicateFilter:
    """Removes drafts whose external bank identifier is already stored."""

    def __init__(self, store: RecordStore):
        """Initialize duplicate filter.

        Args:
            store: RecordStore instance
        """
        self.store = store

    def known_bank_ids(self, account_id: int) -> set[str]:
        """Return the external identifiers already stored for an account."""
        records = self.store.query(
            BANK_TRANSACTIONS,
            [
                Condition("source_account_id", "eq", account_id),
                Condition("bank_transaction_id", "not_null"),
            ],
        )
        return {r["bank_transaction_id"] for r in records}

    def filter(self, drafts: Iterable[ParsedTransaction], account_id: int) -> DedupeResult:
        """Drop drafts that duplicate stored transactions.

        Drafts without an external identifier always survive.

        Args:
            drafts: Parsed drafts in file order
            account_id: Bank account the drafts belong to

        Returns:
            DedupeResult with the surviving drafts in their original order

        Raises:
            StoreError: If the stored identifiers cannot be read
        """
        drafts = list(drafts)
        if not any(d.bank_transaction_id for d in drafts):
            return DedupeResult(transactions=drafts)

        known = self.known_bank_ids(account_id)
        survivors = []
        duplicate_ids = []
        for draft in drafts:
            if draft.bank_transaction_id and draft.bank_transaction_id in known:
                duplicate_ids.append(draft.bank_transaction_id)
            else:
                survivors.append(draft)

        if duplicate_ids:
            logger.info(
                "Dropped %d duplicate transaction(s) for account %d", len(duplicate_ids), account_id
            )
        return DedupeResult(
            transactions=survivors,
            duplicate_count=len(duplicate_ids),
            duplicate_ids=duplicate_ids,
        )


def filter_duplicates(
    store: RecordStore, drafts: Iterable[ParsedTransaction], account_id: int
) -> DedupeResult:
    """Convenience wrapper around DuplicateFilter.filter."""
    return DuplicateFilter(store).filter(drafts, account_id)
