"""Statement import domain service.

An import runs in two explicit stages. ``preview`` parses the statement and
drops drafts that are already stored; ``commit`` persists the survivors
under a new import batch, classifies them with the bank rules and stores
invoice match suggestions for deposits.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional, Union

from bankfeed.database import mappers
from bankfeed.database.base import (
    BANK_TRANSACTIONS,
    IMPORT_BATCHES,
    MATCH_SUGGESTIONS,
    Condition,
    RecordStore,
)
from bankfeed.domain.collaborators import Directory
from bankfeed.domain.duplicates import DuplicateFilter
from bankfeed.domain.entities import (
    ImportBatch,
    ImportStatus,
    MatchTier,
    ParsedTransaction,
    SkippedRecord,
    StatementFormat,
)
from bankfeed.domain.errors import NotFoundError, account_not_found
from bankfeed.domain.invoice_matching import InvoiceMatchService, find_invoice_matches
from bankfeed.domain.rules import BankRuleService
from bankfeed.domain.statement_parser import parse_statement

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    ".csv": StatementFormat.CSV,
    ".ofx": StatementFormat.OFX,
    ".qfx": StatementFormat.QFX,
    ".qbo": StatementFormat.QBO,
}


def format_from_file_name(file_name: Optional[str]) -> Optional[StatementFormat]:
    """Guess the statement format from a file extension."""
    if not file_name:
        return None
    return FORMAT_EXTENSIONS.get(Path(file_name).suffix.lower())


@dataclass(frozen=True)
class ImportPreview:
    """Parsed and deduplicated statement, ready to be committed."""

    account_id: int
    account_name: str
    file_name: Optional[str]
    statement_format: StatementFormat
    transactions: list[ParsedTransaction]
    skipped: list[SkippedRecord] = field(default_factory=list)
    duplicate_count: int = 0
    duplicate_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ImportResult:
    """Counts reported for a committed import."""

    batch_id: int
    imported: int
    duplicates: int
    skipped: int
    classified: int = 0
    matched: int = 0
    transaction_ids: list[int] = field(default_factory=list)


class ImportService:
    """Service for importing bank statements."""

    def __init__(self, store: RecordStore, directory: Directory):
        """Initialize import service.

        Args:
            store: RecordStore instance
            directory: Directory used to resolve the bank account and invoices
        """
        self.store = store
        self.directory = directory
        self.duplicates = DuplicateFilter(store)
        self.rule_service = BankRuleService(store, directory)
        self.match_service = InvoiceMatchService(store, directory)

    def preview(
        self,
        content: Union[str, bytes],
        account_id: int,
        file_name: Optional[str] = None,
        format_hint: Optional[Union[str, StatementFormat]] = None,
    ) -> ImportPreview:
        """Parse a statement and remove already imported transactions.

        Args:
            content: Raw statement text or bytes
            account_id: Bank account the statement belongs to
            file_name: Optional source file name; its extension is used when
                no format hint is given
            format_hint: Optional statement format

        Returns:
            ImportPreview with surviving drafts, skipped records and duplicates

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the format hint is not supported
            StoreError: If stored transactions cannot be read
        """
        account = self.directory.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        hint = format_hint or format_from_file_name(file_name)
        parsed = parse_statement(content, hint).collect()
        dedupe = self.duplicates.filter(parsed.transactions, account_id)

        return ImportPreview(
            account_id=account_id,
            account_name=account.name,
            file_name=file_name,
            statement_format=parsed.statement_format,
            transactions=dedupe.transactions,
            skipped=parsed.skipped,
            duplicate_count=dedupe.duplicate_count,
            duplicate_ids=dedupe.duplicate_ids,
        )

    def commit(
        self, preview: ImportPreview, classify: bool = True, match: bool = True
    ) -> ImportResult:
        """Persist a preview as a new import batch.

        Args:
            preview: Result of preview
            classify: Run the enabled bank rules over the new transactions
            match: Store invoice match suggestions for new deposits

        Returns:
            ImportResult with imported, duplicate, skipped, classified and
            matched counts

        Raises:
            DomainError: Any failure after the batch exists; the batch is
                marked Failed and the transactions written so far are removed
        """
        batch = self.store.create(
            IMPORT_BATCHES,
            {
                "bank_account_id": preview.account_id,
                "file_name": preview.file_name,
                "file_type": preview.statement_format.value,
                "status": ImportStatus.PROCESSING.value,
            },
        )

        transaction_ids = []
        deposit_ids = []
        try:
            for draft in preview.transactions:
                record = self.store.create(
                    BANK_TRANSACTIONS,
                    mappers.draft_to_record(
                        draft, preview.account_id, preview.account_name, batch["id"]
                    ),
                )
                transaction_ids.append(record["id"])
                if draft.amount > 0:
                    deposit_ids.append((record["id"], draft))

            classified = 0
            if classify and transaction_ids:
                classified = self.rule_service.apply_rules(transaction_ids).classified

            matched = 0
            if match and deposit_ids:
                matched = self._suggest_matches(deposit_ids)

            self.store.update(
                IMPORT_BATCHES,
                batch["id"],
                {
                    "transaction_count": len(transaction_ids),
                    "matched_count": matched,
                    "duplicate_count": preview.duplicate_count,
                    "skipped_count": len(preview.skipped),
                    "status": ImportStatus.COMPLETED.value,
                    "completed_at": datetime.now(UTC),
                },
            )
        except Exception as e:
            logger.error("Import batch %d failed: %s", batch["id"], e)
            self.store.update(
                IMPORT_BATCHES,
                batch["id"],
                {"status": ImportStatus.FAILED.value, "error_message": str(e)[:500]},
            )
            self._discard_transactions(transaction_ids)
            raise

        logger.info(
            "Imported %d transaction(s) into batch %d (%d duplicates, %d skipped)",
            len(transaction_ids),
            batch["id"],
            preview.duplicate_count,
            len(preview.skipped),
        )
        return ImportResult(
            batch_id=batch["id"],
            imported=len(transaction_ids),
            duplicates=preview.duplicate_count,
            skipped=len(preview.skipped),
            classified=classified,
            matched=matched,
            transaction_ids=transaction_ids,
        )

    def _discard_transactions(self, transaction_ids: list[int]) -> None:
        """Remove rows written by a failed batch so the statement can be imported again."""
        if not transaction_ids:
            return
        for suggestion in self.store.query(
            MATCH_SUGGESTIONS, [Condition("bank_transaction_id", "in", transaction_ids)]
        ):
            self.store.delete(MATCH_SUGGESTIONS, suggestion["id"])
        for transaction_id in transaction_ids:
            self.store.delete(BANK_TRANSACTIONS, transaction_id)
        logger.info("Discarded %d transaction(s) from the failed batch", len(transaction_ids))

    def _suggest_matches(self, deposits: list[tuple[int, ParsedTransaction]]) -> int:
        """Store suggestions for deposits; return how many have a High best candidate."""
        invoices = self.directory.list_open_invoices()
        if not invoices:
            return 0
        matched = 0
        for transaction_id, draft in deposits:
            candidates = find_invoice_matches(draft.amount, draft.description, invoices)
            if not candidates:
                continue
            self.match_service.save_candidates(transaction_id, candidates)
            if candidates[0].tier == MatchTier.HIGH:
                matched += 1
        return matched

    def import_statement(
        self,
        content: Union[str, bytes],
        account_id: int,
        file_name: Optional[str] = None,
        format_hint: Optional[Union[str, StatementFormat]] = None,
        classify: bool = True,
        match: bool = True,
    ) -> ImportResult:
        """Preview and commit a statement in one call."""
        preview = self.preview(content, account_id, file_name, format_hint)
        return self.commit(preview, classify=classify, match=match)

    def get_batch(self, batch_id: int) -> ImportBatch:
        """Get import batch by ID.

        Raises:
            NotFoundError: If the batch doesn't exist
        """
        record = self.store.get(IMPORT_BATCHES, batch_id)
        if record is None:
            raise NotFoundError(f"Import batch {batch_id} not found")
        return mappers.import_batch_to_domain(record)

    def list_batches(self, account_id: Optional[int] = None) -> list[ImportBatch]:
        """List import batches, newest first.

        Args:
            account_id: Optional bank account to restrict the history to

        Returns:
            List of ImportBatch entities, including Failed batches
        """
        conditions = []
        if account_id is not None:
            conditions.append(Condition("bank_account_id", "eq", account_id))
        records = self.store.query(IMPORT_BATCHES, conditions, order_by=["-id"])
        return [mappers.import_batch_to_domain(r) for r in records]
