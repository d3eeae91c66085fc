"""Deposit-to-invoice matching heuristic and suggestion service."""

import logging
from datetime import datetime, UTC
from decimal import Decimal
from typing import Iterable, Optional

from bankfeed.constants import (
    AMOUNT_EPSILON,
    MAX_MATCH_CANDIDATES,
    PARTIAL_PAYMENT_TOLERANCE,
)
from bankfeed.database import mappers
from bankfeed.database.base import MATCH_SUGGESTIONS, Condition, RecordStore
from bankfeed.domain.collaborators import Directory, PaymentRecorder
from bankfeed.domain.entities import (
    BulkResult,
    ItemOutcome,
    MatchCandidate,
    MatchSuggestion,
    MatchTier,
    OpenInvoice,
    SuggestionStatus,
    TransactionStatus,
)
from bankfeed.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    invalid_transition,
    suggestion_not_found,
)
from bankfeed.domain.lifecycle import TransactionLifecycleService

logger = logging.getLogger(__name__)


def _score(amount: Decimal, description: str, invoice: OpenInvoice):
    """Return (tier, reason) for one invoice, or None when nothing matched."""
    balance = invoice.balance_due
    tier: Optional[MatchTier] = None
    reason = ""

    if abs(amount - balance) < AMOUNT_EPSILON:
        tier, reason = MatchTier.HIGH, "Exact amount match"
    elif abs(amount - invoice.total_amount) < AMOUNT_EPSILON:
        tier, reason = MatchTier.HIGH, "Matches invoice total"

    text = description.lower()
    if invoice.customer_name and invoice.customer_name.lower() in text:
        if tier == MatchTier.HIGH:
            reason += " + Customer name in description"
        else:
            tier, reason = MatchTier.MEDIUM, "Customer name found in description"

    if invoice.invoice_number and invoice.invoice_number.lower() in text:
        if reason:
            reason += " + Invoice number in description"
        else:
            reason = "Invoice number found in description"
        tier = MatchTier.HIGH

    if tier is None and 0 < amount < balance * PARTIAL_PAYMENT_TOLERANCE:
        tier, reason = MatchTier.LOW, "Possible partial payment"

    return (tier, reason) if tier is not None else None


def find_invoice_matches(
    deposit_amount: Decimal, description: str, invoices: Iterable[OpenInvoice]
) -> list[MatchCandidate]:
    """Rank open invoices a deposit might pay.

    Args:
        deposit_amount: Signed transaction amount; only deposits can match
        description: Bank description of the deposit
        invoices: Open invoices to consider

    Returns:
        At most three candidates ordered High, Medium, Low
    """
    if deposit_amount <= 0:
        return []

    candidates = []
    for invoice in invoices:
        balance = invoice.balance_due
        if balance <= 0:
            continue
        scored = _score(deposit_amount, description or "", invoice)
        if scored is None:
            continue
        tier, reason = scored
        candidates.append(
            MatchCandidate(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                customer_name=invoice.customer_name,
                balance_due=balance,
                suggested_amount=min(deposit_amount, balance),
                tier=tier,
                reason=reason,
            )
        )

    candidates.sort(key=lambda candidate: candidate.tier.rank)
    return candidates[:MAX_MATCH_CANDIDATES]


class InvoiceMatchService:
    """Service for suggesting, accepting and rejecting invoice matches."""

    def __init__(
        self,
        store: RecordStore,
        directory: Directory,
        payments: Optional[PaymentRecorder] = None,
    ):
        """Initialize invoice match service.

        Args:
            store: RecordStore instance
            directory: Directory providing open invoices
            payments: PaymentRecorder used when a suggestion is accepted
        """
        self.store = store
        self.directory = directory
        self.payments = payments
        self.lifecycle = TransactionLifecycleService(store, directory)

    def candidates_for(self, transaction_id: int) -> list[MatchCandidate]:
        """Compute candidates for a stored transaction without saving them.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        transaction = self.lifecycle.get_transaction(transaction_id)
        return find_invoice_matches(
            transaction.amount, transaction.description, self.directory.list_open_invoices()
        )

    def suggest(self, transaction_id: int) -> list[MatchSuggestion]:
        """Compute and store candidates for a transaction.

        Returns:
            Suggestions for the transaction that are still awaiting a decision
        """
        self.save_candidates(transaction_id, self.candidates_for(transaction_id))
        return self.list_suggestions(
            status=SuggestionStatus.SUGGESTED, transaction_id=transaction_id
        )

    def save_candidates(self, transaction_id: int, candidates: Iterable[MatchCandidate]) -> int:
        """Store candidates as suggestions, skipping pairs that already exist.

        Returns:
            Number of suggestions created
        """
        existing = {
            s.invoice_id for s in self.list_suggestions(transaction_id=transaction_id)
        }
        created = 0
        for candidate in candidates:
            if candidate.invoice_id in existing:
                continue
            self.store.create(
                MATCH_SUGGESTIONS,
                {
                    "bank_transaction_id": transaction_id,
                    "invoice_id": candidate.invoice_id,
                    "suggested_amount": candidate.suggested_amount,
                    "confidence": candidate.tier.value,
                    "match_reason": candidate.reason,
                    "status": SuggestionStatus.SUGGESTED.value,
                },
            )
            existing.add(candidate.invoice_id)
            created += 1
        if created:
            logger.info("Stored %d match suggestion(s) for transaction %d", created, transaction_id)
        return created

    def get_suggestion(self, suggestion_id: int) -> MatchSuggestion:
        """Get suggestion by ID.

        Raises:
            NotFoundError: If the suggestion doesn't exist
        """
        record = self.store.get(MATCH_SUGGESTIONS, suggestion_id)
        if record is None:
            raise NotFoundError(suggestion_not_found(suggestion_id))
        return mappers.suggestion_to_domain(record)

    def list_suggestions(
        self,
        status: Optional[SuggestionStatus] = None,
        transaction_id: Optional[int] = None,
    ) -> list[MatchSuggestion]:
        conditions = []
        if status is not None:
            conditions.append(Condition("status", "eq", SuggestionStatus(status).value))
        if transaction_id is not None:
            conditions.append(Condition("bank_transaction_id", "eq", transaction_id))
        records = self.store.query(MATCH_SUGGESTIONS, conditions, order_by=["bank_transaction_id"])
        suggestions = [mappers.suggestion_to_domain(r) for r in records]
        return sorted(suggestions, key=lambda s: (s.bank_transaction_id, s.tier.rank))

    def _require_open(self, suggestion: MatchSuggestion) -> None:
        if suggestion.status != SuggestionStatus.SUGGESTED:
            raise ConflictError(
                f"Match suggestion {suggestion.id} is already {suggestion.status.value}"
            )

    def accept(self, suggestion_id: int) -> MatchSuggestion:
        """Accept a suggestion: record the payment and settle the transaction.

        Other open suggestions for the same transaction are rejected.

        Raises:
            NotFoundError: If the suggestion or transaction doesn't exist
            ConflictError: If the suggestion was already decided
            InvalidTransitionError: If the transaction is not Pending
            ValidationError: If no payment recorder is configured
        """
        suggestion = self.get_suggestion(suggestion_id)
        self._require_open(suggestion)
        transaction = self.lifecycle.get_transaction(suggestion.bank_transaction_id)
        if transaction.status != TransactionStatus.PENDING:
            raise InvalidTransitionError(
                invalid_transition(
                    transaction.id, transaction.status.value, TransactionStatus.MATCHED.value
                )
            )
        if self.payments is None:
            raise ValidationError("No payment recorder is configured")

        payment_id = self.payments.record_payment(
            transaction, suggestion.invoice_id, suggestion.suggested_amount
        )
        self.lifecycle.match_to_invoice(transaction.id, payment_id)
        record = self.store.update(
            MATCH_SUGGESTIONS,
            suggestion_id,
            {"status": SuggestionStatus.ACCEPTED.value, "accepted_at": datetime.now(UTC)},
        )

        for sibling in self.list_suggestions(
            status=SuggestionStatus.SUGGESTED, transaction_id=transaction.id
        ):
            self.store.update(
                MATCH_SUGGESTIONS, sibling.id, {"status": SuggestionStatus.REJECTED.value}
            )

        logger.info(
            "Matched transaction %d to invoice %d (payment %d)",
            transaction.id,
            suggestion.invoice_id,
            payment_id,
        )
        return mappers.suggestion_to_domain(record)

    def reject(self, suggestion_id: int) -> MatchSuggestion:
        """Reject a suggestion.

        Raises:
            NotFoundError: If the suggestion doesn't exist
            ConflictError: If the suggestion was already decided
        """
        suggestion = self.get_suggestion(suggestion_id)
        self._require_open(suggestion)
        record = self.store.update(
            MATCH_SUGGESTIONS, suggestion_id, {"status": SuggestionStatus.REJECTED.value}
        )
        return mappers.suggestion_to_domain(record)

    def accept_high(self) -> BulkResult:
        """Accept every open High suggestion, best first per transaction."""
        outcomes = []
        for suggestion in self.list_suggestions(status=SuggestionStatus.SUGGESTED):
            if suggestion.tier != MatchTier.HIGH:
                continue
            # An earlier acceptance may have rejected this sibling already
            if self.get_suggestion(suggestion.id).status != SuggestionStatus.SUGGESTED:
                continue
            try:
                self.accept(suggestion.id)
            except (ValidationError, NotFoundError, ConflictError) as e:
                logger.warning("Suggestion %d: %s", suggestion.id, e)
                outcomes.append(ItemOutcome(suggestion.bank_transaction_id, False, str(e)))
            else:
                outcomes.append(ItemOutcome(suggestion.bank_transaction_id, True))
        return BulkResult(tuple(outcomes))
