"""Tests for the bank transaction review lifecycle."""

import pytest
from decimal import Decimal

from bankfeed.database.base import JOURNAL_ENTRIES, JOURNAL_LINES, Condition
from bankfeed.domain.entities import PostingReceipt, TransactionStatus
from bankfeed.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    PostingError,
    ValidationError,
)
from bankfeed.domain.lifecycle import (
    TransactionLifecycleService,
    can_transition,
    idempotency_key,
)


@pytest.fixture
def suggested(make_transaction, expense_account):
    """Factory for Pending transactions that already carry a suggestion."""

    def _make(description="STAPLES STORE #12", amount="-124.99", **overrides):
        values = dict(
            suggested_account_id=expense_account.id,
            suggested_category=expense_account.name,
            suggested_memo=description,
            confidence_score=100,
        )
        values.update(overrides)
        return make_transaction(description, amount, **values)

    return _make


class TestTransitions:
    def test_pending_can_move_to_review_outcomes(self):
        for target in ("Approved", "Rejected", "Excluded", "Matched"):
            assert can_transition(TransactionStatus.PENDING, TransactionStatus(target))

    def test_only_approved_can_post(self):
        assert can_transition(TransactionStatus.APPROVED, TransactionStatus.POSTED)
        assert not can_transition(TransactionStatus.PENDING, TransactionStatus.POSTED)

    def test_terminal_statuses(self):
        for status in ("Posted", "Rejected", "Excluded", "Matched"):
            for target in TransactionStatus:
                assert not can_transition(TransactionStatus(status), target)

    def test_idempotency_key_ignores_order_and_repeats(self):
        assert idempotency_key([3, 1, 2]) == idempotency_key([1, 2, 3, 3])
        assert idempotency_key([1, 2]) != idempotency_key([1, 2, 3])


class TestApprove:
    """Tests for approving transactions."""

    def test_approve_copies_suggestion(self, lifecycle_service, suggested, expense_account):
        txn = suggested(suggested_memo="Printer paper")

        approved = lifecycle_service.approve(txn.id)

        assert approved.status == TransactionStatus.APPROVED
        assert approved.approved_account_id == expense_account.id
        assert approved.approved_category == "Office Supplies"
        assert approved.approved_memo == "Printer paper"

    def test_approve_without_suggestion(self, lifecycle_service, make_transaction):
        txn = make_transaction("UNKNOWN MERCHANT")

        with pytest.raises(ValidationError) as exc_info:
            lifecycle_service.approve(txn.id)

        assert "needs manual categorization" in str(exc_info.value)
        assert lifecycle_service.get_transaction(txn.id).status == TransactionStatus.PENDING

    def test_approve_twice_is_invalid(self, lifecycle_service, suggested):
        txn = suggested()
        lifecycle_service.approve(txn.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle_service.approve(txn.id)

        assert str(exc_info.value) == f"Transaction {txn.id} is Approved and cannot become Approved"

    def test_approve_missing(self, lifecycle_service):
        with pytest.raises(NotFoundError):
            lifecycle_service.approve(999)

    def test_bulk_approve_reports_each_failure(
        self, lifecycle_service, suggested, make_transaction
    ):
        """Test a mixed batch where exactly one item needs manual categorization."""
        first = suggested()
        uncategorized = make_transaction("MYSTERY")
        second = suggested("STARBUCKS #1234", "-5.40")

        result = lifecycle_service.bulk_approve([first.id, uncategorized.id, second.id])

        assert result.succeeded == 2
        assert result.failed == 1
        (failure,) = result.failures
        assert failure.transaction_id == uncategorized.id
        assert "needs manual categorization" in failure.error
        assert lifecycle_service.get_transaction(first.id).status == TransactionStatus.APPROVED
        assert lifecycle_service.get_transaction(second.id).status == TransactionStatus.APPROVED

    def test_bulk_approve_reports_missing_ids(self, lifecycle_service, suggested):
        txn = suggested()
        result = lifecycle_service.bulk_approve([txn.id, 404])
        assert [o.success for o in result.outcomes] == [True, False]

    def test_approve_high_confidence(self, lifecycle_service, suggested):
        confident = suggested()
        unsure = suggested("COSTCO", "-80.00", confidence_score=40)

        result = lifecycle_service.approve_high_confidence()

        assert [o.transaction_id for o in result.outcomes] == [confident.id]
        assert lifecycle_service.get_transaction(unsure.id).status == TransactionStatus.PENDING

    def test_approve_high_confidence_custom_threshold(self, lifecycle_service, suggested):
        suggested(confidence_score=40)
        assert lifecycle_service.approve_high_confidence(threshold=30).succeeded == 1


class TestRejectExclude:
    def test_reject(self, lifecycle_service, make_transaction):
        txn = make_transaction()
        assert lifecycle_service.reject(txn.id).status == TransactionStatus.REJECTED

    def test_exclude(self, lifecycle_service, make_transaction):
        txn = make_transaction()
        assert lifecycle_service.exclude(txn.id).status == TransactionStatus.EXCLUDED

    def test_rejected_cannot_be_excluded(self, lifecycle_service, make_transaction):
        txn = make_transaction()
        lifecycle_service.reject(txn.id)
        with pytest.raises(InvalidTransitionError):
            lifecycle_service.exclude(txn.id)

    def test_bulk_reject_and_exclude(self, lifecycle_service, make_transaction):
        first = make_transaction()
        second = make_transaction()

        assert lifecycle_service.bulk_reject([first.id]).succeeded == 1
        result = lifecycle_service.bulk_exclude([first.id, second.id])

        assert [o.success for o in result.outcomes] == [False, True]


class TestEdit:
    """Tests for overriding suggestions."""

    def test_edit_account_sets_category(self, lifecycle_service, make_transaction, expense_account):
        txn = make_transaction()

        edited = lifecycle_service.edit(txn.id, account_id=expense_account.id, memo="Toner")

        assert edited.suggested_account_id == expense_account.id
        assert edited.suggested_category == "Office Supplies"
        assert edited.suggested_memo == "Toner"

    def test_edit_other_fields(self, lifecycle_service, make_transaction):
        txn = make_transaction()

        edited = lifecycle_service.edit(txn.id, is_personal=True, payee="Corner Store")

        assert edited.is_personal is True
        assert edited.payee == "Corner Store"
        assert edited.suggested_account_id is None

    def test_edit_unknown_account(self, lifecycle_service, make_transaction):
        txn = make_transaction()
        with pytest.raises(ValidationError) as exc_info:
            lifecycle_service.edit(txn.id, account_id=999)
        assert "account_id" in exc_info.value.errors

    def test_edit_without_changes(self, lifecycle_service, make_transaction):
        txn = make_transaction()
        assert lifecycle_service.edit(txn.id) == txn

    def test_edit_only_while_pending(self, lifecycle_service, suggested):
        txn = suggested()
        lifecycle_service.approve(txn.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle_service.edit(txn.id, memo="Too late")

        assert "only Pending transactions can be edited" in str(exc_info.value)


class TestPost:
    """Tests for posting to the ledger."""

    def test_post_writes_balanced_entries(self, temp_db, lifecycle_service, suggested, bank_account):
        txn = suggested()
        lifecycle_service.approve(txn.id)

        receipt = lifecycle_service.post([txn.id])

        assert receipt.count == 1
        posted = lifecycle_service.get_transaction(txn.id)
        assert posted.status == TransactionStatus.POSTED
        assert posted.journal_entry_id == receipt.journal_entry_ids[txn.id]

        lines = temp_db.query(
            JOURNAL_LINES, [Condition("journal_entry_id", "eq", posted.journal_entry_id)]
        )
        assert sum(line["debit"] for line in lines) == sum(line["credit"] for line in lines)
        debit_line = next(line for line in lines if line["debit"] > 0)
        # An outflow debits the expense account and credits the bank
        assert debit_line["account_id"] == txn.suggested_account_id
        assert debit_line["debit"] == Decimal("124.99")

    def test_post_deposit_debits_bank(
        self, temp_db, lifecycle_service, suggested, bank_account
    ):
        txn = suggested("CLIENT PAYMENT", "300.00")
        lifecycle_service.approve(txn.id)

        receipt = lifecycle_service.post()

        lines = temp_db.query(
            JOURNAL_LINES, [Condition("journal_entry_id", "eq", receipt.journal_entry_ids[txn.id])]
        )
        debit_line = next(line for line in lines if line["debit"] > 0)
        assert debit_line["account_id"] == bank_account.id

    def test_post_defaults_to_all_approved(self, lifecycle_service, suggested):
        approved = [suggested(), suggested("STARBUCKS", "-5.40")]
        pending = suggested("COSTCO", "-80.00")
        for txn in approved:
            lifecycle_service.approve(txn.id)

        receipt = lifecycle_service.post()

        assert receipt.count == 2
        assert set(receipt.journal_entry_ids) == {t.id for t in approved}
        assert lifecycle_service.get_transaction(pending.id).status == TransactionStatus.PENDING

    def test_post_nothing(self, lifecycle_service):
        receipt = lifecycle_service.post([])
        assert receipt.count == 0
        assert receipt.journal_entry_ids == {}

    def test_post_requires_approved(self, temp_db, lifecycle_service, suggested):
        approved = suggested()
        pending = suggested("STARBUCKS", "-5.40")
        lifecycle_service.approve(approved.id)

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.post([approved.id, pending.id])

        assert lifecycle_service.get_transaction(approved.id).status == TransactionStatus.APPROVED
        assert temp_db.count(JOURNAL_ENTRIES) == 0

    def test_post_without_ledger(self, temp_db, directory, suggested):
        service = TransactionLifecycleService(temp_db, directory)
        txn = suggested()
        service.approve(txn.id)

        with pytest.raises(PostingError):
            service.post([txn.id])

        assert service.get_transaction(txn.id).status == TransactionStatus.APPROVED

    def test_ledger_refusal_changes_nothing(self, temp_db, directory, suggested):
        class RefusingLedger:
            def post(self, transaction_ids, idempotency_key):
                raise PostingError("Ledger is closed for the period")

        service = TransactionLifecycleService(temp_db, directory, RefusingLedger())
        txn = suggested()
        service.approve(txn.id)

        with pytest.raises(PostingError):
            service.post([txn.id])

        assert service.get_transaction(txn.id).status == TransactionStatus.APPROVED

    def test_receipt_missing_journal_entry_leaves_approved(self, temp_db, directory, suggested):
        class ForgetfulLedger:
            def post(self, transaction_ids, idempotency_key):
                return PostingReceipt(count=1, journal_entry_ids={})

        service = TransactionLifecycleService(temp_db, directory, ForgetfulLedger())
        txn = suggested()
        service.approve(txn.id)

        with pytest.raises(PostingError) as exc_info:
            service.post([txn.id])

        assert f"no journal entry for transaction(s) {txn.id}" in str(exc_info.value)
        stored = service.get_transaction(txn.id)
        assert stored.status == TransactionStatus.APPROVED
        assert stored.journal_entry_id is None

    def test_receipt_count_mismatch_leaves_approved(self, temp_db, directory, suggested):
        class MiscountingLedger:
            def post(self, transaction_ids, idempotency_key):
                return PostingReceipt(
                    count=len(transaction_ids) + 1,
                    journal_entry_ids={i: 100 + i for i in transaction_ids},
                )

        service = TransactionLifecycleService(temp_db, directory, MiscountingLedger())
        txn = suggested()
        service.approve(txn.id)

        with pytest.raises(PostingError):
            service.post([txn.id])

        assert service.get_transaction(txn.id).status == TransactionStatus.APPROVED

    def test_repeated_ids_post_once(self, temp_db, lifecycle_service, suggested):
        txn = suggested()
        lifecycle_service.approve(txn.id)

        receipt = lifecycle_service.post([txn.id, txn.id])

        assert receipt.count == 1
        assert temp_db.count(JOURNAL_ENTRIES) == 1

    def test_posted_is_terminal(self, lifecycle_service, suggested):
        txn = suggested()
        lifecycle_service.approve(txn.id)
        lifecycle_service.post([txn.id])

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.post([txn.id])
        with pytest.raises(InvalidTransitionError):
            lifecycle_service.reject(txn.id)
