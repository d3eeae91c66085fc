"""Tests for the statement import service."""

import pytest
from decimal import Decimal

from bankfeed.database.base import BANK_TRANSACTIONS, IMPORT_BATCHES, MATCH_SUGGESTIONS
from bankfeed.domain.bank_import import format_from_file_name
from bankfeed.domain.entities import (
    ImportStatus,
    MatchTier,
    SourceType,
    StatementFormat,
    TransactionStatus,
)
from bankfeed.domain.errors import NotFoundError, StoreError


@pytest.fixture
def checking_csv(fixtures_dir):
    return (fixtures_dir / "checking.csv").read_bytes()


def test_format_from_file_name():
    assert format_from_file_name("march.QFX") == StatementFormat.QFX
    assert format_from_file_name("export.csv") == StatementFormat.CSV
    assert format_from_file_name("notes.txt") is None
    assert format_from_file_name(None) is None


class TestPreview:
    """Tests for the preview stage."""

    def test_preview_writes_nothing(
        self, temp_db, import_service, transaction_service, bank_account, checking_csv
    ):
        preview = import_service.preview(checking_csv, bank_account.id, "checking.csv")

        assert preview.account_name == "Business Checking"
        assert preview.statement_format == StatementFormat.CSV
        assert len(preview.transactions) == 3
        assert preview.duplicate_count == 0
        assert transaction_service.list_transactions() == []
        assert temp_db.count(IMPORT_BATCHES) == 0

    def test_preview_reports_skipped_rows(self, import_service, bank_account, fixtures_dir):
        content = (fixtures_dir / "debit_credit.csv").read_text()

        preview = import_service.preview(content, bank_account.id)

        assert len(preview.transactions) == 3
        assert len(preview.skipped) == 3

    def test_file_extension_selects_format(self, import_service, bank_account, fixtures_dir):
        content = (fixtures_dir / "statement.qfx").read_text()
        preview = import_service.preview(content, bank_account.id, "statement.qfx")
        assert preview.statement_format == StatementFormat.QFX

    def test_unknown_account(self, import_service, checking_csv):
        with pytest.raises(NotFoundError) as exc_info:
            import_service.preview(checking_csv, 999)
        assert str(exc_info.value) == "Account 999 not found"


class TestCommit:
    """Tests for committing an import."""

    def test_commit_persists_pending_transactions(
        self, import_service, transaction_service, bank_account, checking_csv
    ):
        result = import_service.import_statement(checking_csv, bank_account.id, "checking.csv")

        assert result.imported == 3
        assert result.duplicates == 0
        assert result.skipped == 0

        stored = transaction_service.list_transactions(import_id=result.batch_id)
        assert {t.bank_transaction_id for t in stored} == {"TX1001", "TX1002", "TX1003"}
        for txn in stored:
            assert txn.status == TransactionStatus.PENDING
            assert txn.source_type == SourceType.BANK
            assert txn.source_name == "Business Checking"
            assert txn.source_account_id == bank_account.id

        deposit = next(t for t in stored if t.bank_transaction_id == "TX1003")
        assert deposit.transaction_type == "Deposit"
        assert deposit.amount == Decimal("500.00")

    def test_batch_records_counts(self, import_service, bank_account, fixtures_dir):
        content = (fixtures_dir / "debit_credit.csv").read_text()

        result = import_service.import_statement(content, bank_account.id, "debit_credit.csv")
        batch = import_service.get_batch(result.batch_id)

        assert batch.status == ImportStatus.COMPLETED
        assert batch.file_name == "debit_credit.csv"
        assert batch.file_type == StatementFormat.CSV
        assert batch.transaction_count == 3
        assert batch.skipped_count == 3
        assert batch.completed_at is not None

    def test_reimport_is_all_duplicates(
        self, import_service, transaction_service, bank_account, checking_csv
    ):
        import_service.import_statement(checking_csv, bank_account.id)

        result = import_service.import_statement(checking_csv, bank_account.id)

        assert result.imported == 0
        assert result.duplicates == 3
        assert import_service.get_batch(result.batch_id).duplicate_count == 3
        assert len(transaction_service.list_transactions()) == 3

    def test_commit_classifies_with_rules(
        self, import_service, rule_service, transaction_service, bank_account, expense_account,
        checking_csv,
    ):
        rule_service.create_rule(
            name="Staples",
            match_field="Both",
            match_value="STAPLES",
            min_amount=Decimal("0"),
            direction="Debit",
            account_id=expense_account.id,
        )

        result = import_service.import_statement(checking_csv, bank_account.id)

        assert result.classified == 1
        staples = next(
            t for t in transaction_service.list_transactions() if t.bank_transaction_id == "TX1002"
        )
        assert staples.suggested_account_id == expense_account.id
        assert staples.confidence_score == 100

    def test_commit_without_classification(
        self, import_service, rule_service, bank_account, expense_account, checking_csv
    ):
        rule_service.create_rule(
            name="Staples", match_value="STAPLES", account_id=expense_account.id
        )
        result = import_service.import_statement(checking_csv, bank_account.id, classify=False)
        assert result.classified == 0

    def test_commit_suggests_invoice_matches(
        self, import_service, match_service, bank_account, open_invoice, checking_csv
    ):
        result = import_service.import_statement(checking_csv, bank_account.id)

        assert result.matched == 1
        assert import_service.get_batch(result.batch_id).matched_count == 1
        (suggestion,) = match_service.list_suggestions()
        assert suggestion.invoice_id == open_invoice.id
        assert suggestion.tier == MatchTier.HIGH

    def test_commit_without_matching(
        self, import_service, match_service, bank_account, open_invoice, checking_csv
    ):
        result = import_service.import_statement(checking_csv, bank_account.id, match=False)

        assert result.matched == 0
        assert match_service.list_suggestions() == []

    def test_failure_marks_batch_failed(
        self, monkeypatch, import_service, bank_account, checking_csv
    ):
        def broken_apply_rules(transaction_ids=None):
            raise StoreError("disk full")

        monkeypatch.setattr(import_service.rule_service, "apply_rules", broken_apply_rules)
        preview = import_service.preview(checking_csv, bank_account.id)

        with pytest.raises(StoreError):
            import_service.commit(preview)

        (batch,) = import_service.store.query(IMPORT_BATCHES)
        assert batch["status"] == ImportStatus.FAILED.value
        assert batch["error_message"] == "disk full"
        assert import_service.store.count(BANK_TRANSACTIONS) == 0

    def test_failed_batch_can_be_imported_again(
        self, monkeypatch, import_service, bank_account, checking_csv
    ):
        def broken_apply_rules(transaction_ids=None):
            raise StoreError("disk full")

        monkeypatch.setattr(import_service.rule_service, "apply_rules", broken_apply_rules)
        with pytest.raises(StoreError):
            import_service.import_statement(checking_csv, bank_account.id)
        monkeypatch.undo()

        preview = import_service.preview(checking_csv, bank_account.id)
        assert len(preview.transactions) == 3
        assert preview.duplicate_count == 0

        result = import_service.commit(preview)
        assert result.imported == 3
        assert import_service.store.count(BANK_TRANSACTIONS) == 3

    def test_unexpected_error_marks_batch_failed(
        self, monkeypatch, import_service, bank_account, checking_csv
    ):
        def broken_suggest(deposits):
            raise RuntimeError("matcher crashed")

        monkeypatch.setattr(import_service, "_suggest_matches", broken_suggest)
        preview = import_service.preview(checking_csv, bank_account.id)

        with pytest.raises(RuntimeError):
            import_service.commit(preview)

        (batch,) = import_service.list_batches()
        assert batch.status == ImportStatus.FAILED
        assert batch.error_message == "matcher crashed"
        assert import_service.store.count(BANK_TRANSACTIONS) == 0
        assert import_service.store.count(MATCH_SUGGESTIONS) == 0

    def test_list_batches_newest_first(
        self, import_service, account_service, bank_account, checking_csv, fixtures_dir
    ):
        savings = account_service.create_account(name="Savings")
        first = import_service.import_statement(checking_csv, bank_account.id, "checking.csv")
        second = import_service.import_statement(
            (fixtures_dir / "statement.ofx").read_bytes(), savings.id, "statement.ofx"
        )

        batches = import_service.list_batches()
        assert [b.id for b in batches] == [second.batch_id, first.batch_id]
        assert batches[1].file_name == "checking.csv"
        assert batches[1].status == ImportStatus.COMPLETED
        assert batches[1].transaction_count == 3

        (only,) = import_service.list_batches(account_id=savings.id)
        assert only.id == second.batch_id
        assert only.file_type == StatementFormat.OFX

    def test_list_batches_empty(self, import_service):
        assert import_service.list_batches() == []

    def test_get_missing_batch(self, import_service):
        with pytest.raises(NotFoundError):
            import_service.get_batch(42)
