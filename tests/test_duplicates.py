"""Tests for duplicate detection on import."""

from datetime import date
from decimal import Decimal

from bankfeed.domain.duplicates import DuplicateFilter, filter_duplicates
from bankfeed.domain.entities import ParsedTransaction


def draft(description, amount, bank_id=None):
    return ParsedTransaction(
        transaction_date=date(2024, 3, 1),
        description=description,
        amount=Decimal(amount),
        bank_transaction_id=bank_id,
    )


def test_stored_identifier_is_dropped(temp_db, bank_account, make_transaction):
    """Test that a draft whose identifier is already stored is dropped."""
    make_transaction("STAPLES STORE #12", "-124.99", bank_transaction_id="TX1002")
    drafts = [
        draft("STARBUCKS #1234", "-5.40", "TX1001"),
        draft("STAPLES STORE #12", "-124.99", "TX1002"),
    ]

    result = filter_duplicates(temp_db, drafts, bank_account.id)

    assert result.transactions == [drafts[0]]
    assert result.duplicate_count == 1
    assert result.duplicate_ids == ["TX1002"]


def test_reimport_yields_no_survivors(temp_db, bank_account, make_transaction):
    drafts = [draft("A", "-1.00", "X1"), draft("B", "-2.00", "X2")]
    for d in drafts:
        make_transaction(d.description, str(d.amount), bank_transaction_id=d.bank_transaction_id)

    result = filter_duplicates(temp_db, drafts, bank_account.id)

    assert result.transactions == []
    assert result.duplicate_count == 2


def test_drafts_without_identifier_always_survive(temp_db, bank_account, make_transaction):
    make_transaction("CASH DEPOSIT", "100.00")
    drafts = [draft("CASH DEPOSIT", "100.00"), draft("CASH DEPOSIT", "100.00")]

    result = filter_duplicates(temp_db, drafts, bank_account.id)

    assert result.transactions == drafts
    assert result.duplicate_count == 0


def test_identifiers_are_scoped_to_account(
    temp_db, account_service, bank_account, make_transaction
):
    """Test that the same identifier on another account is not a duplicate."""
    savings = account_service.create_account(name="Savings", account_type="Bank")
    make_transaction("INTEREST", "1.25", bank_transaction_id="INT-1")

    result = filter_duplicates(temp_db, [draft("INTEREST", "1.25", "INT-1")], savings.id)

    assert len(result.transactions) == 1


def test_order_is_preserved(temp_db, bank_account, make_transaction):
    make_transaction("B", "-2.00", bank_transaction_id="X2")
    drafts = [draft("A", "-1.00", "X1"), draft("B", "-2.00", "X2"), draft("C", "-3.00", "X3")]

    result = DuplicateFilter(temp_db).filter(drafts, bank_account.id)

    assert [d.description for d in result.transactions] == ["A", "C"]


def test_known_bank_ids(temp_db, bank_account, make_transaction):
    make_transaction("A", "-1.00", bank_transaction_id="X1")
    make_transaction("B", "-2.00")

    assert DuplicateFilter(temp_db).known_bank_ids(bank_account.id) == {"X1"}
