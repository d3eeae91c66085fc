"""Shared pytest fixtures for bankfeed tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from bankfeed.database.base import BANK_TRANSACTIONS, CUSTOMERS, INVOICES
from bankfeed.database import mappers
from bankfeed.database.directory import StoreDirectory
from bankfeed.database.factories import create_sqlite_store
from bankfeed.database.ledger import StoreLedgerPoster
from bankfeed.database.payments import StorePaymentRecorder
from bankfeed.domain.accounts import AccountService
from bankfeed.domain.bank_import import ImportService
from bankfeed.domain.invoice_matching import InvoiceMatchService
from bankfeed.domain.lifecycle import TransactionLifecycleService
from bankfeed.domain.rules import BankRuleService
from bankfeed.domain.transactions import TransactionService


@pytest.fixture
def temp_db():
    """Create a temporary SQLite record store for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    store = create_sqlite_store(database_path=db_path)
    # Store the path for CLI tests that need it
    store.database_path = db_path
    store.connect()

    yield store

    store.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def directory(temp_db):
    return StoreDirectory(temp_db)


@pytest.fixture
def ledger(temp_db):
    return StoreLedgerPoster(temp_db)


@pytest.fixture
def payments(temp_db):
    return StorePaymentRecorder(temp_db)


@pytest.fixture
def account_service(temp_db, directory):
    return AccountService(temp_db, directory)


@pytest.fixture
def rule_service(temp_db, directory):
    return BankRuleService(temp_db, directory)


@pytest.fixture
def lifecycle_service(temp_db, directory, ledger):
    return TransactionLifecycleService(temp_db, directory, ledger)


@pytest.fixture
def match_service(temp_db, directory, payments):
    return InvoiceMatchService(temp_db, directory, payments)


@pytest.fixture
def import_service(temp_db, directory):
    return ImportService(temp_db, directory)


@pytest.fixture
def transaction_service(temp_db, directory):
    return TransactionService(temp_db, directory)


@pytest.fixture
def bank_account(account_service):
    """Create the bank account statements are imported into."""
    return account_service.create_account(name="Business Checking", account_type="Bank")


@pytest.fixture
def expense_account(account_service):
    """Create an expense account rules can assign."""
    return account_service.create_account(
        name="Office Supplies", account_type="Expense", account_number="6100"
    )


@pytest.fixture
def customer(temp_db):
    record = temp_db.create(CUSTOMERS, {"name": "Acme Corp"})
    return mappers.customer_to_domain(record)


@pytest.fixture
def open_invoice(temp_db, customer):
    """Create a Sent invoice INV-1002 with a 500.00 balance."""
    record = temp_db.create(
        INVOICES,
        {
            "invoice_number": "INV-1002",
            "customer_id": customer.id,
            "total_amount": Decimal("500.00"),
            "amount_paid": Decimal("0"),
            "status": "Sent",
            "due_date": date(2024, 3, 31),
        },
    )
    return mappers.invoice_to_domain(record, customer.name)


@pytest.fixture
def make_transaction(temp_db, bank_account):
    """Factory that stores a Pending bank transaction and returns it."""

    def _make(description="TEST", amount="-10.00", **overrides):
        values = {
            "source_type": "Bank",
            "source_name": bank_account.name,
            "source_account_id": bank_account.id,
            "transaction_date": date(2024, 3, 1),
            "amount": Decimal(amount),
            "description": description,
            "status": "Pending",
            "confidence_score": 0,
        }
        values.update(overrides)
        return mappers.transaction_to_domain(temp_db.create(BANK_TRANSACTIONS, values))

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
