"""SQLAlchemy models for the bankfeed reference store."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Chart-of-accounts entry."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), unique=True, nullable=False)
    account_type = Column(String(50), nullable=False)
    account_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Vendor(Base):
    """Vendor directory entry."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)


class Customer(Base):
    """Customer directory entry."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)


class TrackingClass(Base):
    """Class (tracking category) directory entry."""

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)


class Invoice(Base):
    """Customer invoice."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    total_amount = Column(Numeric(19, 4), nullable=False)
    amount_paid = Column(Numeric(19, 4), default=0, nullable=False)
    status = Column(String(20), default="Sent", nullable=False)
    due_date = Column(Date, nullable=True)


class Payment(Base):
    """Customer payment applied to an invoice."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    payment_number = Column(String(50), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    bank_transaction_id = Column(Integer, nullable=True)
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(19, 4), nullable=False)
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class ImportBatch(Base):
    """Statement upload."""

    __tablename__ = "import_batches"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    file_name = Column(String(255), nullable=True)
    file_type = Column(String(20), nullable=False)
    transaction_count = Column(Integer, default=0, nullable=False)
    matched_count = Column(Integer, default=0, nullable=False)
    duplicate_count = Column(Integer, default=0, nullable=False)
    skipped_count = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="Processing", nullable=False)
    error_message = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)


class BankTransaction(Base):
    """Imported or manually entered bank movement."""

    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    source_type = Column(String(20), nullable=False)
    source_name = Column(String(100), nullable=True)
    source_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    transaction_date = Column(Date, nullable=False)
    post_date = Column(Date, nullable=True)
    amount = Column(Numeric(18, 2), nullable=False)
    description = Column(String(500), nullable=False)
    merchant = Column(String(200), nullable=True)
    original_category = Column(String(100), nullable=True)
    transaction_type = Column(String(50), nullable=True)
    check_number = Column(String(20), nullable=True)
    reference_number = Column(String(100), nullable=True)
    bank_transaction_id = Column(String(100), nullable=True, index=True)
    suggested_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    suggested_category = Column(String(100), nullable=True)
    suggested_memo = Column(String(500), nullable=True)
    confidence_score = Column(Integer, default=0, nullable=False)
    approved_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    approved_category = Column(String(100), nullable=True)
    approved_memo = Column(String(500), nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=True)
    project_id = Column(Integer, nullable=True)
    payee = Column(String(255), nullable=True)
    is_personal = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default="Pending", nullable=False, index=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    matched_payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    matched_at = Column(DateTime, nullable=True)
    import_id = Column(Integer, ForeignKey("import_batches.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class BankRule(Base):
    """User-authored classification rule."""

    __tablename__ = "bank_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    bank_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    match_field = Column(String(50), nullable=False)
    match_type = Column(String(50), nullable=False)
    match_value = Column(String(255), nullable=False)
    min_amount = Column(Numeric(19, 4), nullable=True)
    max_amount = Column(Numeric(19, 4), nullable=True)
    transaction_type = Column(String(20), nullable=True)
    assign_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    assign_vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    assign_customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    assign_class_id = Column(Integer, ForeignKey("classes.id"), nullable=True)
    assign_memo = Column(String(500), nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class MatchSuggestion(Base):
    """Suggested deposit-to-invoice match."""

    __tablename__ = "match_suggestions"

    id = Column(Integer, primary_key=True)
    bank_transaction_id = Column(Integer, ForeignKey("bank_transactions.id"), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    suggested_amount = Column(Numeric(19, 4), nullable=False)
    confidence = Column(String(20), default="Low", nullable=False)
    match_reason = Column(String(200), nullable=True)
    status = Column(String(20), default="Suggested", nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("bank_transaction_id", "invoice_id", name="uq_match_transaction_invoice"),
    )


class JournalEntry(Base):
    """Journal entry written by the reference ledger."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    reference = Column(String(100), nullable=True)
    entry_date = Column(Date, nullable=False)
    description = Column(String(500), nullable=True)
    idempotency_key = Column(String(64), nullable=True, index=True)
    bank_transaction_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class JournalLine(Base):
    """One debit or credit line of a journal entry."""

    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    debit = Column(Numeric(19, 4), default=0, nullable=False)
    credit = Column(Numeric(19, 4), default=0, nullable=False)
    description = Column(String(500), nullable=True)


ENTITY_MODELS = {
    model.__tablename__: model
    for model in (
        Account,
        Vendor,
        Customer,
        TrackingClass,
        Invoice,
        Payment,
        ImportBatch,
        BankTransaction,
        BankRule,
        MatchSuggestion,
        JournalEntry,
        JournalLine,
    )
}


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
