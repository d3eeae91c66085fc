"""Domain model entities for bankfeed.

These are pure data classes representing reconciliation concepts,
independent of the record store schema. Services receive and return these
types; the database layer converts store records into them.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional


@enum.unique
class TransactionStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    POSTED = "Posted"
    REJECTED = "Rejected"
    EXCLUDED = "Excluded"
    MATCHED = "Matched"


@enum.unique
class SourceType(str, enum.Enum):
    BANK = "Bank"
    CREDIT_CARD = "CreditCard"
    MANUAL = "Manual"


@enum.unique
class StatementFormat(str, enum.Enum):
    CSV = "CSV"
    OFX = "OFX"
    QFX = "QFX"
    QBO = "QBO"


@enum.unique
class ImportStatus(str, enum.Enum):
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


@enum.unique
class MatchField(str, enum.Enum):
    DESCRIPTION = "Description"
    AMOUNT = "Amount"
    BOTH = "Both"


@enum.unique
class MatchType(str, enum.Enum):
    CONTAINS = "Contains"
    STARTS_WITH = "StartsWith"
    EQUALS = "Equals"
    REGEX = "Regex"


@enum.unique
class Direction(str, enum.Enum):
    DEBIT = "Debit"
    CREDIT = "Credit"

    @classmethod
    def of(cls, amount: Decimal) -> "Direction":
        """Outflows are debits; zero and inflows are credits."""
        return cls.DEBIT if amount < 0 else cls.CREDIT


@enum.unique
class MatchTier(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {MatchTier.HIGH: 0, MatchTier.MEDIUM: 1, MatchTier.LOW: 2}


@enum.unique
class SuggestionStatus(str, enum.Enum):
    SUGGESTED = "Suggested"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts entry from the directory."""

    id: int
    name: str
    account_type: str
    account_number: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Vendor:
    id: int
    name: str


@dataclass(frozen=True)
class Customer:
    id: int
    name: str


@dataclass(frozen=True)
class TrackingClass:
    id: int
    name: str


@dataclass(frozen=True)
class OpenInvoice:
    """Invoice projection used by the matching heuristic."""

    id: int
    invoice_number: str
    customer_id: Optional[int]
    customer_name: Optional[str]
    total_amount: Decimal
    amount_paid: Decimal
    status: str
    due_date: Optional[date] = None

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.amount_paid


@dataclass(frozen=True)
class ParsedTransaction:
    """Normalized transaction draft produced by the statement parser."""

    transaction_date: date
    description: str
    amount: Decimal
    post_date: Optional[date] = None
    transaction_type: Optional[str] = None
    check_number: Optional[str] = None
    reference_number: Optional[str] = None
    bank_transaction_id: Optional[str] = None
    merchant: Optional[str] = None
    original_category: Optional[str] = None


@dataclass(frozen=True)
class SkippedRecord:
    """A statement row or block the parser could not normalize."""

    location: str
    reason: str


@dataclass(frozen=True)
class BankTransaction:
    """Bank transaction domain entity."""

    id: int
    source_type: SourceType
    source_name: Optional[str]
    source_account_id: int
    transaction_date: date
    amount: Decimal
    description: str
    status: TransactionStatus
    post_date: Optional[date] = None
    merchant: Optional[str] = None
    original_category: Optional[str] = None
    transaction_type: Optional[str] = None
    check_number: Optional[str] = None
    reference_number: Optional[str] = None
    bank_transaction_id: Optional[str] = None
    suggested_account_id: Optional[int] = None
    suggested_category: Optional[str] = None
    suggested_memo: Optional[str] = None
    confidence_score: int = 0
    approved_account_id: Optional[int] = None
    approved_category: Optional[str] = None
    approved_memo: Optional[str] = None
    vendor_id: Optional[int] = None
    customer_id: Optional[int] = None
    class_id: Optional[int] = None
    project_id: Optional[int] = None
    payee: Optional[str] = None
    is_personal: bool = False
    journal_entry_id: Optional[int] = None
    matched_payment_id: Optional[int] = None
    matched_at: Optional[datetime] = None
    import_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def direction(self) -> Direction:
        return Direction.of(self.amount)

    @property
    def is_deposit(self) -> bool:
        return self.amount > 0


@dataclass(frozen=True)
class ImportBatch:
    """One statement upload and its completion counts."""

    id: int
    bank_account_id: int
    file_name: Optional[str]
    file_type: StatementFormat
    transaction_count: int
    status: ImportStatus
    matched_count: int = 0
    duplicate_count: int = 0
    skipped_count: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class RuleAssignment:
    """Classification targets a rule applies to the transactions it matches."""

    account_id: Optional[int] = None
    vendor_id: Optional[int] = None
    customer_id: Optional[int] = None
    class_id: Optional[int] = None
    memo: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.account_id is None
            and self.vendor_id is None
            and self.customer_id is None
            and not self.memo
        )


@dataclass(frozen=True)
class BankRule:
    """User-authored classification rule."""

    id: Optional[int]
    name: str
    match_field: MatchField
    match_type: MatchType
    match_value: str
    assignment: RuleAssignment = field(default_factory=RuleAssignment)
    bank_account_id: Optional[int] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    direction: Optional[Direction] = None
    priority: int = 0
    is_enabled: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class MatchCandidate:
    """Proposed pairing of one deposit with one open invoice."""

    invoice_id: int
    invoice_number: str
    customer_name: Optional[str]
    balance_due: Decimal
    suggested_amount: Decimal
    tier: MatchTier
    reason: str


@dataclass(frozen=True)
class MatchSuggestion:
    """A persisted match candidate awaiting a decision."""

    id: int
    bank_transaction_id: int
    invoice_id: int
    suggested_amount: Decimal
    tier: MatchTier
    reason: Optional[str]
    status: SuggestionStatus
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class PostingReceipt:
    """Ledger acknowledgement: posted count and journal entry per transaction."""

    count: int
    journal_entry_ids: dict[int, int]


@dataclass(frozen=True)
class ItemOutcome:
    """Result of one item within a bulk operation."""

    transaction_id: int
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class BulkResult:
    """Per-item outcomes of a bulk operation."""

    outcomes: tuple[ItemOutcome, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def failures(self) -> list[ItemOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]
