"""Abstract record store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

# Entity names understood by every store implementation
ACCOUNTS = "accounts"
VENDORS = "vendors"
CUSTOMERS = "customers"
CLASSES = "classes"
INVOICES = "invoices"
PAYMENTS = "payments"
IMPORT_BATCHES = "import_batches"
BANK_TRANSACTIONS = "bank_transactions"
BANK_RULES = "bank_rules"
MATCH_SUGGESTIONS = "match_suggestions"
JOURNAL_ENTRIES = "journal_entries"
JOURNAL_LINES = "journal_lines"

OPERATORS = frozenset(
    {"eq", "ne", "lt", "le", "gt", "ge", "in", "not_in", "is_null", "not_null"}
)


@dataclass(frozen=True)
class Condition:
    """One predicate of a filter expression; conditions in a query are ANDed."""

    field: str
    op: str = "eq"
    value: Any = None

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown filter operator '{self.op}'")


Record = dict[str, Any]


class RecordStore(ABC):
    """Generic create/read/update/delete access by entity name.

    Records are plain dictionaries keyed by field name; every record has an
    integer ``id`` assigned on creation.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the store."""
        pass

    @abstractmethod
    def query(
        self,
        entity: str,
        conditions: Sequence[Condition] = (),
        order_by: Sequence[str] = (),
        limit: Optional[int] = None,
    ) -> list[Record]:
        """Return records matching all conditions.

        Args:
            entity: Entity name
            conditions: Predicates, ANDed together
            order_by: Field names; a leading "-" sorts descending
            limit: Optional maximum number of records
        """
        pass

    @abstractmethod
    def get(self, entity: str, record_id: int) -> Optional[Record]:
        """Get one record by ID."""
        pass

    @abstractmethod
    def create(self, entity: str, values: Record) -> Record:
        """Create a record. Returns the stored record including its ID."""
        pass

    @abstractmethod
    def update(self, entity: str, record_id: int, changes: Record) -> Record:
        """Apply a partial update. Returns the updated record."""
        pass

    @abstractmethod
    def delete(self, entity: str, record_id: int) -> None:
        """Delete a record by ID."""
        pass

    def count(self, entity: str, conditions: Sequence[Condition] = ()) -> int:
        """Count records matching all conditions."""
        return len(self.query(entity, conditions))
