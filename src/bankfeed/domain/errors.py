"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic.

    ``errors`` maps a field name to the reason it was rejected.
    """

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.errors = dict(errors or {})


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidTransitionError(ConflictError):
    """A lifecycle transition is not allowed from the current status."""


class StoreError(DomainError):
    """The record store or a directory lookup failed."""


class PostingError(DomainError):
    """The ledger rejected a posting request."""


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing bank transaction."""
    return f"Transaction {transaction_id} not found"


def account_not_found(account_id: int) -> str:
    """Return message for missing directory account."""
    return f"Account {account_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing bank rule."""
    return f"Rule {rule_id} not found"


def suggestion_not_found(suggestion_id: int) -> str:
    """Return message for missing match suggestion."""
    return f"Match suggestion {suggestion_id} not found"


def invalid_transition(transaction_id: int, current: str, target: str) -> str:
    """Return message for a transition the state machine forbids."""
    return f"Transaction {transaction_id} is {current} and cannot become {target}"


def not_editable(transaction_id: int, current: str) -> str:
    """Return message for edits outside the Pending status."""
    return f"Transaction {transaction_id} is {current}; only Pending transactions can be edited"


def format_field_errors(errors: dict[str, str]) -> str:
    """Join field-level errors into one message."""
    return "; ".join(f"{field}: {reason}" for field, reason in errors.items())
