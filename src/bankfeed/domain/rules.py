"""Bank rule matching engine and rule service.

The matching functions are pure: rules, description and amount are passed
in explicitly and nothing is cached between calls. ``BankRuleService``
wraps them with validation, persistence and classification of stored
transactions.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from bankfeed.constants import (
    REGEX_SUBJECT_MAX_LENGTH,
    RULE_MATCH_CONFIDENCE,
    RULE_MATCH_VALUE_MAX_LENGTH,
    RULE_NAME_MAX_LENGTH,
    RULE_TEST_SAMPLE_SIZE,
)
from bankfeed.database import mappers
from bankfeed.database.base import BANK_RULES, BANK_TRANSACTIONS, Condition, RecordStore
from bankfeed.domain.collaborators import Directory
from bankfeed.domain.entities import (
    BankRule,
    BankTransaction,
    Direction,
    MatchField,
    MatchType,
    RuleAssignment,
    TransactionStatus,
)
from bankfeed.domain.errors import (
    NotFoundError,
    ValidationError,
    format_field_errors,
    rule_not_found,
)

logger = logging.getLogger(__name__)

_REPEAT_CHARS = "*+{"


def has_nested_quantifier(pattern: str) -> bool:
    """Check whether a repeated group contains a quantifier or alternation.

    Patterns such as ``(a+)+``, ``((a+))+`` or ``(a|aa)*`` can take
    exponential time on a near miss. The pattern is scanned once, tracking
    per open group whether anything inside it, at any depth, repeats or
    branches. Escapes and character classes are skipped.
    """
    # One flag per open group: does its body repeat or branch?
    groups: list[bool] = []
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            i += 1
            if i < length and pattern[i] == "^":
                i += 1
            if i < length and pattern[i] == "]":
                i += 1
            while i < length and pattern[i] != "]":
                i += 2 if pattern[i] == "\\" else 1
            i += 1
            continue
        if char == "(":
            groups.append(False)
            i += 1
            if i < length and pattern[i] == "?":
                # Group syntax such as (?: or (?P<name>, not a quantifier
                i += 1
            continue
        if char == ")":
            body_varies = groups.pop() if groups else False
            repeated = i + 1 < length and pattern[i + 1] in _REPEAT_CHARS
            if body_varies and repeated:
                return True
            if groups and (body_varies or repeated):
                groups[-1] = True
            i += 1
            continue
        if char in "*+?{|" and groups:
            groups[-1] = True
        i += 1
    return False


def _compile_pattern(pattern: str) -> Optional[re.Pattern]:
    if has_nested_quantifier(pattern):
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def _description_matches(rule: BankRule, description: str) -> bool:
    value = (rule.match_value or "").lower()
    subject = (description or "").lower()

    if rule.match_type == MatchType.CONTAINS:
        return value in subject
    if rule.match_type == MatchType.STARTS_WITH:
        return subject.startswith(value)
    if rule.match_type == MatchType.EQUALS:
        return subject == value

    pattern = _compile_pattern(rule.match_value or "")
    if pattern is None:
        return False
    return pattern.search((description or "")[:REGEX_SUBJECT_MAX_LENGTH]) is not None


def _amount_in_range(rule: BankRule, amount: Decimal) -> bool:
    magnitude = abs(amount)
    if rule.min_amount is not None and magnitude < rule.min_amount:
        return False
    if rule.max_amount is not None and magnitude > rule.max_amount:
        return False
    return True


def rule_matches(rule: BankRule, description: str, amount: Decimal) -> bool:
    """Check one rule against a description and signed amount.

    The direction filter is checked first, then the amount range (for
    Amount and Both rules), then the description (for Description and Both
    rules). A malformed or nested-quantifier regular expression never matches.
    """
    if rule.direction is not None and rule.direction != Direction.of(amount):
        return False
    if rule.match_field in (MatchField.AMOUNT, MatchField.BOTH):
        if not _amount_in_range(rule, amount):
            return False
    if rule.match_field in (MatchField.DESCRIPTION, MatchField.BOTH):
        if not _description_matches(rule, description):
            return False
    return True


@dataclass(frozen=True)
class RuleEvaluation:
    """Outcome of evaluating a rule set against one transaction."""

    rule: Optional[BankRule] = None

    @property
    def applied(self) -> bool:
        return self.rule is not None

    @property
    def assignment(self) -> Optional[RuleAssignment]:
        return self.rule.assignment if self.rule else None


def order_rules(rules: Iterable[BankRule], account_id: Optional[int] = None) -> list[BankRule]:
    """Return enabled rules in evaluation order.

    When account_id is given, rules scoped to another account are dropped.
    Higher priority comes first; equal priorities keep their input order.
    """
    candidates = [
        rule
        for rule in rules
        if rule.is_enabled
        and (account_id is None or rule.bank_account_id in (None, account_id))
    ]
    return sorted(candidates, key=lambda rule: -rule.priority)


def evaluate_rules(
    rules: Iterable[BankRule],
    description: str,
    amount: Decimal,
    account_id: Optional[int] = None,
) -> RuleEvaluation:
    """Find the first rule, in evaluation order, that matches."""
    for rule in order_rules(rules, account_id):
        if rule_matches(rule, description, amount):
            return RuleEvaluation(rule)
    return RuleEvaluation()


def validate_rule(
    rule: BankRule, other_rules: Iterable[BankRule], directory: Optional[Directory] = None
) -> dict[str, str]:
    """Collect field-level problems with a rule before it is saved.

    Args:
        rule: Candidate rule
        other_rules: Stored rules the name must not collide with
        directory: Optional directory used to check referenced IDs

    Returns:
        Mapping of field name to reason; empty when the rule is valid
    """
    errors = {}

    name = (rule.name or "").strip()
    if not name:
        errors["name"] = "is required"
    elif len(name) > RULE_NAME_MAX_LENGTH:
        errors["name"] = f"must be at most {RULE_NAME_MAX_LENGTH} characters"
    elif any(
        other.name.strip().lower() == name.lower() and other.id != rule.id for other in other_rules
    ):
        errors["name"] = f"a rule named '{name}' already exists"

    value = rule.match_value or ""
    if not value.strip() and rule.match_field != MatchField.AMOUNT:
        errors["match_value"] = "is required unless matching on amount"
    elif len(value) > RULE_MATCH_VALUE_MAX_LENGTH:
        errors["match_value"] = f"must be at most {RULE_MATCH_VALUE_MAX_LENGTH} characters"
    elif rule.match_type == MatchType.REGEX and value.strip():
        try:
            re.compile(value)
        except re.error as e:
            errors["match_value"] = f"invalid regular expression: {e}"
        else:
            if has_nested_quantifier(value):
                errors["match_value"] = "regular expression contains nested quantifiers"

    if rule.match_field in (MatchField.AMOUNT, MatchField.BOTH):
        if rule.min_amount is None and rule.max_amount is None:
            errors["amount"] = "at least one of min_amount or max_amount is required"
        elif (rule.min_amount is not None and rule.min_amount < 0) or (
            rule.max_amount is not None and rule.max_amount < 0
        ):
            errors["amount"] = "amount bounds must not be negative"
        elif (
            rule.min_amount is not None
            and rule.max_amount is not None
            and rule.min_amount > rule.max_amount
        ):
            errors["amount"] = "min_amount must not exceed max_amount"

    if rule.assignment.is_empty():
        errors["assignment"] = "assign at least one of account, vendor, customer or memo"

    if directory is not None:
        assignment = rule.assignment
        if assignment.account_id is not None and directory.get_account(assignment.account_id) is None:
            errors["account_id"] = f"account {assignment.account_id} does not exist"
        if assignment.vendor_id is not None and directory.get_vendor(assignment.vendor_id) is None:
            errors["vendor_id"] = f"vendor {assignment.vendor_id} does not exist"
        if (
            assignment.customer_id is not None
            and directory.get_customer(assignment.customer_id) is None
        ):
            errors["customer_id"] = f"customer {assignment.customer_id} does not exist"
        if assignment.class_id is not None and directory.get_class(assignment.class_id) is None:
            errors["class_id"] = f"class {assignment.class_id} does not exist"
        if rule.bank_account_id is not None and directory.get_account(rule.bank_account_id) is None:
            errors["bank_account_id"] = f"account {rule.bank_account_id} does not exist"

    return errors


def _coerce_enum(enum_cls, value, field_name: str, errors: dict[str, str]):
    if value is None or isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if member.value.lower() == str(value).strip().lower():
            return member
    choices = ", ".join(member.value for member in enum_cls)
    errors[field_name] = f"must be one of: {choices}"
    return None


@dataclass(frozen=True)
class ClassificationResult:
    """Counts from one classification pass."""

    classified: int = 0
    unmatched: int = 0


class BankRuleService:
    """Service for authoring bank rules and classifying transactions with them."""

    def __init__(self, store: RecordStore, directory: Optional[Directory] = None):
        """Initialize bank rule service.

        Args:
            store: RecordStore instance
            directory: Directory used for reference checks and account names
        """
        self.store = store
        self.directory = directory

    def build_rule(
        self,
        name: str,
        match_field: Union[str, MatchField] = MatchField.DESCRIPTION,
        match_type: Union[str, MatchType] = MatchType.CONTAINS,
        match_value: str = "",
        account_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        class_id: Optional[int] = None,
        memo: Optional[str] = None,
        bank_account_id: Optional[int] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        direction: Optional[Union[str, Direction]] = None,
        priority: int = 0,
        is_enabled: bool = True,
        rule_id: Optional[int] = None,
    ) -> BankRule:
        """Assemble an unsaved rule, converting enum names.

        Raises:
            ValidationError: If an enum name is not recognized
        """
        errors = {}
        field_value = _coerce_enum(MatchField, match_field, "match_field", errors)
        type_value = _coerce_enum(MatchType, match_type, "match_type", errors)
        direction_value = _coerce_enum(Direction, direction, "direction", errors)
        if errors:
            raise ValidationError(format_field_errors(errors), errors)

        return BankRule(
            id=rule_id,
            name=(name or "").strip(),
            match_field=field_value,
            match_type=type_value,
            match_value=match_value or "",
            assignment=RuleAssignment(
                account_id=account_id,
                vendor_id=vendor_id,
                customer_id=customer_id,
                class_id=class_id,
                memo=memo or None,
            ),
            bank_account_id=bank_account_id,
            min_amount=min_amount,
            max_amount=max_amount,
            direction=direction_value,
            priority=priority,
            is_enabled=is_enabled,
        )

    def _validate(self, rule: BankRule) -> None:
        errors = validate_rule(rule, self.list_rules(), self.directory)
        if errors:
            raise ValidationError(format_field_errors(errors), errors)

    def create_rule(self, **kwargs) -> BankRule:
        """Validate and save a new rule.

        Args:
            **kwargs: Rule fields as accepted by build_rule

        Returns:
            Saved BankRule

        Raises:
            ValidationError: If any field is invalid
        """
        rule = self.build_rule(**kwargs)
        self._validate(rule)
        record = self.store.create(BANK_RULES, mappers.rule_to_record(rule))
        logger.info("Created rule %d '%s'", record["id"], rule.name)
        return mappers.rule_to_domain(record)

    def update_rule(self, rule_id: int, **changes) -> BankRule:
        """Validate and save changes to an existing rule.

        Args:
            rule_id: Rule ID
            **changes: Rule fields as accepted by build_rule

        Returns:
            Updated BankRule

        Raises:
            NotFoundError: If the rule doesn't exist
            ValidationError: If the changed rule is invalid
        """
        current = self.get_rule(rule_id)
        fields = {
            "name": current.name,
            "match_field": current.match_field,
            "match_type": current.match_type,
            "match_value": current.match_value,
            "account_id": current.assignment.account_id,
            "vendor_id": current.assignment.vendor_id,
            "customer_id": current.assignment.customer_id,
            "class_id": current.assignment.class_id,
            "memo": current.assignment.memo,
            "bank_account_id": current.bank_account_id,
            "min_amount": current.min_amount,
            "max_amount": current.max_amount,
            "direction": current.direction,
            "priority": current.priority,
            "is_enabled": current.is_enabled,
        }
        fields.update(changes)
        rule = self.build_rule(rule_id=rule_id, **fields)
        self._validate(rule)
        record = self.store.update(BANK_RULES, rule_id, mappers.rule_to_record(rule))
        return mappers.rule_to_domain(record)

    def set_enabled(self, rule_id: int, enabled: bool) -> BankRule:
        """Enable or disable a rule."""
        self.get_rule(rule_id)
        record = self.store.update(BANK_RULES, rule_id, {"is_enabled": enabled})
        return mappers.rule_to_domain(record)

    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        self.get_rule(rule_id)
        self.store.delete(BANK_RULES, rule_id)

    def get_rule(self, rule_id: int) -> BankRule:
        """Get rule by ID.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        record = self.store.get(BANK_RULES, rule_id)
        if record is None:
            raise NotFoundError(rule_not_found(rule_id))
        return mappers.rule_to_domain(record)

    def list_rules(self, enabled_only: bool = False) -> list[BankRule]:
        """List rules in evaluation order (priority descending, then ID)."""
        conditions = [Condition("is_enabled", "eq", True)] if enabled_only else []
        records = self.store.query(BANK_RULES, conditions, order_by=["-priority"])
        return [mappers.rule_to_domain(r) for r in records]

    def test_rule(
        self, rule: Union[int, BankRule], sample_size: int = RULE_TEST_SAMPLE_SIZE
    ) -> list[BankTransaction]:
        """Preview which recent transactions a rule would match.

        The enabled flag and account scope are ignored and nothing is
        modified.

        Args:
            rule: Saved rule ID or an unsaved BankRule
            sample_size: Number of most recent transactions to check

        Returns:
            Matching transactions, most recent first
        """
        if not isinstance(rule, BankRule):
            rule = self.get_rule(rule)
        sample = self.store.query(
            BANK_TRANSACTIONS, order_by=["-transaction_date", "-id"], limit=sample_size
        )
        transactions = [mappers.transaction_to_domain(r) for r in sample]
        return [t for t in transactions if rule_matches(rule, t.description, t.amount)]

    def apply_rules(self, transaction_ids: Optional[Sequence[int]] = None) -> ClassificationResult:
        """Classify Pending transactions with the enabled rules.

        Args:
            transaction_ids: Optional IDs to restrict classification to

        Returns:
            ClassificationResult with classified and unmatched counts
        """
        conditions = [Condition("status", "eq", TransactionStatus.PENDING.value)]
        if transaction_ids is not None:
            if not transaction_ids:
                return ClassificationResult()
            conditions.append(Condition("id", "in", list(transaction_ids)))

        rules = self.list_rules(enabled_only=True)
        records = self.store.query(BANK_TRANSACTIONS, conditions)
        account_names = {}
        classified = 0
        unmatched = 0

        for record in records:
            transaction = mappers.transaction_to_domain(record)
            evaluation = evaluate_rules(
                rules, transaction.description, transaction.amount, transaction.source_account_id
            )
            if not evaluation.applied:
                unmatched += 1
                continue

            changes = self._suggestion_changes(transaction, evaluation.rule, account_names)
            self.store.update(BANK_TRANSACTIONS, transaction.id, changes)
            logger.debug("Rule '%s' classified transaction %d", evaluation.rule.name, transaction.id)
            classified += 1

        logger.info("Classification: %d classified, %d unmatched", classified, unmatched)
        return ClassificationResult(classified=classified, unmatched=unmatched)

    def _suggestion_changes(
        self, transaction: BankTransaction, rule: BankRule, account_names: dict[int, str]
    ) -> dict:
        assignment = rule.assignment
        changes = {
            "suggested_memo": assignment.memo or transaction.description,
            "confidence_score": RULE_MATCH_CONFIDENCE,
        }
        if assignment.account_id is not None:
            if assignment.account_id not in account_names and self.directory is not None:
                account = self.directory.get_account(assignment.account_id)
                account_names[assignment.account_id] = account.name if account else None
            changes["suggested_account_id"] = assignment.account_id
            changes["suggested_category"] = account_names.get(assignment.account_id)
        if assignment.vendor_id is not None:
            changes["vendor_id"] = assignment.vendor_id
        if assignment.customer_id is not None:
            changes["customer_id"] = assignment.customer_id
        if assignment.class_id is not None:
            changes["class_id"] = assignment.class_id
        return changes

