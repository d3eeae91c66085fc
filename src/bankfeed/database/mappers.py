"""Mapper functions to convert between store records and domain entities.

Store records are plain dictionaries keyed by column name. This layer
isolates the conversion logic, so column renames stay out of the services.
"""

from decimal import Decimal
from typing import Optional

from bankfeed.database.base import Record
from bankfeed.domain import entities as domain


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def account_to_domain(record: Record) -> domain.Account:
    """Convert an accounts record to a domain Account."""
    return domain.Account(
        id=record["id"],
        name=record["name"],
        account_type=record["account_type"],
        account_number=record.get("account_number"),
        is_active=bool(record.get("is_active", True)),
    )


def vendor_to_domain(record: Record) -> domain.Vendor:
    return domain.Vendor(id=record["id"], name=record["name"])


def customer_to_domain(record: Record) -> domain.Customer:
    return domain.Customer(id=record["id"], name=record["name"])


def class_to_domain(record: Record) -> domain.TrackingClass:
    return domain.TrackingClass(id=record["id"], name=record["name"])


def invoice_to_domain(record: Record, customer_name: Optional[str] = None) -> domain.OpenInvoice:
    """Convert an invoices record to an OpenInvoice projection."""
    return domain.OpenInvoice(
        id=record["id"],
        invoice_number=record["invoice_number"],
        customer_id=record.get("customer_id"),
        customer_name=customer_name,
        total_amount=_decimal(record["total_amount"]),
        amount_paid=_decimal(record.get("amount_paid")) or Decimal("0"),
        status=record["status"],
        due_date=record.get("due_date"),
    )


def transaction_to_domain(record: Record) -> domain.BankTransaction:
    """Convert a bank_transactions record to a domain BankTransaction."""
    return domain.BankTransaction(
        id=record["id"],
        source_type=domain.SourceType(record["source_type"]),
        source_name=record.get("source_name"),
        source_account_id=record["source_account_id"],
        transaction_date=record["transaction_date"],
        amount=_decimal(record["amount"]),
        description=record["description"],
        status=domain.TransactionStatus(record["status"]),
        post_date=record.get("post_date"),
        merchant=record.get("merchant"),
        original_category=record.get("original_category"),
        transaction_type=record.get("transaction_type"),
        check_number=record.get("check_number"),
        reference_number=record.get("reference_number"),
        bank_transaction_id=record.get("bank_transaction_id"),
        suggested_account_id=record.get("suggested_account_id"),
        suggested_category=record.get("suggested_category"),
        suggested_memo=record.get("suggested_memo"),
        confidence_score=record.get("confidence_score") or 0,
        approved_account_id=record.get("approved_account_id"),
        approved_category=record.get("approved_category"),
        approved_memo=record.get("approved_memo"),
        vendor_id=record.get("vendor_id"),
        customer_id=record.get("customer_id"),
        class_id=record.get("class_id"),
        project_id=record.get("project_id"),
        payee=record.get("payee"),
        is_personal=bool(record.get("is_personal")),
        journal_entry_id=record.get("journal_entry_id"),
        matched_payment_id=record.get("matched_payment_id"),
        matched_at=record.get("matched_at"),
        import_id=record.get("import_id"),
        created_at=record.get("created_at"),
    )


def draft_to_record(
    draft: domain.ParsedTransaction,
    account_id: int,
    source_name: Optional[str],
    import_id: Optional[int],
    source_type: domain.SourceType = domain.SourceType.BANK,
) -> Record:
    """Build the values of a new Pending bank_transactions record from a draft."""
    transaction_type = draft.transaction_type
    if not transaction_type:
        transaction_type = "Deposit" if draft.amount > 0 else "Withdrawal"
    return {
        "source_type": source_type.value,
        "source_name": source_name,
        "source_account_id": account_id,
        "transaction_date": draft.transaction_date,
        "post_date": draft.post_date,
        "amount": draft.amount,
        "description": draft.description,
        "merchant": draft.merchant,
        "original_category": draft.original_category,
        "transaction_type": transaction_type,
        "check_number": draft.check_number,
        "reference_number": draft.reference_number,
        "bank_transaction_id": draft.bank_transaction_id,
        "confidence_score": 0,
        "status": domain.TransactionStatus.PENDING.value,
        "import_id": import_id,
    }


def import_batch_to_domain(record: Record) -> domain.ImportBatch:
    """Convert an import_batches record to a domain ImportBatch."""
    return domain.ImportBatch(
        id=record["id"],
        bank_account_id=record["bank_account_id"],
        file_name=record.get("file_name"),
        file_type=domain.StatementFormat(record["file_type"]),
        transaction_count=record.get("transaction_count") or 0,
        status=domain.ImportStatus(record["status"]),
        matched_count=record.get("matched_count") or 0,
        duplicate_count=record.get("duplicate_count") or 0,
        skipped_count=record.get("skipped_count") or 0,
        error_message=record.get("error_message"),
        created_at=record.get("created_at"),
        completed_at=record.get("completed_at"),
    )


def rule_to_domain(record: Record) -> domain.BankRule:
    """Convert a bank_rules record to a domain BankRule."""
    direction = record.get("transaction_type")
    return domain.BankRule(
        id=record["id"],
        name=record["name"],
        match_field=domain.MatchField(record["match_field"]),
        match_type=domain.MatchType(record["match_type"]),
        match_value=record.get("match_value") or "",
        assignment=domain.RuleAssignment(
            account_id=record.get("assign_account_id"),
            vendor_id=record.get("assign_vendor_id"),
            customer_id=record.get("assign_customer_id"),
            class_id=record.get("assign_class_id"),
            memo=record.get("assign_memo"),
        ),
        bank_account_id=record.get("bank_account_id"),
        min_amount=_decimal(record.get("min_amount")),
        max_amount=_decimal(record.get("max_amount")),
        direction=domain.Direction(direction) if direction else None,
        priority=record.get("priority") or 0,
        is_enabled=bool(record.get("is_enabled", True)),
        created_at=record.get("created_at"),
    )


def rule_to_record(rule: domain.BankRule) -> Record:
    """Flatten a domain BankRule into bank_rules column values (without ID)."""
    return {
        "name": rule.name,
        "bank_account_id": rule.bank_account_id,
        "match_field": rule.match_field.value,
        "match_type": rule.match_type.value,
        "match_value": rule.match_value or "",
        "min_amount": rule.min_amount,
        "max_amount": rule.max_amount,
        "transaction_type": rule.direction.value if rule.direction else None,
        "assign_account_id": rule.assignment.account_id,
        "assign_vendor_id": rule.assignment.vendor_id,
        "assign_customer_id": rule.assignment.customer_id,
        "assign_class_id": rule.assignment.class_id,
        "assign_memo": rule.assignment.memo,
        "priority": rule.priority,
        "is_enabled": rule.is_enabled,
    }


def suggestion_to_domain(record: Record) -> domain.MatchSuggestion:
    """Convert a match_suggestions record to a domain MatchSuggestion."""
    return domain.MatchSuggestion(
        id=record["id"],
        bank_transaction_id=record["bank_transaction_id"],
        invoice_id=record["invoice_id"],
        suggested_amount=_decimal(record["suggested_amount"]),
        tier=domain.MatchTier(record["confidence"]),
        reason=record.get("match_reason"),
        status=domain.SuggestionStatus(record["status"]),
        accepted_at=record.get("accepted_at"),
        created_at=record.get("created_at"),
    )
