"""Transaction review commands."""

import click

from bankfeed.cli.account_resolution import resolve_account_or_exit
from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.constants import HIGH_CONFIDENCE_THRESHOLD
from bankfeed.domain.accounts import AccountService
from bankfeed.domain.entities import BankTransaction, BulkResult, TransactionStatus
from bankfeed.domain.errors import DomainError
from bankfeed.domain.lifecycle import TransactionLifecycleService
from bankfeed.domain.transactions import TransactionService
from bankfeed.utils.amount_parser import parse_amount
from bankfeed.utils.date_parser import parse_date


def _lifecycle(ctx) -> TransactionLifecycleService:
    return TransactionLifecycleService(ctx.obj["store"], ctx.obj["directory"], ctx.obj["ledger"])


def _unique(ids: tuple[int, ...]) -> list[int]:
    """Remove duplicates while preserving order."""
    return list(dict.fromkeys(ids))


def _report_bulk(ctx, verb: str, result: BulkResult) -> None:
    for outcome in result.outcomes:
        if outcome.success:
            click.echo(f"✓ Transaction {outcome.transaction_id} {verb}")
        else:
            click.echo(f"✗ Transaction {outcome.transaction_id}: {outcome.error}")
    click.echo(f"\nResults: {result.succeeded} succeeded, {result.failed} failed")
    if result.failed:
        ctx.exit(1)


def _format_transaction(txn: BankTransaction) -> str:
    category = txn.approved_category or txn.suggested_category or ""
    return (
        f"{txn.id:5d} | {txn.transaction_date} | {txn.amount:>12} | {txn.status.value:8s} | "
        f"{txn.confidence_score:3d} | {category:20s} | {txn.description}"
    )


@click.group()
def txn_group():
    """Review bank transactions."""
    pass


@txn_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TransactionStatus], case_sensitive=False),
    help="Only show transactions with this status",
)
@click.option("--account", help="Bank account name or ID")
@click.option("--limit", type=int, help="Maximum number of transactions")
@click.pass_context
def list_transactions(ctx, status: str | None, account: str | None, limit: int | None):
    """List bank transactions, newest first."""
    store = ctx.obj["store"]
    directory = ctx.obj["directory"]

    account_id = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, AccountService(store, directory), account)

    status_value = None
    if status is not None:
        status_value = next(s for s in TransactionStatus if s.value.lower() == status.lower())

    transactions = TransactionService(store, directory).list_transactions(
        status=status_value, account_id=account_id, limit=limit
    )
    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"{'ID':>5s} | {'Date':10s} | {'Amount':>12s} | {'Status':8s} | "
               f"{'Cnf':3s} | {'Category':20s} | Description")
    click.echo("-" * 100)
    for txn in transactions:
        click.echo(_format_transaction(txn))


@txn_group.command("add")
@click.option("--account", required=True, help="Bank account name or ID")
@click.option("--date", "txn_date", required=True, help="Transaction date (YYYY-MM-DD)")
@click.option("--amount", required=True, help="Signed amount (e.g., -42.50 for money out)")
@click.option("--description", required=True, help="Transaction description")
@click.option("--reference", help="Reference number")
@click.pass_context
def add_transaction(
    ctx, account: str, txn_date: str, amount: str, description: str, reference: str | None
):
    """Record a transaction manually."""
    store = ctx.obj["store"]
    directory = ctx.obj["directory"]
    account_id = resolve_account_or_exit(ctx, AccountService(store, directory), account)

    try:
        parsed_date = parse_date(txn_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        parsed_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        txn = TransactionService(store, directory).create_manual_transaction(
            account_id=account_id,
            transaction_date=parsed_date,
            amount=parsed_amount,
            description=description,
            reference_number=reference,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created transaction {txn.id}")


@txn_group.command("delete")
@click.argument("transaction_id", type=int)
@click.pass_context
def delete_transaction(ctx, transaction_id: int):
    """Delete a transaction that has not been posted."""
    service = TransactionService(ctx.obj["store"], ctx.obj["directory"])
    try:
        service.delete_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted transaction {transaction_id}")


@txn_group.command("approve")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.pass_context
def approve_transactions(ctx, transaction_ids: tuple[int, ...]):
    """Approve transactions with their suggested account."""
    result = _lifecycle(ctx).bulk_approve(_unique(transaction_ids))
    _report_bulk(ctx, "approved", result)


@txn_group.command("reject")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.pass_context
def reject_transactions(ctx, transaction_ids: tuple[int, ...]):
    """Reject transactions."""
    result = _lifecycle(ctx).bulk_reject(_unique(transaction_ids))
    _report_bulk(ctx, "rejected", result)


@txn_group.command("exclude")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.pass_context
def exclude_transactions(ctx, transaction_ids: tuple[int, ...]):
    """Exclude transactions from the books."""
    result = _lifecycle(ctx).bulk_exclude(_unique(transaction_ids))
    _report_bulk(ctx, "excluded", result)


@txn_group.command("edit")
@click.argument("transaction_id", type=int)
@click.option("--account", help="Suggested account (name or ID)")
@click.option("--memo", help="Suggested memo")
@click.option("--personal/--business", "is_personal", default=None, help="Personal flag")
@click.option("--vendor-id", type=int, help="Vendor link")
@click.option("--customer-id", type=int, help="Customer link")
@click.option("--class-id", type=int, help="Class link")
@click.option("--payee", help="Payee name")
@click.pass_context
def edit_transaction(
    ctx,
    transaction_id: int,
    account: str | None,
    memo: str | None,
    is_personal: bool | None,
    vendor_id: int | None,
    customer_id: int | None,
    class_id: int | None,
    payee: str | None,
):
    """Change the suggested classification of a Pending transaction."""
    store = ctx.obj["store"]
    directory = ctx.obj["directory"]

    account_id = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, AccountService(store, directory), account)

    try:
        txn = _lifecycle(ctx).edit(
            transaction_id,
            account_id=account_id,
            memo=memo,
            is_personal=is_personal,
            vendor_id=vendor_id,
            customer_id=customer_id,
            class_id=class_id,
            payee=payee,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Transaction {txn.id} updated")


@txn_group.command("approve-confident")
@click.option(
    "--threshold",
    type=click.IntRange(0, 100),
    default=HIGH_CONFIDENCE_THRESHOLD,
    show_default=True,
    help="Minimum confidence score",
)
@click.pass_context
def approve_confident(ctx, threshold: int):
    """Approve every Pending transaction at or above the confidence threshold."""
    result = _lifecycle(ctx).approve_high_confidence(threshold)
    if not result.outcomes:
        click.echo("No transactions qualify.")
        return
    _report_bulk(ctx, "approved", result)


@txn_group.command("post")
@click.argument("transaction_ids", nargs=-1, type=int)
@click.pass_context
def post_transactions(ctx, transaction_ids: tuple[int, ...]):
    """Post Approved transactions to the ledger.

    Without TRANSACTION_IDS every Approved transaction is posted.
    """
    ids = _unique(transaction_ids) if transaction_ids else None
    try:
        receipt = _lifecycle(ctx).post(ids)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Posted {receipt.count} transaction(s)")


def register_commands(cli):
    """Register transaction review commands with main CLI."""
    cli.add_command(txn_group, name="txn")
