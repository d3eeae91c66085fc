"""Invoice match commands."""

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.entities import MatchSuggestion, SuggestionStatus
from bankfeed.domain.errors import DomainError
from bankfeed.domain.invoice_matching import InvoiceMatchService


def _match_service(ctx) -> InvoiceMatchService:
    return InvoiceMatchService(ctx.obj["store"], ctx.obj["directory"], ctx.obj["payments"])


def _format_suggestion(suggestion: MatchSuggestion) -> str:
    return (
        f"ID: {suggestion.id:3d} | txn {suggestion.bank_transaction_id:5d} | "
        f"invoice {suggestion.invoice_id:5d} | {suggestion.suggested_amount:>12} | "
        f"{suggestion.tier.value:6s} | {suggestion.status.value:9s} | {suggestion.reason or ''}"
    )


@click.group()
def match_group():
    """Match deposits to open invoices."""
    pass


@match_group.command("suggest")
@click.argument("transaction_id", type=int)
@click.pass_context
def suggest_matches(ctx, transaction_id: int):
    """Find and store invoice candidates for a deposit."""
    try:
        suggestions = _match_service(ctx).suggest(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not suggestions:
        click.echo(f"No invoice candidates for transaction {transaction_id}.")
        return
    for suggestion in suggestions:
        click.echo(_format_suggestion(suggestion))


@match_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in SuggestionStatus], case_sensitive=False),
    help="Only show suggestions with this status",
)
@click.pass_context
def list_matches(ctx, status: str | None):
    """List match suggestions."""
    status_value = None
    if status is not None:
        status_value = next(s for s in SuggestionStatus if s.value.lower() == status.lower())

    suggestions = _match_service(ctx).list_suggestions(status=status_value)
    if not suggestions:
        click.echo("No match suggestions found.")
        return
    for suggestion in suggestions:
        click.echo(_format_suggestion(suggestion))


@match_group.command("accept")
@click.argument("suggestion_id", type=int)
@click.pass_context
def accept_match(ctx, suggestion_id: int):
    """Accept a suggestion and record the payment."""
    try:
        suggestion = _match_service(ctx).accept(suggestion_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(
        f"Transaction {suggestion.bank_transaction_id} matched to invoice {suggestion.invoice_id}"
    )


@match_group.command("reject")
@click.argument("suggestion_id", type=int)
@click.pass_context
def reject_match(ctx, suggestion_id: int):
    """Reject a suggestion."""
    try:
        _match_service(ctx).reject(suggestion_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Rejected match suggestion {suggestion_id}")


@match_group.command("accept-high")
@click.pass_context
def accept_high(ctx):
    """Accept every open High confidence suggestion."""
    result = _match_service(ctx).accept_high()
    if not result.outcomes:
        click.echo("No High confidence suggestions to accept.")
        return
    for outcome in result.outcomes:
        if outcome.success:
            click.echo(f"✓ Transaction {outcome.transaction_id} matched")
        else:
            click.echo(f"✗ Transaction {outcome.transaction_id}: {outcome.error}")
    click.echo(f"\nResults: {result.succeeded} succeeded, {result.failed} failed")
    if result.failed:
        ctx.exit(1)


def register_commands(cli):
    """Register match commands with main CLI."""
    cli.add_command(match_group, name="match")
