"""Statement import commands."""

from pathlib import Path

import click

from bankfeed.cli.account_resolution import resolve_account_or_exit
from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.accounts import AccountService
from bankfeed.domain.bank_import import ImportService
from bankfeed.domain.entities import StatementFormat
from bankfeed.domain.errors import DomainError


@click.command("import")
@click.argument("statement_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Bank account name or ID")
@click.option(
    "--format",
    "statement_format",
    type=click.Choice([fmt.value for fmt in StatementFormat], case_sensitive=False),
    help="Statement format (detected from the file when omitted)",
)
@click.option("--preview", is_flag=True, help="Show what would be imported without saving")
@click.option("--no-classify", is_flag=True, help="Do not run bank rules on new transactions")
@click.option("--no-match", is_flag=True, help="Do not suggest invoice matches for deposits")
@click.pass_context
def import_statement(
    ctx,
    statement_file: str,
    account: str,
    statement_format: str | None,
    preview: bool,
    no_classify: bool,
    no_match: bool,
):
    """Import transactions from a bank statement file.

    Supports CSV, OFX, QFX and QBO files. Transactions whose bank
    transaction ID was already imported for the account are skipped.

    Examples:
        bankfeed import statement.csv --account "Business Checking"
        bankfeed import export.qfx --account 1 --preview
    """
    store = ctx.obj["store"]
    directory = ctx.obj["directory"]
    account_id = resolve_account_or_exit(ctx, AccountService(store, directory), account)
    service = ImportService(store, directory)

    path = Path(statement_file)
    try:
        result_preview = service.preview(
            path.read_bytes(), account_id, file_name=path.name, format_hint=statement_format
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if preview:
        click.echo(f"\nPreview of {path.name} ({result_preview.statement_format.value}):")
        for draft in result_preview.transactions:
            click.echo(
                f"  {draft.transaction_date} | {draft.amount:>12} | {draft.description}"
            )
        click.echo(f"  Would import: {len(result_preview.transactions)} transactions")
        click.echo(f"  Duplicates: {result_preview.duplicate_count}")
        click.echo(f"  Skipped: {len(result_preview.skipped)}")
        return

    try:
        result = service.commit(result_preview, classify=not no_classify, match=not no_match)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"\nImport complete (batch {result.batch_id}):")
    click.echo(f"  Imported: {result.imported} transactions")
    click.echo(f"  Duplicates: {result.duplicates}")
    click.echo(f"  Skipped: {result.skipped}")
    click.echo(f"  Classified: {result.classified}")
    click.echo(f"  Matched: {result.matched}")
    for skipped in result_preview.skipped:
        click.echo(f"    {skipped.location}: {skipped.reason}", err=True)


@click.command("import-history")
@click.option("--account", help="Only show imports into this bank account (name or ID)")
@click.pass_context
def import_history(ctx, account: str | None):
    """List past statement imports, newest first."""
    store = ctx.obj["store"]
    directory = ctx.obj["directory"]
    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(store, directory), account)

    batches = ImportService(store, directory).list_batches(account_id)
    if not batches:
        click.echo("No imports found.")
        return

    click.echo("\nImports:")
    click.echo("-" * 80)
    for batch in batches:
        created = batch.created_at.strftime("%Y-%m-%d %H:%M") if batch.created_at else ""
        click.echo(
            f"ID: {batch.id:3d} | {created:16s} | {batch.file_name or '':20s} | "
            f"{batch.file_type.value:4s} | {batch.status.value:10s} | "
            f"{batch.transaction_count} imported, {batch.matched_count} matched, "
            f"{batch.duplicate_count} duplicates, {batch.skipped_count} skipped"
        )
        if batch.error_message:
            click.echo(f"       Error: {batch.error_message}")


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_statement)
    cli.add_command(import_history)
