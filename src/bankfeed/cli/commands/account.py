"""Account management commands."""

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.accounts import AccountService
from bankfeed.domain.errors import DomainError


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--type", "account_type", default="Bank", show_default=True, help="Account type")
@click.option("--number", "account_number", help="Account number")
@click.pass_context
def create_account(ctx, name: str, account_type: str, account_number: str | None):
    """Create a new account.

    Bank and credit card accounts receive imported statements; other
    accounts (Expense, Income, ...) are classification targets for rules.

    Examples:
        bankfeed account create "Business Checking"
        bankfeed account create "Office Supplies" --type Expense --number 6100
    """
    service = AccountService(ctx.obj["store"], ctx.obj["directory"])

    try:
        created = service.create_account(
            name=name, account_type=account_type, account_number=account_number
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created account '{created.name}' (ID: {created.id})")


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List all accounts."""
    service = AccountService(ctx.obj["store"], ctx.obj["directory"])

    accounts = service.list_accounts()
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        number = acc.account_number or ""
        click.echo(f"ID: {acc.id:3d} | {acc.name:25s} | {acc.account_type:10s} | {number}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
