"""Bank rule commands."""

import click

from bankfeed.cli.account_resolution import resolve_account_or_exit
from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.constants import RULE_TEST_SAMPLE_SIZE
from bankfeed.domain.accounts import AccountService
from bankfeed.domain.entities import BankRule, Direction, MatchField, MatchType
from bankfeed.domain.errors import DomainError, ValidationError
from bankfeed.domain.rules import BankRuleService
from bankfeed.utils.amount_parser import parse_amount


def _rule_service(ctx) -> BankRuleService:
    return BankRuleService(ctx.obj["store"], ctx.obj["directory"])


def _format_rule(rule: BankRule) -> str:
    state = "on " if rule.is_enabled else "off"
    bounds = ""
    if rule.min_amount is not None or rule.max_amount is not None:
        low = rule.min_amount if rule.min_amount is not None else ""
        high = rule.max_amount if rule.max_amount is not None else ""
        bounds = f" [{low}..{high}]"
    direction = f" {rule.direction.value}" if rule.direction else ""
    return (
        f"ID: {rule.id:3d} | {state} | prio {rule.priority:3d} | {rule.name:20s} | "
        f"{rule.match_field.value} {rule.match_type.value} '{rule.match_value}'"
        f"{bounds}{direction}"
    )


@click.group()
def rule_group():
    """Manage bank rules."""
    pass


@rule_group.command("create")
@click.argument("name")
@click.option(
    "--field",
    "match_field",
    type=click.Choice([f.value for f in MatchField], case_sensitive=False),
    default=MatchField.DESCRIPTION.value,
    show_default=True,
    help="What the rule looks at",
)
@click.option(
    "--type",
    "match_type",
    type=click.Choice([t.value for t in MatchType], case_sensitive=False),
    default=MatchType.CONTAINS.value,
    show_default=True,
    help="How the description is compared",
)
@click.option("--value", "match_value", default="", help="Text or pattern to match")
@click.option("--min", "min_amount", help="Minimum absolute amount")
@click.option("--max", "max_amount", help="Maximum absolute amount")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in Direction], case_sensitive=False),
    help="Only match money out (Debit) or money in (Credit)",
)
@click.option("--bank-account", help="Only apply to this bank account (name or ID)")
@click.option("--account", "assign_account", help="Account to assign (name or ID)")
@click.option("--vendor-id", type=int, help="Vendor to assign")
@click.option("--customer-id", type=int, help="Customer to assign")
@click.option("--class-id", type=int, help="Class to assign")
@click.option("--memo", help="Memo to assign")
@click.option("--priority", type=int, default=0, show_default=True, help="Higher runs first")
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def create_rule(
    ctx,
    name: str,
    match_field: str,
    match_type: str,
    match_value: str,
    min_amount: str | None,
    max_amount: str | None,
    direction: str | None,
    bank_account: str | None,
    assign_account: str | None,
    vendor_id: int | None,
    customer_id: int | None,
    class_id: int | None,
    memo: str | None,
    priority: int,
    disabled: bool,
):
    """Create a bank rule.

    Examples:
        bankfeed rule create "Coffee" --value STARBUCKS --account "Meals" --direction Debit
        bankfeed rule create "Staples" --field Both --value STAPLES --min 0 --account 5
    """
    service = _rule_service(ctx)
    account_service = AccountService(ctx.obj["store"], ctx.obj["directory"])

    account_id = None
    if assign_account is not None:
        account_id = resolve_account_or_exit(ctx, account_service, assign_account)
    bank_account_id = None
    if bank_account is not None:
        bank_account_id = resolve_account_or_exit(ctx, account_service, bank_account)

    try:
        low = parse_amount(min_amount) if min_amount is not None else None
        high = parse_amount(max_amount) if max_amount is not None else None
    except ValueError as e:
        click.echo(f"Error: Invalid amount: {e}", err=True)
        ctx.exit(1)

    try:
        rule = service.create_rule(
            name=name,
            match_field=match_field,
            match_type=match_type,
            match_value=match_value,
            account_id=account_id,
            vendor_id=vendor_id,
            customer_id=customer_id,
            class_id=class_id,
            memo=memo,
            bank_account_id=bank_account_id,
            min_amount=low,
            max_amount=high,
            direction=direction,
            priority=priority,
            is_enabled=not disabled,
        )
    except ValidationError as e:
        click.echo("Error: Rule is invalid:", err=True)
        for field_name, reason in e.errors.items():
            click.echo(f"  {field_name}: {reason}", err=True)
        ctx.exit(1)
    except DomainError as e:
        handle_domain_error(ctx, e)
    else:
        click.echo(f"Created rule '{rule.name}' (ID: {rule.id})")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in evaluation order."""
    rules = _rule_service(ctx).list_rules()
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 80)
    for rule in rules:
        click.echo(_format_rule(rule))


@rule_group.command("test")
@click.argument("rule_id", type=int)
@click.option(
    "--sample",
    type=int,
    default=RULE_TEST_SAMPLE_SIZE,
    show_default=True,
    help="Number of most recent transactions to check",
)
@click.pass_context
def test_rule(ctx, rule_id: int, sample: int):
    """Show which recent transactions a rule would match, without changing them."""
    try:
        matches = _rule_service(ctx).test_rule(rule_id, sample_size=sample)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Rule {rule_id} matches {len(matches)} of the last {sample} transactions")
    for txn in matches:
        click.echo(f"  {txn.id:5d} | {txn.transaction_date} | {txn.amount:>12} | {txn.description}")


def _set_enabled(ctx, rule_id: int, enabled: bool) -> None:
    try:
        rule = _rule_service(ctx).set_enabled(rule_id, enabled)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Rule '{rule.name}' {'enabled' if enabled else 'disabled'}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Enable a rule."""
    _set_enabled(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a rule."""
    _set_enabled(ctx, rule_id, False)


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    try:
        _rule_service(ctx).delete_rule(rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted rule {rule_id}")


@rule_group.command("apply")
@click.argument("transaction_ids", nargs=-1, type=int)
@click.pass_context
def apply_rules(ctx, transaction_ids: tuple[int, ...]):
    """Classify Pending transactions with the enabled rules.

    Without TRANSACTION_IDS every Pending transaction is classified.
    """
    ids = list(transaction_ids) if transaction_ids else None
    result = _rule_service(ctx).apply_rules(ids)
    click.echo(f"Classified: {result.classified}, unmatched: {result.unmatched}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
