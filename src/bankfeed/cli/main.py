"""Main CLI entry point."""

import click

from bankfeed.constants import DB_PATH_ENV_VAR, LOG_LEVEL_ENV_VAR
from bankfeed.database.directory import StoreDirectory
from bankfeed.database.factories import create_sqlite_store
from bankfeed.database.ledger import StoreLedgerPoster
from bankfeed.database.payments import StorePaymentRecorder
from bankfeed.environment import LogLevel, configure_logging

# Import and register all commands at module level
from bankfeed.cli.commands import (
    account,
    import_cmd,
    match,
    review,
    rules,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help=f"Path to database file (overrides {DB_PATH_ENV_VAR} environment variable)",
    envvar=DB_PATH_ENV_VAR,
)
@click.option(
    "--log-level",
    type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
    default=LogLevel.WARNING.value,
    show_default=True,
    help=f"Logging verbosity (overrides {LOG_LEVEL_ENV_VAR} environment variable)",
    envvar=LOG_LEVEL_ENV_VAR,
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str):
    """Bankfeed - bank statement reconciliation.

    Import bank and credit card statements, classify transactions with
    rules, match deposits to open invoices and post approved transactions
    to the ledger.
    """
    ctx.ensure_object(dict)

    # Open the store only when actually running a command (not for --help)
    if ctx.invoked_subcommand is not None:
        configure_logging(LogLevel(log_level.lower()))
        store = create_sqlite_store(database_path=db_path)
        store.connect()
        ctx.obj["store"] = store
        ctx.obj["directory"] = StoreDirectory(store)
        ctx.obj["ledger"] = StoreLedgerPoster(store)
        ctx.obj["payments"] = StorePaymentRecorder(store)
        ctx.call_on_close(store.disconnect)


# Register all commands
account.register_commands(cli)
import_cmd.register_commands(cli)
rules.register_commands(cli)
review.register_commands(cli)
match.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
