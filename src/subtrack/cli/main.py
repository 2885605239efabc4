"""Main CLI entry point."""

import logging

import click
from subtrack.database.factories import create_sqlite_database
from subtrack.domain.errors import StoreError
from subtrack.domain.subscription import SubscriptionService

# Import and register all commands at module level
from subtrack.cli.commands import (
    subscription,
    cancel,
    usage,
    insights,
    data,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SUBTRACK_DB_PATH environment variable)",
    envvar="SUBTRACK_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level (overrides SUBTRACK_LOG_LEVEL environment variable)",
    envvar="SUBTRACK_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str):
    """Subtrack - Subscription tracking application.

    Track recurring subscriptions, record when you last used them, schedule
    cancellations and find the ones you are paying for without using.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        try:
            db.initialize_schema()
        except StoreError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["service"] = SubscriptionService(db)


# Register all commands
subscription.register_commands(cli)
cancel.register_commands(cli)
usage.register_commands(cli)
insights.register_commands(cli)
data.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
