"""Cancellation commands."""

import click

from subtrack.cli.commands.subscription import format_subscription_line
from subtrack.cli.error_handling import handle_domain_error
from subtrack.cli.subscription_resolution import resolve_many_or_exit
from subtrack.domain.errors import BatchOperationError, DomainError, StoreError
from subtrack.utils.date_parser import parse_datetime


def _plural(count: int) -> str:
    return f"{count} subscription{'s' if count != 1 else ''}"


def _report_batch_failure(ctx: click.Context, error: BatchOperationError) -> None:
    click.echo(f"Error: {error}", err=True)
    click.echo(f"Changed before the failure: {_plural(error.applied)}", err=True)
    ctx.exit(1)


@click.command("cancel")
@click.argument("subscriptions", nargs=-1, required=True, metavar="SUBSCRIPTION...")
@click.pass_context
def cancel_subscriptions(ctx, subscriptions: tuple[str, ...]):
    """Cancel subscriptions now.

    Each SUBSCRIPTION can be an ID or a name. Subscriptions that are already
    inactive are left as they are.

    Examples:
        subtrack cancel "Netflix"
        subtrack cancel "Netflix" "Hulu"
    """
    service = ctx.obj["service"]
    ids = resolve_many_or_exit(ctx, service, subscriptions)

    try:
        cancelled = service.cancel_now(ids)
    except BatchOperationError as e:
        _report_batch_failure(ctx, e)

    click.echo(f"Cancelled {_plural(cancelled)}")


@click.command("schedule-cancel")
@click.argument("subscriptions", nargs=-1, required=True, metavar="SUBSCRIPTION...")
@click.option(
    "--at",
    "at",
    required=True,
    help="When to cancel (timestamp like '2024-03-01 09:00' or relative like 'in 7 days')",
)
@click.pass_context
def schedule_cancellation(ctx, subscriptions: tuple[str, ...], at: str):
    """Schedule subscriptions to be cancelled later.

    The cancellation is applied by 'sweep-due' once the time has passed.

    Examples:
        subtrack schedule-cancel "Netflix" --at "in 30 days"
        subtrack schedule-cancel "Netflix" "Hulu" --at 2024-03-01
    """
    service = ctx.obj["service"]

    try:
        cancel_at = parse_datetime(at, clock=service.clock)
    except ValueError as e:
        click.echo(f"Error: Invalid timestamp format: {e}", err=True)
        ctx.exit(1)

    ids = resolve_many_or_exit(ctx, service, subscriptions)

    try:
        scheduled = service.schedule_cancellation(ids, cancel_at)
    except BatchOperationError as e:
        _report_batch_failure(ctx, e)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Scheduled cancellation of {_plural(scheduled)} at {cancel_at.isoformat()}")


@click.command("unschedule")
@click.argument("subscriptions", nargs=-1, required=True, metavar="SUBSCRIPTION...")
@click.pass_context
def unschedule_cancellation(ctx, subscriptions: tuple[str, ...]):
    """Clear scheduled cancellations.

    Examples:
        subtrack unschedule "Netflix"
    """
    service = ctx.obj["service"]
    ids = resolve_many_or_exit(ctx, service, subscriptions)

    try:
        cleared = service.unschedule_cancellation(ids)
    except BatchOperationError as e:
        _report_batch_failure(ctx, e)

    click.echo(f"Cleared scheduled cancellation for {_plural(cleared)}")


@click.command("due")
@click.option("--as-of", help="Reference time (defaults to now)")
@click.pass_context
def list_due(ctx, as_of: str | None):
    """List subscriptions whose scheduled cancellation is due."""
    service = ctx.obj["service"]

    reference = None
    if as_of is not None:
        try:
            reference = parse_datetime(as_of, clock=service.clock)
        except ValueError as e:
            click.echo(f"Error: Invalid timestamp format: {e}", err=True)
            ctx.exit(1)

    try:
        due = service.due_cancellations(reference)
    except StoreError as e:
        handle_domain_error(ctx, e)

    if not due:
        click.echo("No cancellations due.")
        return

    click.echo("\nDue cancellations:")
    click.echo("-" * 100)
    for sub in due:
        click.echo(format_subscription_line(sub))


@click.command("sweep-due")
@click.pass_context
def sweep_due(ctx):
    """Cancel every subscription whose scheduled cancellation is due."""
    service = ctx.obj["service"]

    try:
        cancelled = service.process_due_cancellations()
    except BatchOperationError as e:
        _report_batch_failure(ctx, e)
    except StoreError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Cancelled {_plural(cancelled)}")


def register_commands(cli):
    """Register cancellation commands with main CLI."""
    cli.add_command(cancel_subscriptions)
    cli.add_command(schedule_cancellation)
    cli.add_command(unschedule_cancellation)
    cli.add_command(list_due)
    cli.add_command(sweep_due)
