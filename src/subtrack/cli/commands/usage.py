"""Usage tracking commands."""

import click
from datetime import datetime, UTC

from subtrack.cli.error_handling import handle_domain_error
from subtrack.cli.subscription_resolution import resolve_subscription_or_exit
from subtrack.domain.errors import DomainError, StoreError
from subtrack.domain.usage import CsvTelemetrySource, UsageMatcher
from subtrack.utils.date_parser import parse_datetime

EPOCH = datetime.fromtimestamp(0, tz=UTC)


@click.group()
def usage_group():
    """Track subscription usage."""
    pass


@usage_group.command("record")
@click.argument("subscription", metavar="SUBSCRIPTION")
@click.option("--at", "at", default="now", show_default=True, help="When the subscription was used")
@click.pass_context
def record_usage(ctx, subscription: str, at: str):
    """Record that a subscription was used.

    SUBSCRIPTION can be a subscription ID or name. A time earlier than the
    recorded last use is ignored.

    Examples:
        subtrack usage record "Netflix"
        subtrack usage record "Netflix" --at "2 days ago"
    """
    service = ctx.obj["service"]
    subscription_id = resolve_subscription_or_exit(ctx, service, subscription)

    try:
        used_at = parse_datetime(at, clock=service.clock)
    except ValueError as e:
        click.echo(f"Error: Invalid timestamp format: {e}", err=True)
        ctx.exit(1)

    try:
        changed = service.record_usage(subscription_id, used_at)
    except (DomainError, StoreError) as e:
        handle_domain_error(ctx, e)

    if changed:
        click.echo(f"Recorded usage at {used_at.isoformat()}")
    else:
        click.echo("Usage not recorded: a later use is already on file")


@usage_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.pass_context
def import_usage(ctx, csv_file: str):
    """Import app usage from a CSV file.

    The file needs package_name and last_active_millis columns. Rows are
    matched to subscriptions by package name; unmatched rows are ignored.

    Examples:
        subtrack usage import usage.csv
    """
    service = ctx.obj["service"]
    source = CsvTelemetrySource(csv_file)
    matcher = UsageMatcher(service)

    try:
        now = service.clock()
        observations = source.query(EPOCH, now)
        recorded = matcher.match(observations, service.trackable(), EPOCH, now)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    except StoreError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Read {len(observations)} usage row(s)")
    click.echo(f"Updated last use for {recorded} subscription(s)")


@usage_group.command("stats")
@click.argument("subscription", metavar="SUBSCRIPTION")
@click.pass_context
def usage_stats(ctx, subscription: str):
    """Show usage statistics for a subscription."""
    service = ctx.obj["service"]
    subscription_id = resolve_subscription_or_exit(ctx, service, subscription)

    stats = service.usage_stats(subscription_id)
    if stats is None:
        click.echo(f"Error: Subscription {subscription_id} not found", err=True)
        ctx.exit(1)

    last_open = stats.last_open_date.isoformat() if stats.last_open_date else "Never"
    days = stats.days_since_last_use if stats.days_since_last_use >= 0 else "-"
    click.echo(f"Last used:       {last_open}")
    click.echo(f"Days since use:  {days}")
    click.echo(f"Frequency:       {stats.usage_frequency.value}")


@usage_group.command("track")
@click.argument("subscription", metavar="SUBSCRIPTION")
@click.option("--on/--off", "enabled", default=True, help="Enable or disable usage tracking")
@click.pass_context
def set_tracking(ctx, subscription: str, enabled: bool):
    """Turn usage tracking on or off for a subscription.

    Examples:
        subtrack usage track "Netflix" --off
    """
    service = ctx.obj["service"]
    subscription_id = resolve_subscription_or_exit(ctx, service, subscription)

    try:
        updated = service.set_usage_tracking(subscription_id, enabled)
    except (DomainError, StoreError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Usage tracking {'enabled' if enabled else 'disabled'} for '{updated.name}'")


def register_commands(cli):
    """Register usage commands with main CLI."""
    cli.add_command(usage_group, name="usage")
