"""Data management commands."""

import click
from pathlib import Path

from subtrack.cli.error_handling import handle_domain_error
from subtrack.domain.errors import DomainError, StoreError


@click.command("export")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to this file instead of stdout")
@click.pass_context
def export_data(ctx, output: str | None):
    """Export all subscriptions as JSON.

    Examples:
        subtrack export > backup.json
        subtrack export --output backup.json
    """
    service = ctx.obj["service"]

    try:
        data = service.export_subscriptions()
    except StoreError as e:
        handle_domain_error(ctx, e)

    if output is None:
        click.echo(data)
        return

    Path(output).write_text(data + "\n", encoding="utf-8")
    click.echo(f"Exported subscriptions to {output}")


@click.command("import")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_data(ctx, json_file: str):
    """Import subscriptions from a JSON export.

    Subscriptions with an ID already on file are overwritten. Nothing is
    imported if any entry is invalid.

    Examples:
        subtrack import backup.json
    """
    service = ctx.obj["service"]
    data = Path(json_file).read_text(encoding="utf-8")

    try:
        imported = service.import_subscriptions(data)
    except (DomainError, StoreError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Imported {imported} subscription(s)")


@click.command("cleanup")
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=90,
    show_default=True,
    help="Only remove inactive subscriptions not updated for this many days",
)
@click.pass_context
def cleanup(ctx, older_than_days: int):
    """Remove old inactive subscriptions."""
    service = ctx.obj["service"]

    try:
        removed = service.cleanup_inactive(older_than_days)
    except StoreError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Removed {removed} inactive subscription(s)")


def register_commands(cli):
    """Register data commands with main CLI."""
    cli.add_command(export_data)
    cli.add_command(import_data)
    cli.add_command(cleanup)
