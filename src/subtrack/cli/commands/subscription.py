"""Subscription management commands."""

import click
from decimal import Decimal

from subtrack.cli.error_handling import handle_domain_error
from subtrack.cli.subscription_resolution import resolve_subscription_or_exit
from subtrack.domain.entities import BillingCycle, Subscription, SubscriptionCategory
from subtrack.domain.errors import DomainError, StoreError
from subtrack.utils.amount_parser import parse_price
from subtrack.utils.date_parser import parse_date, parse_datetime

CATEGORY_CHOICES = [category.name for category in SubscriptionCategory]
CYCLE_CHOICES = [cycle.name for cycle in BillingCycle]


def format_subscription_line(sub: Subscription) -> str:
    """One-line listing of a subscription."""
    status = "" if sub.is_active else " [inactive]"
    if sub.is_cancellation_pending:
        status = f" [cancels {sub.scheduled_cancellation_date:%Y-%m-%d %H:%M} UTC]"
    return (
        f"{sub.id} | {sub.name:20s} | ${sub.monthly_price:,.2f} {sub.billing_cycle.label:11s} | "
        f"{sub.category.label:18s} | Next: {sub.next_billing_date}{status}"
    )


@click.command("add")
@click.argument("name")
@click.option("--price", required=True, help="Price charged per billing cycle (e.g., 9.99 or $9.99)")
@click.option(
    "--cycle",
    type=click.Choice(CYCLE_CHOICES, case_sensitive=False),
    default=BillingCycle.MONTHLY.name,
    show_default=True,
    help="Billing cycle",
)
@click.option(
    "--category",
    type=click.Choice(CATEGORY_CHOICES, case_sensitive=False),
    default=SubscriptionCategory.MISCELLANEOUS.name,
    show_default=True,
    help="Subscription category",
)
@click.option(
    "--next-billing",
    required=True,
    help="Next billing date (YYYY-MM-DD or relative like 'tomorrow', 'next month')",
)
@click.option("--description", help="Description")
@click.option("--website", help="Website URL")
@click.option("--cancellation-url", help="URL of the provider's cancellation page")
@click.option("--package", "package_name", help="App package name used for usage tracking")
@click.option("--notes", help="Notes")
@click.option("--no-tracking", is_flag=True, help="Disable usage tracking")
@click.option("--cancel-at", help="Schedule a cancellation (timestamp or relative like 'in 30 days')")
@click.pass_context
def add_subscription(
    ctx,
    name: str,
    price: str,
    cycle: str,
    category: str,
    next_billing: str,
    description: str | None,
    website: str | None,
    cancellation_url: str | None,
    package_name: str | None,
    notes: str | None,
    no_tracking: bool,
    cancel_at: str | None,
):
    """Add a subscription.

    Examples:
        subtrack add "Netflix" --price 15.49 --category VIDEO_STREAMING --next-billing 2024-02-01
        subtrack add "Gym" --price 120 --cycle QUARTERLY --next-billing "next month"
        subtrack add "Spotify" --price 9.99 --next-billing tomorrow --package com.spotify.music
    """
    service = ctx.obj["service"]

    try:
        monthly_price = parse_price(price)
    except ValueError as e:
        click.echo(f"Error: Invalid price format: {e}", err=True)
        ctx.exit(1)

    try:
        next_billing_date = parse_date(next_billing)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    scheduled = None
    if cancel_at is not None:
        try:
            scheduled = parse_datetime(cancel_at, clock=service.clock)
        except ValueError as e:
            click.echo(f"Error: Invalid timestamp format: {e}", err=True)
            ctx.exit(1)

    subscription = Subscription(
        name=name,
        category=SubscriptionCategory[category.upper()],
        monthly_price=monthly_price,
        billing_cycle=BillingCycle[cycle.upper()],
        next_billing_date=next_billing_date,
        description=description,
        website_url=website,
        cancellation_url=cancellation_url,
        package_name=package_name,
        notes=notes,
        usage_tracking_enabled=not no_tracking,
        scheduled_cancellation_date=scheduled,
    )

    try:
        created = service.create(subscription)
    except (DomainError, StoreError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created subscription '{created.name}' (ID: {created.id})")
    click.echo(f"  Price: ${created.monthly_price:,.2f} {created.billing_cycle.label}")
    click.echo(f"  Category: {created.category.label}")
    click.echo(f"  Next billing: {created.next_billing_date}")
    if created.scheduled_cancellation_date is not None:
        click.echo(f"  Cancellation scheduled: {created.scheduled_cancellation_date.isoformat()}")


@click.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include inactive subscriptions")
@click.option(
    "--category",
    type=click.Choice(CATEGORY_CHOICES, case_sensitive=False),
    help="Only subscriptions in this category",
)
@click.option("--search", help="Only subscriptions whose name or description contains this text")
@click.option("--min-price", help="Minimum price per billing cycle")
@click.option("--max-price", help="Maximum price per billing cycle")
@click.pass_context
def list_subscriptions(
    ctx,
    show_all: bool,
    category: str | None,
    search: str | None,
    min_price: str | None,
    max_price: str | None,
):
    """List subscriptions.

    Filters only match active subscriptions; --all lists inactive ones too
    when no filter is given.

    Examples:
        subtrack list
        subtrack list --category MUSIC
        subtrack list --search net --max-price 20
    """
    service = ctx.obj["service"]

    try:
        low = parse_price(min_price) if min_price is not None else None
        high = parse_price(max_price) if max_price is not None else None
    except ValueError as e:
        click.echo(f"Error: Invalid price format: {e}", err=True)
        ctx.exit(1)

    wanted_category = SubscriptionCategory[category.upper()] if category else None

    try:
        if search is not None:
            subscriptions = service.search(search)
        elif wanted_category is not None:
            subscriptions = service.by_category(wanted_category)
        elif low is not None and high is not None:
            subscriptions = service.by_price_range(low, high)
        elif low is not None or high is not None:
            subscriptions = service.list_active()
        else:
            subscriptions = service.list_all() if show_all else service.list_active()
    except (DomainError, StoreError) as e:
        handle_domain_error(ctx, e)

    # Narrow by any remaining filters
    if wanted_category is not None:
        subscriptions = [sub for sub in subscriptions if sub.category is wanted_category]
    if low is not None:
        subscriptions = [sub for sub in subscriptions if sub.monthly_price >= low]
    if high is not None:
        subscriptions = [sub for sub in subscriptions if sub.monthly_price <= high]

    if not subscriptions:
        click.echo("No subscriptions found.")
        return

    click.echo("\nSubscriptions:")
    click.echo("-" * 100)
    for sub in subscriptions:
        click.echo(format_subscription_line(sub))


@click.command("show")
@click.argument("subscription", metavar="SUBSCRIPTION")
@click.pass_context
def show_subscription(ctx, subscription: str):
    """Show a subscription.

    SUBSCRIPTION can be a subscription ID or name.
    """
    service = ctx.obj["service"]
    subscription_id = resolve_subscription_or_exit(ctx, service, subscription)
    sub = service.get(subscription_id)

    click.echo(f"\n{sub.name}")
    click.echo("-" * 60)
    click.echo(f"ID:                {sub.id}")
    click.echo(f"Status:            {'Active' if sub.is_active else 'Inactive'}")
    click.echo(f"Category:          {sub.category.label}")
    click.echo(f"Price:             ${sub.monthly_price:,.2f} {sub.billing_cycle.label}")
    click.echo(f"Next billing:      {sub.next_billing_date}")
    click.echo(f"Total spent:       ${sub.total_spent:,.2f}")
    click.echo(f"Last used:         {sub.last_used_date.isoformat() if sub.last_used_date else 'Never'}")
    click.echo(f"Usage tracking:    {'On' if sub.usage_tracking_enabled else 'Off'}")
    click.echo(f"Reminders:         {sub.reminder_frequency.label}")
    if sub.scheduled_cancellation_date is not None:
        click.echo(f"Cancels at:        {sub.scheduled_cancellation_date.isoformat()}")
    for label, value in (
        ("Description", sub.description),
        ("Website", sub.website_url),
        ("Cancellation URL", sub.cancellation_url),
        ("Package", sub.package_name),
        ("Notes", sub.notes),
    ):
        if value:
            click.echo(f"{label + ':':19s}{value}")
    click.echo(f"Created:           {sub.created_at.isoformat() if sub.created_at else '-'}")
    click.echo(f"Updated:           {sub.updated_at.isoformat() if sub.updated_at else '-'}")


@click.command("delete")
@click.argument("subscription", metavar="SUBSCRIPTION")
@click.option("--yes", is_flag=True, help="Delete without asking for confirmation")
@click.pass_context
def delete_subscription(ctx, subscription: str, yes: bool):
    """Delete a subscription.

    SUBSCRIPTION can be a subscription ID or name. Use 'cancel' to keep the
    subscription's history while marking it inactive.

    Examples:
        subtrack delete "Netflix"
        subtrack delete 3f1c2b9e-... --yes
    """
    service = ctx.obj["service"]
    subscription_id = resolve_subscription_or_exit(ctx, service, subscription)
    sub = service.get(subscription_id)

    # Confirm deletion
    if not yes and not click.confirm(f"Are you sure you want to delete subscription '{sub.name}' (ID: {sub.id})?"):
        click.echo("Deletion cancelled.")
        return

    try:
        deleted = service.delete(subscription_id)
    except StoreError as e:
        handle_domain_error(ctx, e)

    if deleted:
        click.echo(f"Deleted subscription '{sub.name}'")
    else:
        click.echo(f"Subscription '{sub.name}' was already deleted")


def register_commands(cli):
    """Register subscription commands with main CLI."""
    cli.add_command(add_subscription)
    cli.add_command(list_subscriptions)
    cli.add_command(show_subscription)
    cli.add_command(delete_subscription)
