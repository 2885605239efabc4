"""Recommendation, notification and spending commands."""

import click
from dataclasses import replace

from subtrack.cli.commands.subscription import format_subscription_line
from subtrack.cli.error_handling import handle_domain_error
from subtrack.domain.entities import NotificationSettings
from subtrack.domain.errors import StoreError
from subtrack.domain.notification import NotificationService, Notifier
from subtrack.domain.recommendation import RecommendationService, UnusedSubscriptionRule
from subtrack.domain.subscription import DEFAULT_UNUSED_THRESHOLD_DAYS, DEFAULT_UPCOMING_DAYS


class EchoNotifier(Notifier):
    """Notifier that prints notifications to the terminal."""

    def notify(self, subscription_id: str, title: str, body: str) -> None:
        click.echo(f"{title}: {body}")


@click.command("recommend")
@click.option(
    "--threshold",
    type=click.IntRange(min=1),
    default=DEFAULT_UNUSED_THRESHOLD_DAYS,
    show_default=True,
    help="Days without use before a subscription counts as unused",
)
@click.pass_context
def recommend(ctx, threshold: int):
    """Suggest subscriptions to cancel."""
    service = ctx.obj["service"]
    recommender = RecommendationService(service, [UnusedSubscriptionRule(threshold)])

    try:
        recommendations = recommender.generate_recommendations()
    except StoreError as e:
        handle_domain_error(ctx, e)

    if not recommendations:
        click.echo("No recommendations.")
        return

    click.echo("\nRecommendations:")
    click.echo("-" * 80)
    for rec in recommendations:
        sub = service.get(rec.subscription_id)
        name = sub.name if sub else rec.subscription_id
        click.echo(
            f"{name}: {rec.reason} (save ${rec.potential_savings:,.2f}/month, "
            f"confidence {rec.confidence:.0%})"
        )


@click.command("notify")
@click.option(
    "--threshold",
    type=click.IntRange(min=1),
    default=DEFAULT_UNUSED_THRESHOLD_DAYS,
    show_default=True,
    help="Days without use before a subscription counts as unused",
)
@click.option("--ignore-quiet-hours", is_flag=True, help="Send even during quiet hours")
@click.option("--currency", default="USD", show_default=True, help="Currency shown in alerts")
@click.pass_context
def notify(ctx, threshold: int, ignore_quiet_hours: bool, currency: str):
    """Send alerts for unused subscriptions.

    Each subscription is alerted at most once a week.
    """
    service = ctx.obj["service"]
    settings = replace(NotificationSettings(), unused_threshold_days=threshold)
    if ignore_quiet_hours:
        settings = replace(settings, enable_quiet_hours=False)

    notifications = NotificationService(service, notifier=EchoNotifier())
    try:
        sent = notifications.notify_unused(settings=settings, currency=currency)
    except StoreError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Sent {sent} alert(s)")


@click.command("stats")
@click.option(
    "--threshold",
    type=click.IntRange(min=1),
    default=DEFAULT_UNUSED_THRESHOLD_DAYS,
    show_default=True,
    help="Days without use before a subscription counts as unused",
)
@click.pass_context
def spending_stats(ctx, threshold: int):
    """Show spending statistics for active subscriptions."""
    service = ctx.obj["service"]

    try:
        summary = service.spending_summary(threshold)
    except StoreError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Active subscriptions:   {summary.active_count} of {summary.total_count}")
    click.echo(f"Sum of prices:          ${summary.total_monthly_price:,.2f}")
    click.echo(f"Monthly equivalent:     ${summary.monthly_equivalent:,.2f}")
    click.echo(f"Yearly projection:      ${summary.yearly_projection:,.2f}")
    click.echo(f"Average price:          ${summary.average_price:,.2f}")
    click.echo(f"Unused:                 {summary.unused_count} (save ${summary.potential_savings:,.2f}/month)")

    if summary.spending_by_category:
        click.echo("\nBy category:")
        click.echo("-" * 60)
        ordered = sorted(summary.spending_by_category.items(), key=lambda item: (-item[1], item[0].label))
        for category, total in ordered:
            count = summary.category_distribution.get(category, 0)
            click.echo(f"{category.label:30s} {count:3d} {f'${total:,.2f}':>20s}")


@click.command("upcoming")
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=DEFAULT_UPCOMING_DAYS,
    show_default=True,
    help="How many days ahead to look",
)
@click.pass_context
def upcoming(ctx, days: int):
    """List active subscriptions billed in the next few days."""
    service = ctx.obj["service"]

    try:
        subscriptions = service.upcoming_bills(days)
    except StoreError as e:
        handle_domain_error(ctx, e)

    if not subscriptions:
        click.echo(f"No bills in the next {days} day(s).")
        return

    click.echo(f"\nBills in the next {days} day(s):")
    click.echo("-" * 100)
    for sub in subscriptions:
        click.echo(format_subscription_line(sub))


def register_commands(cli):
    """Register insight commands with main CLI."""
    cli.add_command(recommend)
    cli.add_command(notify)
    cli.add_command(spending_stats)
    cli.add_command(upcoming)
