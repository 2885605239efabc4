"""CLI helpers for subscription resolution."""

from __future__ import annotations

import click

from subtrack.domain.errors import DomainError, NotFoundError
from subtrack.domain.subscription import SubscriptionService
from subtrack.utils.subscription_resolver import resolve_subscription


def resolve_subscription_or_exit(
    ctx: click.Context, service: SubscriptionService, subscription: str
) -> str:
    """Resolve subscription name or ID, or exit with a CLI error."""
    try:
        return resolve_subscription(service, subscription)
    except DomainError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def resolve_many_or_exit(
    ctx: click.Context, service: SubscriptionService, subscriptions: tuple[str, ...]
) -> list[str]:
    """Resolve references for a batch command.

    Unknown references pass through unchanged; batch operations skip them.
    An ambiguous name exits with a CLI error.
    """
    ids = []
    for ref in subscriptions:
        try:
            ids.append(resolve_subscription(service, ref))
        except NotFoundError:
            ids.append(ref)
        except DomainError as exc:
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(1)
    return ids
