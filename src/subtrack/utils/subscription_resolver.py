"""Utility for resolving subscription names to IDs."""

from subtrack.domain.errors import NotFoundError, ValidationError
from subtrack.domain.subscription import SubscriptionService


def resolve_subscription(service: SubscriptionService, subscription: str) -> str:
    """Resolve subscription name or ID to subscription ID.

    An exact ID match wins. Otherwise the name is matched case-insensitively
    across all subscriptions, including inactive ones.

    Args:
        service: SubscriptionService instance
        subscription: Subscription ID or name

    Returns:
        Subscription ID

    Raises:
        NotFoundError: If no subscription matches
        ValidationError: If the name matches more than one subscription
    """
    if service.get(subscription) is not None:
        return subscription

    wanted = subscription.strip().casefold()
    matches = [sub for sub in service.list_all() if sub.name.casefold() == wanted]
    if not matches:
        raise NotFoundError(f"Subscription '{subscription}' not found")
    if len(matches) > 1:
        ids = ", ".join(sub.id for sub in matches)
        raise ValidationError(f"Subscription name '{subscription}' is ambiguous; use an ID ({ids})")
    return matches[0].id
