"""Billing-cycle normalization and usage-age calculations.

Pure functions over domain entities. Money stays in ``Decimal`` throughout;
nothing here rounds, so callers decide on presentation precision.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from subtrack.domain.entities import (
    BillingCycle,
    Subscription,
    SubscriptionUsage,
    UsageFrequency,
)

# Accepted approximation of weeks per month
WEEKS_PER_MONTH = Decimal("4.33")

UNKNOWN_DAYS = -1


def monthly_equivalent(price: Decimal, cycle: BillingCycle) -> Decimal:
    """Normalize a per-cycle price to a per-month figure.

    Args:
        price: Price charged once per billing cycle
        cycle: Billing cycle of the price

    Returns:
        Monthly equivalent price
    """
    if cycle is BillingCycle.WEEKLY:
        return price * WEEKS_PER_MONTH
    return price / Decimal(cycle.months_multiplier)


def yearly_cost(price: Decimal, cycle: BillingCycle) -> Decimal:
    """Project a per-cycle price to a yearly cost."""
    return monthly_equivalent(price, cycle) * 12


def accrued_total_spent(price: Decimal, months: int) -> Decimal:
    """Total spent after paying ``price`` for ``months`` months."""
    if months < 0:
        raise ValueError(f"months must not be negative (got {months})")
    return price * months


def days_since_last_used(subscription: Subscription, now: datetime) -> int:
    """Whole days between the last-used date and ``now``'s date.

    Returns -1 when the subscription has never been used.
    """
    if subscription.last_used_date is None:
        return UNKNOWN_DAYS
    return (now.date() - subscription.last_used_date.date()).days


def idle_days(subscription: Subscription, now: datetime) -> int:
    """Days since last use, or since creation for never-used subscriptions."""
    days = days_since_last_used(subscription, now)
    if days == UNKNOWN_DAYS and subscription.created_at is not None:
        return (now.date() - subscription.created_at.date()).days
    return days


def is_unused(subscription: Subscription, threshold_days: int, now: datetime) -> bool:
    """Check whether a subscription counts as unused.

    A subscription is unused when it was last used more than
    ``threshold_days`` ago, or when it has never been used and was created
    more than ``threshold_days`` ago. Recently added subscriptions that were
    simply never opened are still fresh.
    """
    if days_since_last_used(subscription, now) > threshold_days:
        return True
    if subscription.last_used_date is None and subscription.created_at is not None:
        return subscription.created_at < now - timedelta(days=threshold_days)
    return False


def usage_frequency(days_since_use: int) -> UsageFrequency:
    """Bucket a days-since-last-use count."""
    if days_since_use == UNKNOWN_DAYS:
        return UsageFrequency.UNKNOWN
    if days_since_use <= 1:
        return UsageFrequency.DAILY
    if days_since_use <= 7:
        return UsageFrequency.WEEKLY
    if days_since_use <= 30:
        return UsageFrequency.MONTHLY
    if days_since_use <= 90:
        return UsageFrequency.RARELY
    return UsageFrequency.NEVER


def usage_stats(subscription: Subscription, now: datetime) -> SubscriptionUsage:
    """Compute usage statistics for a stored subscription."""
    days = days_since_last_used(subscription, now)
    return SubscriptionUsage(
        subscription_id=subscription.id,
        last_open_date=subscription.last_used_date,
        days_since_last_use=days,
        usage_frequency=usage_frequency(days),
    )
