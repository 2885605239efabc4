"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer is the storage edge: enumerations are encoded by member name,
decimals as strings and timestamps as naive UTC. Decoding reverses each step
explicitly instead of relying on reflection.
"""

from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Optional

from subtrack.domain import entities as domain
from subtrack.domain.errors import StoreError
from subtrack.database.models import Subscription as ORMSubscription


def to_storage_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a domain timestamp to naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def from_storage_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a stored naive timestamp."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def decode_decimal(value: str, field_name: str) -> Decimal:
    """Parse a stored decimal string."""
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise StoreError(f"Corrupt {field_name} value {value!r}: {e}") from e


def decode_enum(enum_type, name: str):
    """Look up an enumeration member by its stored name."""
    try:
        return enum_type[name]
    except KeyError as e:
        raise StoreError(f"Unknown {enum_type.__name__} value {name!r}") from e


def subscription_to_domain(orm_subscription: ORMSubscription) -> domain.Subscription:
    """Convert SQLAlchemy Subscription model to domain Subscription entity."""
    return domain.Subscription(
        id=orm_subscription.id,
        name=orm_subscription.name,
        description=orm_subscription.description,
        category=decode_enum(domain.SubscriptionCategory, orm_subscription.category),
        monthly_price=decode_decimal(orm_subscription.monthly_price, "monthly_price"),
        billing_cycle=decode_enum(domain.BillingCycle, orm_subscription.billing_cycle),
        next_billing_date=orm_subscription.next_billing_date,
        website_url=orm_subscription.website_url,
        cancellation_url=orm_subscription.cancellation_url,
        logo_url=orm_subscription.logo_url,
        is_active=orm_subscription.is_active,
        last_used_date=from_storage_datetime(orm_subscription.last_used_date),
        created_at=from_storage_datetime(orm_subscription.created_at),
        updated_at=from_storage_datetime(orm_subscription.updated_at),
        scheduled_cancellation_date=from_storage_datetime(
            orm_subscription.scheduled_cancellation_date
        ),
        usage_tracking_enabled=orm_subscription.usage_tracking_enabled,
        reminder_frequency=decode_enum(
            domain.ReminderFrequency, orm_subscription.reminder_frequency
        ),
        total_spent=decode_decimal(orm_subscription.total_spent, "total_spent"),
        platform_identifier=orm_subscription.platform_identifier,
        package_name=orm_subscription.package_name,
        notes=orm_subscription.notes,
    )


def subscription_to_orm(
    subscription: domain.Subscription, orm_subscription: Optional[ORMSubscription] = None
) -> ORMSubscription:
    """Copy a domain Subscription onto a SQLAlchemy model.

    Args:
        subscription: Domain entity to store
        orm_subscription: Existing row to overwrite; a new one is built if None

    Returns:
        The populated SQLAlchemy model
    """
    if orm_subscription is None:
        orm_subscription = ORMSubscription(id=subscription.id)

    orm_subscription.name = subscription.name
    orm_subscription.description = subscription.description
    orm_subscription.category = subscription.category.name
    orm_subscription.monthly_price = str(subscription.monthly_price)
    orm_subscription.billing_cycle = subscription.billing_cycle.name
    orm_subscription.next_billing_date = subscription.next_billing_date
    orm_subscription.website_url = subscription.website_url
    orm_subscription.cancellation_url = subscription.cancellation_url
    orm_subscription.logo_url = subscription.logo_url
    orm_subscription.is_active = subscription.is_active
    orm_subscription.last_used_date = to_storage_datetime(subscription.last_used_date)
    orm_subscription.created_at = to_storage_datetime(subscription.created_at)
    orm_subscription.updated_at = to_storage_datetime(subscription.updated_at)
    orm_subscription.scheduled_cancellation_date = to_storage_datetime(
        subscription.scheduled_cancellation_date
    )
    orm_subscription.usage_tracking_enabled = subscription.usage_tracking_enabled
    orm_subscription.reminder_frequency = subscription.reminder_frequency.name
    orm_subscription.total_spent = str(subscription.total_spent)
    orm_subscription.platform_identifier = subscription.platform_identifier
    orm_subscription.package_name = subscription.package_name
    orm_subscription.notes = subscription.notes
    return orm_subscription
