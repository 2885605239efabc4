"""Flat field-map encoding of subscriptions.

The remote store only accepts primitive values, so dates, timestamps,
decimals and enumerations travel as strings. The same encoding is used for
JSON export and import.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from subtrack.domain.entities import (
    BillingCycle,
    ReminderFrequency,
    Subscription,
    SubscriptionCategory,
)
from subtrack.domain.errors import ValidationError

FieldValue = Union[str, bool, int, float, None]

REQUIRED_FIELDS = ("id", "name", "category", "monthly_price", "billing_cycle", "next_billing_date")


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def subscription_to_fields(subscription: Subscription) -> dict[str, FieldValue]:
    """Encode a subscription as a flat map of primitive values."""
    return {
        "id": subscription.id,
        "name": subscription.name,
        "description": subscription.description,
        "category": subscription.category.name,
        "monthly_price": str(subscription.monthly_price),
        "billing_cycle": subscription.billing_cycle.name,
        "next_billing_date": subscription.next_billing_date.isoformat(),
        "website_url": subscription.website_url,
        "cancellation_url": subscription.cancellation_url,
        "logo_url": subscription.logo_url,
        "is_active": subscription.is_active,
        "last_used_date": _iso(subscription.last_used_date),
        "created_at": _iso(subscription.created_at),
        "updated_at": _iso(subscription.updated_at),
        "scheduled_cancellation_date": _iso(subscription.scheduled_cancellation_date),
        "usage_tracking_enabled": subscription.usage_tracking_enabled,
        "reminder_frequency": subscription.reminder_frequency.name,
        "total_spent": str(subscription.total_spent),
        "platform_identifier": subscription.platform_identifier,
        "package_name": subscription.package_name,
        "notes": subscription.notes,
    }


def _parse_datetime(fields: dict[str, Any], key: str) -> Optional[datetime]:
    value = fields.get(key)
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {key} '{value}': {e}") from e


def _parse_decimal(fields: dict[str, Any], key: str, default: str) -> Decimal:
    value = fields.get(key, default)
    if isinstance(value, float):
        raise ValidationError(f"{key} must be a decimal string, not a float ({value!r})")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid {key} '{value}': {e}") from e


def _parse_text(fields: dict[str, Any], key: str) -> Optional[str]:
    value = fields.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key} must be a string, not {type(value).__name__} ({value!r})")
    return value


def _parse_bool(fields: dict[str, Any], key: str, default: bool) -> bool:
    value = fields.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false, not {value!r}")
    return value


def _parse_enum(enum_type, fields: dict[str, Any], key: str, default: Optional[str] = None):
    value = fields.get(key, default)
    try:
        return enum_type[value]
    except (KeyError, TypeError) as e:
        raise ValidationError(f"Unknown {key} '{value}'") from e


def subscription_from_fields(fields: dict[str, Any]) -> Subscription:
    """Decode a flat field map back into a subscription.

    Raises:
        ValidationError: If a required field is missing or a value is malformed
    """
    missing = [key for key in REQUIRED_FIELDS if fields.get(key) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    try:
        next_billing_date = date.fromisoformat(fields["next_billing_date"])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid next_billing_date '{fields['next_billing_date']}': {e}") from e

    return Subscription(
        id=str(fields["id"]),
        name=_parse_text(fields, "name"),
        description=_parse_text(fields, "description"),
        category=_parse_enum(SubscriptionCategory, fields, "category"),
        monthly_price=_parse_decimal(fields, "monthly_price", "0"),
        billing_cycle=_parse_enum(BillingCycle, fields, "billing_cycle"),
        next_billing_date=next_billing_date,
        website_url=_parse_text(fields, "website_url"),
        cancellation_url=_parse_text(fields, "cancellation_url"),
        logo_url=_parse_text(fields, "logo_url"),
        is_active=_parse_bool(fields, "is_active", True),
        last_used_date=_parse_datetime(fields, "last_used_date"),
        created_at=_parse_datetime(fields, "created_at"),
        updated_at=_parse_datetime(fields, "updated_at"),
        scheduled_cancellation_date=_parse_datetime(fields, "scheduled_cancellation_date"),
        usage_tracking_enabled=_parse_bool(fields, "usage_tracking_enabled", True),
        reminder_frequency=_parse_enum(ReminderFrequency, fields, "reminder_frequency", "WEEKLY"),
        total_spent=_parse_decimal(fields, "total_spent", "0"),
        platform_identifier=_parse_text(fields, "platform_identifier"),
        package_name=_parse_text(fields, "package_name"),
        notes=_parse_text(fields, "notes"),
    )
