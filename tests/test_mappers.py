"""Tests for database mappers."""

import pytest
from datetime import datetime, date, timedelta, timezone, UTC
from decimal import Decimal

from subtrack.database.models import Subscription as ORMSubscription
from subtrack.database.mappers import (
    decode_decimal,
    decode_enum,
    from_storage_datetime,
    subscription_to_domain,
    subscription_to_orm,
    to_storage_datetime,
)
from subtrack.domain.entities import BillingCycle, ReminderFrequency, Subscription, SubscriptionCategory
from subtrack.domain.errors import StoreError


class TestStorageDatetimes:
    """Tests for timestamp normalization at the storage edge."""

    def test_to_storage_is_naive_utc(self):
        """Test that offsets are converted to UTC and dropped."""
        plus_two = timezone(timedelta(hours=2))
        stored = to_storage_datetime(datetime(2024, 1, 1, 14, 0, tzinfo=plus_two))
        assert stored == datetime(2024, 1, 1, 12, 0)
        assert stored.tzinfo is None

    def test_from_storage_is_aware_utc(self):
        """Test that stored timestamps come back as UTC."""
        value = from_storage_datetime(datetime(2024, 1, 1, 12, 0))
        assert value == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        assert value.tzinfo is UTC

    def test_none_passes_through(self):
        """Test that missing timestamps stay missing."""
        assert to_storage_datetime(None) is None
        assert from_storage_datetime(None) is None


class TestDecoding:
    """Tests for decoding stored values."""

    def test_decode_decimal_is_exact(self):
        """Test that decimal strings keep their precision."""
        assert decode_decimal("0.10", "monthly_price") == Decimal("0.10")

    def test_corrupt_decimal_raises_store_error(self):
        """Test that unparseable money is reported as a store error."""
        with pytest.raises(StoreError, match="monthly_price"):
            decode_decimal("ten dollars", "monthly_price")

    def test_unknown_enum_raises_store_error(self):
        """Test that unknown enumeration names are reported as store errors."""
        assert decode_enum(BillingCycle, "ANNUALLY") is BillingCycle.ANNUALLY
        with pytest.raises(StoreError, match="BillingCycle"):
            decode_enum(BillingCycle, "FORTNIGHTLY")


class TestSubscriptionMapper:
    """Tests for Subscription mapper."""

    def test_subscription_to_orm_encodes_fields(self, subscription_factory):
        """Test converting domain Subscription to ORM Subscription."""
        sub = subscription_factory(
            id="sub-1",
            monthly_price=Decimal("9.99"),
            billing_cycle=BillingCycle.WEEKLY,
            last_used_date=datetime(2024, 6, 1, 8, 30, tzinfo=UTC),
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            updated_at=datetime(2024, 6, 1, 8, 30, tzinfo=UTC),
        )
        orm_sub = subscription_to_orm(sub)

        assert orm_sub.id == "sub-1"
        assert orm_sub.category == "VIDEO_STREAMING"
        assert orm_sub.billing_cycle == "WEEKLY"
        assert orm_sub.monthly_price == "9.99"
        assert orm_sub.total_spent == "0"
        assert orm_sub.reminder_frequency == "WEEKLY"
        assert orm_sub.last_used_date == datetime(2024, 6, 1, 8, 30)

    def test_subscription_to_orm_overwrites_existing_row(self, subscription_factory):
        """Test that an existing ORM row is updated in place."""
        existing = ORMSubscription(id="sub-1", name="Old")
        result = subscription_to_orm(subscription_factory(id="sub-1", name="New"), existing)
        assert result is existing
        assert existing.name == "New"

    def test_subscription_to_domain(self):
        """Test converting ORM Subscription to domain Subscription."""
        orm_sub = ORMSubscription(
            id="sub-1",
            name="Spotify",
            description=None,
            category="MUSIC",
            monthly_price="10.99",
            billing_cycle="MONTHLY",
            next_billing_date=date(2024, 7, 1),
            is_active=True,
            last_used_date=None,
            created_at=datetime(2024, 1, 1),
            updated_at=datetime(2024, 1, 2),
            scheduled_cancellation_date=datetime(2024, 8, 1),
            usage_tracking_enabled=False,
            reminder_frequency="MONTHLY",
            total_spent="21.98",
            package_name="com.spotify.music",
        )
        sub = subscription_to_domain(orm_sub)

        assert isinstance(sub, Subscription)
        assert sub.category is SubscriptionCategory.MUSIC
        assert sub.monthly_price == Decimal("10.99")
        assert sub.total_spent == Decimal("21.98")
        assert sub.reminder_frequency is ReminderFrequency.MONTHLY
        assert sub.usage_tracking_enabled is False
        assert sub.created_at == datetime(2024, 1, 1, tzinfo=UTC)
        assert sub.scheduled_cancellation_date == datetime(2024, 8, 1, tzinfo=UTC)
        assert sub.package_name == "com.spotify.music"
