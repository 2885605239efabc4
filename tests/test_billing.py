"""Tests for billing normalization and usage-age calculations."""

import pytest
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from subtrack.domain.billing import (
    accrued_total_spent,
    days_since_last_used,
    idle_days,
    is_unused,
    monthly_equivalent,
    usage_frequency,
    usage_stats,
    yearly_cost,
)
from subtrack.domain.entities import BillingCycle, UsageFrequency

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


class TestMonthlyEquivalent:
    """Tests for monthly_equivalent."""

    def test_quarterly(self):
        """Test that a quarterly price is divided by three."""
        assert monthly_equivalent(Decimal("12.00"), BillingCycle.QUARTERLY) == Decimal("4")

    def test_weekly(self):
        """Test that a weekly price uses 4.33 weeks per month."""
        assert monthly_equivalent(Decimal("9.99"), BillingCycle.WEEKLY) == Decimal("43.2567")

    @pytest.mark.parametrize(
        "cycle,expected",
        [
            (BillingCycle.MONTHLY, Decimal("120")),
            (BillingCycle.BIANNUALLY, Decimal("20")),
            (BillingCycle.ANNUALLY, Decimal("10")),
        ],
    )
    def test_other_cycles(self, cycle, expected):
        """Test division by the cycle's month count."""
        assert monthly_equivalent(Decimal("120"), cycle) == expected

    def test_yearly_cost(self):
        """Test yearly projection."""
        assert yearly_cost(Decimal("30"), BillingCycle.QUARTERLY) == Decimal("120")

    def test_accrued_total_spent(self):
        """Test total spent accrual."""
        assert accrued_total_spent(Decimal("9.99"), 3) == Decimal("29.97")
        with pytest.raises(ValueError):
            accrued_total_spent(Decimal("9.99"), -1)


class TestUsageAge:
    """Tests for days-since-last-use and the unused predicate."""

    def test_never_used_is_unknown(self, subscription_factory):
        """Test the sentinel for never-used subscriptions."""
        assert days_since_last_used(subscription_factory(), NOW) == -1

    def test_days_are_calendar_days(self, subscription_factory):
        """Test that days are counted between dates, not 24h periods."""
        sub = subscription_factory(last_used_date=datetime(2024, 6, 14, 23, 0, tzinfo=UTC))
        assert days_since_last_used(sub, NOW) == 1

    def test_used_long_ago_is_unused(self, subscription_factory):
        """Test that 45 days idle counts as unused with a 30 day threshold."""
        sub = subscription_factory(last_used_date=NOW - timedelta(days=45), created_at=NOW - timedelta(days=400))
        assert is_unused(sub, 30, NOW)

    def test_recent_use_is_not_unused(self, subscription_factory):
        """Test that recent use keeps a subscription in use."""
        sub = subscription_factory(last_used_date=NOW - timedelta(days=30), created_at=NOW - timedelta(days=400))
        assert not is_unused(sub, 30, NOW)

    def test_fresh_never_used_is_not_unused(self, subscription_factory):
        """Test that a subscription added yesterday is not flagged."""
        sub = subscription_factory(created_at=NOW - timedelta(days=1))
        assert not is_unused(sub, 30, NOW)

    def test_old_never_used_is_unused(self, subscription_factory):
        """Test that a never-used subscription added long ago is flagged."""
        sub = subscription_factory(created_at=NOW - timedelta(days=31))
        assert is_unused(sub, 30, NOW)

    def test_idle_days_falls_back_to_creation(self, subscription_factory):
        """Test idle days for never-used subscriptions."""
        sub = subscription_factory(created_at=NOW - timedelta(days=40))
        assert idle_days(sub, NOW) == 40
        used = subscription_factory(created_at=NOW - timedelta(days=40), last_used_date=NOW - timedelta(days=5))
        assert idle_days(used, NOW) == 5


class TestUsageFrequency:
    """Tests for usage frequency buckets."""

    @pytest.mark.parametrize(
        "days,expected",
        [
            (-1, UsageFrequency.UNKNOWN),
            (0, UsageFrequency.DAILY),
            (1, UsageFrequency.DAILY),
            (7, UsageFrequency.WEEKLY),
            (30, UsageFrequency.MONTHLY),
            (90, UsageFrequency.RARELY),
            (91, UsageFrequency.NEVER),
        ],
    )
    def test_buckets(self, days, expected):
        """Test bucket boundaries."""
        assert usage_frequency(days) is expected

    def test_usage_stats(self, subscription_factory):
        """Test computed usage statistics."""
        last_used = NOW - timedelta(days=3)
        sub = subscription_factory(id="s1", last_used_date=last_used)
        stats = usage_stats(sub, NOW)
        assert stats.subscription_id == "s1"
        assert stats.last_open_date == last_used
        assert stats.days_since_last_use == 3
        assert stats.usage_frequency is UsageFrequency.WEEKLY
