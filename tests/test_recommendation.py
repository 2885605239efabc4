"""Tests for recommendation rules."""

import pytest
from datetime import datetime, timedelta, UTC
from decimal import Decimal

from subtrack.domain.entities import (
    BillingCycle,
    RecommendationType,
    SubscriptionRecommendation,
)
from subtrack.domain.recommendation import (
    RecommendationRule,
    RecommendationService,
    UnusedSubscriptionRule,
)


class KeepEverythingRule(RecommendationRule):
    """Rule recommending to keep every subscription."""

    def evaluate(self, subscriptions, now):
        return [
            SubscriptionRecommendation(
                subscription_id=sub.id,
                recommendation_type=RecommendationType.KEEP_ACTIVE,
                reason="Looks fine",
                potential_savings=Decimal("0"),
                confidence=0.5,
                created_at=now,
            )
            for sub in subscriptions
        ]


class TestUnusedSubscriptionRule:
    """Tests for cancel-unused recommendations."""

    def test_moderately_idle_gets_default_confidence(self, subscription_service, aged, clock):
        """Test 45 idle days yields a 0.7 confidence recommendation."""
        sub = aged(400, name="Gym")
        subscription_service.record_usage(sub.id, clock() - timedelta(days=45))

        [rec] = RecommendationService(subscription_service).generate_recommendations()
        assert rec.subscription_id == sub.id
        assert rec.recommendation_type is RecommendationType.CANCEL_UNUSED
        assert rec.confidence == 0.7
        assert rec.reason == "You haven't used Gym for 45 days"
        assert rec.potential_savings == Decimal("15.49")
        assert rec.created_at == clock()

    def test_long_idle_gets_high_confidence(self, subscription_service, aged, clock):
        """Test 65 idle days yields a 0.9 confidence recommendation."""
        sub = aged(400)
        subscription_service.record_usage(sub.id, clock() - timedelta(days=65))

        [rec] = RecommendationService(subscription_service).generate_recommendations()
        assert rec.confidence == 0.9

    def test_savings_use_monthly_equivalent(self, subscription_service, aged):
        """Test that potential savings are normalized to a month."""
        aged(100, monthly_price=Decimal("12.00"), billing_cycle=BillingCycle.QUARTERLY)

        [rec] = RecommendationService(subscription_service).generate_recommendations()
        assert rec.potential_savings == Decimal("4")

    def test_never_used_reason_mentions_creation(self, subscription_service, aged):
        """Test the reason for a subscription never used since it was added."""
        aged(40, name="Hulu")

        [rec] = RecommendationService(subscription_service).generate_recommendations()
        assert rec.reason == "You haven't used Hulu since adding it 40 days ago"
        assert rec.confidence == 0.7

    def test_fresh_and_used_subscriptions_are_skipped(self, subscription_service, aged, clock):
        """Test that nothing is recommended for fresh or recently used subscriptions."""
        aged(1)
        used = aged(400)
        subscription_service.record_usage(used.id, clock() - timedelta(days=5))

        assert RecommendationService(subscription_service).generate_recommendations() == []

    def test_inactive_subscriptions_are_skipped(self, subscription_service, aged):
        """Test that cancelled subscriptions are not recommended."""
        sub = aged(100)
        subscription_service.cancel_now([sub.id])

        assert RecommendationService(subscription_service).generate_recommendations() == []

    def test_custom_threshold(self, subscription_service, aged):
        """Test that the threshold is configurable."""
        aged(20)
        assert RecommendationService(subscription_service, [UnusedSubscriptionRule(10)]).generate_recommendations()
        assert not RecommendationService(subscription_service, [UnusedSubscriptionRule(30)]).generate_recommendations()


class TestRecommendationService:
    """Tests for combining rules."""

    def test_rules_run_in_order(self, subscription_service, aged):
        """Test that results from every rule are returned in rule order."""
        aged(100)
        service = RecommendationService(
            subscription_service, [UnusedSubscriptionRule(), KeepEverythingRule()]
        )
        kinds = [rec.recommendation_type for rec in service.generate_recommendations()]
        assert kinds == [RecommendationType.CANCEL_UNUSED, RecommendationType.KEEP_ACTIVE]

    def test_explicit_time(self, subscription_service, aged, clock):
        """Test evaluating at a given time instead of the service clock."""
        aged(10)
        later = clock() + timedelta(days=30)
        [rec] = RecommendationService(subscription_service).generate_recommendations(later)
        assert rec.created_at == later
