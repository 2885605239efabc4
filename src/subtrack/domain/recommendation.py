"""Recommendation rules over the active subscription snapshot."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from subtrack.domain.billing import (
    days_since_last_used,
    idle_days,
    is_unused,
    monthly_equivalent,
)
from subtrack.domain.entities import (
    RecommendationType,
    Subscription,
    SubscriptionRecommendation,
)
from subtrack.domain.subscription import DEFAULT_UNUSED_THRESHOLD_DAYS, SubscriptionService

HIGH_CONFIDENCE_DAYS = 60
HIGH_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE = 0.7


class RecommendationRule(ABC):
    """A source of recommendations.

    New recommendation types are added as new rules; callers of
    RecommendationService do not change.
    """

    @abstractmethod
    def evaluate(
        self, subscriptions: Sequence[Subscription], now: datetime
    ) -> list[SubscriptionRecommendation]:
        """Return recommendations for the given active subscriptions."""
        pass


class UnusedSubscriptionRule(RecommendationRule):
    """Recommend cancelling subscriptions that have gone unused."""

    def __init__(self, threshold_days: int = DEFAULT_UNUSED_THRESHOLD_DAYS):
        self.threshold_days = threshold_days

    def evaluate(
        self, subscriptions: Sequence[Subscription], now: datetime
    ) -> list[SubscriptionRecommendation]:
        recommendations = []
        for sub in subscriptions:
            if not sub.is_active or not is_unused(sub, self.threshold_days, now):
                continue
            days = days_since_last_used(sub, now)
            recommendations.append(
                SubscriptionRecommendation(
                    subscription_id=sub.id,
                    recommendation_type=RecommendationType.CANCEL_UNUSED,
                    reason=unused_reason(sub, now),
                    potential_savings=monthly_equivalent(sub.monthly_price, sub.billing_cycle),
                    confidence=HIGH_CONFIDENCE if days > HIGH_CONFIDENCE_DAYS else DEFAULT_CONFIDENCE,
                    created_at=now,
                )
            )
        return recommendations


def unused_reason(subscription: Subscription, now: datetime) -> str:
    """Human-readable reason naming the subscription and its idle days."""
    days = idle_days(subscription, now)
    if subscription.last_used_date is None:
        return f"You haven't used {subscription.name} since adding it {days} days ago"
    return f"You haven't used {subscription.name} for {days} days"


class RecommendationService:
    """Service for generating subscription recommendations.

    Read-only over subscriptions. Recommendations are not persisted; each
    call computes them afresh from the current snapshot.
    """

    def __init__(
        self,
        service: SubscriptionService,
        rules: Optional[Sequence[RecommendationRule]] = None,
    ):
        """Initialize recommendation service.

        Args:
            service: Subscription service to read from
            rules: Rules to run; defaults to the unused-subscription rule
        """
        self.service = service
        self.rules = list(rules) if rules is not None else [UnusedSubscriptionRule()]

    def generate_recommendations(self, now: Optional[datetime] = None) -> list[SubscriptionRecommendation]:
        """Run every rule over the active subscriptions.

        Args:
            now: Evaluation time; defaults to the service clock

        Returns:
            Recommendations from all rules, in rule order
        """
        now = now or self.service.clock()
        active = self.service.list_active()
        recommendations = []
        for rule in self.rules:
            recommendations.extend(rule.evaluate(active, now))
        return recommendations
