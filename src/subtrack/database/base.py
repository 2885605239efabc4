"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from subtrack.domain.entities import Subscription, SubscriptionCategory


class Database(ABC):
    """Abstract local cache interface for subtrack.

    Queries named ``active`` and all filtered or aggregate queries except
    ``list_subscriptions``, ``count_all``, ``find_usage_targets`` and
    ``list_scheduled_cancellations`` only consider active subscriptions.
    Implementations must be safe to call from several threads.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Bring the schema up to date by applying pending migrations."""
        pass

    # Subscription CRUD
    @abstractmethod
    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        """Get subscription by ID."""
        pass

    @abstractmethod
    def list_subscriptions(self) -> list[Subscription]:
        """List all subscriptions, newest first."""
        pass

    @abstractmethod
    def list_active_subscriptions(self) -> list[Subscription]:
        """List active subscriptions, newest first."""
        pass

    @abstractmethod
    def put_subscription(self, subscription: Subscription) -> None:
        """Insert or replace a subscription."""
        pass

    @abstractmethod
    def put_subscriptions(self, subscriptions: list[Subscription]) -> None:
        """Insert or replace several subscriptions in one transaction."""
        pass

    @abstractmethod
    def delete_subscription(self, subscription_id: str) -> bool:
        """Delete a subscription. Returns False if it did not exist."""
        pass

    # Filtered queries
    @abstractmethod
    def list_by_category(self, category: SubscriptionCategory) -> list[Subscription]:
        """List active subscriptions in a category."""
        pass

    @abstractmethod
    def list_by_price_range(self, min_price: Decimal, max_price: Decimal) -> list[Subscription]:
        """List active subscriptions priced within [min_price, max_price], cheapest first."""
        pass

    @abstractmethod
    def search_subscriptions(self, query: str) -> list[Subscription]:
        """Search active subscriptions by name or description substring.

        Names starting with the query are listed first.
        """
        pass

    @abstractmethod
    def list_due_for_billing(self, start_date: date, end_date: date) -> list[Subscription]:
        """List active subscriptions billed between two dates (inclusive)."""
        pass

    @abstractmethod
    def list_unused(self, threshold: datetime) -> list[Subscription]:
        """List active subscriptions never used or last used before ``threshold``."""
        pass

    @abstractmethod
    def list_scheduled_cancellations(self, as_of: datetime) -> list[Subscription]:
        """List subscriptions with a scheduled cancellation at or before ``as_of``."""
        pass

    @abstractmethod
    def list_trackable(self) -> list[Subscription]:
        """List active subscriptions with usage tracking and a package name."""
        pass

    @abstractmethod
    def find_usage_targets(self, package_name: str) -> list[Subscription]:
        """Find subscriptions whose package equals or whose name contains ``package_name``."""
        pass

    # Aggregates
    @abstractmethod
    def count_active(self) -> int:
        """Count active subscriptions."""
        pass

    @abstractmethod
    def count_all(self) -> int:
        """Count all subscriptions."""
        pass

    @abstractmethod
    def total_monthly_price(self) -> Decimal:
        """Sum of monthly_price over active subscriptions."""
        pass

    @abstractmethod
    def spending_by_category(self) -> dict[SubscriptionCategory, Decimal]:
        """Sum of monthly_price per category over active subscriptions, largest first."""
        pass

    @abstractmethod
    def category_distribution(self) -> dict[SubscriptionCategory, int]:
        """Number of active subscriptions per category, largest first."""
        pass

    @abstractmethod
    def average_price(self) -> Decimal:
        """Average monthly_price over active subscriptions (0 when none)."""
        pass

    # Maintenance
    @abstractmethod
    def delete_inactive_before(self, threshold: datetime) -> int:
        """Delete inactive subscriptions last updated before ``threshold``."""
        pass

    # Notification throttle state
    @abstractmethod
    def get_last_notification(self, subscription_id: str) -> Optional[datetime]:
        """Get the last notification time for a subscription."""
        pass

    @abstractmethod
    def record_notification(self, subscription_id: str, sent_at: datetime) -> None:
        """Record that a notification was sent for a subscription."""
        pass
