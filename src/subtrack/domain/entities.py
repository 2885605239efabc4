"""Domain model entities for subtrack.

These are pure data classes representing business concepts, independent of
database schema. Services produce modified copies with ``dataclasses.replace``
rather than mutating entities in place.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class SubscriptionCategory(Enum):
    """Subscription category with a display label and color tag."""

    ENTERTAINMENT = ("Entertainment", "#8B5CF6")
    SOCIAL_MEDIA = ("Social Media", "#EC4899")
    PRODUCTIVITY = ("Productivity", "#3B82F6")
    FITNESS = ("Fitness & Health", "#10B981")
    NEWS = ("News & Magazines", "#F59E0B")
    GAMING = ("Gaming", "#EF4444")
    SHOPPING = ("Shopping", "#8B5CF6")
    MUSIC = ("Music", "#06B6D4")
    VIDEO_STREAMING = ("Video Streaming", "#8B5CF6")
    CLOUD_STORAGE = ("Cloud Storage", "#6B7280")
    DATING = ("Dating", "#EC4899")
    FOOD_DELIVERY = ("Food Delivery", "#F59E0B")
    MISCELLANEOUS = ("Miscellaneous", "#6B7280")

    def __init__(self, label: str, color: str):
        self.label = label
        self.color = color


class BillingCycle(Enum):
    """Recurrence period of a subscription charge."""

    WEEKLY = ("Weekly", 0)  # Special case, see billing.monthly_equivalent
    MONTHLY = ("Monthly", 1)
    QUARTERLY = ("Quarterly", 3)
    BIANNUALLY = ("Bi-annually", 6)
    ANNUALLY = ("Annually", 12)

    def __init__(self, label: str, months_multiplier: int):
        self.label = label
        self.months_multiplier = months_multiplier


class ReminderFrequency(Enum):
    """Reminder cadence for a subscription."""

    DAILY = ("Daily", 1)
    WEEKLY = ("Weekly", 7)
    BIWEEKLY = ("Bi-weekly", 14)
    MONTHLY = ("Monthly", 30)
    NEVER = ("Never", -1)

    def __init__(self, label: str, days_interval: int):
        self.label = label
        self.days_interval = days_interval


class UsageFrequency(Enum):
    """Bucketed usage frequency derived from days since last use."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    RARELY = "Rarely"
    NEVER = "Never"
    UNKNOWN = "Unknown"


class RecommendationType(Enum):
    """Kinds of recommendation the engine can emit."""

    CANCEL_UNUSED = "cancel_unused"
    CANCEL_DUPLICATE = "cancel_duplicate"
    SWITCH_PLAN = "switch_plan"
    PAUSE_TEMPORARILY = "pause_temporarily"
    KEEP_ACTIVE = "keep_active"


@dataclass(frozen=True)
class Subscription:
    """Subscription domain entity.

    ``id``, ``created_at`` and ``updated_at`` are None only before the
    subscription has been created through the subscription service.
    """

    name: str
    category: SubscriptionCategory
    monthly_price: Decimal
    billing_cycle: BillingCycle
    next_billing_date: date
    id: Optional[str] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    cancellation_url: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool = True
    last_used_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    scheduled_cancellation_date: Optional[datetime] = None
    usage_tracking_enabled: bool = True
    reminder_frequency: ReminderFrequency = ReminderFrequency.WEEKLY
    total_spent: Decimal = Decimal("0")
    platform_identifier: Optional[str] = None
    package_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_cancellation_pending(self) -> bool:
        """True while active with a recorded intent to cancel."""
        return self.is_active and self.scheduled_cancellation_date is not None

    @property
    def is_trackable(self) -> bool:
        """True if usage tracking is enabled and a package name is set."""
        return self.usage_tracking_enabled and bool(self.package_name and self.package_name.strip())


@dataclass(frozen=True)
class SubscriptionUsage:
    """Usage statistics computed on demand from a subscription."""

    subscription_id: str
    last_open_date: Optional[datetime]
    days_since_last_use: int = -1
    usage_frequency: UsageFrequency = UsageFrequency.UNKNOWN


@dataclass(frozen=True)
class SubscriptionRecommendation:
    """Ephemeral recommendation for a single subscription."""

    subscription_id: str
    recommendation_type: RecommendationType
    reason: str
    potential_savings: Decimal
    confidence: float
    created_at: datetime


@dataclass(frozen=True)
class SpendingSummary:
    """Aggregate spending figures over active subscriptions."""

    active_count: int
    total_count: int
    total_monthly_price: Decimal
    monthly_equivalent: Decimal
    yearly_projection: Decimal
    average_price: Decimal
    spending_by_category: dict[SubscriptionCategory, Decimal]
    category_distribution: dict[SubscriptionCategory, int]
    unused_count: int
    potential_savings: Decimal


@dataclass(frozen=True)
class NotificationSettings:
    """Per-user notification preferences."""

    enable_unused_subscription_alerts: bool = True
    enable_billing_reminders: bool = True
    enable_scheduled_cancellation_alerts: bool = True
    unused_threshold_days: int = 30
    billing_reminder_days_before: int = 3
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"
    enable_quiet_hours: bool = True


@dataclass(frozen=True)
class UserPreferences:
    """Per-user display and account preferences."""

    default_currency: str = "USD"
    dark_mode: bool = False
    auto_backup: bool = True
    biometric_auth: bool = False
    analytics_sharing: bool = False
    marketing_emails: bool = False


@dataclass(frozen=True)
class User:
    """User as supplied by the identity provider."""

    uid: str
    email: str
    display_name: Optional[str] = None
    notification_settings: NotificationSettings = field(default_factory=NotificationSettings)
    preferences: UserPreferences = field(default_factory=UserPreferences)
