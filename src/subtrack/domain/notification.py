"""Unused-subscription alerts with per-subscription throttling."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import Optional

from subtrack.database.base import Database
from subtrack.domain.entities import NotificationSettings, RecommendationType
from subtrack.domain.recommendation import RecommendationService, UnusedSubscriptionRule
from subtrack.domain.subscription import SubscriptionService
from subtrack.utils.date_parser import parse_clock_time

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_INTERVAL = timedelta(days=7)
UNUSED_ALERT_TITLE = "Unused Subscription Alert"


class Notifier(ABC):
    """Outbound notification channel."""

    @abstractmethod
    def notify(self, subscription_id: str, title: str, body: str) -> None:
        """Send a notification about a subscription."""
        pass


class LoggingNotifier(Notifier):
    """Notifier that writes notifications to the log."""

    def notify(self, subscription_id: str, title: str, body: str) -> None:
        logger.info("[%s] %s: %s", subscription_id, title, body)


class NotificationThrottle:
    """Rate limit for notifications, one entry per subscription.

    The last-sent time lives in the database, apart from subscription rows,
    so it survives sweep restarts.
    """

    def __init__(self, db: Database, interval: timedelta = DEFAULT_THROTTLE_INTERVAL):
        """Initialize notification throttle.

        Args:
            db: Database holding the throttle state
            interval: Minimum time between two notifications for one subscription
        """
        self.db = db
        self.interval = interval
        self._lock = threading.Lock()

    def should_notify(self, subscription_id: str, now: datetime) -> bool:
        """True if nothing was sent for this subscription within the interval."""
        last_sent = self.db.get_last_notification(subscription_id)
        return last_sent is None or last_sent < now - self.interval

    def record_sent(self, subscription_id: str, now: datetime) -> None:
        """Remember that a notification was sent at ``now``."""
        self.db.record_notification(subscription_id, now)

    def claim(self, subscription_id: str, now: datetime) -> bool:
        """Check and record in one step.

        Returns:
            True if the caller may send now; the send is already recorded
        """
        with self._lock:
            if not self.should_notify(subscription_id, now):
                return False
            self.record_sent(subscription_id, now)
            return True


def in_quiet_hours(settings: NotificationSettings, local_now: datetime) -> bool:
    """Check whether a local time falls inside the configured quiet hours.

    The window may wrap past midnight (e.g. 22:00 to 08:00). The start is
    inclusive and the end exclusive.
    """
    if not settings.enable_quiet_hours:
        return False
    start = parse_clock_time(settings.quiet_hours_start)
    end = parse_clock_time(settings.quiet_hours_end)
    current = time(local_now.hour, local_now.minute)
    if start == end:
        return False
    if start < end:
        return start <= current < end
    return current >= start or current < end


class NotificationService:
    """Sends throttled alerts for unused subscriptions."""

    def __init__(
        self,
        service: SubscriptionService,
        notifier: Optional[Notifier] = None,
        throttle: Optional[NotificationThrottle] = None,
        local_tz: Optional[tzinfo] = None,
    ):
        """Initialize notification service.

        Args:
            service: Subscription service to read from
            notifier: Outbound channel; defaults to the log
            throttle: Throttle state; defaults to one over the service database
            local_tz: Time zone for quiet hours; defaults to the system zone
        """
        self.service = service
        self.notifier = notifier or LoggingNotifier()
        self.throttle = throttle or NotificationThrottle(service.db)
        self.local_tz = local_tz
        self._lock = threading.Lock()

    def notify_unused(
        self,
        now: Optional[datetime] = None,
        settings: Optional[NotificationSettings] = None,
        currency: str = "USD",
    ) -> int:
        """Alert about unused subscriptions that were not alerted recently.

        Nothing is sent when unused alerts are disabled or during quiet hours.
        A notifier failure is logged; that subscription is not marked as sent.

        Returns:
            Number of notifications sent
        """
        now = now or self.service.clock()
        settings = settings or NotificationSettings()
        if not settings.enable_unused_subscription_alerts:
            return 0
        if in_quiet_hours(settings, now.astimezone(self.local_tz)):
            logger.debug("Quiet hours; unused-subscription alerts deferred")
            return 0

        recommendations = RecommendationService(
            self.service, [UnusedSubscriptionRule(settings.unused_threshold_days)]
        ).generate_recommendations(now)

        sent = 0
        with self._lock:
            for rec in recommendations:
                if rec.recommendation_type is not RecommendationType.CANCEL_UNUSED:
                    continue
                if not self.throttle.should_notify(rec.subscription_id, now):
                    continue
                savings = rec.potential_savings.quantize(Decimal("0.01"))
                body = f"{rec.reason}. Consider canceling to save {savings} {currency}/month."
                try:
                    self.notifier.notify(rec.subscription_id, UNUSED_ALERT_TITLE, body)
                except Exception:
                    logger.warning("Notifier failed for subscription %s", rec.subscription_id, exc_info=True)
                    continue
                self.throttle.record_sent(rec.subscription_id, now)
                sent += 1

        if sent:
            logger.info("Sent %d unused-subscription alert(s)", sent)
        return sent
