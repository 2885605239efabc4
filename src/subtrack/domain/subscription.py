"""Subscription lifecycle and reconciliation service.

The service is the only writer of subscription rows. Every mutation is
written to the local cache first; the remote mirror is then asked to copy it
without the caller waiting for the result.

Lifecycle per subscription::

    active --schedule_cancellation--> active, cancellation pending
    active / pending --cancel_now--> inactive

``inactive`` is terminal for this service. Only an explicit ``update`` with
``is_active=True`` brings a subscription back.

Batch operations run id by id, each under that id's lock. They are not
atomic across the batch: if the store fails partway, ids handled before the
failure stay mutated and BatchOperationError reports how many there were.
"""

import json
import logging
import threading
import uuid
from contextlib import ExitStack, contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional
from weakref import WeakValueDictionary

from subtrack.database.base import Database
from subtrack.domain import errors
from subtrack.domain.billing import (
    accrued_total_spent,
    is_unused,
    monthly_equivalent,
    usage_stats,
)
from subtrack.domain.entities import (
    BillingCycle,
    ReminderFrequency,
    SpendingSummary,
    Subscription,
    SubscriptionCategory,
    SubscriptionUsage,
)
from subtrack.domain.errors import (
    BatchOperationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from subtrack.domain.events import EventBus, EventKind, Listener, SubscriptionEvent
from subtrack.remote.codec import subscription_from_fields, subscription_to_fields
from subtrack.remote.mirror import RemoteMirror
from subtrack.utils.clock import Clock, is_aware, utc_now

logger = logging.getLogger(__name__)

DEFAULT_UNUSED_THRESHOLD_DAYS = 30
DEFAULT_UPCOMING_DAYS = 7
RECENT_LIMIT = 10

Mutation = Callable[[Subscription, datetime], Optional[Subscription]]


def _check_money(value, field_name: str) -> None:
    if not isinstance(value, Decimal):
        raise ValidationError(
            f"{field_name} must be a Decimal, got {type(value).__name__} ({value!r})"
        )
    if not value.is_finite():
        raise ValidationError(f"{field_name} must be a finite amount (got {value})")
    if value < 0:
        raise ValidationError(errors.negative_amount(field_name, value))


def _check_timestamp(value: Optional[datetime], field_name: str) -> None:
    if value is not None and not is_aware(value):
        raise ValidationError(f"{field_name} must be timezone-aware (got {value.isoformat()})")


def validate_subscription(subscription: Subscription) -> None:
    """Validate a subscription's fields before it is written.

    Raises:
        ValidationError: If any field is invalid
    """
    if subscription.name is not None and not isinstance(subscription.name, str):
        raise ValidationError(f"Subscription name must be a string, got {subscription.name!r}")
    if not subscription.name or not subscription.name.strip():
        raise ValidationError("Subscription name must not be empty")
    if not isinstance(subscription.category, SubscriptionCategory):
        raise ValidationError(f"Invalid category: {subscription.category!r}")
    if not isinstance(subscription.billing_cycle, BillingCycle):
        raise ValidationError(f"Invalid billing cycle: {subscription.billing_cycle!r}")
    if not isinstance(subscription.reminder_frequency, ReminderFrequency):
        raise ValidationError(f"Invalid reminder frequency: {subscription.reminder_frequency!r}")
    _check_money(subscription.monthly_price, "monthly_price")
    _check_money(subscription.total_spent, "total_spent")
    _check_timestamp(subscription.last_used_date, "last_used_date")
    _check_timestamp(subscription.scheduled_cancellation_date, "scheduled_cancellation_date")


class SubscriptionService:
    """Service for managing the subscription lifecycle."""

    def __init__(
        self,
        db: Database,
        mirror: Optional[RemoteMirror] = None,
        clock: Clock = utc_now,
    ):
        """Initialize subscription service.

        Args:
            db: Database instance (local cache)
            mirror: Optional remote mirror; without one, changes stay local
            clock: Callable returning the current aware UTC time
        """
        self.db = db
        self.mirror = mirror
        self.clock = clock
        self.events = EventBus()
        # Entries disappear once no caller holds the lock
        self._locks: WeakValueDictionary[str, threading.Lock] = WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unregisters it."""
        return self.events.subscribe(listener)

    # Lifecycle operations
    def create(self, subscription: Subscription) -> Subscription:
        """Create a subscription.

        Assigns an id when absent and stamps created_at and updated_at.

        Args:
            subscription: Subscription to store

        Returns:
            The stored subscription

        Raises:
            ValidationError: If a field is invalid or the scheduled
                cancellation is in the past
            ConflictError: If the id is already stored
            StoreError: If the local cache write fails
        """
        validate_subscription(subscription)
        now = self.clock()
        self._check_cancellation_time(subscription.scheduled_cancellation_date, now)

        subscription_id = subscription.id or str(uuid.uuid4())
        created = replace(subscription, id=subscription_id, created_at=now, updated_at=now)

        with self._locked(subscription_id):
            if self.db.get_subscription(subscription_id) is not None:
                raise ConflictError(errors.duplicate_subscription_id(subscription_id))
            self.db.put_subscription(created)
            self._mirror_put(created)

        logger.info("Created subscription %s (%s)", subscription_id, created.name)
        self._publish(EventKind.CREATED, [subscription_id], now)
        return created

    def update(self, subscription: Subscription) -> Subscription:
        """Replace a stored subscription's fields.

        created_at is kept from the stored row; updated_at is stamped.

        Raises:
            ValidationError: If a field is invalid or a newly set scheduled
                cancellation is in the past
            NotFoundError: If the subscription does not exist
            StoreError: If the local cache write fails
        """
        if not subscription.id:
            raise ValidationError("Cannot update a subscription without an id")
        validate_subscription(subscription)
        now = self.clock()

        def apply(stored: Subscription, at: datetime) -> Subscription:
            if subscription.scheduled_cancellation_date != stored.scheduled_cancellation_date:
                self._check_cancellation_time(subscription.scheduled_cancellation_date, at)
            return replace(subscription, created_at=stored.created_at, updated_at=at)

        updated = self._mutate_one(subscription.id, apply, now)
        self._publish(EventKind.UPDATED, [updated.id], now)
        return updated

    def delete(self, subscription_id: str) -> bool:
        """Delete a subscription.

        Returns:
            True if it existed, False otherwise
        """
        now = self.clock()
        with self._locked(subscription_id):
            existed = self.db.delete_subscription(subscription_id)
            if existed and self.mirror is not None:
                self.mirror.mirror_delete(subscription_id)

        if not existed:
            logger.debug("Delete of unknown subscription %s ignored", subscription_id)
            return False

        logger.info("Deleted subscription %s", subscription_id)
        self._publish(EventKind.DELETED, [subscription_id], now)
        return True

    def cancel_now(self, subscription_ids: Iterable[str]) -> int:
        """Deactivate subscriptions immediately.

        Already inactive and unknown ids are skipped, so repeating the call
        is harmless.

        Returns:
            Number of subscriptions deactivated by this call

        Raises:
            BatchOperationError: If the store fails partway
        """

        def deactivate(stored: Subscription, at: datetime) -> Optional[Subscription]:
            if not stored.is_active:
                return None
            return replace(stored, is_active=False, updated_at=at)

        changed = self._apply_batch("Cancellation", subscription_ids, deactivate, EventKind.CANCELLED)
        if changed:
            logger.info("Cancelled %d subscription(s): %s", len(changed), ", ".join(changed))
        return len(changed)

    def schedule_cancellation(self, subscription_ids: Iterable[str], at: datetime) -> int:
        """Record an intent to cancel subscriptions at ``at``.

        Inactive and unknown ids are skipped.

        Returns:
            Number of subscriptions scheduled

        Raises:
            ValidationError: If ``at`` is naive or earlier than now; nothing
                is written in that case
            BatchOperationError: If the store fails partway
        """
        _check_timestamp(at, "cancellation time")
        now = self.clock()
        self._check_cancellation_time(at, now)

        def schedule(stored: Subscription, stamp: datetime) -> Optional[Subscription]:
            if not stored.is_active:
                return None
            return replace(stored, scheduled_cancellation_date=at, updated_at=stamp)

        changed = self._apply_batch(
            "Scheduling cancellation", subscription_ids, schedule, EventKind.CANCELLATION_SCHEDULED, now
        )
        if changed:
            logger.info("Scheduled cancellation of %d subscription(s) at %s", len(changed), at.isoformat())
        return len(changed)

    def unschedule_cancellation(self, subscription_ids: Iterable[str]) -> int:
        """Clear scheduled cancellations.

        No-op for inactive subscriptions and for those with nothing scheduled.

        Returns:
            Number of subscriptions whose scheduled cancellation was cleared
        """

        def unschedule(stored: Subscription, at: datetime) -> Optional[Subscription]:
            if not stored.is_active or stored.scheduled_cancellation_date is None:
                return None
            return replace(stored, scheduled_cancellation_date=None, updated_at=at)

        changed = self._apply_batch(
            "Unscheduling cancellation", subscription_ids, unschedule, EventKind.CANCELLATION_UNSCHEDULED
        )
        if changed:
            logger.info("Unscheduled cancellation of %d subscription(s)", len(changed))
        return len(changed)

    def due_cancellations(self, as_of: Optional[datetime] = None) -> list[Subscription]:
        """Active subscriptions whose scheduled cancellation is at or before ``as_of``.

        Reading does not deactivate anything; pass the result to cancel_now.
        """
        as_of = as_of or self.clock()
        return [sub for sub in self.db.list_scheduled_cancellations(as_of) if sub.is_active]

    def process_due_cancellations(self, as_of: Optional[datetime] = None) -> int:
        """Deactivate every subscription whose scheduled cancellation is due."""
        due = self.due_cancellations(as_of)
        if not due:
            return 0
        return self.cancel_now([sub.id for sub in due])

    def record_usage(self, subscription_id: str, timestamp: datetime) -> bool:
        """Move last_used_date forward to ``timestamp``.

        The field never moves backward: an equal or older timestamp is a no-op.

        Returns:
            True if last_used_date changed

        Raises:
            ValidationError: If ``timestamp`` is naive
            NotFoundError: If the subscription does not exist
        """
        _check_timestamp(timestamp, "usage timestamp")
        now = self.clock()

        def advance(stored: Subscription, at: datetime) -> Optional[Subscription]:
            if stored.last_used_date is not None and timestamp <= stored.last_used_date:
                return None
            return replace(stored, last_used_date=timestamp, updated_at=at)

        updated = self._mutate_one(subscription_id, advance, now)
        if updated is None:
            return False
        self._publish(EventKind.USAGE_RECORDED, [subscription_id], now)
        return True

    def record_usage_by_package(self, package_name: str, timestamp: datetime) -> int:
        """Record usage for subscriptions matching a package name.

        Matches subscriptions whose package name equals ``package_name`` or
        whose name contains it.

        Returns:
            Number of subscriptions whose last_used_date changed
        """
        if not package_name or not package_name.strip():
            raise ValidationError("Package name must not be empty")
        updated = 0
        for sub in self.db.find_usage_targets(package_name.strip()):
            try:
                if self.record_usage(sub.id, timestamp):
                    updated += 1
            except NotFoundError:
                logger.debug("Subscription %s vanished before usage could be recorded", sub.id)
        return updated

    def set_usage_tracking(self, subscription_id: str, enabled: bool) -> Subscription:
        """Enable or disable usage tracking for a subscription."""
        now = self.clock()
        updated = self._mutate_one(
            subscription_id,
            lambda stored, at: replace(stored, usage_tracking_enabled=enabled, updated_at=at),
            now,
        )
        self._publish(EventKind.UPDATED, [subscription_id], now)
        return updated

    def accrue_total_spent(self, subscription_id: str, months: int) -> Subscription:
        """Set total_spent to the monthly price times ``months``."""
        if months < 0:
            raise ValidationError(f"months must not be negative (got {months})")
        now = self.clock()
        updated = self._mutate_one(
            subscription_id,
            lambda stored, at: replace(
                stored,
                total_spent=accrued_total_spent(stored.monthly_price, months),
                updated_at=at,
            ),
            now,
        )
        self._publish(EventKind.UPDATED, [subscription_id], now)
        return updated

    def cleanup_inactive(self, older_than_days: int = 90) -> int:
        """Delete inactive subscriptions not updated for ``older_than_days`` days.

        Only the local cache is cleaned; the remote copies are left alone.
        """
        now = self.clock()
        removed = self.db.delete_inactive_before(now - timedelta(days=older_than_days))
        if removed:
            logger.info("Removed %d inactive subscription(s)", removed)
            self._publish(EventKind.CLEANED_UP, [], now)
        return removed

    # Data management
    def export_subscriptions(self) -> str:
        """Export every subscription as a JSON list of field maps."""
        fields = [subscription_to_fields(sub) for sub in self.db.list_subscriptions()]
        return json.dumps(fields, indent=2)

    def import_subscriptions(self, data: str) -> int:
        """Import subscriptions from an export.

        Existing ids are overwritten (last writer wins). The whole import is
        validated before anything is written and stored in one transaction.

        Returns:
            Number of subscriptions imported

        Raises:
            ValidationError: If the data is not a valid export
        """
        try:
            records = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Import data is not valid JSON: {e}") from e
        if not isinstance(records, list):
            raise ValidationError("Import data must be a JSON list of subscriptions")

        now = self.clock()
        subscriptions = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise ValidationError(f"Import entry {index} is not an object")
            sub = subscription_from_fields(record)
            validate_subscription(sub)
            if sub.is_active:
                self._check_cancellation_time(sub.scheduled_cancellation_date, now)
            subscriptions.append(replace(sub, created_at=sub.created_at or now, updated_at=now))

        if not subscriptions:
            return 0

        with self._locked_many(sub.id for sub in subscriptions):
            self.db.put_subscriptions(subscriptions)
            for sub in subscriptions:
                self._mirror_put(sub)
        logger.info("Imported %d subscription(s)", len(subscriptions))
        self._publish(EventKind.IMPORTED, [sub.id for sub in subscriptions], now)
        return len(subscriptions)

    def sync_with_cloud(self) -> int:
        """Queue a remote put for every stored subscription.

        Returns:
            Number of subscriptions queued (0 without a mirror)
        """
        if self.mirror is None:
            logger.info("No remote mirror configured; nothing to sync")
            return 0
        queued = 0
        for listed in self.db.list_subscriptions():
            with self._locked(listed.id):
                sub = self.db.get_subscription(listed.id)
                if sub is None:
                    continue
                self.mirror.mirror_put(sub)
            queued += 1
        logger.info("Queued %d subscription(s) for remote sync", queued)
        return queued

    # Queries
    def get(self, subscription_id: str) -> Optional[Subscription]:
        """Get subscription by ID."""
        return self.db.get_subscription(subscription_id)

    def list_all(self) -> list[Subscription]:
        """List all subscriptions, including inactive ones."""
        return self.db.list_subscriptions()

    def list_active(self) -> list[Subscription]:
        """List active subscriptions."""
        return self.db.list_active_subscriptions()

    def by_category(self, category: SubscriptionCategory) -> list[Subscription]:
        """List active subscriptions in a category."""
        return self.db.list_by_category(category)

    def by_price_range(self, min_price: Decimal, max_price: Decimal) -> list[Subscription]:
        """List active subscriptions within a price range."""
        if min_price > max_price:
            raise ValidationError(f"Minimum price {min_price} is greater than maximum price {max_price}")
        return self.db.list_by_price_range(min_price, max_price)

    def search(self, query: str) -> list[Subscription]:
        """Search active subscriptions by name or description."""
        if not query.strip():
            return self.list_active()
        return self.db.search_subscriptions(query.strip())

    def upcoming_bills(self, days: int = DEFAULT_UPCOMING_DAYS) -> list[Subscription]:
        """Active subscriptions billed between today and ``days`` days from now."""
        today = self.clock().date()
        return self.db.list_due_for_billing(today, today + timedelta(days=days))

    def recent(self, limit: int = RECENT_LIMIT) -> list[Subscription]:
        """Most recently created active subscriptions."""
        return self.list_active()[:limit]

    def trackable(self) -> list[Subscription]:
        """Active subscriptions eligible for usage tracking."""
        return self.db.list_trackable()

    def unused(self, threshold_days: int = DEFAULT_UNUSED_THRESHOLD_DAYS) -> list[Subscription]:
        """Active subscriptions considered unused at the current time."""
        now = self.clock()
        candidates = self.db.list_unused(now - timedelta(days=threshold_days))
        return [sub for sub in candidates if is_unused(sub, threshold_days, now)]

    def usage_stats(self, subscription_id: str) -> Optional[SubscriptionUsage]:
        """Usage statistics for a subscription, or None if it does not exist."""
        sub = self.db.get_subscription(subscription_id)
        if sub is None:
            return None
        return usage_stats(sub, self.clock())

    def spending_summary(self, unused_threshold_days: int = DEFAULT_UNUSED_THRESHOLD_DAYS) -> SpendingSummary:
        """Aggregate spending figures over active subscriptions."""
        active = self.list_active()
        equivalent = sum(
            (monthly_equivalent(sub.monthly_price, sub.billing_cycle) for sub in active),
            Decimal("0"),
        )
        unused = self.unused(unused_threshold_days)
        savings = sum(
            (monthly_equivalent(sub.monthly_price, sub.billing_cycle) for sub in unused),
            Decimal("0"),
        )
        return SpendingSummary(
            active_count=self.db.count_active(),
            total_count=self.db.count_all(),
            total_monthly_price=self.db.total_monthly_price(),
            monthly_equivalent=equivalent,
            yearly_projection=equivalent * 12,
            average_price=self.db.average_price(),
            spending_by_category=self.db.spending_by_category(),
            category_distribution=self.db.category_distribution(),
            unused_count=len(unused),
            potential_savings=savings,
        )

    # Internals
    @contextmanager
    def _locked(self, subscription_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.get(subscription_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[subscription_id] = lock
        with lock:
            yield

    @contextmanager
    def _locked_many(self, subscription_ids: Iterable[str]) -> Iterator[None]:
        """Hold the locks of several ids, taken in sorted order."""
        with ExitStack() as stack:
            for subscription_id in sorted(set(subscription_ids)):
                stack.enter_context(self._locked(subscription_id))
            yield

    def _check_cancellation_time(self, at: Optional[datetime], now: datetime) -> None:
        if at is not None and at < now:
            raise ValidationError(errors.cancellation_in_past(at, now))

    def _mutate_one(self, subscription_id: str, mutate: Mutation, now: datetime) -> Optional[Subscription]:
        """Read-modify-write one subscription under its lock.

        Returns:
            The written subscription, or None if ``mutate`` declined to change it
        """
        with self._locked(subscription_id):
            stored = self.db.get_subscription(subscription_id)
            if stored is None:
                raise NotFoundError(errors.subscription_not_found(subscription_id))
            updated = mutate(stored, now)
            if updated is None:
                return None
            self.db.put_subscription(updated)
            self._mirror_put(updated)
        return updated

    def _apply_batch(
        self,
        operation: str,
        subscription_ids: Iterable[str],
        mutate: Mutation,
        kind: EventKind,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Apply ``mutate`` to each id in turn.

        Returns:
            Ids that were changed
        """
        now = now or self.clock()
        ids = list(dict.fromkeys(subscription_ids))
        changed: list[str] = []
        try:
            for subscription_id in ids:
                with self._locked(subscription_id):
                    stored = self.db.get_subscription(subscription_id)
                    if stored is None:
                        logger.debug("%s: subscription %s not found, skipped", operation, subscription_id)
                        continue
                    updated = mutate(stored, now)
                    if updated is None:
                        continue
                    self.db.put_subscription(updated)
                    self._mirror_put(updated)
                changed.append(subscription_id)
        except StoreError as e:
            message = errors.batch_failed(operation, len(changed), len(ids), e)
            logger.error(message)
            if changed:
                self._publish(kind, changed, now)
            raise BatchOperationError(message, applied=len(changed)) from e

        if changed:
            self._publish(kind, changed, now)
        return changed

    def _mirror_put(self, subscription: Subscription) -> None:
        if self.mirror is not None:
            self.mirror.mirror_put(subscription)

    def _publish(self, kind: EventKind, subscription_ids: list[str], now: datetime) -> None:
        self.events.publish(SubscriptionEvent(kind, tuple(subscription_ids), now))
