"""Tests for the remote field-map codec and the fire-and-forget mirror."""

import logging
import threading
import pytest
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from subtrack.domain.entities import BillingCycle, SubscriptionCategory
from subtrack.domain.errors import ValidationError
from subtrack.domain.subscription import SubscriptionService
from subtrack.remote.base import RemoteStore
from subtrack.remote.codec import subscription_from_fields, subscription_to_fields
from subtrack.remote.mirror import RemoteMirror


class FailingRemoteStore(RemoteStore):
    """Remote store whose every call fails."""

    def __init__(self):
        self.calls = 0

    def put(self, subscription_id, fields):
        self.calls += 1
        raise ConnectionError("remote unreachable")

    def delete(self, subscription_id):
        self.calls += 1
        raise ConnectionError("remote unreachable")


class BlockingRemoteStore(RemoteStore):
    """Remote store that waits until released."""

    def __init__(self):
        self.release = threading.Event()
        self.puts = []

    def put(self, subscription_id, fields):
        self.release.wait(5)
        self.puts.append(subscription_id)

    def delete(self, subscription_id):
        pass


class TestCodec:
    """Tests for the flat field-map encoding."""

    def test_fields_are_primitives(self, subscription_factory):
        """Test that every encoded value is a remote-safe primitive."""
        sub = subscription_factory(
            id="sub-1",
            last_used_date=datetime(2024, 6, 1, 8, 0, tzinfo=UTC),
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            updated_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
        fields = subscription_to_fields(sub)

        for key, value in fields.items():
            assert value is None or isinstance(value, (str, bool, int, float)), key
        assert fields["monthly_price"] == "15.49"
        assert fields["billing_cycle"] == "MONTHLY"
        assert fields["next_billing_date"] == "2024-07-01"
        assert fields["last_used_date"] == "2024-06-01T08:00:00+00:00"

    def test_decode_restores_subscription(self, subscription_factory):
        """Test that decoding an encoded subscription restores it."""
        sub = subscription_factory(
            id="sub-1",
            billing_cycle=BillingCycle.WEEKLY,
            category=SubscriptionCategory.GAMING,
            monthly_price=Decimal("4.99"),
            scheduled_cancellation_date=datetime(2024, 9, 1, tzinfo=UTC),
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            updated_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
        assert subscription_from_fields(subscription_to_fields(sub)) == sub

    def test_decode_applies_defaults(self):
        """Test that optional fields fall back to their defaults."""
        sub = subscription_from_fields(
            {
                "id": "x",
                "name": "X",
                "category": "NEWS",
                "monthly_price": "3",
                "billing_cycle": "ANNUALLY",
                "next_billing_date": "2024-12-01",
            }
        )
        assert sub.is_active is True
        assert sub.total_spent == Decimal("0")
        assert sub.next_billing_date == date(2024, 12, 1)

    @pytest.mark.parametrize(
        "key,value",
        [
            ("category", "SPORTS"),
            ("billing_cycle", "DAILY"),
            ("monthly_price", "abc"),
            ("next_billing_date", "soon"),
            ("last_used_date", "yesterday"),
            ("name", 123),
            ("website_url", 1),
            ("is_active", "false"),
            ("usage_tracking_enabled", 1),
            ("category", ["MUSIC"]),
        ],
    )
    def test_decode_rejects_malformed_values(self, subscription_factory, key, value):
        """Test that malformed values raise ValidationError."""
        fields = subscription_to_fields(subscription_factory(id="x"))
        fields[key] = value
        with pytest.raises(ValidationError):
            subscription_from_fields(fields)


class TestRemoteMirror:
    """Tests for the remote mirror."""

    def test_mutations_reach_remote(self, mirrored_service, subscription_factory, mirror, remote):
        """Test that create, update and delete are mirrored in order."""
        created = mirrored_service.create(subscription_factory())
        mirrored_service.cancel_now([created.id])
        assert mirror.drain(5)
        assert remote.get(created.id)["is_active"] is False

        mirrored_service.delete(created.id)
        assert mirror.drain(5)
        assert remote.get(created.id) is None

    def test_remote_failure_is_swallowed(self, temp_db, clock, subscription_factory, caplog):
        """Test that a failing remote never fails or rolls back the local write."""
        failing = FailingRemoteStore()
        mirror = RemoteMirror(failing)
        service = SubscriptionService(temp_db, mirror=mirror, clock=clock)
        try:
            with caplog.at_level(logging.WARNING, logger="subtrack.remote.mirror"):
                created = service.create(subscription_factory())
                assert mirror.drain(5)
        finally:
            mirror.shutdown()

        assert service.get(created.id) == created
        assert failing.calls == 1
        assert "failed" in caplog.text

    def test_caller_does_not_wait_for_remote(self, temp_db, clock, subscription_factory):
        """Test that mutations return while the remote write is still pending."""
        blocking = BlockingRemoteStore()
        mirror = RemoteMirror(blocking)
        service = SubscriptionService(temp_db, mirror=mirror, clock=clock)
        try:
            created = service.create(subscription_factory())
            assert blocking.puts == []
            assert not mirror.drain(0.05)
            blocking.release.set()
            assert mirror.drain(5)
            assert blocking.puts == [created.id]
        finally:
            blocking.release.set()
            mirror.shutdown()

    def test_writes_after_shutdown_are_dropped(self, mirror, remote, subscription_factory):
        """Test that a shut down mirror drops writes without raising."""
        mirror.shutdown()
        mirror.mirror_put(subscription_factory(id="late"))
        assert len(remote) == 0

    def test_sync_with_cloud(self, mirrored_service, subscription_factory, mirror, remote):
        """Test that sync pushes every local subscription."""
        for name in ("A", "B"):
            mirrored_service.create(subscription_factory(name=name))
        assert mirror.drain(5)
        remote._documents.clear()

        assert mirrored_service.sync_with_cloud() == 2
        assert mirror.drain(5)
        assert len(remote) == 2

    def test_cleanup_is_local_only(self, mirrored_service, subscription_factory, mirror, remote, clock):
        """Test that cleanup does not delete remote copies."""
        created = mirrored_service.create(subscription_factory())
        mirrored_service.cancel_now([created.id])
        clock.advance(days=91)
        assert mirrored_service.cleanup_inactive(90) == 1
        assert mirror.drain(5)
        assert remote.get(created.id) is not None
