"""Shared pytest fixtures for subtrack tests."""

import tempfile
import os
from dataclasses import replace
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
import pytest

from subtrack.database.factories import create_sqlite_database
from subtrack.domain.entities import BillingCycle, Subscription, SubscriptionCategory
from subtrack.domain.subscription import SubscriptionService
from subtrack.remote.base import InMemoryRemoteStore
from subtrack.remote.mirror import RemoteMirror

START = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_subscription(**overrides) -> Subscription:
    """Build an uncreated subscription with sensible defaults."""
    fields = dict(
        name="Netflix",
        category=SubscriptionCategory.VIDEO_STREAMING,
        monthly_price=Decimal("15.49"),
        billing_cycle=BillingCycle.MONTHLY,
        next_billing_date=date(2024, 7, 1),
    )
    fields.update(overrides)
    return Subscription(**fields)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """A frozen clock starting at 2024-06-15 12:00 UTC."""
    return FrozenClock()


@pytest.fixture
def remote():
    """An in-memory remote store."""
    return InMemoryRemoteStore()


@pytest.fixture
def mirror(remote):
    """A remote mirror writing to the in-memory remote store."""
    mirror = RemoteMirror(remote)
    yield mirror
    mirror.shutdown()


@pytest.fixture
def subscription_factory():
    """Return the make_subscription builder."""
    return make_subscription


@pytest.fixture
def subscription_service(temp_db, clock):
    """Create a SubscriptionService with a temporary database and frozen clock."""
    return SubscriptionService(temp_db, clock=clock)


@pytest.fixture
def mirrored_service(temp_db, clock, mirror):
    """Create a SubscriptionService that mirrors to the in-memory remote store."""
    return SubscriptionService(temp_db, mirror=mirror, clock=clock)


@pytest.fixture
def sample_subscription(subscription_service):
    """Create a sample subscription for testing."""
    return subscription_service.create(make_subscription())


@pytest.fixture
def aged(subscription_service, clock):
    """Create a subscription as if it had been added ``days`` days ago."""

    def create(days: int, **overrides) -> Subscription:
        created = subscription_service.create(make_subscription(**overrides))
        backdated = replace(created, created_at=clock() - timedelta(days=days))
        subscription_service.db.put_subscription(backdated)
        return backdated

    return create


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
