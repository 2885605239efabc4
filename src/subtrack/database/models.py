"""SQLAlchemy models for subtrack database.

Money columns are stored as decimal strings so SQLite never rounds them
through floating point. Timestamps are stored as naive UTC.
"""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Boolean,
    Index,
    Engine,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Subscription(Base):
    """Subscription model."""

    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=False)
    monthly_price = Column(String, nullable=False)
    billing_cycle = Column(String, nullable=False)
    next_billing_date = Column(Date, nullable=False)
    website_url = Column(String, nullable=True)
    cancellation_url = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)
    scheduled_cancellation_date = Column(DateTime, nullable=True)
    usage_tracking_enabled = Column(Boolean, default=True, nullable=False)
    reminder_frequency = Column(String, nullable=False, default="WEEKLY")
    total_spent = Column(String, nullable=False, default="0")
    platform_identifier = Column(String, nullable=True)
    package_name = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_subscriptions_active_category", "is_active", "category"),
        Index("ix_subscriptions_package_name", "package_name"),
    )


class NotificationLog(Base):
    """Last notification time per subscription, used for throttling.

    Kept apart from subscription rows and not tied to them by a foreign key,
    so throttle state outlives deletes and re-imports.
    """

    __tablename__ = "notification_log"

    subscription_id = Column(String, primary_key=True)
    last_sent_at = Column(DateTime, nullable=False)


class SchemaVersion(Base):
    """Applied schema migrations."""

    __tablename__ = "schema_version"

    version = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
    applied_at = Column(DateTime, default=_utcnow, nullable=False)


def create_database_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine.

    Tables are not created here; see ``subtrack.database.migrations``.
    """
    return create_engine(database_url, echo=False)


def create_session_factory(engine: Engine) -> scoped_session[Session]:
    """Create a thread-scoped SQLAlchemy session factory."""
    return scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
