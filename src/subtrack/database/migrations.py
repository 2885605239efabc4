"""Versioned schema migrations.

Each migration has a version number and an ``upgrade`` function that runs
inside the same transaction that records it in the ``schema_version`` table.
Migrations only ever add to the schema; none of them drops a table or a
column holding user data.

Usage:
    apply_migrations(engine)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Callable

from sqlalchemy import Connection, Engine, inspect, insert, select, func

from subtrack.database.models import NotificationLog, SchemaVersion, Subscription
from subtrack.domain.errors import StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """A single schema migration step."""

    version: int
    description: str
    upgrade: Callable[[Connection], None]


def table_exists(conn: Connection, table_name: str) -> bool:
    """Check if a table exists.

    Args:
        conn: SQLAlchemy connection
        table_name: Name of the table

    Returns:
        True if table exists, False otherwise
    """
    return table_name in inspect(conn).get_table_names()


def _create_subscriptions(conn: Connection) -> None:
    Subscription.__table__.create(conn, checkfirst=True)


def _create_notification_log(conn: Connection) -> None:
    NotificationLog.__table__.create(conn, checkfirst=True)


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "create subscriptions table", _create_subscriptions),
    Migration(2, "create notification_log table", _create_notification_log),
)

LATEST_VERSION = MIGRATIONS[-1].version


def current_version(conn: Connection) -> int:
    """Return the highest applied migration version (0 for a new database)."""
    if not table_exists(conn, SchemaVersion.__tablename__):
        return 0
    version = conn.execute(select(func.max(SchemaVersion.version))).scalar()
    return version or 0


def apply_migrations(engine: Engine) -> list[int]:
    """Apply pending migrations in version order.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Versions applied by this call, in order

    Raises:
        StoreError: If the database was written by a newer schema version
    """
    applied = []
    with engine.begin() as conn:
        SchemaVersion.__table__.create(conn, checkfirst=True)
        version = current_version(conn)
        if version > LATEST_VERSION:
            raise StoreError(
                f"Database schema version {version} is newer than supported "
                f"version {LATEST_VERSION}; refusing to open it"
            )

        for migration in MIGRATIONS:
            if migration.version <= version:
                continue
            logger.info("Applying migration %d: %s", migration.version, migration.description)
            migration.upgrade(conn)
            conn.execute(
                insert(SchemaVersion.__table__).values(
                    version=migration.version,
                    description=migration.description,
                    applied_at=datetime.now(UTC).replace(tzinfo=None),
                )
            )
            applied.append(migration.version)

    return applied
