"""Usage matching: map device telemetry onto tracked subscriptions."""

import csv
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Iterable, Optional

from subtrack.domain.entities import Subscription
from subtrack.domain.errors import NotFoundError, ValidationError
from subtrack.domain.subscription import SubscriptionService

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=24)


@dataclass(frozen=True)
class UsageObservation:
    """One telemetry row: an app and when it was last active."""

    package_name: str
    last_active_millis: int

    @property
    def last_active(self) -> datetime:
        """Last-active time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.last_active_millis / 1000, tz=UTC)


class TelemetrySource(ABC):
    """Supplier of device usage telemetry."""

    @abstractmethod
    def query(self, window_start: datetime, window_end: datetime) -> list[UsageObservation]:
        """Return observations for apps active between two times."""
        pass


class CsvTelemetrySource(TelemetrySource):
    """Telemetry read from a CSV file with package_name,last_active_millis columns."""

    def __init__(self, csv_file_path: str):
        """Initialize CSV telemetry source.

        Args:
            csv_file_path: Path to CSV file
        """
        self.csv_path = Path(csv_file_path)

    def query(self, window_start: datetime, window_end: datetime) -> list[UsageObservation]:
        """Read observations from the file.

        Rows that cannot be parsed are skipped. Filtering by window is left to
        the matcher.

        Raises:
            FileNotFoundError: If the CSV file doesn't exist
        """
        if not self.csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {self.csv_path}")

        observations = []
        with open(self.csv_path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            for row_num, row in enumerate(reader, start=2):  # Start at 2 (header is row 1)
                package_name = (row.get("package_name") or "").strip()
                millis = (row.get("last_active_millis") or "").strip()
                if not package_name or not millis:
                    logger.debug("Row %d: missing package_name or last_active_millis, skipped", row_num)
                    continue
                try:
                    observations.append(UsageObservation(package_name, int(millis)))
                except ValueError:
                    logger.debug("Row %d: invalid timestamp %r, skipped", row_num, millis)
        return observations


def build_package_map(subscriptions: Iterable[Subscription]) -> dict[str, Subscription]:
    """Map package names to trackable subscriptions.

    When two subscriptions share a package name, the later one wins.
    """
    package_map: dict[str, Subscription] = {}
    for sub in subscriptions:
        if sub.is_trackable:
            package_map[sub.package_name.strip()] = sub
    return package_map


class UsageMatcher:
    """Matches telemetry observations to subscriptions and records usage."""

    def __init__(
        self,
        service: SubscriptionService,
        source: Optional[TelemetrySource] = None,
        lookback: timedelta = DEFAULT_LOOKBACK,
    ):
        """Initialize usage matcher.

        Args:
            service: Subscription service that records usage
            source: Telemetry source polled by ``poll``
            lookback: How far back ``poll`` looks for activity
        """
        self.service = service
        self.source = source
        self.lookback = lookback

    def match(
        self,
        observations: Iterable[UsageObservation],
        subscriptions: Iterable[Subscription],
        window_start: datetime,
        window_end: datetime,
    ) -> int:
        """Record usage for observations that match a subscription.

        Unmatched, malformed and out-of-window observations are dropped.

        Returns:
            Number of usage records that moved a last_used_date forward
        """
        package_map = build_package_map(subscriptions)
        if not package_map:
            return 0

        recorded = 0
        for observation in observations:
            sub = self._lookup(package_map, observation)
            if sub is None:
                continue
            try:
                last_active = observation.last_active
            except (TypeError, ValueError, OverflowError, OSError):
                logger.debug("Invalid timestamp for %s, skipped", observation.package_name)
                continue
            if not window_start <= last_active <= window_end:
                continue
            try:
                if self.service.record_usage(sub.id, last_active):
                    recorded += 1
            except (NotFoundError, ValidationError) as e:
                logger.debug("Usage for %s not recorded: %s", sub.id, e)
        return recorded

    def poll(self, now: Optional[datetime] = None) -> int:
        """Query the telemetry source over the lookback window and match it.

        A failing or empty source counts as no observations.

        Returns:
            Number of subscriptions whose last_used_date moved forward
        """
        if self.source is None:
            return 0
        now = now or self.service.clock()
        window_start = now - self.lookback
        try:
            observations = self.source.query(window_start, now)
        except Exception:
            logger.warning("Telemetry query failed; treating as no observations", exc_info=True)
            return 0
        if not observations:
            return 0

        recorded = self.match(observations, self.service.trackable(), window_start, now)
        logger.info("Usage poll: %d observation(s), %d subscription(s) updated", len(observations), recorded)
        return recorded

    @staticmethod
    def _lookup(package_map: dict[str, Subscription], observation) -> Optional[Subscription]:
        package_name = getattr(observation, "package_name", None)
        if not isinstance(package_name, str):
            return None
        return package_map.get(package_name.strip())
