"""Background sweeps: usage polling, due cancellations and unused alerts."""

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from subtrack.domain.entities import NotificationSettings
from subtrack.domain.notification import NotificationService
from subtrack.domain.subscription import SubscriptionService
from subtrack.domain.usage import UsageMatcher

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = timedelta(minutes=15)


class PeriodicTask:
    """Runs an action on its own thread at a fixed interval.

    The first run happens as soon as the task starts. A failing run is logged
    and the next one is attempted on schedule. While paused the thread keeps
    its schedule but skips runs.
    """

    def __init__(self, name: str, interval: timedelta, action: Callable[[], object]):
        if interval <= timedelta(0):
            raise ValueError(f"Interval for task '{name}' must be positive")
        self.name = name
        self.interval = interval
        self.action = action
        self.runs = 0
        self.failures = 0
        self._stop_event = threading.Event()
        self._paused = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    def start(self) -> None:
        """Start the task thread. Does nothing if it is already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=f"subtrack-{self.name}", daemon=True)
        self._thread.start()
        logger.debug("Started periodic task %s every %s", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop the task and wait for its thread to exit.

        Returns:
            True if the thread has exited
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Periodic task %s did not stop within %s seconds", self.name, timeout)
                return False
        self._thread = None
        return True

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def run_once(self) -> bool:
        """Run the action now on the calling thread.

        Returns:
            True if the action completed without raising
        """
        with self._run_lock:
            try:
                self.action()
            except Exception:
                self.failures += 1
                logger.exception("Periodic task %s failed", self.name)
                return False
            self.runs += 1
            return True

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if not self._paused.is_set():
                self.run_once()
            self._stop_event.wait(self.interval.total_seconds())


class SubscriptionSweeper:
    """Schedules the engine's periodic work.

    Throttle state lives in the database, so stopping, pausing or restarting
    the sweeper never resends alerts early.
    """

    def __init__(
        self,
        service: SubscriptionService,
        matcher: Optional[UsageMatcher] = None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[NotificationSettings] = None,
        usage_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        cancellation_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        notification_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
    ):
        """Initialize subscription sweeper.

        Args:
            service: Subscription service
            matcher: Usage matcher to poll; usage polling is skipped without one
            notifications: Notification service; alerts are skipped without one
            settings: Notification settings passed to each alert sweep
            usage_interval: Usage poll cadence
            cancellation_interval: Due-cancellation sweep cadence
            notification_interval: Unused-alert sweep cadence
        """
        self.service = service
        self.matcher = matcher
        self.notifications = notifications
        self.settings = settings or NotificationSettings()

        self.tasks: list[PeriodicTask] = []
        if matcher is not None:
            self.tasks.append(PeriodicTask("usage-poll", usage_interval, self.poll_usage))
        self.tasks.append(PeriodicTask("due-cancellations", cancellation_interval, self.cancel_due))
        if notifications is not None:
            self.tasks.append(PeriodicTask("unused-alerts", notification_interval, self.send_alerts))

    def poll_usage(self) -> int:
        return self.matcher.poll() if self.matcher is not None else 0

    def cancel_due(self) -> int:
        cancelled = self.service.process_due_cancellations()
        if cancelled:
            logger.info("Due-cancellation sweep deactivated %d subscription(s)", cancelled)
        return cancelled

    def send_alerts(self) -> int:
        if self.notifications is None:
            return 0
        return self.notifications.notify_unused(settings=self.settings)

    def run_once(self) -> None:
        """Run every sweep once, in data-flow order, on the calling thread."""
        for task in self.tasks:
            task.run_once()

    def start(self) -> None:
        for task in self.tasks:
            task.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop every task. Returns True if all threads have exited."""
        results = [task.stop(timeout) for task in self.tasks]
        return all(results)

    def pause(self) -> None:
        for task in self.tasks:
            task.pause()

    def resume(self) -> None:
        for task in self.tasks:
            task.resume()

    def __enter__(self) -> "SubscriptionSweeper":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
