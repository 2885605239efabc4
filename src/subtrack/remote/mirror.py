"""Best-effort mirroring of local cache mutations to the remote store."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_for_futures
from typing import Callable, Optional

from subtrack.domain.entities import Subscription
from subtrack.remote.base import RemoteStore
from subtrack.remote.codec import subscription_to_fields

logger = logging.getLogger(__name__)


class RemoteMirror:
    """Fire-and-forget mirror in front of a RemoteStore.

    Each put or delete runs as a detached task on a single worker thread, so
    remote writes keep the order of the local mutations. Callers never wait
    for them. Failures are logged and dropped; nothing is retried or queued
    for later.
    """

    def __init__(self, remote: RemoteStore):
        """Initialize remote mirror.

        Args:
            remote: Remote store to mirror into
        """
        self.remote = remote
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="subtrack-mirror")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def mirror_put(self, subscription: Subscription) -> None:
        """Queue a remote put of the subscription's current state."""
        # Encode now so the task carries this exact snapshot
        fields = subscription_to_fields(subscription)
        self._submit(f"put {subscription.id}", self.remote.put, subscription.id, fields)

    def mirror_delete(self, subscription_id: str) -> None:
        """Queue a remote delete."""
        self._submit(f"delete {subscription_id}", self.remote.delete, subscription_id)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued remote writes.

        Returns:
            True if every queued write finished within ``timeout``
        """
        with self._lock:
            pending = set(self._pending)
        _, not_done = wait_for_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting writes and release the worker thread."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _submit(self, description: str, action: Callable, *args) -> None:
        with self._lock:
            if self._closed:
                logger.warning("Remote mirror is shut down; dropping %s", description)
                return
            future = self._executor.submit(self._run, description, action, *args)
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(description: str, action: Callable, *args) -> None:
        try:
            action(*args)
        except Exception:
            logger.warning("Remote %s failed; local change kept", description, exc_info=True)
        else:
            logger.debug("Remote %s done", description)
