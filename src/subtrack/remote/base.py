"""Remote store interface and an in-memory implementation."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from subtrack.remote.codec import FieldValue


class RemoteStore(ABC):
    """Authoritative remote copy of subscriptions, keyed by subscription ID.

    Implementations may raise any exception on network or service failure;
    the mirror in front of them catches and logs it.
    """

    @abstractmethod
    def put(self, subscription_id: str, fields: dict[str, FieldValue]) -> None:
        """Store the full field map for a subscription."""
        pass

    @abstractmethod
    def delete(self, subscription_id: str) -> None:
        """Remove a subscription."""
        pass


class InMemoryRemoteStore(RemoteStore):
    """Remote store kept in process memory."""

    def __init__(self):
        self._documents: dict[str, dict[str, FieldValue]] = {}
        self._lock = threading.Lock()

    def put(self, subscription_id: str, fields: dict[str, FieldValue]) -> None:
        with self._lock:
            self._documents[subscription_id] = dict(fields)

    def delete(self, subscription_id: str) -> None:
        with self._lock:
            self._documents.pop(subscription_id, None)

    def get(self, subscription_id: str) -> Optional[dict[str, FieldValue]]:
        """Return a copy of a stored document, or None."""
        with self._lock:
            document = self._documents.get(subscription_id)
            return dict(document) if document is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
