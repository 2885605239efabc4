"""Remote store boundary for subtrack application."""

from subtrack.remote.base import RemoteStore, InMemoryRemoteStore
from subtrack.remote.mirror import RemoteMirror

__all__ = ["RemoteStore", "InMemoryRemoteStore", "RemoteMirror"]
