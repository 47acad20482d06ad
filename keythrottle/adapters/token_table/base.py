"""Token table interfaces.

A token table is the key/value store holding one :class:`BucketSnapshot` per
limiter key. The throttle depends on these abstractions only, so the default
in-memory table can be swapped for Redis or a database without touching the
limiting logic.

Two shapes are supported and must be picked explicitly by subclassing (or
registering with) one of the base classes:

- :class:`SyncTokenTable`: plain methods that return immediately.
- :class:`AsyncTokenTable`: coroutine methods, failures raised as exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from keythrottle.throttle.bucket import BucketSnapshot


class SyncTokenTable(ABC):
    """Blocking token table whose calls complete immediately."""

    @abstractmethod
    def get(self, key: str) -> BucketSnapshot | None:
        """Return the stored snapshot for key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, snapshot: BucketSnapshot) -> None:
        """Store (replace) the snapshot for key."""
        raise NotImplementedError


class AsyncTokenTable(ABC):
    """Token table backed by an asynchronous store."""

    @abstractmethod
    async def get(self, key: str) -> BucketSnapshot | None:
        """Return the stored snapshot for key, or None when absent.

        Raises:
            Exception: Any backend failure; the throttle reports it as a read error.
        """
        raise NotImplementedError

    @abstractmethod
    async def put(self, key: str, snapshot: BucketSnapshot) -> None:
        """Store (replace) the snapshot for key.

        Raises:
            Exception: Any backend failure; the throttle reports it as a write error.
        """
        raise NotImplementedError
