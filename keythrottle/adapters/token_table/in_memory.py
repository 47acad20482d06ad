"""Bounded in-memory token table (default backend).

Notes:
- Per-process only: running multiple workers gives each its own buckets.
- Thread-safe: uses a lock around shared state.
- Bounded: once ``max_keys`` keys are resident, the least recently used key
  is evicted on insert. An evicted key simply starts over with a full bucket.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from keythrottle.adapters.token_table.base import SyncTokenTable
from keythrottle.core.logging import hash_throttle_key
from keythrottle.throttle.bucket import BucketSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYS = 10000


class InMemoryTokenTable(SyncTokenTable):
    """LRU-bounded, synchronous token table.

    Snapshots are copied on the way in and out, so callers can never mutate
    stored state behind the table's back.
    """

    def __init__(self, max_keys: int | None = DEFAULT_MAX_KEYS) -> None:
        """Initialize the table.

        Args:
            max_keys: Maximum number of resident keys (None uses the default).

        Raises:
            ValueError: If max_keys is < 1.
        """
        if max_keys is None:
            max_keys = DEFAULT_MAX_KEYS
        if max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._max_keys = max_keys
        self._store: OrderedDict[str, BucketSnapshot] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_keys(self) -> int:
        return self._max_keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryTokenTable(max_keys={self._max_keys}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str) -> BucketSnapshot | None:
        with self._lock:
            snapshot = self._store.get(key)
            if snapshot is None:
                self._misses += 1
                return None

            self._hits += 1
            self._store.move_to_end(key)
            return BucketSnapshot(**snapshot)

    def put(self, key: str, snapshot: BucketSnapshot) -> None:
        with self._lock:
            self._store[key] = BucketSnapshot(**snapshot)
            self._store.move_to_end(key)
            self._evict_over_capacity_locked()

    def delete(self, key: str) -> bool:
        """Forget a key. Returns True when it was present."""

        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all keys and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight table metrics without exposing keys."""

        with self._lock:
            return {
                "entries": len(self._store),
                "max_keys": self._max_keys,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_over_capacity_locked(self) -> None:
        while len(self._store) > self._max_keys:
            # popitem(last=False) drops the least recently used key
            key, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug(
                "token_table.evicted",
                extra={"key_hash": hash_throttle_key(key), "size": len(self._store)},
            )
