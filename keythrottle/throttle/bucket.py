"""Continuous token bucket.

A bucket holds up to ``capacity`` tokens and regains ``fill_rate`` tokens per
``window`` milliseconds, credited proportionally to elapsed time rather than
in whole-window steps. Each permitted action removes tokens; an action that
finds too few tokens is denied and removes nothing.

Buckets do no I/O. The throttle materializes one per call, either fresh or
from a persisted :class:`BucketSnapshot`, and writes it back afterwards.
"""

from __future__ import annotations

import time
from typing import Callable, TypedDict


class BucketSnapshot(TypedDict):
    """Persisted bucket state, enough to rebuild the bucket exactly.

    Attributes:
        capacity: Maximum number of tokens.
        fill_rate: Tokens credited per window.
        window: Window length in milliseconds.
        tokens: Tokens available at ``last_update``.
        last_update: Epoch milliseconds of the last replenishment.
    """

    capacity: float
    fill_rate: float
    window: float
    tokens: float
    last_update: float


def wall_clock_ms() -> float:
    """Current UNIX time in milliseconds."""

    return time.time() * 1000


class TokenBucket:
    """Token bucket with continuous replenishment."""

    __slots__ = ("capacity", "fill_rate", "window", "tokens", "last_update", "_clock")

    def __init__(
        self,
        capacity: float,
        fill_rate: float,
        window: float = 1000,
        *,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        """Create a full bucket.

        Args:
            capacity: Maximum tokens the bucket can hold (burst).
            fill_rate: Tokens added per window (rate).
            window: Window length in milliseconds.
            clock: Time source returning epoch milliseconds.

        Raises:
            ValueError: If capacity or fill_rate is negative or window is not positive.
        """
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        if fill_rate < 0:
            raise ValueError("fill_rate must be >= 0")
        if window <= 0:
            raise ValueError("window must be > 0")

        self.capacity = capacity
        self.fill_rate = fill_rate
        self.window = window
        self._clock = clock
        self.tokens = float(capacity)
        self.last_update = clock()

    @classmethod
    def from_snapshot(
        cls,
        snapshot: BucketSnapshot,
        *,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> "TokenBucket":
        """Rebuild a bucket from persisted state.

        Raises:
            ValueError: If the snapshot's shape parameters are invalid.
            KeyError: If the snapshot is missing a field.
        """
        bucket = cls(
            snapshot["capacity"],
            snapshot["fill_rate"],
            snapshot["window"],
            clock=clock,
        )
        bucket.tokens = min(float(snapshot["tokens"]), float(bucket.capacity))
        bucket.last_update = snapshot["last_update"]
        return bucket

    def _replenish(self) -> None:
        now = self._clock()
        # A clock stepping backwards credits nothing.
        elapsed = max(0.0, now - self.last_update)
        self.tokens = min(
            float(self.capacity),
            self.tokens + elapsed / self.window * self.fill_rate,
        )
        self.last_update = now

    def consume(self, n: float = 1) -> bool:
        """Replenish, then try to take ``n`` tokens.

        Replenishment always advances ``last_update`` even when the request is
        denied; only the deduction is skipped.

        Args:
            n: Tokens the action costs.

        Returns:
            True when the tokens were taken (allowed), False otherwise (denied).

        Raises:
            ValueError: If n is negative.
        """
        if n < 0:
            raise ValueError("n must be >= 0")

        self._replenish()
        if self.tokens >= n:
            self.tokens -= n
            return True
        return False

    def snapshot(self) -> BucketSnapshot:
        return BucketSnapshot(
            capacity=self.capacity,
            fill_rate=self.fill_rate,
            window=self.window,
            tokens=self.tokens,
            last_update=self.last_update,
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenBucket(capacity={self.capacity}, fill_rate={self.fill_rate}, "
            f"window={self.window}, tokens={self.tokens:.3f}, "
            f"last_update={self.last_update})"
        )
