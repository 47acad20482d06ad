"""Keyed token-bucket throttle.

Each call to :meth:`Throttle.check` resolves the limits for a key (defaults or
a per-key override), loads that key's bucket from the token table (or starts
a full one), consumes one token and writes the bucket back.

Read-modify-write cycles are serialized by a single flight slot per throttle
instance, shared by all keys: two overlapping checks can never both read the
same snapshot and overwrite each other's update. The price is that a slow
token table bounds throughput across every key, not just the hot one.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Mapping, NamedTuple

from keythrottle.adapters.token_table.adapter import TokenTableAdapter
from keythrottle.adapters.token_table.base import AsyncTokenTable, SyncTokenTable
from keythrottle.adapters.token_table.in_memory import InMemoryTokenTable
from keythrottle.core.errors import (
    ConfigurationError,
    StorageReadError,
    StorageWriteError,
    ThrottleError,
)
from keythrottle.core.logging import hash_throttle_key
from keythrottle.throttle.bucket import BucketSnapshot, TokenBucket, wall_clock_ms

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 1000

_OVERRIDE_FIELDS = ("rate", "burst", "window")


def _config_error(option: str, message: str) -> ConfigurationError:
    return ConfigurationError(
        code="throttle_config_invalid",
        message=message,
        details={"option": option},
    )


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class Override:
    """Per-key replacement for the default rate/burst/window.

    Fields left as None are not inherited from the defaults: an override that
    sets only ``rate`` disables limiting for its key, because burst ends up
    unset.
    """

    rate: float | None = None
    burst: float | None = None
    window: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.rate is None and self.burst is None and self.window is None

    @classmethod
    def coerce(cls, value: "Override | Mapping[str, Any]") -> "Override":
        """Build an Override from an Override or a ``{rate?, burst?, window?}`` mapping.

        Raises:
            ConfigurationError: On unknown fields or non-finite/negative values.
        """
        if isinstance(value, Override):
            fields = {name: getattr(value, name) for name in _OVERRIDE_FIELDS}
        elif isinstance(value, Mapping):
            unknown = sorted(set(value) - set(_OVERRIDE_FIELDS))
            if unknown:
                raise _config_error(
                    "overrides",
                    f"Override for a key has unknown fields: {', '.join(unknown)}",
                )
            fields = {name: value.get(name) for name in _OVERRIDE_FIELDS}
        else:
            raise _config_error("overrides", "Overrides must be mappings of rate/burst/window")

        for name, number in fields.items():
            if number is not None and (not _is_number(number) or number < 0):
                raise _config_error(
                    "overrides", f"Override {name} must be a non-negative number"
                )
        return cls(**fields)


class Limits(NamedTuple):
    """Effective bucket parameters for one key."""

    rate: float | None
    burst: float | None
    window: float

    @property
    def enabled(self) -> bool:
        return bool(self.rate) and bool(self.burst)


@dataclass(frozen=True)
class ThrottleConfig:
    """Immutable throttle defaults plus per-key overrides."""

    rate: float
    burst: float
    window: float = DEFAULT_WINDOW_MS
    overrides: Mapping[str, Override] = field(default_factory=dict)

    def resolve(self, key: Hashable) -> Limits:
        """Return the limits for key: an override wins as a whole, not per field."""

        override = self.overrides.get(key)
        if override is None or override.is_empty:
            return Limits(self.rate, self.burst, self.window)
        return Limits(override.rate, override.burst, override.window or DEFAULT_WINDOW_MS)


@dataclass(frozen=True)
class ThrottleDecision:
    """Outcome of one check.

    Attributes:
        limited: True to reject, False to allow, None when the key bypassed
            limiting or no decision could be made.
        error: StorageReadError (no decision) or StorageWriteError (decision
            stands, state was not saved); None on success.
    """

    limited: bool | None = None
    error: ThrottleError | None = None

    @property
    def bypassed(self) -> bool:
        return self.limited is None and self.error is None


class Throttle:
    """Token-bucket rate limiter keyed by caller identity."""

    def __init__(
        self,
        *,
        rate: float | None = None,
        burst: float | None = None,
        window: float | None = None,
        tokens_table: SyncTokenTable | AsyncTokenTable | Any | None = None,
        max_keys: int | None = None,
        overrides: Mapping[str, Override | Mapping[str, Any]] | None = None,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        """Create a throttle.

        Args:
            rate: Tokens replenished per window. Required, > 0.
            burst: Bucket capacity; falls back to rate when unset or 0.
            window: Window length in milliseconds; falls back to 1000 when unset or 0.
            tokens_table: Storage for bucket state; defaults to an
                InMemoryTokenTable holding at most ``max_keys`` keys.
            max_keys: Capacity of the default in-memory table.
            overrides: Per-key replacements for rate/burst/window.
            clock: Time source in epoch milliseconds.

        Raises:
            ConfigurationError: If an option is invalid or the token table
                matches neither the sync nor the async contract.
        """
        if not _is_number(rate) or rate <= 0:
            raise _config_error("rate", "rate is required and must be a number > 0")
        if burst is not None and (not _is_number(burst) or burst < 0):
            raise _config_error("burst", "burst must be a number >= 0")
        if window is not None and (not _is_number(window) or window < 0):
            raise _config_error("window", "window must be a number of milliseconds >= 0")
        if overrides is not None and not isinstance(overrides, Mapping):
            raise _config_error("overrides", "overrides must be a mapping of key to override")

        self.config = ThrottleConfig(
            rate=rate,
            burst=burst or rate,
            window=window or DEFAULT_WINDOW_MS,
            overrides={
                key: Override.coerce(value) for key, value in (overrides or {}).items()
            },
        )

        if tokens_table is None:
            try:
                tokens_table = InMemoryTokenTable(max_keys=max_keys)
            except ValueError as exc:
                raise _config_error("max_keys", str(exc)) from exc
        self.table = tokens_table
        self._adapter = TokenTableAdapter(tokens_table)
        self._clock = clock
        self._flight = asyncio.Lock()

    @property
    def table_mode(self) -> str:
        return self._adapter.mode

    @property
    def in_flight(self) -> bool:
        """Whether a read-modify-write cycle currently holds the flight slot."""

        return self._flight.locked()

    def limits_for(self, key: str) -> Limits:
        return self.config.resolve(key)

    def retry_after_seconds(self, key: str) -> int | None:
        """Seconds until one token accrues for key, or None if key is not limited."""

        limits = self.config.resolve(key)
        if not limits.enabled:
            return None
        return max(1, math.ceil(limits.window / limits.rate / 1000))

    async def check(self, key: Hashable | None) -> ThrottleDecision:
        """Consume one token for key and report whether it is throttled.

        Args:
            key: Caller identity, usually a string; any hashable value is
                accepted. None bypasses limiting without touching storage.

        Returns:
            ThrottleDecision. Read failures yield ``limited=None`` with a
            StorageReadError; write failures keep the computed decision and
            carry a StorageWriteError.
        """
        if key is None:
            return ThrottleDecision()

        key_hash = hash_throttle_key(key)
        limits = self.config.resolve(key)
        if not limits.enabled:
            logger.debug("throttle.bypass", extra={"key_hash": key_hash})
            return ThrottleDecision()

        async with self._flight:
            try:
                snapshot = await self._adapter.get(key)
                bucket = self._materialize(snapshot, limits)
            except Exception as exc:
                logger.error(
                    "token_table.read_failed",
                    extra={"key_hash": key_hash, "error_type": type(exc).__name__},
                )
                error = StorageReadError(
                    code="token_table_read_failed",
                    message=f"Unable to check token table: {exc}",
                    details={"key_hash": key_hash, "cause": type(exc).__name__},
                )
                error.__cause__ = exc
                return ThrottleDecision(error=error)

            allowed = bucket.consume(1)

            write_error: StorageWriteError | None = None
            try:
                await self._adapter.put(key, bucket.snapshot())
            except Exception as exc:
                logger.warning(
                    "token_table.write_failed",
                    extra={
                        "key_hash": key_hash,
                        "limited": not allowed,
                        "error_type": type(exc).__name__,
                    },
                )
                write_error = StorageWriteError(
                    code="token_table_write_failed",
                    message=f"Error saving throttle information to token table: {exc}",
                    details={
                        "key_hash": key_hash,
                        "limited": not allowed,
                        "cause": type(exc).__name__,
                    },
                )
                write_error.__cause__ = exc

        logger.debug(
            "throttle.allowed" if allowed else "throttle.limited",
            extra={
                "key_hash": key_hash,
                "tokens": round(bucket.tokens, 3),
                "capacity": bucket.capacity,
            },
        )
        return ThrottleDecision(limited=not allowed, error=write_error)

    async def is_limited(self, key: Hashable | None) -> bool | None:
        """Like :meth:`check`, but raise on read failures.

        A write failure does not change the answer; it is only logged.

        Raises:
            StorageReadError: If the token table could not be read.
        """
        decision = await self.check(key)
        if isinstance(decision.error, StorageReadError):
            raise decision.error
        return decision.limited

    def _materialize(self, snapshot: BucketSnapshot | None, limits: Limits) -> TokenBucket:
        if snapshot is not None:
            return TokenBucket.from_snapshot(snapshot, clock=self._clock)
        return TokenBucket(
            capacity=limits.burst,
            fill_rate=limits.rate,
            window=limits.window,
            clock=self._clock,
        )
