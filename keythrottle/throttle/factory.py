"""Factory for building a throttle from settings."""

from keythrottle.core.config import ThrottleSettings, settings
from keythrottle.throttle.limiter import Throttle


def create_throttle(throttle_settings: ThrottleSettings | None = None) -> Throttle:
    """Instantiate a Throttle backed by the default in-memory token table.

    Reads configuration from keythrottle.core.config.settings unless explicit
    settings are given.

    Returns:
        Throttle: Configured throttle instance.

    Raises:
        ConfigurationError: If the overrides are malformed.
    """
    cfg = throttle_settings or settings.throttle
    return Throttle(
        rate=cfg.rate,
        burst=cfg.burst,
        window=cfg.window_ms,
        max_keys=cfg.max_keys,
        overrides=cfg.overrides,
    )
