"""Startup-time error types.

Only configuration problems are fatal; every runtime failure (bad command,
missing actuator, non-invertible channel) is logged and skipped instead.
"""


class ConfigError(ValueError):
    """Raised when follower configuration cannot be loaded or validated."""


class ChannelTableError(ConfigError):
    """Raised when a channel mapping table violates its structural invariants."""
