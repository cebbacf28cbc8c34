"""
Process-wide follower configuration.

Read once at startup and immutable afterwards. Values come from, in order
of precedence:

  1. ``FOLLOWER_*`` environment variables (``.env`` is loaded first)
  2. a JSON overlay file (``path`` argument or ``FOLLOWER_CONFIG``)
  3. ``DEFAULTS`` below

Any validation failure raises ConfigError, the only fatal error class.
"""

from __future__ import annotations

import copy
import json
import logging
import math
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from src.config.errors import ConfigError
from src.mapping.channels import (
    DEFAULT_CHANNEL_NAMES,
    DEFAULT_EXTERNAL_NAMES,
    NUM_EXTERNAL,
    ChannelTable,
    MappingRule,
    identity_rules,
)
from src.mapping.mapper import GripperPolicy, GripperRange

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOLLOWER_"
CONFIG_PATH_ENV = "FOLLOWER_CONFIG"

# ── Defaults ──────────────────────────────────────────────────────────────

DEFAULTS: dict[str, Any] = {
    "update_rate_hz": 100.0,
    "smoothing_factor": 0.1,
    "enable_smoothing": True,
    "gripper_tolerance": 0.001,
    "enable_gripper_sync": True,
    "gripper_policy": "continuous",
    "gripper_open": 0.0,
    "gripper_closed": 1.0,
    "initial_pose": [0.0] * NUM_EXTERNAL,
    "telemetry_rate_hz": 50.0,
    "command_timeout_s": 5.0,
    "monitor_interval_s": 0.5,
    "actuator_aliases": {"left_finger": "gripper"},
    "channel_names": list(DEFAULT_CHANNEL_NAMES),
    "external_names": list(DEFAULT_EXTERNAL_NAMES),
    "channels": None,
}


class MappingRuleConfig(BaseModel):
    """One mapping rule as it appears in the config file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_index: int = Field(ge=0, le=6, description="External slot (0-5 arm, 6 gripper)")
    internal_index: int = Field(ge=0, le=7, description="Internal channel (6/7 are fingers)")
    scale: float = Field(default=1.0, allow_inf_nan=False)
    offset: float = Field(default=0.0, allow_inf_nan=False)
    invert: bool = False
    gripper: bool = False

    def to_rule(self) -> MappingRule:
        return MappingRule(**self.model_dump())


class FollowerConfig(BaseModel):
    """Immutable follower parameters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    update_rate_hz: float = Field(default=100.0, gt=0, description="Control tick rate")
    smoothing_factor: float = Field(default=0.1, gt=0, le=1, description="Lerp factor per tick")
    enable_smoothing: bool = Field(default=True, description="False snaps to target each tick")
    gripper_tolerance: float = Field(default=0.001, ge=0, description="Max finger divergence")
    enable_gripper_sync: bool = True
    gripper_policy: GripperPolicy = GripperPolicy.CONTINUOUS
    gripper_open: float = Field(default=0.0, allow_inf_nan=False, description="Physical open value")
    gripper_closed: float = Field(default=1.0, allow_inf_nan=False, description="Physical closed value")
    initial_pose: tuple[float, ...] = Field(
        default=(0.0,) * NUM_EXTERNAL,
        description="7 values in external order; the gripper slot is ignored (fingers start open)",
    )
    telemetry_rate_hz: float = Field(default=50.0, gt=0)
    command_timeout_s: float = Field(default=5.0, gt=0, description="Command stream stale after this")
    monitor_interval_s: float = Field(default=0.5, gt=0)
    actuator_aliases: Mapping[str, str] = Field(
        default_factory=lambda: {"left_finger": "gripper"}, validate_default=True
    )
    channel_names: tuple[str, ...] = DEFAULT_CHANNEL_NAMES
    external_names: tuple[str, ...] = DEFAULT_EXTERNAL_NAMES
    channels: Optional[tuple[MappingRuleConfig, ...]] = Field(
        default=None, description="Mapping rules; None uses the wx250s identity table"
    )

    @field_validator("initial_pose")
    @classmethod
    def _check_pose(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if len(v) != NUM_EXTERNAL:
            raise ValueError(f"initial_pose needs {NUM_EXTERNAL} values, got {len(v)}")
        if not all(math.isfinite(x) for x in v):
            raise ValueError("initial_pose contains non-finite values")
        return v

    @field_validator("actuator_aliases")
    @classmethod
    def _freeze_aliases(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    @field_serializer("actuator_aliases")
    def _dump_aliases(self, v: Mapping[str, str]) -> dict[str, str]:
        return dict(v)

    @model_validator(mode="after")
    def _check_consistency(self) -> "FollowerConfig":
        if self.gripper_open == self.gripper_closed:
            raise ValueError("gripper_open and gripper_closed must differ")
        # Structural table problems are fatal at startup
        self.channel_table()
        return self

    @property
    def gripper_range(self) -> GripperRange:
        return GripperRange(open=self.gripper_open, closed=self.gripper_closed)

    @property
    def tick_interval_s(self) -> float:
        return 1.0 / self.update_rate_hz

    def channel_table(self) -> ChannelTable:
        rules = identity_rules() if self.channels is None else [c.to_rule() for c in self.channels]
        return ChannelTable(rules, self.channel_names, self.external_names)


def _merge(base: dict, overlay: dict) -> None:
    """Deep-merge overlay into base."""
    for k, v in overlay.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _merge(base[k], v)
        else:
            base[k] = v


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    """Scalar fields overridable as FOLLOWER_<FIELD_NAME>."""
    out: dict[str, Any] = {}
    for name, value in DEFAULTS.items():
        if isinstance(value, (list, dict)) or value is None:
            continue
        key = ENV_PREFIX + name.upper()
        if key in environ:
            out[name] = environ[key]
    return out


def load_follower_config(
    path: Optional[str | Path] = None,
    environ: Optional[dict[str, str]] = None,
    dotenv_path: Optional[str | Path] = None,
) -> FollowerConfig:
    """Build the config from defaults, a JSON overlay and the environment.

    Raises:
        ConfigError: unreadable file or any invalid value.
    """
    if environ is None:
        load_dotenv(dotenv_path)
        environ = dict(os.environ)

    data = copy.deepcopy(DEFAULTS)

    path = path or environ.get(CONFIG_PATH_ENV)
    if path:
        try:
            overlay = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read follower config {path}: {e}") from e
        if not isinstance(overlay, dict):
            raise ConfigError(f"Follower config {path} must be a JSON object")
        _merge(data, overlay)
        logger.info("Loaded follower config from %s", path)

    overrides = _env_overrides(environ)
    if overrides:
        logger.info("Environment overrides: %s", ", ".join(sorted(overrides)))
    data.update(overrides)

    try:
        config = FollowerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid follower config: {e}") from e

    logger.info(
        "Follower config: %.0fHz, smoothing=%.2f, gripper=%s, sync=%s (tol=%.4f)",
        config.update_rate_hz,
        config.smoothing_factor,
        config.gripper_policy.value,
        config.enable_gripper_sync,
        config.gripper_tolerance,
    )
    return config
