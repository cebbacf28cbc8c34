"""
External <-> internal joint mapping.

Pure functions: a 7-channel external command (6 arm joints + gripper) is
expanded into an 8-channel internal command (6 arm joints + two fingers),
and an 8-channel internal state is reduced back to 7 channels for telemetry.

Gripper handling is selected by ``GripperPolicy``:

  - CONTINUOUS: the rule-transformed external value is clamped to [0, 1]
    and lerped into the physical finger range.
  - BINARIZED: raw external value < 0 is fully open, >= 0 is fully closed.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from src.mapping.channels import (
    GRIPPER_EXTERNAL_INDEX,
    NUM_EXTERNAL,
    NUM_INTERNAL,
    ChannelTable,
)

logger = logging.getLogger(__name__)

class GripperPolicy(str, Enum):
    CONTINUOUS = "continuous"
    BINARIZED = "binarized"


class CommandRejected(ValueError):
    """Raised when an external command is malformed and must be dropped whole."""


@dataclass(frozen=True)
class GripperRange:
    """Physical finger positions for the normalized gripper endpoints.

    Normalized 0.0 is fully open, 1.0 is fully closed.
    """

    open: float = 0.0
    closed: float = 1.0

    @property
    def span(self) -> float:
        return self.closed - self.open

    def to_physical(self, normalized: float) -> float:
        return self.open + self.span * normalized

    def to_normalized(self, physical: float) -> Optional[float]:
        if self.span == 0.0:
            return None
        return (physical - self.open) / self.span


@dataclass
class InternalCommand:
    """Target values for the 8 internal channels."""

    positions: np.ndarray  # (8,)
    velocities: np.ndarray  # (8,)
    gripper: float  # normalized [0, 1]


@dataclass
class ExternalState:
    """7-channel state; None marks a channel that could not be inverted."""

    positions: list[Optional[float]]
    velocities: list[Optional[float]]

    @property
    def invalid_channels(self) -> list[int]:
        return [i for i, v in enumerate(self.positions) if v is None]

    @property
    def valid(self) -> bool:
        return not self.invalid_channels


def validate_vector(values, expected_len: int, label: str = "positions") -> np.ndarray:
    """Convert to a finite float64 vector of the expected length.

    Raises CommandRejected on None, wrong length, non-numeric or non-finite input.
    """
    if values is None:
        raise CommandRejected(f"{label} is missing")
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError, OverflowError) as e:
        raise CommandRejected(f"{label} is not numeric: {e}") from e
    if arr.shape != (expected_len,):
        raise CommandRejected(f"Expected {expected_len} {label}, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise CommandRejected(f"{label} contains non-finite values: {arr.tolist()}")
    return arr


def _binarize(value: float) -> float:
    # boundary value 0 resolves to closed
    return 0.0 if value < 0.0 else 1.0


def map_external_to_internal(
    external: Sequence[float],
    table: ChannelTable,
    policy: GripperPolicy = GripperPolicy.CONTINUOUS,
    gripper_range: GripperRange = GripperRange(),
    velocities: Optional[Sequence[float]] = None,
) -> InternalCommand:
    """Expand a 7-channel external command into 8 internal targets.

    Args:
        external: [joint0..joint5, gripper] in external units.
        table: Validated channel table.
        policy: Gripper split policy.
        gripper_range: Physical finger range for normalized 0 (open) / 1 (closed).
        velocities: Optional 7 external velocities; zeros when absent.

    Raises:
        CommandRejected: if either vector is malformed. Nothing is partially mapped.
    """
    positions = validate_vector(external, NUM_EXTERNAL, "positions")
    if velocities is None:
        rates = np.zeros(NUM_EXTERNAL, dtype=np.float64)
    else:
        rates = validate_vector(velocities, NUM_EXTERNAL, "velocities")

    out_pos = np.zeros(NUM_INTERNAL, dtype=np.float64)
    out_vel = np.zeros(NUM_INTERNAL, dtype=np.float64)

    for rule in table.arm_rules:
        out_pos[rule.internal_index] = rule.forward(positions[rule.external_index])
        out_vel[rule.internal_index] = rule.forward_rate(rates[rule.external_index])

    raw = float(positions[GRIPPER_EXTERNAL_INDEX])
    raw_rate = float(rates[GRIPPER_EXTERNAL_INDEX])
    normalized = []
    for rule in table.gripper_rules:
        if policy is GripperPolicy.BINARIZED:
            g = _binarize(raw)
            rate = 0.0
        else:
            g = min(1.0, max(0.0, rule.forward(raw)))
            rate = rule.forward_rate(raw_rate) * gripper_range.span
        out_pos[rule.internal_index] = gripper_range.to_physical(g)
        out_vel[rule.internal_index] = rate
        normalized.append(g)

    return InternalCommand(
        positions=out_pos,
        velocities=out_vel,
        gripper=float(sum(normalized) / len(normalized)),
    )


def _report_non_invertible(external_index: int, warned: set[int]) -> None:
    if external_index not in warned:
        warned.add(external_index)
        logger.warning(
            "External channel %d has zero scale, cannot invert, reporting None",
            external_index,
        )
    else:
        logger.debug("External channel %d still non-invertible", external_index)


def map_internal_to_external(
    internal: Sequence[float],
    table: ChannelTable,
    gripper_range: GripperRange = GripperRange(),
    velocities: Optional[Sequence[float]] = None,
    policy: GripperPolicy = GripperPolicy.CONTINUOUS,
    warned: Optional[set[int]] = None,
) -> ExternalState:
    """Reduce 8 internal values back to the 7 external channels.

    Finger channels are converted to normalized gripper values and averaged
    into external slot 6. Under CONTINUOUS the gripper rule is inverted too;
    under BINARIZED the rule never applied, so the normalized value is
    reported as is. A zero-scale rule yields None for its channel instead
    of inf/NaN.

    Args:
        warned: External channels already reported as non-invertible. The
            warning is logged once per channel in this set, debug after.
    """
    if warned is None:
        warned = set()
    positions = np.asarray(internal, dtype=np.float64)
    if positions.shape != (NUM_INTERNAL,):
        raise ValueError(f"Expected {NUM_INTERNAL} internal values, got shape {positions.shape}")
    if velocities is None:
        rates = np.zeros(NUM_INTERNAL, dtype=np.float64)
    else:
        rates = np.asarray(velocities, dtype=np.float64)

    out_pos: list[Optional[float]] = [None] * NUM_EXTERNAL
    out_vel: list[Optional[float]] = [None] * NUM_EXTERNAL

    for rule in table.arm_rules:
        value = rule.inverse(float(positions[rule.internal_index]))
        if value is None:
            _report_non_invertible(rule.external_index, warned)
            continue
        out_pos[rule.external_index] = value
        out_vel[rule.external_index] = rule.inverse_rate(float(rates[rule.internal_index]))

    fingers = []
    finger_rates = []
    for rule in table.gripper_rules:
        g = gripper_range.to_normalized(float(positions[rule.internal_index]))
        if policy is GripperPolicy.BINARIZED:
            value = g
            rate = 0.0
        else:
            value = rule.inverse(g) if g is not None else None
            rate = rule.inverse_rate(float(rates[rule.internal_index]) / gripper_range.span)
        if value is None:
            _report_non_invertible(rule.external_index, warned)
            fingers = None
            break
        fingers.append(value)
        finger_rates.append(rate if rate is not None else 0.0)

    if fingers:
        out_pos[GRIPPER_EXTERNAL_INDEX] = (fingers[0] + fingers[1]) / 2.0
        out_vel[GRIPPER_EXTERNAL_INDEX] = (finger_rates[0] + finger_rates[1]) / 2.0

    return ExternalState(positions=out_pos, velocities=out_vel)


def seed_internal(
    pose: Sequence[float],
    table: ChannelTable,
    gripper_range: GripperRange = GripperRange(),
) -> np.ndarray:
    """Initial internal positions: arm through the table, fingers open."""
    arm = validate_vector(pose, NUM_EXTERNAL, "initial pose")
    out = np.zeros(NUM_INTERNAL, dtype=np.float64)
    for rule in table.arm_rules:
        out[rule.internal_index] = rule.forward(arm[rule.external_index])
    for rule in table.gripper_rules:
        out[rule.internal_index] = gripper_range.open
    return out


def is_finite_number(value) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError, OverflowError):
        return False
