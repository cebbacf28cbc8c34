"""
Exponential smoothing toward target setpoints.

Each tick moves the current vectors a fixed fraction of the remaining
distance toward the target snapshot:

    current = current + (target - current) * factor

  - factor = 1.0 snaps to target in one tick (no smoothing)
  - factor = 0.1 reaches ~65% of a step after 10 ticks (1 - 0.9**10)

The decay rate is about -ln(1 - factor) per tick, so wall-clock convergence
depends on the tick rate. There is no time normalization.
"""

import math

import numpy as np

from src.control.state import ControlState


def check_factor(factor: float) -> float:
    if not (0.0 < factor <= 1.0):
        raise ValueError(f"Smoothing factor must be in (0, 1], got {factor}")
    return float(factor)


def lerp(current, target, factor: float):
    """Linear interpolation; works on floats and numpy arrays alike."""
    return current + (target - current) * factor


def decay_rate(factor: float) -> float:
    """Per-tick exponential decay rate for a smoothing factor (inf for 1.0)."""
    check_factor(factor)
    if factor == 1.0:
        return math.inf
    return -math.log(1.0 - factor)


def advance(state: ControlState, factor: float) -> None:
    """Advance positions, velocities and the gripper scalar by one tick."""
    factor = check_factor(factor)
    targets = state.targets
    current = state.snapshot()

    if factor == 1.0:
        positions = np.array(targets.positions)
        velocities = np.array(targets.velocities)
        gripper = targets.gripper
    else:
        positions = lerp(current.positions, targets.positions, factor)
        velocities = lerp(current.velocities, targets.velocities, factor)
        gripper = lerp(current.gripper, targets.gripper, factor)

    state.commit_current(positions, velocities, gripper)
