"""Finger symmetry correction applied after smoothing."""

import logging

from src.control.state import ControlState
from src.mapping.channels import LEFT_FINGER, RIGHT_FINGER

logger = logging.getLogger(__name__)


def sync(state: ControlState, tolerance: float) -> bool:
    """Pull both finger channels to their mean if they diverge beyond tolerance.

    This is a corrective clamp, not a constraint solver: it also masks
    divergence introduced by writing one finger directly.

    Returns True if a correction was applied.
    """
    if tolerance < 0:
        raise ValueError(f"Gripper tolerance must be >= 0, got {tolerance}")

    positions = state.current_position
    left = float(positions[LEFT_FINGER])
    right = float(positions[RIGHT_FINGER])
    if abs(left - right) <= tolerance:
        return False

    mean = (left + right) / 2.0
    positions[LEFT_FINGER] = mean
    positions[RIGHT_FINGER] = mean
    state.commit_current(positions=positions)
    logger.debug("Gripper sync: left=%.4f right=%.4f -> %.4f", left, right, mean)
    return True
