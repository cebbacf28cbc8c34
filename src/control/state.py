"""
Mutable control state for the follower engine.

Targets are published as one immutable ``TargetSnapshot`` swapped under a
lock, so a tick always sees a consistent 8-element target vector even when
commands arrive from another thread (last writer wins). Current vectors
are written only by the tick; readers get copies taken under the same lock.
"""

import threading
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

from src.mapping.channels import NUM_INTERNAL


def _frozen(values, length: int = NUM_INTERNAL) -> np.ndarray:
    arr = np.array(values, dtype=np.float64, copy=True)
    if arr.shape != (length,):
        raise ValueError(f"Expected {length} values, got shape {arr.shape}")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class TargetSnapshot:
    """A fully-built target published in one swap."""

    positions: np.ndarray  # (8,) read-only
    velocities: np.ndarray  # (8,) read-only
    gripper: float  # normalized [0, 1]
    seq: int = 0


@dataclass(frozen=True)
class CurrentSnapshot:
    positions: np.ndarray
    velocities: np.ndarray
    gripper: float


class ControlState:
    """Current/target position and velocity vectors plus the gripper scalar."""

    def __init__(
        self,
        positions: Optional[np.ndarray] = None,
        gripper: float = 0.0,
    ) -> None:
        self._lock = threading.Lock()
        initial = np.zeros(NUM_INTERNAL) if positions is None else positions
        zeros = np.zeros(NUM_INTERNAL)

        self._current_position = np.array(initial, dtype=np.float64)
        self._current_velocity = zeros.copy()
        self._current_gripper = float(gripper)
        self._targets = TargetSnapshot(_frozen(initial), _frozen(zeros), float(gripper))

    # ------------------------------------------------------------------
    # Targets (written by command arrival)
    # ------------------------------------------------------------------

    @property
    def targets(self) -> TargetSnapshot:
        with self._lock:
            return self._targets

    def publish_targets(
        self,
        positions: Optional[np.ndarray] = None,
        velocities: Optional[np.ndarray] = None,
        gripper: Optional[float] = None,
    ) -> int:
        """Swap in a new target snapshot. Omitted parts keep their previous value.

        Returns the new snapshot sequence number.
        """
        pos = None if positions is None else _frozen(positions)
        vel = None if velocities is None else _frozen(velocities)
        with self._lock:
            prev = self._targets
            self._targets = TargetSnapshot(
                positions=prev.positions if pos is None else pos,
                velocities=prev.velocities if vel is None else vel,
                gripper=prev.gripper if gripper is None else float(gripper),
                seq=prev.seq + 1,
            )
            return self._targets.seq

    def set_target_channels(
        self, values: Mapping[int, float], gripper: Optional[float] = None
    ) -> int:
        """Overwrite individual target positions atomically."""
        with self._lock:
            prev = self._targets
            pos = np.array(prev.positions)
            for index, value in values.items():
                pos[index] = value
            pos.flags.writeable = False
            self._targets = TargetSnapshot(
                positions=pos,
                velocities=prev.velocities,
                gripper=prev.gripper if gripper is None else float(gripper),
                seq=prev.seq + 1,
            )
            return self._targets.seq

    # ------------------------------------------------------------------
    # Current (written by the tick only)
    # ------------------------------------------------------------------

    @property
    def current_position(self) -> np.ndarray:
        with self._lock:
            return self._current_position.copy()

    @property
    def current_velocity(self) -> np.ndarray:
        with self._lock:
            return self._current_velocity.copy()

    @property
    def current_gripper(self) -> float:
        with self._lock:
            return self._current_gripper

    def commit_current(
        self,
        positions: Optional[np.ndarray] = None,
        velocities: Optional[np.ndarray] = None,
        gripper: Optional[float] = None,
    ) -> None:
        with self._lock:
            if positions is not None:
                self._current_position = np.array(positions, dtype=np.float64)
            if velocities is not None:
                self._current_velocity = np.array(velocities, dtype=np.float64)
            if gripper is not None:
                self._current_gripper = float(gripper)

    def snapshot(self) -> CurrentSnapshot:
        with self._lock:
            return CurrentSnapshot(
                positions=self._current_position.copy(),
                velocities=self._current_velocity.copy(),
                gripper=self._current_gripper,
            )
