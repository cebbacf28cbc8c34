"""
In-memory named actuator set: a stand-in for the physics runtime.

Keeps a control value per named actuator and a simulated joint position
that lags toward it each ``step()`` (first-order, like a position servo).
No physics, no rendering.

Used for:
  - Offline development of the follower engine
  - Tests of the actuator driver and control loop
  - A "sensor" feedback source distinct from the command echo
"""

import logging
import threading
import time
from typing import Dict, Optional, Sequence, Tuple

from src.mapping.channels import DEFAULT_CHANNEL_NAMES

logger = logging.getLogger(__name__)

# The wx250s model drives the left finger through an actuator named "gripper"
# and has no separate right-finger actuator.
DEFAULT_ACTUATOR_NAMES = tuple(DEFAULT_CHANNEL_NAMES[:6]) + ("gripper",)

# How fast simulated joints follow their control value (fraction per step)
_DEFAULT_RESPONSE = 0.15


class InMemoryActuatorSet:
    """Named actuators with control values and lagging simulated positions.

    Thread-safe: all state access is guarded by a lock.
    """

    def __init__(
        self,
        names: Sequence[str] = DEFAULT_ACTUATOR_NAMES,
        ctrl_ranges: Optional[Dict[str, Tuple[float, float]]] = None,
        response: float = _DEFAULT_RESPONSE,
    ) -> None:
        if len(set(names)) != len(names):
            raise ValueError(f"Actuator names must be unique: {list(names)}")
        self._lock = threading.Lock()
        self._names = tuple(names)
        self._ranges = dict(ctrl_ranges or {})
        self._response = response

        self._ctrl = [0.0] * len(self._names)
        self._positions = [0.0] * len(self._names)
        self._writes = 0
        self._last_update = time.monotonic()

        self._feedback_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # Named actuator interface
    # ------------------------------------------------------------------

    def actuator_names(self) -> Sequence[str]:
        return self._names

    def set_control(self, index: int, value: float) -> None:
        lo, hi = self._ranges.get(self._names[index], (float("-inf"), float("inf")))
        with self._lock:
            self._ctrl[index] = max(lo, min(hi, float(value)))
            self._writes += 1

    def get_control(self, index: int) -> float:
        with self._lock:
            return self._ctrl[index]

    def get_position(self, index: int) -> float:
        """Simulated joint position (lags behind the control value)."""
        with self._lock:
            return self._positions[index]

    @property
    def write_count(self) -> int:
        with self._lock:
            return self._writes

    def controls(self) -> Dict[str, float]:
        with self._lock:
            return dict(zip(self._names, self._ctrl))

    # ------------------------------------------------------------------
    # Simulated motion
    # ------------------------------------------------------------------

    def _interpolate(self) -> None:
        """Move simulated positions toward control values (must hold lock)."""
        for i in range(len(self._names)):
            diff = self._ctrl[i] - self._positions[i]
            self._positions[i] += diff * self._response
        self._last_update = time.monotonic()

    def step(self, n: int = 1) -> None:
        with self._lock:
            for _ in range(n):
                self._interpolate()

    def start_feedback_loop(self, rate_hz: float = 100.0) -> None:
        """Step the simulation in a background thread at the given rate."""
        if self._feedback_thread is not None:
            return
        self._stop_event.clear()
        interval = 1.0 / rate_hz

        def _loop():
            while not self._stop_event.is_set():
                with self._lock:
                    self._interpolate()
                self._stop_event.wait(interval)

        self._feedback_thread = threading.Thread(target=_loop, daemon=True, name="sim-actuators")
        self._feedback_thread.start()
        logger.info("Simulated actuators stepping at %.0fHz", rate_hz)

    def stop_feedback_loop(self) -> None:
        self._stop_event.set()
        if self._feedback_thread is not None:
            self._feedback_thread.join(timeout=2.0)
            self._feedback_thread = None
