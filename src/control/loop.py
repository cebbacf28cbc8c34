"""
Fixed-rate control loop for the follower engine.

Calls ``engine.tick()`` once per ``1/frequency`` seconds on a background
thread. An overrun is reported and the schedule restarts from now; missed
ticks are never caught up.
"""

import logging
import threading
import time
from typing import Callable, Optional

from src.control.engine import FollowerEngine

logger = logging.getLogger(__name__)


class ControlLoop:
    """Fixed-frequency scheduler for ``FollowerEngine.tick``::

        engine = FollowerEngine.from_config(config, actuators)
        loop = ControlLoop(engine, frequency=config.update_rate_hz)

        loop.start()
        engine.handle_command(positions)
        # ... later ...
        loop.stop()
    """

    def __init__(
        self,
        engine: FollowerEngine,
        frequency: Optional[float] = None,
        on_tick: Optional[Callable[[FollowerEngine], None]] = None,
    ):
        """
        Args:
            engine: Engine to tick. Started with the loop, stopped with it.
            frequency: Loop frequency in Hz. Defaults to the engine config rate.
            on_tick: Optional callback after each tick (e.g. physics stepping).
        """
        if frequency is None:
            frequency = engine.config.update_rate_hz
        if frequency <= 0:
            raise ValueError(f"Loop frequency must be positive, got {frequency}")
        self.engine = engine
        self.frequency = frequency
        self.dt = 1.0 / frequency
        self.on_tick = on_tick

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        # Diagnostics
        self._cycle_count: int = 0
        self._overruns: int = 0
        self._errors: int = 0
        self._max_jitter: float = 0.0

    def start(self) -> None:
        """Start ticking in a background thread."""
        if self._running:
            logger.warning("Control loop already running")
            return

        self._running = True
        self._cycle_count = 0
        self._overruns = 0
        self._errors = 0
        self._max_jitter = 0.0
        self._stop_event.clear()
        self.engine.start()

        self._thread = threading.Thread(target=self._run, name="FollowerControlLoop", daemon=True)
        self._thread.start()
        logger.info("Control loop started at %.0f Hz", self.frequency)

    def stop(self) -> None:
        """Stop scheduling ticks. An in-flight tick completes."""
        if not self._running:
            return
        self._running = False
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None

        self.engine.stop()
        logger.info(
            "Control loop stopped after %d cycles (max jitter: %.3fms, overruns: %d)",
            self._cycle_count,
            self._max_jitter * 1000,
            self._overruns,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def overruns(self) -> int:
        return self._overruns

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def max_jitter(self) -> float:
        return self._max_jitter

    def _run(self) -> None:
        """Main loop body, runs in a background thread."""
        next_time = time.monotonic()

        while not self._stop_event.is_set():
            cycle_start = time.monotonic()

            jitter = abs(cycle_start - next_time)
            if jitter > self._max_jitter:
                self._max_jitter = jitter

            try:
                self.engine.tick()
                if self.on_tick:
                    self.on_tick(self.engine)
                self._cycle_count += 1
            except Exception as e:
                self._errors += 1
                logger.error("Control loop error: %s", e)

            next_time += self.dt
            sleep_time = next_time - time.monotonic()
            if sleep_time > 0:
                self._stop_event.wait(timeout=sleep_time)
            else:
                # Behind schedule: skip ahead rather than catch up
                if -sleep_time > self.dt:
                    self._overruns += 1
                    logger.warning(
                        "Control loop overrun: %.3fms behind",
                        -sleep_time * 1000,
                    )
                next_time = time.monotonic()
