"""
Telemetry publisher: periodic 7-channel state reports.

Publishes ``engine.telemetry()`` to a sink at its own rate, independent of
the control tick. The sink may be a plain function or a coroutine function.
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Optional, Union

from shared.messages.joint_state import JointTelemetryMessage
from src.control.engine import FollowerEngine

logger = logging.getLogger(__name__)

TelemetrySink = Callable[[JointTelemetryMessage], Union[None, Awaitable[None]]]


class TelemetryPublisher:
    """Async task publishing engine telemetry at a fixed rate."""

    def __init__(
        self,
        engine: FollowerEngine,
        sink: TelemetrySink,
        rate_hz: Optional[float] = None,
    ):
        if rate_hz is None:
            rate_hz = engine.config.telemetry_rate_hz
        if rate_hz <= 0:
            raise ValueError(f"Telemetry rate must be positive, got {rate_hz}")
        self._engine = engine
        self._sink = sink
        self._rate_hz = rate_hz
        self._interval = 1.0 / rate_hz
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._published = 0
        self._errors = 0
        self._last: Optional[JointTelemetryMessage] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def published(self) -> int:
        return self._published

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def last_message(self) -> Optional[JointTelemetryMessage]:
        return self._last

    async def publish_once(self) -> JointTelemetryMessage:
        msg = self._engine.telemetry()
        result = self._sink(msg)
        if inspect.isawaitable(result):
            await result
        self._last = msg
        self._published += 1
        return msg

    async def start(self) -> None:
        """Start the publishing task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Telemetry publisher started at %.0fHz", self._rate_hz)

    async def stop(self) -> None:
        """Stop the publishing task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Telemetry publisher stopped after %d messages", self._published)

    async def _loop(self) -> None:
        while self._running:
            t0 = time.monotonic()
            try:
                await self.publish_once()
            except Exception as e:
                self._errors += 1
                if self._errors % 50 == 1:
                    logger.error("Telemetry publish failed (%d errors): %s", self._errors, e)
            elapsed = time.monotonic() - t0
            await asyncio.sleep(max(0, self._interval - elapsed))
