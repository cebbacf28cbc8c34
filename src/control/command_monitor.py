"""
Command stream liveness monitor.

Polls the engine's last-command age and reports when the leader stream
goes live or stale. Stale is "no command yet" or "older than the
timeout". Nothing is commanded on a transition: the follower simply holds
its last target.
"""

import asyncio
import logging
from typing import Callable, Optional

from src.control.engine import FollowerEngine

logger = logging.getLogger(__name__)


class CommandStreamMonitor:
    """Async poller reporting live/stale transitions of the command stream.

    Usage::

        monitor = CommandStreamMonitor(engine, on_change=print)
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        engine: FollowerEngine,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        on_change: Optional[Callable[[bool], None]] = None,
    ):
        self._engine = engine
        self.timeout = timeout if timeout is not None else engine.config.command_timeout_s
        self.interval = interval if interval is not None else engine.config.monitor_interval_s
        if self.timeout <= 0 or self.interval <= 0:
            raise ValueError(
                f"Monitor timeout and interval must be positive, got {self.timeout}/{self.interval}"
            )
        self._on_change = on_change
        self._live = False
        self._task: Optional[asyncio.Task] = None

    @property
    def live(self) -> bool:
        return self._live

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def poll(self) -> bool:
        """Check once, reporting a transition if the state changed."""
        age = self._engine.last_command_age
        live = age is not None and age < self.timeout
        if live != self._live:
            self._live = live
            if live:
                logger.info("Command stream live")
            else:
                logger.warning("Command stream stale, last command %.1fs ago", age)
            if self._on_change:
                try:
                    self._on_change(live)
                except Exception as e:
                    logger.error("Command monitor callback failed: %s", e)
        return live

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Command monitor started (timeout=%.1fs, every %.1fs)", self.timeout, self.interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Command monitor stopped")

    async def _loop(self) -> None:
        while True:
            self.poll()
            await asyncio.sleep(self.interval)
