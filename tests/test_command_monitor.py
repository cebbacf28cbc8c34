"""Tests for the command stream liveness monitor."""

import asyncio
from unittest.mock import MagicMock, PropertyMock

import pytest

from src.config.follower_config import FollowerConfig
from src.control.command_monitor import CommandStreamMonitor


def _engine_with_age(age):
    engine = MagicMock()
    engine.config = FollowerConfig()
    type(engine).last_command_age = PropertyMock(return_value=age)
    return engine


class TestPoll:
    def test_no_commands_is_stale(self):
        monitor = CommandStreamMonitor(_engine_with_age(None))
        assert monitor.poll() is False
        assert not monitor.live

    def test_recent_command_is_live(self):
        changes = []
        monitor = CommandStreamMonitor(_engine_with_age(0.2), on_change=changes.append)
        assert monitor.poll() is True
        assert changes == [True]

    def test_transition_reported_once(self):
        engine = _engine_with_age(0.1)
        changes = []
        monitor = CommandStreamMonitor(engine, timeout=1.0, on_change=changes.append)
        monitor.poll()
        monitor.poll()
        type(engine).last_command_age = PropertyMock(return_value=2.0)
        monitor.poll()
        monitor.poll()
        assert changes == [True, False]

    def test_defaults_from_config(self):
        monitor = CommandStreamMonitor(_engine_with_age(None))
        assert monitor.timeout == 5.0
        assert monitor.interval == 0.5

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            CommandStreamMonitor(_engine_with_age(None), timeout=0)

    def test_callback_error_contained(self):
        monitor = CommandStreamMonitor(
            _engine_with_age(0.0), on_change=MagicMock(side_effect=RuntimeError("x"))
        )
        assert monitor.poll() is True


class TestMonitorTask:
    def test_goes_live_on_real_engine(self, engine):
        changes = []
        monitor = CommandStreamMonitor(engine, interval=0.01, on_change=changes.append)

        async def run():
            await monitor.start()
            assert monitor.running
            await asyncio.sleep(0.03)
            engine.handle_command([0] * 7)
            await asyncio.sleep(0.05)
            await monitor.stop()

        asyncio.run(run())
        assert changes == [True]
        assert not monitor.running

    def test_goes_stale_after_timeout(self, engine):
        changes = []
        monitor = CommandStreamMonitor(
            engine, timeout=0.05, interval=0.01, on_change=changes.append
        )

        async def run():
            engine.handle_command([0] * 7)
            await monitor.start()
            await asyncio.sleep(0.15)
            await monitor.stop()

        asyncio.run(run())
        assert changes == [True, False]
