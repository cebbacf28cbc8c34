"""Tests for the async telemetry publisher."""

import asyncio
from unittest.mock import MagicMock

import pytest

from shared.messages.joint_state import JointTelemetryMessage
from src.control.telemetry import TelemetryPublisher


class TestTelemetryPublisher:
    def test_publish_once_sync_sink(self, snap_engine):
        received = []
        pub = TelemetryPublisher(snap_engine, received.append, rate_hz=10.0)
        snap_engine.handle_command([0.3] * 7)
        snap_engine.tick()
        msg = asyncio.run(pub.publish_once())
        assert received == [msg]
        assert isinstance(msg, JointTelemetryMessage)
        assert msg.positions[0] == pytest.approx(0.3)
        assert pub.published == 1
        assert pub.last_message is msg

    def test_async_sink_awaited(self, engine):
        received = []

        async def sink(msg):
            await asyncio.sleep(0)
            received.append(msg)

        pub = TelemetryPublisher(engine, sink, rate_hz=10.0)
        asyncio.run(pub.publish_once())
        assert len(received) == 1

    def test_rate_from_config(self, engine):
        pub = TelemetryPublisher(engine, MagicMock())
        assert pub._rate_hz == engine.config.telemetry_rate_hz

    def test_invalid_rate(self, engine):
        with pytest.raises(ValueError):
            TelemetryPublisher(engine, MagicMock(), rate_hz=0)

    def test_periodic_publishing(self, engine):
        sink = MagicMock(return_value=None)
        pub = TelemetryPublisher(engine, sink, rate_hz=100.0)

        async def run():
            await pub.start()
            assert pub.running
            await asyncio.sleep(0.1)
            await pub.stop()

        asyncio.run(run())
        assert not pub.running
        assert sink.call_count >= 3

    def test_sink_errors_keep_publishing(self, engine):
        sink = MagicMock(side_effect=RuntimeError("socket closed"))
        pub = TelemetryPublisher(engine, sink, rate_hz=100.0)

        async def run():
            await pub.start()
            await asyncio.sleep(0.05)
            await pub.stop()

        asyncio.run(run())
        assert pub.errors >= 2
        assert pub.published == 0
