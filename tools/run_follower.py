#!/usr/bin/env python3
"""
run_follower.py: wx250s follower demo runner

Runs the follower engine against the in-memory or MuJoCo actuator set,
replays one external command and prints telemetry as JSON lines.

Usage:
    python tools/run_follower.py [--backend memory|mujoco] [--feedback echo|sensor]
                                 [--command 0,0.3,-0.4,0,0.2,0,0.5] [--duration 2]
                                 [--config follower.json] [--debug]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure project root is on path
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from src.config.errors import ConfigError
from src.config.follower_config import load_follower_config
from src.control.command_monitor import CommandStreamMonitor
from src.control.engine import FollowerEngine
from src.control.loop import ControlLoop
from src.control.telemetry import TelemetryPublisher
from src.interface.actuator_driver import SensorFeedback
from src.interface.simulated_actuators import InMemoryActuatorSet
from src.utils.logging_config import setup_logging

logger = logging.getLogger("run_follower")


def parse_vector(text: str) -> list[float]:
    try:
        return [float(x) for x in text.split(",")]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected comma-separated floats: {e}")


def build_engine(args, config):
    if args.backend == "mujoco":
        from src.simulation.mujoco_actuators import (
            WX250S_FINGER_CLOSED,
            WX250S_FINGER_OPEN,
            MuJoCoActuatorSet,
        )

        actuators = MuJoCoActuatorSet.wx250s()
        if config.gripper_open == 0.0 and config.gripper_closed == 1.0:
            config = config.model_copy(
                update={"gripper_open": WX250S_FINGER_OPEN, "gripper_closed": WX250S_FINGER_CLOSED}
            )
        steps = max(1, round(config.tick_interval_s / actuators.model.opt.timestep))

        def on_tick(_engine):
            actuators.step(steps)
    else:
        actuators = InMemoryActuatorSet()

        def on_tick(_engine):
            actuators.step()

    feedback = SensorFeedback(actuators) if args.feedback == "sensor" else None
    engine = FollowerEngine.from_config(config, actuators, feedback=feedback)
    return engine, on_tick


async def run(args, config) -> dict:
    engine, on_tick = build_engine(args, config)
    loop = ControlLoop(engine, on_tick=on_tick)

    def print_telemetry(msg):
        print(json.dumps(msg.model_dump()), flush=True)

    publisher = TelemetryPublisher(engine, print_telemetry, rate_hz=args.telemetry_rate)
    monitor = CommandStreamMonitor(engine)

    loop.start()
    await monitor.start()
    await publisher.start()
    try:
        if args.command is not None and not engine.handle_command(args.command):
            logger.error("Command %s rejected", args.command)
        await asyncio.sleep(args.duration)
    finally:
        await publisher.stop()
        await monitor.stop()
        loop.stop()

    return engine.status()


def main():
    parser = argparse.ArgumentParser(description="wx250s follower demo runner")
    parser.add_argument("--backend", choices=["memory", "mujoco"], default="memory",
                        help="Actuator backend (default: memory)")
    parser.add_argument("--feedback", choices=["echo", "sensor"], default="echo",
                        help="Read-back source (default: echo)")
    parser.add_argument("--command", type=parse_vector, default=None,
                        help="7 comma-separated external positions")
    parser.add_argument("--duration", type=float, default=2.0,
                        help="Run time in seconds (default: 2)")
    parser.add_argument("--telemetry-rate", type=float, default=5.0,
                        help="Telemetry lines per second (default: 5)")
    parser.add_argument("--config", default=None, help="JSON config overlay")
    parser.add_argument("--log-file", default=None, help="Also log to this file")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args()

    setup_logging(log_file=args.log_file, debug=args.debug)

    try:
        config = load_follower_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(2)

    status = asyncio.run(run(args, config))
    print(json.dumps(status), flush=True)


if __name__ == "__main__":
    main()
