"""
Follower engine: external joint commands in, smoothed actuator writes out.

One engine object owns the Control State and is driven by an external
scheduler calling ``tick()``. Commands may arrive on any thread; they are
mapped to the internal channel layout and published as one target snapshot
(last writer wins). Each tick runs:

    advance -> sync -> apply -> read_back (-> sync)

The trailing sync keeps the finger tolerance invariant when read-back comes
from a sensor rather than the command echo.

Usage:
    config = load_follower_config()
    engine = FollowerEngine.from_config(config, InMemoryActuatorSet())
    engine.start()
    engine.handle_command([0, 0, 0, 0, 0, 0, 0.5])
    engine.tick()
    engine.telemetry()
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError

from shared.messages.joint_state import (
    JointCommandMessage,
    JointTelemetryMessage,
    JointTrajectoryMessage,
)
from src.config.follower_config import FollowerConfig
from src.control import gripper_sync, smoother
from src.control.state import ControlState
from src.interface.actuator_driver import ActuatorDriver, ActuatorSet, FeedbackSource
from src.mapping.channels import LEFT_FINGER, NUM_INTERNAL, RIGHT_FINGER, ChannelTable
from src.mapping.mapper import (
    CommandRejected,
    map_external_to_internal,
    map_internal_to_external,
    is_finite_number,
    seed_internal,
)

logger = logging.getLogger(__name__)

# Skipped-channel summary is logged once per this many ticks
_SKIP_LOG_INTERVAL = 500


class EngineState(str, Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"


class FollowerEngine:
    """Maps the external command stream onto the actuator set at a fixed tick."""

    def __init__(
        self,
        config: FollowerConfig,
        driver: ActuatorDriver,
        table: Optional[ChannelTable] = None,
    ):
        self._config = config
        self._table = table if table is not None else config.channel_table()
        self._driver = driver
        self._range = config.gripper_range
        self._policy = config.gripper_policy
        self._factor = config.smoothing_factor if config.enable_smoothing else 1.0
        self._tolerance = config.gripper_tolerance
        self._sync_enabled = config.enable_gripper_sync

        self._initial = seed_internal(config.initial_pose, self._table, self._range)
        self._state = ControlState(self._initial, gripper=0.0)

        self._lifecycle = EngineState.INITIALIZED
        self._tick_lock = threading.Lock()
        self._stats_lock = threading.Lock()

        self._tick_count = 0
        self._commands_accepted = 0
        self._commands_rejected = 0
        self._dropped_points = 0
        self._sync_corrections = 0
        self._last_command_time: Optional[float] = None
        self._warned_inverse: set[int] = set()

        logger.info(
            "Follower engine initialized (factor=%.3f, gripper=%s, sync=%s)",
            self._factor, self._policy.value, self._sync_enabled,
        )

    @classmethod
    def from_config(
        cls,
        config: FollowerConfig,
        actuators: ActuatorSet,
        feedback: Optional[FeedbackSource] = None,
    ) -> "FollowerEngine":
        """Build the channel table and actuator driver from config."""
        table = config.channel_table()
        driver = ActuatorDriver(
            actuators, table.channel_names, aliases=config.actuator_aliases, feedback=feedback
        )
        return cls(config, driver, table)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def lifecycle(self) -> EngineState:
        return self._lifecycle

    @property
    def config(self) -> FollowerConfig:
        return self._config

    @property
    def table(self) -> ChannelTable:
        return self._table

    @property
    def driver(self) -> ActuatorDriver:
        return self._driver

    def start(self) -> None:
        if self._lifecycle is EngineState.RUNNING:
            logger.warning("Follower engine already running")
            return
        self._lifecycle = EngineState.RUNNING
        logger.info("Follower engine running")

    def stop(self) -> None:
        if self._lifecycle is EngineState.STOPPED:
            return
        self._lifecycle = EngineState.STOPPED
        logger.info(
            "Follower engine stopped after %d ticks (%d commands, %d rejected)",
            self._tick_count, self._commands_accepted, self._commands_rejected,
        )

    def tick(self) -> bool:
        """Run one control tick. Returns False if the engine is stopped."""
        if self._lifecycle is EngineState.STOPPED:
            logger.debug("Tick ignored, engine stopped")
            return False

        with self._tick_lock:
            smoother.advance(self._state, self._factor)
            sync_on = self._sync_enabled
            corrected = sync_on and gripper_sync.sync(self._state, self._tolerance)
            applied = self._driver.apply(self._state)
            self._driver.read_back(self._state)
            if sync_on and gripper_sync.sync(self._state, self._tolerance):
                corrected = True

            self._tick_count += 1
            if corrected:
                self._sync_corrections += 1
            if applied.skipped and self._tick_count % _SKIP_LOG_INTERVAL == 1:
                logger.debug(
                    "Channels %s have no actuator (tick %d)", applied.skipped, self._tick_count
                )
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _reject(self, reason: Any) -> bool:
        with self._stats_lock:
            self._commands_rejected += 1
        logger.warning("Command rejected: %s", reason)
        return False

    def handle_command(
        self,
        positions: Sequence[float],
        velocities: Optional[Sequence[float]] = None,
    ) -> bool:
        """Map a 7-channel external command onto the targets.

        A malformed command is dropped whole and the previous targets stay.
        """
        try:
            cmd = map_external_to_internal(
                positions, self._table, self._policy, self._range, velocities
            )
        except CommandRejected as e:
            return self._reject(e)

        self._state.publish_targets(cmd.positions, cmd.velocities, cmd.gripper)
        with self._stats_lock:
            self._commands_accepted += 1
            self._last_command_time = time.monotonic()
        return True

    def _order_by_name(self, msg: JointCommandMessage):
        """Reorder positions/velocities to external order when names are given."""
        if not msg.names:
            return msg.positions, msg.velocities
        if len(msg.names) != len(msg.positions):
            raise CommandRejected(
                f"{len(msg.names)} names for {len(msg.positions)} positions"
            )
        index = {name: i for i, name in enumerate(msg.names)}
        missing = [n for n in self._table.external_names if n not in index]
        if missing:
            raise CommandRejected(f"Missing joints {missing}")
        order = [index[n] for n in self._table.external_names]
        positions = [msg.positions[i] for i in order]
        velocities = None
        if msg.velocities is not None:
            if len(msg.velocities) != len(msg.names):
                raise CommandRejected(
                    f"{len(msg.velocities)} velocities for {len(msg.names)} names"
                )
            velocities = [msg.velocities[i] for i in order]
        return positions, velocities

    def handle_joint_state(self, msg: Union[JointCommandMessage, Mapping[str, Any]]) -> bool:
        """Accept a joint state message (model or raw dict)."""
        try:
            if not isinstance(msg, JointCommandMessage):
                msg = JointCommandMessage.model_validate(msg)
            positions, velocities = self._order_by_name(msg)
        except (ValidationError, CommandRejected) as e:
            return self._reject(e)
        return self.handle_command(positions, velocities)

    def handle_trajectory(self, msg: Union[JointTrajectoryMessage, Mapping[str, Any]]) -> bool:
        """Act on the first waypoint of a trajectory; the rest are dropped."""
        try:
            if not isinstance(msg, JointTrajectoryMessage):
                msg = JointTrajectoryMessage.model_validate(msg)
        except ValidationError as e:
            return self._reject(e)
        if not msg.points:
            return self._reject("trajectory has no points")

        dropped = len(msg.points) - 1
        if dropped:
            with self._stats_lock:
                self._dropped_points += dropped
            logger.debug("Trajectory: acting on first point, dropped %d", dropped)

        first = msg.points[0]
        if msg.joint_names:
            return self.handle_joint_state(
                JointCommandMessage(
                    positions=first.positions,
                    velocities=first.velocities,
                    names=msg.joint_names,
                )
            )
        return self.handle_command(first.positions, first.velocities)

    def set_gripper_value(self, value: float) -> bool:
        """Set the normalized gripper target (0 open, 1 closed) on both fingers."""
        if not is_finite_number(value):
            return self._reject(f"gripper value {value!r}")
        g = min(1.0, max(0.0, float(value)))
        physical = self._range.to_physical(g)
        self._state.set_target_channels({LEFT_FINGER: physical, RIGHT_FINGER: physical}, gripper=g)
        return True

    def open_gripper(self) -> bool:
        return self.set_gripper_value(0.0)

    def close_gripper(self) -> bool:
        return self.set_gripper_value(1.0)

    def set_joint_position(self, channel: Union[int, str], value: float) -> bool:
        """Write one internal target directly, bypassing the mapping table.

        Writing a single finger makes the pair diverge; sync masks it.
        """
        if isinstance(channel, str):
            try:
                index = self._table.channel_index(channel)
            except KeyError:
                return self._reject(f"unknown channel {channel!r}")
        elif isinstance(channel, (int, np.integer)) and not isinstance(channel, bool):
            index = int(channel)
            if not 0 <= index < NUM_INTERNAL:
                return self._reject(f"channel index {channel} out of range")
        else:
            return self._reject(f"channel must be an index or name, got {channel!r}")
        if not is_finite_number(value):
            return self._reject(f"channel {channel} value {value!r}")
        self._state.set_target_channels({index: float(value)})
        return True

    def set_gripper_sync(self, enabled: bool) -> None:
        self._sync_enabled = bool(enabled)
        logger.info("Gripper sync %s", "enabled" if enabled else "disabled")

    @property
    def gripper_sync_enabled(self) -> bool:
        return self._sync_enabled

    def reset(self) -> None:
        """Return targets to the initial pose with the gripper open."""
        self._state.publish_targets(self._initial, np.zeros(NUM_INTERNAL), 0.0)
        logger.info("Follower targets reset to initial pose")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_positions(self) -> np.ndarray:
        return self._state.current_position

    def current_velocities(self) -> np.ndarray:
        return self._state.current_velocity

    def target_positions(self) -> np.ndarray:
        return np.array(self._state.targets.positions)

    def gripper_value(self) -> float:
        return self._state.current_gripper

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_command_age(self) -> Optional[float]:
        """Seconds since the last accepted command, or None if none yet."""
        with self._stats_lock:
            last = self._last_command_time
        return None if last is None else time.monotonic() - last

    def telemetry(self) -> JointTelemetryMessage:
        """Current state reduced to the 7 external channels."""
        snap = self._state.snapshot()
        external = map_internal_to_external(
            snap.positions,
            self._table,
            self._range,
            snap.velocities,
            policy=self._policy,
            warned=self._warned_inverse,
        )
        return JointTelemetryMessage(
            names=list(self._table.external_names),
            positions=external.positions,
            velocities=external.velocities,
            gripper=snap.gripper,
        )

    def status(self) -> dict:
        with self._stats_lock:
            stats = {
                "commands_accepted": self._commands_accepted,
                "commands_rejected": self._commands_rejected,
                "dropped_trajectory_points": self._dropped_points,
            }
        age = self.last_command_age
        return {
            "state": self._lifecycle.value,
            "ticks": self._tick_count,
            **stats,
            "sync_corrections": self._sync_corrections,
            "gripper_sync": self._sync_enabled,
            "unresolved_channels": self._driver.unresolved_channels,
            "last_command_age_s": None if age is None else round(age, 3),
        }
