"""
Actuator driver: applies the current internal vector to named actuators.

Channel -> actuator resolution happens once at construction and is stored
as an index table, so a tick never searches actuators by name. An alias
table lets a logical channel drive a differently-named physical actuator
(the wx250s drives ``left_finger`` through the ``gripper`` actuator).

Read-back goes through a pluggable feedback source:

  - CommandEcho: returns the last commanded value (open loop)
  - SensorFeedback: returns a measured position from the backend
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Sequence

from src.control.state import ControlState

logger = logging.getLogger(__name__)

DEFAULT_ALIASES = {"left_finger": "gripper"}


class ActuatorSet(Protocol):
    """Minimal named-actuator interface of the simulation runtime."""

    def actuator_names(self) -> Sequence[str]: ...
    def set_control(self, index: int, value: float) -> None: ...
    def get_control(self, index: int) -> float: ...


class FeedbackSource(Protocol):
    """Where read-back values come from. None means "no reading"."""

    def read(self, actuator_index: int) -> Optional[float]: ...


class CommandEcho:
    """Open-loop feedback: echoes the last value written to the actuator."""

    def __init__(self, actuators: ActuatorSet):
        self._actuators = actuators

    def read(self, actuator_index: int) -> Optional[float]:
        return float(self._actuators.get_control(actuator_index))


class SensorFeedback:
    """Feedback from a backend exposing measured positions via ``get_position``."""

    def __init__(self, sensors):
        self._sensors = sensors

    def read(self, actuator_index: int) -> Optional[float]:
        value = self._sensors.get_position(actuator_index)
        return None if value is None else float(value)


@dataclass
class ApplyResult:
    """Outcome of one apply/read-back pass over the 8 channels."""

    applied: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped


class ActuatorDriver:
    """Writes channel values to resolved actuators and reads them back."""

    def __init__(
        self,
        actuators: ActuatorSet,
        channel_names: Sequence[str],
        aliases: Optional[Mapping[str, str]] = None,
        feedback: Optional[FeedbackSource] = None,
    ):
        self._actuators = actuators
        self._channel_names = tuple(channel_names)
        self._aliases = dict(DEFAULT_ALIASES if aliases is None else aliases)
        self._feedback = feedback or CommandEcho(actuators)
        self._apply_count = 0

        by_name = {name: i for i, name in enumerate(actuators.actuator_names())}
        self._physical_names: list[str] = []
        self._resolved: list[Optional[int]] = []
        for channel, logical in enumerate(self._channel_names):
            physical = self._aliases.get(logical, logical)
            index = by_name.get(physical)
            self._physical_names.append(physical)
            self._resolved.append(index)
            if index is None:
                logger.warning(
                    "No actuator '%s' for channel %d (%s), channel will be skipped",
                    physical, channel, logical,
                )
        logger.info(
            "Actuator driver resolved %d/%d channels",
            len(self.resolved_channels), len(self._channel_names),
        )

    @property
    def feedback(self) -> FeedbackSource:
        return self._feedback

    @property
    def apply_count(self) -> int:
        return self._apply_count

    @property
    def resolved_channels(self) -> list[int]:
        return [c for c, idx in enumerate(self._resolved) if idx is not None]

    @property
    def unresolved_channels(self) -> list[int]:
        return [c for c, idx in enumerate(self._resolved) if idx is None]

    def actuator_name(self, channel: int) -> str:
        """Physical actuator name a channel resolves to (after aliasing)."""
        return self._physical_names[channel]

    def actuator_index(self, channel: int) -> Optional[int]:
        return self._resolved[channel]

    def apply(self, state: ControlState) -> ApplyResult:
        """Write current positions to every resolved actuator.

        Missing actuators and per-channel write errors skip only that channel.
        """
        result = ApplyResult()
        positions = state.current_position
        for channel, index in enumerate(self._resolved):
            if index is None:
                logger.debug("Skipping channel %d (unresolved)", channel)
                result.skipped.append(channel)
                continue
            try:
                self._actuators.set_control(index, float(positions[channel]))
                result.applied.append(channel)
            except Exception as e:
                logger.error("Channel %d (%s) apply failed: %s",
                             channel, self._physical_names[channel], e)
                result.skipped.append(channel)
        self._apply_count += 1
        return result

    def read_back(self, state: ControlState) -> ApplyResult:
        """Refresh current positions from the feedback source.

        Channels without an actuator or without a reading keep their value.
        """
        result = ApplyResult()
        positions = state.current_position
        for channel, index in enumerate(self._resolved):
            if index is None:
                result.skipped.append(channel)
                continue
            try:
                value = self._feedback.read(index)
            except Exception as e:
                logger.error("Channel %d (%s) read-back failed: %s",
                             channel, self._physical_names[channel], e)
                value = None
            if value is None:
                result.skipped.append(channel)
                continue
            positions[channel] = value
            result.applied.append(channel)
        state.commit_current(positions=positions)
        return result
