"""
Channel table for the wx250s follower.

Describes the 8 internal actuator channels (6 arm joints + left/right
gripper fingers) and the rules that map the 7 external command slots onto
them. The external gripper slot (index 6) feeds both finger channels.

A table can be loaded from JSON (same layout as ``to_dict()``) and is
validated on construction -- a table that is not bijective over the arm
channels is a fatal startup error.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Sequence

from src.config.errors import ChannelTableError

logger = logging.getLogger(__name__)

NUM_EXTERNAL = 7
NUM_INTERNAL = 8
NUM_ARM_JOINTS = 6
GRIPPER_EXTERNAL_INDEX = 6
LEFT_FINGER = 6
RIGHT_FINGER = 7

DEFAULT_CHANNEL_NAMES = (
    "waist",
    "shoulder",
    "elbow",
    "forearm_roll",
    "wrist_angle",
    "wrist_rotate",
    "left_finger",
    "right_finger",
)

DEFAULT_EXTERNAL_NAMES = (
    "waist",
    "shoulder",
    "elbow",
    "forearm_roll",
    "wrist_angle",
    "wrist_rotate",
    "gripper",
)


class ChannelRole(str, Enum):
    ARM = "arm"
    GRIPPER_LEFT = "gripper_left"
    GRIPPER_RIGHT = "gripper_right"


def role_for_index(index: int) -> ChannelRole:
    if index == LEFT_FINGER:
        return ChannelRole.GRIPPER_LEFT
    if index == RIGHT_FINGER:
        return ChannelRole.GRIPPER_RIGHT
    return ChannelRole.ARM


@dataclass(frozen=True)
class Channel:
    """One internal actuator slot."""

    index: int
    name: str
    role: ChannelRole

    @property
    def is_gripper(self) -> bool:
        return self.role is not ChannelRole.ARM


@dataclass(frozen=True)
class MappingRule:
    """Per-channel transform from an external slot to an internal index.

    Forward: ``value * scale + offset``, negated when ``invert`` is set.
    Rates (velocities) skip the offset.
    """

    external_index: int
    internal_index: int
    scale: float = 1.0
    offset: float = 0.0
    invert: bool = False
    gripper: bool = False

    def forward(self, value: float) -> float:
        mapped = value * self.scale + self.offset
        return -mapped if self.invert else mapped

    def forward_rate(self, rate: float) -> float:
        mapped = rate * self.scale
        return -mapped if self.invert else mapped

    def inverse(self, value: float) -> Optional[float]:
        """Undo ``forward``. Returns None when the scale is exactly zero."""
        if self.scale == 0.0:
            return None
        unmapped = -value if self.invert else value
        return (unmapped - self.offset) / self.scale

    def inverse_rate(self, rate: float) -> Optional[float]:
        if self.scale == 0.0:
            return None
        unmapped = -rate if self.invert else rate
        return unmapped / self.scale

    @classmethod
    def from_dict(cls, data: dict) -> "MappingRule":
        try:
            return cls(
                external_index=int(data["external_index"]),
                internal_index=int(data["internal_index"]),
                scale=float(data.get("scale", 1.0)),
                offset=float(data.get("offset", 0.0)),
                invert=bool(data.get("invert", False)),
                gripper=bool(data.get("gripper", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ChannelTableError(f"Invalid mapping rule {data!r}: {e}") from e


def identity_rules() -> list[MappingRule]:
    """Default wx250s rules: arm joints 1:1, gripper split onto both fingers."""
    rules = [MappingRule(i, i) for i in range(NUM_ARM_JOINTS)]
    rules.append(MappingRule(GRIPPER_EXTERNAL_INDEX, LEFT_FINGER, gripper=True))
    rules.append(MappingRule(GRIPPER_EXTERNAL_INDEX, RIGHT_FINGER, gripper=True))
    return rules


class ChannelTable:
    """Validated, immutable channel layout plus mapping rules.

    Lookups by name are O(1); the per-index rule lists are built once here
    so the mapper never scans the rule table.
    """

    def __init__(
        self,
        rules: Iterable[MappingRule],
        channel_names: Sequence[str] = DEFAULT_CHANNEL_NAMES,
        external_names: Sequence[str] = DEFAULT_EXTERNAL_NAMES,
    ):
        self._rules = tuple(rules)
        self._channels = tuple(
            Channel(i, str(name), role_for_index(i)) for i, name in enumerate(channel_names)
        )
        self._external_names = tuple(str(n) for n in external_names)
        self._validate()

        self._arm_rules = tuple(
            sorted((r for r in self._rules if not r.gripper), key=lambda r: r.external_index)
        )
        self._gripper_rules = tuple(
            sorted((r for r in self._rules if r.gripper), key=lambda r: r.internal_index)
        )
        self._index_by_name = {c.name: c.index for c in self._channels}

    @classmethod
    def default(cls) -> "ChannelTable":
        return cls(identity_rules())

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        if len(self._channels) != NUM_INTERNAL:
            raise ChannelTableError(
                f"Expected {NUM_INTERNAL} channel names, got {len(self._channels)}"
            )
        if len(self._external_names) != NUM_EXTERNAL:
            raise ChannelTableError(
                f"Expected {NUM_EXTERNAL} external names, got {len(self._external_names)}"
            )
        names = [c.name for c in self._channels]
        if len(set(names)) != len(names):
            raise ChannelTableError(f"Channel names must be unique: {names}")

        for rule in self._rules:
            if not (math.isfinite(rule.scale) and math.isfinite(rule.offset)):
                raise ChannelTableError(f"Non-finite scale/offset in {rule}")
            if not 0 <= rule.external_index < NUM_EXTERNAL:
                raise ChannelTableError(f"External index out of range in {rule}")
            if not 0 <= rule.internal_index < NUM_INTERNAL:
                raise ChannelTableError(f"Internal index out of range in {rule}")

        arm = [r for r in self._rules if not r.gripper]
        grip = [r for r in self._rules if r.gripper]

        arm_external = sorted(r.external_index for r in arm)
        arm_internal = sorted(r.internal_index for r in arm)
        if arm_external != list(range(NUM_ARM_JOINTS)):
            raise ChannelTableError(
                f"Arm rules must cover external slots 0-5 exactly once, got {arm_external}"
            )
        if arm_internal != list(range(NUM_ARM_JOINTS)):
            raise ChannelTableError(
                f"Arm rules must target internal channels 0-5 exactly once, got {arm_internal}"
            )

        if len(grip) != 2:
            raise ChannelTableError(f"Expected exactly 2 gripper rules, got {len(grip)}")
        if any(r.external_index != GRIPPER_EXTERNAL_INDEX for r in grip):
            raise ChannelTableError("Gripper rules must read external slot 6")
        if sorted(r.internal_index for r in grip) != [LEFT_FINGER, RIGHT_FINGER]:
            raise ChannelTableError("Gripper rules must target internal channels 6 and 7")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def channels(self) -> tuple[Channel, ...]:
        return self._channels

    @property
    def channel_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self._channels)

    @property
    def external_names(self) -> tuple[str, ...]:
        return self._external_names

    @property
    def rules(self) -> tuple[MappingRule, ...]:
        return self._rules

    @property
    def arm_rules(self) -> tuple[MappingRule, ...]:
        """Arm rules ordered by external slot."""
        return self._arm_rules

    @property
    def gripper_rules(self) -> tuple[MappingRule, ...]:
        """The two finger rules, left finger first."""
        return self._gripper_rules

    def channel_index(self, name: str) -> int:
        """Internal index for a channel name. Raises KeyError if unknown."""
        return self._index_by_name[name]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "channel_names": list(self.channel_names),
            "external_names": list(self._external_names),
            "rules": [asdict(r) for r in self._rules],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChannelTable":
        rules = [MappingRule.from_dict(r) for r in data.get("rules", [])]
        return cls(
            rules,
            channel_names=data.get("channel_names", DEFAULT_CHANNEL_NAMES),
            external_names=data.get("external_names", DEFAULT_EXTERNAL_NAMES),
        )

    @classmethod
    def load(cls, path: Path) -> "ChannelTable":
        """Load a table from JSON. Missing file or bad JSON is fatal."""
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ChannelTableError(f"Cannot read channel table {path}: {e}") from e
        table = cls.from_dict(data)
        logger.info("Channel table loaded from %s (%d rules)", path, len(table.rules))
        return table

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Channel table saved to %s", path)

    def describe(self) -> dict:
        """Human-readable mapping summary for status output."""
        out = {}
        for rule in self._rules:
            ext = self._external_names[rule.external_index]
            out.setdefault(ext, []).append(self._channels[rule.internal_index].name)
        return out
