"""Pydantic models for follower joint command, trajectory and telemetry messages."""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class JointCommandMessage(BaseModel):
    """External joint state command (6 arm joints + gripper, external order)."""

    positions: list[float] = Field(description="7 external positions: joint0..joint5, gripper")
    velocities: Optional[list[float]] = Field(
        default=None, description="Optional 7 external velocities"
    )
    names: Optional[list[str]] = Field(default=None, description="Joint names as sent by the leader")
    timestamp: float = Field(default_factory=time.time, description="Unix timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "positions": [0.0, -0.5, 0.8, 0.0, 0.3, 0.0, 0.5],
                "velocities": None,
                "names": ["waist", "shoulder", "elbow", "forearm_roll",
                          "wrist_angle", "wrist_rotate", "gripper"],
                "timestamp": 1700000000.0,
            }
        }
    )


class TrajectoryPointMessage(BaseModel):
    """One waypoint of a joint trajectory."""

    positions: list[float] = Field(description="7 external positions")
    velocities: Optional[list[float]] = Field(default=None, description="Optional 7 velocities")
    time_from_start_s: float = Field(default=0.0, ge=0.0, description="Offset from trajectory start")


class JointTrajectoryMessage(BaseModel):
    """Joint trajectory. The follower acts on the first point only."""

    joint_names: list[str] = Field(default_factory=list, description="Joint names in point order")
    points: list[TrajectoryPointMessage] = Field(default_factory=list)


class JointTelemetryMessage(BaseModel):
    """Follower state reduced to the 7 external channels.

    A None entry marks a channel whose mapping rule cannot be inverted.
    """

    names: list[str] = Field(description="7 external channel names")
    positions: list[Optional[float]] = Field(description="7 external positions")
    velocities: list[Optional[float]] = Field(description="7 external velocities")
    gripper: float = Field(description="Normalized gripper (0 open, 1 closed)")
    timestamp: float = Field(default_factory=time.time, description="Unix timestamp")
