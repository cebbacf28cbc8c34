"""Pydantic message schemas for the follower's command and telemetry streams."""

from shared.messages.joint_state import (
    JointCommandMessage,
    JointTelemetryMessage,
    JointTrajectoryMessage,
    TrajectoryPointMessage,
)
