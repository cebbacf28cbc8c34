from .actuator_driver import (
    ActuatorDriver,
    ActuatorSet,
    ApplyResult,
    CommandEcho,
    FeedbackSource,
    SensorFeedback,
)
from .simulated_actuators import InMemoryActuatorSet

# The MuJoCo backend is deferred: mujoco may not be installed in all
# environments (tests, CI). Use: from src.simulation.mujoco_actuators import MuJoCoActuatorSet

__all__ = [
    "ActuatorDriver",
    "ActuatorSet",
    "ApplyResult",
    "CommandEcho",
    "FeedbackSource",
    "SensorFeedback",
    "InMemoryActuatorSet",
]
