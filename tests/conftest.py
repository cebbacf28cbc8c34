"""
Shared test fixtures for the follower test suite.

MuJoCo is optional: tests that need it use ``pytest.importorskip("mujoco")``
or the ``requires_mujoco`` marker below.
"""

import importlib.util
import sys
from pathlib import Path

import pytest

project_root = str(Path(__file__).resolve().parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from src.config.follower_config import FollowerConfig
from src.control.engine import FollowerEngine
from src.control.state import ControlState
from src.interface.simulated_actuators import InMemoryActuatorSet
from src.mapping.channels import ChannelTable


# ---------------------------------------------------------------------------
# Skip markers
# ---------------------------------------------------------------------------

requires_mujoco = pytest.mark.skipif(
    importlib.util.find_spec("mujoco") is None,
    reason="mujoco not installed",
)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def table():
    return ChannelTable.default()


@pytest.fixture
def config():
    return FollowerConfig()


@pytest.fixture
def state():
    return ControlState()


@pytest.fixture
def actuators():
    return InMemoryActuatorSet()


@pytest.fixture
def engine(config, actuators):
    return FollowerEngine.from_config(config, actuators)


@pytest.fixture
def snap_engine(actuators):
    """Engine with smoothing disabled: one tick reaches the target."""
    return FollowerEngine.from_config(FollowerConfig(enable_smoothing=False), actuators)
