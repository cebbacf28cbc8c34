"""Tests for the MuJoCo-backed actuator set (skipped without mujoco)."""

import numpy as np
import pytest

mujoco = pytest.importorskip("mujoco")

from src.config.follower_config import FollowerConfig
from src.control.engine import FollowerEngine
from src.interface.actuator_driver import SensorFeedback
from src.simulation.mujoco_actuators import (
    WX250S_FINGER_CLOSED,
    WX250S_FINGER_OPEN,
    MuJoCoActuatorSet,
)


@pytest.fixture
def sim():
    return MuJoCoActuatorSet.wx250s()


@pytest.fixture
def wx250s_config():
    return FollowerConfig(
        gripper_open=WX250S_FINGER_OPEN,
        gripper_closed=WX250S_FINGER_CLOSED,
        enable_smoothing=False,
    )


class TestMuJoCoActuatorSet:
    def test_actuator_names(self, sim):
        assert sim.actuator_names() == (
            "waist", "shoulder", "elbow", "forearm_roll",
            "wrist_angle", "wrist_rotate", "gripper",
        )

    def test_ctrl_round_trip(self, sim):
        sim.set_control(2, 0.3)
        assert sim.get_control(2) == pytest.approx(0.3)
        assert sim.data.ctrl[2] == pytest.approx(0.3)

    def test_position_tracks_joint(self, sim):
        sim.set_control(0, 0.5)
        sim.step(1000)
        assert sim.get_position(0) == pytest.approx(0.5, abs=0.05)
        assert sim.joint_position("waist") == sim.get_position(0)

    def test_gripper_drives_left_finger(self, sim):
        sim.set_control(6, WX250S_FINGER_CLOSED)
        sim.step(1000)
        assert sim.joint_position("left_finger") == pytest.approx(WX250S_FINGER_CLOSED, abs=0.003)

    def test_unknown_joint(self, sim):
        with pytest.raises(KeyError):
            sim.joint_position("tail")

    def test_reset(self, sim):
        sim.set_control(0, 1.0)
        sim.step(10)
        sim.reset()
        assert sim.sim_time == 0.0
        assert sim.get_control(0) == 0.0

    def test_missing_model_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MuJoCoActuatorSet.from_xml_path(str(tmp_path / "nope.xml"))


class TestEngineOnMuJoCo:
    def test_echo_feedback(self, sim, wx250s_config):
        engine = FollowerEngine.from_config(wx250s_config, sim)
        assert engine.driver.unresolved_channels == [7]
        engine.handle_command([0.2, 0.1, -0.1, 0.0, 0.3, 0.0, 1.0])
        engine.tick()
        np.testing.assert_allclose(sim.data.ctrl[:6], [0.2, 0.1, -0.1, 0.0, 0.3, 0.0])
        assert sim.data.ctrl[6] == pytest.approx(WX250S_FINGER_CLOSED)

    def test_sensor_feedback_converges(self, sim, wx250s_config):
        engine = FollowerEngine.from_config(wx250s_config, sim, feedback=SensorFeedback(sim))
        engine.handle_command([0.4, 0, 0, 0, 0, 0, 0])
        for _ in range(200):
            engine.tick()
            sim.step(5)
        pos = engine.current_positions()
        assert pos[6] == pytest.approx(pos[7], abs=wx250s_config.gripper_tolerance)
        assert sim.joint_position("waist") == pytest.approx(0.4, abs=0.05)
