"""Tests for the in-memory actuator set."""

import time

import pytest

from src.interface.simulated_actuators import DEFAULT_ACTUATOR_NAMES, InMemoryActuatorSet


class TestInMemoryActuatorSet:
    def test_default_names(self):
        acts = InMemoryActuatorSet()
        assert acts.actuator_names() == DEFAULT_ACTUATOR_NAMES
        assert "gripper" in acts.actuator_names()
        assert "right_finger" not in acts.actuator_names()

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            InMemoryActuatorSet(names=["a", "a"])

    def test_set_and_get_control(self):
        acts = InMemoryActuatorSet()
        acts.set_control(1, 0.75)
        assert acts.get_control(1) == 0.75
        assert acts.write_count == 1
        assert acts.controls()["shoulder"] == 0.75

    def test_ctrl_range_clamps(self):
        acts = InMemoryActuatorSet(ctrl_ranges={"gripper": (0.015, 0.037)})
        acts.set_control(6, 1.0)
        assert acts.get_control(6) == 0.037
        acts.set_control(6, -1.0)
        assert acts.get_control(6) == 0.015

    def test_positions_lag_control(self):
        acts = InMemoryActuatorSet(response=0.5)
        acts.set_control(0, 1.0)
        assert acts.get_position(0) == 0.0
        acts.step()
        assert acts.get_position(0) == pytest.approx(0.5)
        acts.step(2)
        assert acts.get_position(0) == pytest.approx(0.875)

    def test_feedback_loop_thread(self):
        acts = InMemoryActuatorSet(response=0.5)
        acts.set_control(2, 1.0)
        acts.start_feedback_loop(rate_hz=200.0)
        try:
            time.sleep(0.2)
        finally:
            acts.stop_feedback_loop()
        assert acts.get_position(2) > 0.9
