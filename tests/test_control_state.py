"""Tests for the locked control state."""

import threading

import numpy as np
import pytest

from src.control.state import ControlState


class TestTargets:
    def test_initial_targets_match_current(self):
        pose = np.arange(8, dtype=float)
        s = ControlState(pose, gripper=0.0)
        np.testing.assert_array_equal(s.targets.positions, pose)
        np.testing.assert_array_equal(s.current_position, pose)
        assert s.targets.seq == 0

    def test_publish_keeps_omitted_parts(self):
        s = ControlState()
        s.publish_targets(positions=np.ones(8), gripper=0.7)
        seq = s.publish_targets(velocities=np.full(8, 2.0))
        t = s.targets
        assert seq == 2
        np.testing.assert_array_equal(t.positions, np.ones(8))
        np.testing.assert_array_equal(t.velocities, np.full(8, 2.0))
        assert t.gripper == 0.7

    def test_snapshot_is_read_only(self):
        s = ControlState()
        s.publish_targets(positions=np.ones(8))
        with pytest.raises(ValueError):
            s.targets.positions[0] = 5.0

    def test_publish_copies_input(self):
        s = ControlState()
        src = np.ones(8)
        s.publish_targets(positions=src)
        src[0] = 99.0
        assert s.targets.positions[0] == 1.0

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            ControlState().publish_targets(positions=np.ones(7))

    def test_set_target_channels(self):
        s = ControlState()
        s.set_target_channels({2: 0.5, 7: 0.01}, gripper=0.3)
        t = s.targets
        assert t.positions[2] == 0.5
        assert t.positions[7] == 0.01
        assert t.positions[0] == 0.0
        assert t.gripper == 0.3
        with pytest.raises(ValueError):
            t.positions[0] = 1.0


class TestCurrent:
    def test_queries_return_copies(self):
        s = ControlState()
        pos = s.current_position
        pos[0] = 42.0
        assert s.current_position[0] == 0.0

    def test_commit_partial(self):
        s = ControlState()
        s.commit_current(gripper=0.4)
        snap = s.snapshot()
        assert snap.gripper == 0.4
        np.testing.assert_array_equal(snap.positions, np.zeros(8))


class TestConcurrency:
    def test_ticks_see_whole_snapshots(self):
        """Concurrent writers publish uniform vectors; readers never see a mix."""
        s = ControlState()
        stop = threading.Event()
        mixed = []

        def writer(value):
            while not stop.is_set():
                s.publish_targets(positions=np.full(8, value))

        def reader():
            for _ in range(2000):
                pos = s.targets.positions
                if len(set(pos.tolist())) != 1:
                    mixed.append(pos.copy())

        writers = [threading.Thread(target=writer, args=(v,)) for v in (1.0, 2.0)]
        for w in writers:
            w.start()
        reader()
        stop.set()
        for w in writers:
            w.join(timeout=2.0)
        assert mixed == []
