"""MuJoCo-backed named actuator set for the wx250s follower.

Wraps an ``MjModel``/``MjData`` pair behind the same named-actuator
interface as the in-memory set: control values go to ``data.ctrl`` and
measured positions come from the actuated joint's ``qpos``. A built-in
wx250s model (6 revolute joints + two slide fingers, left finger driven by
the ``gripper`` actuator, right finger coupled by an equality constraint)
is provided for tests and the demo runner.

Usage:
    actuators = MuJoCoActuatorSet.wx250s()
    driver = ActuatorDriver(actuators, table.channel_names,
                            feedback=SensorFeedback(actuators))
    ...
    actuators.step(5)   # advance physics between control ticks
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# Finger slide range (m): 0.037 fully open, 0.015 fully closed
WX250S_FINGER_OPEN = 0.037
WX250S_FINGER_CLOSED = 0.015

WX250S_MJCF = """<?xml version="1.0" encoding="utf-8"?>
<mujoco model="wx250s">
  <compiler angle="radian" autolimits="true"/>
  <option timestep="0.002" gravity="0 0 -9.81" integrator="implicitfast"/>

  <default>
    <joint damping="1.0" armature="0.01"/>
    <geom contype="0" conaffinity="0" density="500" rgba="0.2 0.2 0.2 1"/>
    <position kp="50"/>
  </default>

  <worldbody>
    <geom name="floor" type="plane" size="1 1 0.1" rgba="0.8 0.8 0.8 1"/>
    <body name="base_link" pos="0 0 0.03">
      <geom type="cylinder" size="0.05 0.03"/>

      <body name="shoulder_link" pos="0 0 0.042">
        <joint name="waist" axis="0 0 1" range="-3.14158 3.14158"/>
        <geom type="cylinder" size="0.03 0.02"/>

        <body name="upper_arm_link" pos="0 0 0.039">
          <joint name="shoulder" axis="0 1 0" range="-1.88496 1.98968"/>
          <geom type="capsule" fromto="0 0 0 0.05 0 0.25" size="0.02"/>

          <body name="upper_forearm_link" pos="0.05 0 0.25">
            <joint name="elbow" axis="0 1 0" range="-2.14675 1.60570"/>
            <geom type="capsule" fromto="0 0 0 0.175 0 0" size="0.02"/>

            <body name="lower_forearm_link" pos="0.175 0 0">
              <joint name="forearm_roll" axis="1 0 0" range="-3.14158 3.14158"/>
              <geom type="capsule" fromto="0 0 0 0.075 0 0" size="0.018"/>

              <body name="wrist_link" pos="0.075 0 0">
                <joint name="wrist_angle" axis="0 1 0" range="-1.74533 2.14675"/>
                <geom type="capsule" fromto="0 0 0 0.065 0 0" size="0.015"/>

                <body name="gripper_link" pos="0.065 0 0">
                  <joint name="wrist_rotate" axis="1 0 0" range="-3.14158 3.14158"/>
                  <geom type="box" size="0.02 0.03 0.01"/>

                  <body name="left_finger_link" pos="0.04 0 0">
                    <joint name="left_finger" type="slide" axis="0 1 0" range="0.015 0.037"/>
                    <geom type="box" size="0.015 0.005 0.01"/>
                  </body>
                  <body name="right_finger_link" pos="0.04 0 0">
                    <joint name="right_finger" type="slide" axis="0 -1 0" range="0.015 0.037"/>
                    <geom type="box" size="0.015 0.005 0.01"/>
                  </body>
                </body>
              </body>
            </body>
          </body>
        </body>
      </body>
    </body>
  </worldbody>

  <equality>
    <joint joint1="right_finger" joint2="left_finger"/>
  </equality>

  <actuator>
    <position name="waist" joint="waist" ctrlrange="-3.14158 3.14158"/>
    <position name="shoulder" joint="shoulder" ctrlrange="-1.88496 1.98968"/>
    <position name="elbow" joint="elbow" ctrlrange="-2.14675 1.60570"/>
    <position name="forearm_roll" joint="forearm_roll" ctrlrange="-3.14158 3.14158"/>
    <position name="wrist_angle" joint="wrist_angle" ctrlrange="-1.74533 2.14675"/>
    <position name="wrist_rotate" joint="wrist_rotate" ctrlrange="-3.14158 3.14158"/>
    <position name="gripper" joint="left_finger" ctrlrange="0.015 0.037" kp="200"/>
  </actuator>
</mujoco>"""


def _import_mujoco():
    try:
        import mujoco
    except ImportError:
        raise ImportError(
            "MuJoCo not installed. Install with: pip install mujoco>=3.0"
        )
    return mujoco


class MuJoCoActuatorSet:
    """Named actuators of a loaded MuJoCo model.

    Actuator names and their joint ``qpos`` addresses are cached once at
    construction. Thread-safe: ctrl writes, reads and stepping share a lock.
    """

    def __init__(self, model, data=None):
        mujoco = _import_mujoco()
        self._mujoco = mujoco
        self._model = model
        self._data = data if data is not None else mujoco.MjData(model)
        self._lock = threading.Lock()

        self._names: list[str] = []
        self._qpos_addr: list[Optional[int]] = []
        for i in range(model.nu):
            name = mujoco.mj_id2name(model, mujoco.mjtObj.mjOBJ_ACTUATOR, i)
            self._names.append(name or f"actuator_{i}")
            joint_id = int(model.actuator_trnid[i, 0])
            is_joint = int(model.actuator_trntype[i]) == int(mujoco.mjtTrn.mjTRN_JOINT)
            if is_joint and joint_id >= 0:
                self._qpos_addr.append(int(model.jnt_qposadr[joint_id]))
            else:
                self._qpos_addr.append(None)

        logger.info(
            "MuJoCo actuator set: %d actuators (%s)", model.nu, ", ".join(self._names)
        )

    @classmethod
    def from_xml_string(cls, xml: str) -> "MuJoCoActuatorSet":
        mujoco = _import_mujoco()
        return cls(mujoco.MjModel.from_xml_string(xml))

    @classmethod
    def from_xml_path(cls, path: str) -> "MuJoCoActuatorSet":
        mujoco = _import_mujoco()
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"MuJoCo model not found: {path}")
        return cls(mujoco.MjModel.from_xml_path(str(path)))

    @classmethod
    def wx250s(cls) -> "MuJoCoActuatorSet":
        return cls.from_xml_string(WX250S_MJCF)

    @property
    def model(self):
        return self._model

    @property
    def data(self):
        return self._data

    # ------------------------------------------------------------------
    # Named actuator interface
    # ------------------------------------------------------------------

    def actuator_names(self) -> Sequence[str]:
        return tuple(self._names)

    def set_control(self, index: int, value: float) -> None:
        with self._lock:
            self._data.ctrl[index] = value

    def get_control(self, index: int) -> float:
        with self._lock:
            return float(self._data.ctrl[index])

    def get_position(self, index: int) -> Optional[float]:
        """Measured position of the joint driven by an actuator, if any."""
        addr = self._qpos_addr[index]
        if addr is None:
            return None
        with self._lock:
            return float(self._data.qpos[addr])

    def joint_position(self, name: str) -> float:
        joint_id = self._mujoco.mj_name2id(self._model, self._mujoco.mjtObj.mjOBJ_JOINT, name)
        if joint_id < 0:
            raise KeyError(f"No joint named {name!r}")
        with self._lock:
            return float(self._data.qpos[self._model.jnt_qposadr[joint_id]])

    # ------------------------------------------------------------------
    # Physics
    # ------------------------------------------------------------------

    def step(self, n: int = 1) -> None:
        with self._lock:
            for _ in range(n):
                self._mujoco.mj_step(self._model, self._data)

    def reset(self) -> None:
        with self._lock:
            self._mujoco.mj_resetData(self._model, self._data)

    @property
    def sim_time(self) -> float:
        with self._lock:
            return float(self._data.time)
