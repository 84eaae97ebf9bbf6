"""Servo SDK - asyncio driver for daisy-chained position servos."""

from .config import RobotConfig
from .errors import (
    ChecksumError,
    FrameError,
    KinematicsError,
    NotConnectedError,
    ServoBusError,
    StopRequested,
    TransportError,
)
from .models import (
    ControlAddress,
    DeviceState,
    ErrorFlags,
    Instruction,
    MotionResult,
    MotionState,
    PingResult,
    ReadResult,
    TorqueResult,
    degrees_to_joints,
    degrees_to_raw,
    joints_to_degrees,
    radians_to_raw,
    raw_to_degrees,
    raw_to_radians,
)
from .kinematics import FunctionSolver, KinematicsSolver
from .motion import CancelToken
from .recorder import MotionRecorder
from .robot import Robot
from .transport import ByteStream, SerialStream

__all__ = [
    "RobotConfig",
    "ChecksumError",
    "FrameError",
    "KinematicsError",
    "NotConnectedError",
    "ServoBusError",
    "StopRequested",
    "TransportError",
    "ControlAddress",
    "DeviceState",
    "ErrorFlags",
    "Instruction",
    "MotionResult",
    "MotionState",
    "PingResult",
    "ReadResult",
    "TorqueResult",
    "degrees_to_joints",
    "degrees_to_raw",
    "joints_to_degrees",
    "radians_to_raw",
    "raw_to_degrees",
    "raw_to_radians",
    "FunctionSolver",
    "KinematicsSolver",
    "CancelToken",
    "MotionRecorder",
    "Robot",
    "ByteStream",
    "SerialStream",
]
