"""Kinematics solver seam.

The solver itself lives outside this package; the robot only needs a pure
forward/inverse function pair over six joint angles in degrees and a six
element pose ``[x, y, z, roll, pitch, yaw]``.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Callable, List, Sequence

from .errors import KinematicsError

POSE_SIZE = 6


class KinematicsSolver(ABC):
    """Forward and inverse kinematics over joint degrees."""

    @abstractmethod
    def forward(self, joint_degrees: Sequence[float]) -> List[float]:
        """Joint angles in degrees to pose."""
        pass

    @abstractmethod
    def inverse(self, pose: Sequence[float]) -> List[float]:
        """Pose to joint angles in degrees; NaN entries mark unreachable poses."""
        pass


class FunctionSolver(KinematicsSolver):
    """Adapts a plain ``(forward, inverse)`` function pair."""

    def __init__(self,
                 forward: Callable[[Sequence[float]], Sequence[float]],
                 inverse: Callable[[Sequence[float]], Sequence[float]]):
        self._forward = forward
        self._inverse = inverse

    def forward(self, joint_degrees: Sequence[float]) -> List[float]:
        return list(self._forward(joint_degrees))

    def inverse(self, pose: Sequence[float]) -> List[float]:
        return list(self._inverse(pose))


def is_reachable(joint_degrees: Sequence[float]) -> bool:
    """False if the solver marked any joint as NaN."""
    return not any(math.isnan(value) for value in joint_degrees)


def check_vector(values: Sequence[float], name: str, size: int = POSE_SIZE) -> List[float]:
    """Validate the length of a joint or pose vector."""
    values = [float(v) for v in values]
    if len(values) != size:
        raise KinematicsError(f"{name} needs {size} values, got {len(values)}")
    return values
