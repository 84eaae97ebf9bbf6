"""Session configuration.

Every tunable has a module level default; ``RobotConfig`` bundles them for
one session and validates them on construction.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .models import MAX_DEVICE_ID

DEFAULT_MOTOR_IDS: Tuple[int, ...] = (11, 12, 13, 14, 15, 16, 17, 18)
KINEMATIC_JOINT_COUNT = 6  # Ids past this are the ear axes

CONNECTION_BAUD = 1_000_000  # 1M baud
RESPONSE_TIMEOUT = 0.2  # seconds
POLL_INTERVAL = 0.005  # seconds between buffer scans
READ_BUFFER_SIZE = 2048  # bytes

MAX_STEPS_PER_SECOND = 4096  # One revolution per second
STEP_INTERVAL_MS = 20
FAST_PATH_THRESHOLD_MS = 50

REBOOT_SETTLE = 0.5  # seconds
STOP_POLL_INTERVAL = 0.05  # seconds


@dataclass(frozen=True)
class RobotConfig:
    """Configuration of one robot session.

    Attributes:
        motor_ids: Devices addressed by the whole-robot operations
        kinematic_joint_count: Leading motor ids fed to the kinematics solver
        port: Serial port path, or None when a stream is supplied directly
        baudrate: Serial baud rate
        response_timeout: Deadline for a correlated response, in seconds
        poll_interval: Buffer scan period while awaiting a response, in seconds
        buffer_size: Receive ring buffer capacity in bytes
        max_steps_per_second: Speed limit of limited moves, in raw units per second
        step_interval_ms: Interpolation step period
        fast_path_threshold_ms: Moves shorter than this are written directly
        reboot_settle: Wait after a reboot before re-pinging, in seconds
        stop_poll_interval: Tick of the cooperative wait helpers, in seconds
    """
    motor_ids: Tuple[int, ...] = DEFAULT_MOTOR_IDS
    kinematic_joint_count: int = KINEMATIC_JOINT_COUNT
    port: Optional[str] = None
    baudrate: int = CONNECTION_BAUD
    response_timeout: float = RESPONSE_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    buffer_size: int = READ_BUFFER_SIZE
    max_steps_per_second: float = MAX_STEPS_PER_SECOND
    step_interval_ms: float = STEP_INTERVAL_MS
    fast_path_threshold_ms: float = FAST_PATH_THRESHOLD_MS
    reboot_settle: float = REBOOT_SETTLE
    stop_poll_interval: float = STOP_POLL_INTERVAL

    def __post_init__(self) -> None:
        ids = tuple(self.motor_ids)
        object.__setattr__(self, "motor_ids", ids)

        for device_id in ids:
            if not isinstance(device_id, int) or not 0 <= device_id <= MAX_DEVICE_ID:
                raise ValueError(f"Motor id out of range 0..{MAX_DEVICE_ID}: {device_id!r}")
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate motor ids: {ids}")
        if not 0 <= self.kinematic_joint_count <= len(ids):
            raise ValueError(
                f"kinematic_joint_count {self.kinematic_joint_count} exceeds "
                f"{len(ids)} motor ids"
            )

        for name in (
            "response_timeout",
            "poll_interval",
            "max_steps_per_second",
            "step_interval_ms",
            "stop_poll_interval",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.fast_path_threshold_ms < 0 or self.reboot_settle < 0:
            raise ValueError("Thresholds and settle times cannot be negative")
        if self.buffer_size < 16:
            raise ValueError("buffer_size too small to hold a status frame")

    @property
    def kinematic_ids(self) -> Tuple[int, ...]:
        return self.motor_ids[:self.kinematic_joint_count]
