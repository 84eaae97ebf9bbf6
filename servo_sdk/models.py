"""Immutable data models shared by the protocol, bus and motion layers.

All records are frozen dataclasses so that snapshots handed to callers can
never be mutated behind the registry's back.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Dict, List, Optional, Sequence, Tuple

# Addressing
BROADCAST_ID = 0xFE
MAX_DEVICE_ID = 253

# Position domain (raw units per revolution)
POSITION_RESOLUTION = 4096
CENTER_POSITION = 2048


class Instruction(IntEnum):
    """Instruction byte of a frame."""
    PING = 0x01
    READ = 0x02
    WRITE = 0x03
    REBOOT = 0x08
    STATUS = 0x55
    SYNC_READ = 0x82
    SYNC_WRITE = 0x83


@dataclass(frozen=True)
class ControlAddress:
    """A device register: little-endian value of ``width`` bytes at ``address``.

    Attributes:
        address: Register address in the device control table
        width: Register width in bytes (1, 2 or 4)
        signed: Whether the register holds a two's complement value
    """
    address: int
    width: int
    signed: bool = False

    def encode(self, value: int) -> bytes:
        """Pack a value into the register's wire representation.

        Negative values are written as two's complement even for registers
        declared unsigned, matching what the device accepts for positions.
        """
        value = int(value)
        if value < 0:
            value += 1 << (8 * self.width)
        return (value & ((1 << (8 * self.width)) - 1)).to_bytes(self.width, "little")

    def decode(self, data: bytes) -> int:
        """Unpack the register value from the first ``width`` bytes of data."""
        if len(data) < self.width:
            raise ValueError(
                f"Register {self.address} needs {self.width} bytes, got {len(data)}"
            )
        return int.from_bytes(bytes(data[:self.width]), "little", signed=self.signed)


# Well-known control table (X-series, protocol 2.0)
TORQUE_ENABLE = ControlAddress(64, 1)
PROFILE_VELOCITY = ControlAddress(112, 4)
GOAL_POSITION = ControlAddress(116, 4, signed=True)
PRESENT_LOAD = ControlAddress(126, 2, signed=True)
PRESENT_POSITION = ControlAddress(132, 4, signed=True)
PRESENT_TEMPERATURE = ControlAddress(146, 1)


class ErrorFlags(IntFlag):
    """Error byte reported by a device in its status frame."""
    NONE = 0x00
    RESULT_FAIL = 0x01
    INSTRUCTION_ERROR = 0x02
    CHECKSUM_ERROR = 0x04
    DATA_RANGE_ERROR = 0x08
    DATA_LENGTH_ERROR = 0x10
    DATA_LIMIT_ERROR = 0x20
    ACCESS_ERROR = 0x40
    HARDWARE_ALERT = 0x80  # Voltage, overheating, overload

    @property
    def has_hardware_alert(self) -> bool:
        """Latched fault that only a reboot clears."""
        return bool(self & ErrorFlags.HARDWARE_ALERT)

    def labels(self) -> List[str]:
        """Human readable names of every set bit, lowest bit first."""
        return [
            ERROR_DESCRIPTIONS[flag]
            for flag in ERROR_DESCRIPTIONS
            if self & flag
        ]

    def describe(self) -> Optional[str]:
        """Comma separated description, or None when no bit is set."""
        labels = self.labels()
        return ", ".join(labels) if labels else None


ERROR_DESCRIPTIONS: Dict[ErrorFlags, str] = {
    ErrorFlags.RESULT_FAIL: "Result Fail",
    ErrorFlags.INSTRUCTION_ERROR: "Instruction Error",
    ErrorFlags.CHECKSUM_ERROR: "CRC Error",
    ErrorFlags.DATA_RANGE_ERROR: "Data Range Error",
    ErrorFlags.DATA_LENGTH_ERROR: "Data Length Error",
    ErrorFlags.DATA_LIMIT_ERROR: "Data Limit Error",
    ErrorFlags.ACCESS_ERROR: "Access Error",
    ErrorFlags.HARDWARE_ALERT: "Hardware Alert",
}

NO_RESPONSE = "No response"


@dataclass(frozen=True)
class DeviceState:
    """Last known state of a single device.

    Attributes:
        device_id: Bus id of the device
        position: Last known raw position (commanded or measured)
        observed: Whether position came from an exchange rather than the default
        torque_enabled: Whether torque was last confirmed enabled
        error: Last error byte reported by the device
        updated_at: Monotonic timestamp of the last update, 0.0 if never
    """
    device_id: int
    position: int = CENTER_POSITION
    observed: bool = False
    torque_enabled: bool = False
    error: ErrorFlags = ErrorFlags.NONE
    updated_at: float = 0.0


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a single register read.

    Distinguishes a live value from a timeout; callers that can live with
    stale data should use the cache-backed reads on ``Robot`` instead.
    """
    device_id: int
    value: Optional[int] = None
    error: ErrorFlags = ErrorFlags.NONE

    @property
    def timed_out(self) -> bool:
        return self.value is None

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.error


@dataclass(frozen=True)
class PingResult:
    """Outcome of a ping.

    Attributes:
        device_id: Pinged device
        ok: Device answered with a clean error byte
        error: Human readable error, ``"No response"`` on timeout
        has_hardware_alert: Latched hardware fault, a reboot is required
        flags: Raw decoded error byte
    """
    device_id: int
    ok: bool
    error: Optional[str] = None
    has_hardware_alert: bool = False
    flags: ErrorFlags = ErrorFlags.NONE

    @property
    def responded(self) -> bool:
        return self.error != NO_RESPONSE

    @classmethod
    def no_response(cls, device_id: int) -> PingResult:
        return cls(device_id=device_id, ok=False, error=NO_RESPONSE)

    @classmethod
    def from_error_byte(cls, device_id: int, error: int) -> PingResult:
        flags = ErrorFlags(error)
        if not flags:
            return cls(device_id=device_id, ok=True)
        return cls(
            device_id=device_id,
            ok=False,
            error=flags.describe(),
            has_hardware_alert=flags.has_hardware_alert,
            flags=flags,
        )


@dataclass(frozen=True)
class TorqueResult:
    """Per-device outcome of a torque command."""
    succeeded: Tuple[int, ...] = ()
    failed: Tuple[int, ...] = ()
    errors: Dict[int, ErrorFlags] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class MotionState(Enum):
    """Lifecycle of a trajectory."""
    PLANNING = "planning"
    STEPPING = "stepping"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MotionResult:
    """Outcome of a motion call.

    Attributes:
        state: COMPLETED or CANCELLED
        device_ids: Axes that were driven
        positions: Last commanded position per axis
        duration_ms: Planned duration (0 for the direct fast path)
        steps: Planned number of steps (1 for the direct fast path)
        steps_executed: Steps actually written before completion or cancellation
    """
    state: MotionState
    device_ids: Tuple[int, ...]
    positions: Tuple[int, ...]
    duration_ms: float = 0.0
    steps: int = 1
    steps_executed: int = 0

    @property
    def completed(self) -> bool:
        return self.state == MotionState.COMPLETED


# Unit conversions

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return int(math.floor(value + 0.5))


def raw_to_degrees(raw: float) -> float:
    """Raw position to degrees, 0 at the center position."""
    return (raw - CENTER_POSITION) * 360.0 / POSITION_RESOLUTION


def degrees_to_raw(degrees: float) -> int:
    """Degrees to the nearest raw position."""
    return round_half_up(CENTER_POSITION + degrees * POSITION_RESOLUTION / 360.0)


def raw_to_radians(raw: float) -> float:
    return (raw - CENTER_POSITION) / POSITION_RESOLUTION * 2.0 * math.pi


def radians_to_raw(radians: float) -> int:
    return round_half_up(radians * POSITION_RESOLUTION / (2.0 * math.pi) + CENTER_POSITION)


def joints_to_degrees(positions: Sequence[float]) -> List[float]:
    return [raw_to_degrees(pos) for pos in positions]


def degrees_to_joints(degrees: Sequence[float]) -> List[int]:
    return [degrees_to_raw(deg) for deg in degrees]


def validate_device_id(device_id: int) -> int:
    """Return device_id if it addresses a single device, else raise ValueError."""
    if not isinstance(device_id, int) or not 0 <= device_id <= MAX_DEVICE_ID:
        raise ValueError(f"Device id must be in 0..{MAX_DEVICE_ID}, got {device_id!r}")
    return device_id
