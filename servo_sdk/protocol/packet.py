"""Frame builders.

Converts instructions into wire frames. Pure functions with no side effects.

Frame layout::

    FF FF FD 00 | id | len_lo len_hi | instruction | params... | crc_lo crc_hi

where ``len = 1 (instruction) + len(params) + 2 (checksum)`` and the
checksum covers every byte from the header through the last parameter.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..models import BROADCAST_ID, ControlAddress, Instruction, MAX_DEVICE_ID
from .crc import checksum

HEADER = b"\xFF\xFF\xFD\x00"
HEADER_SIZE = len(HEADER)
PREFIX_SIZE = HEADER_SIZE + 3  # header + id + 2 length bytes
MIN_FRAME_SIZE = PREFIX_SIZE + 3  # instruction + checksum
MAX_LENGTH_FIELD = 0xFFFF


def _u16(value: int) -> bytes:
    return bytes((value & 0xFF, (value >> 8) & 0xFF))


def _check_id(device_id: int, allow_broadcast: bool = True) -> None:
    if device_id == BROADCAST_ID and allow_broadcast:
        return
    if not 0 <= device_id <= MAX_DEVICE_ID:
        raise ValueError(f"Invalid device id: {device_id}")


def encode(device_id: int, instruction: int, params: Iterable[int] = b"") -> bytes:
    """Build a complete frame.

    Args:
        device_id: Target id, or BROADCAST_ID
        instruction: Instruction byte
        params: Parameter bytes

    Returns:
        Frame bytes including checksum

    Example:
        >>> encode(1, Instruction.PING).hex(" ")
        'ff ff fd 00 01 03 00 01 19 4e'
    """
    _check_id(device_id)
    params = bytes(params)
    length = 1 + len(params) + 2
    if length > MAX_LENGTH_FIELD:
        raise ValueError(f"Frame too long: {length} bytes")

    frame = bytearray(HEADER)
    frame.append(device_id)
    frame += _u16(length)
    frame.append(int(instruction) & 0xFF)
    frame += params
    frame += _u16(checksum(frame))
    return bytes(frame)


def build_ping(device_id: int) -> bytes:
    return encode(device_id, Instruction.PING)


def build_reboot(device_id: int) -> bytes:
    return encode(device_id, Instruction.REBOOT)


def build_read(device_id: int, address: int, data_length: int) -> bytes:
    """Read ``data_length`` bytes starting at ``address``."""
    _check_id(device_id, allow_broadcast=False)
    return encode(device_id, Instruction.READ, _u16(address) + _u16(data_length))


def build_write(device_id: int, address: int, data: Iterable[int]) -> bytes:
    """Write raw bytes starting at ``address``."""
    return encode(device_id, Instruction.WRITE, _u16(address) + bytes(data))


def build_register_read(device_id: int, register: ControlAddress) -> bytes:
    return build_read(device_id, register.address, register.width)


def build_register_write(device_id: int, register: ControlAddress, value: int) -> bytes:
    return build_write(device_id, register.address, register.encode(value))


def build_sync_write(address: int, data_length: int, items: Mapping[int, bytes]) -> bytes:
    """Write ``data_length`` bytes at ``address`` on many devices in one frame.

    Args:
        address: Register address
        data_length: Bytes written per device
        items: Mapping of device id to exactly ``data_length`` bytes

    Returns:
        Broadcast frame with length ``1 + 2 + 2 + N * (1 + data_length) + 2``
    """
    params = bytearray(_u16(address) + _u16(data_length))
    for device_id, data in items.items():
        _check_id(device_id, allow_broadcast=False)
        data = bytes(data)
        if len(data) != data_length:
            raise ValueError(
                f"Device {device_id}: expected {data_length} bytes, got {len(data)}"
            )
        params.append(device_id)
        params += data
    return encode(BROADCAST_ID, Instruction.SYNC_WRITE, params)


def build_sync_read(address: int, data_length: int, device_ids: Sequence[int]) -> bytes:
    """Request ``data_length`` bytes at ``address`` from many devices in one frame."""
    params = bytearray(_u16(address) + _u16(data_length))
    for device_id in device_ids:
        _check_id(device_id, allow_broadcast=False)
        params.append(device_id)
    return encode(BROADCAST_ID, Instruction.SYNC_READ, params)


def build_register_sync_write(register: ControlAddress, values: Mapping[int, int]) -> bytes:
    return build_sync_write(
        register.address,
        register.width,
        {device_id: register.encode(value) for device_id, value in values.items()},
    )


def build_register_sync_read(register: ControlAddress, device_ids: Sequence[int]) -> bytes:
    return build_sync_read(register.address, register.width, device_ids)


def build_status(device_id: int, error: int = 0, payload: Iterable[int] = b"") -> bytes:
    """Status frame as a device would send it (used by simulators and tests)."""
    return encode(device_id, Instruction.STATUS, bytes((error & 0xFF,)) + bytes(payload))
