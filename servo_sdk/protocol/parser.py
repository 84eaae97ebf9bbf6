"""Frame parser.

Two entry points:

- ``decode_packet`` validates one complete frame and raises on any defect.
- ``try_decode_status`` scans a receive buffer for the next valid status
  frame, silently skipping garbage and corrupt frames so the stream can
  resynchronise on the next header.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from ..errors import ChecksumError, FrameError
from ..models import ErrorFlags, Instruction
from .crc import checksum
from .packet import HEADER, HEADER_SIZE, MIN_FRAME_SIZE, PREFIX_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Packet:
    """A decoded frame.

    Attributes:
        device_id: Id byte (may be the broadcast id)
        instruction: Instruction byte
        params: Parameter bytes (for status frames: error byte + payload)
    """
    device_id: int
    instruction: int
    params: bytes

    @property
    def is_status(self) -> bool:
        return self.instruction == Instruction.STATUS


@dataclass(frozen=True)
class StatusPacket:
    """A status frame found in a receive buffer.

    Attributes:
        device_id: Responding device
        error: Error byte reported by the device
        payload: Register data following the error byte
        consumed: Bytes of the buffer up to and including this frame
    """
    device_id: int
    error: int
    payload: bytes
    consumed: int

    @property
    def flags(self) -> ErrorFlags:
        return ErrorFlags(self.error)


def find_header(data: bytes, start: int = 0) -> int:
    """Index of the next frame header at or after start, or -1."""
    return data.find(HEADER, start)


def frame_size(data: bytes, offset: int = 0) -> Optional[int]:
    """Total size of the frame whose header starts at offset.

    Returns None while the length field has not been received yet.
    """
    if len(data) - offset < PREFIX_SIZE:
        return None
    length = data[offset + 5] | (data[offset + 6] << 8)
    return PREFIX_SIZE + length


def _check_frame(frame: bytes) -> Tuple[bool, int, int]:
    """Returns (valid, expected_crc, actual_crc) for one complete frame."""
    expected = frame[-2] | (frame[-1] << 8)
    actual = checksum(frame[:-2])
    return expected == actual, expected, actual


def decode_packet(frame: bytes) -> Packet:
    """Decode exactly one complete frame.

    Raises:
        FrameError: Wrong header, truncated frame, or trailing bytes
        ChecksumError: Checksum mismatch
    """
    frame = bytes(frame)
    if not frame.startswith(HEADER):
        raise FrameError("Missing frame header")
    size = frame_size(frame)
    if size is None or len(frame) < size:
        raise FrameError(f"Truncated frame: {len(frame)} bytes")
    if size < MIN_FRAME_SIZE:
        raise FrameError(f"Length field too small: {size - PREFIX_SIZE}")
    if len(frame) != size:
        raise FrameError(f"Expected {size} bytes, got {len(frame)}")

    valid, expected, actual = _check_frame(frame)
    if not valid:
        raise ChecksumError(
            f"Checksum mismatch: frame says {expected:#06x}, computed {actual:#06x}",
            expected,
            actual,
        )
    return Packet(
        device_id=frame[HEADER_SIZE],
        instruction=frame[PREFIX_SIZE],
        params=frame[PREFIX_SIZE + 1:-2],
    )


def iter_packets(data: bytes) -> Iterator[Packet]:
    """Yield every valid frame in data, skipping anything malformed."""
    data = bytes(data)
    index = find_header(data)
    while index != -1:
        size = frame_size(data, index)
        if size is None or index + size > len(data):
            return
        if size >= MIN_FRAME_SIZE:
            try:
                yield decode_packet(data[index:index + size])
                index = find_header(data, index + size)
                continue
            except FrameError:
                pass
        index = find_header(data, index + 1)


def try_decode_status(data: bytes) -> Optional[StatusPacket]:
    """Find the first valid status frame in a receive buffer.

    Scanning starts at offset 0. Frames with a bad checksum or an
    impossible length are skipped by resuming the scan one byte past their
    header. Valid frames that are not status frames (for example an echoed
    instruction on a half-duplex adapter) are skipped whole. A frame that is
    still incomplete does not block a complete status frame behind it, since
    bytes arrive in order and such a frame can only be a corrupt header.

    Args:
        data: Receive buffer contents (bytes or bytearray)

    Returns:
        StatusPacket whose ``consumed`` field counts every byte up to the end
        of the frame, or None if no complete status frame is present yet.
    """
    index = find_header(data)
    while index != -1:
        size = frame_size(data, index)
        if size is None or index + size > len(data):
            # Incomplete here; keep looking past this header
            index = find_header(data, index + 1)
            continue

        if size < MIN_FRAME_SIZE:
            logger.debug(f"Skipping frame with bad length at offset {index}")
            index = find_header(data, index + 1)
            continue

        frame = bytes(data[index:index + size])
        valid, expected, actual = _check_frame(frame)
        if not valid:
            logger.debug(
                f"Checksum mismatch at offset {index} "
                f"({expected:#06x} != {actual:#06x}), resynchronising"
            )
            index = find_header(data, index + 1)
            continue

        if frame[PREFIX_SIZE] != Instruction.STATUS or size < MIN_FRAME_SIZE + 1:
            index = find_header(data, index + size)
            continue

        return StatusPacket(
            device_id=frame[HEADER_SIZE],
            error=frame[PREFIX_SIZE + 1],
            payload=frame[PREFIX_SIZE + 2:-2],
            consumed=index + size,
        )
    return None
