"""Receive buffer for the bus session.

Bounded byte buffer with overwrite-on-overflow behavior: when full, the
oldest bytes are dropped so only the most recent window survives.

The buffer is owned by one event loop and is not thread-safe.
"""
import logging

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 2048


class RingBuffer:
    """Byte buffer that keeps the newest ``capacity`` bytes."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """Initialize buffer.

        Args:
            capacity: Maximum buffer size in bytes. If exceeded, oldest data is dropped.
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._buffer = bytearray()
        self._overflow_count = 0

    def write(self, data: bytes) -> None:
        """Append data, dropping the oldest bytes on overflow."""
        if not data:
            return

        dropped = len(self._buffer) + len(data) - self._capacity
        if dropped > 0:
            self._note_overflow(dropped)

        if len(data) >= self._capacity:
            self._buffer = bytearray(data[-self._capacity:])
            return

        if dropped > 0:
            del self._buffer[:dropped]
        self._buffer.extend(data)

    def peek(self) -> bytes:
        """Copy of the buffered bytes, without consuming them."""
        return bytes(self._buffer)

    def consume(self, size: int) -> None:
        """Drop the first ``size`` bytes."""
        if size > 0:
            del self._buffer[:size]

    def clear(self) -> None:
        self._buffer.clear()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def overflow_count(self) -> int:
        """Number of writes that had to discard old data."""
        return self._overflow_count

    def __len__(self) -> int:
        return len(self._buffer)

    def _note_overflow(self, dropped: int) -> None:
        self._overflow_count += 1
        if self._overflow_count % 100 == 1:  # Log periodically
            logger.warning(f"Receive buffer overflow: dropped {dropped} bytes of old data")
