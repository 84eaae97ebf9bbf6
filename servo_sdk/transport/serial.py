"""Serial port implementation of ByteStream.

Wraps a pyserial port. Blocking pyserial calls run in a worker thread via
``asyncio.to_thread`` so the event loop keeps servicing the bus while a read
is pending; all buffering and parsing stays on the loop.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import serial

from ..config import CONNECTION_BAUD
from ..errors import NotConnectedError, TransportError
from .base import ByteStream

logger = logging.getLogger(__name__)

READ_TIMEOUT = 0.01  # seconds
READ_CHUNK_SIZE = 4096  # bytes


class SerialStream(ByteStream):
    """Byte stream over a serial port.

    Example:
        >>> stream = SerialStream("/dev/ttyACM0")
        >>> await stream.open()
        >>> await stream.write(build_ping(11))
        >>> chunk = await stream.read()
        >>> await stream.close()
    """

    def __init__(self,
                 port: str,
                 baudrate: int = CONNECTION_BAUD,
                 timeout: float = READ_TIMEOUT,
                 chunk_size: int = READ_CHUNK_SIZE):
        """Initialize serial stream.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0', 'COM3')
            baudrate: Serial baud rate (default 1M)
            timeout: Read timeout in seconds; bounds how long a read blocks
            chunk_size: Maximum bytes returned per read
        """
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._serial: Optional[serial.Serial] = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        return self._serial is not None

    async def open(self) -> None:
        if self._serial is not None:
            logger.warning("Already open")
            return

        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                timeout=self._timeout,
            )
            self._serial.reset_input_buffer()
            self._serial.reset_output_buffer()
        except serial.SerialException as e:
            self._serial = None
            raise TransportError(f"Failed to open {self._port}: {e}") from e

        logger.info(f"Opened {self._port} @ {self._baudrate} baud")

    async def write(self, data: bytes) -> None:
        port = self._serial
        if port is None:
            raise NotConnectedError(f"{self._port} is not open")

        try:
            await asyncio.to_thread(self._write_blocking, port, bytes(data))
        except (serial.SerialException, OSError) as e:
            self._handle_error(e)
            raise TransportError(f"Write to {self._port} failed: {e}") from e

    async def read(self) -> Optional[bytes]:
        port = self._serial
        if port is None:
            return None

        try:
            return await asyncio.to_thread(self._read_blocking, port, self._chunk_size)
        except (serial.SerialException, OSError) as e:
            if self._serial is None:
                # Closed underneath a pending read
                return None
            self._handle_error(e)
            raise TransportError(f"Read from {self._port} failed: {e}") from e

    async def close(self) -> None:
        port = self._serial
        if port is None:
            return

        self._serial = None
        try:
            port.close()
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error closing {self._port}: {e}")
        logger.info(f"Closed {self._port}")

    @staticmethod
    def _write_blocking(port: serial.Serial, data: bytes) -> None:
        port.write(data)
        port.flush()

    @staticmethod
    def _read_blocking(port: serial.Serial, size: int) -> bytes:
        waiting = port.in_waiting
        return port.read(min(max(waiting, 1), size))

    def _handle_error(self, error: Exception) -> None:
        """Drop the port after a fatal error (e.g. device unplugged)."""
        logger.warning(f"Handling serial error: {error}")
        port = self._serial
        self._serial = None
        if port is not None:
            try:
                port.close()
            except (serial.SerialException, OSError):
                logger.debug("Port already gone while closing", exc_info=True)
