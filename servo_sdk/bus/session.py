"""Bus session.

Owns the byte stream, the receive buffer and the background reader task,
and serializes access to the half-duplex channel: at most one
write-then-optionally-await-response exchange is in flight at any time.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional

from ..config import POLL_INTERVAL, READ_BUFFER_SIZE, RESPONSE_TIMEOUT
from ..errors import NotConnectedError, TransportError
from ..protocol import StatusPacket
from ..transport import ByteStream
from .buffer import RingBuffer
from .correlator import ResponseCorrelator

logger = logging.getLogger(__name__)

WRITE_SETTLE = 0.005  # seconds of bus silence after a write without response


class Channel:
    """Exclusive handle on the bus, valid inside ``BusSession.exclusive()``.

    Lets a caller chain several exchanges (for example the torque-enable
    sequence) without any other command slipping in between.
    """

    def __init__(self, session: BusSession):
        self._session = session

    async def send(self, packet: bytes) -> None:
        """Write a frame that expects no response."""
        await self._session._write(packet)
        await asyncio.sleep(self._session.write_settle)

    async def transact(self,
                       packet: bytes,
                       expected_ids: Iterable[int],
                       timeout: float = RESPONSE_TIMEOUT) -> Dict[int, StatusPacket]:
        """Write a frame and collect the status frames it provokes.

        The receive buffer is cleared first so an answer from an earlier
        exchange can never be attributed to this one.
        """
        expected = tuple(expected_ids)
        self._session.buffer.clear()
        await self._session._write(packet)
        answers = await self._session.correlator.await_response(expected, timeout)
        self._session._check_failure()
        return answers


class BusSession:
    """Explicit session object for one bus.

    Responsibilities:
    - Open/close the byte stream
    - Drain incoming bytes into a bounded buffer from a background task
    - Serialize writes and correlated reads

    Example:
        >>> session = BusSession(SerialStream("/dev/ttyACM0"))
        >>> await session.open()
        >>> answers = await session.transact(build_ping(11), [11])
        >>> await session.close()
    """

    def __init__(self,
                 stream: ByteStream,
                 buffer_size: int = READ_BUFFER_SIZE,
                 poll_interval: float = POLL_INTERVAL,
                 write_settle: float = WRITE_SETTLE):
        """Initialize session.

        Args:
            stream: Byte stream to own
            buffer_size: Receive buffer capacity in bytes
            poll_interval: Buffer scan period while awaiting responses
            write_settle: Pause after writes that expect no response
        """
        self._stream = stream
        self._buffer = RingBuffer(capacity=buffer_size)
        self._correlator = ResponseCorrelator(self._buffer, poll_interval=poll_interval)
        self.write_settle = write_settle

        self._lock = asyncio.Lock()
        self._reader_task: Optional[asyncio.Task] = None
        self._active = False
        self._failure: Optional[Exception] = None

    @property
    def buffer(self) -> RingBuffer:
        return self._buffer

    @property
    def correlator(self) -> ResponseCorrelator:
        return self._correlator

    @property
    def stream(self) -> ByteStream:
        return self._stream

    @property
    def is_open(self) -> bool:
        return self._active and self._stream.is_open

    async def open(self) -> None:
        """Open the stream and start draining it.

        Raises:
            TransportError: If the stream cannot be opened
        """
        if self._active:
            return

        await self._stream.open()
        self._buffer.clear()
        self._failure = None
        self._active = True
        self._reader_task = asyncio.create_task(self._reader_loop(), name="BusReader")
        logger.info("Bus session opened")

    async def close(self) -> None:
        """Stop the reader task and close the stream. Safe to call repeatedly."""
        was_active = self._active
        self._active = False

        task = self._reader_task
        self._reader_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._stream.close()
        self._buffer.clear()
        if was_active:
            logger.info("Bus session closed")

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[Channel]:
        """Hold the bus for a sequence of exchanges."""
        async with self._lock:
            self._check_open()
            yield Channel(self)

    async def send(self, packet: bytes) -> None:
        """Write a frame that expects no response (fire-and-forget)."""
        async with self.exclusive() as channel:
            await channel.send(packet)

    async def transact(self,
                       packet: bytes,
                       expected_ids: Iterable[int],
                       timeout: float = RESPONSE_TIMEOUT) -> Dict[int, StatusPacket]:
        """Write a frame and await status frames from expected_ids.

        Returns:
            Partial mapping of device id to status frame
        """
        async with self.exclusive() as channel:
            return await channel.transact(packet, expected_ids, timeout)

    # Internal methods

    def _check_open(self) -> None:
        self._check_failure()
        if not self._active:
            raise NotConnectedError("Bus session is not open")

    def _check_failure(self) -> None:
        if self._failure is not None:
            raise TransportError(f"Bus stream failed: {self._failure}") from self._failure

    async def _write(self, packet: bytes) -> None:
        self._check_open()
        try:
            await self._stream.write(packet)
        except TransportError as e:
            self._fail(e)
            raise

    async def _reader_loop(self) -> None:
        """Append every received chunk to the buffer until the stream ends."""
        logger.debug("Reader task started")

        while self._active:
            try:
                chunk = await self._stream.read()
            except TransportError as e:
                if self._active:
                    logger.error(f"Stream read error: {e}")
                    self._fail(e)
                break
            except Exception as e:
                if self._active:
                    logger.error(f"Unexpected error in reader task: {e}", exc_info=True)
                    self._fail(TransportError(f"Reader task failed: {e}"))
                break

            if chunk is None:
                if self._active:
                    self._fail(TransportError("Stream closed"))
                break

            if chunk:
                self._buffer.write(chunk)
            else:
                await asyncio.sleep(0)

        logger.debug("Reader task exiting")

    def _fail(self, error: Exception) -> None:
        if self._failure is None:
            logger.error(f"Bus session failed: {error}")
            self._failure = error
