"""Response correlation.

Matches status frames in the receive buffer against the ids a request is
waiting for. Results may be partial: the caller gets whatever arrived
before the deadline and treats missing ids as per-device timeouts.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable

from ..config import POLL_INTERVAL
from ..protocol import StatusPacket, try_decode_status
from .buffer import RingBuffer

logger = logging.getLogger(__name__)


class ResponseCorrelator:
    """Waits for status frames from a set of devices."""

    def __init__(self, buffer: RingBuffer, poll_interval: float = POLL_INTERVAL):
        self._buffer = buffer
        self._poll_interval = poll_interval

    async def await_response(self,
                             expected_ids: Iterable[int],
                             timeout: float) -> Dict[int, StatusPacket]:
        """Collect status frames until every expected id answered or the deadline passes.

        Frames from ids that are not awaited are consumed and dropped. When a
        device answers twice, the first answer wins.

        Args:
            expected_ids: Device ids whose status frames are awaited
            timeout: Deadline in seconds

        Returns:
            Mapping of device id to its status frame; ids missing from the
            mapping did not answer in time.
        """
        pending = set(expected_ids)
        results: Dict[int, StatusPacket] = {}
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            self.drain(pending, results)
            if not pending:
                return results

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug(f"Timed out waiting for {sorted(pending)}")
                return results

            await asyncio.sleep(min(self._poll_interval, remaining))

    def drain(self, pending: set, results: Dict[int, StatusPacket]) -> None:
        """Consume every complete status frame currently buffered.

        Each decoded frame is removed together with any garbage in front of
        it, and scanning continues from the new start of the buffer.
        """
        while True:
            status = try_decode_status(self._buffer.peek())
            if status is None:
                return

            self._buffer.consume(status.consumed)
            if status.device_id in pending:
                pending.discard(status.device_id)
                results[status.device_id] = status
            else:
                logger.debug(f"Dropping unexpected status from device {status.device_id}")
