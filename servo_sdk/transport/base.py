"""Abstract base class for the byte stream under the servo bus.

A ByteStream is an opaque duplex channel: it moves bytes and nothing else.
Framing, correlation and retries belong to the bus layer above it, so a
serial port, a TCP bridge or an in-memory simulator can be swapped freely.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class ByteStream(ABC):
    """Abstract duplex byte stream.

    Implementations must be usable from a single asyncio event loop:
    every method is a coroutine and must suspend instead of blocking.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the stream.

        Raises:
            TransportError: If the underlying device cannot be opened
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write all of data.

        Raises:
            TransportError: If the stream is closed or the write failed
        """
        pass

    @abstractmethod
    async def read(self) -> Optional[bytes]:
        """Read the next chunk of received bytes.

        Returns:
            A chunk (possibly empty when a read timed out), or None once the
            stream has been closed and no more data will ever arrive.

        Raises:
            TransportError: If the device failed while reading
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the stream.

        Should be safe to call multiple times.
        """
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the stream is currently open."""
        pass

    async def __aenter__(self) -> ByteStream:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
