"""Register access over a bus session.

The lowest layer that speaks in registers rather than frames. Reads here
report timeouts explicitly through ``ReadResult``; the cache fallback lives
one layer up. Every confirmed exchange updates the device registry.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Mapping, Optional, Sequence

from ..config import RESPONSE_TIMEOUT
from ..models import (
    ControlAddress,
    ErrorFlags,
    GOAL_POSITION,
    PRESENT_POSITION,
    ReadResult,
    TORQUE_ENABLE,
)
from ..protocol import (
    StatusPacket,
    build_ping,
    build_reboot,
    build_register_read,
    build_register_sync_read,
    build_register_sync_write,
    build_register_write,
)
from ..registry import DeviceRegistry
from .session import BusSession, Channel

logger = logging.getLogger(__name__)


class RegisterIO:
    """Typed register reads and writes on top of ``BusSession``.

    Every method accepts an optional ``channel`` so that several calls can
    run inside one ``exclusive()`` block; without it each call takes the bus
    for itself.
    """

    def __init__(self,
                 session: BusSession,
                 registry: DeviceRegistry,
                 timeout: float = RESPONSE_TIMEOUT):
        self._session = session
        self._registry = registry
        self.timeout = timeout

    @property
    def session(self) -> BusSession:
        return self._session

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    def exclusive(self):
        return self._session.exclusive()

    async def read(self,
                   device_id: int,
                   register: ControlAddress,
                   timeout: Optional[float] = None,
                   channel: Optional[Channel] = None) -> ReadResult:
        """Read one register from one device."""
        packet = build_register_read(device_id, register)
        async with self._channel(channel) as ch:
            answers = await ch.transact(packet, [device_id], self._timeout(timeout))
        return self._to_result(device_id, register, answers.get(device_id))

    async def sync_read(self,
                        register: ControlAddress,
                        device_ids: Sequence[int],
                        timeout: Optional[float] = None,
                        channel: Optional[Channel] = None) -> Dict[int, ReadResult]:
        """Read one register from many devices with a single frame.

        Returns:
            A ReadResult for every requested id; silent devices time out
            individually instead of failing the whole read.
        """
        ids = tuple(device_ids)
        if not ids:
            return {}

        packet = build_register_sync_read(register, ids)
        async with self._channel(channel) as ch:
            answers = await ch.transact(packet, ids, self._timeout(timeout))

        missing = [device_id for device_id in ids if device_id not in answers]
        if missing:
            logger.warning(f"No answer from {missing} reading register {register.address}")

        return {
            device_id: self._to_result(device_id, register, answers.get(device_id))
            for device_id in ids
        }

    async def write(self,
                    device_id: int,
                    register: ControlAddress,
                    value: int,
                    channel: Optional[Channel] = None) -> None:
        """Fire-and-forget register write."""
        packet = build_register_write(device_id, register, value)
        async with self._channel(channel) as ch:
            await ch.send(packet)
        self._note_write(device_id, register, value)

    async def write_confirmed(self,
                              device_id: int,
                              register: ControlAddress,
                              value: int,
                              timeout: Optional[float] = None,
                              channel: Optional[Channel] = None) -> Optional[ErrorFlags]:
        """Register write that waits for the device's status frame.

        Returns:
            The device's error flags, or None if it did not answer
        """
        packet = build_register_write(device_id, register, value)
        async with self._channel(channel) as ch:
            answers = await ch.transact(packet, [device_id], self._timeout(timeout))

        status = answers.get(device_id)
        if status is None:
            return None

        self._registry.set_error(device_id, status.flags)
        if not status.flags:
            self._note_write(device_id, register, value)
            if register == TORQUE_ENABLE:
                self._registry.set_torque(device_id, bool(value))
        return status.flags

    async def sync_write(self,
                         register: ControlAddress,
                         values: Mapping[int, int],
                         channel: Optional[Channel] = None) -> None:
        """Write one register on many devices with a single broadcast frame."""
        if not values:
            return

        packet = build_register_sync_write(register, values)
        async with self._channel(channel) as ch:
            await ch.send(packet)
        for device_id, value in values.items():
            self._note_write(device_id, register, value)

    async def ping(self,
                   device_id: int,
                   timeout: Optional[float] = None,
                   channel: Optional[Channel] = None) -> Optional[StatusPacket]:
        """Ping one device; None if it did not answer."""
        async with self._channel(channel) as ch:
            answers = await ch.transact(build_ping(device_id), [device_id], self._timeout(timeout))

        status = answers.get(device_id)
        if status is not None:
            self._registry.set_error(device_id, status.flags)
        return status

    async def reboot(self, device_id: int, channel: Optional[Channel] = None) -> None:
        """Send a reboot instruction without waiting for the device."""
        async with self._channel(channel) as ch:
            await ch.send(build_reboot(device_id))
        # Torque is off after a reboot
        self._registry.set_torque(device_id, False)

    # Internal methods

    @asynccontextmanager
    async def _channel(self, channel: Optional[Channel]) -> AsyncIterator[Channel]:
        if channel is not None:
            yield channel
            return
        async with self._session.exclusive() as own:
            yield own

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.timeout if timeout is None else timeout

    def _to_result(self,
                   device_id: int,
                   register: ControlAddress,
                   status: Optional[StatusPacket]) -> ReadResult:
        if status is None:
            return ReadResult(device_id=device_id)

        self._registry.set_error(device_id, status.flags)
        if len(status.payload) < register.width:
            logger.debug(
                f"Device {device_id} returned {len(status.payload)} bytes "
                f"for a {register.width} byte register"
            )
            return ReadResult(device_id=device_id, error=status.flags)

        value = register.decode(status.payload)
        if register == PRESENT_POSITION:
            self._registry.set_position(device_id, value)
        elif register == TORQUE_ENABLE:
            self._registry.set_torque(device_id, bool(value))
        return ReadResult(device_id=device_id, value=value, error=status.flags)

    def _note_write(self, device_id: int, register: ControlAddress, value: int) -> None:
        # Goals are cached as commanded; torque only once a device confirms it
        if register == GOAL_POSITION:
            self._registry.set_position(device_id, value)
