"""In-memory servo bus used by the tests.

``FakeServoStream`` implements ``ByteStream`` and answers like a chain of
servos: every written frame is decoded with the real codec and applied to a
per-device control table, and status frames are queued for the reader.
"""
from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

from servo_sdk.errors import NotConnectedError, TransportError
from servo_sdk.models import (
    GOAL_POSITION,
    Instruction,
    PRESENT_POSITION,
    TORQUE_ENABLE,
    ControlAddress,
)
from servo_sdk.protocol import Packet, build_status, iter_packets
from servo_sdk.transport import ByteStream

TABLE_SIZE = 256


class FakeServo:
    """Control table of one simulated device."""

    def __init__(self, device_id: int, position: int = 2048, error: int = 0):
        self.device_id = device_id
        self.table = bytearray(TABLE_SIZE)
        self.error = error
        self.silent = False
        self.set(PRESENT_POSITION, position)
        self.set(GOAL_POSITION, position)

    def get(self, register: ControlAddress) -> int:
        return register.decode(bytes(self.table[register.address:register.address + register.width]))

    def set(self, register: ControlAddress, value: int) -> None:
        self.table[register.address:register.address + register.width] = register.encode(value)

    def read(self, address: int, length: int) -> bytes:
        return bytes(self.table[address:address + length])

    def write(self, address: int, data: bytes) -> None:
        self.table[address:address + len(data)] = data
        # With torque on the horn follows a new goal instantly
        touched_goal = address <= GOAL_POSITION.address < address + len(data)
        if touched_goal and self.torque:
            self.set(PRESENT_POSITION, self.goal)

    @property
    def position(self) -> int:
        return self.get(PRESENT_POSITION)

    @property
    def goal(self) -> int:
        return self.get(GOAL_POSITION)

    @property
    def torque(self) -> bool:
        return bool(self.get(TORQUE_ENABLE))


class FakeServoStream(ByteStream):
    """Simulated bus of servos behind a byte stream.

    Args:
        device_ids: Devices present on the bus
        write_replies: Whether devices answer plain writes with a status frame
        read_timeout: How long ``read`` waits before returning an empty chunk
    """

    def __init__(self,
                 device_ids: Iterable[int] = (),
                 write_replies: bool = False,
                 read_timeout: float = 0.01):
        self.servos: Dict[int, FakeServo] = {i: FakeServo(i) for i in device_ids}
        self.write_replies = write_replies
        self.read_timeout = read_timeout
        self.written: List[bytes] = []
        self.open_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.noise = b""
        self._open = False
        self._outbound = bytearray()
        self._ready: Optional[asyncio.Event] = None

    # --- Test helpers ---

    def servo(self, device_id: int) -> FakeServo:
        return self.servos[device_id]

    def packets(self) -> List[Packet]:
        """Every instruction frame written so far."""
        return [p for frame in self.written for p in iter_packets(frame)]

    def instructions(self) -> List[int]:
        return [p.instruction for p in self.packets()]

    def inject(self, data: bytes) -> None:
        """Queue raw bytes for the reader as if a device had sent them."""
        self._outbound += data
        if self._ready is not None:
            self._ready.set()

    # --- ByteStream ---

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self._ready = asyncio.Event()
        self._open = True

    async def close(self) -> None:
        self._open = False
        if self._ready is not None:
            self._ready.set()

    async def write(self, data: bytes) -> None:
        if not self._open:
            raise NotConnectedError("Fake stream is closed")
        if self.write_error is not None:
            raise self.write_error
        self.written.append(bytes(data))
        for packet in iter_packets(data):
            self._handle(packet)

    async def read(self) -> Optional[bytes]:
        if not self._open:
            return None
        if not self._outbound:
            self._ready.clear()
            try:
                await asyncio.wait_for(self._ready.wait(), self.read_timeout)
            except asyncio.TimeoutError:
                return b""
            if not self._open:
                return None
        chunk = bytes(self._outbound)
        self._outbound.clear()
        return chunk

    # --- Device simulation ---

    def _reply(self, device_id: int, payload: bytes = b"") -> None:
        servo = self.servos.get(device_id)
        if servo is None or servo.silent:
            return
        self.inject(self.noise + build_status(device_id, servo.error, payload))

    def _handle(self, packet: Packet) -> None:
        params = packet.params
        instruction = packet.instruction

        if instruction == Instruction.PING:
            self._reply(packet.device_id)

        elif instruction == Instruction.READ:
            address = params[0] | (params[1] << 8)
            length = params[2] | (params[3] << 8)
            servo = self.servos.get(packet.device_id)
            if servo is not None:
                self._reply(packet.device_id, servo.read(address, length))

        elif instruction == Instruction.WRITE:
            address = params[0] | (params[1] << 8)
            servo = self.servos.get(packet.device_id)
            if servo is not None and not servo.silent:
                servo.write(address, params[2:])
                if self.write_replies:
                    self._reply(packet.device_id)

        elif instruction == Instruction.SYNC_WRITE:
            address = params[0] | (params[1] << 8)
            length = params[2] | (params[3] << 8)
            body = params[4:]
            for offset in range(0, len(body), length + 1):
                device_id = body[offset]
                servo = self.servos.get(device_id)
                if servo is not None and not servo.silent:
                    servo.write(address, body[offset + 1:offset + 1 + length])

        elif instruction == Instruction.SYNC_READ:
            address = params[0] | (params[1] << 8)
            length = params[2] | (params[3] << 8)
            for device_id in params[4:]:
                servo = self.servos.get(device_id)
                if servo is not None:
                    self._reply(device_id, servo.read(address, length))

        elif instruction == Instruction.REBOOT:
            servo = self.servos.get(packet.device_id)
            if servo is not None and not servo.silent:
                servo.error = 0
                servo.set(TORQUE_ENABLE, 0)


class BrokenStream(ByteStream):
    """Stream whose reads fail once opened."""

    def __init__(self, error: Optional[Exception] = None):
        self._open = False
        self.error = error or TransportError("device unplugged")

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def write(self, data: bytes) -> None:
        pass

    async def read(self) -> Optional[bytes]:
        await asyncio.sleep(0)
        raise self.error
