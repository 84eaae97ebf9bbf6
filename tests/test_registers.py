"""Unit tests for RegisterIO."""
import unittest

from fakes import FakeServoStream

from servo_sdk.bus import BusSession, RegisterIO
from servo_sdk.models import (
    ErrorFlags,
    GOAL_POSITION,
    Instruction,
    PRESENT_LOAD,
    PRESENT_POSITION,
    TORQUE_ENABLE,
)
from servo_sdk.registry import DeviceRegistry


class TestRegisterIO(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.stream = FakeServoStream([11, 12, 13])
        self.session = BusSession(self.stream, poll_interval=0.001, write_settle=0)
        self.registry = DeviceRegistry([11, 12, 13])
        self.io = RegisterIO(self.session, self.registry, timeout=0.05)
        await self.session.open()

    async def asyncTearDown(self):
        await self.session.close()

    async def test_read_updates_registry(self):
        self.stream.servo(11).set(PRESENT_POSITION, 3000)
        result = await self.io.read(11, PRESENT_POSITION)
        self.assertTrue(result.ok)
        self.assertEqual(result.value, 3000)
        self.assertEqual(self.registry.position(11), 3000)
        self.assertTrue(self.registry.has_position(11))

    async def test_read_timeout(self):
        self.stream.servo(11).silent = True
        self.registry.set_position(11, 1234)
        result = await self.io.read(11, PRESENT_POSITION)
        self.assertTrue(result.timed_out)
        # Cache untouched
        self.assertEqual(self.registry.position(11), 1234)

    async def test_read_signed(self):
        self.stream.servo(12).set(PRESENT_LOAD, -250)
        result = await self.io.read(12, PRESENT_LOAD)
        self.assertEqual(result.value, -250)

    async def test_read_reports_error_byte(self):
        self.stream.servo(11).error = 0x80
        result = await self.io.read(11, PRESENT_POSITION)
        self.assertFalse(result.ok)
        self.assertTrue(result.error.has_hardware_alert)
        self.assertTrue(self.registry.get(11).error.has_hardware_alert)

    async def test_sync_read_partial(self):
        self.stream.servo(12).silent = True
        self.stream.servo(11).set(PRESENT_POSITION, 100)
        self.stream.servo(13).set(PRESENT_POSITION, 300)

        results = await self.io.sync_read(PRESENT_POSITION, [11, 12, 13])

        self.assertEqual(set(results), {11, 12, 13})
        self.assertEqual(results[11].value, 100)
        self.assertTrue(results[12].timed_out)
        self.assertEqual(results[13].value, 300)
        self.assertEqual(self.stream.instructions(), [Instruction.SYNC_READ])

    async def test_sync_read_empty(self):
        self.assertEqual(await self.io.sync_read(PRESENT_POSITION, []), {})
        self.assertEqual(self.stream.written, [])

    async def test_write_is_fire_and_forget(self):
        await self.io.write(11, GOAL_POSITION, 2500)
        self.assertEqual(self.stream.servo(11).goal, 2500)
        self.assertEqual(self.registry.position(11), 2500)

    async def test_sync_write(self):
        await self.io.sync_write(GOAL_POSITION, {11: 10, 13: 30})
        self.assertEqual(self.stream.servo(11).goal, 10)
        self.assertEqual(self.stream.servo(12).goal, 2048)
        self.assertEqual(self.stream.servo(13).goal, 30)
        self.assertEqual(self.stream.instructions(), [Instruction.SYNC_WRITE])

    async def test_torque_cached_only_when_confirmed(self):
        await self.io.sync_write(TORQUE_ENABLE, {11: 1})
        self.assertFalse(self.registry.get(11).torque_enabled)

        await self.io.sync_read(TORQUE_ENABLE, [11])
        self.assertTrue(self.registry.get(11).torque_enabled)

    async def test_write_confirmed(self):
        self.stream.write_replies = True
        flags = await self.io.write_confirmed(12, TORQUE_ENABLE, 1)
        self.assertEqual(flags, ErrorFlags.NONE)
        self.assertTrue(self.registry.get(12).torque_enabled)

        self.stream.servo(13).silent = True
        self.assertIsNone(await self.io.write_confirmed(13, TORQUE_ENABLE, 1))

    async def test_ping(self):
        status = await self.io.ping(11)
        self.assertEqual(status.device_id, 11)
        self.assertIsNone(await self.io.ping(42))

    async def test_shared_channel(self):
        async with self.io.exclusive() as channel:
            await self.io.write(11, GOAL_POSITION, 1, channel=channel)
            result = await self.io.read(11, GOAL_POSITION, channel=channel)
        self.assertEqual(result.value, 1)

    async def test_reboot_clears_torque(self):
        self.registry.set_torque(11, True)
        await self.io.reboot(11)
        self.assertFalse(self.registry.get(11).torque_enabled)
        self.assertEqual(self.stream.instructions(), [Instruction.REBOOT])


if __name__ == '__main__':
    unittest.main()
