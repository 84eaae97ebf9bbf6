"""Unit tests for MotionRecorder."""
import unittest

from fakes import FakeServoStream

from servo_sdk import MotionRecorder, Robot, RobotConfig
from servo_sdk.models import Instruction, PRESENT_POSITION
from servo_sdk.motion import CancelToken


class TestMotionRecorder(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.stream = FakeServoStream([11, 12])
        config = RobotConfig(
            motor_ids=(11, 12),
            kinematic_joint_count=2,
            response_timeout=0.05,
            poll_interval=0.001,
        )
        self.robot = Robot(config, stream=self.stream)
        await self.robot.connect()
        self.recorder = MotionRecorder(self.robot, interval=0.01)

    async def asyncTearDown(self):
        await self.robot.disconnect()

    def test_default_interval(self):
        self.assertEqual(MotionRecorder(self.robot).interval, 0.02)
        with self.assertRaises(ValueError):
            MotionRecorder(self.robot, interval=0)

    async def test_record(self):
        self.stream.servo(11).set(PRESENT_POSITION, 100)
        self.stream.servo(12).set(PRESENT_POSITION, 200)

        frames = await self.recorder.record(0.05)

        self.assertGreater(len(frames), 0)
        self.assertEqual(frames[0], (100, 200))
        self.assertEqual(self.recorder.frames, frames)
        self.assertTrue(all(i == Instruction.SYNC_READ for i in self.stream.instructions()))

    async def test_record_stops_on_cancel(self):
        token = CancelToken()
        token.cancel()
        self.assertEqual(await self.recorder.record(1.0, cancel=token), [])

    async def test_replay(self):
        frames = [(100, 200), (110, 210), (120, 220)]

        written = await self.recorder.replay(frames)

        self.assertEqual(written, 3)
        self.assertEqual(self.stream.servo(11).goal, 120)
        self.assertEqual(self.stream.servo(12).goal, 220)
        self.assertFalse(self.stream.servo(11).torque)
        self.assertFalse(self.stream.servo(12).torque)

        instructions = self.stream.instructions()
        # Enable sequence, one frame per sample, then release
        self.assertEqual(instructions[:3], [Instruction.SYNC_WRITE, Instruction.SYNC_READ, Instruction.SYNC_WRITE])
        self.assertEqual(instructions[3:6], [Instruction.SYNC_WRITE] * 3)
        self.assertEqual(instructions[6:], [Instruction.SYNC_WRITE, Instruction.SYNC_READ])

    async def test_replay_cancelled_still_releases(self):
        token = CancelToken()
        token.cancel()
        self.stream.servo(11).set(PRESENT_POSITION, 5)

        written = await self.recorder.replay([(100, 200)], cancel=token)

        self.assertEqual(written, 0)
        self.assertEqual(self.stream.servo(11).goal, 5)
        self.assertFalse(self.stream.servo(11).torque)

    async def test_replay_rejects_bad_frame(self):
        with self.assertRaises(ValueError):
            await self.recorder.replay([(1, 2, 3)])
        self.assertEqual(self.stream.written, [])


if __name__ == '__main__':
    unittest.main()
