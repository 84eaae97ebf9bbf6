"""Unit tests for RobotConfig."""
import unittest

from servo_sdk.config import DEFAULT_MOTOR_IDS, RobotConfig


class TestRobotConfig(unittest.TestCase):

    def test_defaults(self):
        config = RobotConfig()
        self.assertEqual(config.motor_ids, DEFAULT_MOTOR_IDS)
        self.assertEqual(config.motor_ids, (11, 12, 13, 14, 15, 16, 17, 18))
        self.assertEqual(config.kinematic_ids, (11, 12, 13, 14, 15, 16))
        self.assertEqual(config.baudrate, 1_000_000)
        self.assertEqual(config.response_timeout, 0.2)
        self.assertEqual(config.buffer_size, 2048)
        self.assertEqual(config.max_steps_per_second, 4096)
        self.assertEqual(config.step_interval_ms, 20)
        self.assertEqual(config.fast_path_threshold_ms, 50)
        self.assertIsNone(config.port)

    def test_motor_ids_become_tuple(self):
        config = RobotConfig(motor_ids=[1, 2, 3], kinematic_joint_count=2)
        self.assertEqual(config.motor_ids, (1, 2, 3))
        self.assertEqual(config.kinematic_ids, (1, 2))

    def test_rejects_out_of_range_id(self):
        with self.assertRaises(ValueError):
            RobotConfig(motor_ids=(11, 254))

    def test_rejects_duplicate_ids(self):
        with self.assertRaises(ValueError):
            RobotConfig(motor_ids=(11, 11), kinematic_joint_count=1)

    def test_rejects_too_many_joints(self):
        with self.assertRaises(ValueError):
            RobotConfig(motor_ids=(11, 12), kinematic_joint_count=3)

    def test_rejects_non_positive_timing(self):
        with self.assertRaises(ValueError):
            RobotConfig(response_timeout=0)
        with self.assertRaises(ValueError):
            RobotConfig(step_interval_ms=-20)

    def test_rejects_tiny_buffer(self):
        with self.assertRaises(ValueError):
            RobotConfig(buffer_size=8)

    def test_frozen(self):
        config = RobotConfig()
        with self.assertRaises(AttributeError):
            config.baudrate = 57600


if __name__ == '__main__':
    unittest.main()
