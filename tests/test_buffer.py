"""Unit tests for RingBuffer."""
import unittest

from servo_sdk.bus import RingBuffer


class TestRingBuffer(unittest.TestCase):

    def test_write_appends(self):
        buf = RingBuffer(capacity=16)
        buf.write(b"abc")
        buf.write(b"def")
        buf.write(b"")
        self.assertEqual(len(buf), 6)
        self.assertEqual(buf.peek(), b"abcdef")
        self.assertEqual(buf.overflow_count, 0)

    def test_peek_does_not_consume(self):
        buf = RingBuffer(capacity=16)
        buf.write(b"hello")
        self.assertEqual(buf.peek(), b"hello")
        self.assertEqual(len(buf), 5)

    def test_consume(self):
        buf = RingBuffer(capacity=16)
        buf.write(b"hello")
        buf.consume(2)
        self.assertEqual(buf.peek(), b"llo")
        buf.consume(0)
        self.assertEqual(buf.peek(), b"llo")

    def test_overflow_drops_oldest(self):
        buf = RingBuffer(capacity=8)
        buf.write(b"12345678")
        buf.write(b"ab")
        self.assertEqual(buf.peek(), b"345678ab")
        self.assertEqual(len(buf), 8)
        self.assertEqual(buf.overflow_count, 1)

    def test_chunk_larger_than_capacity(self):
        buf = RingBuffer(capacity=4)
        buf.write(b"0123456789")
        self.assertEqual(buf.peek(), b"6789")
        self.assertEqual(buf.overflow_count, 1)

    def test_exact_capacity_chunk_is_not_an_overflow(self):
        buf = RingBuffer(capacity=8)
        with self.assertNoLogs("servo_sdk.bus.buffer", level="WARNING"):
            buf.write(b"12345678")
        self.assertEqual(buf.peek(), b"12345678")
        self.assertEqual(buf.overflow_count, 0)

    def test_large_chunk_reports_old_bytes_dropped(self):
        buf = RingBuffer(capacity=4)
        buf.write(b"ab")
        with self.assertLogs("servo_sdk.bus.buffer", level="WARNING") as logs:
            buf.write(b"0123")
        self.assertEqual(buf.peek(), b"0123")
        self.assertEqual(buf.overflow_count, 1)
        self.assertIn("dropped 2 bytes", logs.output[0])

    def test_never_exceeds_capacity(self):
        buf = RingBuffer(capacity=2048)
        for _ in range(100):
            buf.write(bytes(range(100)))
        self.assertLessEqual(len(buf), 2048)
        self.assertEqual(buf.peek()[-100:], bytes(range(100)))

    def test_clear(self):
        buf = RingBuffer()
        buf.write(b"data")
        buf.clear()
        self.assertEqual(buf.peek(), b"")
        self.assertEqual(buf.capacity, 2048)

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            RingBuffer(capacity=0)


if __name__ == '__main__':
    unittest.main()
