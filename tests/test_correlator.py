"""Unit tests for ResponseCorrelator."""
import asyncio
import unittest

from servo_sdk.bus import ResponseCorrelator, RingBuffer
from servo_sdk.protocol import build_ping, build_status


class TestResponseCorrelator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.buffer = RingBuffer()
        self.correlator = ResponseCorrelator(self.buffer, poll_interval=0.001)

    async def test_all_answers_already_buffered(self):
        self.buffer.write(build_status(11, 0, b"\x01") + build_status(12, 0, b"\x02"))
        results = await self.correlator.await_response([11, 12], timeout=0.1)
        self.assertEqual(set(results), {11, 12})
        self.assertEqual(results[11].payload, b"\x01")
        self.assertEqual(results[12].payload, b"\x02")
        self.assertEqual(len(self.buffer), 0)

    async def test_partial_result_on_deadline(self):
        self.buffer.write(build_status(11))
        loop = asyncio.get_running_loop()
        start = loop.time()
        results = await self.correlator.await_response([11, 12, 13], timeout=0.05)
        self.assertEqual(set(results), {11})
        self.assertGreaterEqual(loop.time() - start, 0.04)

    async def test_answer_arrives_while_waiting(self):
        async def deliver():
            await asyncio.sleep(0.01)
            self.buffer.write(build_status(14, 0, b"\x07"))

        task = asyncio.create_task(deliver())
        results = await self.correlator.await_response([14], timeout=0.5)
        await task
        self.assertEqual(results[14].payload, b"\x07")

    async def test_unexpected_ids_are_dropped(self):
        self.buffer.write(build_status(99) + build_status(11))
        results = await self.correlator.await_response([11], timeout=0.05)
        self.assertEqual(list(results), [11])
        self.assertEqual(len(self.buffer), 0)

    async def test_skips_echo_and_garbage(self):
        self.buffer.write(b"\x00\xAA" + build_ping(11) + build_status(11, 0x80))
        results = await self.correlator.await_response([11], timeout=0.05)
        self.assertEqual(results[11].error, 0x80)

    async def test_first_answer_wins(self):
        self.buffer.write(build_status(11, 0, b"\x01") + build_status(11, 0, b"\x02"))
        results = await self.correlator.await_response([11], timeout=0.05)
        self.assertEqual(results[11].payload, b"\x01")

    async def test_empty_expectation_returns_immediately(self):
        results = await self.correlator.await_response([], timeout=1.0)
        self.assertEqual(results, {})


if __name__ == '__main__':
    unittest.main()
