"""Record and replay of whole-robot motions.

Frames are kept in memory only. A recording samples every configured motor
while torque is off and the arm is moved by hand; a replay streams the
frames back as synchronized goal writes at the same interval.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from .motion import CancelToken

logger = logging.getLogger(__name__)

Frame = Tuple[int, ...]


class MotionRecorder:
    """Samples and replays positions of ``robot.config.motor_ids``."""

    def __init__(self, robot, interval: Optional[float] = None):
        """Initialize recorder.

        Args:
            robot: Connected ``Robot``
            interval: Sample period in seconds, defaults to the motion step interval
        """
        self._robot = robot
        self.interval = interval if interval is not None else robot.config.step_interval_ms / 1000.0
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        self.frames: List[Frame] = []

    async def record(self, duration_s: float, cancel: Optional[CancelToken] = None) -> List[Frame]:
        """Sample positions for ``duration_s`` seconds or until cancelled."""
        cancel = cancel or self._robot.stop_token
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s

        frames: List[Frame] = []
        while loop.time() < deadline and not cancel.cancelled:
            frames.append(tuple(await self._robot.get_all_positions()))
            await asyncio.sleep(self.interval)

        logger.info(f"Recorded {len(frames)} frames")
        self.frames = frames
        return frames

    async def replay(self,
                     frames: Optional[Sequence[Sequence[int]]] = None,
                     cancel: Optional[CancelToken] = None) -> int:
        """Play frames back and release the motors afterwards.

        Returns:
            Number of frames written
        """
        frames = self.frames if frames is None else frames
        cancel = cancel or self._robot.stop_token
        ids = self._robot.config.motor_ids
        for frame in frames:
            if len(frame) != len(ids):
                raise ValueError(f"Frame has {len(frame)} positions, expected {len(ids)}")

        await self._robot.set_torque_multiple(ids, True)
        written = 0
        try:
            for frame in frames:
                if cancel.cancelled:
                    logger.info(f"Replay cancelled after {written}/{len(frames)} frames")
                    break
                await self._robot.set_positions(ids, frame)
                written += 1
                await asyncio.sleep(self.interval)
        finally:
            await self._robot.set_torque_multiple(ids, False)
        return written
