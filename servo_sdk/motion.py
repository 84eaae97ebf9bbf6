"""Trajectory generation and execution.

A motion call goes through ``PLANNING`` (start positions and duration),
then ``STEPPING`` (interpolated goal writes every step interval) and ends
``COMPLETED`` or ``CANCELLED``. Multi-axis moves are speed matched: every
axis arrives at the same time, paced by the axis with the largest delta.

Cancellation is cooperative. The token is checked once per step, so a stop
takes effect within one step interval and leaves the axes at the last
commanded position.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from .bus import RegisterIO
from .config import FAST_PATH_THRESHOLD_MS, MAX_STEPS_PER_SECOND, STEP_INTERVAL_MS
from .models import GOAL_POSITION, PRESENT_POSITION, MotionResult, MotionState, round_half_up

logger = logging.getLogger(__name__)

MIN_STEPS = 2

Easing = Callable[[float], float]


def linear(t: float) -> float:
    return t


def ease_in_out(t: float) -> float:
    """Accelerate through the first half, decelerate through the second.

    ``2t^2`` below 0.5, ``1 - (2 - 2t)^2 / 2`` above.
    """
    if t < 0.5:
        return 2 * t * t
    return 1 - ((-2 * t + 2) ** 2) / 2


class CancelToken:
    """Cooperative stop signal shared between a caller and its trajectories."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until cancelled or timeout; returns whether it was cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass(frozen=True)
class Trajectory:
    """One planned move, consumed step by step.

    Attributes:
        device_ids: Axes driven by this trajectory
        start: Start position per axis
        target: Target position per axis
        duration_ms: Total duration
        step_interval_ms: Nominal step period
        easing: Maps linear progress t in [0, 1] to eased progress
    """
    device_ids: Tuple[int, ...]
    start: Tuple[int, ...]
    target: Tuple[int, ...]
    duration_ms: float
    step_interval_ms: float = STEP_INTERVAL_MS
    easing: Easing = linear

    @property
    def steps(self) -> int:
        return max(MIN_STEPS, int(math.floor(self.duration_ms / self.step_interval_ms)))

    @property
    def step_delay_ms(self) -> float:
        return self.duration_ms / self.steps

    def positions_at(self, step: int) -> Tuple[int, ...]:
        """Commanded position of every axis after ``step`` of ``steps``."""
        progress = self.easing(step / self.steps)
        return tuple(
            round_half_up(start + (target - start) * progress)
            for start, target in zip(self.start, self.target)
        )


class MotionPlanner:
    """Plans and drives speed-limited and eased moves."""

    def __init__(self,
                 io: RegisterIO,
                 max_steps_per_second: float = MAX_STEPS_PER_SECOND,
                 step_interval_ms: float = STEP_INTERVAL_MS,
                 fast_path_threshold_ms: float = FAST_PATH_THRESHOLD_MS):
        """Initialize planner.

        Args:
            io: Register access used for reads and goal writes
            max_steps_per_second: Speed limit in raw units per second
            step_interval_ms: Interpolation step period
            fast_path_threshold_ms: Moves shorter than this are written directly
        """
        self._io = io
        self.max_steps_per_second = max_steps_per_second
        self.step_interval_ms = step_interval_ms
        self.fast_path_threshold_ms = fast_path_threshold_ms

    def duration_ms(self, start: Sequence[int], target: Sequence[int]) -> float:
        """Time the largest move needs at the speed limit."""
        max_delta = max((abs(t - s) for s, t in zip(start, target)), default=0)
        return max_delta / self.max_steps_per_second * 1000.0

    async def resolve_start(self, device_ids: Sequence[int]) -> Tuple[int, ...]:
        """Cached position per axis, reading live only for never-seen devices."""
        registry = self._io.registry
        positions = []
        for device_id in device_ids:
            if not registry.has_position(device_id):
                await self._io.read(device_id, PRESENT_POSITION)
            positions.append(registry.position(device_id))
        return tuple(positions)

    async def move_direct(self, device_ids: Sequence[int], targets: Sequence[int]) -> None:
        """Write goal positions with no speed limit."""
        ids, goals = self._validate(device_ids, targets)
        await self._write(ids, goals)

    async def move_limited(self,
                           device_ids: Sequence[int],
                           targets: Sequence[int],
                           cancel: Optional[CancelToken] = None) -> MotionResult:
        """Linear move at the configured speed limit."""
        ids, goals = self._validate(device_ids, targets)
        start = await self.resolve_start(ids)
        duration = self.duration_ms(start, goals)
        trajectory = Trajectory(
            device_ids=ids,
            start=start,
            target=goals,
            duration_ms=duration,
            step_interval_ms=self.step_interval_ms,
        )
        return await self.execute(trajectory, cancel)

    async def move_smooth(self,
                          device_ids: Sequence[int],
                          targets: Sequence[int],
                          duration_ms: float,
                          cancel: Optional[CancelToken] = None) -> MotionResult:
        """Eased move over an explicit duration."""
        if duration_ms < 0:
            raise ValueError(f"duration_ms cannot be negative: {duration_ms}")
        ids, goals = self._validate(device_ids, targets)
        start = await self.resolve_start(ids)
        trajectory = Trajectory(
            device_ids=ids,
            start=start,
            target=goals,
            duration_ms=float(duration_ms),
            step_interval_ms=self.step_interval_ms,
            easing=ease_in_out,
        )
        return await self.execute(trajectory, cancel)

    async def execute(self,
                      trajectory: Trajectory,
                      cancel: Optional[CancelToken] = None) -> MotionResult:
        """Drive a planned trajectory to completion or cancellation."""
        ids = trajectory.device_ids

        if cancel is not None and cancel.cancelled:
            return MotionResult(
                state=MotionState.CANCELLED,
                device_ids=ids,
                positions=trajectory.start,
                duration_ms=trajectory.duration_ms,
                steps=0,
            )

        if trajectory.duration_ms < self.fast_path_threshold_ms:
            await self._write(ids, trajectory.target)
            return MotionResult(
                state=MotionState.COMPLETED,
                device_ids=ids,
                positions=trajectory.target,
                steps=1,
                steps_executed=1,
            )

        steps = trajectory.steps
        delay = trajectory.step_delay_ms / 1000.0
        logger.debug(
            f"Moving {list(ids)} over {trajectory.duration_ms:.0f} ms in {steps} steps"
        )

        state = MotionState.STEPPING
        positions = trajectory.start
        executed = 0
        for step in range(1, steps + 1):
            if cancel is not None and cancel.cancelled:
                state = MotionState.CANCELLED
                break
            positions = trajectory.positions_at(step)
            await self._write(ids, positions)
            executed += 1
            await asyncio.sleep(delay)

        if state is MotionState.STEPPING:
            state = MotionState.COMPLETED
        else:
            logger.info(f"Motion of {list(ids)} cancelled after {executed}/{steps} steps")

        return MotionResult(
            state=state,
            device_ids=ids,
            positions=positions,
            duration_ms=trajectory.duration_ms,
            steps=steps,
            steps_executed=executed,
        )

    # Internal methods

    @staticmethod
    def _validate(device_ids: Sequence[int],
                  targets: Sequence[int]) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        ids = tuple(device_ids)
        goals = tuple(round_half_up(t) for t in targets)
        if not ids:
            raise ValueError("At least one device id is required")
        if len(ids) != len(goals):
            raise ValueError(f"{len(ids)} device ids but {len(goals)} positions")
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate device ids: {ids}")
        return ids, goals

    async def _write(self, device_ids: Tuple[int, ...], positions: Sequence[int]) -> None:
        # Registry is updated with the commanded position by RegisterIO
        if len(device_ids) == 1:
            await self._io.write(device_ids[0], GOAL_POSITION, positions[0])
        else:
            await self._io.sync_write(GOAL_POSITION, dict(zip(device_ids, positions)))
