"""Robot facade.

Owns one bus session and exposes the downstream API used by programs:
connection lifecycle, torque, positions, motion, diagnostics, kinematics
and the cooperative stop used to abort a running program.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .bus import BusSession, RegisterIO
from .config import RobotConfig
from .errors import KinematicsError, StopRequested, TransportError
from .faults import FaultManager
from .kinematics import KinematicsSolver, check_vector, is_reachable
from .models import (
    GOAL_POSITION,
    PRESENT_LOAD,
    PRESENT_POSITION,
    PRESENT_TEMPERATURE,
    PROFILE_VELOCITY,
    TORQUE_ENABLE,
    DeviceState,
    ErrorFlags,
    MotionResult,
    PingResult,
    ReadResult,
    TorqueResult,
    degrees_to_joints,
    degrees_to_raw,
    joints_to_degrees,
    raw_to_degrees,
    validate_device_id,
)
from .motion import CancelToken, MotionPlanner
from .registry import DeviceRegistry
from .transport import ByteStream, SerialStream

logger = logging.getLogger(__name__)


class Robot:
    """High-level interface to a bus of position servos.

    This class acts as a facade, managing:
    1. The byte stream and its session (BusSession)
    2. Register access and the device cache (RegisterIO, DeviceRegistry)
    3. Speed-limited and eased motion (MotionPlanner)
    4. Ping, diagnostics and reboot (FaultManager)

    Example:
        async with Robot(config=RobotConfig(port="/dev/ttyUSB0")) as robot:
            await robot.set_torque_multiple(robot.config.motor_ids, True)
            await robot.set_position_limited(11, 3000)
    """

    def __init__(self,
                 config: Optional[RobotConfig] = None,
                 stream: Optional[ByteStream] = None,
                 solver: Optional[KinematicsSolver] = None):
        """Initialize robot.

        Args:
            config: Session configuration, defaults to ``RobotConfig()``
            stream: Byte stream to use; a ``SerialStream`` on ``config.port``
                is created when omitted
            solver: Kinematics solver for the coordinate helpers
        """
        self.config = config or RobotConfig()
        if stream is None:
            if self.config.port is None:
                raise ValueError("Either a stream or config.port is required")
            stream = SerialStream(self.config.port, self.config.baudrate)

        self._session = BusSession(
            stream,
            buffer_size=self.config.buffer_size,
            poll_interval=self.config.poll_interval,
        )
        self._registry = DeviceRegistry(self.config.motor_ids)
        self._io = RegisterIO(self._session, self._registry, timeout=self.config.response_timeout)
        self._planner = MotionPlanner(
            self._io,
            max_steps_per_second=self.config.max_steps_per_second,
            step_interval_ms=self.config.step_interval_ms,
            fast_path_threshold_ms=self.config.fast_path_threshold_ms,
        )
        self._faults = FaultManager(
            self._io,
            ping_timeout=self.config.response_timeout,
            reboot_settle=self.config.reboot_settle,
        )
        self._solver = solver
        self._stop = CancelToken()

    # --- Connection ---

    async def connect(self) -> None:
        """Open the stream and start the background reader.

        Raises:
            TransportError: If the stream cannot be opened
        """
        await self._session.open()
        logger.info(f"Connected, {len(self.config.motor_ids)} motors configured")

    async def disconnect(self) -> None:
        await self._session.close()
        logger.info("Disconnected")

    @property
    def is_connected(self) -> bool:
        return self._session.is_open

    async def __aenter__(self) -> Robot:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def io(self) -> RegisterIO:
        return self._io

    @property
    def planner(self) -> MotionPlanner:
        return self._planner

    def snapshot(self) -> Dict[int, DeviceState]:
        """Last known state of every device."""
        return self._registry.snapshot()

    # --- Diagnostics ---

    async def ping(self, device_id: int) -> PingResult:
        return await self._faults.ping(validate_device_id(device_id))

    async def check_all_motors(self) -> Dict[int, PingResult]:
        return await self._faults.check_all(self.config.motor_ids)

    async def reboot(self, device_id: int) -> PingResult:
        return await self._faults.reboot(validate_device_id(device_id))

    async def reboot_all(self) -> Dict[int, PingResult]:
        return await self._faults.reboot_all(self.config.motor_ids)

    # --- Torque ---

    async def set_torque(self, device_id: int, enabled: bool) -> bool:
        """Enable or disable torque on one device; True if it confirmed."""
        result = await self.set_torque_multiple([device_id], enabled)
        return result.ok

    async def set_torque_multiple(self, device_ids: Sequence[int], enabled: bool) -> TorqueResult:
        """Enable or disable torque on several devices at once.

        Enabling runs as one exclusive sequence: torque on, read present
        positions, write them back as goals. A device never holds torque
        against a stale goal, so nothing snaps on enable.
        """
        ids = tuple(validate_device_id(i) for i in device_ids)
        if not ids:
            return TorqueResult()

        async with self._io.exclusive() as channel:
            await self._io.sync_write(TORQUE_ENABLE, {i: int(enabled) for i in ids}, channel=channel)
            if enabled:
                reads = await self._io.sync_read(PRESENT_POSITION, ids, channel=channel)
                hold = {i: r.value for i, r in reads.items() if r.value is not None}
                await self._io.sync_write(GOAL_POSITION, hold, channel=channel)
            else:
                reads = await self._io.sync_read(TORQUE_ENABLE, ids, channel=channel)

        return self._torque_result(ids, enabled, reads)

    async def enable_all(self) -> TorqueResult:
        return await self.set_torque_multiple(self.config.motor_ids, True)

    async def disable_all(self) -> TorqueResult:
        return await self.set_torque_multiple(self.config.motor_ids, False)

    # --- Positions ---

    async def read_position(self, device_id: int) -> ReadResult:
        """Live position read that reports a timeout instead of hiding it."""
        return await self._io.read(validate_device_id(device_id), PRESENT_POSITION)

    async def get_position(self, device_id: int) -> int:
        """Present position, falling back to the last known one on timeout."""
        result = await self.read_position(device_id)
        if result.value is not None:
            return result.value
        return self._registry.position(device_id)

    async def get_all_positions(self) -> List[int]:
        """Present position of every configured motor, in ``motor_ids`` order.

        Devices that did not answer report their cached position.
        """
        ids = self.config.motor_ids
        reads = await self._io.sync_read(PRESENT_POSITION, ids)
        return [
            reads[i].value if reads[i].value is not None else self._registry.position(i)
            for i in ids
        ]

    async def set_position(self, device_id: int, position: int) -> None:
        """Write a goal position directly, with no speed limit."""
        await self._planner.move_direct([validate_device_id(device_id)], [position])

    async def set_positions(self, device_ids: Sequence[int], positions: Sequence[int]) -> None:
        """Write goal positions directly with one synchronized frame."""
        await self._planner.move_direct([validate_device_id(i) for i in device_ids], positions)

    async def set_position_limited(self,
                                   device_id: int,
                                   position: int,
                                   cancel: Optional[CancelToken] = None) -> MotionResult:
        return await self.set_positions_limited([device_id], [position], cancel)

    async def set_positions_limited(self,
                                    device_ids: Sequence[int],
                                    positions: Sequence[int],
                                    cancel: Optional[CancelToken] = None) -> MotionResult:
        """Speed-limited move where every axis arrives at the same time."""
        ids = [validate_device_id(i) for i in device_ids]
        return await self._planner.move_limited(ids, positions, cancel or self._stop)

    async def set_all_positions(self,
                                positions: Sequence[int],
                                cancel: Optional[CancelToken] = None) -> MotionResult:
        if len(positions) != len(self.config.motor_ids):
            raise ValueError(
                f"Expected {len(self.config.motor_ids)} positions, got {len(positions)}"
            )
        return await self.set_positions_limited(self.config.motor_ids, positions, cancel)

    async def move_smooth(self,
                          device_id: int,
                          position: int,
                          duration_ms: float,
                          cancel: Optional[CancelToken] = None) -> MotionResult:
        """Eased move of one device over an explicit duration."""
        return await self._planner.move_smooth(
            [validate_device_id(device_id)], [position], duration_ms, cancel or self._stop
        )

    async def get_degrees(self, device_id: int) -> float:
        return raw_to_degrees(await self.get_position(device_id))

    async def set_degrees(self,
                          device_id: int,
                          degrees: float,
                          cancel: Optional[CancelToken] = None) -> MotionResult:
        return await self.set_position_limited(device_id, degrees_to_raw(degrees), cancel)

    # --- Telemetry and settings ---

    async def get_load(self, device_id: int) -> int:
        """Signed present load (-1000..1000), or 0 if the device did not answer."""
        result = await self._io.read(validate_device_id(device_id), PRESENT_LOAD)
        return result.value if result.value is not None else 0

    async def get_temperature(self, device_id: int) -> int:
        """Present temperature in degrees Celsius, or 0 if the device did not answer."""
        result = await self._io.read(validate_device_id(device_id), PRESENT_TEMPERATURE)
        return result.value if result.value is not None else 0

    async def set_profile_velocity(self, device_id: int, velocity: int) -> None:
        await self._io.write(validate_device_id(device_id), PROFILE_VELOCITY, velocity)

    # --- Kinematics ---

    def joints_to_coordinates(self, joint_degrees: Sequence[float]) -> List[float]:
        """Forward kinematics: joint angles in degrees to ``[x, y, z, roll, pitch, yaw]``."""
        joints = check_vector(joint_degrees, "joints", self.config.kinematic_joint_count)
        return self._require_solver().forward(joints)

    def coordinates_to_joints(self, pose: Sequence[float]) -> List[float]:
        """Inverse kinematics: pose to joint angles in degrees.

        Raises:
            KinematicsError: If no solver is configured or the pose is unreachable
        """
        joints = self._require_solver().inverse(check_vector(pose, "pose"))
        if not is_reachable(joints):
            raise KinematicsError(f"Pose {list(pose)} is unreachable")
        return joints

    async def get_current_coordinates(self) -> List[float]:
        positions = await self.get_all_positions()
        degrees = joints_to_degrees(positions[:self.config.kinematic_joint_count])
        return self.joints_to_coordinates(degrees)

    async def move_to_coordinates(self,
                                  pose: Sequence[float],
                                  cancel: Optional[CancelToken] = None) -> MotionResult:
        """Speed-limited move of the kinematic joints to a pose."""
        joints = degrees_to_joints(self.coordinates_to_joints(pose))
        return await self.set_positions_limited(self.config.kinematic_ids, joints, cancel)

    # --- Program control ---

    @property
    def stop_requested(self) -> bool:
        return self._stop.cancelled

    @property
    def stop_token(self) -> CancelToken:
        return self._stop

    async def stop(self) -> TorqueResult:
        """Abort the running program and disable torque on every motor.

        Running moves end within one step. Transport failures are logged,
        never raised, so this is always safe to call.
        """
        self._stop.cancel()
        logger.warning("Program stopped")

        ids = self.config.motor_ids
        if not self.is_connected:
            return TorqueResult(failed=ids)
        try:
            result = await self.set_torque_multiple(ids, False)
        except TransportError as e:
            logger.error(f"Could not disable motors after stop: {e}")
            return TorqueResult(failed=ids)

        logger.info("Motors disabled for safety")
        return result

    def clear_stop(self) -> None:
        """Arm a fresh stop token before the next program run."""
        self._stop = CancelToken()

    async def wait(self, seconds: float) -> None:
        """Suspend for ``seconds``, waking early if a stop is requested.

        Raises:
            StopRequested: If ``stop()`` was called before or during the wait
        """
        token = self._stop
        tick = self.config.stop_poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(seconds, 0.0)

        while True:
            if token.cancelled:
                raise StopRequested("Program stopped")
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            await token.wait(min(tick, remaining))

    async def sleep(self, ms: float) -> None:
        await self.wait(ms / 1000.0)

    # Internal methods

    def _require_solver(self) -> KinematicsSolver:
        if self._solver is None:
            raise KinematicsError("No kinematics solver configured")
        return self._solver

    def _torque_result(self,
                       device_ids: Sequence[int],
                       enabled: bool,
                       reads: Dict[int, ReadResult]) -> TorqueResult:
        succeeded = []
        failed = []
        errors: Dict[int, ErrorFlags] = {}

        for device_id in device_ids:
            read = reads[device_id]
            if read.timed_out:
                logger.error(f"Motor {device_id} not responding")
                failed.append(device_id)
                continue
            if read.error:
                logger.error(f"Motor {device_id} torque error: {read.error.describe()}")
                if read.error.has_hardware_alert:
                    logger.warning(f"Motor {device_id} has a hardware alert - try rebooting")
                errors[device_id] = read.error
                failed.append(device_id)
                continue
            if not enabled and read.value:
                logger.error(f"Motor {device_id} did not release torque")
                failed.append(device_id)
                continue
            succeeded.append(device_id)
            self._registry.set_torque(device_id, enabled)

        if failed:
            logger.error(f"Failed to set torque on motors: {failed}")
        return TorqueResult(succeeded=tuple(succeeded), failed=tuple(failed), errors=errors)
