"""Fault detection and recovery.

Pings decode the device error byte into ``ErrorFlags``; a set hardware
alert bit is latched by the device and only a reboot clears it, so it is
reported as a reboot hint rather than something to retry. Bulk checks and
reboots walk the ids one at a time.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional

from .bus import RegisterIO
from .config import REBOOT_SETTLE, RESPONSE_TIMEOUT
from .models import PingResult

logger = logging.getLogger(__name__)


class FaultManager:
    """Ping, check and reboot devices."""

    def __init__(self,
                 io: RegisterIO,
                 ping_timeout: float = RESPONSE_TIMEOUT,
                 reboot_settle: float = REBOOT_SETTLE):
        """Initialize fault manager.

        Args:
            io: Register access
            ping_timeout: Deadline for a ping answer, in seconds
            reboot_settle: Wait after a reboot before re-pinging, in seconds
        """
        self._io = io
        self.ping_timeout = ping_timeout
        self.reboot_settle = reboot_settle

    async def ping(self, device_id: int) -> PingResult:
        """Ping a device.

        Returns:
            ``ok`` with no error when the device answers cleanly,
            ``"No response"`` when it stays silent, or the decoded error byte.
        """
        status = await self._io.ping(device_id, timeout=self.ping_timeout)
        if status is None:
            return PingResult.no_response(device_id)
        return PingResult.from_error_byte(device_id, status.error)

    async def check_all(self, device_ids: Iterable[int]) -> Dict[int, PingResult]:
        """Ping every device in turn and log a summary."""
        results: Dict[int, PingResult] = {}
        for device_id in device_ids:
            results[device_id] = await self.ping(device_id)

        ok = [i for i, r in results.items() if r.ok]
        failed = [i for i, r in results.items() if not r.ok]
        alerts = [i for i, r in results.items() if r.has_hardware_alert]

        if not failed:
            logger.info(f"All {len(ok)} motors OK")
        else:
            logger.info(f"Motors OK: {ok}")
            logger.error(f"Motors FAILED: {failed}")
            if alerts:
                logger.warning(f"Motors with hardware alert (need reboot): {alerts}")
        return results

    async def reboot(self, device_id: int) -> PingResult:
        """Reboot a device, wait for it to come back, and ping it.

        The reboot clears latched hardware errors but leaves torque disabled.
        """
        logger.warning(f"Rebooting motor {device_id}...")
        await self._io.reboot(device_id)
        await asyncio.sleep(self.reboot_settle)

        result = await self.ping(device_id)
        if result.ok:
            logger.info(f"Motor {device_id} rebooted successfully")
        else:
            logger.error(f"Motor {device_id} still has error after reboot: {result.error}")
        return result

    async def reboot_all(self, device_ids: Iterable[int]) -> Dict[int, PingResult]:
        """Reboot devices one after another."""
        results: Dict[int, PingResult] = {}
        for device_id in device_ids:
            results[device_id] = await self.reboot(device_id)
        return results

    @staticmethod
    def reboot_suggestion(result: PingResult) -> Optional[str]:
        """Advice for a failed ping, or None if nothing needs doing."""
        if result.ok:
            return None
        if result.has_hardware_alert:
            return f"Motor {result.device_id} has a hardware alert - try rebooting"
        if not result.responded:
            return f"Motor {result.device_id} is not responding - check wiring and power"
        return f"Motor {result.device_id} reported: {result.error}"
