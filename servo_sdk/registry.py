"""Device registry.

Keeps the last known state of every device on the bus. Entries are created
lazily or pre-registered at session start, are overwritten on every
confirmed exchange, and are never removed while the session lives.

Stored values are immutable ``DeviceState`` records; updates replace them,
so a snapshot handed out earlier never changes underneath its holder.
"""
from __future__ import annotations

import time
from dataclasses import replace
from typing import Dict, Iterable, Tuple

from .models import CENTER_POSITION, DeviceState, ErrorFlags, validate_device_id


class DeviceRegistry:
    """Per-device cache keyed by device id."""

    def __init__(self, device_ids: Iterable[int] = (), default_position: int = CENTER_POSITION):
        """Initialize registry.

        Args:
            device_ids: Ids to pre-register with default state
            default_position: Position reported for devices never observed
        """
        self._default_position = default_position
        self._devices: Dict[int, DeviceState] = {}
        for device_id in device_ids:
            self.register(device_id)

    def register(self, device_id: int) -> DeviceState:
        """Create the entry for device_id if missing and return it."""
        state = self._devices.get(device_id)
        if state is None:
            validate_device_id(device_id)
            state = DeviceState(device_id=device_id, position=self._default_position)
            self._devices[device_id] = state
        return state

    def get(self, device_id: int) -> DeviceState:
        return self.register(device_id)

    def position(self, device_id: int) -> int:
        """Cached position, or the default center value if never observed."""
        return self.register(device_id).position

    def has_position(self, device_id: int) -> bool:
        """Whether a position was ever read or commanded for device_id."""
        state = self._devices.get(device_id)
        return state is not None and state.observed

    def set_position(self, device_id: int, position: int) -> None:
        self._update(device_id, position=int(position), observed=True)

    def set_torque(self, device_id: int, enabled: bool) -> None:
        self._update(device_id, torque_enabled=bool(enabled))

    def set_error(self, device_id: int, error: ErrorFlags) -> None:
        self._update(device_id, error=ErrorFlags(error))

    def snapshot(self) -> Dict[int, DeviceState]:
        """Copy of every entry, keyed by device id."""
        return dict(self._devices)

    @property
    def device_ids(self) -> Tuple[int, ...]:
        return tuple(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    def _update(self, device_id: int, **changes) -> None:
        state = self.register(device_id)
        self._devices[device_id] = replace(state, updated_at=time.monotonic(), **changes)
