"""Deterministic in-memory device registry.

This is the only component allowed to merge device updates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict

from pyev04._constants import TRAIL_MAX_LEN
from pyev04.models.device import Device, DeviceSnapshot, Position
from pyev04.state.events import DeviceUpdate
from pyev04.state.signals import ChangeKind, RegistryChange, StateSignal

_logger = logging.getLogger(__name__)


class RegistrySnapshot(BaseModel):
    """Immutable copy of registry state for consumers."""

    model_config = ConfigDict(frozen=True)

    devices: tuple[DeviceSnapshot, ...] = ()
    selected_id: str | None = None
    any_sos_active: bool = False
    sos_device_ids: tuple[str, ...] = ()


class DeviceRegistry:
    """In-memory store of tracked devices and the current selection.

    Given the same sequence of operations and updates, the registry produces
    the same state. Not thread-safe: a single writer is assumed.
    """

    def __init__(self, *, trail_max_len: int = TRAIL_MAX_LEN) -> None:
        if trail_max_len < 1:
            raise ValueError(f"trail_max_len must be at least 1, got {trail_max_len}")
        self._trail_max_len = trail_max_len
        # Insertion order doubles as the tie-break for sorting and reselection.
        self._devices: dict[str, Device] = {}
        self._selected_id: str | None = None
        self._dropped_updates = 0
        self.changed = StateSignal()

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __iter__(self) -> Iterator[Device]:
        return iter(self.list_devices())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_device(self, device: Device) -> None:
        """Insert or replace *device*; selects it when nothing is selected."""
        if device.id in self._devices:
            _logger.debug("Replacing device %s", device.id)
        self._devices[device.id] = device
        if self._selected_id is None:
            self._selected_id = device.id
        self._notify(ChangeKind.ADDED, device.id)

    def remove_device(self, device_id: str) -> None:
        """Remove a device; unknown ids are ignored.

        If the removed device was selected, the first remaining device (in
        insertion order) becomes selected, or nothing when the registry is empty.
        """
        if self._devices.pop(device_id, None) is None:
            return
        if self._selected_id == device_id:
            self._selected_id = next(iter(self._devices), None)
        self._notify(ChangeKind.REMOVED, device_id)

    def select_device(self, device_id: str) -> None:
        """Select an existing device; unknown ids are ignored."""
        if device_id not in self._devices:
            return
        self._selected_id = device_id
        self._notify(ChangeKind.SELECTED, device_id)

    def apply_update(self, update: DeviceUpdate) -> bool:
        """Merge *update* into the addressed device.

        Returns ``False`` when the device is unknown; the update is dropped
        and counted in :attr:`dropped_updates`.
        """
        device = self._devices.get(update.device_id)
        if device is None:
            self._dropped_updates += 1
            _logger.debug(
                "Dropping %s update for unknown device %s (dropped=%d)",
                update.source,
                update.device_id,
                self._dropped_updates,
            )
            return False

        patch = update.patch()
        position = patch.pop("position", None)
        if position is not None:
            device.position = position
            device.add_trail_point(position, max_len=self._trail_max_len)
        for field_name, value in patch.items():
            setattr(device, field_name, value)

        if update.timestamp < device.last_update:
            _logger.debug(
                "Out-of-order update for %s: %s is older than %s",
                device.id,
                update.timestamp.isoformat(),
                device.last_update.isoformat(),
            )
        device.last_update = update.timestamp

        self._notify(ChangeKind.UPDATED, device.id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected_device(self) -> Device | None:
        if self._selected_id is None:
            return None
        return self._devices.get(self._selected_id)

    @property
    def dropped_updates(self) -> int:
        """Number of updates discarded because their device was unknown."""
        return self._dropped_updates

    @property
    def trail_max_len(self) -> int:
        return self._trail_max_len

    def get(self, device_id: str) -> Device | None:
        return self._devices.get(device_id)

    def list_devices(self) -> list[Device]:
        """Devices ordered by case-insensitive name, ties in insertion order."""
        # sorted() is stable, so equal names keep insertion order.
        return sorted(self._devices.values(), key=lambda d: d.name.casefold())

    def any_sos_active(self) -> bool:
        return any(d.sos_active for d in self._devices.values())

    def sos_devices(self) -> list[Device]:
        return [d for d in self.list_devices() if d.sos_active]

    def trail(self, device_id: str) -> tuple[Position, ...]:
        device = self._devices.get(device_id)
        if device is None:
            return ()
        return device.trail

    def snapshot(self) -> RegistrySnapshot:
        devices = tuple(d.to_snapshot() for d in self.list_devices())
        return RegistrySnapshot(
            devices=devices,
            selected_id=self._selected_id,
            any_sos_active=any(d.sos_active for d in devices),
            sos_device_ids=tuple(d.id for d in devices if d.sos_active),
        )

    def _notify(self, kind: ChangeKind, device_id: str) -> None:
        self.changed.emit(RegistryChange(kind=kind, device_id=device_id))
