"""State layer.

This package is the single source of truth for how updates from the demo
feed, MQTT, or manual calls are merged into per-device state.
"""

from pyev04.state.events import DeviceUpdate, UpdateSource
from pyev04.state.registry import DeviceRegistry, RegistrySnapshot
from pyev04.state.signals import ChangeKind, RegistryChange, StateSignal

__all__ = [
    "ChangeKind",
    "DeviceRegistry",
    "DeviceUpdate",
    "RegistryChange",
    "RegistrySnapshot",
    "StateSignal",
    "UpdateSource",
]
