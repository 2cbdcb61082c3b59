"""Data models for tracked devices."""

from pyev04.models._base import TrackerBaseModel, UtcDatetime
from pyev04.models.device import Device, DeviceSnapshot, Position

__all__ = [
    "Device",
    "DeviceSnapshot",
    "Position",
    "TrackerBaseModel",
    "UtcDatetime",
]
