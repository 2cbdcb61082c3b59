"""pyev04 - Device state registry and update feeds for EV-04 style GPS trackers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyev04")
except PackageNotFoundError:
    __version__ = "0+local"
from pyev04.client import TrackerClient
from pyev04.config import FeedMode, TrackerConfig
from pyev04.exceptions import (
    TrackerConfigError,
    TrackerError,
    TrackerPayloadError,
    TrackerTransportError,
)
from pyev04.ingestion.demo import DemoUpdateFeed, seed_demo_devices
from pyev04.ingestion.mqtt import MqttUpdateFeed, build_update_from_payload
from pyev04.ingestion.pump import FeedSubscription, UpdateFeed
from pyev04.models import Device, DeviceSnapshot, Position
from pyev04.state import (
    ChangeKind,
    DeviceRegistry,
    DeviceUpdate,
    RegistryChange,
    RegistrySnapshot,
    StateSignal,
    UpdateSource,
)

__all__ = [
    "__version__",
    "ChangeKind",
    "DemoUpdateFeed",
    "Device",
    "DeviceRegistry",
    "DeviceSnapshot",
    "DeviceUpdate",
    "FeedMode",
    "FeedSubscription",
    "MqttUpdateFeed",
    "Position",
    "RegistryChange",
    "RegistrySnapshot",
    "StateSignal",
    "TrackerClient",
    "TrackerConfig",
    "TrackerConfigError",
    "TrackerError",
    "TrackerPayloadError",
    "TrackerTransportError",
    "UpdateFeed",
    "UpdateSource",
    "build_update_from_payload",
    "seed_demo_devices",
]
