"""MQTT ingestion helpers.

This module translates decoded MQTT messages into device updates and exposes
them as an update feed.

Expected payload (JSON object, placeholders ``null``/``""``/``"--"`` mean absent)::

    {
        "id": "860000000000001",
        "location": {"lat": -26.2041, "lng": 28.0473},
        "online": true,
        "sosActive": false,
        "name": "Daughter",
        "phone": "+27115551234",
        "batteryLevel": 87,
        "timestamp": 1767225600
    }

When the payload has no id, the second topic segment is used
(``ev04/<id>/update``).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pyev04._mqtt import MqttMessage, MqttSettings, TrackerMqttRuntime
from pyev04.config import TrackerConfig
from pyev04.exceptions import TrackerPayloadError
from pyev04.ingestion.normalize import parse_timestamp, prune_patch, safe_bool, safe_float, safe_int, safe_str
from pyev04.models.device import Position
from pyev04.state.events import DeviceUpdate, UpdateSource

_logger = logging.getLogger(__name__)

_ID_KEYS = ("id", "deviceId", "device_id", "imei")
_POSITION_KEYS = ("location", "position")
_LAT_KEYS = ("lat", "latitude")
_LNG_KEYS = ("lng", "lon", "longitude")
_SOS_KEYS = ("sosActive", "sos_active", "sos")
_BATTERY_KEYS = ("batteryLevel", "battery_level", "battery")
_TIMESTAMP_KEYS = ("timestamp", "ts", "time")


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _device_id_from_topic(topic: str) -> str | None:
    parts = [part for part in topic.split("/") if part]
    if len(parts) >= 3:
        return parts[1]
    return None


def _extract_position(data: Mapping[str, Any]) -> Position | None:
    nested = _first(data, _POSITION_KEYS)
    source: Mapping[str, Any] = nested if isinstance(nested, Mapping) else data
    lat = safe_float(_first(source, _LAT_KEYS))
    lng = safe_float(_first(source, _LNG_KEYS))
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise ValueError("position needs both latitude and longitude")
    return Position(latitude=lat, longitude=lng)


def _parse_present(data: Mapping[str, Any], keys: tuple[str, ...], parser: Callable[[Any], Any]) -> Any:
    raw = _first(data, keys)
    if raw is None:
        return None
    value = parser(raw)
    if value is None:
        raise ValueError(f"unparseable {keys[0]}: {raw!r}")
    return value


def build_update_from_payload(payload: Mapping[str, Any], *, topic: str = "") -> DeviceUpdate:
    """Build a :class:`DeviceUpdate` from an MQTT JSON payload.

    Only fields carried by the payload are marked present on the update.

    Raises
    ------
    TrackerPayloadError
        If no device id can be found or a field fails validation.
    """
    cleaned = prune_patch(dict(payload))

    device_id = safe_str(_first(cleaned, _ID_KEYS)) or _device_id_from_topic(topic)
    if not device_id:
        raise TrackerPayloadError("MQTT payload has no device id", topic=topic)

    try:
        optional_values = {
            "online": safe_bool(cleaned.get("online")),
            "sos_active": safe_bool(_first(cleaned, _SOS_KEYS)),
            "name": safe_str(cleaned.get("name")),
            "phone": safe_str(cleaned.get("phone")),
            "battery_level": _parse_present(cleaned, _BATTERY_KEYS, safe_int),
            "timestamp": _parse_present(cleaned, _TIMESTAMP_KEYS, parse_timestamp),
            "position": _extract_position(cleaned),
        }
        fields = {name: value for name, value in optional_values.items() if value is not None}
        return DeviceUpdate(
            device_id=device_id,
            source=UpdateSource.MQTT,
            raw=dict(payload),
            **fields,
        )
    except (ValidationError, ValueError) as exc:
        raise TrackerPayloadError(f"Invalid MQTT payload for {device_id}: {exc}", topic=topic) from exc


class MqttUpdateFeed:
    """Update feed backed by an MQTT broker subscription."""

    def __init__(self, settings: MqttSettings) -> None:
        self._settings = settings
        self._queue: asyncio.Queue[DeviceUpdate | None] = asyncio.Queue()
        self._runtime: TrackerMqttRuntime | None = None
        self._closed = False
        self._rejected = 0

    @classmethod
    def from_config(cls, config: TrackerConfig) -> MqttUpdateFeed:
        return cls(MqttSettings.from_config(config))

    @property
    def settings(self) -> MqttSettings:
        return self._settings

    @property
    def rejected(self) -> int:
        """Number of messages dropped because they could not be parsed."""
        return self._rejected

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Connect to the broker. Raises :class:`TrackerTransportError` on failure."""
        runtime = TrackerMqttRuntime(
            loop=loop or asyncio.get_running_loop(),
            on_message=self.handle_message,
            logger=_logger,
        )
        runtime.start(self._settings)
        self._runtime = runtime

    def handle_message(self, message: MqttMessage) -> None:
        """Queue the update carried by *message* (runs on the loop thread)."""
        if self._closed:
            return
        try:
            update = build_update_from_payload(message.payload, topic=message.topic)
        except TrackerPayloadError:
            self._rejected += 1
            _logger.debug("Dropping MQTT message on %s", message.topic, exc_info=True)
            return
        self._queue.put_nowait(update)

    async def stream(self) -> AsyncIterator[DeviceUpdate]:
        """Yield updates in arrival order until the feed is closed."""
        while True:
            update = await self._queue.get()
            if update is None:
                return
            yield update

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            runtime.stop()
        self._queue.put_nowait(None)
