"""Tracked device and position models."""

from __future__ import annotations

from collections import deque
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, PrivateAttr, field_validator

from pyev04._constants import TRAIL_MAX_LEN
from pyev04.models._base import TrackerBaseModel, UtcDatetime, require_text, utcnow


class Position(TrackerBaseModel):
    """A geographic position in floating point degrees.

    Parameters
    ----------
    latitude : float
        Latitude in degrees, -90 to 90.
    longitude : float
        Longitude in degrees, -180 to 180.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    def offset(self, d_lat: float, d_lng: float) -> Position:
        """Return a new position shifted by the given degrees.

        Latitude is clamped at the poles; longitude wraps across the antimeridian.
        """
        latitude = min(90.0, max(-90.0, self.latitude + d_lat))
        longitude = self.longitude + d_lng
        if not -180.0 <= longitude <= 180.0:
            longitude = (longitude + 180.0) % 360.0 - 180.0
        return Position(latitude=latitude, longitude=longitude)


class Device(TrackerBaseModel):
    """One tracked unit.

    Mutable fields are validated on assignment; ``id`` is frozen.

    Parameters
    ----------
    id : str
        Opaque device identifier (IMEI or UUID).
    name : str
        Display name.
    phone : str
        SIM phone number.
    position : Position
        Current position.
    online : bool
        Whether the device is currently reachable.
    sos_active : bool
        Whether the device is signalling an emergency.
    battery_level : int or None
        Battery percentage, 0-100, when known.
    last_update : datetime
        Timestamp of the last applied update (UTC).
    """

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    id: str = Field(frozen=True, validation_alias=AliasChoices("id", "deviceId", "imei"))
    name: str
    phone: str
    position: Position = Field(validation_alias=AliasChoices("position", "location"))
    online: bool = True
    sos_active: bool = False
    battery_level: int | None = Field(default=None, ge=0, le=100)
    last_update: UtcDatetime = Field(default_factory=utcnow)

    # Oldest first.
    _trail: deque[Position] = PrivateAttr(default_factory=deque)

    @field_validator("id", "name", "phone", mode="before")
    @classmethod
    def _strip_required_text(cls, value: Any) -> str:
        return require_text(value)

    @property
    def trail(self) -> tuple[Position, ...]:
        """Recent positions, oldest first."""
        return tuple(self._trail)

    def add_trail_point(self, position: Position, *, max_len: int = TRAIL_MAX_LEN) -> None:
        """Append *position*, evicting from the front beyond *max_len* entries."""
        self._trail.append(position)
        while len(self._trail) > max_len:
            self._trail.popleft()

    def to_snapshot(self) -> DeviceSnapshot:
        return DeviceSnapshot(
            id=self.id,
            name=self.name,
            phone=self.phone,
            position=self.position,
            online=self.online,
            sos_active=self.sos_active,
            battery_level=self.battery_level,
            last_update=self.last_update,
            trail=self.trail,
        )


class DeviceSnapshot(TrackerBaseModel):
    """Immutable copy of a device, including its trail."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    phone: str
    position: Position
    online: bool
    sos_active: bool
    battery_level: int | None = None
    last_update: UtcDatetime
    trail: tuple[Position, ...] = ()
