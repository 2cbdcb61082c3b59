"""Normalized device update events.

All feeds (demo, MQTT, manual) convert their inputs into these events.
Only the registry is allowed to merge them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from pyev04.models._base import TrackerBaseModel, UtcDatetime, require_text, utcnow
from pyev04.models.device import Position


class UpdateSource(StrEnum):
    DEMO = "demo"
    MQTT = "mqtt"
    MANUAL = "manual"


# Fields an update may carry, in merge order.
PATCH_FIELDS: tuple[str, ...] = (
    "position",
    "online",
    "sos_active",
    "name",
    "phone",
    "battery_level",
)


class DeviceUpdate(TrackerBaseModel):
    """A partial, timestamped observation about one device.

    A field is *present* only when it was passed explicitly; everything
    else means "leave unchanged". See :meth:`patch`.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    device_id: str = Field(..., validation_alias=AliasChoices("device_id", "id", "deviceId", "imei"))
    position: Position | None = Field(default=None, validation_alias=AliasChoices("position", "location"))
    online: bool | None = None
    sos_active: bool | None = None
    name: str | None = None
    phone: str | None = None
    battery_level: int | None = Field(default=None, ge=0, le=100)
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    source: UpdateSource = UpdateSource.MANUAL
    raw: dict[str, Any] = Field(default_factory=dict, description="Original payload (as received)")

    @field_validator("device_id", mode="before")
    @classmethod
    def _normalize_device_id(cls, value: Any) -> str:
        return require_text(value)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        return require_text(value)

    def is_present(self, field_name: str) -> bool:
        """Whether *field_name* was explicitly supplied."""
        return field_name in self.model_fields_set

    def patch(self) -> dict[str, Any]:
        """Return the fields this update changes.

        Absent fields and explicit ``None`` values are omitted, so a merge
        never overwrites a stored value with null.
        """
        patch: dict[str, Any] = {}
        for field_name in PATCH_FIELDS:
            if not self.is_present(field_name):
                continue
            value = getattr(self, field_name)
            if value is None:
                continue
            patch[field_name] = value
        return patch
