"""Base model shared by pyev04 models.

Every model inherits from :class:`TrackerBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase payload keys
  (``sosActive``, ``batteryLevel``) map to snake_case fields.
* ``populate_by_name`` so Python callers can use field names.

Timestamps use :data:`UtcDatetime`, which coerces naive datetimes to UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def require_text(value: Any) -> str:
    """Strip *value* and reject empty strings."""
    text = str(value).strip()
    if not text:
        raise ValueError("must be non-empty")
    return text


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Datetime that is always timezone-aware (naive input is assumed UTC)."""


class TrackerBaseModel(BaseModel):
    """Base for pyev04 models."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
    )
