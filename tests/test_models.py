from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pyev04.models.device import Device, Position
from pyev04.state.events import DeviceUpdate, UpdateSource


def _device(**overrides: object) -> Device:
    values: dict[str, object] = {
        "id": "860000000000001",
        "name": "Daughter",
        "phone": "+27115551234",
        "position": Position(latitude=-26.2041, longitude=28.0473),
    }
    values.update(overrides)
    return Device(**values)  # type: ignore[arg-type]


def test_device_defaults() -> None:
    device = _device()

    assert device.online is True
    assert device.sos_active is False
    assert device.battery_level is None
    assert device.last_update.tzinfo is not None
    assert device.trail == ()


def test_device_strips_and_requires_text_fields() -> None:
    device = _device(id="  860000000000001 ", name=" Daughter ", phone=" +27115551234")
    assert (device.id, device.name, device.phone) == ("860000000000001", "Daughter", "+27115551234")

    for field_name in ("id", "name", "phone"):
        with pytest.raises(ValidationError):
            _device(**{field_name: "   "})


def test_device_id_is_frozen() -> None:
    device = _device()
    with pytest.raises(ValidationError):
        device.id = "other"  # type: ignore[misc]


def test_device_assignment_is_validated() -> None:
    device = _device()
    with pytest.raises(ValidationError):
        device.battery_level = 150
    device.battery_level = 100
    assert device.battery_level == 100


def test_device_from_camel_case_payload() -> None:
    device = Device.model_validate(
        {
            "imei": "860000000000002",
            "name": "Son",
            "phone": "+27215551234",
            "location": {"lat": -33.9249, "lng": 18.4241},
            "sosActive": True,
            "batteryLevel": 12,
            "lastUpdate": "2026-01-01T08:00:00",
        }
    )

    assert device.id == "860000000000002"
    assert device.position == Position(latitude=-33.9249, longitude=18.4241)
    assert device.sos_active is True
    assert device.battery_level == 12
    assert device.last_update == datetime(2026, 1, 1, 8, tzinfo=UTC)


def test_position_rejects_out_of_range_coordinates() -> None:
    with pytest.raises(ValidationError):
        Position(latitude=95.0, longitude=0.0)
    with pytest.raises(ValidationError):
        Position(latitude=0.0, longitude=-181.0)


def test_position_offset_returns_new_position() -> None:
    origin = Position(latitude=1.0, longitude=2.0)
    moved = origin.offset(0.5, -0.5)

    assert moved == Position(latitude=1.5, longitude=1.5)
    assert origin == Position(latitude=1.0, longitude=2.0)


def test_position_offset_clamps_latitude_and_wraps_longitude() -> None:
    moved = Position(latitude=89.9999, longitude=179.9999).offset(0.001, 0.001)

    assert moved.latitude == 90.0
    assert moved.longitude == pytest.approx(-179.9991)

    back = Position(latitude=-89.9999, longitude=-179.9999).offset(-0.001, -0.001)

    assert back.latitude == -90.0
    assert back.longitude == pytest.approx(179.9991)


def test_add_trail_point_evicts_oldest() -> None:
    device = _device()
    points = [Position(latitude=float(i), longitude=0.0) for i in range(4)]

    for point in points:
        device.add_trail_point(point, max_len=2)

    assert device.trail == (points[2], points[3])


def test_snapshot_is_frozen_copy() -> None:
    device = _device()
    device.add_trail_point(device.position)

    snapshot = device.to_snapshot()
    device.add_trail_point(Position(latitude=0.0, longitude=0.0))

    assert len(snapshot.trail) == 1
    with pytest.raises(ValidationError):
        snapshot.name = "changed"  # type: ignore[misc]


def test_update_patch_contains_only_present_fields() -> None:
    update = DeviceUpdate(device_id="A", sos_active=False)

    assert update.patch() == {"sos_active": False}
    assert update.is_present("sos_active")
    assert not update.is_present("position")


def test_update_patch_drops_explicit_none() -> None:
    update = DeviceUpdate(device_id="A", name=None, online=None, battery_level=None)

    assert update.patch() == {}
    assert update.is_present("battery_level")


def test_update_accepts_payload_aliases() -> None:
    update = DeviceUpdate.model_validate(
        {"id": " A ", "location": {"lat": 1, "lng": 2}, "sosActive": True, "timestamp": "2026-01-01T00:00:00"}
    )

    assert update.device_id == "A"
    assert update.position == Position(latitude=1, longitude=2)
    assert update.timestamp == datetime(2026, 1, 1, tzinfo=UTC)
    assert update.source == UpdateSource.MANUAL
    assert set(update.patch()) == {"position", "sos_active"}


def test_update_requires_device_id() -> None:
    with pytest.raises(ValidationError):
        DeviceUpdate(device_id="  ")
