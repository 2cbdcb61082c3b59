from __future__ import annotations

from datetime import UTC, datetime
from itertools import islice

import pytest

from pyev04._constants import DEMO_DEVICES
from pyev04.config import TrackerConfig
from pyev04.ingestion.demo import DemoUpdateFeed, demo_devices, seed_demo_devices
from pyev04.models.device import Position
from pyev04.state.events import DeviceUpdate, UpdateSource
from pyev04.state.registry import DeviceRegistry

_FIXED = datetime(2026, 1, 1, tzinfo=UTC)
_START = {
    "A": Position(latitude=-26.2041, longitude=28.0473),
    "B": Position(latitude=-33.9249, longitude=18.4241),
}


def _feed(seed: int | None = 42, **kwargs: object) -> DemoUpdateFeed:
    return DemoUpdateFeed(_START, seed=seed, clock=lambda: _FIXED, **kwargs)  # type: ignore[arg-type]


def _signature(update: DeviceUpdate) -> tuple[str, float, float, object]:
    sos: object = update.sos_active if update.is_present("sos_active") else "absent"
    assert update.position is not None
    return (update.device_id, update.position.latitude, update.position.longitude, sos)


def test_same_seed_produces_identical_sequences() -> None:
    first = [_signature(u) for u in islice(_feed(seed=7).iter_updates(), 500)]
    second = [_signature(u) for u in islice(_feed(seed=7).iter_updates(), 500)]

    assert first == second


def test_different_seeds_diverge() -> None:
    first = [_signature(u) for u in islice(_feed(seed=1).iter_updates(), 50)]
    second = [_signature(u) for u in islice(_feed(seed=2).iter_updates(), 50)]

    assert first != second


def test_iter_updates_restarts_from_seed() -> None:
    feed = _feed(seed=3)

    first = [_signature(u) for u in islice(feed.iter_updates(), 20)]
    again = [_signature(u) for u in islice(feed.iter_updates(), 20)]

    assert first == again


def test_each_step_jitters_previous_position_within_bounds() -> None:
    jitter = 0.0015
    last = dict(_START)

    for update in islice(_feed(seed=11, jitter_degrees=jitter).iter_updates(), 300):
        assert update.device_id in _START
        assert update.position is not None
        previous = last[update.device_id]
        assert abs(update.position.latitude - previous.latitude) <= jitter + 1e-9
        assert abs(update.position.longitude - previous.longitude) <= jitter + 1e-9
        last[update.device_id] = update.position


def test_updates_carry_only_changed_fields() -> None:
    for update in islice(_feed().iter_updates(), 100):
        assert update.source == UpdateSource.DEMO
        assert update.timestamp == _FIXED
        assert set(update.patch()) <= {"position", "sos_active"}
        assert "position" in update.patch()


def test_sos_probability_bounds() -> None:
    never = list(islice(_feed(sos_probability=0.0).iter_updates(), 200))
    always = list(islice(_feed(sos_probability=1.0).iter_updates(), 200))

    assert not any(u.is_present("sos_active") for u in never)
    assert all(u.is_present("sos_active") for u in always)
    assert {u.sos_active for u in always} == {True, False}


def test_sos_is_rare_with_default_probability() -> None:
    updates = list(islice(_feed(seed=5).iter_updates(), 2000))
    signalled = sum(1 for u in updates if u.is_present("sos_active"))

    assert 0 < signalled < 300


def test_both_devices_are_chosen() -> None:
    ids = {u.device_id for u in islice(_feed().iter_updates(), 100)}
    assert ids == {"A", "B"}


def test_feed_requires_devices() -> None:
    with pytest.raises(ValueError):
        DemoUpdateFeed({})


def test_from_config_uses_demo_devices() -> None:
    feed = DemoUpdateFeed.from_config(TrackerConfig(seed=9, feed_interval=0.5))

    assert feed.device_ids == tuple(d[0] for d in DEMO_DEVICES)
    assert feed.interval == 0.5


def test_seed_demo_devices_selects_first() -> None:
    registry = DeviceRegistry()

    devices = seed_demo_devices(registry)

    assert [d.name for d in devices] == ["Daughter", "Son"]
    assert registry.selected_id == DEMO_DEVICES[0][0]
    assert [d.id for d in registry.list_devices()] == [d[0] for d in DEMO_DEVICES]


def test_demo_devices_are_fresh_records() -> None:
    first = demo_devices()
    second = demo_devices()

    first[0].add_trail_point(first[0].position)

    assert second[0].trail == ()


@pytest.mark.asyncio
async def test_stream_emits_until_closed() -> None:
    feed = _feed(seed=42, interval=0.001)
    expected = [_signature(u) for u in islice(feed.iter_updates(), 3)]

    received: list[DeviceUpdate] = []
    async for update in feed.stream():
        received.append(update)
        if len(received) == 3:
            break

    assert [_signature(u) for u in received] == expected

    await feed.aclose()
    await feed.aclose()
    assert feed.closed
    assert [u async for u in feed.stream()] == []


def test_feed_keeps_emitting_near_pole_and_antimeridian() -> None:
    start = {"A": Position(latitude=89.9999, longitude=179.9999), "B": Position(latitude=-89.9999, longitude=-179.9999)}
    feed = DemoUpdateFeed(start, seed=1, clock=lambda: _FIXED)

    updates = list(islice(feed.iter_updates(), 2000))

    assert len(updates) == 2000
    for update in updates:
        assert update.position is not None
        assert -90.0 <= update.position.latitude <= 90.0
        assert -180.0 <= update.position.longitude <= 180.0
