from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from itertools import islice

import pytest

from pyev04.exceptions import TrackerError
from pyev04.ingestion.demo import DemoUpdateFeed, seed_demo_devices
from pyev04.ingestion.pump import FeedSubscription
from pyev04.models.device import Device, Position
from pyev04.state.events import DeviceUpdate
from pyev04.state.registry import DeviceRegistry


class _ListFeed:
    def __init__(self, updates: list[DeviceUpdate], *, fail_after: bool = False) -> None:
        self._updates = updates
        self._fail_after = fail_after
        self.closed = False

    async def stream(self) -> AsyncIterator[DeviceUpdate]:
        for update in self._updates:
            yield update
        if self._fail_after:
            raise RuntimeError("feed broke")

    async def aclose(self) -> None:
        self.closed = True


class _ManualFeed:
    def __init__(self) -> None:
        self.queue: asyncio.Queue[DeviceUpdate] = asyncio.Queue()
        self.close_calls = 0

    async def stream(self) -> AsyncIterator[DeviceUpdate]:
        while True:
            yield await self.queue.get()

    async def aclose(self) -> None:
        self.close_calls += 1


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


def _registry() -> DeviceRegistry:
    registry = DeviceRegistry()
    registry.add_device(
        Device(id="A", name="Alpha", phone="+100", position=Position(latitude=0.0, longitude=0.0))
    )
    return registry


def _moves(count: int) -> list[DeviceUpdate]:
    return [DeviceUpdate(device_id="A", position=Position(latitude=float(i), longitude=0.0)) for i in range(count)]


@pytest.mark.asyncio
async def test_updates_are_applied_in_emission_order() -> None:
    registry = _registry()
    updates = _moves(5)
    subscription = FeedSubscription(registry, _ListFeed(updates))

    subscription.start()
    await _wait_for(lambda: subscription.applied == 5)
    await subscription.stop()

    assert list(registry.trail("A")) == [u.position for u in updates]


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_closes_feed() -> None:
    feed = _ManualFeed()
    subscription = FeedSubscription(_registry(), feed)
    subscription.start()
    assert subscription.is_running

    await subscription.stop()
    await subscription.stop()

    assert not subscription.is_running
    assert feed.close_calls == 1


@pytest.mark.asyncio
async def test_stop_before_start_is_safe() -> None:
    feed = _ManualFeed()
    subscription = FeedSubscription(_registry(), feed)

    await subscription.stop()

    assert feed.close_calls == 1
    with pytest.raises(TrackerError):
        subscription.start()


@pytest.mark.asyncio
async def test_no_merge_after_stop() -> None:
    registry = _registry()
    feed = _ManualFeed()
    subscription = FeedSubscription(registry, feed)
    subscription.start()

    feed.queue.put_nowait(DeviceUpdate(device_id="A", sos_active=True))
    await _wait_for(lambda: subscription.applied == 1)
    await subscription.stop()

    feed.queue.put_nowait(DeviceUpdate(device_id="A", sos_active=False))
    await asyncio.sleep(0.01)

    assert registry.get("A").sos_active is True  # type: ignore[union-attr]
    assert subscription.applied == 1


@pytest.mark.asyncio
async def test_start_twice_raises() -> None:
    subscription = FeedSubscription(_registry(), _ManualFeed())
    subscription.start()
    try:
        with pytest.raises(TrackerError):
            subscription.start()
    finally:
        await subscription.stop()


@pytest.mark.asyncio
async def test_unknown_device_updates_are_dropped_not_fatal() -> None:
    registry = _registry()
    updates = [DeviceUpdate(device_id="ghost", online=False), *_moves(2)]
    subscription = FeedSubscription(registry, _ListFeed(updates))

    subscription.start()
    await _wait_for(lambda: subscription.applied == 3)
    await subscription.stop()

    assert registry.dropped_updates == 1
    assert len(registry.trail("A")) == 2


@pytest.mark.asyncio
async def test_failing_feed_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    registry = _registry()
    subscription = FeedSubscription(registry, _ListFeed(_moves(1), fail_after=True))

    with caplog.at_level(logging.WARNING, logger="pyev04.ingestion.pump"):
        subscription.start()
        await _wait_for(lambda: any("feed" in r.getMessage() for r in caplog.records))
    await subscription.stop()

    assert subscription.applied == 1
    assert len(registry.trail("A")) == 1


@pytest.mark.asyncio
async def test_demo_feed_drives_registry_reproducibly() -> None:
    registry = DeviceRegistry()
    seed_demo_devices(registry)
    start = {d.id: d.position for d in registry.list_devices()}
    live_feed = DemoUpdateFeed(start, seed=21, interval=0.001)
    subscription = FeedSubscription(registry, live_feed)

    subscription.start()
    await _wait_for(lambda: subscription.applied >= 5)
    await subscription.stop()
    applied = subscription.applied

    replay = DeviceRegistry()
    seed_demo_devices(replay)
    for update in islice(DemoUpdateFeed(start, seed=21).iter_updates(), applied):
        replay.apply_update(update)

    for device in registry.list_devices():
        twin = replay.get(device.id)
        assert twin is not None
        assert device.position == twin.position
        assert device.trail == twin.trail
        assert device.sos_active == twin.sos_active
