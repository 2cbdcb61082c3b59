"""Seeded demo feed.

Simulates device movement and occasional SOS changes. Given the same seed and
start positions, the emitted sequence is reproducible.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Callable, Iterator, Mapping
from datetime import datetime

from pyev04._constants import (
    DEFAULT_FEED_INTERVAL_S,
    DEFAULT_JITTER_DEGREES,
    DEFAULT_SEED,
    DEFAULT_SOS_PROBABILITY,
    DEMO_DEVICES,
)
from pyev04.config import TrackerConfig
from pyev04.models._base import utcnow
from pyev04.models.device import Device, Position
from pyev04.state.events import DeviceUpdate, UpdateSource
from pyev04.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


def demo_devices() -> list[Device]:
    """Build fresh records for the built-in demo devices."""
    return [
        Device(
            id=device_id,
            name=name,
            phone=phone,
            position=Position(latitude=lat, longitude=lng),
        )
        for device_id, name, phone, lat, lng in DEMO_DEVICES
    ]


def seed_demo_devices(registry: DeviceRegistry) -> list[Device]:
    """Add the demo devices to *registry* and return them."""
    devices = demo_devices()
    for device in devices:
        registry.add_device(device)
    return devices


class DemoUpdateFeed:
    """Infinite feed that jitters positions and randomly signals SOS.

    Parameters
    ----------
    start_positions : Mapping[str, Position]
        Candidate device ids and the position each one starts from.
    seed : int or None
        Seed for the private random generator.
    interval : float
        Seconds to wait before each emission in :meth:`stream`.
    jitter_degrees : float
        Maximum per-axis offset applied to the previous position.
    sos_probability : float
        Chance per emission that an SOS value (true or false) is included.
    clock : callable
        Returns the emission timestamp.
    """

    def __init__(
        self,
        start_positions: Mapping[str, Position],
        *,
        seed: int | None = DEFAULT_SEED,
        interval: float = DEFAULT_FEED_INTERVAL_S,
        jitter_degrees: float = DEFAULT_JITTER_DEGREES,
        sos_probability: float = DEFAULT_SOS_PROBABILITY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not start_positions:
            raise ValueError("DemoUpdateFeed needs at least one device")
        self._ids: tuple[str, ...] = tuple(start_positions)
        self._start_positions = dict(start_positions)
        self._seed = seed
        self._interval = interval
        self._jitter = jitter_degrees
        self._sos_probability = sos_probability
        self._clock = clock
        self._closed = False

    @classmethod
    def from_config(cls, config: TrackerConfig, *, clock: Callable[[], datetime] = utcnow) -> DemoUpdateFeed:
        """Feed for the built-in demo devices, tuned by *config*."""
        return cls(
            {device.id: device.position for device in demo_devices()},
            seed=config.seed,
            interval=config.feed_interval,
            jitter_degrees=config.jitter_degrees,
            sos_probability=config.sos_probability,
            clock=clock,
        )

    @property
    def device_ids(self) -> tuple[str, ...]:
        return self._ids

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def closed(self) -> bool:
        return self._closed

    def iter_updates(self) -> Iterator[DeviceUpdate]:
        """Yield the reproducible update sequence without waiting.

        Each call starts a fresh sequence from the seed and start positions.
        """
        rng = random.Random(self._seed)
        last = dict(self._start_positions)
        while True:
            device_id = rng.choice(self._ids)
            d_lat = (rng.random() - 0.5) * 2 * self._jitter
            d_lng = (rng.random() - 0.5) * 2 * self._jitter
            position = last[device_id].offset(d_lat, d_lng)
            last[device_id] = position

            if rng.random() < self._sos_probability:
                yield DeviceUpdate(
                    device_id=device_id,
                    position=position,
                    sos_active=rng.random() < 0.5,
                    timestamp=self._clock(),
                    source=UpdateSource.DEMO,
                )
            else:
                yield DeviceUpdate(
                    device_id=device_id,
                    position=position,
                    timestamp=self._clock(),
                    source=UpdateSource.DEMO,
                )

    async def stream(self) -> AsyncIterator[DeviceUpdate]:
        """Emit one update every ``interval`` seconds until closed."""
        updates = self.iter_updates()
        while not self._closed:
            await asyncio.sleep(self._interval)
            if self._closed:
                return
            update = next(updates)
            _logger.debug("Demo feed emitted update for %s", update.device_id)
            yield update

    async def aclose(self) -> None:
        self._closed = True
