"""Feed subscription.

Connects an update feed to a registry through an ``asyncio.Queue``:
a producer task pushes feed events onto the queue and a consumer task merges
them into the registry in FIFO order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Protocol

from pyev04.exceptions import TrackerError
from pyev04.state.events import DeviceUpdate
from pyev04.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


class UpdateFeed(Protocol):
    def stream(self) -> AsyncIterator[DeviceUpdate]: ...

    async def aclose(self) -> None: ...


class FeedSubscription:
    """Attach a feed to a registry until :meth:`stop` is called.

    Once ``stop()`` has been called no further update is merged, even if
    events are still queued. A stopped subscription cannot be restarted.
    """

    def __init__(self, registry: DeviceRegistry, feed: UpdateFeed, *, maxsize: int = 0) -> None:
        self._registry = registry
        self._feed = feed
        self._queue: asyncio.Queue[DeviceUpdate] = asyncio.Queue(maxsize=maxsize)
        self._producer: asyncio.Task[None] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._stopped = False
        self._applied = 0

    @property
    def is_running(self) -> bool:
        return self._producer is not None and not self._stopped

    @property
    def applied(self) -> int:
        """Number of updates handed to the registry."""
        return self._applied

    def start(self) -> None:
        """Start the producer and consumer tasks on the running loop."""
        if self._stopped:
            raise TrackerError("Feed subscription was stopped and cannot be restarted")
        if self._producer is not None:
            raise TrackerError("Feed subscription already started")
        self._producer = asyncio.create_task(self._produce(), name="pyev04-feed-producer")
        self._consumer = asyncio.create_task(self._consume(), name="pyev04-feed-consumer")
        _logger.debug("Feed subscription started for %s", type(self._feed).__name__)

    async def stop(self) -> None:
        """Detach from the feed. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True

        tasks = [t for t in (self._producer, self._consumer) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        discarded = self._queue.qsize()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        try:
            await self._feed.aclose()
        finally:
            _logger.debug("Feed subscription stopped (applied=%d, discarded=%d)", self._applied, discarded)

    async def join(self) -> None:
        """Wait until every queued update has been merged."""
        await self._queue.join()

    async def _produce(self) -> None:
        try:
            async for update in self._feed.stream():
                if self._stopped:
                    return
                await self._queue.put(update)
        except Exception:
            _logger.warning("Update feed %s failed", type(self._feed).__name__, exc_info=True)

    async def _consume(self) -> None:
        while True:
            update = await self._queue.get()
            try:
                if self._stopped:
                    return
                self._registry.apply_update(update)
                self._applied += 1
            except Exception:
                _logger.warning("Failed to merge update for %s", update.device_id, exc_info=True)
            finally:
                self._queue.task_done()
