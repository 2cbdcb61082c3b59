"""High-level async client wiring a registry to an update feed."""

from __future__ import annotations

import logging
from typing import Any

from pyev04.config import FeedMode, TrackerConfig
from pyev04.exceptions import TrackerError
from pyev04.ingestion.demo import DemoUpdateFeed, seed_demo_devices
from pyev04.ingestion.mqtt import MqttUpdateFeed
from pyev04.ingestion.pump import FeedSubscription, UpdateFeed
from pyev04.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


class TrackerClient:
    """Owns a device registry and keeps it fed while open.

    Usage::

        async with TrackerClient(TrackerConfig.from_env()) as client:
            client.registry.changed.connect(on_change)
            ...
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        registry: DeviceRegistry | None = None,
        feed: UpdateFeed | None = None,
    ) -> None:
        self._config = config if config is not None else TrackerConfig()
        if registry is None:
            registry = DeviceRegistry(trail_max_len=self._config.trail_max_len)
        self._registry = registry
        self._feed = feed
        self._subscription: FeedSubscription | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrackerClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Build the feed, then seed demo devices (if configured) and attach it."""
        if self._subscription is not None:
            raise TrackerError("Client already started")

        feed = self._feed if self._feed is not None else self._build_feed()
        self._feed = feed
        if self._config.seed_demo_devices:
            seed_demo_devices(self._registry)
        self._subscription = FeedSubscription(self._registry, feed)
        self._subscription.start()
        _logger.debug(
            "Tracker client started mode=%s devices=%d",
            self._config.feed_mode,
            len(self._registry),
        )

    async def stop(self) -> None:
        """Detach the feed. Safe to call more than once."""
        subscription = self._subscription
        if subscription is None:
            return
        await subscription.stop()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def feed(self) -> UpdateFeed | None:
        return self._feed

    @property
    def subscription(self) -> FeedSubscription | None:
        return self._subscription

    def _build_feed(self) -> UpdateFeed:
        if self._config.feed_mode == FeedMode.MQTT:
            mqtt_feed = MqttUpdateFeed.from_config(self._config)
            mqtt_feed.start()
            return mqtt_feed
        return DemoUpdateFeed.from_config(self._config)
