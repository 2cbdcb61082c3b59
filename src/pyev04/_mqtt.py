"""Internal MQTT settings, payload decoding, and runtime helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyev04._redact import redact_for_log
from pyev04.config import TrackerConfig
from pyev04.exceptions import TrackerConfigError, TrackerPayloadError, TrackerTransportError


@dataclass(frozen=True)
class MqttSettings:
    """Broker connection details."""

    host: str
    port: int
    topic: str
    client_id: str = ""
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60

    @classmethod
    def from_config(cls, config: TrackerConfig) -> MqttSettings:
        host = (config.mqtt_host or "").strip()
        if not host:
            raise TrackerConfigError("mqtt_host is not configured")
        return cls(
            host=host,
            port=config.mqtt_port,
            topic=config.mqtt_topic,
            client_id=config.mqtt_client_id,
            username=config.mqtt_username,
            password=config.mqtt_password,
            tls=config.mqtt_tls,
            keepalive=config.mqtt_keepalive,
        )


@dataclass(frozen=True)
class MqttMessage:
    """Decoded MQTT message envelope."""

    topic: str
    payload: dict[str, Any]


def decode_mqtt_payload(payload: bytes, *, topic: str = "") -> dict[str, Any]:
    """Decode MQTT payload bytes into a JSON object."""
    try:
        text = payload.decode("utf-8").strip()
        parsed = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TrackerPayloadError(f"MQTT payload is not valid JSON: {exc}", topic=topic) from exc
    if not isinstance(parsed, dict):
        raise TrackerPayloadError("MQTT payload decoded to non-object JSON", topic=topic)
    return parsed


class TrackerMqttRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[MqttMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def handle_payload(self, topic: str, payload: bytes) -> None:
        """Decode one message and hand it to the loop thread. Called on the network thread."""
        try:
            parsed = decode_mqtt_payload(payload, topic=topic)
        except TrackerPayloadError:
            self._logger.debug("MQTT payload decode failure topic=%s", topic, exc_info=True)
            return
        self._logger.debug("Received PUBLISH topic=%s parsed=%s", topic, redact_for_log(parsed))
        self._loop.call_soon_threadsafe(self._on_message, MqttMessage(topic=topic, payload=parsed))

    def start(self, settings: MqttSettings) -> None:
        """Connect and subscribe with the provided broker details."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        self._topic = settings.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            if self._topic:
                self._logger.debug("MQTT subscribing topic=%s", self._topic)
                c.subscribe(self._topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_payload(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            self._topic = None
            raise TrackerTransportError(
                f"Could not connect to MQTT broker {settings.host}:{settings.port}: {exc}",
                host=settings.host,
                port=settings.port,
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
