"""Tracker configuration for pyev04."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any

from pyev04._constants import (
    DEFAULT_FEED_INTERVAL_S,
    DEFAULT_JITTER_DEGREES,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_TOPIC,
    DEFAULT_SEED,
    DEFAULT_SOS_PROBABILITY,
    TRAIL_MAX_LEN,
)
from pyev04.exceptions import TrackerConfigError


class FeedMode(StrEnum):
    DEMO = "demo"
    MQTT = "mqtt"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value.strip())
    except ValueError as exc:
        raise TrackerConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    feed_mode : FeedMode
        Where updates come from: the seeded demo feed or an MQTT broker.
    seed : int or None
        Seed for the demo feed's random generator. ``None`` seeds from
        system entropy (non-reproducible).
    feed_interval : float
        Seconds between demo feed emissions.
    jitter_degrees : float
        Maximum per-axis offset (degrees) applied by the demo feed.
    sos_probability : float
        Chance per emission that the demo feed signals an SOS change.
    trail_max_len : int
        Maximum number of positions kept per device trail.
    seed_demo_devices : bool
        Add the two demo devices to the registry on startup.
    mqtt_host : str or None
        Broker host name. Required when ``feed_mode`` is ``mqtt``.
    mqtt_port : int
        Broker port.
    mqtt_topic : str
        Topic filter to subscribe to.
    mqtt_username, mqtt_password : str or None
        Optional broker credentials.
    mqtt_tls : bool
        Enable TLS with the system CA bundle.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_client_id : str
        Client id sent to the broker. Empty lets the broker assign one.
    """

    feed_mode: FeedMode = FeedMode.DEMO
    seed: int | None = DEFAULT_SEED
    feed_interval: float = DEFAULT_FEED_INTERVAL_S
    jitter_degrees: float = DEFAULT_JITTER_DEGREES
    sos_probability: float = DEFAULT_SOS_PROBABILITY
    trail_max_len: int = TRAIL_MAX_LEN
    seed_demo_devices: bool = True
    mqtt_host: str | None = None
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_topic: str = DEFAULT_MQTT_TOPIC
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = DEFAULT_MQTT_KEEPALIVE
    mqtt_client_id: str = ""

    def __post_init__(self) -> None:
        try:
            mode = FeedMode(self.feed_mode)
        except ValueError as exc:
            raise TrackerConfigError(f"Unknown feed mode: {self.feed_mode!r}") from exc
        object.__setattr__(self, "feed_mode", mode)

        if self.feed_interval <= 0:
            raise TrackerConfigError(f"feed_interval must be positive, got {self.feed_interval}")
        if self.jitter_degrees < 0:
            raise TrackerConfigError(f"jitter_degrees must not be negative, got {self.jitter_degrees}")
        if not 0.0 <= self.sos_probability <= 1.0:
            raise TrackerConfigError(f"sos_probability must be between 0 and 1, got {self.sos_probability}")
        if self.trail_max_len < 1:
            raise TrackerConfigError(f"trail_max_len must be at least 1, got {self.trail_max_len}")
        if mode == FeedMode.MQTT and not (self.mqtt_host or "").strip():
            raise TrackerConfigError("mqtt_host is required when feed_mode is 'mqtt'")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads optional ``EV04_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.

        Raises
        ------
        TrackerConfigError
            If a numeric variable cannot be parsed or the result is invalid.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "EV04_FEED_MODE": "feed_mode",
            "EV04_MQTT_HOST": "mqtt_host",
            "EV04_MQTT_TOPIC": "mqtt_topic",
            "EV04_MQTT_USERNAME": "mqtt_username",
            "EV04_MQTT_PASSWORD": "mqtt_password",
            "EV04_MQTT_CLIENT_ID": "mqtt_client_id",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "EV04_SEED": ("seed", int),
            "EV04_FEED_INTERVAL": ("feed_interval", float),
            "EV04_JITTER_DEGREES": ("jitter_degrees", float),
            "EV04_SOS_PROBABILITY": ("sos_probability", float),
            "EV04_TRAIL_MAX_LEN": ("trail_max_len", int),
            "EV04_MQTT_PORT": ("mqtt_port", int),
            "EV04_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val.strip()

        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        if "seed_demo_devices" not in overrides:
            config_kwargs["seed_demo_devices"] = _env_bool(env.get("EV04_SEED_DEMO_DEVICES"), True)

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("EV04_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
