"""Custom exception hierarchy for pyev04."""

from __future__ import annotations


class TrackerError(Exception):
    """Base exception for all pyev04 errors."""


class TrackerConfigError(TrackerError):
    """Invalid or missing configuration."""


class TrackerPayloadError(TrackerError):
    """A feed payload could not be turned into a device update.

    Raised for undecodable bytes, non-object JSON, a missing device id or
    field values that fail validation (e.g. latitude out of range).
    """

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class TrackerTransportError(TrackerError):
    """Broker-level failure (connection refused, DNS, TLS)."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)
