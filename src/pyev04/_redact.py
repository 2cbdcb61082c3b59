"""Helpers for safe debug logging.

Feed payloads carry phone numbers and broker credentials. This module
redacts them before emitting DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "username",
        "token",
        "authorization",
    }
)

# Masked rather than dropped so log lines stay distinguishable per device.
_PHONE_KEYS: frozenset[str] = frozenset({"phone", "msisdn", "simnumber"})


def mask_phone(value: str, *, keep: int = 4) -> str:
    """Mask all but the last *keep* digits of a phone number."""
    digits = [ch for ch in value if ch.isdigit()]
    if len(digits) <= keep:
        return "<redacted>"
    return "*" * (len(digits) - keep) + "".join(digits[-keep:])


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _PHONE_KEYS and v is not None:
                redacted[key] = mask_phone(str(v))
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)
