"""Change notification for the device registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

_logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    SELECTED = "selected"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class RegistryChange:
    """Emitted after every mutating registry operation.

    Listeners should re-read registry state rather than treat this as a delta.
    """

    kind: ChangeKind
    device_id: str


Listener = Callable[[RegistryChange], None]


class StateSignal:
    """Synchronous observer list.

    Listeners run in connection order. A failing listener is logged and
    does not prevent the others from running.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def connect(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a callable that disconnects it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.disconnect(listener)

        return unsubscribe

    def disconnect(self, listener: Listener) -> None:
        """Remove *listener*; no-op if it is not connected."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return

    def emit(self, change: RegistryChange) -> None:
        # Copy so listeners may disconnect while being notified.
        for listener in tuple(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.warning("State listener %r failed for %s", listener, change, exc_info=True)
