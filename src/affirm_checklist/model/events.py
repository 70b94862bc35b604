# src/affirm_checklist/model/events.py

"""Session lifecycle events.

The session manager publishes what happens to the model session; UIs subscribe and
decide how to render it (console line, progress bar, nothing at all).

    bus = SessionEventBus()
    unsubscribe = bus.subscribe(lambda ev: print(ev.type, ev.progress))
    ...
    unsubscribe()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class SessionEventType(StrEnum):
    AVAILABILITY = "availability"
    DOWNLOADING = "downloading"
    TIMEOUT = "timeout"
    READY = "ready"
    FAILED = "failed"
    DESTROYED = "destroyed"


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: SessionEventType
    progress: float | None = None  # percent, DOWNLOADING only
    availability: str | None = None  # AVAILABILITY only
    error_kind: str | None = None  # FAILED only
    message: str = ""

    @classmethod
    def downloading(cls, pct: float) -> SessionEvent:
        return cls(SessionEventType.DOWNLOADING, progress=pct)

    @classmethod
    def ready(cls) -> SessionEvent:
        return cls(SessionEventType.READY)

    @classmethod
    def failed(cls, kind: str, message: str = "") -> SessionEvent:
        return cls(SessionEventType.FAILED, error_kind=kind, message=message)


SessionListener = Callable[[SessionEvent], None]


class SessionEventBus:
    """Synchronous publish-subscribe channel. A failing listener never breaks publishing."""

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: SessionEvent) -> None:
        logger.debug("Session event %s", event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("Session event listener failed for %s", event.type, exc_info=True)
