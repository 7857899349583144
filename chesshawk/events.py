"""Events emitted by the session engine for UI collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    PUZZLE_LOADED = "puzzle-loaded"
    MOVE_ACCEPTED = "move-accepted"
    MOVE_REJECTED = "move-rejected"
    HINT_REVEALED = "hint-revealed"
    PUZZLE_SOLVED = "puzzle-solved"
    PUZZLE_FAILED = "puzzle-failed"
    STATISTICS_UPDATED = "statistics-updated"


@dataclass(frozen=True)
class Event:
    type: EventType
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type.value, **self.payload}


Listener = Callable[[Event], None]


class EventBus:
    """Synchronous publish/subscribe hub.

    Listeners run in subscription order. A listener that raises is logged
    and skipped; it never interrupts the engine.
    """

    def __init__(self) -> None:
        self._listeners: list[tuple[Listener, frozenset[EventType] | None]] = []

    def subscribe(
        self, listener: Listener, types: set[EventType] | None = None
    ) -> Callable[[], None]:
        """Register ``listener`` for ``types`` (all events when None).

        Returns:
            A callable that removes the subscription.
        """
        entry = (listener, frozenset(types) if types else None)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event_type: EventType, **payload) -> Event:
        event = Event(event_type, payload)
        for listener, types in list(self._listeners):
            if types is not None and event_type not in types:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s", event_type.value)
        return event
