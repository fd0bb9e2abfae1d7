"""Timer event system for broadcasting clock and feedback state.

Decouples the looping timer from whatever renders it: the window (or a
test, or the CLI) subscribes to the event types it cares about.

Usage:
    emitter = TimerEventEmitter()
    emitter.subscribe(TimerEventType.SNAPSHOT, lambda evt: print(evt.data["remaining_s"]))
    emitter.emit(TimerEvent(TimerEventType.SNAPSHOT, data={"remaining_s": 29.5}))
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Optional


class TimerEventType(Enum):
    """Types of events published by the looping timer."""

    SNAPSHOT = auto()      # Clock refreshed (every scheduler wake-up)
    FEEDBACK = auto()      # A boundary crossing was announced
    VISIBILITY = auto()    # Host surface visibility changed
    CAPABILITY = auto()    # Feedback channel negotiation changed state
    ERROR = auto()         # Non-fatal error worth surfacing


# Per-refresh events are too frequent to log individually
_QUIET_TYPES = frozenset({TimerEventType.SNAPSHOT})


@dataclass
class TimerEvent:
    """Represents a timer event with optional payload data.

    Attributes:
        event_type: Type of event that occurred
        data: Optional dictionary with event-specific data
        timestamp: Optional timestamp (set by the emitter when missing)
    """
    event_type: TimerEventType
    data: Optional[dict[str, Any]] = None
    timestamp: Optional[float] = None

    def __str__(self) -> str:
        if self.data:
            data_str = ", ".join(f"{k}={v}" for k, v in self.data.items())
            return f"TimerEvent({self.event_type.name}, {data_str})"
        return f"TimerEvent({self.event_type.name})"


class TimerEventEmitter:
    """Event bus for timer state changes.

    Subscriber exceptions are logged and never reach the emitter, so a broken
    renderer cannot stall the refresh loop.
    """

    def __init__(self):
        self._subscribers: dict[TimerEventType, list[Callable[[TimerEvent], None]]] = {}
        self.logger = logging.getLogger(__name__)

    def subscribe(
        self,
        event_type: TimerEventType,
        callback: Callable[[TimerEvent], None]
    ) -> None:
        """Subscribe to a specific event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives TimerEvent)
        """
        callbacks = self._subscribers.setdefault(event_type, [])
        if callback not in callbacks:
            callbacks.append(callback)
            self.logger.debug("[events] Subscribed to %s (total=%d)", event_type.name, len(callbacks))

    def unsubscribe(
        self,
        event_type: TimerEventType,
        callback: Callable[[TimerEvent], None]
    ) -> None:
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)
            self.logger.debug("[events] Unsubscribed from %s (total=%d)", event_type.name, len(callbacks))

    def emit(self, event: TimerEvent) -> None:
        """Emit an event to all subscribed callbacks."""
        if event.timestamp is None:
            event.timestamp = time.time()

        if event.event_type not in _QUIET_TYPES:
            self.logger.debug("[events] Emitting: %s", event)

        for callback in list(self._subscribers.get(event.event_type, ())):
            try:
                callback(event)
            except Exception as e:
                self.logger.error("[events] Callback error for %s: %s", event.event_type.name, e, exc_info=True)

    def clear_all(self) -> None:
        """Remove all event subscribers (useful for testing/cleanup)."""
        self._subscribers.clear()
        self.logger.debug("[events] Cleared all subscribers")
