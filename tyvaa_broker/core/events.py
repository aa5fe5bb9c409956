"""Event emitter: in-process observer registry for broker lifecycle events."""

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

from tyvaa_broker.core.logging import get_logger

logger = get_logger(__name__)

# Listeners receive the event payload (dict, or the exception for "error")
EventListener = Callable[[Any], None]


def _event_name(event: str | Enum) -> str:
    """Normalize an event to its string name (BrokerEvent members carry it as value)."""
    return event.value if isinstance(event, Enum) else event


class EventEmitter:
    """
    Synchronous listener registry keyed by event name.

    Listeners run in registration order. A failing listener is logged and
    skipped; it never breaks the emitting operation or the other listeners.
    Each registration is tracked on its own, so a callable registered twice
    is called twice and must be removed twice.
    """

    def __init__(self):
        # event name -> [(listener, once), ...] in registration order
        self._listeners: dict[str, list[tuple[EventListener, bool]]] = defaultdict(list)

    def on(self, event: str, listener: EventListener) -> None:
        """Register a listener for an event."""
        self._listeners[_event_name(event)].append((listener, False))

    def once(self, event: str, listener: EventListener) -> None:
        """Register a listener that is removed after its first call."""
        self._listeners[_event_name(event)].append((listener, True))

    def off(self, event: str, listener: EventListener) -> None:
        """Remove the earliest registration of a listener. Unknown listeners are ignored."""
        event = _event_name(event)
        registrations = self._listeners.get(event)
        if not registrations:
            return
        for index, (registered, _) in enumerate(registrations):
            if registered == listener:
                del registrations[index]
                break
        if not registrations:
            del self._listeners[event]

    def emit(self, event: str, payload: Any = None) -> int:
        """
        Call every listener registered for ``event`` with ``payload``.

        Returns:
            int: Number of listeners called
        """
        event = _event_name(event)
        registrations = self._listeners.get(event)
        if not registrations:
            return 0

        snapshot = list(registrations)
        # once-registrations are consumed before any listener runs
        remaining = [entry for entry in registrations if not entry[1]]
        if remaining:
            self._listeners[event] = remaining
        else:
            del self._listeners[event]

        for listener, _ in snapshot:
            try:
                listener(payload)
            except Exception as e:
                logger.warning(
                    "Event listener failed",
                    stage="EVENTS.EMIT",
                    broker_event=event,
                    error=str(e),
                )
        return len(snapshot)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(_event_name(event), ()))

    def remove_all_listeners(self, event: str | None = None) -> None:
        """Remove listeners for one event, or for all events when ``event`` is None."""
        if event is None:
            self._listeners.clear()
            return
        self._listeners.pop(_event_name(event), None)
