"""
Synchronous event bus for state changes.

Handlers run on the emitting thread, in registration order. A handler that
raises is logged and skipped; the remaining handlers still run.

Usage:
    bus = EventBus()
    sub = bus.subscribe(EventType.SCOPE_UPDATED, lambda event: print(event.payload))
    bus.emit(EventType.SCOPE_UPDATED, scope, "ProjectStateStore", project_id)
    sub.dispose()
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event types carried on the bus. Values are the wire names."""

    PROJECT_CREATED = "project-created"
    PROJECT_SELECTED = "project-selected"
    PROJECT_UPDATED = "project-updated"
    PROJECT_DELETED = "project-deleted"
    PROJECT_PATH_UPDATED = "project-path-updated"
    PROJECT_STRUCTURE_UPDATED = "project-structure-updated"
    PHASE_COMPLETED = "phase-completed"
    REQUIREMENTS_UPDATED = "requirements-updated"
    SCOPE_UPDATED = "scope-updated"
    MOCKUP_CREATED = "mockup-created"
    IMPLEMENTATION_PROGRESS = "implementation-progress"


@dataclass
class Event:
    type: EventType
    payload: Any
    source: str
    project_id: Optional[str] = None
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))


Handler = Callable[[Event], None]


class Subscription:
    """Handle returned by subscribe(); dispose() removes the handler."""

    def __init__(self, bus: "EventBus", entry: tuple):
        self._bus = bus
        self._entry = entry

    def dispose(self) -> None:
        self._bus._remove(self._entry)


class EventBus:
    """Typed publish/subscribe bus. Construct one and pass it to every component."""

    def __init__(self):
        self._entries: list[tuple[Callable[[Event], bool], Handler]] = []
        self._lock = threading.Lock()

    def _add(self, matches: Callable[[Event], bool], handler: Handler) -> Subscription:
        entry = (matches, handler)
        with self._lock:
            self._entries.append(entry)
        return Subscription(self, entry)

    def _remove(self, entry: tuple) -> None:
        with self._lock:
            self._entries = [e for e in self._entries if e is not entry]

    def subscribe(self, event_type: EventType, handler: Handler) -> Subscription:
        """Call handler for every event of event_type."""
        event_type = EventType(event_type)
        return self._add(lambda event: event.type is event_type, handler)

    def subscribe_all(self, handler: Handler) -> Subscription:
        """Call handler for every event."""
        return self._add(lambda event: True, handler)

    def subscribe_project(self, project_id: str, handler: Handler) -> Subscription:
        """Call handler for every event about project_id."""
        return self._add(lambda event: event.project_id == project_id, handler)

    def emit(
        self,
        event_type: EventType,
        payload: Any,
        source: str,
        project_id: Optional[str] = None,
    ) -> Event:
        """Deliver an event to every matching handler and return it.

        The handler list is snapshotted first, so handlers may subscribe,
        dispose, or emit further events without affecting this delivery.
        """
        event = Event(type=EventType(event_type), payload=payload, source=source, project_id=project_id)
        with self._lock:
            entries = list(self._entries)

        suffix = f" for project {project_id}" if project_id else ""
        logger.debug(f"Event emitted: {event.type.value} from {source}{suffix}")

        for matches, handler in entries:
            if not matches(event):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler {getattr(handler, '__name__', handler)!r} failed on {event.type.value}")
        return event

    def handler_count(self) -> int:
        with self._lock:
            return len(self._entries)
