"""Durable per-project workflow state with Markdown mirrors."""

from workstate.events import Event, EventBus, EventType
from workstate.projects import ProjectNotFoundError, ProjectRegistry
from workstate.store import ProjectStateStore, open_store

__all__ = [
    "Event",
    "EventBus",
    "EventType",
    "ProjectNotFoundError",
    "ProjectRegistry",
    "ProjectStateStore",
    "open_store",
]
