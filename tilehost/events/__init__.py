"""Event listener tables for system-wide and per-definition events."""

from tilehost.events.registry import (
    DEFAULT_GLOBAL_EVENTS,
    DEFAULT_LISTENER_DESCRIPTION,
    EventRegistry,
    Listener,
)

__all__ = [
    "DEFAULT_GLOBAL_EVENTS",
    "DEFAULT_LISTENER_DESCRIPTION",
    "EventRegistry",
    "Listener",
]
