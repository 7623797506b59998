"""Event listener registry.

Holds two listener tables:
- System listeners, keyed by event name, for events recognised process-wide
- Definition listeners, keyed by (event name, definition name)

One EventRegistry is constructed at startup and passed to the wiring code,
so tests can use a fresh instance per case.
"""

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_GLOBAL_EVENTS: tuple[str, ...] = (
    "newInstance",
    "destroyingInstance",
    "destroyedInstance",
    "dataPushed",
    "activityPushed",
    "commentPushed",
    "serviceBootstrapped",
    "clientAppRegistrationSuccess",
    "clientAppRegistrationFailed",
)

DEFAULT_LISTENER_DESCRIPTION = "Unique to definition"


@dataclass(frozen=True)
class Listener:
    """A registered event handler."""

    event: str
    handler: Callable[..., Any]
    description: str = ""
    definition_name: Optional[str] = None


class EventRegistry:
    """System-wide and per-definition event listener tables."""

    def __init__(self, global_events: Optional[Iterable[str]] = None):
        if global_events is None:
            global_events = DEFAULT_GLOBAL_EVENTS
        self.global_events: frozenset[str] = frozenset(global_events)
        self._system: dict[str, list[Listener]] = {}
        self._definition: dict[tuple[str, str], list[Listener]] = {}

    def is_global_event(self, event: str) -> bool:
        """True if *event* is registered against the system-wide table."""
        return event in self.global_events

    def register_system_listener(self, event: str, handler: Callable[..., Any]) -> None:
        self._system.setdefault(event, []).append(Listener(event=event, handler=handler))
        logger.debug(f"Registered system listener for '{event}'")

    def register_definition_listener(
        self,
        event: str,
        definition_name: str,
        handler: Callable[..., Any],
        description: str = DEFAULT_LISTENER_DESCRIPTION,
    ) -> None:
        listener = Listener(
            event=event,
            handler=handler,
            description=description,
            definition_name=definition_name,
        )
        self._definition.setdefault((event, definition_name), []).append(listener)
        logger.debug(f"Registered listener for '{event}' on definition '{definition_name}'")

    def system_listeners(self, event: str) -> list[Listener]:
        return list(self._system.get(event, []))

    def definition_listeners(self, event: str, definition_name: str) -> list[Listener]:
        return list(self._definition.get((event, definition_name), []))

    def definition_events(self, definition_name: str) -> list[str]:
        """Event names with at least one listener for *definition_name*."""
        return sorted(
            event for (event, name) in self._definition if name == definition_name
        )

    async def emit(
        self,
        event: str,
        payload: Any = None,
        definition_name: Optional[str] = None,
    ) -> list[Any]:
        """Call every listener for *event* and return their results.

        Definition listeners run only when *definition_name* is given, and
        before the system listeners. Handlers may be plain functions or
        coroutine functions. Handler errors propagate to the caller.
        """
        listeners: list[Listener] = []
        if definition_name is not None:
            listeners.extend(self.definition_listeners(event, definition_name))
        listeners.extend(self.system_listeners(event))

        if not listeners:
            logger.debug(f"No listeners for event '{event}'")
            return []

        results = []
        for listener in listeners:
            result = listener.handler(payload)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)
        return results

    def clear(self) -> None:
        """Drop every registered listener."""
        self._system.clear()
        self._definition.clear()
