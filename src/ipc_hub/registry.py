"""Name-keyed registries for coordinator handlers and worker listeners."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .errors import InvalidArgument
from .protocol.schema import CallDefinition, EventDefinition

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Listener = Callable[[Any], Any]


def resolve_name(name: str | CallDefinition[Any, Any] | EventDefinition[Any], source: str) -> str:
    """Return the wire name, rejecting anything but a non-empty string or definition.

    Raises:
        InvalidArgument: If ``name`` is not usable
    """
    if isinstance(name, (CallDefinition, EventDefinition)):
        name = name.name
    if not isinstance(name, str) or not name:
        raise InvalidArgument(f"[{source}] param name must be a non-empty string, got {name!r}")
    return name


def require_callable(fn: Any, param: str, source: str) -> None:
    if not callable(fn):
        raise InvalidArgument(f"[{source}] param {param} is not callable: {fn!r}")


class HandlerRegistry:
    """Maps a call name to exactly one handler.

    Registering a name twice replaces the earlier handler.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def set(self, name: str, handler: Handler) -> None:
        if name in self._handlers:
            logger.debug(f"Replacing handler for '{name}'")
        self._handlers[name] = handler

    def remove(self, name: str) -> bool:
        return self._handlers.pop(name, None) is not None

    def get(self, name: str) -> Handler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class ListenerRegistry:
    """Maps an event name to an ordered list of listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add(self, name: str, listener: Listener) -> None:
        self._listeners.setdefault(name, []).append(listener)

    def remove(self, name: str, listener: Listener | None = None) -> None:
        """Remove all listeners for ``name``, or the first occurrence of ``listener``."""
        if listener is None:
            self._listeners.pop(name, None)
            return

        listeners = self._listeners.get(name)
        if not listeners or listener not in listeners:
            return
        listeners.remove(listener)
        if not listeners:
            del self._listeners[name]

    def snapshot(self, name: str) -> list[Listener]:
        """Copy of the listeners for ``name``, safe against mutation during fan-out."""
        return list(self._listeners.get(name, []))

    def count(self, name: str | None = None) -> int:
        if name is not None:
            return len(self._listeners.get(name, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def names(self) -> list[str]:
        return sorted(self._listeners)

    def __contains__(self, name: object) -> bool:
        return name in self._listeners
