# src/tablesweep/core/events.py
"""Synchronous event bus connecting the dispatcher to CLI formatters.

Handlers run on the emitting thread. Progress events come from worker
threads, so handlers must be safe to call concurrently; the CLI formatters
only write single lines with ``typer.echo``.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Interface shared by EventBus and NullEventBus."""

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None: ...

    def emit(self, event: T) -> None: ...


class EventBus:
    """Dispatch events to handlers subscribed by exact event type.

    Subscribe before a sweep starts; the subscriber table is not locked and
    is only read while workers are running. Handler exceptions propagate to
    the emitter.

    Example:
        bus = EventBus()
        bus.subscribe(TableSkipped, lambda e: print(f"skipped {e.table_id}"))
        bus.emit(TableSkipped(table_id="acct/Logs", reason="not found"))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def emit(self, event: T) -> None:
        """Call every handler for ``type(event)`` in subscription order.

        Events without subscribers are ignored.
        """
        for handler in self._subscribers.get(type(event), []):
            handler(event)


class NullEventBus:
    """Event bus that drops everything.

    Deliberately not an EventBus subclass: subscribing here is a no-op, and
    inheriting would hide that from a caller expecting callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        pass

    def emit(self, event: T) -> None:
        pass
