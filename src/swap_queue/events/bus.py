"""Event bus — synchronous fan-out to subscribers.

Two surfaces:

- ``EventBus`` is owned by the queue manager. It can emit and can drop every
  handler at teardown (``clear_all``).
- ``EventSubscriber`` is what observers get: subscribe and unsubscribe only,
  so one consumer cannot silently deafen another.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from swap_queue.collaborators.ports import DiagnosticsSink
    from swap_queue.events.events import EventKind, QueueEvent

    EventHandler = Callable[[QueueEvent], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``subscribe``; pass it back to ``unsubscribe``."""

    id: int
    kind: EventKind


class EventBus:
    """Synchronous publish/subscribe bus.

    Handlers run in registration order on the emitting coroutine. A handler
    that raises is reported to the diagnostics sink and the remaining
    handlers still run; nothing propagates to the emitter.
    """

    def __init__(self, diagnostics: DiagnosticsSink | None = None) -> None:
        self._handlers: dict[EventKind, dict[int, EventHandler]] = {}
        self._ids = itertools.count(1)
        self._diagnostics = diagnostics

    def subscribe(self, kind: EventKind, handler: EventHandler) -> Subscription:
        """Register *handler* for *kind*."""
        sub = Subscription(id=next(self._ids), kind=kind)
        self._handlers.setdefault(kind, {})[sub.id] = handler
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove one subscription. Returns False if it was not registered."""
        handlers = self._handlers.get(subscription.kind)
        if not handlers or subscription.id not in handlers:
            return False
        del handlers[subscription.id]
        return True

    def handler_count(self, kind: EventKind | None = None) -> int:
        """Number of registered handlers, for one kind or overall."""
        if kind is not None:
            return len(self._handlers.get(kind, {}))
        return sum(len(h) for h in self._handlers.values())

    def emit(self, event: QueueEvent) -> None:
        """Deliver *event* to every handler subscribed to its kind."""
        for sub_id, handler in list(self._handlers.get(event.kind, {}).items()):
            try:
                handler(event)
            except Exception as exc:
                logger.exception("Event handler %d failed for %s", sub_id, event.kind)
                if self._diagnostics is not None:
                    self._diagnostics.report(
                        "event handler failed",
                        {
                            "event": str(event.kind),
                            "task_id": event.task_id,
                            "subscription": sub_id,
                            "error": repr(exc),
                        },
                    )

    def clear_all(self) -> None:
        """Drop every handler for every event (teardown only)."""
        self._handlers.clear()

    def subscriber_view(self) -> EventSubscriber:
        """Return the restricted surface handed to observers."""
        return EventSubscriber(self)


class EventSubscriber:
    """Restricted bus surface: subscribe and unsubscribe only."""

    __slots__ = ("__bus",)

    def __init__(self, bus: EventBus) -> None:
        self.__bus = bus

    def subscribe(self, kind: EventKind, handler: EventHandler) -> Subscription:
        """Register *handler* for *kind*; keep the returned handle to unsubscribe."""
        return self.__bus.subscribe(kind, handler)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove one subscription created through this bus."""
        return self.__bus.unsubscribe(subscription)
