"""Events — queue lifecycle notifications.

Provides:
- ``EventBus`` — internal synchronous fan-out bus
- ``EventSubscriber`` — restricted subscribe/unsubscribe view for observers
- ``QueueEvent`` / ``EventKind`` — event envelope and kinds
"""

from __future__ import annotations

from swap_queue.events.bus import EventBus, EventSubscriber, Subscription
from swap_queue.events.events import EventKind, QueueEvent

__all__ = ["EventBus", "EventKind", "EventSubscriber", "QueueEvent", "Subscription"]
