"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus implementation for publishing deployment events
- Supports async subscription handlers
- A failing handler is logged and skipped; listeners never change the
  outcome of the run that raised the event
"""

import logging
from typing import Callable, Awaitable
from fleetshift.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[DomainEvent], Awaitable[None]]]] = {}

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            for handler in self._handlers.get(type(event), []):
                try:
                    await handler(event)
                except Exception:
                    logger.exception(
                        "Handler %r failed for %s", handler, event.event_type
                    )

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None:
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
