"""
Event Bus Port

Architectural Intent:
- Abstract interface for publishing deployment events
- Lets the orchestrator announce outcomes without knowing who listens
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable
from fleetshift.domain.events.event_base import DomainEvent


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None: ...
