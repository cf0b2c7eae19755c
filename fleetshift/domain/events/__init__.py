"""
Domain Events Package

Architectural Intent:
- Contains domain events raised when a deployment run ends
- Events are the mechanism for notifying external channels
"""

from fleetshift.domain.events.event_base import DomainEvent
from fleetshift.domain.events.deployment_events import (
    DeploymentStartedEvent,
    DeploymentSucceededEvent,
    DeploymentTimedOutEvent,
    DeploymentAbortedEvent,
)

__all__ = [
    "DomainEvent",
    "DeploymentStartedEvent",
    "DeploymentSucceededEvent",
    "DeploymentTimedOutEvent",
    "DeploymentAbortedEvent",
]
