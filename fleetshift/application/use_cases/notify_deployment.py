"""
Notify Deployment Use Case

Architectural Intent:
- Translates deployment domain events into human notifications
- Subscribes to the event bus; the orchestrator never calls it directly

Design Decisions:
- Success sends a resolution, an abort a critical alert, a timed out
  refresh a medium alert
- A notification that cannot be delivered is logged; it never changes the
  outcome of the deployment
"""

import logging

from fleetshift.domain.events.deployment_events import (
    DeploymentAbortedEvent,
    DeploymentSucceededEvent,
    DeploymentTimedOutEvent,
)
from fleetshift.domain.ports.event_bus_port import EventBusPort
from fleetshift.domain.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


class NotifyDeployment:
    def __init__(self, notifier: NotificationPort):
        self.notifier = notifier

    def register(self, event_bus: EventBusPort) -> None:
        event_bus.subscribe(DeploymentSucceededEvent, self.on_succeeded)
        event_bus.subscribe(DeploymentTimedOutEvent, self.on_timed_out)
        event_bus.subscribe(DeploymentAbortedEvent, self.on_aborted)

    async def on_succeeded(self, event: DeploymentSucceededEvent) -> None:
        message = f"{event.artifact} is live in {event.environment}"
        if event.warnings:
            message += "\nWarnings:\n" + "\n".join(f"- {w}" for w in event.warnings)
        delivered = await self.notifier.send_resolution(
            f"Deployed {event.artifact}", message, fleet_id=event.aggregate_id
        )
        self._log_delivery(event, delivered)

    async def on_timed_out(self, event: DeploymentTimedOutEvent) -> None:
        delivered = await self.notifier.send_alert(
            f"Rollout of {event.artifact} timed out",
            f"Instance refresh {event.refresh_id} did not finish in time; "
            "check the fleet before deploying again",
            "medium",
            fleet_id=event.aggregate_id,
        )
        self._log_delivery(event, delivered)

    async def on_aborted(self, event: DeploymentAbortedEvent) -> None:
        delivered = await self.notifier.send_alert(
            f"Deployment of {event.artifact} aborted in {event.phase}",
            event.error_message,
            "critical",
            fleet_id=event.aggregate_id,
        )
        self._log_delivery(event, delivered)

    @staticmethod
    def _log_delivery(event, delivered: bool) -> None:
        if not delivered:
            logger.warning("Notification for %s was not delivered", event.event_type)
