"""
Notification Port

Architectural Intent:
- Abstract interface for telling humans how a deployment ended
- Delivery mechanics (Slack, email, ...) stay outside the rollout core

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Methods return bool to indicate delivery success; callers never fail a
  deployment because a notification was lost
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotificationPort(Protocol):
    """Port for sending deployment alerts and resolutions."""

    async def send_alert(
        self, title: str, message: str, severity: str, fleet_id: str = ""
    ) -> bool:
        """Send an alert notification.

        Args:
            title: Alert title/subject
            message: Detailed alert message
            severity: Severity level (critical, high, medium, low)
            fleet_id: Optional fleet identifier

        Returns:
            True if notification sent successfully, False otherwise
        """
        ...

    async def send_resolution(
        self, title: str, message: str, fleet_id: str = ""
    ) -> bool:
        """Send a success notification."""
        ...
