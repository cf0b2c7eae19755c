"""
Slack Notification Adapter

Architectural Intent:
- Implements NotificationPort for Slack incoming-webhook notifications
- Uses stdlib urllib for the HTTP layer (no external dependencies)

Design Decisions:
- Formats alerts with severity-based color coding for Slack UI
- Keeps an in-memory log of every payload it attempted to send
- Delivery failures are logged and reported as False, never raised
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "critical": "#FF0000",
    "high": "#FF6600",
    "medium": "#FFDD00",
    "low": "#0099FF",
}


class SlackAdapter:
    """Slack notification adapter."""

    def __init__(self, webhook_url: str = "", timeout: float = 10.0) -> None:
        """Initialize Slack adapter.

        Args:
            webhook_url: Slack webhook URL for incoming messages
            timeout: Seconds to wait for the webhook to answer
        """
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._messages: dict[str, dict] = {}

    def _post(self, payload: dict) -> bool:
        body = json.dumps({
            "attachments": [{
                "color": payload["color"],
                "title": payload["title"],
                "text": payload["message"],
                "footer": payload["fleet_id"],
            }]
        }).encode("utf-8")
        request = urllib.request.Request(
            self._webhook_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return 200 <= response.status < 300
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            logger.warning("Slack webhook delivery failed: %s", e)
            return False

    async def _send(self, payload: dict) -> bool:
        self._messages[payload["message_id"]] = payload
        if not self._webhook_url:
            logger.info("Slack webhook not configured; dropping %s", payload["message_id"])
            return False
        delivered = await asyncio.get_running_loop().run_in_executor(None, self._post, payload)
        logger.info(
            "Slack %s %s - %s [delivered=%s]",
            payload["type"],
            payload["message_id"],
            payload["title"],
            delivered,
        )
        return delivered

    async def send_alert(
        self, title: str, message: str, severity: str, fleet_id: str = ""
    ) -> bool:
        """Send an alert to Slack.

        Args:
            title: Alert title
            message: Alert message
            severity: Severity level (critical, high, medium, low)
            fleet_id: Optional fleet identifier

        Returns:
            True if the webhook accepted the alert
        """
        return await self._send({
            "message_id": f"SLACK-{uuid.uuid4().hex[:8].upper()}",
            "type": "alert",
            "title": title,
            "message": message,
            "severity": severity,
            "fleet_id": fleet_id,
            "color": SEVERITY_COLORS.get(severity, "#808080"),
        })

    async def send_resolution(
        self, title: str, message: str, fleet_id: str = ""
    ) -> bool:
        """Send a success notification to Slack."""
        return await self._send({
            "message_id": f"SLACK-{uuid.uuid4().hex[:8].upper()}",
            "type": "resolution",
            "title": title,
            "message": message,
            "fleet_id": fleet_id,
            "color": "#00CC00",
        })

    def get_message(self, message_id: str) -> Optional[dict]:
        """Retrieve a sent message by ID (for testing)."""
        return self._messages.get(message_id)
