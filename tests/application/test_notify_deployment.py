"""Tests for deployment notifications."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fleetshift.application.use_cases.notify_deployment import NotifyDeployment
from fleetshift.domain.events import (
    DeploymentAbortedEvent,
    DeploymentStartedEvent,
    DeploymentSucceededEvent,
    DeploymentTimedOutEvent,
)
from fleetshift.infrastructure.event_bus import EventBus


def _notifier(delivered=True):
    notifier = MagicMock()
    notifier.send_alert = AsyncMock(return_value=delivered)
    notifier.send_resolution = AsyncMock(return_value=delivered)
    return notifier


class TestNotifyDeployment:
    @pytest.mark.asyncio
    async def test_success_sends_resolution(self):
        notifier = _notifier()
        bus = EventBus()
        NotifyDeployment(notifier).register(bus)

        await bus.publish([DeploymentSucceededEvent(
            aggregate_id="asg", artifact="acme/api:a1", environment="staging",
            warnings=("[HealthChecking] no answer",),
        )])

        notifier.send_resolution.assert_awaited_once()
        title, message = notifier.send_resolution.call_args.args
        assert "acme/api:a1" in title
        assert "no answer" in message
        assert notifier.send_resolution.call_args.kwargs["fleet_id"] == "asg"

    @pytest.mark.asyncio
    async def test_abort_sends_critical_alert(self):
        notifier = _notifier()
        bus = EventBus()
        NotifyDeployment(notifier).register(bus)

        await bus.publish([DeploymentAbortedEvent(
            aggregate_id="asg", artifact="acme/api:a1", phase="Publishing",
            error_message="push denied",
        )])

        args = notifier.send_alert.call_args.args
        assert args[2] == "critical"
        assert "Publishing" in args[0]

    @pytest.mark.asyncio
    async def test_timeout_sends_medium_alert(self):
        notifier = _notifier()
        bus = EventBus()
        NotifyDeployment(notifier).register(bus)

        await bus.publish([DeploymentTimedOutEvent(aggregate_id="asg", refresh_id="r-9")])

        args = notifier.send_alert.call_args.args
        assert args[2] == "medium"
        assert "r-9" in args[1]

    @pytest.mark.asyncio
    async def test_started_is_not_announced(self):
        notifier = _notifier()
        bus = EventBus()
        NotifyDeployment(notifier).register(bus)

        await bus.publish([DeploymentStartedEvent(aggregate_id="asg")])

        notifier.send_alert.assert_not_awaited()
        notifier.send_resolution.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_raise(self):
        notifier = _notifier()
        notifier.send_alert = AsyncMock(side_effect=RuntimeError("webhook down"))
        bus = EventBus()
        NotifyDeployment(notifier).register(bus)

        await bus.publish([DeploymentAbortedEvent(aggregate_id="asg")])
