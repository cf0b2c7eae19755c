"""
Fleet Refresh Controller

Architectural Intent:
- Domain service that triggers and observes managed rolling replacements
- Enforces at most one active refresh per fleet (check-then-start)
- Owns the bounded wait for a refresh to reach a terminal status

Domain Logic:
- start() reads the fleet's refreshes right before starting; any Pending or
  InProgress refresh fails fast with RefreshStartError. The window between
  the read and the start is a known race; the provider rejects concurrent
  refreshes as well and that rejection maps to the same error.
- poll() is a pure read.
- await_terminal() samples every poll_interval and returns as soon as the
  status is terminal. Once the budget is spent it returns a timed-out result
  carrying the last non-terminal status. The call returns within
  timeout + poll_interval of invocation.
- A poll that fails transiently is logged and counted as a sample; the wait
  keeps going until the budget runs out.
"""

from __future__ import annotations
import asyncio
import logging
import time
from typing import Awaitable, Callable

from fleetshift.domain.entities.refresh_operation import (
    RefreshOperation,
    RefreshStatus,
    RefreshWaitResult,
    RolloutPolicy,
)
from fleetshift.domain.entities.boot_template import TemplateRevision
from fleetshift.domain.errors import FleetApiError, RefreshStartError
from fleetshift.domain.ports.fleet_refresh_port import FleetRefreshPort
from fleetshift.domain.value_objects.fleet_id import FleetId

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_TIMEOUT_BUDGET = 600.0


class FleetRefreshController:
    def __init__(
        self,
        refresh_port: FleetRefreshPort,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._refreshes = refresh_port
        self._sleep = sleep
        self._clock = clock

    async def start(
        self,
        fleet_id: FleetId,
        revision: TemplateRevision,
        policy: RolloutPolicy,
    ) -> RefreshOperation:
        try:
            existing = await self._refreshes.list_refreshes(fleet_id)
        except FleetApiError as e:
            raise RefreshStartError(
                f"Could not read current refreshes for fleet {fleet_id}: {e}"
            ) from e

        active = [(rid, status) for rid, status in existing if status.is_active]
        if active:
            refresh_id, status = active[0]
            raise RefreshStartError(
                f"Refresh {refresh_id} is already {status.value} for fleet {fleet_id}"
            )

        try:
            refresh_id = await self._refreshes.start_refresh(
                fleet_id, revision.template_id, revision.version, policy
            )
        except FleetApiError as e:
            raise RefreshStartError(
                f"Fleet manager refused to start a refresh for {fleet_id}: {e}"
            ) from e

        logger.info(
            "Started refresh %s on fleet %s with template %s "
            "(min healthy %d%%, warmup %ds)",
            refresh_id,
            fleet_id,
            revision,
            policy.min_healthy_percentage,
            policy.instance_warmup_seconds,
        )
        return RefreshOperation(
            refresh_id=refresh_id,
            fleet_id=fleet_id,
            template_id=revision.template_id,
            template_version=revision.version,
            policy=policy,
            status=RefreshStatus.IN_PROGRESS,
        )

    async def poll(self, operation: RefreshOperation) -> RefreshStatus:
        return await self._refreshes.get_refresh_status(
            operation.fleet_id, operation.refresh_id
        )

    async def await_terminal(
        self,
        operation: RefreshOperation,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT_BUDGET,
    ) -> RefreshWaitResult:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        started = self._clock()
        polls = 0
        status = operation.status
        last_error = None

        while True:
            polls += 1
            try:
                status = await self.poll(operation)
                last_error = None
            except FleetApiError as e:
                last_error = str(e)
                logger.warning(
                    "Polling refresh %s failed (attempt %d): %s",
                    operation.refresh_id,
                    polls,
                    e,
                )
            else:
                logger.info("Refresh %s status: %s", operation.refresh_id, status.value)
                if status.is_terminal:
                    return RefreshWaitResult(
                        status=status,
                        timed_out=False,
                        elapsed_seconds=self._clock() - started,
                        polls=polls,
                    )

            elapsed = self._clock() - started
            if elapsed >= timeout:
                break
            await self._sleep(min(poll_interval, timeout - elapsed))
            if self._clock() - started >= timeout:
                break

        elapsed = self._clock() - started
        logger.warning(
            "Refresh %s did not finish within %.0fs (last status %s)",
            operation.refresh_id,
            timeout,
            status.value,
        )
        return RefreshWaitResult(
            status=status,
            timed_out=True,
            elapsed_seconds=elapsed,
            polls=polls,
            last_error=last_error,
        )
