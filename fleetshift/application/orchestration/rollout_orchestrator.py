"""
Rollout Orchestrator

Architectural Intent:
- Sequences one deployment run through an explicit phase state machine:
  Publishing -> TemplateUpdate -> RefreshStarting -> RefreshWaiting ->
  HealthChecking -> Recording -> Done, with Aborted reachable on any fatal
  error
- Control only moves forward; no phase retries an earlier one. Restarting an
  already started refresh could duplicate instance churn, so the only retries
  live inside a phase (health probing)

Failure Semantics:
- A fatal error aborts immediately with no rollback; a started refresh keeps
  running provider-side
- An aborted run still writes its DeploymentRecord (outcome Failed) before
  settling in Aborted
- A refresh wait that exhausts its budget is a warning: the run records
  outcome TimedOut instead of failing
- Health check exhaustion is a warning under fail-open and fatal under
  fail-closed
"""

from __future__ import annotations
import contextlib
import logging
import time
from datetime import datetime, UTC
from typing import Callable, Optional

from fleetshift.application.dtos.rollout_dtos import (
    HealthPolicy,
    PipelineState,
    RolloutResult,
    RolloutSettings,
)
from fleetshift.domain.entities.deployment import DeploymentOutcome, DeploymentRequest
from fleetshift.domain.errors import (
    DeploymentError,
    FleetApiError,
    HealthCheckExhausted,
    RefreshFailure,
    RefreshTimeout,
)
from fleetshift.domain.events.deployment_events import (
    DeploymentAbortedEvent,
    DeploymentStartedEvent,
    DeploymentSucceededEvent,
    DeploymentTimedOutEvent,
)
from fleetshift.domain.ports.artifact_publisher_port import ArtifactPublisherPort
from fleetshift.domain.ports.event_bus_port import EventBusPort
from fleetshift.domain.ports.parameter_store_port import ParameterStorePort
from fleetshift.domain.services.boot_template_manager import FleetBootTemplateManager
from fleetshift.domain.services.deployment_recorder import DeploymentRecorder
from fleetshift.domain.services.health_verifier import HealthVerifier, build_health_url
from fleetshift.domain.services.refresh_controller import FleetRefreshController
from fleetshift.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset(
        {PipelineState.PUBLISHING, PipelineState.SKIPPED, PipelineState.ABORTED}
    ),
    PipelineState.PUBLISHING: frozenset({PipelineState.TEMPLATE_UPDATE, PipelineState.ABORTED}),
    PipelineState.TEMPLATE_UPDATE: frozenset({PipelineState.REFRESH_STARTING, PipelineState.ABORTED}),
    PipelineState.REFRESH_STARTING: frozenset({PipelineState.REFRESH_WAITING, PipelineState.ABORTED}),
    PipelineState.REFRESH_WAITING: frozenset(
        {PipelineState.HEALTH_CHECKING, PipelineState.RECORDING, PipelineState.ABORTED}
    ),
    PipelineState.HEALTH_CHECKING: frozenset({PipelineState.RECORDING, PipelineState.ABORTED}),
    PipelineState.RECORDING: frozenset({PipelineState.DONE}),
    PipelineState.DONE: frozenset(),
    PipelineState.ABORTED: frozenset(),
    PipelineState.SKIPPED: frozenset(),
}


class RolloutOrchestrator:
    def __init__(
        self,
        publisher: ArtifactPublisherPort,
        template_manager: FleetBootTemplateManager,
        refresh_controller: FleetRefreshController,
        health_verifier: HealthVerifier,
        recorder: DeploymentRecorder,
        settings: RolloutSettings,
        parameter_store: Optional[ParameterStorePort] = None,
        event_bus: Optional[EventBusPort] = None,
        telemetry: Optional[OTELExporter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.publisher = publisher
        self.template_manager = template_manager
        self.refresh_controller = refresh_controller
        self.health_verifier = health_verifier
        self.recorder = recorder
        self.settings = settings
        self.parameter_store = parameter_store
        self.event_bus = event_bus
        self.telemetry = telemetry
        self._clock = clock

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(result: RolloutResult, target: PipelineState) -> None:
        current = result.final_state
        if target not in _TRANSITIONS[current]:
            raise ValueError(f"Illegal pipeline transition {current.value} -> {target.value}")
        logger.info("Pipeline %s -> %s", current.value, target.value)
        result.final_state = target
        result.history.append(target)

    def _span(self, result: RolloutResult):
        if self.telemetry is None:
            return contextlib.nullcontext()
        request = result.request
        return self.telemetry.phase_span(
            result.final_state.value,
            {"fleet_id": str(request.fleet_id), "artifact": str(request.artifact)},
        )

    @staticmethod
    def skipped(environment: str) -> RolloutResult:
        """Result of a run for an environment that is not deployable."""
        logger.info("Environment %r is not deployable; nothing to do", environment)
        result = RolloutResult()
        RolloutOrchestrator._transition(result, PipelineState.SKIPPED)
        return result

    @staticmethod
    def rejected(error: DeploymentError) -> RolloutResult:
        """Result of a run refused before any external call was made."""
        logger.error("Deployment rejected: %s", error)
        result = RolloutResult(error=error)
        RolloutOrchestrator._transition(result, PipelineState.ABORTED)
        return result

    async def run(self, request: DeploymentRequest) -> RolloutResult:
        result = RolloutResult(request=request)
        started_at = datetime.now(UTC).isoformat()
        started = self._clock()

        self._transition(result, PipelineState.PUBLISHING)
        await self._publish_events([
            DeploymentStartedEvent(
                aggregate_id=str(request.fleet_id),
                artifact=str(request.artifact),
                environment=request.environment.value,
            )
        ])

        try:
            await self._run_phases(result, started_at)
        except DeploymentError as e:
            self._abort(result, e, started_at)
        except Exception as e:
            logger.exception("Unexpected error during %s", result.final_state.value)
            self._abort(
                result,
                DeploymentError(f"Unexpected error: {e}", phase=result.final_state.value),
                started_at,
            )

        if self.telemetry is not None and result.outcome is not None:
            self.telemetry.record_rollout(
                str(request.fleet_id),
                request.environment.value,
                result.outcome.value,
                self._clock() - started,
            )
        await self._publish_events([self._final_event(result)])
        logger.info(result.summary())
        return result

    async def _run_phases(self, result: RolloutResult, started_at: str) -> None:
        request = result.request
        settings = self.settings

        with self._span(result):
            if settings.skip_publish:
                logger.info("Skipping publish; assuming %s is already pushed", request.artifact)
            else:
                await self.publisher.publish(
                    request.artifact,
                    extra_tags=settings.extra_tags,
                    build_args={
                        "GIT_COMMIT": request.source.commit,
                        "BUILD_DATE": started_at,
                        "ENVIRONMENT": request.environment.value,
                    },
                )
        self._transition(result, PipelineState.TEMPLATE_UPDATE)

        with self._span(result):
            instructions = settings.boot.instructions(request)
            result.template = await self.template_manager.publish_instructions(
                request.fleet_id, instructions
            )
        self._transition(result, PipelineState.REFRESH_STARTING)

        with self._span(result):
            result.refresh = await self.refresh_controller.start(
                request.fleet_id, result.template, settings.policy
            )
        self._transition(result, PipelineState.REFRESH_WAITING)

        with self._span(result):
            wait = await self.refresh_controller.await_terminal(
                result.refresh, settings.poll_interval, settings.refresh_timeout
            )
            result.refresh_wait = wait
            result.refresh = result.refresh.with_status(wait.status)
            if self.telemetry is not None:
                self.telemetry.record_refresh_polls(str(request.fleet_id), wait.polls, wait.timed_out)

        if wait.timed_out:
            warning = RefreshTimeout(
                f"Refresh {result.refresh.refresh_id} still {wait.status.value} after "
                f"{wait.elapsed_seconds:.0f}s; its final state is unknown, check the fleet manager"
            )
            logger.warning(str(warning))
            result.warnings.append(warning)
            self._transition(result, PipelineState.RECORDING)
            self._record(result, DeploymentOutcome.TIMED_OUT, started_at, detail=str(warning))
            self._transition(result, PipelineState.DONE)
            return

        if not wait.succeeded:
            raise RefreshFailure(
                f"Refresh {result.refresh.refresh_id} ended {wait.status.value}",
                status=wait.status.value,
            )

        self._transition(result, PipelineState.HEALTH_CHECKING)
        with self._span(result):
            await self._check_health(result)
        self._transition(result, PipelineState.RECORDING)

        detail = "; ".join(str(w) for w in result.warnings)
        self._record(result, DeploymentOutcome.SUCCESS, started_at, detail=detail)
        self._transition(result, PipelineState.DONE)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _resolve_endpoint(self) -> Optional[str]:
        settings = self.settings
        endpoint = settings.health_endpoint
        if not endpoint and settings.health_endpoint_parameter and self.parameter_store:
            try:
                endpoint = await self.parameter_store.get_parameter(
                    settings.health_endpoint_parameter
                )
            except FleetApiError as e:
                logger.warning(
                    "Could not read %s: %s", settings.health_endpoint_parameter, e
                )
                endpoint = None
        if not endpoint:
            return None
        return build_health_url(endpoint, settings.health_path)

    async def _check_health(self, result: RolloutResult) -> None:
        settings = self.settings
        url = await self._resolve_endpoint()

        if url is None:
            warning = HealthCheckExhausted(
                "No health endpoint configured or found in the parameter store; "
                "smoke test skipped"
            )
        else:
            healthy = await self.health_verifier.verify(
                url, settings.health_max_attempts, settings.health_attempt_spacing
            )
            result.health_verified = healthy
            if self.telemetry is not None:
                self.telemetry.record_health_attempts(
                    str(result.request.fleet_id), self.health_verifier.attempts_made, healthy
                )
            if healthy:
                return
            warning = HealthCheckExhausted(
                f"{url} did not answer healthy after {settings.health_max_attempts} attempts"
            )

        if settings.health_policy is HealthPolicy.FAIL_CLOSED:
            raise warning
        logger.warning(str(warning))
        result.warnings.append(warning)

    def _record(
        self,
        result: RolloutResult,
        outcome: DeploymentOutcome,
        started_at: str,
        detail: str = "",
    ) -> None:
        result.outcome = outcome
        result.record = self.recorder.record(
            result.request,
            outcome,
            started_at=started_at,
            template_version=result.template.version if result.template else None,
            refresh_id=result.refresh.refresh_id if result.refresh else None,
            health_verified=result.health_verified,
            detail=detail,
        )

    def _abort(self, result: RolloutResult, error: DeploymentError, started_at: str) -> None:
        if not error.phase:
            error.phase = result.final_state.value
        logger.error("Deployment aborted: %s", error)
        result.error = error
        if result.final_state.is_final:
            return
        self._record(result, DeploymentOutcome.FAILED, started_at, detail=str(error))
        self._transition(result, PipelineState.ABORTED)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _final_event(self, result: RolloutResult):
        request = result.request
        base = dict(
            aggregate_id=str(request.fleet_id),
            artifact=str(request.artifact),
            environment=request.environment.value,
        )
        if result.final_state is PipelineState.ABORTED:
            return DeploymentAbortedEvent(
                **base,
                phase=result.error.phase if result.error else "",
                error_message=str(result.error) if result.error else "",
            )
        if result.outcome is DeploymentOutcome.TIMED_OUT:
            return DeploymentTimedOutEvent(
                **base, refresh_id=result.refresh.refresh_id if result.refresh else ""
            )
        return DeploymentSucceededEvent(
            **base, warnings=tuple(str(w) for w in result.warnings)
        )

    async def _publish_events(self, events: list) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(events)
