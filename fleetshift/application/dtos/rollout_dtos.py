"""
Rollout DTOs

Architectural Intent:
- Data Transfer Objects for the rollout orchestrator boundary
- RolloutSettings is the immutable, provider-neutral view of configuration
  the orchestrator needs; RolloutResult is what one run produced
- Exit codes are derived from the result here so every entry point maps
  outcomes the same way
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fleetshift.domain.entities.boot_template import BootInstructions, TemplateRevision
from fleetshift.domain.entities.deployment import (
    DeploymentOutcome,
    DeploymentRecord,
    DeploymentRequest,
)
from fleetshift.domain.entities.refresh_operation import (
    RefreshOperation,
    RefreshWaitResult,
    RolloutPolicy,
)
from fleetshift.domain.errors import ConfigurationError, DeploymentError

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CONFIGURATION = 2
EXIT_WARNING = 3


class PipelineState(Enum):
    IDLE = "Idle"
    PUBLISHING = "Publishing"
    TEMPLATE_UPDATE = "TemplateUpdate"
    REFRESH_STARTING = "RefreshStarting"
    REFRESH_WAITING = "RefreshWaiting"
    HEALTH_CHECKING = "HealthChecking"
    RECORDING = "Recording"
    DONE = "Done"
    ABORTED = "Aborted"
    SKIPPED = "Skipped"

    @property
    def is_final(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.ABORTED, PipelineState.SKIPPED)


class HealthPolicy(Enum):
    FAIL_OPEN = "fail-open"
    FAIL_CLOSED = "fail-closed"


@dataclass(frozen=True)
class BootProfile:
    """Per-fleet boot settings combined with a request into BootInstructions."""
    registry_user: str
    region: str = "us-east-1"
    container_name: str = "starttech-backend"
    port: int = 8080
    log_group: str = "/starttech/backend"
    registry_password_parameter: str = "/starttech/docker-hub-password"
    metrics_config: str = "ssm:AmazonCloudWatch-linux"
    passthrough_env: tuple[str, ...] = ("MONGODB_URL", "REDIS_URL")

    def instructions(self, request: DeploymentRequest) -> BootInstructions:
        return BootInstructions(
            artifact=request.artifact,
            registry_user=self.registry_user,
            environment=request.environment.value,
            git_commit=request.source.commit,
            region=self.region,
            container_name=self.container_name,
            port=self.port,
            log_group=self.log_group,
            registry_password_parameter=self.registry_password_parameter,
            metrics_config=self.metrics_config,
            passthrough_env=self.passthrough_env,
        )


@dataclass(frozen=True)
class RolloutSettings:
    boot: BootProfile
    policy: RolloutPolicy = field(default_factory=RolloutPolicy)
    poll_interval: float = 30.0
    refresh_timeout: float = 600.0
    health_endpoint: str = ""
    health_endpoint_parameter: str = ""
    health_path: str = "/health"
    health_max_attempts: int = 10
    health_attempt_spacing: float = 30.0
    health_policy: HealthPolicy = HealthPolicy.FAIL_OPEN
    extra_tags: tuple[str, ...] = ()
    skip_publish: bool = False


@dataclass
class RolloutResult:
    """Everything one orchestrator run observed."""
    request: Optional[DeploymentRequest] = None
    final_state: PipelineState = PipelineState.IDLE
    outcome: Optional[DeploymentOutcome] = None
    record: Optional[DeploymentRecord] = None
    template: Optional[TemplateRevision] = None
    refresh: Optional[RefreshOperation] = None
    refresh_wait: Optional[RefreshWaitResult] = None
    health_verified: Optional[bool] = None
    warnings: list[DeploymentError] = field(default_factory=list)
    error: Optional[DeploymentError] = None
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.final_state is PipelineState.DONE and self.outcome is DeploymentOutcome.SUCCESS

    @property
    def skipped(self) -> bool:
        return self.final_state is PipelineState.SKIPPED

    def summary(self) -> str:
        if self.skipped:
            return "Deployment skipped: environment is not deployable"
        if self.error is not None:
            return f"Deployment aborted: {self.error}"
        outcome = self.outcome.value if self.outcome else "unknown"
        if self.warnings:
            return f"Deployment finished ({outcome}) with {len(self.warnings)} warning(s)"
        return f"Deployment finished ({outcome})"


def exit_code_for(result: RolloutResult) -> int:
    if isinstance(result.error, ConfigurationError):
        return EXIT_CONFIGURATION
    if result.final_state is PipelineState.ABORTED or result.error is not None:
        return EXIT_ABORTED
    if result.final_state is PipelineState.SKIPPED:
        return EXIT_OK
    if result.final_state is not PipelineState.DONE:
        return EXIT_ABORTED
    if result.warnings or result.outcome is not DeploymentOutcome.SUCCESS:
        return EXIT_WARNING
    return EXIT_OK
