"""
Composition Root

Architectural Intent:
- Dependency injection composition root for fleetshift
- Single place where all adapters, domain services and use cases are wired
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Adapters, the sleep function and the clock can be passed in to replace
  the defaults (tests, dry runs)
- The orchestrator is built per invocation from the loaded configuration so
  command-line overrides reach every phase
- The Slack notifier is subscribed to the event bus only when a webhook is
  configured
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from fleetshift.application.dtos.rollout_dtos import (
    BootProfile,
    HealthPolicy,
    RolloutSettings,
)
from fleetshift.application.orchestration.rollout_orchestrator import RolloutOrchestrator
from fleetshift.application.use_cases.deploy_backend import DeployBackend
from fleetshift.application.use_cases.notify_deployment import NotifyDeployment
from fleetshift.domain.entities.refresh_operation import RolloutPolicy
from fleetshift.domain.errors import ConfigurationError
from fleetshift.domain.ports.artifact_publisher_port import ArtifactPublisherPort
from fleetshift.domain.ports.health_probe_port import HealthProbePort
from fleetshift.domain.ports.source_control_port import SourceControlPort
from fleetshift.domain.services.boot_template_manager import FleetBootTemplateManager
from fleetshift.domain.services.deployment_recorder import DeploymentRecorder
from fleetshift.domain.services.health_verifier import HealthVerifier
from fleetshift.domain.services.refresh_controller import FleetRefreshController
from fleetshift.infrastructure.adapters.aws_adapter import AWSFleetAdapter
from fleetshift.infrastructure.adapters.docker_publisher import DockerPublisher
from fleetshift.infrastructure.adapters.git_source_adapter import GitSourceAdapter
from fleetshift.infrastructure.adapters.http_health_probe import HttpHealthProbe
from fleetshift.infrastructure.adapters.slack_adapter import SlackAdapter
from fleetshift.infrastructure.config import FleetshiftConfig
from fleetshift.infrastructure.event_bus import EventBus
from fleetshift.infrastructure.repositories.sqlite_repository import SQLiteDeploymentRepository
from fleetshift.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class FleetshiftContainer:
    """DI container holding all wired dependencies."""

    fleet_adapter: AWSFleetAdapter
    publisher: ArtifactPublisherPort
    source_control: SourceControlPort
    health_probe: HealthProbePort
    repository: SQLiteDeploymentRepository
    notifier: SlackAdapter
    event_bus: EventBus
    telemetry: OTELExporter
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @property
    def deploy_backend(self) -> DeployBackend:
        return DeployBackend(self.source_control, self.build_orchestrator)

    def build_orchestrator(self, config: FleetshiftConfig) -> RolloutOrchestrator:
        """Wire the domain services for one run of the given configuration."""
        return RolloutOrchestrator(
            publisher=self.publisher,
            template_manager=FleetBootTemplateManager(
                self.fleet_adapter,
                config.fleet.template_prefix,
                create_if_missing=config.fleet.create_template_if_missing,
            ),
            refresh_controller=FleetRefreshController(
                self.fleet_adapter, sleep=self.sleep, clock=self.clock
            ),
            health_verifier=HealthVerifier(
                self.health_probe,
                probe_timeout=config.health.probe_timeout_seconds,
                sleep=self.sleep,
            ),
            recorder=DeploymentRecorder(self.repository),
            settings=settings_from_config(config),
            parameter_store=self.fleet_adapter,
            event_bus=self.event_bus,
            telemetry=self.telemetry,
            clock=self.clock,
        )


def settings_from_config(config: FleetshiftConfig) -> RolloutSettings:
    """Project the loaded configuration onto what the orchestrator needs."""
    try:
        policy = RolloutPolicy(
            min_healthy_percentage=config.rollout.min_healthy_percentage,
            instance_warmup_seconds=config.rollout.instance_warmup_seconds,
            skip_matching=config.rollout.skip_matching,
            skip_lb_excluded=config.rollout.skip_lb_excluded,
            standby_instances=config.rollout.standby_instances,
        )
        health_policy = HealthPolicy(config.health.policy)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    boot = BootProfile(
        registry_user=config.artifact.username,
        region=config.fleet.region,
        container_name=config.boot.container_name,
        port=config.boot.port,
        log_group=config.boot.log_group,
        registry_password_parameter=config.boot.registry_password_parameter,
        metrics_config=config.boot.metrics_config,
        passthrough_env=config.boot.passthrough_env,
    )
    extra_tags = (config.artifact.tag,) if config.artifact.tag else ()
    return RolloutSettings(
        boot=boot,
        policy=policy,
        poll_interval=config.rollout.poll_interval_seconds,
        refresh_timeout=config.rollout.timeout_seconds,
        health_endpoint=config.health.endpoint,
        health_endpoint_parameter=config.health.endpoint_parameter,
        health_path=config.health.path,
        health_max_attempts=config.health.max_attempts,
        health_attempt_spacing=config.health.attempt_spacing_seconds,
        health_policy=health_policy,
        extra_tags=extra_tags,
        skip_publish=config.artifact.skip_publish,
    )


def create_container(
    config: FleetshiftConfig,
    fleet_adapter: Optional[AWSFleetAdapter] = None,
    publisher: Optional[ArtifactPublisherPort] = None,
    source_control: Optional[SourceControlPort] = None,
    health_probe: Optional[HealthProbePort] = None,
    repository: Optional[SQLiteDeploymentRepository] = None,
    notifier: Optional[SlackAdapter] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> FleetshiftContainer:
    """Create and wire all dependencies."""
    fleet_adapter = fleet_adapter or AWSFleetAdapter(
        region=config.fleet.region,
        image_id=config.fleet.image_id,
        instance_type=config.fleet.instance_type,
        key_name=config.fleet.key_name,
    )
    publisher = publisher or DockerPublisher(
        username=config.artifact.username,
        password=config.artifact.password,
        registry=config.artifact.registry,
        dockerfile=config.artifact.dockerfile,
        build_context=config.artifact.build_context,
        scan_enabled=config.artifact.scan_enabled,
        scan_severity=config.artifact.scan_severity,
    )
    source_control = source_control or GitSourceAdapter()
    health_probe = health_probe or HttpHealthProbe()
    repository = repository or SQLiteDeploymentRepository(config.record.db_path)
    notifier = notifier or SlackAdapter(config.notifications.slack_webhook_url)
    event_bus = EventBus()

    try:
        telemetry = OTELExporter(
            OTELConfig(
                endpoint=config.telemetry.endpoint,
                environment=config.environment,
                insecure=config.telemetry.insecure,
            )
        )
    except ValueError as e:
        raise ConfigurationError(f"telemetry.endpoint: {e}") from e

    if config.notifications.slack_webhook_url:
        NotifyDeployment(notifier).register(event_bus)

    return FleetshiftContainer(
        fleet_adapter=fleet_adapter,
        publisher=publisher,
        source_control=source_control,
        health_probe=health_probe,
        repository=repository,
        notifier=notifier,
        event_bus=event_bus,
        telemetry=telemetry,
        sleep=sleep,
        clock=clock,
    )
