"""
Deploy Backend Use Case

Architectural Intent:
- Entry point for one deployment invocation: turns configuration into a
  DeploymentRequest and hands it to the RolloutOrchestrator
- Decides the two early exits before anything touches the outside world:
  an undeployable environment is a no-op, and invalid configuration is
  rejected before the source revision is read

Design Decisions:
- The artifact tag is the short git commit unless a tag override is given;
  the registry never receives a deployment that points at a moving tag
- The orchestrator is built by a factory so the wiring of adapters stays in
  the composition root
"""

import getpass
import logging
import socket
from typing import Callable, Optional

from fleetshift.application.dtos.rollout_dtos import RolloutResult
from fleetshift.application.orchestration.rollout_orchestrator import RolloutOrchestrator
from fleetshift.domain.entities.deployment import (
    DeploymentRequest,
    Environment,
    SourceRevision,
)
from fleetshift.domain.errors import ConfigurationError
from fleetshift.domain.ports.source_control_port import SourceControlPort
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference
from fleetshift.domain.value_objects.fleet_id import FleetId
from fleetshift.infrastructure.config import FleetshiftConfig, validate_config

logger = logging.getLogger(__name__)


def resolve_operator(configured: str = "") -> str:
    """Identity recorded as the deployer: the configured value or user@host."""
    if configured:
        return configured
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


def build_artifact(
    config: FleetshiftConfig, source: SourceRevision, tag: Optional[str] = None
) -> ArtifactReference:
    tag = tag or source.commit
    if tag == "unknown":
        raise ConfigurationError(
            "Cannot derive an immutable artifact tag: git revision unavailable "
            "and no --tag given"
        )
    repository = f"{config.artifact.username}/{config.artifact.image_name}"
    try:
        return ArtifactReference(repository, tag)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


class DeployBackend:
    def __init__(
        self,
        source_control: SourceControlPort,
        orchestrator_factory: Callable[[FleetshiftConfig], RolloutOrchestrator],
    ):
        self.source_control = source_control
        self.orchestrator_factory = orchestrator_factory

    async def execute(
        self, config: FleetshiftConfig, tag: Optional[str] = None
    ) -> RolloutResult:
        environment = Environment.parse(config.environment)
        if environment is None:
            return RolloutOrchestrator.skipped(config.environment)

        try:
            validate_config(config)
            orchestrator = self.orchestrator_factory(config)
        except ConfigurationError as e:
            return RolloutOrchestrator.rejected(e)

        source = await self.source_control.revision()
        try:
            artifact = build_artifact(config, source, tag)
        except ConfigurationError as e:
            return RolloutOrchestrator.rejected(e)

        request = DeploymentRequest(
            artifact=artifact,
            environment=environment,
            fleet_id=FleetId(config.fleet.group_name),
            source=source,
            operator=resolve_operator(config.operator),
        )
        logger.info(
            "Deploying %s to %s (%s) as %s",
            artifact,
            request.fleet_id,
            environment.value,
            request.operator,
        )
        return await orchestrator.run(request)
