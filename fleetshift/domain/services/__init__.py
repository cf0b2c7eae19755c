"""
Domain Services Package

Architectural Intent:
- Contains the four rollout components sequenced by the orchestrator
"""

from fleetshift.domain.services.boot_template_manager import (
    BootScriptRenderer,
    FleetBootTemplateManager,
)
from fleetshift.domain.services.refresh_controller import FleetRefreshController
from fleetshift.domain.services.health_verifier import HealthVerifier
from fleetshift.domain.services.deployment_recorder import DeploymentRecorder

__all__ = [
    "BootScriptRenderer",
    "FleetBootTemplateManager",
    "FleetRefreshController",
    "HealthVerifier",
    "DeploymentRecorder",
]
