"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the rollout core needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from fleetshift.domain.ports.artifact_publisher_port import ArtifactPublisherPort
from fleetshift.domain.ports.source_control_port import SourceControlPort
from fleetshift.domain.ports.boot_template_port import BootTemplatePort
from fleetshift.domain.ports.fleet_refresh_port import FleetRefreshPort
from fleetshift.domain.ports.parameter_store_port import ParameterStorePort
from fleetshift.domain.ports.health_probe_port import HealthProbePort
from fleetshift.domain.ports.deployment_record_port import DeploymentRecordPort
from fleetshift.domain.ports.event_bus_port import EventBusPort
from fleetshift.domain.ports.notification_port import NotificationPort

__all__ = [
    "ArtifactPublisherPort",
    "SourceControlPort",
    "BootTemplatePort",
    "FleetRefreshPort",
    "ParameterStorePort",
    "HealthProbePort",
    "DeploymentRecordPort",
    "EventBusPort",
    "NotificationPort",
]
