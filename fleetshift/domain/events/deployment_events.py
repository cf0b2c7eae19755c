"""
Deployment Events

Domain Events:
- DeploymentStartedEvent: Published when the pipeline enters Publishing
- DeploymentSucceededEvent: Published when a run ends Done with Success
- DeploymentTimedOutEvent: Published when the refresh wait exhausts its budget
- DeploymentAbortedEvent: Published when a fatal error aborts the run
"""

from dataclasses import dataclass

from fleetshift.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class DeploymentStartedEvent(DomainEvent):
    artifact: str = ""
    environment: str = ""


@dataclass(frozen=True)
class DeploymentSucceededEvent(DomainEvent):
    artifact: str = ""
    environment: str = ""
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class DeploymentTimedOutEvent(DomainEvent):
    artifact: str = ""
    environment: str = ""
    refresh_id: str = ""


@dataclass(frozen=True)
class DeploymentAbortedEvent(DomainEvent):
    artifact: str = ""
    environment: str = ""
    phase: str = ""
    error_message: str = ""
