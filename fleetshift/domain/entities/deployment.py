"""
Deployment Module

Architectural Intent:
- DeploymentRequest is the immutable input of one pipeline invocation
- DeploymentRecord is the append-only audit artifact written once per run,
  whatever the outcome
- Environment names outside staging/production parse to None (no-op runs)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional

from fleetshift.domain.value_objects.artifact_reference import ArtifactReference
from fleetshift.domain.value_objects.fleet_id import FleetId


class Environment(Enum):
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: str) -> Optional["Environment"]:
        """Return the matching environment, or None for unsupported names.

        Names match exactly: "Production" is not a deployable environment.
        """
        try:
            return cls(value)
        except ValueError:
            return None


class DeploymentOutcome(Enum):
    SUCCESS = "Success"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class SourceRevision:
    commit: str = "unknown"
    branch: str = "unknown"


@dataclass(frozen=True)
class DeploymentRequest:
    artifact: ArtifactReference
    environment: Environment
    fleet_id: FleetId
    source: SourceRevision = field(default_factory=SourceRevision)
    operator: str = "unknown"


@dataclass(frozen=True)
class DeploymentRecord:
    artifact: str
    environment: str
    fleet_id: str
    outcome: DeploymentOutcome
    operator: str
    git_commit: str
    git_branch: str
    started_at: str
    finished_at: str
    deployment_time: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    template_version: Optional[int] = None
    refresh_id: Optional[str] = None
    health_verified: Optional[bool] = None
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "deployment_time": self.deployment_time,
            "artifact": self.artifact,
            "git_commit": self.git_commit,
            "git_branch": self.git_branch,
            "environment": self.environment,
            "fleet_id": self.fleet_id,
            "outcome": self.outcome.value,
            "deployed_by": self.operator,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "template_version": self.template_version,
            "refresh_id": self.refresh_id,
            "health_verified": self.health_verified,
            "detail": self.detail,
        }

