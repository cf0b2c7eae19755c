"""
Boot Template Module

Architectural Intent:
- BootTemplate is the versioned description of how a freshly launched fleet
  instance configures and starts the service
- Versions are immutable snapshots; a deployment only ever appends
- BootInstructions is the provider-neutral input that gets rendered into the
  payload stored on a version
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional

from fleetshift.domain.value_objects.artifact_reference import ArtifactReference


@dataclass(frozen=True)
class BootInstructions:
    """Everything a new instance needs to pull and launch one artifact."""
    artifact: ArtifactReference
    registry_user: str
    environment: str
    git_commit: str
    region: str = "us-east-1"
    container_name: str = "starttech-backend"
    port: int = 8080
    log_group: str = "/starttech/backend"
    registry_password_parameter: str = "/starttech/docker-hub-password"
    metrics_config: str = "ssm:AmazonCloudWatch-linux"
    passthrough_env: tuple[str, ...] = ("MONGODB_URL", "REDIS_URL")

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid container port: {self.port}")
        if not self.container_name:
            raise ValueError("container_name cannot be empty")


@dataclass(frozen=True)
class BootTemplateVersion:
    version: int
    payload: str
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError("Template versions start at 1")


@dataclass(frozen=True)
class BootTemplate:
    template_id: str
    name: str
    versions: tuple[BootTemplateVersion, ...] = ()

    @property
    def latest_version(self) -> Optional[BootTemplateVersion]:
        if not self.versions:
            return None
        return max(self.versions, key=lambda v: v.version)

    def append_version(self, payload: str) -> "BootTemplate":
        latest = self.latest_version
        next_number = latest.version + 1 if latest else 1
        return BootTemplate(
            template_id=self.template_id,
            name=self.name,
            versions=self.versions + (BootTemplateVersion(next_number, payload),),
        )


@dataclass(frozen=True)
class TemplateRevision:
    """Result of publishing a boot payload: which template and version now hold it."""
    template_id: str
    template_name: str
    version: int
    created_template: bool = False

    def __str__(self) -> str:
        return f"{self.template_name}({self.template_id})@v{self.version}"
