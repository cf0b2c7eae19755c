"""Global test configuration.

In-memory fakes for the rollout ports plus a virtual clock whose sleep
advances time instantly, so no test waits in real time.
"""

from datetime import datetime, UTC
from typing import Optional

import pytest

from fleetshift.domain.entities.deployment import (
    DeploymentRecord,
    DeploymentRequest,
    Environment,
    SourceRevision,
)
from fleetshift.domain.entities.health import HealthProbeResult
from fleetshift.domain.errors import PublishError, RecordPersistError
from fleetshift.domain.ports.artifact_publisher_port import ArtifactPublisherPort
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference
from fleetshift.domain.value_objects.fleet_id import FleetId
from fleetshift.infrastructure.config import FleetshiftConfig


class VirtualClock:
    """Monotonic clock driven only by awaited sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePublisher(ArtifactPublisherPort):
    def __init__(self, error: Optional[str] = None) -> None:
        self.error = error
        self.calls: list[tuple] = []

    async def publish(self, artifact, extra_tags=(), build_args=None):
        self.calls.append((artifact, tuple(extra_tags), dict(build_args or {})))
        if self.error:
            raise PublishError(self.error)
        return artifact


class FakeSourceControl:
    def __init__(self, commit: str = "3f2a9c1", branch: str = "main") -> None:
        self.calls = 0
        self._revision = SourceRevision(commit, branch)

    async def revision(self) -> SourceRevision:
        self.calls += 1
        return self._revision


class ScriptedProbe:
    """Health probe answering from a script of booleans; the last answer repeats."""

    def __init__(self, answers: list[bool]) -> None:
        self.answers = answers
        self.urls: list[str] = []

    async def probe(self, url: str, timeout: float = 10.0) -> HealthProbeResult:
        self.urls.append(url)
        index = min(len(self.urls), len(self.answers)) - 1
        ok = self.answers[index]
        return HealthProbeResult(
            success=ok,
            timestamp=datetime.now(UTC).isoformat(),
            status_code=200 if ok else 503,
            error="" if ok else "HTTP 503",
        )


class InMemoryRecordStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.records: list[DeploymentRecord] = []

    def save(self, record: DeploymentRecord) -> int:
        if self.fail:
            raise RecordPersistError("disk full")
        self.records.append(record)
        return len(self.records)

    def find_by_artifact(self, artifact: str) -> list[DeploymentRecord]:
        matches = [r for r in self.records if r.artifact == artifact]
        return sorted(matches, key=lambda r: r.deployment_time, reverse=True)

    def find_between(self, start: str, end: str) -> list[DeploymentRecord]:
        return [r for r in self.records if start <= r.deployment_time <= end]


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def source_control():
    return FakeSourceControl()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def deployment_request():
    return DeploymentRequest(
        artifact=ArtifactReference("acme/starttech-backend", "3f2a9c1"),
        environment=Environment.STAGING,
        fleet_id=FleetId("starttech-backend-asg"),
        source=SourceRevision("3f2a9c1", "main"),
        operator="deployer@build-01",
    )


@pytest.fixture
def valid_config(tmp_path):
    return FleetshiftConfig().with_overrides(
        environment="staging",
        operator="deployer@build-01",
        artifact={"username": "acme"},
        fleet={"group_name": "starttech-backend-asg"},
        health={"endpoint": "backend-alb.example.com"},
        record={"db_path": str(tmp_path / "records.db")},
    )
