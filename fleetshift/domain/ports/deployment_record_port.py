"""
Deployment Record Port

Architectural Intent:
- Port interface for the durable, queryable sink of deployment records
- Records are append-only; there is no update or delete
- Implemented by SQLiteDeploymentRepository
"""

from typing import Protocol, runtime_checkable
from fleetshift.domain.entities.deployment import DeploymentRecord


@runtime_checkable
class DeploymentRecordPort(Protocol):
    def save(self, record: DeploymentRecord) -> int:
        """Persist a record. Raises RecordPersistError on storage failure."""
        ...

    def find_by_artifact(self, artifact: str) -> list[DeploymentRecord]: ...

    def find_between(self, start: str, end: str) -> list[DeploymentRecord]: ...
