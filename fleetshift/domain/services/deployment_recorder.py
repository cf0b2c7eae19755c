"""
Deployment Recorder

Architectural Intent:
- Builds the audit record of one pipeline run and persists it
- Never fails the pipeline: by the time a record is written the outcome is
  already decided, and losing the record must not mask or reverse it
"""

from __future__ import annotations
import logging
from datetime import datetime, UTC
from typing import Optional

from fleetshift.domain.entities.deployment import (
    DeploymentOutcome,
    DeploymentRecord,
    DeploymentRequest,
)
from fleetshift.domain.errors import RecordPersistError
from fleetshift.domain.ports.deployment_record_port import DeploymentRecordPort

logger = logging.getLogger(__name__)


class DeploymentRecorder:
    def __init__(self, store: DeploymentRecordPort):
        self._store = store
        self.last_error: Optional[RecordPersistError] = None

    def record(
        self,
        request: DeploymentRequest,
        outcome: DeploymentOutcome,
        started_at: Optional[str] = None,
        template_version: Optional[int] = None,
        refresh_id: Optional[str] = None,
        health_verified: Optional[bool] = None,
        detail: str = "",
    ) -> DeploymentRecord:
        now = datetime.now(UTC).isoformat()
        record = DeploymentRecord(
            artifact=str(request.artifact),
            environment=request.environment.value,
            fleet_id=str(request.fleet_id),
            outcome=outcome,
            operator=request.operator,
            git_commit=request.source.commit,
            git_branch=request.source.branch,
            started_at=started_at or now,
            finished_at=now,
            deployment_time=now,
            template_version=template_version,
            refresh_id=refresh_id,
            health_verified=health_verified,
            detail=detail,
        )

        self.last_error = None
        try:
            self._store.save(record)
        except RecordPersistError as e:
            self.last_error = e
            logger.error("Deployment record for %s was not persisted: %s", record.artifact, e)
        except Exception as e:
            self.last_error = RecordPersistError(str(e))
            logger.exception("Unexpected error persisting deployment record for %s", record.artifact)
        else:
            logger.info(
                "Recorded deployment of %s to %s: %s",
                record.artifact,
                record.environment,
                outcome.value,
            )
        return record
