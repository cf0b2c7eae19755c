"""
SQLite Deployment Repository

Architectural Intent:
- Durable, queryable sink for DeploymentRecords using SQLite (stdlib)
- Records are append-only: there is no update or delete path
- Queryable by artifact reference and by deployment time
- Uses WAL mode for concurrent read/write support

Design Decisions:
- Single database file at configurable path (default: fleetshift.db)
- Auto-creates tables on first use
- Timestamps stored as ISO 8601 strings so range queries compare lexically
- sqlite3 errors are wrapped as RecordPersistError
"""

from __future__ import annotations
import sqlite3
import logging
from typing import Optional

from fleetshift.domain.entities.deployment import DeploymentOutcome, DeploymentRecord
from fleetshift.domain.errors import RecordPersistError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "deployment_time",
    "artifact",
    "environment",
    "fleet_id",
    "outcome",
    "operator",
    "git_commit",
    "git_branch",
    "started_at",
    "finished_at",
    "template_version",
    "refresh_id",
    "health_verified",
    "detail",
)


class SQLiteDeploymentRepository:
    """Persistent deployment record storage using SQLite."""

    def __init__(self, db_path: str = "fleetshift.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
            self._create_tables()
        except sqlite3.Error as e:
            self._conn = None
            raise RecordPersistError(f"Cannot open record store {self._db_path}: {e}") from e
        logger.info("SQLite repository connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        assert self._conn is not None
        return self._conn

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS deployments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                deployment_time TEXT NOT NULL,
                artifact TEXT NOT NULL,
                environment TEXT NOT NULL,
                fleet_id TEXT NOT NULL,
                outcome TEXT NOT NULL,
                operator TEXT NOT NULL,
                git_commit TEXT NOT NULL,
                git_branch TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT NOT NULL,
                template_version INTEGER,
                refresh_id TEXT,
                health_verified INTEGER,
                detail TEXT DEFAULT ''
            );

            CREATE INDEX IF NOT EXISTS idx_deployments_artifact ON deployments(artifact);
            CREATE INDEX IF NOT EXISTS idx_deployments_time ON deployments(deployment_time);
        """)

    def save(self, record: DeploymentRecord) -> int:
        """Append a deployment record. Returns its row ID."""
        health = None if record.health_verified is None else int(record.health_verified)
        values = (
            record.deployment_time,
            record.artifact,
            record.environment,
            record.fleet_id,
            record.outcome.value,
            record.operator,
            record.git_commit,
            record.git_branch,
            record.started_at,
            record.finished_at,
            record.template_version,
            record.refresh_id,
            health,
            record.detail,
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            conn = self._connection()
            cursor = conn.execute(
                f"INSERT INTO deployments ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
        except sqlite3.Error as e:
            raise RecordPersistError(f"Cannot write deployment record: {e}") from e
        return cursor.lastrowid

    def _query(self, sql: str, params: tuple) -> list[DeploymentRecord]:
        try:
            rows = self._connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise RecordPersistError(f"Cannot read deployment records: {e}") from e
        return [self._to_record(r) for r in rows]

    def find_by_artifact(self, artifact: str) -> list[DeploymentRecord]:
        """All records for one artifact reference, newest first."""
        return self._query(
            "SELECT * FROM deployments WHERE artifact = ? ORDER BY deployment_time DESC, id DESC",
            (artifact,),
        )

    def find_between(self, start: str, end: str) -> list[DeploymentRecord]:
        """Records whose deployment_time falls within [start, end], oldest first."""
        return self._query(
            "SELECT * FROM deployments WHERE deployment_time >= ? AND deployment_time <= ? "
            "ORDER BY deployment_time ASC, id ASC",
            (start, end),
        )

    def latest(self, limit: int = 20) -> list[DeploymentRecord]:
        """Most recent records, newest first."""
        return self._query(
            "SELECT * FROM deployments ORDER BY deployment_time DESC, id DESC LIMIT ?",
            (limit,),
        )

    def count(self) -> int:
        row = self._connection().execute("SELECT COUNT(*) FROM deployments").fetchone()
        return row[0]

    @staticmethod
    def _to_record(row: sqlite3.Row) -> DeploymentRecord:
        health = row["health_verified"]
        return DeploymentRecord(
            artifact=row["artifact"],
            environment=row["environment"],
            fleet_id=row["fleet_id"],
            outcome=DeploymentOutcome(row["outcome"]),
            operator=row["operator"],
            git_commit=row["git_commit"],
            git_branch=row["git_branch"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            deployment_time=row["deployment_time"],
            template_version=row["template_version"],
            refresh_id=row["refresh_id"],
            health_verified=None if health is None else bool(health),
            detail=row["detail"] or "",
        )
