"""
Refresh Operation Module

Architectural Intent:
- Models one managed rolling replacement of fleet instances
- Status transitions belong to the external fleet manager; this model only
  records what was observed
- RolloutPolicy bounds capacity loss during the replacement
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from enum import Enum
from typing import Optional

from fleetshift.domain.value_objects.fleet_id import FleetId


class RefreshStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def is_active(self) -> bool:
        return self in (RefreshStatus.PENDING, RefreshStatus.IN_PROGRESS)

    @classmethod
    def from_provider(cls, value: str) -> "RefreshStatus":
        """Map a provider status string onto the five observable states.

        Providers report intermediate states (Cancelling, RollbackInProgress,
        Baking...) that are still in flight; those count as InProgress.
        """
        try:
            return cls(value)
        except ValueError:
            if value in ("RollbackFailed", "RollbackSuccessful"):
                return cls.FAILED
            return cls.IN_PROGRESS


_TERMINAL = frozenset(
    {RefreshStatus.SUCCESSFUL, RefreshStatus.FAILED, RefreshStatus.CANCELLED}
)


@dataclass(frozen=True)
class RolloutPolicy:
    min_healthy_percentage: int = 90
    instance_warmup_seconds: int = 300
    skip_matching: bool = False
    skip_lb_excluded: bool = False
    standby_instances: str = "Ignore"

    def __post_init__(self) -> None:
        if not 0 <= self.min_healthy_percentage <= 100:
            raise ValueError(
                f"min_healthy_percentage must be within 0..100, got {self.min_healthy_percentage}"
            )
        if self.instance_warmup_seconds < 0:
            raise ValueError("instance_warmup_seconds cannot be negative")
        if self.standby_instances not in ("Ignore", "Terminate", "Wait"):
            raise ValueError(f"Unknown standby_instances mode: {self.standby_instances}")


@dataclass(frozen=True)
class RefreshOperation:
    refresh_id: str
    fleet_id: FleetId
    template_id: str
    template_version: int
    policy: RolloutPolicy
    status: RefreshStatus = RefreshStatus.PENDING
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def with_status(self, status: RefreshStatus) -> "RefreshOperation":
        return replace(self, status=status)


@dataclass(frozen=True)
class RefreshWaitResult:
    """What awaiting a refresh observed.

    When ``timed_out`` is True the last sampled status is non-terminal and
    the refresh state must be treated as unknown, not failed.
    """
    status: RefreshStatus
    timed_out: bool
    elapsed_seconds: float
    polls: int
    last_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.status is RefreshStatus.SUCCESSFUL
