"""
Fleet Refresh Port

Architectural Intent:
- Port interface for the external fleet manager's rolling replacement API
- Status transitions are owned by the provider; callers only start and read
- Implemented by AWSFleetAdapter

Design Decisions:
- Provider rejections surface as FleetApiError so domain services can map
  them onto phase errors
"""

from typing import Protocol, runtime_checkable
from fleetshift.domain.entities.refresh_operation import RefreshStatus, RolloutPolicy
from fleetshift.domain.value_objects.fleet_id import FleetId


@runtime_checkable
class FleetRefreshPort(Protocol):
    """Port for starting and observing rolling replacements."""

    async def list_refreshes(self, fleet_id: FleetId) -> list[tuple[str, RefreshStatus]]:
        """Return (refresh_id, status) pairs for the fleet, newest first."""
        ...

    async def start_refresh(
        self,
        fleet_id: FleetId,
        template_id: str,
        template_version: int,
        policy: RolloutPolicy,
    ) -> str:
        """Start a rolling replacement. Returns the refresh ID."""
        ...

    async def get_refresh_status(self, fleet_id: FleetId, refresh_id: str) -> RefreshStatus:
        """Read the current status of one refresh."""
        ...
