"""
Health Probe Port

Architectural Intent:
- Port interface for a single health request against the fleet entry point
- Implementations never raise for an unhealthy endpoint; they report it
"""

from typing import Protocol, runtime_checkable
from fleetshift.domain.entities.health import HealthProbeResult


@runtime_checkable
class HealthProbePort(Protocol):
    async def probe(self, url: str, timeout: float = 10.0) -> HealthProbeResult: ...
