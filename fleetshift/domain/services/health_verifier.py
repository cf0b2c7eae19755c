"""
Health Verifier

Architectural Intent:
- Domain service confirming the replaced fleet answers through its entry point
- Bounded retry with a fixed delay between attempts

Domain Logic:
- Probes the fleet's public endpoint, not an individual instance; during a
  rolling refresh a passing probe only proves that some healthy instance is
  serving, not that the rollout has fully propagated
- Returns True on the first successful probe
- Returns False, without raising, after max_attempts consecutive failures;
  exactly max_attempts probes are made in that case and no sleep follows
  the last one
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable

from fleetshift.domain.entities.health import HealthProbeResult
from fleetshift.domain.ports.health_probe_port import HealthProbePort

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_ATTEMPT_SPACING = 30.0


def build_health_url(endpoint: str, path: str = "/health") -> str:
    """Turn a bare host name (as stored for a load balancer) into a probe URL."""
    url = endpoint if "://" in endpoint else f"http://{endpoint}"
    if path and not url.rstrip("/").endswith(path.rstrip("/")):
        url = url.rstrip("/") + "/" + path.lstrip("/")
    return url


class HealthVerifier:
    def __init__(
        self,
        probe_port: HealthProbePort,
        probe_timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._probe = probe_port
        self._probe_timeout = probe_timeout
        self._sleep = sleep
        self.attempts_made = 0
        self.results: list[HealthProbeResult] = []

    async def verify(
        self,
        endpoint: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_spacing: float = DEFAULT_ATTEMPT_SPACING,
    ) -> bool:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.attempts_made = 0
        self.results = []
        logger.info("Probing %s (up to %d attempts)", endpoint, max_attempts)

        for attempt in range(1, max_attempts + 1):
            self.attempts_made = attempt
            result = await self._probe.probe(endpoint, self._probe_timeout)
            self.results.append(result)
            if result.success:
                logger.info("Health probe passed on attempt %d/%d", attempt, max_attempts)
                return True

            logger.info(
                "Health probe attempt %d/%d failed: %s",
                attempt,
                max_attempts,
                result.error or f"HTTP {result.status_code}",
            )
            if attempt < max_attempts:
                await self._sleep(attempt_spacing)

        logger.warning("Health probes exhausted after %d attempts against %s", max_attempts, endpoint)
        return False
