"""
HTTP Health Probe Adapter

Architectural Intent:
- Implements HealthProbePort with a single GET against the fleet entry point
- Uses stdlib urllib for the HTTP layer (no external dependencies)

Design Decisions:
- Any 2xx answer counts as healthy, matching `curl -f`
- Connection errors, timeouts, malformed answers, bad URLs and non-2xx
  answers are reported in the result, never raised
- The blocking request runs in the default executor
"""

import asyncio
import http.client
import logging
import urllib.error
import urllib.request
from typing import Optional

from fleetshift.domain.entities.health import HealthProbeResult

logger = logging.getLogger(__name__)


class HttpHealthProbe:
    def __init__(self, user_agent: str = "fleetshift-health/1.0") -> None:
        self.user_agent = user_agent

    def _get(self, url: str, timeout: float) -> HealthProbeResult:
        status: Optional[int] = None
        try:
            request = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
            with urllib.request.urlopen(request, timeout=timeout) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            return HealthProbeResult(success=False, status_code=e.code, error=f"HTTP {e.code}")
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            reason = getattr(e, "reason", e)
            return HealthProbeResult(success=False, error=str(reason))
        except (http.client.HTTPException, ValueError) as e:
            return HealthProbeResult(success=False, error=f"{type(e).__name__}: {e}")

        logger.debug("GET %s -> %s", url, status)
        return HealthProbeResult(success=200 <= status < 300, status_code=status)

    async def probe(self, url: str, timeout: float = 10.0) -> HealthProbeResult:
        return await asyncio.get_running_loop().run_in_executor(None, self._get, url, timeout)
