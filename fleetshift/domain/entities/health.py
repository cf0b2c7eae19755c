from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional


@dataclass(frozen=True)
class HealthProbeResult:
    """Outcome of one probe against the fleet entry point."""
    success: bool
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    status_code: Optional[int] = None
    error: str = ""
