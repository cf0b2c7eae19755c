"""
fleetshift Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for deployment runs
- Phase spans and rollout metrics export
"""

from fleetshift.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
