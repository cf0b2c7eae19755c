"""
Deployment Error Taxonomy

Architectural Intent:
- Every failure the rollout pipeline can observe has a named class here
- Fatal errors abort the pipeline; non-fatal errors are collected as warnings
- The phase attribute names the pipeline phase that raised the error so the
  CLI can print a message naming the failing phase

Design Decisions:
- `fatal` is a class attribute so callers can branch without isinstance chains
- HealthCheckExhausted is non-fatal by default; the orchestrator promotes it
  to an abort under the fail-closed health policy
- FleetApiError is raised by provider adapters and wrapped by domain services
  into the phase-specific error
"""

from typing import Optional


class DeploymentError(Exception):
    """Base class for all rollout pipeline errors."""

    fatal: bool = True
    default_phase: str = ""

    def __init__(self, message: str, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.phase = phase or self.default_phase

    def __str__(self) -> str:
        message = super().__str__()
        if self.phase:
            return f"[{self.phase}] {message}"
        return message


class ConfigurationError(DeploymentError):
    default_phase = "Configuration"


class PublishError(DeploymentError):
    default_phase = "Publishing"


class TemplateLookupError(DeploymentError):
    default_phase = "TemplateUpdate"


class RefreshStartError(DeploymentError):
    default_phase = "RefreshStarting"


class RefreshFailure(DeploymentError):
    default_phase = "RefreshWaiting"

    def __init__(self, message: str, status: str = "", phase: Optional[str] = None) -> None:
        super().__init__(message, phase)
        self.status = status


class RefreshTimeout(DeploymentError):
    fatal = False
    default_phase = "RefreshWaiting"


class HealthCheckExhausted(DeploymentError):
    fatal = False
    default_phase = "HealthChecking"


class RecordPersistError(DeploymentError):
    fatal = False
    default_phase = "Recording"


class FleetApiError(Exception):
    """Raised by fleet provider adapters when a provider call is rejected."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
