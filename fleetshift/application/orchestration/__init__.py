"""
Application Orchestration Package

Architectural Intent:
- Contains the rollout workflow state machine
- Phases run strictly in order; a fatal error moves the run to Aborted
"""

from fleetshift.application.orchestration.rollout_orchestrator import RolloutOrchestrator

__all__ = ["RolloutOrchestrator"]
