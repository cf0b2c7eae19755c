"""
Source Control Port

Architectural Intent:
- Port interface for reading the revision being deployed
- Implemented by GitSourceAdapter
"""

from typing import Protocol, runtime_checkable
from fleetshift.domain.entities.deployment import SourceRevision


@runtime_checkable
class SourceControlPort(Protocol):
    async def revision(self) -> SourceRevision: ...
