"""
Boot Template Port

Architectural Intent:
- Port interface for the provider-side store of versioned boot templates
  (EC2 launch templates, instance templates, ...)
- Implemented by AWSFleetAdapter

Design Decisions:
- find_templates matches on a name substring, mirroring how fleets are
  resolved by naming convention
- create_version never mutates an existing version
"""

from typing import Protocol, runtime_checkable
from fleetshift.domain.entities.boot_template import BootTemplate


@runtime_checkable
class BootTemplatePort(Protocol):
    """Port for versioned boot template storage."""

    async def find_templates(self, name_contains: str) -> list[BootTemplate]:
        """Return every template whose name contains the given fragment."""
        ...

    async def create_template(self, name: str, payload: str) -> BootTemplate:
        """Create a new template whose first version holds payload."""
        ...

    async def create_version(self, template_id: str, payload: str) -> int:
        """Append a version to an existing template. Returns its number."""
        ...
