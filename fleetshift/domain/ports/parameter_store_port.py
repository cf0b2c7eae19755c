"""
Parameter Store Port

Architectural Intent:
- Port interface for reading deployment parameters published by the
  infrastructure stack (e.g. the load balancer DNS name)
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ParameterStorePort(Protocol):
    async def get_parameter(self, name: str, decrypt: bool = False) -> Optional[str]:
        """Return the parameter value, or None when it does not exist."""
        ...
