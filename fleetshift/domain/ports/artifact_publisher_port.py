"""
Artifact Publisher Port

Architectural Intent:
- Port interface for building, scanning and pushing the service artifact
- The rollout core treats the whole step as opaque pass/fail
- Implemented by DockerPublisher
"""

from abc import ABC, abstractmethod
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference


class ArtifactPublisherPort(ABC):
    """
    Port interface for publishing an immutable service artifact.
    """

    @abstractmethod
    async def publish(
        self,
        artifact: ArtifactReference,
        extra_tags: tuple[str, ...] = (),
        build_args: dict[str, str] | None = None,
    ) -> ArtifactReference:
        """
        Builds, scans and pushes the artifact. Raises PublishError on any failure.
        """
        pass
