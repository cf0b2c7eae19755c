from dataclasses import dataclass
import re

_REPOSITORY = r"[a-z0-9]+(?:[._/-][a-z0-9]+)*"
_TAG = r"[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}"
_MUTABLE_TAGS = frozenset({"latest", "stable", "current"})


@dataclass(frozen=True)
class ArtifactReference:
    """
    Value Object naming one immutable published artifact, e.g.
    ``acme/starttech-backend:3f2a9c1``.
    Moving tags such as ``latest`` are rejected: a deployment must always
    point at content that cannot change underneath it.
    """
    repository: str
    tag: str

    def __post_init__(self):
        if not re.fullmatch(_REPOSITORY, self.repository):
            raise ValueError(f"Invalid artifact repository: {self.repository!r}")
        if not re.fullmatch(_TAG, self.tag):
            raise ValueError(f"Invalid artifact tag: {self.tag!r}")
        if self.tag.lower() in _MUTABLE_TAGS:
            raise ValueError(f"Artifact tag must be immutable, got {self.tag!r}")

    @classmethod
    def parse(cls, value: str) -> "ArtifactReference":
        repository, sep, tag = value.rpartition(":")
        if not sep or "/" in tag:
            raise ValueError(f"Artifact reference needs a tag: {value!r}")
        return cls(repository, tag)

    def __str__(self):
        return f"{self.repository}:{self.tag}"
