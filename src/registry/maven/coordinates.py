"""Maven artifact coordinates and their repository layout."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from constants import Constants
from errors import ConfigurationError


@dataclass(frozen=True)
class ArtifactCoordinate:
    """Immutable artifact identity; equal iff every field matches."""

    group: str
    name: str
    version: str
    classifier: Optional[str] = None
    extension: str = Constants.DEFAULT_EXTENSION

    def __str__(self) -> str:
        parts = [self.group, self.name]
        if self.classifier:
            parts += [self.extension, self.classifier]
        elif self.extension != Constants.DEFAULT_EXTENSION:
            parts.append(self.extension)
        parts.append(self.version)
        return ":".join(parts)

    @property
    def key(self) -> str:
        """Version-less identity used for mediation and exclusions."""
        if self.classifier:
            return f"{self.group}:{self.name}:{self.classifier}"
        return f"{self.group}:{self.name}"

    def with_version(self, version: str) -> "ArtifactCoordinate":
        return replace(self, version=version)

    def pom(self) -> "ArtifactCoordinate":
        """The coordinate of this artifact's POM."""
        return replace(self, classifier=None, extension="pom")

    def file_name(self) -> str:
        suffix = f"-{self.classifier}" if self.classifier else ""
        return f"{self.name}-{self.version}{suffix}.{self.extension}"

    def relative_path(self) -> str:
        """Path of the artifact inside a Maven 2 layout repository, '/'-separated."""
        return "/".join(
            [self.group.replace(".", "/"), self.name, self.version, self.file_name()]
        )

    def metadata_path(self) -> str:
        return "/".join(
            [self.group.replace(".", "/"), self.name, Constants.MAVEN_METADATA_FILE]
        )


@dataclass(frozen=True)
class ResolvedArtifact:
    """A coordinate bound to an absolute file on disk."""

    coordinate: ArtifactCoordinate
    path: str


def parse_coordinate(text: str) -> ArtifactCoordinate:
    """Parse ``group:name[:extension[:classifier]]:version``.

    Raises:
        ConfigurationError: when the text has the wrong number of segments
            or an empty segment.
    """
    if not isinstance(text, str):
        raise ConfigurationError(f"Invalid artifact coordinate {text!r}")
    parts = [p.strip() for p in text.strip().split(":")]
    if len(parts) < 3 or len(parts) > 5 or any(not p for p in parts):
        raise ConfigurationError(
            f"Invalid artifact coordinate '{text}'. "
            "Expected 'groupId:artifactId[:extension[:classifier]]:version'."
        )
    if len(parts) == 3:
        group, name, version = parts
        return ArtifactCoordinate(group, name, version)
    if len(parts) == 4:
        group, name, extension, version = parts
        return ArtifactCoordinate(group, name, version, extension=extension)
    group, name, extension, classifier, version = parts
    return ArtifactCoordinate(group, name, version, classifier=classifier, extension=extension)


def coordinate_from_mapping(data: Dict[str, Any]) -> ArtifactCoordinate:
    """Build a coordinate from a ``{group_id, artifact_id, version, ...}`` mapping."""
    group = data.get("group_id") or data.get("groupId")
    name = data.get("artifact_id") or data.get("artifactId")
    version = data.get("version")
    if not group or not name or not version:
        raise ConfigurationError(
            f"Artifact mapping {data!r} must define group_id, artifact_id and version"
        )
    return ArtifactCoordinate(
        str(group),
        str(name),
        str(version),
        classifier=data.get("classifier") or None,
        extension=data.get("type") or data.get("extension") or Constants.DEFAULT_EXTENSION,
    )
