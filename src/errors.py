"""Exception hierarchy shared across resolution, collection and assembly.

Configuration-shaped errors abort a whole batch; everything else is scoped to
the module being processed when it was raised.
"""

from __future__ import annotations

from typing import Optional


class ModGateError(Exception):
    """Base class for all errors raised by ModGate."""

    batch_fatal = False


class ConfigurationError(ModGateError):
    """Raised when a batch configuration is missing or has conflicting fields."""

    batch_fatal = True


class DuplicateModuleError(ConfigurationError):
    """Raised when two module configurations resolve to the same artifact."""

    def __init__(self, coordinate, first: str, second: str):
        super().__init__(
            f"Artifact {coordinate} is declared as module '{first}' and as module '{second}'"
        )
        self.coordinate = coordinate
        self.first = first
        self.second = second


class ArtifactNotFoundError(ModGateError):
    """Raised when no configured repository holds the requested artifact."""

    def __init__(self, coordinate, searched: Optional[list] = None):
        where = ", ".join(searched) if searched else "no repositories"
        super().__init__(f"Artifact {coordinate} not found (searched: {where})")
        self.coordinate = coordinate
        self.searched = list(searched or [])


class RepositoryAccessError(ModGateError):
    """Raised on network or IO failures while talking to a repository."""


class InvalidPomError(ModGateError):
    """Raised when a POM cannot be parsed or leaves a coordinate unresolved."""


class DependencyCollectionError(ModGateError):
    """Raised when the dependency tree of an artifact cannot be collected."""

    def __init__(self, coordinate, cause: Exception):
        super().__init__(f"Couldn't collect dependencies of {coordinate}: {cause}")
        self.coordinate = coordinate
        self.__cause__ = cause


class InvalidPatternError(ModGateError):
    """Raised when an exports or requires rule cannot be parsed."""


class DescriptorWriteError(ModGateError):
    """Raised by descriptor writers when a request cannot be materialized."""


class InvalidArtifactError(ModGateError):
    """Raised when an artifact file is not a readable JAR."""
