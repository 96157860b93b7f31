"""Data types for raw dependency trees and their filtered, resolved form."""
from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from registry.maven.coordinates import ArtifactCoordinate


@dataclass(frozen=True)
class Exclusion:
    """A ``<exclusion>`` entry; ``*`` is allowed in either field."""

    group: str
    name: str

    def matches(self, coordinate: ArtifactCoordinate) -> bool:
        return fnmatch.fnmatchcase(coordinate.group, self.group) and fnmatch.fnmatchcase(
            coordinate.name, self.name
        )


@dataclass(frozen=True)
class DependencyEdge:
    """One declared dependency as reported by the repository."""

    target: ArtifactCoordinate
    scope: str = "compile"
    optional: bool = False
    exclusions: Tuple[Exclusion, ...] = ()
    system_path: Optional[str] = None


@dataclass(frozen=True)
class DependencyNode:
    """An edge together with the selected subtree below it."""

    edge: DependencyEdge
    children: Tuple["DependencyNode", ...] = ()

    @property
    def coordinate(self) -> ArtifactCoordinate:
        return self.edge.target

    def walk(self) -> Iterator["DependencyNode"]:
        """Yield every node below this one, depth first, excluding self."""
        for child in self.children:
            yield child
            yield from child.walk()


@dataclass(frozen=True)
class DependencyDescriptor:
    """A filtered, resolved dependency of a module.

    ``module_name`` is None when the dependency is not part of the batch; the
    descriptor writer then requires it under its automatic module name.
    """

    path: str
    optional: bool = False
    module_name: Optional[str] = None
    coordinate: Optional[ArtifactCoordinate] = field(default=None, compare=False)
