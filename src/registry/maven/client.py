"""Maven repository client: coordinate resolution and declared dependency trees.

Artifacts are looked up in the local repository first and fetched from the
configured remote repositories (Maven 2 layout) when missing. Within one
client instance, resolution is stable: the same coordinate always maps to the
same file, and concurrent requests for one coordinate are serialized so only
the first one downloads.
"""
from __future__ import annotations

import logging
import os
import threading
from collections import deque
from typing import Dict, List, Optional, Sequence

from constants import Constants, Scopes
from errors import ArtifactNotFoundError, InvalidPomError, RepositoryAccessError
from common import http_client
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from graph.model import DependencyEdge, DependencyNode
from graph.selectors import DependencySelector, SelectionContext
from registry.maven.coordinates import ArtifactCoordinate, ResolvedArtifact
from registry.maven.pom import PomModel, RawDependency, effective_dependencies, managed_dependencies, parse_pom
from versioning.parser import needs_resolution, parse_version_spec
from versioning.resolvers.maven import MavenMetadata, MavenVersionResolver

logger = logging.getLogger(__name__)


class _PendingNode:  # pylint: disable=too-few-public-methods
    """Mutable node used while the tree is built breadth first."""

    def __init__(self, edge: DependencyEdge):
        self.edge = edge
        self.children: List["_PendingNode"] = []

    def freeze(self) -> DependencyNode:
        return DependencyNode(self.edge, tuple(child.freeze() for child in self.children))


class MavenRepositoryClient:
    """Resolve coordinates to files and report declared dependency trees."""

    def __init__(
        self,
        local_repository: Optional[str] = None,
        remote_repositories: Optional[Sequence[str]] = None,
        offline: bool = False,
        max_depth: int = Constants.MAX_COLLECT_DEPTH,
    ):
        self.local_repository = os.path.abspath(
            os.path.expanduser(
                local_repository
                or os.environ.get(Constants.ENV_LOCAL_REPOSITORY)
                or Constants.LOCAL_REPOSITORY
            )
        )
        if remote_repositories is None:
            remote_repositories = [Constants.REPOSITORY_URL_MAVEN_CENTRAL]
        self.remote_repositories = [r.rstrip("/") for r in remote_repositories]
        self.offline = offline
        self.max_depth = max_depth
        self._version_resolver = MavenVersionResolver()

        # Per-run caches, guarded by _lock; _coordinate_locks dedupe concurrent fetches
        self._lock = threading.Lock()
        self._coordinate_locks: Dict[ArtifactCoordinate, threading.Lock] = {}
        self._resolved: Dict[ArtifactCoordinate, ResolvedArtifact] = {}
        self._metadata: Dict[str, MavenMetadata] = {}
        self._declared: Dict[ArtifactCoordinate, List[DependencyEdge]] = {}

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _local_path(self, coordinate: ArtifactCoordinate) -> str:
        return os.path.join(self.local_repository, *coordinate.relative_path().split("/"))

    def _lock_for(self, coordinate: ArtifactCoordinate) -> threading.Lock:
        with self._lock:
            lock = self._coordinate_locks.get(coordinate)
            if lock is None:
                lock = threading.Lock()
                self._coordinate_locks[coordinate] = lock
            return lock

    def resolve(self, coordinate: ArtifactCoordinate) -> ResolvedArtifact:
        """Map a coordinate to a file in the local repository, downloading it if needed.

        Raises:
            ArtifactNotFoundError: when no repository holds the artifact.
            RepositoryAccessError: on network or IO failures.
        """
        if needs_resolution(coordinate.version):
            coordinate = self.resolve_version(coordinate)

        with self._lock:
            cached = self._resolved.get(coordinate)
        if cached is not None:
            return cached

        with self._lock_for(coordinate):
            with self._lock:
                cached = self._resolved.get(coordinate)
            if cached is not None:
                return cached

            resolved = self._resolve_uncached(coordinate)
            with self._lock:
                self._resolved[coordinate] = resolved
            return resolved

    def _resolve_uncached(self, coordinate: ArtifactCoordinate) -> ResolvedArtifact:
        local_path = self._local_path(coordinate)
        if os.path.isfile(local_path):
            if is_debug_enabled(logger):
                logger.debug("Resolved from local repository", extra=extra_context(
                    event="function_exit", component="client", action="resolve",
                    outcome="local_hit", coordinate=str(coordinate)
                ))
            return ResolvedArtifact(coordinate, local_path)

        if self.offline:
            raise ArtifactNotFoundError(coordinate, [self.local_repository])

        failures: List[RepositoryAccessError] = []
        for remote in self.remote_repositories:
            url = f"{remote}/{coordinate.relative_path()}"
            with Timer() as timer:
                try:
                    found = http_client.download(url, local_path, context="maven")
                except RepositoryAccessError as exc:
                    failures.append(exc)
                    continue
            if found:
                logger.info("Downloaded %s from %s", coordinate, safe_url(remote))
                if is_debug_enabled(logger):
                    logger.debug("Artifact downloaded", extra=extra_context(
                        event="function_exit", component="client", action="resolve",
                        outcome="downloaded", duration_ms=timer.duration_ms(),
                        coordinate=str(coordinate), target=safe_url(url)
                    ))
                return ResolvedArtifact(coordinate, local_path)

        if failures:
            raise RepositoryAccessError(
                f"Couldn't resolve {coordinate}: " + "; ".join(str(f) for f in failures)
            ) from failures[-1]
        raise ArtifactNotFoundError(
            coordinate, [self.local_repository] + [safe_url(r) for r in self.remote_repositories]
        )

    def resolve_edge(self, edge: DependencyEdge) -> ResolvedArtifact:
        """Resolve the target of an edge, honoring ``system`` scope paths."""
        if edge.scope == Scopes.SYSTEM.value:
            if not edge.system_path or not os.path.isfile(edge.system_path):
                raise ArtifactNotFoundError(edge.target, [edge.system_path or "<no systemPath>"])
            return ResolvedArtifact(edge.target, os.path.abspath(edge.system_path))
        return self.resolve(edge.target)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def fetch_metadata(self, group: str, name: str) -> MavenMetadata:
        """Return the merged ``maven-metadata.xml`` of all repositories."""
        cache_key = f"{group}:{name}"
        with self._lock:
            if cache_key in self._metadata:
                return self._metadata[cache_key]

        probe = ArtifactCoordinate(group, name, "0")
        versions: List[str] = []
        latest = release = None
        if self.offline:
            artifact_dir = os.path.dirname(os.path.dirname(self._local_path(probe)))
            if os.path.isdir(artifact_dir):
                versions = sorted(
                    d for d in os.listdir(artifact_dir)
                    if os.path.isdir(os.path.join(artifact_dir, d))
                )
        else:
            for remote in self.remote_repositories:
                url = f"{remote}/{probe.metadata_path()}"
                response = http_client.safe_get(url, context="maven")
                if response.status_code == 404:
                    continue
                if response.status_code != 200:
                    raise RepositoryAccessError(
                        f"Metadata request to {safe_url(url)} returned HTTP {response.status_code}"
                    )
                metadata = MavenMetadata.from_xml(response.text)
                for v in metadata.versions:
                    if v not in versions:
                        versions.append(v)
                latest = latest or metadata.latest
                release = release or metadata.release

        merged = MavenMetadata(versions, latest, release)
        with self._lock:
            self._metadata[cache_key] = merged
        return merged

    def resolve_version(self, coordinate: ArtifactCoordinate) -> ArtifactCoordinate:
        """Replace a range or LATEST/RELEASE version by a concrete one.

        Raises:
            ArtifactNotFoundError: when no published version satisfies the spec.
        """
        spec = parse_version_spec(coordinate.version)
        metadata = self.fetch_metadata(coordinate.group, coordinate.name)
        resolved, count, error = self._version_resolver.pick(spec, metadata)
        if resolved is None:
            logger.warning(
                "Couldn't resolve version '%s' of %s:%s (%d candidates): %s",
                spec.raw, coordinate.group, coordinate.name, count, error,
            )
            raise ArtifactNotFoundError(coordinate, [error] if error else None)
        if is_debug_enabled(logger):
            logger.debug("Resolved version", extra=extra_context(
                event="decision", component="client", action="resolve_version",
                outcome=resolved, count=count, coordinate=str(coordinate)
            ))
        return coordinate.with_version(resolved)

    # ------------------------------------------------------------------
    # POMs and dependency trees
    # ------------------------------------------------------------------

    def _read_pom(self, coordinate: ArtifactCoordinate) -> PomModel:
        resolved = self.resolve(coordinate.pom())
        try:
            with open(resolved.path, encoding="utf-8") as fh:
                text = fh.read()
        except OSError as e:
            raise RepositoryAccessError(f"Couldn't read {resolved.path}: {e}") from e
        return parse_pom(text)

    def load_pom_chain(self, coordinate: ArtifactCoordinate) -> List[PomModel]:
        """Load an artifact's POM followed by its parents, nearest first."""
        chain = [self._read_pom(coordinate)]
        seen = {coordinate.pom()}
        while chain[-1].parent is not None:
            parent = chain[-1].parent
            if parent in seen:
                raise InvalidPomError(f"Parent cycle detected at {parent}")
            if len(chain) > Constants.MAX_PARENT_DEPTH:
                raise InvalidPomError(f"Parent chain of {coordinate} is deeper than {Constants.MAX_PARENT_DEPTH}")
            seen.add(parent)
            chain.append(self._read_pom(parent))
        return chain

    def _load_bom(self, bom: ArtifactCoordinate, importing: frozenset = frozenset()) -> List[RawDependency]:
        if bom in importing:
            raise InvalidPomError(f"Import cycle detected at {bom}")
        nested = importing | {bom}
        return managed_dependencies(
            self.load_pom_chain(bom), lambda inner: self._load_bom(inner, nested)
        )

    def declared_dependencies(self, coordinate: ArtifactCoordinate) -> List[DependencyEdge]:
        """The dependencies an artifact's effective POM declares, unfiltered."""
        if needs_resolution(coordinate.version):
            coordinate = self.resolve_version(coordinate)
        with self._lock:
            cached = self._declared.get(coordinate)
        if cached is not None:
            return cached
        edges = effective_dependencies(self.load_pom_chain(coordinate), self._load_bom)
        with self._lock:
            self._declared[coordinate] = edges
        return edges

    def collect_dependency_tree(self, root: DependencyEdge, selector: DependencySelector) -> DependencyNode:
        """Build the selected dependency tree below ``root``.

        The tree is built breadth first so that, for transitive nodes, the
        version nearest to the root wins; direct dependencies are all kept.
        Cycles and system-scoped dependencies are not expanded.
        """
        root_node = _PendingNode(root)
        selected: Dict[str, int] = {}
        queue = deque([(root_node, 0, tuple(root.exclusions), frozenset({root.target.key}))])

        while queue:
            node, depth, exclusions, path_keys = queue.popleft()
            if depth >= self.max_depth:
                continue
            for edge in self.declared_dependencies(node.edge.target):
                context = SelectionContext(depth=depth + 1, exclusions=exclusions)
                if not selector.select(edge, context):
                    continue
                key = edge.target.key
                if key in path_keys:
                    continue
                if depth > 0 and key in selected:
                    continue
                selected.setdefault(key, depth + 1)

                child = _PendingNode(edge)
                node.children.append(child)
                if edge.scope != Scopes.SYSTEM.value and edge.target.extension in ("jar", "pom"):
                    queue.append((child, depth + 1, exclusions + edge.exclusions, path_keys | {key}))

        if is_debug_enabled(logger):
            logger.debug("Collected dependency tree", extra=extra_context(
                event="function_exit", component="client", action="collect_dependency_tree",
                count=len(selected), coordinate=str(root.target)
            ))
        return root_node.freeze()
