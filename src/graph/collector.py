"""Dependency graph collection for module descriptor assembly.

Only the direct dependencies of an artifact become descriptors: a module
declares its direct ``requires``, indirect reachability is resolved by the
module system at link time.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from constants import Constants, Scopes
from errors import DependencyCollectionError, ModGateError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from graph.model import DependencyDescriptor, DependencyEdge
from graph.selectors import default_selector
from registry.maven.coordinates import ResolvedArtifact

logger = logging.getLogger(__name__)


def add_descriptor(
    descriptors: Dict[str, DependencyDescriptor], descriptor: DependencyDescriptor
) -> None:
    """Insert ``descriptor`` keyed by path, merging with an existing entry.

    A merged dependency is optional only if every path reaching it is
    optional; the first known module name is kept.
    """
    existing = descriptors.get(descriptor.path)
    if existing is None:
        descriptors[descriptor.path] = descriptor
        return
    descriptors[descriptor.path] = DependencyDescriptor(
        path=existing.path,
        optional=existing.optional and descriptor.optional,
        module_name=existing.module_name or descriptor.module_name,
        coordinate=existing.coordinate or descriptor.coordinate,
    )


class DependencyGraphCollector:
    """Turns an artifact's declared dependency tree into dependency descriptors."""

    def __init__(self, client):
        self.client = client

    def collect(
        self,
        root: ResolvedArtifact,
        registry,
        excluded_scopes: Iterable[str] = (Scopes.TEST.value,),
    ) -> List[DependencyDescriptor]:
        """Collect the filtered direct dependencies of ``root``.

        Args:
            root: the module's own resolved artifact.
            registry: module names assigned in the current batch.
            excluded_scopes: declared scopes that never become requirements.

        Returns:
            Descriptors in declaration order, unique by resolved path.

        Raises:
            DependencyCollectionError: when any part of the tree can't be
                resolved; nothing is returned in that case.
        """
        root_edge = DependencyEdge(target=root.coordinate, scope=Constants.ROOT_SCOPE)
        descriptors: Dict[str, DependencyDescriptor] = {}
        with Timer() as timer:
            try:
                tree = self.client.collect_dependency_tree(root_edge, default_selector(excluded_scopes))
                for child in tree.children:
                    resolved = self.client.resolve_edge(child.edge)
                    add_descriptor(
                        descriptors,
                        DependencyDescriptor(
                            path=resolved.path,
                            optional=child.edge.optional,
                            module_name=registry.get(resolved.coordinate),
                            coordinate=resolved.coordinate,
                        ),
                    )
            except DependencyCollectionError:
                raise
            except ModGateError as e:
                logger.error("Couldn't collect dependencies of %s: %s", root.coordinate, e)
                raise DependencyCollectionError(root.coordinate, e) from e

        if is_debug_enabled(logger):
            logger.debug(
                "Collected dependency descriptors",
                extra=extra_context(
                    event="function_exit",
                    component="collector",
                    action="collect",
                    count=len(descriptors),
                    duration_ms=timer.duration_ms(),
                    coordinate=str(root.coordinate),
                ),
            )
        return list(descriptors.values())
