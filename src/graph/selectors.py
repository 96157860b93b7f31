"""Composable dependency selectors applied while a tree is collected.

A selector decides, for one declared edge seen at a given depth below the
root, whether the edge (and therefore its subtree) belongs to the tree.
Depth 1 means a direct dependency of the root artifact.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from constants import Scopes
from graph.model import DependencyEdge, Exclusion


@dataclass(frozen=True)
class SelectionContext:
    """Where an edge was found: its depth and the exclusions inherited along the path."""

    depth: int
    exclusions: Tuple[Exclusion, ...] = ()


class DependencySelector:
    """Base class for selectors."""

    def select(self, edge: DependencyEdge, context: SelectionContext) -> bool:
        raise NotImplementedError


class ScopeSelector(DependencySelector):
    """Drops edges whose declared scope is excluded; ``test`` always is.

    Scopes in ``non_transitive`` are only honored on direct edges, the way
    Maven never propagates ``provided`` or ``test`` dependencies of a
    dependency.
    """

    def __init__(
        self,
        excluded: Iterable[str] = (Scopes.TEST.value,),
        non_transitive: Iterable[str] = (Scopes.PROVIDED.value, Scopes.TEST.value),
    ):
        self.excluded = frozenset(excluded) | {Scopes.TEST.value}
        self.non_transitive = frozenset(non_transitive)

    def select(self, edge: DependencyEdge, context: SelectionContext) -> bool:
        if edge.scope in self.excluded:
            return False
        if context.depth > 1 and edge.scope in self.non_transitive:
            return False
        return True


class OptionalSelector(DependencySelector):
    """Keeps optional direct edges (they stay flagged) and drops optional transitive ones."""

    def select(self, edge: DependencyEdge, context: SelectionContext) -> bool:
        return context.depth <= 1 or not edge.optional


class ExclusionSelector(DependencySelector):
    """Honors ``<exclusions>`` declared on any edge above this one."""

    def select(self, edge: DependencyEdge, context: SelectionContext) -> bool:
        return not any(excl.matches(edge.target) for excl in context.exclusions)


class AndSelector(DependencySelector):
    """Selects an edge only if every wrapped selector does."""

    def __init__(self, *selectors: DependencySelector):
        self.selectors = selectors

    def select(self, edge: DependencyEdge, context: SelectionContext) -> bool:
        return all(s.select(edge, context) for s in self.selectors)


def default_selector(excluded_scopes: Iterable[str] = (Scopes.TEST.value,)) -> DependencySelector:
    """Scope, optionality and exclusion filtering as used for module descriptors."""
    return AndSelector(
        ScopeSelector(excluded_scopes),
        OptionalSelector(),
        ExclusionSelector(),
    )
