"""The batch-wide mapping from artifact coordinates to assigned module names."""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from errors import DuplicateModuleError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.maven.coordinates import ArtifactCoordinate

logger = logging.getLogger(__name__)


class ModuleNameRegistry:
    """Read-only lookup of the module names declared in one batch.

    Coordinates not declared as modules map to None; their dependants
    require them under their automatic module name.
    """

    def __init__(self, names: Optional[Mapping[ArtifactCoordinate, str]] = None):
        self._names = MappingProxyType(dict(names or {}))

    def get(self, coordinate: ArtifactCoordinate) -> Optional[str]:
        return self._names.get(coordinate)

    def __contains__(self, coordinate) -> bool:
        return coordinate in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[ArtifactCoordinate]:
        return iter(self._names)

    def items(self) -> Iterable[Tuple[ArtifactCoordinate, str]]:
        return self._names.items()

    @classmethod
    def build(cls, configurations, client) -> "ModuleNameRegistry":
        """Resolve every artifact-based configuration and record its module name.

        Configurations given by file have no coordinate and are skipped.

        Raises:
            DuplicateModuleError: when two configurations resolve to the
                same coordinate.
            ArtifactNotFoundError, RepositoryAccessError: when a declared
                artifact can't be resolved.
        """
        names: Dict[ArtifactCoordinate, str] = {}
        with Timer() as timer:
            for configuration in configurations:
                if configuration.artifact is None:
                    continue
                resolved = client.resolve(configuration.artifact)
                module_name = configuration.module_name
                existing = names.get(resolved.coordinate)
                if existing is not None:
                    raise DuplicateModuleError(resolved.coordinate, existing, module_name)
                names[resolved.coordinate] = module_name

        logger.info("Registered %d module name(s)", len(names))
        if is_debug_enabled(logger):
            logger.debug("Module name registry built", extra=extra_context(
                event="function_exit", component="registry", action="build",
                count=len(names), duration_ms=timer.duration_ms()
            ))
        return cls(names)
