"""Descriptor assembly: from module configurations to written descriptors.

A batch runs in two phases. First every configured artifact is resolved and
its module name registered, so that modules can require each other in any
order. Then each selected module is assembled (artifact resolution,
dependency collection, pattern matching) and handed to the writer.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from constants import FailurePolicy, Scopes
from errors import (
    ArtifactNotFoundError,
    DependencyCollectionError,
    DescriptorWriteError,
    InvalidArtifactError,
    ModGateError,
)
from common.logging_utils import extra_context, is_debug_enabled, Timer
from graph.collector import DependencyGraphCollector, add_descriptor
from graph.model import DependencyDescriptor
from modules import jar
from modules.descriptor import ModuleDescriptorRequest
from modules.patterns import match_exports, match_requires, parse_export_rules, parse_require_rules
from modules.registry import ModuleNameRegistry
from registry.maven.coordinates import ResolvedArtifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModulePlan:
    """A module ready to be written: its request, its artifact and its dependencies."""

    request: ModuleDescriptorRequest
    artifact_path: str
    dependencies: Tuple[DependencyDescriptor, ...] = ()

    @property
    def module_path(self) -> Tuple[str, ...]:
        return tuple(d.path for d in self.dependencies)


@dataclass(frozen=True)
class ModuleOutcome:
    label: str
    request: ModuleDescriptorRequest
    output: str


@dataclass(frozen=True)
class ModuleFailure:
    label: str
    error: ModGateError


@dataclass
class BatchResult:
    """What happened to each processed module, in configuration order."""

    outcomes: List[ModuleOutcome] = field(default_factory=list)
    failures: List[ModuleFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class DescriptorAssembler:
    """Builds the descriptor request of one module configuration."""

    def __init__(self, client, excluded_scopes: Iterable[str] = (Scopes.TEST.value,)):
        self.client = client
        self.excluded_scopes = tuple(excluded_scopes)
        self.collector = DependencyGraphCollector(client)

    def _artifact_path(self, configuration) -> Tuple[str, Optional[ResolvedArtifact]]:
        if configuration.file is not None:
            path = os.path.abspath(os.path.expanduser(configuration.file))
            if not os.path.isfile(path):
                raise ArtifactNotFoundError(configuration.file, [path])
            return path, None
        resolved = self.client.resolve(configuration.artifact)
        return resolved.path, resolved

    def _dependencies(self, configuration, root, registry) -> Tuple[DependencyDescriptor, ...]:
        descriptors: Dict[str, DependencyDescriptor] = {}
        if root is not None:
            for descriptor in self.collector.collect(root, registry, self.excluded_scopes):
                add_descriptor(descriptors, descriptor)

        # Additional dependencies bypass every filter and are always required
        for coordinate in configuration.additional_dependencies:
            try:
                resolved = self.client.resolve(coordinate)
            except ModGateError as e:
                raise DependencyCollectionError(coordinate, e) from e
            add_descriptor(
                descriptors,
                DependencyDescriptor(
                    path=resolved.path,
                    optional=False,
                    module_name=registry.get(resolved.coordinate),
                    coordinate=resolved.coordinate,
                ),
            )
        return tuple(descriptors.values())

    @staticmethod
    def _required_name(descriptor: DependencyDescriptor) -> str:
        if descriptor.module_name:
            return descriptor.module_name
        what = descriptor.coordinate or descriptor.path
        try:
            name = jar.module_name(descriptor.path)
        except InvalidArtifactError as e:
            raise DescriptorWriteError(f"Couldn't determine module name of dependency {what}: {e}") from e
        if not jar.is_valid_module_name(name):
            raise DescriptorWriteError(
                f"Couldn't determine module name of dependency {what}: '{name}' is not a valid module name"
            )
        return name

    def prepare(self, configuration, registry: ModuleNameRegistry) -> ModulePlan:
        """Resolve, collect and match everything one module needs.

        Raises:
            ModGateError: any module-scoped failure; no request is produced.
        """
        if configuration.has_module_info_source:
            return self._prepare_literal(configuration, registry)

        info = configuration.module_info
        export_rules = parse_export_rules(info.exports)
        require_rules = parse_require_rules(info.requires)

        artifact_path, root = self._artifact_path(configuration)
        dependencies = self._dependencies(configuration, root, registry)

        # A module name reached through several paths is static only if every path is optional
        names: Set[str] = set()
        required: Set[str] = set()
        for descriptor in dependencies:
            name = self._required_name(descriptor)
            if name == info.name:
                continue
            names.add(name)
            if not descriptor.optional:
                required.add(name)

        request = ModuleDescriptorRequest.create(
            module_name=info.name,
            exports=match_exports(jar.list_packages(artifact_path), export_rules),
            requires=match_requires(names, require_rules, optional_modules=names - required),
            uses=info.uses,
            add_service_uses=info.add_service_uses,
            main_class=configuration.main_class,
        )
        return ModulePlan(request, artifact_path, dependencies)

    def _prepare_literal(self, configuration, registry: ModuleNameRegistry) -> ModulePlan:
        # No rules to apply; the dependencies only make up the module path for compilation
        artifact_path, root = self._artifact_path(configuration)
        dependencies = self._dependencies(configuration, root, registry)
        request = ModuleDescriptorRequest.from_source(
            configuration.module_name,
            configuration.module_info_text(),
            main_class=configuration.main_class,
        )
        logger.info("Using the given module-info source for %s", configuration.label)
        return ModulePlan(request, artifact_path, dependencies)

    def assemble(self, configuration, registry: ModuleNameRegistry) -> ModuleDescriptorRequest:
        """The descriptor request for ``configuration``."""
        return self.prepare(configuration, registry).request


def _process(assembler: DescriptorAssembler, writer, configuration, registry, output_directory) -> ModuleOutcome:
    with Timer() as timer:
        plan = assembler.prepare(configuration, registry)
        output = writer.write(plan.request, plan.artifact_path, output_directory, plan.module_path)
    if is_debug_enabled(logger):
        logger.debug("Module processed", extra=extra_context(
            event="function_exit", component="assembly", action="process", outcome="success",
            module_name=configuration.label, count=len(plan.dependencies),
            duration_ms=timer.duration_ms()
        ))
    return ModuleOutcome(configuration.label, plan.request, output)


def run_batch(batch, client, writer) -> BatchResult:
    """Run every selected module of ``batch`` through assembly and the writer.

    Configuration problems, duplicate modules and any failure while the
    registry is built abort the whole batch by raising. Other failures are
    scoped to their module and handled per ``batch.failure_policy``.
    """
    batch.validate()
    try:
        os.makedirs(batch.output_directory, exist_ok=True)
        os.makedirs(batch.working_directory, exist_ok=True)
    except OSError as e:
        raise DescriptorWriteError(f"Couldn't create output directories: {e}") from e

    registry = ModuleNameRegistry.build(batch.modules, client)
    assembler = DescriptorAssembler(client, batch.excluded_scopes)
    configurations = batch.to_process
    fail_fast = batch.failure_policy == FailurePolicy.FAIL_FAST

    outcomes: Dict[int, ModuleOutcome] = {}
    failures: Dict[int, ModuleFailure] = {}

    def handle_error(index, configuration, error) -> None:
        if error.batch_fatal:
            raise error
        logger.error("Module %s failed: %s", configuration.label, error)
        failures[index] = ModuleFailure(configuration.label, error)

    if batch.jobs <= 1 or len(configurations) <= 1:
        for index, configuration in enumerate(configurations):
            try:
                outcomes[index] = _process(assembler, writer, configuration, registry, batch.output_directory)
            except ModGateError as e:
                handle_error(index, configuration, e)
                if fail_fast:
                    break
    else:
        with ThreadPoolExecutor(max_workers=batch.jobs) as executor:
            futures = {
                executor.submit(_process, assembler, writer, c, registry, batch.output_directory): (i, c)
                for i, c in enumerate(configurations)
            }
            # Modules already running when fail-fast cancels the rest still finish and are reported
            for future in as_completed(futures):
                index, configuration = futures[future]
                if future.cancelled():
                    continue
                try:
                    outcomes[index] = future.result()
                except ModGateError as e:
                    handle_error(index, configuration, e)
                    if fail_fast:
                        for pending in futures:
                            pending.cancel()

    result = BatchResult(
        outcomes=[outcomes[i] for i in sorted(outcomes)],
        failures=[failures[i] for i in sorted(failures)],
    )
    logger.info(
        "Processed %d module(s): %d written, %d failed",
        len(result.outcomes) + len(result.failures), len(result.outcomes), len(result.failures),
    )
    return result
