"""Batch configuration: the modules to describe and how to process them.

A batch is read from a YAML file (JSON works too, being a YAML subset)::

    output_directory: target/modules
    overwrite_existing_files: false
    failure_policy: collect
    modules:
      - artifact: com.example:foo:1.0
        additional_dependencies: [com.example:extra:2.0]
        main_class: com.example.foo.Main
        module_info:
          name: com.example.foo
          exports: "com.example.foo.*; !com.example.foo.internal"
          requires: "static com.example.annotations"
          uses: com.example.spi.Plugin
      - file: libs/bar.jar
        module_info:
          name: com.example.bar
      - artifact: com.example:baz:3.1
        module_info_source: |
          module com.example.baz {
              requires java.sql;
              exports com.example.baz;
          }

Everything here is validated before any artifact is resolved; errors are
raised as ``ConfigurationError``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from constants import Constants, FailurePolicy, Scopes, WriterKind
from errors import ConfigurationError
from modules.descriptor import declared_module_name
from modules.jar import is_valid_module_name
from registry.maven.coordinates import ArtifactCoordinate, coordinate_from_mapping, parse_coordinate

logger = logging.getLogger(__name__)

RuleSpec = Union[None, str, Tuple[str, ...]]


def _coordinate(value: Any) -> ArtifactCoordinate:
    if isinstance(value, ArtifactCoordinate):
        return value
    if isinstance(value, dict):
        return coordinate_from_mapping(value)
    return parse_coordinate(value)


def _split(value: Any, separator: str) -> List[str]:
    """Accept a separated string or a list; trim and drop empty items."""
    if value is None:
        return []
    items = value.split(separator) if isinstance(value, str) else list(value)
    return [str(item).strip() for item in items if str(item).strip()]


def _rules(value: Any, what: str) -> RuleSpec:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, list):
        return tuple(str(item) for item in value)
    raise ConfigurationError(f"'{what}' must be a string or a list, got {type(value).__name__}")


@dataclass(frozen=True)
class ModuleInfoConfiguration:
    """The user's description of one module's descriptor."""

    name: str
    exports: RuleSpec = None
    requires: RuleSpec = None
    uses: Tuple[str, ...] = ()
    add_service_uses: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleInfoConfiguration":
        if not isinstance(data, dict):
            raise ConfigurationError("'module_info' must be a mapping")
        return cls(
            name=str(data.get("name") or "").strip(),
            exports=_rules(data.get("exports"), "exports"),
            requires=_rules(data.get("requires"), "requires"),
            uses=tuple(_split(data.get("uses"), ";")),
            add_service_uses=bool(data.get("add_service_uses", False)),
        )


@dataclass(frozen=True)
class ModuleConfiguration:
    """One module of a batch: an artifact (or file) and its descriptor settings.

    The descriptor is either assembled from ``module_info`` or given
    literally through ``module_info_source`` or ``module_info_file``.
    """

    module_info: Optional[ModuleInfoConfiguration] = None
    artifact: Optional[ArtifactCoordinate] = None
    file: Optional[str] = None
    additional_dependencies: Tuple[ArtifactCoordinate, ...] = ()
    main_class: Optional[str] = None
    module_info_source: Optional[str] = None
    module_info_file: Optional[str] = None

    @property
    def label(self) -> str:
        """How this module is referred to in logs and failure reports."""
        if self.module_info is not None and self.module_info.name:
            return self.module_info.name
        return str(self.artifact) if self.artifact is not None else str(self.file)

    @property
    def has_module_info_source(self) -> bool:
        return self.module_info_source is not None or self.module_info_file is not None

    def module_info_text(self) -> str:
        """The literal ``module-info.java`` text of this entry.

        Raises:
            ConfigurationError: when ``module_info_file`` can't be read.
        """
        if self.module_info_source is not None:
            return self.module_info_source
        path = os.path.expanduser(self.module_info_file)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            raise ConfigurationError(f"Couldn't read module_info_file {path} for {self.label}: {e}") from e

    @property
    def module_name(self) -> str:
        """The declared module name; empty when there is none."""
        if self.module_info is not None:
            return self.module_info.name
        if self.has_module_info_source:
            return declared_module_name(self.module_info_text()) or ""
        return ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleConfiguration":
        if not isinstance(data, dict):
            raise ConfigurationError(f"Module entry {data!r} must be a mapping")
        artifact = data.get("artifact")
        module_info = data.get("module_info")
        return cls(
            module_info=ModuleInfoConfiguration.from_dict(module_info) if module_info is not None else None,
            module_info_source=data.get("module_info_source"),
            module_info_file=data.get("module_info_file"),
            artifact=_coordinate(artifact) if artifact is not None else None,
            file=data.get("file"),
            additional_dependencies=tuple(
                _coordinate(dep)
                for dep in (
                    _split(data.get("additional_dependencies"), ",")
                    if isinstance(data.get("additional_dependencies"), str)
                    else (data.get("additional_dependencies") or [])
                )
            ),
            main_class=data.get("main_class"),
        )

    def validate(self) -> None:
        """Raises ConfigurationError when the entry is incomplete or contradictory."""
        if self.file is not None and self.artifact is not None:
            raise ConfigurationError(
                f"Only one of 'file' and 'artifact' may be specified, but both are given for {self.artifact}"
            )
        if self.file is None and self.artifact is None:
            raise ConfigurationError("One of 'file' and 'artifact' must be specified")
        if self.module_info_source is not None and self.module_info_file is not None:
            raise ConfigurationError(
                "Only one of 'module_info_file' and 'module_info_source' may be specified, "
                f"but both are given for {self.label}"
            )
        if self.module_info is not None and self.has_module_info_source:
            raise ConfigurationError(
                f"'module_info' can't be combined with 'module_info_file' or 'module_info_source' for {self.label}"
            )
        if self.module_info is None and not self.has_module_info_source:
            raise ConfigurationError(
                f"One of 'module_info', 'module_info_file' or 'module_info_source' must be specified for {self.label}"
            )
        name = self.module_name
        if not name:
            if self.has_module_info_source:
                raise ConfigurationError(f"No module declaration found in the module-info source of {self.label}")
            raise ConfigurationError(f"No module name given for {self.label}")
        if not is_valid_module_name(name):
            raise ConfigurationError(f"Invalid module name '{name}'")


@dataclass
class BatchConfiguration:
    """An ordered list of modules plus run-wide settings."""

    modules: List[ModuleConfiguration] = field(default_factory=list)
    # Modules to process when only part of the batch is run; None means all
    selected: Optional[List[ModuleConfiguration]] = None
    output_directory: str = Constants.OUTPUT_DIRECTORY
    working_directory: str = Constants.WORKING_DIRECTORY
    overwrite_existing_files: bool = False
    failure_policy: FailurePolicy = FailurePolicy.COLLECT
    jobs: int = 1
    writer: WriterKind = WriterKind.SOURCE
    local_repository: Optional[str] = None
    remote_repositories: Optional[List[str]] = None
    offline: bool = False
    excluded_scopes: List[str] = field(default_factory=lambda: [Scopes.TEST.value])

    @property
    def to_process(self) -> List[ModuleConfiguration]:
        return self.modules if self.selected is None else self.selected

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BatchConfiguration":
        """Build a batch from parsed YAML; unknown keys are ignored with a warning."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Batch configuration must be a mapping")
        known = {f for f in cls.__dataclass_fields__} - {"selected"}  # pylint: disable=no-member
        for key in data:
            if key not in known:
                logger.warning("Ignoring unknown configuration key '%s'", key)

        modules = data.get("modules") or []
        if not isinstance(modules, list):
            raise ConfigurationError("'modules' must be a list")
        remotes = data.get("remote_repositories")
        if remotes is not None and not isinstance(remotes, list):
            remotes = [remotes]
        batch = cls(
            modules=[ModuleConfiguration.from_dict(m) for m in modules],
            output_directory=str(data.get("output_directory") or Constants.OUTPUT_DIRECTORY),
            working_directory=str(data.get("working_directory") or Constants.WORKING_DIRECTORY),
            overwrite_existing_files=bool(data.get("overwrite_existing_files", False)),
            failure_policy=_enum(FailurePolicy, data.get("failure_policy", FailurePolicy.COLLECT.value)),
            jobs=_positive_int(data.get("jobs", 1), "jobs"),
            writer=_enum(WriterKind, data.get("writer", WriterKind.SOURCE.value)),
            local_repository=data.get("local_repository"),
            remote_repositories=[str(r) for r in remotes] if remotes is not None else None,
            offline=bool(data.get("offline", False)),
            excluded_scopes=_excluded_scopes(data.get("excluded_scopes")),
        )
        return batch

    def validate(self) -> None:
        """Check every module entry and cross-entry constraints.

        Raises:
            ConfigurationError: on the first problem found.
        """
        seen = set()
        for module in self.modules:
            module.validate()
            name = module.module_name
            if name in seen:
                raise ConfigurationError(f"Module name '{name}' is declared more than once")
            seen.add(name)
        if not self.to_process:
            raise ConfigurationError("No modules configured")
        if self.jobs < 1:
            raise ConfigurationError("'jobs' must be at least 1")

    def apply_overrides(self, args: Any) -> "BatchConfiguration":
        """Return a copy with CLI values applied; CLI values win over the file."""
        batch = replace(self)
        if getattr(args, "OUTPUT_DIR", None):
            batch.output_directory = args.OUTPUT_DIR
        if getattr(args, "WORKING_DIR", None):
            batch.working_directory = args.WORKING_DIR
        if getattr(args, "OVERWRITE", False):
            batch.overwrite_existing_files = True
        if getattr(args, "FAILURE_POLICY", None):
            batch.failure_policy = _enum(FailurePolicy, args.FAILURE_POLICY)
        if getattr(args, "JOBS", None) is not None:
            batch.jobs = _positive_int(args.JOBS, "jobs")
        if getattr(args, "WRITER", None):
            batch.writer = _enum(WriterKind, args.WRITER)
        if getattr(args, "LOCAL_REPO", None):
            batch.local_repository = args.LOCAL_REPO
        if getattr(args, "REMOTE_REPOS", None):
            batch.remote_repositories = list(args.REMOTE_REPOS)
        if getattr(args, "OFFLINE", False):
            batch.offline = True

        if getattr(args, "ARTIFACT", None):
            override = module_from_args(args)
            # The override replaces any configured entry for the same artifact
            batch.modules = [m for m in batch.modules if m.artifact != override.artifact] + [override]
            batch.selected = [override]
        return batch

    @classmethod
    def from_args(cls, args: Any) -> "BatchConfiguration":
        """Load the configured batch file (if any) and apply CLI overrides."""
        config_path = getattr(args, "CONFIG", None)
        batch = load_batch_config(config_path) if config_path else cls()
        batch = batch.apply_overrides(args)
        batch.validate()
        return batch


def module_from_args(args: Any) -> ModuleConfiguration:
    """Build a single module configuration from ``--artifact`` and friends."""
    module_info_source = getattr(args, "MODULE_INFO_SOURCE", None)
    module_info_file = getattr(args, "MODULE_INFO_FILE", None)
    module_info = None
    # With a literal source, --module-name only serves to report the conflict
    if getattr(args, "MODULE_NAME", None) or (module_info_source is None and module_info_file is None):
        module_info = ModuleInfoConfiguration(
            name=(getattr(args, "MODULE_NAME", None) or "").strip(),
            exports=getattr(args, "EXPORTS", None),
            requires=getattr(args, "REQUIRES", None),
            uses=tuple(_split(getattr(args, "USES", None), ";")),
            add_service_uses=bool(getattr(args, "ADD_SERVICE_USES", False)),
        )
    return ModuleConfiguration(
        module_info=module_info,
        module_info_source=module_info_source,
        module_info_file=module_info_file,
        artifact=_coordinate(args.ARTIFACT),
        additional_dependencies=tuple(
            _coordinate(dep) for dep in _split(getattr(args, "ADDITIONAL_DEPENDENCIES", None), ",")
        ),
        main_class=getattr(args, "MAIN_CLASS", None),
    )


def _enum(enum_type, value):
    try:
        return value if isinstance(value, enum_type) else enum_type(str(value).lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_type)
        raise ConfigurationError(f"Invalid value '{value}', expected one of: {allowed}") from e


def _excluded_scopes(value: Any) -> List[str]:
    """Configured scopes to drop; test-scoped edges are dropped regardless."""
    scopes = _split(value, ",")
    if Scopes.TEST.value not in scopes:
        scopes.insert(0, Scopes.TEST.value)
    return scopes


def _positive_int(value: Any, what: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{what}' must be an integer, got {value!r}") from e
    if number < 1:
        raise ConfigurationError(f"'{what}' must be at least 1")
    return number


def load_batch_config(path: str) -> BatchConfiguration:
    """Read a YAML (or JSON) batch file.

    Raises:
        FileNotFoundError, OSError: when the file can't be read.
        ConfigurationError: when it isn't a valid batch description.
    """
    with open(os.path.expanduser(path), "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Couldn't parse {path}: {e}") from e
    logger.debug("Loaded batch configuration from %s", path)
    return BatchConfiguration.from_dict(data)
