"""Descriptor writers: turn a ModuleDescriptorRequest into files on disk.

``SourceDescriptorWriter`` only renders ``module-info.java``.
``JarDescriptorWriter`` additionally compiles it against the patched
artifact with ``javac`` and adds the resulting ``module-info.class`` to a
copy of the artifact with ``jar --update``.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from typing import List, Sequence

from constants import Constants, WriterKind
from errors import DescriptorWriteError, InvalidArtifactError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from modules import jar
from modules.descriptor import ModuleDescriptorRequest

logger = logging.getLogger(__name__)


def _atomic_write_text(path: str, text: str) -> None:
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".modgate-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class DescriptorWriter:
    """Base class for writers; validates requests before anything is written."""

    def __init__(self, overwrite_existing_files: bool = False):
        self.overwrite_existing_files = overwrite_existing_files

    def validate(self, request: ModuleDescriptorRequest, artifact_path: str) -> None:
        """Reject requests that can't describe ``artifact_path``.

        Raises:
            DescriptorWriteError: for invalid module names or exported
                packages the artifact doesn't contain.
        """
        if not jar.is_valid_module_name(request.module_name):
            raise DescriptorWriteError(f"Invalid module name '{request.module_name}'")
        for requires in request.requires:
            if not jar.is_valid_module_name(requires.name):
                raise DescriptorWriteError(
                    f"Module {request.module_name} requires '{requires.name}', which is not a valid module name"
                )
        for export in request.exports:
            for target in export.targets:
                if not jar.is_valid_module_name(target):
                    raise DescriptorWriteError(
                        f"Invalid target module '{target}' for exported package {export.package}"
                    )
        if request.exports:
            try:
                packages = jar.list_packages(artifact_path)
            except InvalidArtifactError as e:
                raise DescriptorWriteError(str(e)) from e
            missing = [e.package for e in request.exports if e.package not in packages]
            if missing:
                raise DescriptorWriteError(
                    f"Module {request.module_name} exports packages not present in "
                    f"{artifact_path}: {', '.join(missing)}"
                )
        if request.add_service_uses:
            logger.warning(
                "Service use discovery isn't supported for %s; only declared uses are emitted",
                request.module_name,
            )

    def _check_target(self, path: str) -> None:
        if os.path.exists(path) and not self.overwrite_existing_files:
            raise DescriptorWriteError(
                f"File {path} already exists; enable overwrite_existing_files to replace it"
            )

    def write(
        self,
        request: ModuleDescriptorRequest,
        artifact_path: str,
        output_directory: str,
        module_path: Sequence[str] = (),
    ) -> str:
        """Materialize ``request`` under ``output_directory`` and return the written path."""
        raise NotImplementedError


class SourceDescriptorWriter(DescriptorWriter):
    """Writes ``<output>/<module>/module-info.java``."""

    def write(self, request, artifact_path, output_directory, module_path=()):
        self.validate(request, artifact_path)
        target = os.path.join(output_directory, request.module_name, Constants.MODULE_INFO_SOURCE)
        self._check_target(target)
        try:
            _atomic_write_text(target, request.as_module_info())
        except OSError as e:
            raise DescriptorWriteError(f"Couldn't write {target}: {e}") from e
        logger.info("Wrote %s", target)
        return target


class JarDescriptorWriter(DescriptorWriter):
    """Writes a copy of the artifact with a compiled ``module-info.class`` added."""

    def __init__(
        self,
        working_directory: str = Constants.WORKING_DIRECTORY,
        overwrite_existing_files: bool = False,
        javac: str = Constants.JAVAC,
        jar_tool: str = Constants.JAR,
    ):
        super().__init__(overwrite_existing_files)
        self.working_directory = working_directory
        self.javac = javac
        self.jar_tool = jar_tool

    def _run(self, cmd: List[str], module_name: str) -> None:
        if is_debug_enabled(logger):
            logger.debug("Running tool", extra=extra_context(
                event="external_call", component="writer", action="run",
                module_name=module_name, target=" ".join(cmd)
            ))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise DescriptorWriteError(f"Couldn't run {cmd[0]}: {e}") from e
        if proc.returncode != 0:
            output = "\n".join(s.strip() for s in (proc.stdout, proc.stderr) if s and s.strip())
            raise DescriptorWriteError(
                f"{cmd[0]} failed for module {module_name} (exit {proc.returncode}):\n{output}"
            )

    def write(self, request, artifact_path, output_directory, module_path=()):
        self.validate(request, artifact_path)
        target = os.path.join(output_directory, os.path.basename(artifact_path))
        self._check_target(target)

        module_dir = os.path.join(self.working_directory, request.module_name)
        source_file = os.path.join(module_dir, "src", Constants.MODULE_INFO_SOURCE)
        classes_dir = os.path.join(module_dir, "classes")

        with Timer() as timer:
            try:
                _atomic_write_text(source_file, request.as_module_info())
                os.makedirs(classes_dir, exist_ok=True)
            except OSError as e:
                raise DescriptorWriteError(f"Couldn't prepare {module_dir}: {e}") from e

            javac_cmd = [self.javac, "-d", classes_dir]
            if module_path:
                javac_cmd += ["--module-path", os.pathsep.join(module_path)]
            javac_cmd += ["--patch-module", f"{request.module_name}={artifact_path}", source_file]
            self._run(javac_cmd, request.module_name)

            try:
                os.makedirs(output_directory, exist_ok=True)
                shutil.copyfile(artifact_path, target)
            except OSError as e:
                raise DescriptorWriteError(f"Couldn't copy {artifact_path} to {target}: {e}") from e

            jar_cmd = [self.jar_tool, "--update", "--file", target]
            if request.main_class:
                jar_cmd += ["--main-class", request.main_class]
            jar_cmd += ["-C", classes_dir, Constants.MODULE_INFO_CLASS]
            try:
                self._run(jar_cmd, request.module_name)
            except DescriptorWriteError:
                # Don't leave a JAR without its descriptor behind
                if os.path.exists(target):
                    os.remove(target)
                raise

        logger.info("Wrote %s", target)
        if is_debug_enabled(logger):
            logger.debug("Descriptor added", extra=extra_context(
                event="function_exit", component="writer", action="write",
                outcome="success", module_name=request.module_name, duration_ms=timer.duration_ms()
            ))
        return target


def create_writer(kind: WriterKind, working_directory: str, overwrite_existing_files: bool) -> DescriptorWriter:
    """The writer selected by ``--writer`` (or the batch file)."""
    if kind == WriterKind.JAR:
        return JarDescriptorWriter(working_directory, overwrite_existing_files)
    return SourceDescriptorWriter(overwrite_existing_files)
