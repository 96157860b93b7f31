"""Inspection of JAR files: packages, manifests and module names."""
from __future__ import annotations

import logging
import os
import re
import subprocess
import zipfile
import zlib
from typing import Dict, FrozenSet, Optional

from constants import Constants
from errors import InvalidArtifactError

logger = logging.getLogger(__name__)

_MANIFEST = "META-INF/MANIFEST.MF"
_VERSIONED_PREFIX_RE = re.compile(r"^META-INF/versions/\d+/")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_JAVA_KEYWORDS = frozenset(
    """
    abstract assert boolean break byte case catch char class const continue
    default do double else enum extends final finally float for goto if
    implements import instanceof int interface long native new package private
    protected public return short static strictfp super switch synchronized
    this throw throws transient try void volatile while true false null _
    """.split()
)


def _open(path: str) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise InvalidArtifactError(f"Couldn't read {path} as a JAR file: {e}") from e


def _entry_name(entry: str) -> Optional[str]:
    """Strip a multi-release prefix; None for other META-INF entries."""
    m = _VERSIONED_PREFIX_RE.match(entry)
    if m:
        return entry[m.end():]
    if entry.startswith("META-INF/"):
        return None
    return entry


def list_packages(path: str) -> FrozenSet[str]:
    """The packages holding at least one class in the JAR at ``path``.

    Classes in the default package and ``module-info`` are ignored; classes
    under ``META-INF/versions/<n>/`` count for their unversioned package.
    """
    packages = set()
    with _open(path) as jar:
        for entry in jar.namelist():
            name = _entry_name(entry)
            if not name or not name.endswith(".class") or "/" not in name:
                continue
            directory, _, simple_name = name.rpartition("/")
            if simple_name == Constants.MODULE_INFO_CLASS:
                continue
            packages.add(directory.replace("/", "."))
    return frozenset(packages)


def has_module_descriptor(path: str) -> bool:
    """Whether the JAR already carries a ``module-info.class``, versioned or not."""
    with _open(path) as jar:
        return any(_entry_name(entry) == Constants.MODULE_INFO_CLASS for entry in jar.namelist())


def read_manifest(path: str) -> Dict[str, str]:
    """Main attributes of the JAR manifest; empty when there is none."""
    with _open(path) as jar:
        try:
            raw = jar.read(_MANIFEST).decode("utf-8", errors="replace")
        except KeyError:
            return {}
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as e:
            raise InvalidArtifactError(f"Couldn't read the manifest of {path}: {e}") from e

    attributes: Dict[str, str] = {}
    last = None
    for line in raw.splitlines():
        if not line.strip():
            # Main section ends at the first blank line
            break
        if line.startswith(" ") and last is not None:
            attributes[last] += line[1:]
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        last = key.strip()
        attributes[last] = value.strip()
    return attributes


def is_valid_module_name(name: Optional[str]) -> bool:
    """Whether ``name`` is a dotted sequence of Java identifiers."""
    if not name:
        return False
    return all(
        _IDENTIFIER_RE.match(ident) and ident not in _JAVA_KEYWORDS for ident in name.split(".")
    )


def derive_automatic_module_name(path: str) -> str:
    """
    Derives the name of an automatic module from its file name according to the
    specification of ``java.lang.module.ModuleFinder.of(Path... entries)``.
    """
    # Drop directory prefix and .jar (or .zip) suffix
    name = os.path.basename(path)
    if name.lower().endswith((".jar", ".zip")):
        name = name[0:-4]

    # Find first occurrence of -${NUMBER}. or -${NUMBER}$
    m = re.search(r'-(\d+(\.|$))', name)
    if m:
        name = name[0:m.start()]

    name = re.sub(r'[^A-Za-z0-9]', '.', name)  # replace non-alphanumeric
    name = re.sub(r'(\.)(\1)+', '.', name)  # collapse repeating dots
    name = re.sub(r'^\.', '', name)  # drop leading dots
    return re.sub(r'\.$', '', name)  # drop trailing dots


def automatic_module_name(path: str) -> str:
    """``Automatic-Module-Name`` from the manifest, else the file name derivation."""
    declared = read_manifest(path).get("Automatic-Module-Name")
    if declared:
        return declared
    return derive_automatic_module_name(path)


def describe_module(path: str, jar_tool: str = Constants.JAR) -> str:
    """Name of the explicit module packaged in ``path``, via ``jar --describe-module``.

    Raises:
        InvalidArtifactError: when the tool is missing or fails.
    """
    cmd = [jar_tool, "--describe-module", "--file", path]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise InvalidArtifactError(f"Couldn't run {jar_tool}: {e}") from e
    lines = [line for line in proc.stdout.splitlines() if line.strip()]
    if proc.returncode != 0 or not lines:
        raise InvalidArtifactError(
            f"{jar_tool} --describe-module failed for {path} (exit {proc.returncode}):\n{proc.stderr.strip()}"
        )
    # First line reads "<name>[@<version>] jar:file:..."
    return lines[0].split()[0].split("@")[0]


def module_name(path: str) -> str:
    """The name ``path`` has on the module path: explicit if it has a descriptor, else automatic."""
    if has_module_descriptor(path):
        name = describe_module(path)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Explicit module %s in %s", name, path)
        return name
    return automatic_module_name(path)
