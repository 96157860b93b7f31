"""Shared fixtures: JAR files and Maven 2 layout repositories built on disk."""
from __future__ import annotations

import os
import zipfile

import pytest

from registry.maven.coordinates import ArtifactCoordinate


def build_jar(path, classes=(), manifest=None, extra_entries=None):
    """Write a JAR holding empty ``.class`` entries for the given class names."""
    os.makedirs(os.path.dirname(str(path)), exist_ok=True)
    with zipfile.ZipFile(str(path), "w") as jar:
        if manifest is not None:
            lines = ["Manifest-Version: 1.0"] + [f"{k}: {v}" for k, v in manifest.items()]
            jar.writestr("META-INF/MANIFEST.MF", "\r\n".join(lines) + "\r\n\r\n")
        for class_name in classes:
            jar.writestr(class_name.replace(".", "/") + ".class", b"\xca\xfe\xba\xbe")
        for name, data in (extra_entries or {}).items():
            jar.writestr(name, data)
    return str(path)


def dependency_xml(coordinate, scope=None, optional=False, exclusions=()):
    group, name, version = coordinate.split(":")
    parts = [f"<groupId>{group}</groupId>", f"<artifactId>{name}</artifactId>"]
    if version:
        parts.append(f"<version>{version}</version>")
    if scope:
        parts.append(f"<scope>{scope}</scope>")
    if optional:
        parts.append("<optional>true</optional>")
    if exclusions:
        parts.append("<exclusions>" + "".join(
            f"<exclusion><groupId>{g}</groupId><artifactId>{a}</artifactId></exclusion>"
            for g, a in exclusions
        ) + "</exclusions>")
    return "<dependency>" + "".join(parts) + "</dependency>"


class LocalRepository:
    """A throwaway local Maven repository."""

    dependency = staticmethod(dependency_xml)

    def __init__(self, root):
        self.root = str(root)

    def path_of(self, coordinate: ArtifactCoordinate) -> str:
        return os.path.join(self.root, *coordinate.relative_path().split("/"))

    def install(self, gav, dependencies=(), classes=(), manifest=None, pom_extra=""):
        """Install a POM and a JAR for ``group:name:version``; returns the JAR path.

        ``dependencies`` are XML snippets as built by :func:`dependency_xml`.
        """
        group, name, version = gav.split(":")
        coordinate = ArtifactCoordinate(group, name, version)
        pom_path = self.path_of(coordinate.pom())
        os.makedirs(os.path.dirname(pom_path), exist_ok=True)
        with open(pom_path, "w", encoding="utf-8") as fh:
            fh.write(
                '<project xmlns="http://maven.apache.org/POM/4.0.0">'
                "<modelVersion>4.0.0</modelVersion>"
                f"<groupId>{group}</groupId><artifactId>{name}</artifactId><version>{version}</version>"
                f"{pom_extra}"
                "<dependencies>" + "".join(dependencies) + "</dependencies>"
                "</project>"
            )
        return build_jar(self.path_of(coordinate), classes=classes, manifest=manifest)


@pytest.fixture
def local_repo(tmp_path):
    """An empty local repository under ``tmp_path``."""
    return LocalRepository(tmp_path / "repository")


@pytest.fixture
def make_jar(tmp_path):
    """Build a JAR named ``file_name`` under ``tmp_path/jars``."""

    def _make(file_name, classes=(), manifest=None, extra_entries=None):
        return build_jar(tmp_path / "jars" / file_name, classes, manifest, extra_entries)

    return _make
