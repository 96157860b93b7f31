"""POM parsing and effective-model construction.

Parsing is pure: fetching parents and imported BOMs is the repository
client's job, which hands the already-parsed chain to
:func:`effective_dependencies`.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from constants import Constants, Scopes
from errors import InvalidPomError
from graph.model import DependencyEdge, Exclusion
from registry.maven.coordinates import ArtifactCoordinate

logger = logging.getLogger(__name__)

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")


@dataclass
class RawDependency:
    """A ``<dependency>`` element exactly as declared (not interpolated)."""

    group: Optional[str]
    name: Optional[str]
    version: Optional[str] = None
    classifier: Optional[str] = None
    type: Optional[str] = None
    scope: Optional[str] = None
    optional: Optional[str] = None
    system_path: Optional[str] = None
    exclusions: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class PomModel:
    """The subset of a POM needed for dependency collection."""

    group: Optional[str]
    artifact: Optional[str]
    version: Optional[str]
    packaging: str = "jar"
    parent: Optional[ArtifactCoordinate] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[RawDependency] = field(default_factory=list)
    dependency_management: List[RawDependency] = field(default_factory=list)

    @property
    def effective_group(self) -> Optional[str]:
        return self.group or (self.parent.group if self.parent else None)

    @property
    def effective_version(self) -> Optional[str]:
        return self.version or (self.parent.version if self.parent else None)


def _text(elem: Optional[ET.Element], tag: str, ns: str) -> Optional[str]:
    if elem is None:
        return None
    child = elem.find(f"{ns}{tag}")
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _parse_dependencies(container: Optional[ET.Element], ns: str) -> List[RawDependency]:
    result: List[RawDependency] = []
    if container is None:
        return result
    deps = container.find(f"{ns}dependencies")
    if deps is None:
        return result
    for dep in deps.findall(f"{ns}dependency"):
        exclusions = []
        excl_container = dep.find(f"{ns}exclusions")
        if excl_container is not None:
            for excl in excl_container.findall(f"{ns}exclusion"):
                exclusions.append(
                    (_text(excl, "groupId", ns) or "*", _text(excl, "artifactId", ns) or "*")
                )
        result.append(
            RawDependency(
                group=_text(dep, "groupId", ns),
                name=_text(dep, "artifactId", ns),
                version=_text(dep, "version", ns),
                classifier=_text(dep, "classifier", ns),
                type=_text(dep, "type", ns),
                scope=_text(dep, "scope", ns),
                optional=_text(dep, "optional", ns),
                system_path=_text(dep, "systemPath", ns),
                exclusions=exclusions,
            )
        )
    return result


def parse_pom(pom_xml: str) -> PomModel:
    """Parse POM XML into a :class:`PomModel`.

    Both namespaced and namespace-less POMs are accepted.

    Raises:
        InvalidPomError: when the XML is malformed or not a ``<project>``.
    """
    try:
        root = ET.fromstring(pom_xml)
    except ET.ParseError as e:
        raise InvalidPomError(f"Malformed POM: {e}") from e

    ns = Constants.POM_NAMESPACE if root.tag.startswith(Constants.POM_NAMESPACE) else ""
    if root.tag != f"{ns}project":
        raise InvalidPomError(f"Unexpected POM root element <{root.tag}>")

    parent = None
    parent_elem = root.find(f"{ns}parent")
    if parent_elem is not None:
        p_group = _text(parent_elem, "groupId", ns)
        p_name = _text(parent_elem, "artifactId", ns)
        p_version = _text(parent_elem, "version", ns)
        if p_group and p_name and p_version:
            parent = ArtifactCoordinate(p_group, p_name, p_version, extension="pom")

    properties: Dict[str, str] = {}
    props_elem = root.find(f"{ns}properties")
    if props_elem is not None:
        for prop in props_elem:
            tag = prop.tag[len(ns):] if ns and prop.tag.startswith(ns) else prop.tag
            properties[tag] = (prop.text or "").strip()

    return PomModel(
        group=_text(root, "groupId", ns),
        artifact=_text(root, "artifactId", ns),
        version=_text(root, "version", ns),
        packaging=_text(root, "packaging", ns) or "jar",
        parent=parent,
        properties=properties,
        dependencies=_parse_dependencies(root, ns),
        dependency_management=_parse_dependencies(root.find(f"{ns}dependencyManagement"), ns),
    )


def interpolate(value: Optional[str], properties: Dict[str, str]) -> Optional[str]:
    """Expand ``${...}`` references; unknown references are left untouched."""
    if value is None or "${" not in value:
        return value
    for _ in range(10):
        expanded = _PROPERTY_RE.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
        if expanded == value:
            break
        value = expanded
    return value


def model_properties(chain: List[PomModel]) -> Dict[str, str]:
    """Merge properties along a child-first parent chain; the child wins."""
    child = chain[0]
    merged: Dict[str, str] = {}
    for model in reversed(chain):
        merged.update(model.properties)
    group = child.effective_group
    version = child.effective_version
    builtins = {
        "project.groupId": group,
        "project.artifactId": child.artifact,
        "project.version": version,
        "pom.groupId": group,
        "pom.artifactId": child.artifact,
        "pom.version": version,
        "groupId": group,
        "artifactId": child.artifact,
        "version": version,
    }
    if child.parent is not None:
        builtins["project.parent.groupId"] = child.parent.group
        builtins["project.parent.version"] = child.parent.version
    merged.update({k: v for k, v in builtins.items() if v is not None})
    return merged


def _management_key(group: str, name: str, type_: str, classifier: Optional[str]) -> str:
    return f"{group}:{name}:{type_}:{classifier or ''}"


def effective_dependencies(
    chain: List[PomModel],
    bom_loader: Optional[Callable[[ArtifactCoordinate], List[RawDependency]]] = None,
) -> List[DependencyEdge]:
    """Compute the declared dependencies of the first model in ``chain``.

    Args:
        chain: the artifact's POM followed by its parents, nearest first.
        bom_loader: returns the (already effective) managed dependencies of an
            ``import``-scoped BOM coordinate.

    Returns:
        Dependency edges in declaration order, parents' dependencies first.

    Raises:
        InvalidPomError: when a dependency's coordinate remains incomplete.
    """
    properties = model_properties(chain)
    managed = _managed_map(chain, properties, bom_loader)

    declared: Dict[str, RawDependency] = {}
    for model in reversed(chain):
        for raw in model.dependencies:
            group = interpolate(raw.group, properties)
            name = interpolate(raw.name, properties)
            if not group or not name:
                logger.warning("Skipping dependency without groupId/artifactId in %s", chain[0].artifact)
                continue
            key = _management_key(
                group, name,
                interpolate(raw.type, properties) or "jar",
                interpolate(raw.classifier, properties),
            )
            declared.pop(key, None)
            declared[key] = raw

    edges: List[DependencyEdge] = []
    for key, raw in declared.items():
        group = interpolate(raw.group, properties)
        name = interpolate(raw.name, properties)
        type_ = interpolate(raw.type, properties) or "jar"
        classifier = interpolate(raw.classifier, properties) or _IMPLIED_CLASSIFIERS.get(type_)
        mgmt = managed.get(key)

        version = interpolate(raw.version, properties)
        if not version and mgmt is not None:
            version = mgmt.version
        scope = interpolate(raw.scope, properties)
        if not scope and mgmt is not None:
            scope = mgmt.scope
        exclusions = list(raw.exclusions)
        if not exclusions and mgmt is not None:
            exclusions = list(mgmt.exclusions)
        optional = interpolate(raw.optional, properties)
        if optional is None and mgmt is not None:
            optional = mgmt.optional

        if not version or "${" in version:
            raise InvalidPomError(
                f"Dependency {group}:{name} of {properties.get('project.groupId')}:"
                f"{properties.get('project.artifactId')} has no resolvable version"
            )

        edges.append(
            DependencyEdge(
                target=ArtifactCoordinate(
                    group, name, version,
                    classifier=classifier,
                    extension=_extension_for_type(type_),
                ),
                scope=scope or Scopes.COMPILE.value,
                optional=(optional or "").lower() == "true",
                exclusions=tuple(
                    Exclusion(interpolate(g, properties) or "*", interpolate(a, properties) or "*")
                    for g, a in exclusions
                ),
                system_path=interpolate(raw.system_path, properties),
            )
        )
    return edges


def _interpolated(raw: RawDependency, properties: Dict[str, str]) -> RawDependency:
    return RawDependency(
        group=interpolate(raw.group, properties),
        name=interpolate(raw.name, properties),
        version=interpolate(raw.version, properties),
        classifier=interpolate(raw.classifier, properties),
        type=interpolate(raw.type, properties),
        scope=interpolate(raw.scope, properties),
        optional=interpolate(raw.optional, properties),
        system_path=interpolate(raw.system_path, properties),
        exclusions=[
            (interpolate(g, properties) or "*", interpolate(a, properties) or "*")
            for g, a in raw.exclusions
        ],
    )


def _managed_map(
    chain: List[PomModel],
    properties: Dict[str, str],
    bom_loader: Optional[Callable[[ArtifactCoordinate], List[RawDependency]]],
) -> Dict[str, RawDependency]:
    managed: Dict[str, RawDependency] = {}
    for model in chain:  # nearest first: the first definition wins
        for raw in model.dependency_management:
            entry = _interpolated(raw, properties)
            if not entry.group or not entry.name:
                continue
            type_ = entry.type or "jar"
            if entry.scope == Scopes.IMPORT.value and type_ == "pom":
                if bom_loader is None or not entry.version:
                    continue
                bom = ArtifactCoordinate(entry.group, entry.name, entry.version, extension="pom")
                for imported in bom_loader(bom):
                    key = _management_key(
                        imported.group or "", imported.name or "",
                        imported.type or "jar", imported.classifier,
                    )
                    managed.setdefault(key, imported)
                continue
            managed.setdefault(_management_key(entry.group, entry.name, type_, entry.classifier), entry)
    return managed


def managed_dependencies(
    chain: List[PomModel],
    bom_loader: Optional[Callable[[ArtifactCoordinate], List[RawDependency]]] = None,
) -> List[RawDependency]:
    """The interpolated ``dependencyManagement`` of a BOM chain, imports expanded."""
    return list(_managed_map(chain, model_properties(chain), bom_loader).values())


# Artifact handlers of these types add a classifier when the dependency declares none
_IMPLIED_CLASSIFIERS = {"test-jar": "tests", "ejb-client": "client"}


def _extension_for_type(type_: str) -> str:
    # test-jar and ejb-client are packaged as plain jars
    if type_ in ("test-jar", "ejb-client", "bundle", "maven-plugin"):
        return "jar"
    return type_
