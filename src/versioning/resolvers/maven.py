"""Maven version resolver using Maven version range semantics."""

import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

from packaging import version

from ..models import ResolutionMode, VersionSpec

_QUALIFIER_SUFFIX_RE = re.compile(r"[.-](final|release|ga)$", re.IGNORECASE)


def _parse(v: str) -> Optional[version.Version]:
    """Parse a Maven version into a comparable Version, or None.

    Common Maven qualifiers are normalized first: ``.Final``/``.RELEASE``/
    ``.GA`` are dropped and ``-SNAPSHOT`` sorts as a development release.
    """
    text = _QUALIFIER_SUFFIX_RE.sub("", v.strip())
    if text.endswith("-SNAPSHOT"):
        text = text[: -len("-SNAPSHOT")] + ".dev0"
    try:
        return version.Version(text)
    except version.InvalidVersion:
        return None


class MavenMetadata:
    """Parsed ``maven-metadata.xml`` for one group:artifact."""

    def __init__(self, versions: List[str], latest: Optional[str] = None, release: Optional[str] = None):
        self.versions = versions
        self.latest = latest
        self.release = release

    @classmethod
    def from_xml(cls, text: str) -> "MavenMetadata":
        """Parse metadata XML; malformed documents yield empty metadata."""
        try:
            root = ET.fromstring(text)
        except ET.ParseError:
            return cls([])

        versions = []
        latest = release = None
        versioning = root.find("versioning")
        if versioning is not None:
            versions_elem = versioning.find("versions")
            if versions_elem is not None:
                for version_elem in versions_elem.findall("version"):
                    ver_text = version_elem.text
                    if ver_text and ver_text.strip():
                        versions.append(ver_text.strip())
            latest_elem = versioning.find("latest")
            if latest_elem is not None and latest_elem.text:
                latest = latest_elem.text.strip()
            release_elem = versioning.find("release")
            if release_elem is not None and release_elem.text:
                release = release_elem.text.strip()
        return cls(versions, latest, release)


class MavenVersionResolver:
    """Resolver for Maven artifacts using Maven version range semantics."""

    def pick(
        self, spec: VersionSpec, metadata: MavenMetadata
    ) -> Tuple[Optional[str], int, Optional[str]]:
        """Apply Maven version rules to select a version.

        Args:
            spec: Declared version spec
            metadata: Published versions of the artifact

        Returns:
            Tuple of (resolved_version, candidate_count, error_message)
        """
        candidates = metadata.versions
        if spec.mode == ResolutionMode.LATEST:
            if metadata.latest:
                return metadata.latest, len(candidates), None
            return self._pick_latest(candidates, include_snapshots=True)
        if spec.mode == ResolutionMode.RELEASE:
            if metadata.release:
                return metadata.release, len(candidates), None
            return self._pick_latest(candidates, include_snapshots=False)
        if spec.mode == ResolutionMode.EXACT:
            return self._pick_exact(spec.raw, candidates)
        if spec.mode == ResolutionMode.RANGE:
            return self._pick_range(spec.raw, candidates, spec.include_snapshots)
        return None, len(candidates), "Unsupported resolution mode"

    def _pick_latest(
        self, candidates: List[str], include_snapshots: bool
    ) -> Tuple[Optional[str], int, Optional[str]]:
        """Pick the highest version, ignoring SNAPSHOTs unless asked not to."""
        if not candidates:
            return None, 0, "No versions available"

        pool = candidates if include_snapshots else [v for v in candidates if not v.endswith("-SNAPSHOT")]
        parsed = [(p, v) for v in pool for p in [_parse(v)] if p is not None]
        if not parsed:
            return None, len(candidates), "No valid Maven versions found"

        parsed.sort(key=lambda pv: pv[0], reverse=True)
        return parsed[0][1], len(candidates), None

    def _pick_exact(self, version_str: str, candidates: List[str]) -> Tuple[Optional[str], int, Optional[str]]:
        """Check if exact version exists in candidates."""
        if version_str in candidates:
            return version_str, len(candidates), None
        return None, len(candidates), f"Version {version_str} not found"

    def _pick_range(
        self, range_spec: str, candidates: List[str], include_snapshots: bool = False
    ) -> Tuple[Optional[str], int, Optional[str]]:
        """Apply Maven version range and pick highest matching version."""
        pool = candidates if include_snapshots else [v for v in candidates if not v.endswith("-SNAPSHOT")]
        try:
            matching_versions = self._filter_by_range(range_spec, pool)
        except ValueError as e:
            return None, len(candidates), f"Range parsing error: {str(e)}"
        if not matching_versions:
            return None, len(candidates), f"No versions match range '{range_spec}'"

        matching_versions.sort(key=_parse, reverse=True)
        return matching_versions[0], len(candidates), None

    def _filter_by_range(self, range_spec: str, candidates: List[str]) -> List[str]:
        """Filter candidates by Maven version range specification."""
        range_spec = range_spec.strip()
        candidates = [v for v in candidates if _parse(v) is not None]

        # Comma-separated unions: [1.0,2.0),[3.0,4.0]
        if re.search(r"[\])]\s*,\s*[\[(]", range_spec):
            return self._parse_comma_range(range_spec, candidates)

        # Handle bracket notation: [1.0,2.0), (1.0,], etc.
        if range_spec.startswith('[') or range_spec.startswith('('):
            return self._parse_bracket_range(range_spec, candidates)

        # Handle simple version (treated as exact)
        return [range_spec] if range_spec in candidates else []

    def _parse_bracket_range(self, range_spec: str, candidates: List[str]) -> List[str]:
        """Parse Maven bracket range notation like [1.0,2.0), (1.0,], or [1.2]."""
        range_spec = range_spec.strip()
        if len(range_spec) < 2 or range_spec[-1] not in "])":
            raise ValueError(f"unterminated range '{range_spec}'")
        inner = range_spec[1:-1]
        parts = inner.split(',')
        if len(parts) > 2:
            raise ValueError(f"too many bounds in '{range_spec}'")

        # Single-element bracket [1.2] means exact version
        if len(parts) == 1:
            base = parts[0].strip()
            if not base:
                return []
            return [v for v in candidates if v == base or _parse(v) == _parse(base)]

        lower_str, upper_str = parts[0].strip(), parts[1].strip()
        lower_inclusive = range_spec.startswith('[')
        upper_inclusive = range_spec.endswith(']')
        lower_ver = _parse(lower_str) if lower_str else None
        upper_ver = _parse(upper_str) if upper_str else None
        if (lower_str and lower_ver is None) or (upper_str and upper_ver is None):
            raise ValueError(f"invalid bound in '{range_spec}'")

        matching = []
        for v in candidates:
            ver = _parse(v)

            # Check lower bound
            if lower_ver is not None:
                if lower_inclusive and ver < lower_ver:
                    continue
                if not lower_inclusive and ver <= lower_ver:
                    continue

            # Check upper bound
            if upper_ver is not None:
                if upper_inclusive and ver > upper_ver:
                    continue
                if not upper_inclusive and ver >= upper_ver:
                    continue

            matching.append(v)

        return matching

    def _parse_comma_range(self, range_spec: str, candidates: List[str]) -> List[str]:
        """Parse comma-separated ranges like [1.0,2.0),[3.0,4.0]."""
        ranges = []
        current = ""
        depth = 0

        for char in range_spec:
            if char in '[(':
                depth += 1
                current += char
            elif char in '])':
                depth -= 1
                current += char
                if depth == 0:
                    ranges.append(current.strip())
                    current = ""
            elif depth == 0:
                # separators between ranges
                continue
            else:
                current += char

        if current.strip():
            raise ValueError(f"unterminated range '{range_spec}'")

        # Union all matching versions from each range, preserving source order
        all_matching = set()
        for r in ranges:
            all_matching.update(self._parse_bracket_range(r, candidates))

        return [v for v in candidates if v in all_matching]
