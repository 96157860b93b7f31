"""Version token parsing for Maven dependency declarations."""

from .models import ResolutionMode, VersionSpec

_RANGE_CHARS = "[]()"


def _determine_resolution_mode(spec: str) -> ResolutionMode:
    """Determine resolution mode from spec string."""
    upper = spec.upper()
    if upper == "LATEST":
        return ResolutionMode.LATEST
    if upper == "RELEASE":
        return ResolutionMode.RELEASE
    if any(ch in spec for ch in _RANGE_CHARS):
        return ResolutionMode.RANGE
    return ResolutionMode.EXACT


def parse_version_spec(raw: str) -> VersionSpec:
    """Parse a declared Maven version into a VersionSpec.

    Soft requirements such as ``1.2`` are treated as exact, the way Maven
    resolves them when a single declaration is present.
    """
    spec = raw.strip()
    mode = _determine_resolution_mode(spec)
    include_snapshots = mode == ResolutionMode.LATEST or spec.endswith("-SNAPSHOT")
    return VersionSpec(raw=spec, mode=mode, include_snapshots=include_snapshots)


def needs_resolution(raw: str) -> bool:
    """True when ``raw`` must be resolved against repository metadata."""
    return _determine_resolution_mode(raw.strip()) != ResolutionMode.EXACT
