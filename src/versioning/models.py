"""Data models for Maven version resolution."""

from dataclasses import dataclass
from enum import Enum


class ResolutionMode(Enum):
    """Resolution strategy derived from the declared version."""
    EXACT = "exact"
    RANGE = "range"
    LATEST = "latest"
    RELEASE = "release"


@dataclass(frozen=True)
class VersionSpec:
    """Normalized representation of a declared version and derived behavior flags."""
    raw: str
    mode: ResolutionMode
    include_snapshots: bool

