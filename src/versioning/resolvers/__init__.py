"""Version resolvers."""

from .maven import MavenMetadata, MavenVersionResolver

__all__ = [
    "MavenMetadata",
    "MavenVersionResolver",
]
