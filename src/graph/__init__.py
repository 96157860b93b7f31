"""Dependency graph collection."""
