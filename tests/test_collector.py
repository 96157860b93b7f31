"""Tests for dependency descriptor collection and the module name registry."""

from unittest.mock import MagicMock

import pytest

from batch_config import ModuleConfiguration, ModuleInfoConfiguration
from errors import ArtifactNotFoundError, DependencyCollectionError, DuplicateModuleError
from graph.collector import DependencyGraphCollector, add_descriptor
from graph.model import DependencyDescriptor
from modules.registry import ModuleNameRegistry
from registry.maven.client import MavenRepositoryClient
from registry.maven.coordinates import parse_coordinate


def _module(gav, name):
    return ModuleConfiguration(ModuleInfoConfiguration(name), artifact=parse_coordinate(gav))


class TestAddDescriptor:
    """Test path-keyed merging of descriptors."""

    def test_required_wins(self):
        descriptors = {}
        add_descriptor(descriptors, DependencyDescriptor("/r/x.jar", optional=True))
        add_descriptor(descriptors, DependencyDescriptor("/r/x.jar", optional=False, module_name="mod.x"))
        assert descriptors == {"/r/x.jar": DependencyDescriptor("/r/x.jar", False, "mod.x")}

    def test_all_optional_stays_optional(self):
        descriptors = {}
        add_descriptor(descriptors, DependencyDescriptor("/r/x.jar", optional=True))
        add_descriptor(descriptors, DependencyDescriptor("/r/x.jar", optional=True))
        assert descriptors["/r/x.jar"].optional

    def test_declaration_order_kept(self):
        descriptors = {}
        for path in ("/r/b.jar", "/r/a.jar", "/r/b.jar"):
            add_descriptor(descriptors, DependencyDescriptor(path))
        assert list(descriptors) == ["/r/b.jar", "/r/a.jar"]


class TestModuleNameRegistry:
    """Test the batch name registry."""

    def test_only_declared_modules(self, local_repo):
        local_repo.install("g:a:1")
        local_repo.install("g:b:1")
        client = MavenRepositoryClient(local_repository=local_repo.root, offline=True)

        registry = ModuleNameRegistry.build([_module("g:a:1", "mod.a")], client)

        assert registry.get(parse_coordinate("g:a:1")) == "mod.a"
        assert registry.get(parse_coordinate("g:b:1")) is None
        assert len(registry) == 1

    def test_file_configurations_skipped(self):
        client = MagicMock()
        configuration = ModuleConfiguration(ModuleInfoConfiguration("mod.f"), file="/libs/f.jar")
        assert len(ModuleNameRegistry.build([configuration], client)) == 0
        client.resolve.assert_not_called()

    def test_duplicate_coordinate(self, local_repo):
        local_repo.install("g:a:1")
        client = MavenRepositoryClient(local_repository=local_repo.root, offline=True)
        with pytest.raises(DuplicateModuleError):
            ModuleNameRegistry.build([_module("g:a:1", "mod.a"), _module("g:a:1", "mod.other")], client)

    def test_classifier_distinguishes(self):
        registry = ModuleNameRegistry({
            parse_coordinate("g:a:1"): "mod.a",
            parse_coordinate("g:a:jar:tests:1"): "mod.a.tests",
        })
        assert registry.get(parse_coordinate("g:a:jar:tests:1")) == "mod.a.tests"


class TestDependencyGraphCollector:
    """Test direct dependency descriptors of a root artifact."""

    def test_direct_children_only(self, local_repo):
        dep = local_repo.dependency
        local_repo.install("g:a:1", [dep("g:b:1"), dep("g:c:1", scope="test"), dep("g:d:1", optional=True)])
        local_repo.install("g:b:1", [dep("g:e:1")])
        local_repo.install("g:d:1")
        local_repo.install("g:e:1")
        client = MavenRepositoryClient(local_repository=local_repo.root, offline=True)
        registry = ModuleNameRegistry({parse_coordinate("g:b:1"): "mod.b"})

        root = client.resolve(parse_coordinate("g:a:1"))
        descriptors = DependencyGraphCollector(client).collect(root, registry)

        assert [(d.coordinate.name, d.optional, d.module_name) for d in descriptors] == [
            ("b", False, "mod.b"),
            ("d", True, None),
        ]
        assert descriptors[0].path == local_repo.path_of(parse_coordinate("g:b:1"))

    def test_resolution_failure_is_wrapped(self, local_repo):
        local_repo.install("g:a:1", [local_repo.dependency("g:missing:1")])
        client = MavenRepositoryClient(local_repository=local_repo.root, offline=True)
        root = client.resolve(parse_coordinate("g:a:1"))

        with pytest.raises(DependencyCollectionError) as excinfo:
            DependencyGraphCollector(client).collect(root, ModuleNameRegistry())
        assert isinstance(excinfo.value.__cause__, ArtifactNotFoundError)

    @pytest.mark.parametrize("excluded_scopes", [("provided",), ()])
    def test_test_scope_always_dropped(self, local_repo, excluded_scopes):
        dep = local_repo.dependency
        local_repo.install("g:a:1", [dep("g:b:1"), dep("g:c:1", scope="test"), dep("g:p:1", scope="provided")])
        local_repo.install("g:b:1")
        local_repo.install("g:c:1")
        local_repo.install("g:p:1")
        client = MavenRepositoryClient(local_repository=local_repo.root, offline=True)
        root = client.resolve(parse_coordinate("g:a:1"))

        descriptors = DependencyGraphCollector(client).collect(root, ModuleNameRegistry(), excluded_scopes)

        names = [d.coordinate.name for d in descriptors]
        assert "c" not in names
        assert ("p" in names) == ("provided" not in excluded_scopes)
