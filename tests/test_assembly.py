"""End-to-end tests for descriptor assembly and batch processing."""

import time
from unittest.mock import patch

import pytest

from batch_config import BatchConfiguration, ModuleConfiguration, ModuleInfoConfiguration
from constants import FailurePolicy
from errors import (
    ArtifactNotFoundError,
    DependencyCollectionError,
    DescriptorWriteError,
    DuplicateModuleError,
    InvalidPatternError,
)
from modules.assembly import DescriptorAssembler, run_batch
from modules.descriptor import ExportsDirective, RequiresDirective
from modules.registry import ModuleNameRegistry
from modules.writer import SourceDescriptorWriter
from registry.maven.client import MavenRepositoryClient
from registry.maven.coordinates import parse_coordinate


def _module(gav, name, **info):
    return ModuleConfiguration(ModuleInfoConfiguration(name, **info), artifact=parse_coordinate(gav))


@pytest.fixture
def scenario(local_repo):
    """A depends on B (compile), C (test) and D (optional)."""
    dep = local_repo.dependency
    local_repo.install("g:a:1", [
        dep("g:b:1"),
        dep("g:c:1", scope="test"),
        dep("g:d:1", optional=True),
    ], classes=["com.a.api.Api", "com.a.internal.Impl"])
    local_repo.install("g:b:1", [dep("g:e:1")], classes=["com.b.B"])
    local_repo.install("g:c:1", classes=["com.c.C"])
    local_repo.install("g:d:1", classes=["com.d.D"], manifest={"Automatic-Module-Name": "org.d"})
    local_repo.install("g:e:1", classes=["com.e.E"])
    local_repo.install("g:extra:1", classes=["com.extra.X"])
    return local_repo


@pytest.fixture
def client(scenario):
    return MavenRepositoryClient(local_repository=scenario.root, offline=True)


def _batch(tmp_path, modules, **kwargs):
    return BatchConfiguration(
        modules=modules,
        output_directory=str(tmp_path / "out"),
        working_directory=str(tmp_path / "work"),
        **kwargs,
    )


class _SlowWriter(SourceDescriptorWriter):
    """Keeps modules busy long enough for another module to fail first."""

    def write(self, request, artifact_path, output_directory, module_path=()):
        time.sleep(0.2)
        return super().write(request, artifact_path, output_directory, module_path)


class TestDescriptorAssembler:
    """Test the request built for one module."""

    def test_end_to_end_requires(self, client):
        """B is named from the batch, D is optional and automatic, C is dropped."""
        configurations = [
            _module("g:a:1", "mod.a", exports="com.a.*; !com.a.internal"),
            _module("g:b:1", "mod.b"),
        ]
        registry = ModuleNameRegistry.build(configurations, client)

        request = DescriptorAssembler(client).assemble(configurations[0], registry)

        assert request.module_name == "mod.a"
        assert request.requires == (
            RequiresDirective("mod.b"),
            RequiresDirective("org.d", static=True),
        )
        assert request.exports == (ExportsDirective("com.a.api"),)

    def test_unlisted_dependency_uses_automatic_name(self, client):
        configuration = _module("g:b:1", "mod.b")
        request = DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())
        # e-1.jar has no manifest name, so the file name decides
        assert request.requires == (RequiresDirective("e"),)

    def test_additional_dependencies_are_required(self, client):
        configuration = ModuleConfiguration(
            ModuleInfoConfiguration("mod.b", uses=("com.b.spi.A", "com.b.spi.A")),
            artifact=parse_coordinate("g:b:1"),
            additional_dependencies=(parse_coordinate("g:extra:1"),),
            main_class="com.b.B",
        )
        registry = ModuleNameRegistry({parse_coordinate("g:extra:1"): "mod.extra"})

        request = DescriptorAssembler(client).assemble(configuration, registry)

        assert RequiresDirective("mod.extra") in request.requires
        assert request.uses == ("com.b.spi.A",)
        assert request.main_class == "com.b.B"

    def test_missing_additional_dependency(self, client):
        configuration = ModuleConfiguration(
            ModuleInfoConfiguration("mod.b"),
            artifact=parse_coordinate("g:b:1"),
            additional_dependencies=(parse_coordinate("g:nope:1"),),
        )
        with pytest.raises(DependencyCollectionError):
            DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())

    def test_requires_rules_applied(self, client):
        configuration = _module("g:a:1", "mod.a", requires="transitive mod.*; !org.d")
        registry = ModuleNameRegistry({parse_coordinate("g:b:1"): "mod.b"})
        request = DescriptorAssembler(client).assemble(configuration, registry)
        assert request.requires == (RequiresDirective("mod.b", transitive=True),)

    def test_file_configuration(self, client, make_jar):
        path = make_jar("local-lib-1.0.jar", classes=["com.local.L"])
        configuration = ModuleConfiguration(
            ModuleInfoConfiguration("com.local", exports="com.local"),
            file=path,
            additional_dependencies=(parse_coordinate("g:e:1"),),
        )
        request = DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())
        assert request.exports == (ExportsDirective("com.local"),)
        assert request.requires == (RequiresDirective("e"),)

    def test_missing_file(self, client, tmp_path):
        configuration = ModuleConfiguration(ModuleInfoConfiguration("x.y"), file=str(tmp_path / "nope.jar"))
        with pytest.raises(ArtifactNotFoundError):
            DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())

    def test_invalid_pattern(self, client):
        configuration = _module("g:b:1", "mod.b", exports="com..b")
        with pytest.raises(InvalidPatternError):
            DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())

    def test_literal_module_info_file(self, client, tmp_path):
        path = tmp_path / "module-info.java"
        path.write_text("/* module not.this { */\nopen module com.e {\n    exports com.e;\n}\n", encoding="utf-8")
        configuration = ModuleConfiguration(artifact=parse_coordinate("g:e:1"), module_info_file=str(path))

        plan = DescriptorAssembler(client).prepare(configuration, ModuleNameRegistry())

        assert plan.request.module_name == "com.e"
        assert plan.request.as_module_info() == path.read_text(encoding="utf-8")
        assert plan.request.requires == ()

    def test_corrupt_dependency_fails_module(self, client, scenario, tmp_path):
        bad_jar = scenario.install("g:bad:1", classes=["com.bad.B"], manifest={"Automatic-Module-Name": "com.bad"})
        with open(bad_jar, "rb") as fh:
            data = fh.read()
        with open(bad_jar, "wb") as fh:
            fh.write(data.replace(b"com.bad\r\n", b"com.bat\r\n"))
        configuration = ModuleConfiguration(
            ModuleInfoConfiguration("mod.e"),
            artifact=parse_coordinate("g:e:1"),
            additional_dependencies=(parse_coordinate("g:bad:1"),),
        )

        with pytest.raises(DescriptorWriteError, match="Couldn't determine module name"):
            DescriptorAssembler(client).assemble(configuration, ModuleNameRegistry())


class TestRunBatch:
    """Test batch ordering, output and failure policies."""

    def test_one_descriptor_per_module(self, client, tmp_path):
        # mod.b is declared after mod.a but still resolves in mod.a's requires
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a", exports="com.a.api"),
            _module("g:b:1", "mod.b", exports="com.b"),
        ])

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert result.ok
        assert [o.label for o in result.outcomes] == ["mod.a", "mod.b"]
        module_info = (tmp_path / "out" / "mod.a" / "module-info.java").read_text(encoding="utf-8")
        assert "requires mod.b;" in module_info
        assert "requires static org.d;" in module_info
        assert "exports com.a.api;" in module_info
        assert (tmp_path / "out" / "mod.b" / "module-info.java").is_file()

    def test_collect_policy_keeps_going(self, client, tmp_path):
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a", exports="com..broken"),
            _module("g:b:1", "mod.b"),
        ])

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert not result.ok
        assert [f.label for f in result.failures] == ["mod.a"]
        assert isinstance(result.failures[0].error, InvalidPatternError)
        assert [o.label for o in result.outcomes] == ["mod.b"]

    def test_fail_fast_stops(self, client, tmp_path):
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a", exports="com..missing"),
            _module("g:b:1", "mod.b"),
        ], failure_policy=FailurePolicy.FAIL_FAST)

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert [f.label for f in result.failures] == ["mod.a"]
        assert result.outcomes == []
        assert not (tmp_path / "out" / "mod.b").exists()

    def test_parallel_fail_fast_reports_finished_modules(self, client, tmp_path):
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a", exports="com..broken"),
            _module("g:b:1", "mod.b"),
            _module("g:e:1", "mod.e"),
        ], jobs=3, failure_policy=FailurePolicy.FAIL_FAST)

        result = run_batch(batch, client, _SlowWriter())

        written = {p.name for p in (tmp_path / "out").iterdir()}
        assert [f.label for f in result.failures] == ["mod.a"]
        assert {o.label for o in result.outcomes} == written

    def test_literal_module_info_source(self, client, tmp_path):
        source = "module mod.b {\n    requires e;\n    exports com.b;\n}\n"
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a"),
            ModuleConfiguration(artifact=parse_coordinate("g:b:1"), module_info_source=source, main_class="com.b.B"),
        ])

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert result.ok
        assert (tmp_path / "out" / "mod.b" / "module-info.java").read_text(encoding="utf-8") == source
        # The literal module is still registered under its declared name
        assert RequiresDirective("mod.b") in result.outcomes[0].request.requires
        assert result.outcomes[1].request.main_class == "com.b.B"

    def test_duplicates_raise_before_collection(self, client, tmp_path):
        batch = _batch(tmp_path, [_module("g:a:1", "mod.a"), _module("g:a:1", "mod.other")])
        with patch.object(client, "collect_dependency_tree") as mock_collect:
            with pytest.raises(DuplicateModuleError):
                run_batch(batch, client, SourceDescriptorWriter())
        mock_collect.assert_not_called()

    def test_registry_failure_aborts_batch(self, client, tmp_path):
        batch = _batch(tmp_path, [_module("g:a:1", "mod.a"), _module("g:unknown:1", "mod.u")])
        with pytest.raises(ArtifactNotFoundError):
            run_batch(batch, client, SourceDescriptorWriter())
        assert not (tmp_path / "out" / "mod.a").exists()

    def test_parallel_jobs_keep_order(self, client, tmp_path):
        batch = _batch(tmp_path, [
            _module("g:a:1", "mod.a"),
            _module("g:b:1", "mod.b"),
            _module("g:e:1", "mod.e"),
        ], jobs=3)

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert result.ok
        assert [o.label for o in result.outcomes] == ["mod.a", "mod.b", "mod.e"]
        assert result.outcomes[1].request.requires == (RequiresDirective("mod.e"),)

    def test_selected_subset(self, client, tmp_path):
        modules = [_module("g:a:1", "mod.a"), _module("g:b:1", "mod.b")]
        batch = _batch(tmp_path, modules)
        batch.selected = [modules[0]]

        result = run_batch(batch, client, SourceDescriptorWriter())

        assert [o.label for o in result.outcomes] == ["mod.a"]
        assert RequiresDirective("mod.b") in result.outcomes[0].request.requires
