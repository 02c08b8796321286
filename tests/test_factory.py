"""Tests for pipeline construction from settings."""

import logging
from pathlib import Path

from conftest import make_request
from conftest import write_files

from platform_resolver.aliases import PlatformAlias
from platform_resolver.factory import create_resolution_pipeline
from platform_resolver.factory import make_project_resolver
from platform_resolver.models import SourceFile
from platform_resolver.primitive import FileSystemResolver
from platform_resolver.settings import ResolverSettings
from platform_resolver.virtual_modules import InMemoryMaterializer


def test_setup_materializes_externals(settings, project):
    with create_resolution_pipeline(settings):
        pass
    assert (project / ".platform-resolver/externals/fs/index.js").is_file()
    assert (project / ".platform-resolver/externals/fs/promises/index.js").is_file()
    assert (project / ".platform-resolver/polyfill.js").is_file()


def test_in_memory_materializer_keeps_disk_clean(settings, project):
    materializer = InMemoryMaterializer()
    with create_resolution_pipeline(settings, materializer=materializer) as pipeline:
        resolution = pipeline.resolve(make_request("os", project / "App.js", environment="node"))
    assert not (project / ".platform-resolver/externals").exists()
    assert resolution.path in materializer


def test_project_resolver(project):
    resolve_from_root = make_project_resolver(FileSystemResolver(), project)
    assert resolve_from_root("react") == project / "node_modules/react/index.js"
    assert resolve_from_root("not-installed") is None


def test_vector_icons_alias_enabled_when_installed(project):
    write_files(
        project,
        {
            "node_modules/@expo/vector-icons/index.js": "",
            "node_modules/@expo/vector-icons/Ionicons.js": "",
        },
    )
    with create_resolution_pipeline(ResolverSettings(project_root=project)) as pipeline:
        resolution, strategy = pipeline.resolve_with_strategy(
            make_request("react-native-vector-icons/Ionicons", project / "App.js", platform="ios")
        )
    assert resolution == SourceFile(project / "node_modules/@expo/vector-icons/Ionicons.js")
    assert strategy == "alias"


def test_custom_alias_rules(settings, project):
    rules = [PlatformAlias("ios", "react", "react-native")]
    with create_resolution_pipeline(settings, alias_rules=rules) as pipeline:
        resolution = pipeline.resolve(make_request("react", project / "App.js", platform="ios"))
    assert resolution.path == project / "node_modules/react-native/index.js"


def test_no_asset_registry_rewrite_without_package(tmp_path):
    with create_resolution_pipeline(ResolverSettings(project_root=tmp_path), setup=False) as pipeline:
        assert "asset-registry" not in pipeline.strategy_names


def test_canary_adds_rewrite_and_warns(settings, caplog):
    settings = settings.model_copy(update={"react_canary_enabled": True})
    with caplog.at_level(logging.WARNING):
        with create_resolution_pipeline(settings, setup=False) as pipeline:
            assert pipeline.strategy_names[-1] == "canary"
    assert "canary" in caplog.text


def test_watching_disabled_when_exporting(settings):
    settings = settings.model_copy(update={"watch_config": True, "exporting": True})
    with create_resolution_pipeline(settings, setup=False) as pipeline:
        assert not pipeline.path_aliases.is_watching


def test_close_stops_watcher(settings):
    settings = settings.model_copy(update={"watch_config": True, "watch_interval": 0.01})
    pipeline = create_resolution_pipeline(settings, setup=False)
    assert pipeline.path_aliases.is_watching
    pipeline.close()
    assert not pipeline.path_aliases.is_watching


def test_project_root_is_resolved(tmp_path):
    settings = ResolverSettings(project_root=tmp_path / "x" / "..")
    with create_resolution_pipeline(settings, setup=False) as pipeline:
        assert pipeline.registry.project_root == Path(tmp_path).resolve()
