"""Tests for individual resolution strategies and post-resolution rewrites."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import FakePrimitive
from conftest import make_request

from platform_resolver.errors import FailedToResolvePathError
from platform_resolver.errors import MisconfiguredExternalError
from platform_resolver.errors import OptionalResolutionMiss
from platform_resolver.externals import REPLACE_KINDS
from platform_resolver.externals import ExternalRule
from platform_resolver.models import EMPTY
from platform_resolver.models import NodeExternal
from platform_resolver.models import ResolutionContext
from platform_resolver.models import SourceFile
from platform_resolver.models import WeakExternal
from platform_resolver.strategies import AssetRegistryRewrite
from platform_resolver.strategies import DependencyOverrideRewrite
from platform_resolver.strategies import EventTargetShimFix
from platform_resolver.strategies import ExternalRulesStrategy
from platform_resolver.strategies import NodeBuiltinStrategy
from platform_resolver.strategies import ProductionModuleSkip
from platform_resolver.strategies import RequestScope
from platform_resolver.strategies import dependency_relative_name
from platform_resolver.strategies import should_alias_module
from platform_resolver.virtual_modules import VirtualModuleRegistry

ROOT = Path("/project")


def _scope(request, primitive):
    return RequestScope(primitive, ResolutionContext.for_request(request), request)


class _ResolveAnyPath(FakePrimitive):
    """Resolves every relative specifier to an absolute file next to the origin."""

    def __call__(self, context, specifier, platform):
        if specifier.startswith("."):
            self.calls.append((specifier, platform))
            return SourceFile(Path(context.origin_path).parent.joinpath(specifier).resolve())
        return super().__call__(context, specifier, platform)


class TestRequestScope:
    def test_optional_turns_misses_into_signal(self):
        request = make_request("fs")
        scope = _scope(request, FakePrimitive({"./gone": FailedToResolvePathError("./gone", ROOT / "App.js")}))
        with pytest.raises(OptionalResolutionMiss):
            scope.optional("fs")
        with pytest.raises(OptionalResolutionMiss):
            scope.optional("./gone")
        assert scope.optional_or_none("fs") is None

    def test_optional_propagates_other_errors(self):
        request = make_request("fs")
        scope = _scope(request, FakePrimitive({"fs": PermissionError("denied")}))
        with pytest.raises(PermissionError):
            scope.optional("fs")


class TestProductionModuleSkip:
    def test_skips_react_production_builds(self):
        request = make_request("./cjs/react.production.min.js", origin=ROOT / "node_modules/react/index.js")
        assert ProductionModuleSkip().try_resolve(request, None) is EMPTY

    def test_skips_native_renderer_prod(self):
        origin = ROOT / "node_modules/react-native/Libraries/Renderer/shims/ReactFabric.js"
        request = make_request("../implementations/ReactFabric-prod", origin=origin, platform="ios")
        assert ProductionModuleSkip().try_resolve(request, None) is EMPTY
        web = make_request("../implementations/ReactFabric-prod", origin=origin, platform="web")
        assert ProductionModuleSkip().try_resolve(web, None) is None

    def test_only_in_development(self):
        origin = ROOT / "node_modules/react/index.js"
        strategy = ProductionModuleSkip()
        assert strategy.try_resolve(make_request("./cjs/react.production.min.js", origin, dev=False), None) is None
        assert strategy.try_resolve(make_request("./cjs/react.production.min.js", origin, exporting=True), None) is None

    def test_ignores_other_packages(self):
        request = make_request("./lib.production.min.js", origin=ROOT / "node_modules/lodash/index.js")
        assert ProductionModuleSkip().try_resolve(request, None) is None


class TestNodeBuiltinStrategy:
    def _strategy(self, **kwargs):
        registry = VirtualModuleRegistry(ROOT, materializer=MagicMock())
        return NodeBuiltinStrategy(ROOT, registry, **kwargs), registry

    def test_passes_non_builtins(self):
        strategy, _ = self._strategy()
        assert strategy.try_resolve(make_request("react"), _scope(make_request("react"), FakePrimitive())) is None

    def test_server_redirects_to_stub(self):
        strategy, registry = self._strategy()
        request = make_request("node:os", origin=ROOT / "src/App.js", environment="node")
        primitive = _ResolveAnyPath()

        result = strategy.try_resolve(request, _scope(request, primitive))

        assert result == NodeExternal(original_name="node:os", path=ROOT / ".platform-resolver/externals/os/index.js")
        assert primitive.calls == [("../.platform-resolver/externals/os/index.js", None)]
        registry.materializer.assert_called_once_with(
            ROOT / ".platform-resolver/externals/os/index.js", "module.exports = $$require_external('node:os');"
        )

    def test_client_empties_missing_builtin(self):
        strategy, _ = self._strategy()
        for platform in ("web", "ios", "android"):
            request = make_request("fs", platform=platform)
            assert strategy.try_resolve(request, _scope(request, FakePrimitive())) is EMPTY

    def test_client_prefers_installed_package(self):
        strategy, _ = self._strategy()
        installed = SourceFile(ROOT / "node_modules/events/events.js")
        request = make_request("events", platform="web")
        assert strategy.try_resolve(request, _scope(request, FakePrimitive({"events": installed}))) == installed

    def test_native_can_pass_instead_of_emptying(self):
        strategy, _ = self._strategy(empty_native_builtins=False)
        ios = make_request("fs", platform="ios")
        web = make_request("fs", platform="web")
        assert strategy.try_resolve(ios, _scope(ios, FakePrimitive())) is None
        assert strategy.try_resolve(web, _scope(web, FakePrimitive())) is EMPTY

    def test_unexpected_errors_propagate(self):
        strategy, _ = self._strategy()
        request = make_request("fs", platform="web")
        with pytest.raises(PermissionError):
            strategy.try_resolve(request, _scope(request, FakePrimitive({"fs": PermissionError("denied")})))


class TestExternalRulesStrategy:
    def _strategy(self, rules):
        registry = VirtualModuleRegistry(ROOT, materializer=MagicMock())
        return ExternalRulesStrategy(rules, registry), registry

    def test_empty_rule(self):
        strategy, registry = self._strategy([ExternalRule(match=lambda r: r.specifier == "x", replace="empty")])
        request = make_request("x")
        assert strategy.try_resolve(request, _scope(request, FakePrimitive())) is EMPTY
        assert len(registry) == 0

    def test_weak_rule_declares_stub(self):
        strategy, registry = self._strategy([ExternalRule(match=lambda r: True, replace="weak")])
        request = make_request("react", origin=ROOT / "App.js")

        result = strategy.try_resolve(request, _scope(request, _ResolveAnyPath()))

        assert isinstance(result, WeakExternal)
        assert result.original_name == "react"
        assert result.path == registry.path_for("module.exports=/*react*/__r(require.resolveWeak('react'))")

    def test_node_rule_declares_stub(self):
        strategy, registry = self._strategy([ExternalRule(match=lambda r: True, replace="node")])
        request = make_request("react", origin=ROOT / "App.js", environment="node")

        result = strategy.try_resolve(request, _scope(request, _ResolveAnyPath()))

        assert result == NodeExternal("react", registry.path_for("module.exports=$$require_external('react')"))

    def test_first_matching_rule_wins(self):
        strategy, _ = self._strategy(
            [
                ExternalRule(match=lambda r: r.specifier == "a", replace="empty"),
                ExternalRule(match=lambda r: True, replace="weak"),
            ]
        )
        request = make_request("a")
        assert strategy.try_resolve(request, _scope(request, FakePrimitive())) is EMPTY

    def test_no_match_passes(self):
        strategy, _ = self._strategy([ExternalRule(match=lambda r: False, replace="empty")])
        request = make_request("a")
        assert strategy.try_resolve(request, _scope(request, FakePrimitive())) is None

    def test_unknown_replace_kind(self):
        strategy, _ = self._strategy([ExternalRule(match=lambda r: True, replace="bogus")])
        request = make_request("lodash", platform="ios")
        with pytest.raises(MisconfiguredExternalError) as exc_info:
            strategy.try_resolve(request, _scope(request, FakePrimitive()))
        assert "bogus" in str(exc_info.value)
        assert "lodash" in str(exc_info.value)

    def test_rules_after_the_first_match_are_not_consulted(self):
        later = MagicMock(return_value=True)
        strategy, _ = self._strategy(
            [
                ExternalRule(match=lambda r: r.specifier == "a", replace="empty"),
                ExternalRule(match=later, replace="bogus"),
            ]
        )
        request = make_request("a")
        assert strategy.try_resolve(request, _scope(request, FakePrimitive())) is EMPTY
        later.assert_not_called()

    @pytest.mark.parametrize("kind", REPLACE_KINDS)
    def test_every_declared_kind_is_accepted(self, kind):
        strategy, _ = self._strategy([ExternalRule(match=lambda r: True, replace=kind)])
        request = make_request("react", origin=ROOT / "App.js")
        assert strategy.try_resolve(request, _scope(request, _ResolveAnyPath())) is not None


class TestEventTargetShimFix:
    def test_native_uses_dist_file(self):
        dist = SourceFile(ROOT / "node_modules/event-target-shim/dist/event-target-shim.js")
        request = make_request("event-target-shim", platform="ios")
        primitive = FakePrimitive({"event-target-shim/dist/event-target-shim.js": dist})
        assert EventTargetShimFix().try_resolve(request, _scope(request, primitive)) == dist

    def test_web_passes(self):
        request = make_request("event-target-shim", platform="web")
        assert EventTargetShimFix().try_resolve(request, _scope(request, FakePrimitive())) is None


class TestPostResolutionRewrites:
    def test_asset_registry_on_web_only(self):
        registry_file = ROOT / "node_modules/@react-native/assets-registry/registry.js"
        rewrite = AssetRegistryRewrite(registry_file)
        result = SourceFile(ROOT / "node_modules/react-native-web/dist/modules/AssetRegistry/index.js")

        assert rewrite.rewrite(make_request("x", platform="web"), result) == SourceFile(registry_file)
        assert rewrite.rewrite(make_request("x", platform="ios"), result) is None
        assert rewrite.rewrite(make_request("x", platform="web"), SourceFile(ROOT / "App.js")) is None

    def test_dependency_override(self):
        folder = ROOT / ".platform-resolver/shims"
        existing = {folder / "react-native-web/dist/exports/Image/index.js"}
        rewrite = DependencyOverrideRewrite(
            "web-shims", folder, applies=lambda r: r.platform == "web", file_exists=lambda p: p in existing
        )
        image = SourceFile(ROOT / "node_modules/react-native-web/dist/exports/Image/index.js")

        assert rewrite.rewrite(make_request("x", platform="web"), image) == SourceFile(
            folder / "react-native-web/dist/exports/Image/index.js"
        )
        assert rewrite.rewrite(make_request("x", platform="ios"), image) is None
        assert rewrite.rewrite(make_request("x", platform="web"), SourceFile(ROOT / "src/App.js")) is None

    def test_dependency_relative_name_uses_last_node_modules(self):
        assert dependency_relative_name("/p/node_modules/a/node_modules/b/index.js") == "b/index.js"
        assert dependency_relative_name("C:\\p\\node_modules\\react\\index.js") == "react/index.js"
        assert dependency_relative_name("/p/src/index.js") is None

    def test_should_alias_module(self):
        result = SourceFile(ROOT / "node_modules/react-native/Libraries/Image/Image.js")
        assert should_alias_module("ios", result, "ios", "Libraries/Image/Image.js")
        assert not should_alias_module("web", result, "ios", "Libraries/Image/Image.js")
