"""Pipeline wiring: settings in, ResolutionPipeline out.

This module centralizes the policy decisions (which strategies, in which
order, with which rule tables). Components receive their dependencies by
injection; tests can swap any of them.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from collections.abc import Sequence
from pathlib import Path

from .aliases import AliasRule
from .aliases import AliasTable
from .aliases import default_alias_rules
from .errors import OptionalResolutionMiss
from .externals import ExternalRule
from .externals import default_external_rules
from .externals import setup_node_externals
from .models import ResolutionContext
from .models import ResolutionRequest
from .pipeline import ResolutionPipeline
from .polyfills import setup_shim_files
from .primitive import FileSystemResolver
from .primitive import PrimitiveResolver
from .settings import ResolverSettings
from .strategies import AliasTableStrategy
from .strategies import AssetRegistryRewrite
from .strategies import DependencyOverrideRewrite
from .strategies import EventTargetShimFix
from .strategies import ExternalRulesStrategy
from .strategies import NodeBuiltinStrategy
from .strategies import PathAliasStrategy
from .strategies import PostResolutionRewrite
from .strategies import ProductionModuleSkip
from .strategies import RequestScope
from .virtual_modules import CANARY_FOLDER
from .virtual_modules import SHIMS_FOLDER
from .virtual_modules import InMemoryMaterializer
from .virtual_modules import Materializer
from .virtual_modules import VirtualModuleRegistry
from .watcher import PathAliasReloader

logger = logging.getLogger(__name__)

ASSET_REGISTRY_MODULE = "@react-native/assets-registry/registry.js"


def make_project_resolver(primitive: PrimitiveResolver, project_root: Path) -> Callable[[str], Path | None]:
    """Resolve specifiers as if imported from a file at the project root."""
    request = ResolutionRequest(specifier="", origin_path=Path(project_root) / "package.json")
    scope = RequestScope(primitive, ResolutionContext.for_request(request), request)

    def resolve_from_root(specifier: str) -> Path | None:
        try:
            result = scope.optional(specifier)
        except OptionalResolutionMiss:
            return None
        path = getattr(result, "path", None)
        return Path(path) if path is not None else None

    return resolve_from_root


def create_resolution_pipeline(
    settings: ResolverSettings | None = None,
    primitive: PrimitiveResolver | None = None,
    materializer: Materializer | None = None,
    alias_rules: Sequence[AliasRule] | None = None,
    external_rules: Sequence[ExternalRule] | None = None,
    asset_registry_path: Path | None = None,
    setup: bool = True,
) -> ResolutionPipeline:
    """Build the standard pipeline for a project.

    Args:
        settings: Resolver settings (defaults: current directory, no watching)
        primitive: Single-specifier resolver (default: FileSystemResolver)
        materializer: Where generated modules go (default: on disk)
        alias_rules: Alias rules in order (default: built-in aliases)
        external_rules: External rules in order (default: built-in rules)
        asset_registry_path: Shared asset registry (default: resolved from the project)
        setup: Materialize Node.js externals, shims and polyfills up front

    Returns:
        ResolutionPipeline; call close() (or use it as a context manager) to
        stop the config watcher when one was started
    """
    settings = settings or ResolverSettings()
    project_root = settings.resolved_root()

    if settings.react_canary_enabled:
        logger.warning("Experimental React canary runtime is enabled.")

    registry = VirtualModuleRegistry(project_root, materializer)
    if primitive is None:
        virtual_files = materializer.files if isinstance(materializer, InMemoryMaterializer) else None
        primitive = FileSystemResolver(virtual_files=virtual_files)

    resolve_from_root = make_project_resolver(primitive, project_root)

    if alias_rules is None:
        alias_rules = default_alias_rules(package_exists=lambda name: resolve_from_root(name) is not None)
    if external_rules is None:
        external_rules = default_external_rules()

    if asset_registry_path is None:
        found = resolve_from_root(ASSET_REGISTRY_MODULE)
        if found is not None:
            asset_registry_path = Path(os.path.realpath(found))
        else:
            logger.debug(f"{ASSET_REGISTRY_MODULE} not installed, web asset registry rewrite disabled")

    if setup:
        setup_shim_files(
            registry,
            shims_source=settings.shims_source_dir,
            canary_source=settings.canary_source_dir,
            canary=settings.react_canary_enabled,
        )
        setup_node_externals(registry)

    reloader = PathAliasReloader(
        project_root,
        enabled=settings.path_aliases_enabled,
        watch=settings.watch_config and not settings.exporting,
        interval=settings.watch_interval,
    )

    strategies = [
        ProductionModuleSkip(),
        PathAliasStrategy(reloader),
        NodeBuiltinStrategy(project_root, registry, empty_native_builtins=settings.empty_native_builtins),
        ExternalRulesStrategy(external_rules, registry),
        AliasTableStrategy(AliasTable(alias_rules)),
        EventTargetShimFix(),
    ]

    post_rewrites: list[PostResolutionRewrite] = []
    if asset_registry_path is not None:
        post_rewrites.append(AssetRegistryRewrite(asset_registry_path))
    post_rewrites.append(
        DependencyOverrideRewrite("web-shims", project_root / SHIMS_FOLDER, applies=lambda r: r.platform == "web")
    )
    if settings.react_canary_enabled:
        post_rewrites.append(
            DependencyOverrideRewrite("canary", project_root / CANARY_FOLDER, applies=lambda r: r.platform != "web")
        )

    pipeline = ResolutionPipeline(
        primitive,
        strategies,
        post_rewrites,
        no_main_field_override=settings.no_main_field_override,
        registry=registry,
        path_aliases=reloader,
    )
    logger.debug(f"Created {pipeline!r} for {project_root}")
    return pipeline
