"""Resolution strategies - each gets a chance to short-circuit resolution.

A strategy returns a Resolution to decide, or None to pass. Strategies that
rewrite a specifier hand the new specifier to the primitive resolver through
the RequestScope. Post-resolution rewrites run only on the fallback result.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .aliases import AliasTable
from .errors import MisconfiguredExternalError
from .errors import OptionalResolutionMiss
from .errors import is_failed_to_resolve_name_error
from .errors import is_failed_to_resolve_path_error
from .externals import REPLACE_KINDS
from .externals import ExternalRule
from .externals import first_matching_rule
from .externals import get_node_external_module_id
from .externals import is_node_external
from .externals import node_external_contents
from .externals import node_external_path
from .externals import node_stub_contents
from .externals import relative_specifier
from .externals import weak_stub_contents
from .models import EMPTY
from .models import NodeExternal
from .models import Resolution
from .models import ResolutionContext
from .models import ResolutionRequest
from .models import SourceFile
from .models import WeakExternal
from .path_aliases import resolve_with_path_aliases
from .primitive import PrimitiveResolver
from .virtual_modules import VirtualModuleRegistry
from .watcher import PathAliasReloader

logger = logging.getLogger(__name__)

ASSET_REGISTRY_SUFFIX = "react-native-web/dist/modules/AssetRegistry/index.js"

_NODE_MODULES_PREFIX = re.compile(r".*node_modules/")
_REACT_NATIVE_ORIGIN = re.compile(r"[\\/]node_modules[\\/]react-native[\\/]")
_RENDERER_PROD = re.compile(r"([\\/]ReactFabric|ReactNativeRenderer)-prod")
_PRODUCTION_BUILD = re.compile(r"\.production(\.min)?\.js$")
_REACT_PACKAGE_ORIGIN = re.compile(r"[\\/]node_modules[\\/](react[-\\/]|scheduler[\\/])")


def normalize_slashes(path: str | Path) -> str:
    return str(path).replace("\\", "/")


def dependency_relative_name(path: str | Path) -> str | None:
    """Path inside the last ``node_modules`` folder, or None outside dependencies."""
    normal = normalize_slashes(path)
    if "node_modules/" not in normal:
        return None
    return _NODE_MODULES_PREFIX.sub("", normal, count=1)


class RequestScope:
    """Primitive resolver bound to one request's context and platform."""

    def __init__(self, primitive: PrimitiveResolver, context: ResolutionContext, request: ResolutionRequest) -> None:
        self.primitive = primitive
        self.context = context
        self.request = request

    def strict(self, specifier: str) -> Resolution:
        """Resolve or raise the primitive's error unchanged."""
        return self.primitive(self.context, specifier, self.request.platform)

    def optional(self, specifier: str) -> Resolution:
        """Resolve, turning name/path misses into OptionalResolutionMiss.

        Any other error propagates: it may be a configuration or file-system
        fault rather than an ordinary miss.
        """
        try:
            return self.strict(specifier)
        except Exception as e:
            if is_failed_to_resolve_name_error(e) or is_failed_to_resolve_path_error(e):
                raise OptionalResolutionMiss(specifier) from e
            raise

    def optional_or_none(self, specifier: str) -> Resolution | None:
        try:
            return self.optional(specifier)
        except OptionalResolutionMiss:
            return None


class Strategy(Protocol):
    name: str

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None: ...


class ProductionModuleSkip:
    """Empty out production builds of React packages in development bundles."""

    name = "production-skip"

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        if not request.dev or request.exporting:
            return None
        origin = str(request.origin_path)
        specifier = request.specifier
        if (
            request.platform != "web"
            and _REACT_NATIVE_ORIGIN.search(origin)
            and _RENDERER_PROD.search(specifier)
        ) or (_PRODUCTION_BUILD.search(specifier) and _REACT_PACKAGE_ORIGIN.search(origin)):
            logger.debug(f"[resolve:{self.name}] Skipping production module: {specifier}")
            return EMPTY
        return None


class PathAliasStrategy:
    """User path aliases; reads one config snapshot per resolution."""

    name = "path-alias"

    def __init__(self, reloader: PathAliasReloader) -> None:
        self.reloader = reloader

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        config = self.reloader.current
        if config is None:
            return None
        return resolve_with_path_aliases(config, request.origin_path, request.specifier, scope.optional_or_none)


class NodeBuiltinStrategy:
    """Node.js built-ins: late-bound on servers, best-effort or empty elsewhere.

    Args:
        project_root: Root holding the generated externals folder
        registry: Used to make sure the built-in's redirect stub exists
        empty_native_builtins: When False, a missed optional resolve on
            ios/android passes (and usually ends in a not-found error)
            instead of resolving to an empty module
    """

    name = "node-builtin"

    def __init__(self, project_root: Path, registry: VirtualModuleRegistry, empty_native_builtins: bool = True):
        self.project_root = Path(project_root)
        self.registry = registry
        self.empty_native_builtins = empty_native_builtins

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        module_id = is_node_external(request.specifier)
        if not module_id:
            return None

        if not request.is_server:
            # A package of the same name in node_modules wins over the empty shim
            try:
                return scope.optional(request.specifier)
            except OptionalResolutionMiss:
                if request.platform != "web" and not self.empty_native_builtins:
                    return None
                logger.debug(f"[resolve:{self.name}] {request.specifier} -> empty ({request.platform})")
                return EMPTY

        stub = node_external_path(self.project_root, module_id)
        self.registry.materialize_at(stub, node_external_contents(module_id))
        redirected = get_node_external_module_id(self.project_root, request.origin_path, module_id)
        logger.debug(f'[resolve:{self.name}] Redirecting Node.js external "{module_id}" to "{redirected}"')
        result = scope.strict(redirected)
        return NodeExternal(original_name=request.specifier, path=_resolved_path(result, self.project_root))


class ExternalRulesStrategy:
    """Declared externals; first matching rule wins."""

    name = "externals"

    def __init__(self, rules: Sequence[ExternalRule], registry: VirtualModuleRegistry) -> None:
        self.rules = tuple(rules)
        self.registry = registry

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        rule = first_matching_rule(self.rules, request)
        if rule is None:
            return None

        specifier = request.specifier
        if rule.replace not in REPLACE_KINDS:
            raise MisconfiguredExternalError(
                f'Invalid external replace type: {rule.replace} for module "{specifier}" '
                f"(platform: {request.platform}, originModulePath: {request.origin_path})",
                specifier=specifier,
                origin_path=request.origin_path,
            )
        if rule.replace == "empty":
            logger.debug(f'[resolve:{self.name}] Redirecting external "{specifier}" to "empty"')
            return EMPTY

        if rule.replace == "weak":
            contents = weak_stub_contents(specifier)
        else:
            contents = node_stub_contents(specifier)
        stub_path = self.registry.declare(contents)
        redirected = relative_specifier(request.origin_path, stub_path)
        logger.debug(f'[resolve:{self.name}] Redirecting external "{specifier}" to {rule.replace} stub "{redirected}"')
        result = scope.strict(redirected)
        resolved = _resolved_path(result, stub_path)
        if rule.replace == "weak":
            return WeakExternal(original_name=specifier, path=resolved)
        return NodeExternal(original_name=specifier, path=resolved)


class AliasTableStrategy:
    name = "alias"

    def __init__(self, table: AliasTable) -> None:
        self.table = table

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        aliased = self.table.rewrite(request.specifier, request.platform)
        if aliased is None:
            return None
        logger.debug(f'[resolve:{self.name}] Alias "{request.specifier}" to "{aliased}"')
        return scope.strict(aliased)


class EventTargetShimFix:
    """react-native imports event-target-shim in a way native runtimes cannot load."""

    name = "event-target-shim"

    SPECIFIER = "event-target-shim"
    TARGET = "event-target-shim/dist/event-target-shim.js"

    def try_resolve(self, request: ResolutionRequest, scope: RequestScope) -> Resolution | None:
        if request.platform == "web" or request.specifier != self.SPECIFIER:
            return None
        logger.debug(f"[resolve:{self.name}] Using dist file for {request.origin_path}")
        return scope.strict(self.TARGET)


def _resolved_path(result: Resolution, fallback: Path) -> Path:
    path = getattr(result, "path", None)
    return Path(path) if path is not None else fallback


# ----- Post-resolution rewrites -----


class PostResolutionRewrite(Protocol):
    name: str

    def rewrite(self, request: ResolutionRequest, result: SourceFile) -> SourceFile | None: ...


class AssetRegistryRewrite:
    """On web, swap react-native-web's asset registry for the shared implementation."""

    name = "asset-registry"

    def __init__(self, asset_registry_path: Path) -> None:
        self.asset_registry_path = Path(asset_registry_path)

    def rewrite(self, request: ResolutionRequest, result: SourceFile) -> SourceFile | None:
        if should_alias_asset_registry_for_web(request.platform, result):
            return SourceFile(self.asset_registry_path)
        return None


class DependencyOverrideRewrite:
    """Substitute a dependency file with a same-named file from an override folder.

    Used for static web shims and, on native, for the canary runtime build.
    """

    def __init__(
        self,
        name: str,
        folder: Path,
        applies: Callable[[ResolutionRequest], bool],
        file_exists: Callable[[Path], bool] = Path.is_file,
    ) -> None:
        self.name = name
        self.folder = Path(folder)
        self.applies = applies
        self.file_exists = file_exists

    def rewrite(self, request: ResolutionRequest, result: SourceFile) -> SourceFile | None:
        if not self.applies(request):
            return None
        relative = dependency_relative_name(result.path)
        if relative is None:
            return None
        override = self.folder / relative
        if self.file_exists(override):
            logger.debug(f"[resolve:{self.name}] Redirecting {result.path} to {override}")
            return SourceFile(override)
        return None

    def __repr__(self) -> str:
        return f"DependencyOverrideRewrite({self.name}, {self.folder})"


def should_alias_asset_registry_for_web(platform: str | None, result: Resolution) -> bool:
    """True if the incoming resolution should be swapped on web."""
    return (
        platform == "web"
        and isinstance(result, SourceFile)
        and normalize_slashes(result.path).endswith(ASSET_REGISTRY_SUFFIX)
    )


def should_alias_module(platform: str | None, result: Resolution, alias_platform: str, output: str) -> bool:
    """True if a resolution on ``alias_platform`` ends with ``output`` and should be swapped."""
    return (
        platform == alias_platform
        and isinstance(result, SourceFile)
        and normalize_slashes(result.path).endswith(output)
    )
