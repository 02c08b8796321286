"""Multi-platform resolution pipeline - the orchestrator.

Resolution order (first strategy returning a decision wins):
1. production-skip     Empty out production React builds in development
2. path-alias          User tsconfig/jsconfig path aliases (hot-reloadable)
3. node-builtin        Node.js built-ins: late-bound on servers, emptied elsewhere
4. externals           Declared external rules (empty / node / weak stubs)
5. alias               Platform aliases, then pattern aliases
6. event-target-shim   Dist-file redirect for one misbehaving package on native
7. fallback            The primitive resolver
8. post-rewrites       Asset registry, web shims, canary overrides (fallback results only)

The pipeline holds no request-scoped state; the only shared mutable state is
the virtual module registry and the path-alias snapshot cell.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .context import create_context
from .errors import ResolutionError
from .models import Resolution
from .models import ResolutionContext
from .models import ResolutionRequest
from .models import SourceFile
from .models import describe_resolution
from .primitive import PrimitiveResolver
from .strategies import PostResolutionRewrite
from .strategies import RequestScope
from .strategies import Strategy
from .virtual_modules import VirtualModuleRegistry
from .watcher import PathAliasReloader

logger = logging.getLogger(__name__)

FALLBACK = "fallback"


class ResolutionPipeline:
    """Ordered strategy chain in front of a primitive resolver.

    Usage:
        pipeline = create_resolution_pipeline(settings)
        resolution = pipeline.resolve(request)
        resolution, decided_by = pipeline.resolve_with_strategy(request)
    """

    def __init__(
        self,
        primitive: PrimitiveResolver,
        strategies: Sequence[Strategy],
        post_rewrites: Sequence[PostResolutionRewrite] = (),
        base_context: ResolutionContext | None = None,
        no_main_field_override: bool = False,
        registry: VirtualModuleRegistry | None = None,
        path_aliases: PathAliasReloader | None = None,
    ) -> None:
        self.primitive = primitive
        self.strategies = tuple(strategies)
        self.post_rewrites = tuple(post_rewrites)
        self.base_context = base_context
        self.no_main_field_override = no_main_field_override
        self.registry = registry
        self.path_aliases = path_aliases

    def resolve(self, request: ResolutionRequest) -> Resolution:
        """Resolve a request; raises the primitive's not-found error when nothing matches."""
        resolution, _strategy = self.resolve_with_strategy(request)
        return resolution

    def resolve_with_strategy(self, request: ResolutionRequest) -> tuple[Resolution, str]:
        """Resolve and report which strategy decided.

        Returns:
            Tuple of (Resolution, strategy_name). strategy_name is a strategy's
            name, ``fallback``, or ``fallback+<rewrite>`` when a post-resolution
            rewrite replaced the fallback result.
        """
        fields = {
            "specifier": request.specifier,
            "origin": str(request.origin_path),
            "platform": request.platform,
            "environment": request.environment,
        }
        try:
            resolution, strategy = self._resolve(request)
        except ResolutionError as e:
            e.attach_context(request.platform, request.environment)
            logger.debug(f"[resolve] {request.specifier} from {request.origin_path} failed: {e}", extra=fields)
            raise

        logger.debug(
            f"[resolve] {request.specifier} -> {strategy} ({describe_resolution(resolution)})",
            extra={**fields, "strategy": strategy},
        )
        return resolution, strategy

    def _resolve(self, request: ResolutionRequest) -> tuple[Resolution, str]:
        context = create_context(request, self.base_context, self.no_main_field_override)
        scope = RequestScope(self.primitive, context, request)

        for strategy in self.strategies:
            resolution = strategy.try_resolve(request, scope)
            if resolution is not None:
                return resolution, strategy.name

        result = scope.strict(request.specifier)
        if not isinstance(result, SourceFile):
            return result, FALLBACK

        applied = []
        for rewrite in self.post_rewrites:
            replacement = rewrite.rewrite(request, result)
            if replacement is not None:
                result = replacement
                applied.append(rewrite.name)

        if applied:
            return result, "+".join([FALLBACK, *applied])
        return result, FALLBACK

    def resolve_specifier(
        self,
        specifier: str,
        origin_path: str | Path,
        platform: str | None,
        options: Mapping[str, Any] | None = None,
        dev: bool = True,
    ) -> Resolution:
        """Host-facing entry point taking the bundler's custom resolver options bag."""
        return self.resolve(ResolutionRequest.from_options(specifier, origin_path, platform, options, dev=dev))

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies] + [FALLBACK] + [r.name for r in self.post_rewrites]

    def close(self) -> None:
        """Release watchers owned by this pipeline."""
        if self.path_aliases is not None:
            self.path_aliases.close()

    def __enter__(self) -> ResolutionPipeline:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ResolutionPipeline({' -> '.join(self.strategy_names)})"
