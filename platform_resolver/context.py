"""Per-request resolver context for server and web targets.

Each request gets a fresh ResolutionContext; nothing here mutates shared state.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from .models import ResolutionContext
from .models import ResolutionRequest

_MJS = re.compile(r"mjs$")
_JS = re.compile(r"jsx?$")

PREFERRED_MAIN_FIELDS: dict[str, tuple[str, ...]] = {
    # Most packages using the `react-native` field do not support web there
    "web": ("browser", "module", "main"),
}

NODE_MAIN_FIELDS: tuple[str, ...] = ("main", "module")
NODE_CONDITIONS: tuple[str, ...] = ("node", "require")
REACT_SERVER_CONDITIONS: tuple[str, ...] = ("node", "require", "react-server", "server")


@lru_cache(maxsize=32)
def _nodejs_extensions(source_exts: tuple[str, ...]) -> tuple[str, ...]:
    mjs_exts = [ext for ext in source_exts if _MJS.search(ext)]
    others = [ext for ext in source_exts if not _MJS.search(ext)]
    js_index = -1
    for i, ext in enumerate(others):
        if _JS.search(ext):
            js_index = i
    others[js_index + 1 : js_index + 1] = mjs_exts
    return tuple(others)


def get_nodejs_extensions(source_exts: Iterable[str]) -> list[str]:
    """Reorder extensions for Node.js: ``mjs`` variants go right after the last ``js``/``jsx``."""
    return list(_nodejs_extensions(tuple(source_exts)))


def create_context(
    request: ResolutionRequest,
    base: ResolutionContext | None = None,
    no_main_field_override: bool = False,
) -> ResolutionContext:
    """Build the context the primitive resolver sees for this request."""
    source = base or ResolutionContext.for_request(request)
    context = ResolutionContext(
        origin_path=request.origin_path,
        custom_options=request.custom_options,
        dev=request.dev,
        source_exts=source.source_exts,
        main_fields=source.main_fields,
        condition_names=source.condition_names,
        conditions_by_platform=source.conditions_by_platform,
        prefer_native_platform=request.platform != "web",
        enable_package_exports=source.enable_package_exports,
    )

    if request.is_server:
        context.source_exts = _nodejs_extensions(tuple(context.source_exts))
        context.enable_package_exports = True
        context.condition_names = NODE_CONDITIONS
        context.conditions_by_platform = {}
        # Node.js runtimes only import main/module until package exports are fully supported
        context.main_fields = NODE_MAIN_FIELDS
        if request.environment == "react-server":
            context.condition_names = REACT_SERVER_CONDITIONS
    elif not no_main_field_override and request.platform in PREFERRED_MAIN_FIELDS:
        context.main_fields = PREFERRED_MAIN_FIELDS[request.platform]

    return context
