"""Externalization classification.

Decides whether a specifier is removed from the bundle graph and replaced by
a runtime-provided value:
- Node.js built-ins (``fs``, ``node:path``, ...) are redirected to a per-module
  stub in server environments and emptied elsewhere
- ExternalRule predicates redirect selected packages to generated ``node`` or
  ``weak`` stubs, or replace them with an empty module

All tables here are static; they are built once per bundler configuration.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .models import ResolutionRequest
from .models import is_server_environment
from .virtual_modules import EXTERNALS_FOLDER
from .virtual_modules import VIRTUAL_MODULE_FILENAME
from .virtual_modules import VirtualModuleRegistry

logger = logging.getLogger(__name__)

ReplaceKind = Literal["empty", "node", "weak"]
REPLACE_KINDS: tuple[str, ...] = ("empty", "node", "weak")

# Public Node.js standard library modules. Internal (``_``-prefixed) modules
# and deprecated aliases are left out; ``fs/promises`` is the one subpath
# commonly imported on its own.
NODE_STDLIB_MODULES: tuple[str, ...] = tuple(
    sorted(
        [
            "assert",
            "async_hooks",
            "buffer",
            "child_process",
            "cluster",
            "console",
            "constants",
            "crypto",
            "dgram",
            "diagnostics_channel",
            "dns",
            "domain",
            "events",
            "fs",
            "fs/promises",
            "http",
            "http2",
            "https",
            "inspector",
            "module",
            "net",
            "os",
            "path",
            "perf_hooks",
            "process",
            "punycode",
            "querystring",
            "readline",
            "repl",
            "stream",
            "string_decoder",
            "timers",
            "tls",
            "trace_events",
            "tty",
            "url",
            "util",
            "v8",
            "vm",
            "wasi",
            "worker_threads",
            "zlib",
        ]
    )
)

_NODE_STDLIB_SET = frozenset(NODE_STDLIB_MODULES)


def is_node_external(specifier: str) -> str | None:
    """Return the bare built-in module id if the specifier names a Node.js built-in."""
    module_id = specifier[len("node:") :] if specifier.startswith("node:") else specifier
    if module_id in _NODE_STDLIB_SET:
        return module_id
    return None


def node_external_path(project_root: Path, module_id: str) -> Path:
    """Absolute path of the redirect stub for a Node.js built-in."""
    return Path(project_root) / EXTERNALS_FOLDER / module_id / VIRTUAL_MODULE_FILENAME


def node_external_contents(module_id: str) -> str:
    return f"module.exports = $$require_external('node:{module_id}');"


def relative_specifier(origin_path: Path, target: Path) -> str:
    """Posix-style relative specifier from the importing file to the target file."""
    relative = os.path.relpath(target, Path(origin_path).parent).replace(os.sep, "/")
    if not relative.startswith("../") and not relative.startswith("./"):
        relative = f"./{relative}"
    return relative


def get_node_external_module_id(project_root: Path, origin_path: Path, module_id: str) -> str:
    """Requester-relative specifier of the redirect stub for a Node.js built-in."""
    return relative_specifier(origin_path, node_external_path(project_root, module_id))


def setup_node_externals(registry: VirtualModuleRegistry) -> list[Path]:
    """Materialize one redirect stub per Node.js built-in under the externals folder."""
    paths = []
    for module_id in NODE_STDLIB_MODULES:
        path = node_external_path(registry.project_root, module_id)
        paths.append(registry.materialize_at(path, node_external_contents(module_id)))
    logger.debug(f"Prepared {len(paths)} Node.js externals in {registry.base_dir}")
    return paths


# ----- Generated stub contents -----


def weak_stub_contents(specifier: str) -> str:
    return f"module.exports=/*{specifier}*/__r(require.resolveWeak('{specifier}'))"


def node_stub_contents(specifier: str) -> str:
    return f"module.exports=$$require_external('{specifier}')"


# ----- External rules -----


@dataclass(frozen=True)
class ExternalRule:
    """A predicate over requests plus what to replace matching specifiers with.

    ``replace`` is validated when the rule matches, not when it is declared.
    """

    match: Callable[[ResolutionRequest], bool]
    replace: ReplaceKind
    name: str = ""

    def __repr__(self) -> str:
        return f"ExternalRule({self.name or self.match!r}, replace={self.replace!r})"


def first_matching_rule(rules: Iterable[ExternalRule], request: ResolutionRequest) -> ExternalRule | None:
    for rule in rules:
        if rule.match(request):
            return rule
    return None


_REACT_SERVER_DEV_EXTERNALS = re.compile(
    r"^(source-map-support(/.*)?|@babel/runtime/.+|debug|metro-runtime/src/modules/HMRClient|metro"
    r"|acorn-loose|acorn|chalk|ws|ansi-styles|supports-color|color-convert|has-flag|utf-8-validate"
    r"|color-name|react-refresh/runtime|@remix-run/node/.+)$"
)

_NODE_DEV_EXTERNALS = re.compile(
    r"^(source-map-support(/.*)?|react|react-helmet-async|@radix-ui/.+|@babel/runtime/.+|react-dom(/.+)?"
    r"|debug|acorn-loose|acorn|css-in-js-utils/lib/.+|hyphenate-style-name|color|color-string"
    r"|color-convert|color-name|fontfaceobserver|fast-deep-equal|query-string|escape-string-regexp"
    r"|invariant|postcss-value-parser|memoize-one|nullthrows|strict-uri-encode|decode-uri-component"
    r"|split-on-first|filter-obj|warn-once|simple-swizzle|is-arrayish|inline-style-prefixer/.+)$"
)

_CLIENT_CHUNK_EXTERNALS = (
    re.compile(
        r"^(styleq(/.+)?|deprecated-react-native-prop-types|invariant|nullthrows|memoize-one"
        r"|@react-native/assets-registry/registry|@react-native/normalize-color|react|react/jsx-dev-runtime"
        r"|scheduler|react-is|expo-modules-core|react-native|react-dom(/.+)?|metro-runtime(/.+)?)$"
    ),
    re.compile(
        r"^react-native-web/dist/exports/(Platform|NativeEventEmitter|StyleSheet|NativeModules"
        r"|DeviceEventEmitter|Text|View)$"
    ),
    re.compile(r"^@babel/runtime/helpers/(wrapNativeSuper)$"),
)


def is_server_dev_external(request: ResolutionRequest) -> bool:
    """Dev-time Node.js externals for server bundles."""
    if request.exporting or not is_server_environment(request.environment):
        return False
    if request.environment == "react-server":
        return bool(_REACT_SERVER_DEV_EXTERNALS.match(request.specifier))
    return bool(_NODE_DEV_EXTERNALS.match(request.specifier))


def is_client_chunk_external(request: ResolutionRequest) -> bool:
    """Common packages from the root client chunk, extern'd in async client-boundary chunks."""
    if request.exporting or is_server_environment(request.environment) or not request.client_boundary:
        return False
    return any(pattern.match(request.specifier) for pattern in _CLIENT_CHUNK_EXTERNALS)


def default_external_rules() -> list[ExternalRule]:
    """Built-in rules, in evaluation order."""
    return [
        ExternalRule(match=is_server_dev_external, replace="node", name="server-dev-externals"),
        ExternalRule(match=is_client_chunk_external, replace="weak", name="client-chunk-externals"),
    ]
