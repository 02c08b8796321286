"""Data models for module resolution.

A ResolutionRequest is what the host bundler asks about; a Resolution is the
decision handed back. Both are immutable. ResolutionContext is the host's
"custom resolver options" bag; the pipeline copies it per request and never
shares a mutated copy between requests.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Any
from typing import Literal

Platform = Literal["ios", "android", "web"] | None
Environment = Literal["client", "node", "react-server"] | None

PLATFORMS: tuple[str, ...] = ("ios", "android", "web")
ENVIRONMENTS: tuple[str, ...] = ("client", "node", "react-server")

SERVER_ENVIRONMENTS: frozenset[str] = frozenset({"node", "react-server"})

DEFAULT_SOURCE_EXTS: tuple[str, ...] = ("ts", "tsx", "mjs", "js", "jsx", "json", "cjs")
DEFAULT_MAIN_FIELDS: tuple[str, ...] = ("react-native", "browser", "main")


def is_server_environment(environment: str | None) -> bool:
    """True for environments that execute in Node.js (node, react-server)."""
    return environment in SERVER_ENVIRONMENTS


def _freeze(options: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(options or {}))


@dataclass(frozen=True)
class ResolutionRequest:
    """One resolution attempt: a specifier seen while importing from origin_path."""

    specifier: str
    origin_path: Path
    platform: Platform = None
    environment: Environment = None
    exporting: bool = False
    dev: bool = True
    client_boundary: bool = False
    custom_options: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin_path", Path(self.origin_path))
        object.__setattr__(self, "custom_options", _freeze(self.custom_options))

    @property
    def is_server(self) -> bool:
        return is_server_environment(self.environment)

    def with_specifier(self, specifier: str) -> ResolutionRequest:
        """Same request, different specifier (used when a strategy rewrites)."""
        return replace(self, specifier=specifier)

    @classmethod
    def from_options(
        cls,
        specifier: str,
        origin_path: str | Path,
        platform: str | None,
        options: Mapping[str, Any] | None = None,
        dev: bool = True,
    ) -> ResolutionRequest:
        """Build a request from a host bundler's custom resolver options bag.

        Only ``environment``, ``exporting`` and ``clientboundary`` are read;
        everything else is carried along untouched.
        """
        options = dict(options or {})
        environment = options.get("environment") or None
        if environment is not None and environment not in ENVIRONMENTS:
            raise ValueError(f"Unknown environment '{environment}' (expected one of: {', '.join(ENVIRONMENTS)})")
        if platform is not None and platform not in PLATFORMS:
            raise ValueError(f"Unknown platform '{platform}' (expected one of: {', '.join(PLATFORMS)})")
        return cls(
            specifier=specifier,
            origin_path=Path(origin_path),
            platform=platform,  # type: ignore[arg-type]
            environment=environment,
            exporting=bool(options.get("exporting", False)),
            dev=dev,
            client_boundary=bool(options.get("clientboundary", False)),
            custom_options=options,
        )


@dataclass
class ResolutionContext:
    """Options handed to the primitive resolver for a single request."""

    origin_path: Path
    custom_options: Mapping[str, Any] = field(default_factory=dict)
    dev: bool = True
    source_exts: tuple[str, ...] = DEFAULT_SOURCE_EXTS
    main_fields: tuple[str, ...] = DEFAULT_MAIN_FIELDS
    condition_names: tuple[str, ...] = ("require", "import")
    conditions_by_platform: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    prefer_native_platform: bool = True
    enable_package_exports: bool = False

    @classmethod
    def for_request(cls, request: ResolutionRequest) -> ResolutionContext:
        return cls(
            origin_path=request.origin_path,
            custom_options=request.custom_options,
            dev=request.dev,
        )


# ----- Resolutions -----


@dataclass(frozen=True)
class SourceFile:
    path: Path
    type: Literal["sourceFile"] = "sourceFile"

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        if not self.path.is_absolute():
            raise ValueError(f"SourceFile path must be absolute: {self.path}")


@dataclass(frozen=True)
class Asset:
    paths: tuple[Path, ...]
    type: Literal["assetFiles"] = "assetFiles"

    def __post_init__(self) -> None:
        paths = tuple(Path(p) for p in self.paths)
        if not paths:
            raise ValueError("Asset resolution needs at least one path")
        for p in paths:
            if not p.is_absolute():
                raise ValueError(f"Asset path must be absolute: {p}")
        object.__setattr__(self, "paths", paths)

    @property
    def path(self) -> Path:
        return self.paths[0]


@dataclass(frozen=True)
class Empty:
    type: Literal["empty"] = "empty"


@dataclass(frozen=True)
class NodeExternal:
    """Resolved to a redirect stub that late-binds a Node.js module at runtime."""

    original_name: str
    path: Path
    type: Literal["nodeExternal"] = "nodeExternal"

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


@dataclass(frozen=True)
class WeakExternal:
    """Resolved to a redirect stub holding a lazy (weak) runtime reference."""

    original_name: str
    path: Path
    type: Literal["weakExternal"] = "weakExternal"

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


Resolution = SourceFile | Asset | Empty | NodeExternal | WeakExternal

EMPTY = Empty()


def describe_resolution(resolution: Resolution) -> str:
    """One-line human description, used by logs and the CLI."""
    if isinstance(resolution, SourceFile):
        return f"source file {resolution.path}"
    if isinstance(resolution, Asset):
        return f"asset {resolution.path}"
    if isinstance(resolution, NodeExternal):
        return f"node external '{resolution.original_name}' via {resolution.path}"
    if isinstance(resolution, WeakExternal):
        return f"weak external '{resolution.original_name}' via {resolution.path}"
    return "empty module"
