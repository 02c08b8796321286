"""Resolution error taxonomy.

Primitive resolvers raise FailedToResolveNameError / FailedToResolvePathError
when a specifier cannot be found. The pipeline lets those propagate unchanged,
except inside the optional resolve used by Node built-in handling.
"""

from __future__ import annotations

from pathlib import Path


class ResolutionError(Exception):
    """Base class for every error raised while resolving a specifier."""

    def __init__(
        self,
        message: str,
        *,
        specifier: str | None = None,
        origin_path: str | Path | None = None,
        platform: str | None = None,
        environment: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.specifier = specifier
        self.origin_path = Path(origin_path) if origin_path is not None else None
        self.platform = platform
        self.environment = environment

    def attach_context(self, platform: str | None, environment: str | None) -> None:
        """Record the platform/environment of the failing request (first caller wins)."""
        if self.platform is None:
            self.platform = platform
        if self.environment is None:
            self.environment = environment

    def __str__(self) -> str:
        extras = []
        if self.platform is not None or self.environment is not None:
            extras.append(f"platform: {self.platform or 'none'}")
            extras.append(f"environment: {self.environment or 'none'}")
        if extras:
            return f"{self.message} ({', '.join(extras)})"
        return self.message


class ModuleNotResolvedError(ResolutionError):
    """A specifier could not be resolved by any strategy or by the fallback resolver."""

    def __init__(self, specifier: str, origin_path: str | Path, detail: str | None = None, **kwargs):
        message = f"could not resolve module '{specifier}' imported from {origin_path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, specifier=specifier, origin_path=origin_path, **kwargs)


class FailedToResolveNameError(ModuleNotResolvedError):
    """A bare module name was not found in any module search path."""

    def __init__(self, specifier: str, origin_path: str | Path, search_paths=(), **kwargs):
        self.search_paths = [Path(p) for p in search_paths]
        detail = None
        if self.search_paths:
            detail = "searched " + ", ".join(str(p) for p in self.search_paths)
        super().__init__(specifier, origin_path, detail, **kwargs)


class FailedToResolvePathError(ModuleNotResolvedError):
    """A relative or absolute path did not point at any file candidate."""

    def __init__(self, specifier: str, origin_path: str | Path, candidates=(), **kwargs):
        self.candidates = [Path(p) for p in candidates]
        detail = None
        if self.candidates:
            detail = f"tried {len(self.candidates)} candidate file(s)"
        super().__init__(specifier, origin_path, detail, **kwargs)


class MisconfiguredExternalError(ResolutionError):
    """An external rule declares a replace kind the pipeline does not know."""


class VirtualModuleCollisionError(ResolutionError):
    """Two different generated modules hash to the same folder."""

    def __init__(self, path: str | Path, declared: str, contents: str):
        self.path = Path(path)
        self.declared = declared
        self.contents = contents
        super().__init__(
            f"generated module {self.path} already holds different contents "
            f"(declared {declared!r}, requested {contents!r})"
        )


class OptionalResolutionMiss(Exception):
    """Internal signal: an optional resolve found nothing. Never leaves the pipeline."""

    def __init__(self, specifier: str):
        super().__init__(specifier)
        self.specifier = specifier


def is_failed_to_resolve_name_error(error: BaseException) -> bool:
    return isinstance(error, FailedToResolveNameError)


def is_failed_to_resolve_path_error(error: BaseException) -> bool:
    return isinstance(error, FailedToResolvePathError)
