"""Primitive single-specifier resolvers.

The pipeline treats the primitive as an opaque callable:
``resolver(context, specifier, platform) -> Resolution`` raising
FailedToResolveNameError / FailedToResolvePathError on a miss.

FileSystemResolver is a small reference implementation (extension and
platform-suffix probing, ``node_modules`` lookup, ``package.json`` main
fields). Hosts with their own resolver plug that in instead.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from .errors import FailedToResolveNameError
from .errors import FailedToResolvePathError
from .models import Asset
from .models import Resolution
from .models import ResolutionContext
from .models import SourceFile

logger = logging.getLogger(__name__)

DEFAULT_ASSET_EXTS: frozenset[str] = frozenset(
    {"bmp", "gif", "jpg", "jpeg", "png", "webp", "svg", "ttf", "otf", "mp4", "mp3", "wav", "pdf"}
)


class PrimitiveResolver(Protocol):
    def __call__(self, context: ResolutionContext, specifier: str, platform: str | None) -> Resolution: ...


def is_relative_or_absolute(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../", "/")) or os.path.isabs(specifier)


def split_package_specifier(specifier: str) -> tuple[str, str]:
    """``@scope/pkg/sub/path`` -> (``@scope/pkg``, ``sub/path``)."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


class FileSystemResolver:
    """Reference primitive resolver over the local file system.

    Args:
        virtual_files: Generated modules kept in memory (for example an
            InMemoryMaterializer); they count as existing files.
        asset_exts: Extensions resolved as assets instead of source files
    """

    def __init__(
        self,
        virtual_files: Mapping[Path, str] | None = None,
        asset_exts: frozenset[str] = DEFAULT_ASSET_EXTS,
    ) -> None:
        self.virtual_files = virtual_files
        self.asset_exts = asset_exts

    def __call__(self, context: ResolutionContext, specifier: str, platform: str | None) -> Resolution:
        if is_relative_or_absolute(specifier):
            base = Path(os.path.normpath(Path(context.origin_path).parent / specifier))
            candidates: list[Path] = []
            result = self._resolve_path(base, context, platform, candidates)
            if result is None:
                raise FailedToResolvePathError(specifier, context.origin_path, candidates=candidates)
            return result

        package_name, subpath = split_package_specifier(specifier)
        search_paths = []
        for node_modules in self._node_modules_dirs(Path(context.origin_path).parent):
            search_paths.append(node_modules)
            package_dir = node_modules / package_name
            if not package_dir.is_dir():
                continue
            candidates = []
            if subpath:
                result = self._resolve_path(package_dir / subpath, context, platform, candidates)
            else:
                result = self._resolve_package(package_dir, context, platform, candidates)
            if result is not None:
                return result
            raise FailedToResolvePathError(specifier, context.origin_path, candidates=candidates)

        raise FailedToResolveNameError(specifier, context.origin_path, search_paths=search_paths)

    # ----- Helpers -----

    def _exists(self, path: Path) -> bool:
        if self.virtual_files is not None and path in self.virtual_files:
            return True
        return path.is_file()

    @staticmethod
    def _node_modules_dirs(start: Path) -> Iterator[Path]:
        current = start
        while True:
            if current.name != "node_modules":
                yield current / "node_modules"
            if current.parent == current:
                return
            current = current.parent

    def _platform_suffixes(self, context: ResolutionContext, platform: str | None) -> list[str]:
        suffixes = []
        if platform:
            suffixes.append(f".{platform}")
        if context.prefer_native_platform and platform != "web":
            suffixes.append(".native")
        suffixes.append("")
        return suffixes

    def _file_candidates(self, base: Path, context: ResolutionContext, platform: str | None) -> Iterator[Path]:
        yield base
        for suffix in self._platform_suffixes(context, platform):
            for ext in context.source_exts:
                yield base.with_name(f"{base.name}{suffix}.{ext}")

    def _resolve_file(
        self, base: Path, context: ResolutionContext, platform: str | None, candidates: list[Path]
    ) -> Resolution | None:
        for candidate in self._file_candidates(base, context, platform):
            candidates.append(candidate)
            if self._exists(candidate):
                if candidate.suffix.lstrip(".") in self.asset_exts:
                    return Asset((candidate,))
                return SourceFile(candidate)
        return None

    def _resolve_path(
        self, base: Path, context: ResolutionContext, platform: str | None, candidates: list[Path]
    ) -> Resolution | None:
        if result := self._resolve_file(base, context, platform, candidates):
            return result
        if base.is_dir():
            if (base / "package.json").is_file():
                return self._resolve_package(base, context, platform, candidates)
            return self._resolve_file(base / "index", context, platform, candidates)
        return None

    def _resolve_package(
        self, package_dir: Path, context: ResolutionContext, platform: str | None, candidates: list[Path]
    ) -> Resolution | None:
        manifest = self._read_manifest(package_dir / "package.json")
        for field_name in context.main_fields:
            entry = manifest.get(field_name)
            if isinstance(entry, str) and entry:
                target = Path(os.path.normpath(package_dir / entry))
                if result := self._resolve_file(target, context, platform, candidates):
                    return result
                if target.is_dir() and (result := self._resolve_file(target / "index", context, platform, candidates)):
                    return result
        return self._resolve_file(package_dir / "index", context, platform, candidates)

    @staticmethod
    def _read_manifest(path: Path) -> dict:
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def __repr__(self) -> str:
        return "FileSystemResolver()"
