"""User-declared path aliases (``compilerOptions.paths`` in tsconfig/jsconfig).

Loading is forgiving: a missing or malformed config means the
path-alias strategy is simply disabled.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from types import MappingProxyType

from .models import Resolution

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = ("tsconfig.json", "jsconfig.json")

_RELATIVE_SPECIFIER = re.compile(r"^\.\.?($|[\\/])")
_NODE_MODULES = re.compile(r"[\\/]node_modules[\\/]|^node_modules[\\/]")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


@dataclass(frozen=True)
class PathAliasConfig:
    """A snapshot of path aliases. Replaced wholesale on reload, never mutated."""

    base_url: Path
    paths: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    has_base_url: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", Path(self.base_url))
        frozen = {key: tuple(values) for key, values in dict(self.paths).items()}
        object.__setattr__(self, "paths", MappingProxyType(frozen))

    @property
    def is_active(self) -> bool:
        return bool(self.paths) or self.has_base_url


@dataclass(frozen=True)
class AliasMatch:
    pattern: str
    star: str | None


# ----- Loading -----


def _strip_json_comments(text: str) -> str:
    """Remove // and /* */ comments outside of string literals."""
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def read_config_file(path: Path) -> dict | None:
    """Parse a tsconfig-style JSON file (comments and trailing commas allowed)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return None
    try:
        data = json.loads(_TRAILING_COMMA.sub(r"\1", _strip_json_comments(text)))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def find_config_file(project_root: Path) -> Path | None:
    for filename in CONFIG_FILENAMES:
        candidate = Path(project_root) / filename
        if candidate.is_file():
            return candidate
    return None


def load_path_alias_config(project_root: Path) -> PathAliasConfig | None:
    """Load path aliases from the project's tsconfig.json (or jsconfig.json).

    Returns:
        PathAliasConfig, or None when no config file declares paths or baseUrl
    """
    project_root = Path(project_root)
    config_file = find_config_file(project_root)
    if config_file is None:
        return None

    data = read_config_file(config_file)
    if data is None:
        return None

    options = data.get("compilerOptions") or {}
    if not isinstance(options, dict):
        return None

    raw_paths = options.get("paths") or {}
    paths: dict[str, tuple[str, ...]] = {}
    if isinstance(raw_paths, dict):
        for key, values in raw_paths.items():
            if isinstance(values, list):
                paths[str(key)] = tuple(str(v) for v in values if isinstance(v, str))

    raw_base_url = options.get("baseUrl")
    if raw_base_url is not None and not isinstance(raw_base_url, str):
        logger.warning(f"Ignoring non-string baseUrl in {config_file}: {raw_base_url!r}")
        raw_base_url = None
    if raw_base_url is None and not paths:
        return None

    base_url = config_file.parent / raw_base_url if raw_base_url is not None else project_root
    return PathAliasConfig(
        base_url=Path(os.path.normpath(base_url)),
        paths=paths,
        has_base_url=raw_base_url is not None,
    )


# ----- Matching -----


def match_path_alias(patterns: list[str] | tuple[str, ...], specifier: str) -> AliasMatch | None:
    """Pick the best pattern for a specifier.

    An exact (star-less) match wins outright; otherwise the ``*`` pattern with
    the longest matching prefix wins.
    """
    best: AliasMatch | None = None
    best_prefix = -1
    for pattern in patterns:
        if "*" not in pattern:
            if pattern == specifier:
                return AliasMatch(pattern=pattern, star=None)
            continue
        prefix, _, suffix = pattern.partition("*")
        if (
            len(specifier) >= len(prefix) + len(suffix)
            and specifier.startswith(prefix)
            and specifier.endswith(suffix)
            and len(prefix) > best_prefix
        ):
            best_prefix = len(prefix)
            star = specifier[len(prefix) : len(specifier) - len(suffix)]
            best = AliasMatch(pattern=pattern, star=star)
    return best


def resolve_with_path_aliases(
    config: PathAliasConfig,
    origin_path: Path,
    specifier: str,
    resolve: Callable[[str], Resolution | None],
) -> Resolution | None:
    """Try each aliased candidate with ``resolve``; first non-None wins.

    Dependencies (origins inside node_modules), absolute and relative
    specifiers are never aliased.
    """
    if (
        not config.is_active
        or _NODE_MODULES.search(str(origin_path))
        or os.path.isabs(specifier)
        or _RELATIVE_SPECIFIER.match(specifier)
    ):
        return None

    matched = match_path_alias(list(config.paths.keys()), specifier)
    if matched:
        for template in config.paths[matched.pattern]:
            candidate = template.replace("*", matched.star, 1) if matched.star is not None else template
            if candidate.endswith(".d.ts"):
                continue
            result = resolve(os.path.normpath(os.path.join(config.base_url, candidate)))
            if result is not None:
                logger.debug(f"[resolve:path-alias] {specifier} -> {candidate}")
                return result

    # baseUrl-relative lookup only when baseUrl was set explicitly
    if config.has_base_url:
        result = resolve(os.path.normpath(os.path.join(config.base_url, specifier)))
        if result is not None:
            logger.debug(f"[resolve:path-alias] {specifier} -> baseUrl")
            return result

    return None
