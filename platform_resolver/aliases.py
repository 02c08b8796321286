"""Specifier alias table.

Two kinds of rules, always checked in this order:
1. Platform aliases - exact specifier match for a given platform
2. Pattern aliases - regex match on any platform, ``$1``/``$2`` capture substitution

Within each kind the first matching rule wins. Rule order is part of the
contract: reordering the table changes resolution outcomes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_TEMPLATE_GROUP = re.compile(r"\$(\d+)")

VECTOR_ICONS_PACKAGE = "@expo/vector-icons"


@dataclass(frozen=True)
class PlatformAlias:
    platform: str
    from_specifier: str
    to_specifier: str


@dataclass(frozen=True)
class PatternAlias:
    pattern: re.Pattern[str]
    replacement: str

    @classmethod
    def compile(cls, pattern: str, replacement: str) -> PatternAlias:
        return cls(re.compile(pattern), replacement)

    def apply(self, specifier: str) -> str | None:
        """Rewrite the specifier if the pattern matches anywhere in it."""
        match = self.pattern.search(specifier)
        if not match:
            return None

        def _group(m: re.Match[str]) -> str:
            index = int(m.group(1))
            if index > (self.pattern.groups or 0):
                return ""
            return match.group(index) or ""

        return _TEMPLATE_GROUP.sub(_group, self.replacement)


AliasRule = PlatformAlias | PatternAlias


class AliasTable:
    """Immutable, ordered set of alias rules built once per bundler configuration."""

    def __init__(self, rules: Iterable[AliasRule] = ()) -> None:
        platform_aliases: dict[str, dict[str, str]] = {}
        pattern_aliases: list[PatternAlias] = []
        for rule in rules:
            if isinstance(rule, PlatformAlias):
                # First declaration of a (platform, specifier) pair wins
                platform_aliases.setdefault(rule.platform, {}).setdefault(rule.from_specifier, rule.to_specifier)
            elif isinstance(rule, PatternAlias):
                pattern_aliases.append(rule)
            else:
                raise TypeError(f"Unsupported alias rule: {rule!r}")
        self._platform_aliases = platform_aliases
        self._pattern_aliases = tuple(pattern_aliases)

    @property
    def pattern_aliases(self) -> tuple[PatternAlias, ...]:
        return self._pattern_aliases

    def platform_alias(self, specifier: str, platform: str | None) -> str | None:
        if not platform:
            return None
        return self._platform_aliases.get(platform, {}).get(specifier)

    def rewrite(self, specifier: str, platform: str | None) -> str | None:
        """Return the aliased specifier, or None when no rule matches."""
        if target := self.platform_alias(specifier, platform):
            return target

        for alias in self._pattern_aliases:
            aliased = alias.apply(specifier)
            if aliased is not None:
                return aliased

        return None

    def __len__(self) -> int:
        return sum(len(v) for v in self._platform_aliases.values()) + len(self._pattern_aliases)

    def __repr__(self) -> str:
        return f"AliasTable({len(self)} rules)"


def default_alias_rules(package_exists: Callable[[str], bool] | None = None) -> list[AliasRule]:
    """Built-in aliases: react-native -> react-native-web on web, vector icons everywhere.

    Args:
        package_exists: Predicate telling whether a package is installed in the
            project; the vector-icons alias is only added when its target is.
    """
    rules: list[AliasRule] = [
        PlatformAlias("web", "react-native", "react-native-web"),
        PlatformAlias("web", "react-native/index", "react-native-web"),
    ]
    if package_exists is not None and package_exists(VECTOR_ICONS_PACKAGE):
        logger.debug(f"Enabling alias: react-native-vector-icons -> {VECTOR_ICONS_PACKAGE}")
        rules.append(PatternAlias.compile(r"^react-native-vector-icons(/.*)?", f"{VECTOR_ICONS_PACKAGE}$1"))
    return rules
