"""Settings management for platform-resolver.

Philosophy: Simple, scope-aware YAML settings validated by a pydantic model.

Scope priority (most specific wins):
1. local (.platform-resolver/settings.local.yaml) - gitignored, machine-specific
2. project (.platform-resolver/settings.yaml) - committed, team-shared
3. global (~/.platform-resolver/settings.yaml) - user defaults
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic import Field

logger = logging.getLogger(__name__)

Scope = Literal["local", "project", "global"]

SETTINGS_DIRNAME = ".platform-resolver"

ENV_NO_MAIN_FIELD_OVERRIDE = "PLATFORM_RESOLVER_NO_MAIN_FIELD_OVERRIDE"

_TRUTHY = {"1", "true", "yes", "on"}


class ResolverSettings(BaseModel):
    """Bundler-level options the pipeline is built from."""

    project_root: Path = Field(default_factory=Path.cwd, description="Project root directory")
    path_aliases_enabled: bool = Field(default=True, description="Honor tsconfig/jsconfig compilerOptions.paths")
    watch_config: bool = Field(default=False, description="Reload path aliases when tsconfig/jsconfig change")
    watch_interval: float = Field(default=1.0, gt=0, description="Config poll interval in seconds")
    exporting: bool = Field(default=False, description="Building an export (production) bundle")
    react_canary_enabled: bool = Field(default=False, description="Redirect native dependencies to canary builds")
    empty_native_builtins: bool = Field(
        default=True, description="Empty Node.js built-ins on ios/android instead of failing"
    )
    no_main_field_override: bool = Field(default=False, description="Keep the default main fields on web")
    shims_source_dir: Path | None = Field(default=None, description="Static web shims copied into the project")
    canary_source_dir: Path | None = Field(default=None, description="Canary runtime files copied into the project")

    def resolved_root(self) -> Path:
        return self.project_root.expanduser().resolve()


@dataclass
class SettingsPaths:
    """Standard paths for settings files."""

    global_settings: Path
    project_settings: Path
    local_settings: Path

    @classmethod
    def default(cls, project_root: Path | None = None) -> SettingsPaths:
        """Create default paths for the standard layout."""
        root = project_root or Path.cwd()
        return cls(
            global_settings=Path.home() / SETTINGS_DIRNAME / "settings.yaml",
            project_settings=root / SETTINGS_DIRNAME / "settings.yaml",
            local_settings=root / SETTINGS_DIRNAME / "settings.local.yaml",
        )


class AppSettings:
    """Scope-aware settings store.

    Usage:
        settings = AppSettings()
        resolver_settings = settings.load()
        settings.set("react_canary_enabled", True, scope="local")
    """

    def __init__(self, paths: SettingsPaths | None = None) -> None:
        self.paths = paths or SettingsPaths.default()

    def get_merged_settings(self) -> dict[str, Any]:
        """Load and merge settings from all scopes."""
        result: dict[str, Any] = {}
        for path in [self.paths.global_settings, self.paths.project_settings, self.paths.local_settings]:
            if path.exists():
                try:
                    with open(path, encoding="utf-8") as f:
                        content = yaml.safe_load(f) or {}
                    if not isinstance(content, dict):
                        logger.warning(f"Ignoring settings file {path}: expected a mapping")
                        continue
                    result = self._deep_merge(result, content)
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.warning(f"Skipping malformed settings file {path}: {e}")
        return result

    def load(self, **overrides: Any) -> ResolverSettings:
        """Merged settings + environment + explicit overrides, validated.

        Raises:
            pydantic.ValidationError: A setting has an invalid value
        """
        data = self.get_merged_settings()
        if os.environ.get(ENV_NO_MAIN_FIELD_OVERRIDE, "").lower() in _TRUTHY:
            data["no_main_field_override"] = True
        data.update({k: v for k, v in overrides.items() if v is not None})
        return ResolverSettings.model_validate(data)

    def set(self, key: str, value: Any, scope: Scope = "project") -> None:
        """Set a single setting at the given scope."""
        if key not in ResolverSettings.model_fields:
            raise KeyError(f"Unknown setting '{key}'. Known settings: {', '.join(ResolverSettings.model_fields)}")
        settings = self._read_scope(scope)
        settings[key] = value
        self._write_scope(scope, settings)

    def unset(self, key: str, scope: Scope = "project") -> None:
        settings = self._read_scope(scope)
        if key in settings:
            del settings[key]
            self._write_scope(scope, settings)

    # ----- Scope utilities -----

    def _get_scope_path(self, scope: Scope) -> Path:
        return {
            "local": self.paths.local_settings,
            "project": self.paths.project_settings,
            "global": self.paths.global_settings,
        }[scope]

    def _read_scope(self, scope: Scope) -> dict[str, Any]:
        path = self._get_scope_path(scope)
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                content = yaml.safe_load(f) or {}
        except (OSError, ValueError, yaml.YAMLError):
            return {}
        return content if isinstance(content, dict) else {}

    def _write_scope(self, scope: Scope, settings: dict[str, Any]) -> None:
        path = self._get_scope_path(scope)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(settings, f, default_flow_style=False)

    def _deep_merge(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dicts, overlay wins."""
        result = base.copy()
        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def get_settings(project_root: Path | None = None) -> AppSettings:
    """Get a settings instance with default paths."""
    return AppSettings(SettingsPaths.default(project_root))
