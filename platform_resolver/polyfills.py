"""Per-platform polyfills and on-disk shim setup.

The ``$$require_external`` global used by Node.js redirect stubs is defined by
a polyfill: web resolves it to ``require`` on servers, native throws a
readable error for standard library modules.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from .virtual_modules import CANARY_FOLDER
from .virtual_modules import GENERATED_ROOT
from .virtual_modules import SHIMS_FOLDER
from .virtual_modules import VirtualModuleRegistry

logger = logging.getLogger(__name__)

EXTERNAL_REQUIRE_POLYFILL = GENERATED_ROOT / "polyfill.js"
EXTERNAL_REQUIRE_NATIVE_POLYFILL = GENERATED_ROOT / "polyfill.native.js"

EXTERNAL_REQUIRE_POLYFILL_CONTENTS = (
    'global.$$require_external = typeof window === "undefined" ? require : () => null;'
)
EXTERNAL_REQUIRE_NATIVE_POLYFILL_CONTENTS = (
    "global.$$require_external = (moduleId) => {throw new Error(`Node.js standard library module "
    "${moduleId} is not available in this JavaScript environment`);}"
)


def get_polyfills(project_root: Path, platform: str | None, base_polyfills: Sequence[str | Path] = ()) -> list[Path]:
    """Polyfill files to prepend to a bundle for the platform.

    Web gets only the external-require polyfill; other platforms keep the
    host's polyfills and add the native variant after them.
    """
    project_root = Path(project_root)
    if platform == "web":
        return [project_root / EXTERNAL_REQUIRE_POLYFILL]
    return [Path(p) for p in base_polyfills] + [project_root / EXTERNAL_REQUIRE_NATIVE_POLYFILL]


def write_external_require_polyfills(registry: VirtualModuleRegistry) -> list[Path]:
    root = registry.project_root
    return [
        registry.materialize_at(root / EXTERNAL_REQUIRE_POLYFILL, EXTERNAL_REQUIRE_POLYFILL_CONTENTS),
        registry.materialize_at(root / EXTERNAL_REQUIRE_NATIVE_POLYFILL, EXTERNAL_REQUIRE_NATIVE_POLYFILL_CONTENTS),
    ]


def _copy_missing(source: Path, target: Path) -> int:
    """Copy files from source into target without overwriting existing ones."""
    copied = 0
    for file in source.rglob("*"):
        if not file.is_file():
            continue
        destination = target / file.relative_to(source)
        if destination.exists():
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(file, destination)
        copied += 1
    return copied


def setup_shim_files(
    registry: VirtualModuleRegistry,
    shims_source: Path | None = None,
    canary_source: Path | None = None,
    canary: bool = False,
) -> None:
    """Prepare the reserved folders: shims, canary overrides and polyfills.

    Args:
        registry: Registry whose project root receives the files
        shims_source: Directory of static web shims (mirrors node_modules layout)
        canary_source: Directory of canary runtime files (mirrors node_modules layout)
        canary: Copy the canary files as well
    """
    root = registry.project_root
    (root / SHIMS_FOLDER).mkdir(parents=True, exist_ok=True)

    if shims_source is not None:
        if Path(shims_source).is_dir():
            copied = _copy_missing(Path(shims_source), root / SHIMS_FOLDER)
            logger.debug(f"Copied {copied} shim file(s) into {root / SHIMS_FOLDER}")
        else:
            logger.warning(f"Shims directory not found: {shims_source}")

    if canary and canary_source is not None:
        if Path(canary_source).is_dir():
            copied = _copy_missing(Path(canary_source), root / CANARY_FOLDER)
            logger.debug(f"Copied {copied} canary file(s) into {root / CANARY_FOLDER}")
        else:
            logger.warning(f"Canary directory not found: {canary_source}")

    write_external_require_polyfills(registry)
