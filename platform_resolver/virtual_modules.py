"""Virtual module registry - content-addressed generated redirect stubs.

Philosophy: a generated module's path is a pure function of its contents.
Declaring the same contents twice returns the same path and materializes once,
so bundlers that cache by file path never see spurious invalidation.
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from .errors import VirtualModuleCollisionError
from .hashing import HashCache

logger = logging.getLogger(__name__)

GENERATED_ROOT = Path(".platform-resolver")
EXTERNALS_FOLDER = GENERATED_ROOT / "externals"
SHIMS_FOLDER = GENERATED_ROOT / "shims"
CANARY_FOLDER = GENERATED_ROOT / "canary"

VIRTUAL_MODULE_FILENAME = "index.js"

Materializer = Callable[[Path, str], None]


class DiskMaterializer:
    """Writes generated modules to disk, skipping identical existing content."""

    def __call__(self, path: Path, contents: str) -> None:
        if path.exists():
            try:
                if path.read_text(encoding="utf-8") == contents:
                    return
            except OSError as e:
                logger.debug(f"Could not read existing generated module {path}: {e}")
        path.parent.mkdir(parents=True, exist_ok=True)

        # Other bundler workers may read the stub concurrently: write, then rename
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="utf-8", dir=path.parent, prefix=".index_", suffix=".tmp", delete=False
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            tmp_file.write(contents)
        try:
            temp_path.replace(path)
        except OSError:
            with contextlib.suppress(OSError):
                temp_path.unlink()
            raise
        logger.debug(f"[virtual] wrote {path}")

    def __repr__(self) -> str:
        return "DiskMaterializer()"


class InMemoryMaterializer:
    """Keeps generated modules in a dict for hosts with an in-memory file map."""

    def __init__(self) -> None:
        self.files: dict[Path, str] = {}
        self._lock = threading.Lock()

    def __call__(self, path: Path, contents: str) -> None:
        with self._lock:
            if self.files.get(path) == contents:
                return
            self.files[path] = contents

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def get(self, path: Path) -> str | None:
        return self.files.get(path)

    def __repr__(self) -> str:
        return f"InMemoryMaterializer({len(self.files)} files)"


class VirtualModuleRegistry:
    """Content-hash -> absolute path registry for generated modules.

    Usage:
        registry = VirtualModuleRegistry(project_root)
        path = registry.declare("module.exports=$$require_external('fs')")
    """

    def __init__(
        self,
        project_root: Path,
        materializer: Materializer | None = None,
        folder: Path = EXTERNALS_FOLDER,
    ) -> None:
        self.project_root = Path(project_root)
        self.base_dir = self.project_root / folder
        self.materializer: Materializer = materializer or DiskMaterializer()
        self._hashes = HashCache()
        self._entries: dict[int, tuple[Path, str]] = {}
        self._named: dict[Path, str] = {}
        self._lock = threading.Lock()

    def path_for(self, contents: str) -> Path:
        """Absolute path the given contents would live at (no materialization)."""
        return self.base_dir / str(self._hashes.get(contents)) / VIRTUAL_MODULE_FILENAME

    def declare(self, contents: str) -> Path:
        """Ensure a module with these contents exists; return its absolute path.

        The first declarer of a hash materializes it while holding the lock;
        every later or concurrent declarer gets the memoized path.

        Raises:
            VirtualModuleCollisionError: different contents already own this hash.
        """
        content_hash = self._hashes.get(contents)
        entry = self._entries.get(content_hash)
        if entry is None:
            with self._lock:
                entry = self._entries.get(content_hash)
                if entry is None:
                    path = self.base_dir / str(content_hash) / VIRTUAL_MODULE_FILENAME
                    self.materializer(path, contents)
                    self._entries[content_hash] = (path, contents)
                    logger.debug(f"[virtual] declared {path}")
                    return path

        path, declared = entry
        if declared != contents:
            raise VirtualModuleCollisionError(path, declared, contents)
        return path

    def materialize_at(self, path: Path, contents: str) -> Path:
        """Materialize a module at a fixed, name-derived path (Node built-in externals).

        Repeat calls with the same path and contents are no-ops.
        """
        path = Path(path)
        if self._named.get(path) == contents:
            return path
        with self._lock:
            if self._named.get(path) != contents:
                self.materializer(path, contents)
                self._named[path] = contents
        return path

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"VirtualModuleRegistry({self.base_dir}, {len(self._entries)} modules)"
