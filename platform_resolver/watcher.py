"""Hot reload for path aliases.

FileNotifier polls a handful of config files from a daemon thread and calls
back on change. PathAliasReloader keeps the active PathAliasConfig in a
VersionedCell: a reload builds a complete new snapshot and swaps the single
reference, so an in-flight resolution keeps whatever snapshot it already read.
"""

from __future__ import annotations

import atexit
import logging
import threading
from collections.abc import Callable
from collections.abc import Iterable
from pathlib import Path
from typing import Generic
from typing import TypeVar

from .path_aliases import CONFIG_FILENAMES
from .path_aliases import PathAliasConfig
from .path_aliases import load_path_alias_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 1.0

FileState = tuple[int, int] | None


class VersionedCell(Generic[T]):
    """Single shared reference with a version counter.

    Readers never lock: ``snapshot()`` reads one tuple attribute. Writers
    serialize on a lock so versions stay monotonic.
    """

    def __init__(self, value: T) -> None:
        self._state: tuple[int, T] = (0, value)
        self._write_lock = threading.Lock()

    def get(self) -> T:
        return self._state[1]

    def snapshot(self) -> tuple[int, T]:
        return self._state

    @property
    def version(self) -> int:
        return self._state[0]

    def set(self, value: T) -> int:
        with self._write_lock:
            version = self._state[0] + 1
            self._state = (version, value)
        return version


class FileNotifier:
    """Polls files for changes (mtime + size) and notifies a callback."""

    def __init__(
        self,
        root: Path,
        filenames: Iterable[str],
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.root = Path(root)
        self.paths = [self.root / name for name in filenames]
        self.interval = interval
        self._callback: Callable[[], None] | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._states: dict[Path, FileState] = {}

    @staticmethod
    def _state(path: Path) -> FileState:
        try:
            stat = path.stat()
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def poll(self) -> bool:
        """Compare file states with the last poll; True when anything changed."""
        changed = False
        for path in self.paths:
            state = self._state(path)
            if self._states.get(path) != state:
                changed = True
                self._states[path] = state
        return changed

    def start_observing(self, callback: Callable[[], None]) -> None:
        if self._thread is not None:
            return
        self._callback = callback
        self._stop.clear()
        self.poll()  # Baseline; the first change after this is reported
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name=f"file-notifier-{self.root.name}",
        )
        self._thread.start()
        logger.debug(f"Watching {', '.join(str(p) for p in self.paths)}")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            if self.poll() and self._callback is not None:
                try:
                    self._callback()
                except Exception:
                    logger.exception("Error in file change handler")

    def stop_observing(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    @property
    def is_observing(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class PathAliasReloader:
    """Owns the active PathAliasConfig and, optionally, the watcher that reloads it.

    Args:
        project_root: Directory holding tsconfig.json / jsconfig.json
        enabled: When False the strategy stays disabled and nothing is loaded
        watch: Reload when the config files change
        initial: Pre-loaded config (skips the synchronous initial load)
        loader: Config loader (injectable for tests)
        interval: Poll interval for the watcher, in seconds
    """

    def __init__(
        self,
        project_root: Path,
        enabled: bool = True,
        watch: bool = False,
        initial: PathAliasConfig | None = None,
        loader: Callable[[Path], PathAliasConfig | None] = load_path_alias_config,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.project_root = Path(project_root)
        self.enabled = enabled
        self._loader = loader
        self._listeners: list[Callable[[PathAliasConfig | None], None]] = []
        self._notifier: FileNotifier | None = None

        config = None
        if enabled:
            config = initial if initial is not None else loader(self.project_root)
            if config is not None and not config.is_active:
                config = None
        self._cell: VersionedCell[PathAliasConfig | None] = VersionedCell(config)

        if enabled and watch:
            self._notifier = FileNotifier(self.project_root, CONFIG_FILENAMES, interval=interval)
            self._notifier.start_observing(self.reload)
            atexit.register(self.close)
        elif enabled:
            logger.debug("Path alias watching disabled")

    @property
    def current(self) -> PathAliasConfig | None:
        return self._cell.get()

    @property
    def version(self) -> int:
        return self._cell.version

    def subscribe(self, listener: Callable[[PathAliasConfig | None], None]) -> None:
        """Call ``listener`` with the new config after every reload (cache invalidation hook)."""
        self._listeners.append(listener)

    def reload(self) -> PathAliasConfig | None:
        """Load the config again and swap it in. An empty paths map disables aliasing."""
        if not self.enabled:
            return None
        config = self._loader(self.project_root)
        if config is not None and config.paths:
            logger.debug("Enabling path alias support")
        else:
            logger.debug("Disabling path alias support")
            config = None
        self._cell.set(config)
        for listener in self._listeners:
            try:
                listener(config)
            except Exception:
                logger.exception("Error in path alias reload listener")
        return config

    def close(self) -> None:
        """Stop watching. Safe to call more than once."""
        if self._notifier is not None:
            self._notifier.stop_observing()
            self._notifier = None
            atexit.unregister(self.close)

    @property
    def is_watching(self) -> bool:
        return self._notifier is not None and self._notifier.is_observing

    def __repr__(self) -> str:
        state = "watching" if self.is_watching else "static"
        return f"PathAliasReloader({self.project_root}, {state}, v{self.version})"
