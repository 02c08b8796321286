"""Tests for path alias hot reload."""

import os
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

from conftest import write_files

from platform_resolver.path_aliases import PathAliasConfig
from platform_resolver.watcher import FileNotifier
from platform_resolver.watcher import PathAliasReloader
from platform_resolver.watcher import VersionedCell


class TestVersionedCell:
    def test_set_bumps_version(self):
        cell = VersionedCell("a")
        assert cell.snapshot() == (0, "a")
        assert cell.set("b") == 1
        assert cell.get() == "b"
        assert cell.version == 1

    def test_concurrent_writers_keep_versions_monotonic(self):
        cell = VersionedCell(0)
        versions = []
        lock = threading.Lock()

        def writer(n):
            v = cell.set(n)
            with lock:
                versions.append(v)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(versions) == list(range(1, 17))
        assert cell.version == 16


class TestFileNotifier:
    def test_poll_detects_create_modify_delete(self, tmp_path):
        notifier = FileNotifier(tmp_path, ["tsconfig.json"])
        assert notifier.poll() is True  # Baseline
        assert notifier.poll() is False

        config = tmp_path / "tsconfig.json"
        config.write_text("{}")
        assert notifier.poll() is True

        config.write_text('{"compilerOptions": {}}')
        assert notifier.poll() is True

        config.unlink()
        assert notifier.poll() is True
        assert notifier.poll() is False

    def test_background_thread_calls_back_on_change(self, tmp_path):
        changed = threading.Event()
        notifier = FileNotifier(tmp_path, ["tsconfig.json"], interval=0.01)
        notifier.start_observing(changed.set)
        try:
            assert notifier.is_observing
            (tmp_path / "tsconfig.json").write_text("{}")
            assert changed.wait(timeout=5.0)
        finally:
            notifier.stop_observing()
        assert not notifier.is_observing

    def test_callback_errors_do_not_stop_the_thread(self, tmp_path):
        calls = []

        def callback():
            calls.append(time.monotonic())
            raise RuntimeError("boom")

        config = tmp_path / "tsconfig.json"
        notifier = FileNotifier(tmp_path, ["tsconfig.json"], interval=0.01)
        notifier.start_observing(callback)
        try:
            config.write_text("{}")
            deadline = time.monotonic() + 5.0
            while not calls and time.monotonic() < deadline:
                time.sleep(0.01)
            config.write_text('{"compilerOptions": {}}')
            stat = config.stat()
            os.utime(config, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
            while len(calls) < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert notifier.is_observing
        finally:
            notifier.stop_observing()
        assert len(calls) >= 2


class TestPathAliasReloader:
    def test_initial_load(self, tmp_path):
        write_files(tmp_path, {"tsconfig.json": {"compilerOptions": {"paths": {"@app/*": ["./src/*"]}}}})
        reloader = PathAliasReloader(tmp_path)
        assert reloader.current is not None
        assert "@app/*" in reloader.current.paths
        assert not reloader.is_watching

    def test_disabled_never_loads(self, tmp_path):
        loader = MagicMock()
        reloader = PathAliasReloader(tmp_path, enabled=False, loader=loader)
        assert reloader.current is None
        assert reloader.reload() is None
        loader.assert_not_called()

    def test_reload_swaps_snapshot_and_notifies(self, tmp_path):
        reloader = PathAliasReloader(tmp_path)
        assert reloader.current is None
        listener = MagicMock()
        reloader.subscribe(listener)

        write_files(tmp_path, {"tsconfig.json": {"compilerOptions": {"paths": {"@app/*": ["./src/*"]}}}})
        config = reloader.reload()

        assert reloader.current is config
        assert reloader.version == 1
        listener.assert_called_once_with(config)

    def test_reload_without_paths_disables_aliases(self, tmp_path):
        write_files(tmp_path, {"tsconfig.json": {"compilerOptions": {"paths": {"@app/*": ["./src/*"]}}}})
        reloader = PathAliasReloader(tmp_path)
        old = reloader.current

        write_files(tmp_path, {"tsconfig.json": {"compilerOptions": {"baseUrl": "."}}})
        assert reloader.reload() is None
        assert reloader.current is None
        # Readers holding the old snapshot keep a complete, unchanged config
        assert dict(old.paths) == {"@app/*": ("./src/*",)}

    def test_initial_config_skips_loader(self, tmp_path):
        loader = MagicMock()
        initial = PathAliasConfig(base_url=tmp_path, paths={"~/*": ["./*"]})
        reloader = PathAliasReloader(tmp_path, initial=initial, loader=loader)
        assert reloader.current is initial
        loader.assert_not_called()

    def test_watching_reloads_on_change(self, tmp_path):
        reloader = PathAliasReloader(Path(tmp_path), watch=True, interval=0.01)
        reloaded = threading.Event()
        reloader.subscribe(lambda config: config is not None and reloaded.set())
        try:
            assert reloader.is_watching
            write_files(tmp_path, {"tsconfig.json": {"compilerOptions": {"paths": {"@app/*": ["./src/*"]}}}})
            assert reloaded.wait(timeout=5.0)
            assert reloader.current is not None
        finally:
            reloader.close()
        assert not reloader.is_watching
        reloader.close()  # Idempotent
