"""Tests for mew.watcher.Watcher — watchfiles-backed multi-root watching."""

from __future__ import annotations

import shutil
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from mew._errors import WatchError
from mew.config import MewConfig
from mew.observability import BuildCollector, WatchFault
from mew.watcher import Watcher, watch

TIMEOUT = 10.0


class BatchCollector:
    """Rebuild callback that signals every batch."""

    def __init__(self) -> None:
        self.batches: list[frozenset[Path]] = []
        self.event = threading.Event()

    def __call__(self, paths: frozenset[Path]) -> None:
        self.batches.append(paths)
        self.event.set()

    def wait_for(
        self,
        predicate: Callable[[set[Path]], bool],
        timeout: float = TIMEOUT,
    ) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate(self.all_paths):
                return True
            self.event.wait(0.05)
            self.event.clear()
        return predicate(self.all_paths)

    @property
    def all_paths(self) -> set[Path]:
        return set().union(*self.batches) if self.batches else set()


@pytest.fixture
def watch_config(tmp_path: Path) -> MewConfig:
    return MewConfig(root=tmp_path, debounce_ms=150, step_ms=50)


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path]:
    content = tmp_path / "content"
    styles = tmp_path / "styles"
    content.mkdir()
    styles.mkdir()
    return content.resolve(), styles.resolve()


class TestWatcherLifecycle:
    """start/stop and root validation."""

    def test_all_roots_missing_is_fatal(self, tmp_path: Path, watch_config: MewConfig) -> None:
        errors: list[BaseException] = []
        watcher = Watcher(
            [tmp_path / "a", tmp_path / "b"],
            lambda paths: None,
            config=watch_config,
            on_error=errors.append,
        )

        with pytest.raises(WatchError, match="None of the watched paths exist"):
            watcher.start()

        assert len(errors) == 2
        assert not watcher.is_running

    def test_missing_root_reported_others_watched(
        self, tmp_path: Path, roots: tuple[Path, Path], watch_config: MewConfig,
    ) -> None:
        errors: list[BaseException] = []
        collector = BuildCollector()
        watcher = Watcher(
            [roots[0], tmp_path / "gone"],
            lambda paths: None,
            config=watch_config,
            on_error=errors.append,
            collector=collector,
        )

        with watcher:
            assert watcher.is_running
            assert watcher.active_roots == (roots[0],)

        assert len(errors) == 1
        assert isinstance(errors[0], WatchError)
        assert collector.log.query(event_type=WatchFault)

    def test_stop_joins_thread_and_disarms(
        self, roots: tuple[Path, Path], watch_config: MewConfig,
    ) -> None:
        watcher = Watcher(roots, lambda paths: None, config=watch_config)
        watcher.start()
        watcher.debouncer.push(["/pending"])

        watcher.stop()

        assert not watcher.is_running
        assert watcher.debouncer.pending == frozenset()
        assert not any(t.name == "mew-watcher" and t.is_alive() for t in threading.enumerate())

    def test_start_is_idempotent(self, roots: tuple[Path, Path], watch_config: MewConfig) -> None:
        watcher = Watcher(roots, lambda paths: None, config=watch_config)
        with watcher:
            watcher.start()
            assert watcher.is_running


class TestWatcherEvents:
    """Real filesystem events through watchfiles."""

    def test_change_triggers_callback(
        self, roots: tuple[Path, Path], watch_config: MewConfig,
    ) -> None:
        callback = BatchCollector()
        with Watcher(roots, callback, config=watch_config):
            target = roots[0] / "post.md"
            target.write_text("hello")

            assert callback.wait_for(lambda paths: target in paths)

    def test_burst_across_roots_coalesced(
        self, roots: tuple[Path, Path], watch_config: MewConfig,
    ) -> None:
        callback = BatchCollector()
        # Long window so the whole burst lands in one batch
        with Watcher(roots, callback, config=watch_config, debounce_ms=1000):
            written = []
            for i in range(5):
                path = roots[i % 2] / f"file{i}.txt"
                path.write_text(str(i))
                written.append(path)

            assert callback.wait_for(lambda paths: set(written) <= paths)

        assert len(callback.batches) == 1

    def test_losing_only_root_is_fatal(self, tmp_path: Path, watch_config: MewConfig) -> None:
        root = tmp_path / "only"
        root.mkdir()
        errors: list[BaseException] = []
        watcher = Watcher([root], lambda paths: None, config=watch_config, on_error=errors.append)
        watcher.start()
        try:
            shutil.rmtree(root)
            with pytest.raises(WatchError, match="No watched paths remain"):
                watcher.wait(timeout=TIMEOUT)
        finally:
            watcher.stop()

        assert errors


class TestWatchFunction:
    """watch() — blocking convenience wrapper."""

    def test_raises_when_nothing_to_watch(self, tmp_path: Path) -> None:
        with pytest.raises(WatchError):
            watch(tmp_path / "missing", lambda paths: None, on_error=lambda exc: None)
