"""Shared test fixtures for mew."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from mew.config import MewConfig
from mew.observability import BuildCollector


@pytest.fixture
def tmp_site(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a minimal site and make it the working directory.

    Layout::

        content/post1.md      valid
        content/post2.md      valid
        static/style.css
        static/img/logo.png
    """
    content = tmp_path / "content"
    content.mkdir()
    (content / "post1.md").write_text(
        "---\ntitle: First\ndate: 2024-01-01\n---\n\n# First\n\nHello.\n"
    )
    (content / "post2.md").write_text(
        "---\ntitle: Second\ndate: 2024-02-01\n---\n\n# Second\n\nWorld.\n"
    )

    static = tmp_path / "static"
    (static / "img").mkdir(parents=True)
    (static / "style.css").write_text("body { margin: 0; }\n")
    (static / "img" / "logo.png").write_bytes(b"\x89PNG\r\n")

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config(tmp_path: Path) -> MewConfig:
    """A MewConfig rooted at a temp directory, with a small worker pool."""
    return MewConfig(root=tmp_path, workers=4)


@pytest.fixture
def collector() -> BuildCollector:
    return BuildCollector()


class FakeTimer:
    """Stands in for ``threading.Timer``; fires only when told to."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Simulate the interval elapsing (even if cancelled, like a late thread)."""
        self.function()


class FakeTimers:
    """Timer factory that records every timer it creates."""

    def __init__(self) -> None:
        self.created: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.created[-1]

    @property
    def armed(self) -> list[FakeTimer]:
        return [t for t in self.created if t.started and not t.cancelled]


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()
