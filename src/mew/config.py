"""Mew configuration.

MewConfig is the central configuration object, frozen after creation.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from mew._errors import ConfigError


@dataclass(frozen=True, slots=True)
class MewConfig:
    """Configuration shared by the build pipeline, cache, and watcher.

    Attributes:
        root: Project root directory. Always resolved to an absolute path on
              construction.
        workers: Render worker pool size (0 = one per available CPU).
        debounce_ms: Quiet period after the last filesystem event before the
            rebuild callback fires.
        step_ms: How often the watcher polls for raw filesystem events.
        cache_dir: Directory holding compilation cache records, relative to
            root unless absolute.
        cache_enabled: When False the compilation cache always misses.

    """

    root: Path = field(default_factory=Path.cwd)
    workers: int = 0
    debounce_ms: int = 300
    step_ms: int = 50
    cache_dir: Path = field(default_factory=lambda: Path(".mew-cache"))
    cache_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if self.workers < 0:
            msg = f"workers must be >= 0, got {self.workers}"
            raise ConfigError(msg)
        if self.debounce_ms < 0:
            msg = f"debounce_ms must be >= 0, got {self.debounce_ms}"
            raise ConfigError(msg)
        if self.step_ms <= 0:
            msg = f"step_ms must be > 0, got {self.step_ms}"
            raise ConfigError(msg)

    @property
    def worker_count(self) -> int:
        """Effective render pool size."""
        if self.workers:
            return self.workers
        return os.cpu_count() or 1

    @property
    def cache_path(self) -> Path:
        """Absolute path to the compilation cache directory."""
        if self.cache_dir.is_absolute():
            return self.cache_dir
        return self.root / self.cache_dir


_default: MewConfig | None = None


def default_config() -> MewConfig:
    """Config used when a pipeline call is not given one explicitly."""
    global _default  # noqa: PLW0603
    if _default is None:
        _default = MewConfig()
    return _default
