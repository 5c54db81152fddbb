"""Tests for mew.config and mew.config_loader."""

from pathlib import Path

import pytest

from mew._errors import ConfigError
from mew.config import MewConfig, default_config
from mew.config_loader import load_config


class TestMewConfig:
    """MewConfig — frozen dataclass with sensible defaults."""

    def test_defaults(self) -> None:
        config = MewConfig()
        assert config.workers == 0
        assert config.debounce_ms == 300
        assert config.step_ms == 50
        assert config.cache_dir == Path(".mew-cache")
        assert config.cache_enabled is True

    def test_frozen(self) -> None:
        config = MewConfig()
        with pytest.raises(AttributeError):
            config.workers = 8  # type: ignore[misc]

    def test_root_resolved(self) -> None:
        config = MewConfig(root=Path("relative"))
        assert config.root.is_absolute()

    def test_cache_path_relative_to_root(self, tmp_path: Path) -> None:
        config = MewConfig(root=tmp_path)
        assert config.cache_path == tmp_path / ".mew-cache"

    def test_absolute_cache_dir_preserved(self, tmp_path: Path) -> None:
        cache = tmp_path / "elsewhere"
        config = MewConfig(root=tmp_path / "site", cache_dir=cache)
        assert config.cache_path == cache

    def test_worker_count(self) -> None:
        assert MewConfig(workers=3).worker_count == 3
        assert MewConfig().worker_count >= 1

    def test_negative_workers_rejected(self) -> None:
        with pytest.raises(ConfigError, match="workers"):
            MewConfig(workers=-1)

    def test_negative_debounce_rejected(self) -> None:
        with pytest.raises(ConfigError, match="debounce_ms"):
            MewConfig(debounce_ms=-5)

    def test_zero_step_rejected(self) -> None:
        with pytest.raises(ConfigError, match="step_ms"):
            MewConfig(step_ms=0)

    def test_default_config_is_shared(self) -> None:
        assert default_config() is default_config()


class TestLoadConfig:
    """load_config — file config merged with overrides."""

    def test_no_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root == tmp_path
        assert config.workers == 0

    def test_yaml_section(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text(
            "mew:\n  workers: 6\n  debounce_ms: 100\n  cache_dir: build/cache\n"
        )
        config = load_config(tmp_path)
        assert config.workers == 6
        assert config.debounce_ms == 100
        assert config.cache_path == tmp_path / "build" / "cache"

    def test_yaml_top_level_keys(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yml").write_text("cache_enabled: false\nunrelated: 1\n")
        config = load_config(tmp_path)
        assert config.cache_enabled is False

    def test_toml(self, tmp_path: Path) -> None:
        (tmp_path / "mew.toml").write_text("[mew]\nstep_ms = 25\n")
        config = load_config(tmp_path)
        assert config.step_ms == 25

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text("workers: 2\n")
        (tmp_path / "mew.toml").write_text("workers = 9\n")
        assert load_config(tmp_path).workers == 2

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text("workers: 2\n")
        assert load_config(tmp_path, workers=12).workers == 12

    def test_invalid_yaml_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text("workers: [unclosed\n")
        assert load_config(tmp_path).workers == 0

    def test_non_mapping_yaml_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text("- just\n- a list\n")
        assert load_config(tmp_path).workers == 0

    def test_invalid_toml_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "mew.toml").write_text("workers = = 3\n")
        assert load_config(tmp_path).workers == 0

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        (tmp_path / "mew.yaml").write_text("workers: -3\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)
