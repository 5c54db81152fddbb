"""Load MewConfig from mew.yaml if present.

Merges file config with keyword overrides. Overrides take precedence.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from mew.config import MewConfig

_KNOWN_KEYS = frozenset({
    "workers", "debounce_ms", "step_ms", "cache_dir", "cache_enabled",
})


def load_config(root: Path, **overrides: object) -> MewConfig:
    """Load MewConfig from root, optionally merging mew.yaml.

    Looks for mew.yaml, mew.yml, or mew.toml in root. If found, loads
    and merges with overrides. Overrides take precedence.
    """
    file_config = _read_mew_config(root)
    merged = {**file_config, **overrides}
    if "cache_dir" in merged and not isinstance(merged["cache_dir"], Path):
        merged["cache_dir"] = Path(str(merged["cache_dir"]))
    return MewConfig(root=root, **merged)


def _read_mew_config(root: Path) -> dict[str, object]:
    """Read mew config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("mew.yaml", "mew.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "mew.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config. Returns empty dict on error."""
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return _flatten_mew_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config. Returns empty dict on error."""
    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return _flatten_mew_section(data)


def _flatten_mew_section(data: dict[str, object]) -> dict[str, object]:
    """Extract mew.* keys into top-level config, dropping unknown keys."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    mew = data.get("mew")
    if isinstance(mew, dict):
        for k, v in mew.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    return result
