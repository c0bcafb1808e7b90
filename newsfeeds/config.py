"""Configuration loading for newsfeeds."""
import copy
from pathlib import Path

import yaml

DEFAULTS = {
    "database": {"path": "data/newsfeeds.db"},
    "search": {
        "since_days": 7,
        "min_rank": 0.1,
        "limit": 2000,
    },
    "ranking": {"half_life_hours": 48},
    "feeds": {
        "update_interval_minutes": 30,
        "initial_lookback_days": 7,
    },
    "logging": {"retention_days": 30},
}


def get_project_dir() -> Path:
    """Repository root (the directory holding config/)."""
    return Path(__file__).parent.parent


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> dict:
    """Load config.yaml over the built-in defaults.

    A missing file means defaults only.
    """
    if config_path is None:
        config_path = get_project_dir() / "config" / "config.yaml"
    if not config_path.exists():
        return copy.deepcopy(DEFAULTS)
    with open(config_path) as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{config_path} must contain a mapping")
    return _merge(DEFAULTS, loaded)


def get_db_path(config: dict) -> Path:
    """Database path, relative paths resolved against the project dir."""
    path = Path(config["database"]["path"]).expanduser()
    if not path.is_absolute():
        path = get_project_dir() / path
    return path
