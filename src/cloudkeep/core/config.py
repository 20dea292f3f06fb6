"""Configuration loader for cloudkeep."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "home": "~/cloudkeep",
    "log_level": "warning",
    "storage": {
        "base_url": "",
        # Folder-like prefix prepended to every object name on the store
        "namespace": "ClassTools",
        "token": "keyring",
        "chunk_size": 65536,
        # No client-side timeout unless configured
        "timeout": None,
        "streaming": True,
    },
    "transfer": {
        "settle_delay_seconds": 0.6,
    },
}


def resolve_home() -> Path:
    """Resolve CK_HOME: env var > default ~/cloudkeep."""
    env_home = os.environ.get("CK_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/cloudkeep").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / ".ck" / "config.yaml"


def settings_path(home: Path | None = None) -> Path:
    """Return the path to the application settings file."""
    if home is None:
        home = resolve_home()
    return home / ".ck" / "settings.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except Exception:
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)

    if not isinstance(user_config, dict):
        log.warning("Config at %s is not a mapping, using defaults", path)
        user_config = {}

    merged = _deep_merge(DEFAULTS, user_config)

    home_str = os.environ.get("CK_HOME") or merged.get("home", "~/cloudkeep")
    merged["home"] = str(Path(home_str).expanduser().resolve())

    return merged


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
