"""Application settings store — YAML-backed key/value record with change signals.

Keys are dotted paths into the nested record (``upgrade.autoDownloadUpdate``).
Every successful ``set()`` persists the whole record and then fires the
``sync-config`` signal with the changed key.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Callable

import yaml

from cloudkeep.core.config import _deep_merge
from cloudkeep.core.signals import Disposer, SignalBus

log = logging.getLogger(__name__)

SYNC_SIGNAL = "sync-config"

DEFAULT_SETTINGS: dict = {
    "upgrade": {
        "autoDownloadUpdate": True,
    },
}

_MISSING = object()


class SettingsWriteError(Exception):
    """Raised when a setting cannot be written."""


class SettingsStore:
    """Process-level settings store persisted to settings.yaml."""

    def __init__(self, path: Path, defaults: dict | None = None) -> None:
        self.path = path
        self._defaults = DEFAULT_SETTINGS if defaults is None else defaults
        self._bus = SignalBus()
        self._data = self._load()

    def _load(self) -> dict:
        user_data: dict = {}
        if self.path.exists():
            try:
                user_data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
            except Exception:
                log.warning("Failed to read settings at %s, using defaults", self.path, exc_info=True)
                user_data = {}
        if not isinstance(user_data, dict):
            log.warning("Settings at %s are not a mapping, using defaults", self.path)
            user_data = {}
        return _deep_merge(self._defaults, user_data)

    def get_all(self) -> dict:
        """Return a deep copy of the full settings record."""
        return copy.deepcopy(self._data)

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a dotted key. Returns default when any segment is missing."""
        node: Any = self._data
        for part in name.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return copy.deepcopy(node)

    def set(self, name: str, value: Any) -> None:
        """Write a dotted key, persist, and notify subscribers.

        Raises:
            SettingsWriteError: Empty key, a non-mapping parent on the path,
                or the file could not be written.
        """
        parts = name.split(".")
        if not all(parts):
            raise SettingsWriteError(f"Invalid setting name: {name!r}")

        updated = copy.deepcopy(self._data)
        node = updated
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise SettingsWriteError(
                    f"Cannot set {name!r}: {part!r} is not a mapping"
                )
            node = child
        node[parts[-1]] = copy.deepcopy(value)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                yaml.safe_dump(updated, allow_unicode=True, sort_keys=False),
                encoding="utf-8",
            )
        except (OSError, yaml.YAMLError) as e:
            raise SettingsWriteError(f"Cannot write {self.path}: {e}") from e

        self._data = updated
        log.debug("Setting %s updated", name)
        self._bus.emit(SYNC_SIGNAL, name)

    def subscribe(self, callback: Callable[[str], None]) -> Disposer:
        """Call callback(name) whenever a setting changes. Returns a disposer."""
        return self._bus.on(SYNC_SIGNAL, callback)

    def reload(self) -> None:
        """Re-read the file (external edit) and notify subscribers of top-level keys."""
        previous = self._data
        self._data = self._load()
        for key in sorted(set(previous) | set(self._data)):
            if previous.get(key, _MISSING) != self._data.get(key, _MISSING):
                self._bus.emit(SYNC_SIGNAL, key)
