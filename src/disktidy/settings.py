"""Generic JSON-backed settings store and the client configuration read from it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from disktidy.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "disktidy"
_SETTINGS_FILE = "settings.json"


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("scan.page_size")  # reads data["scan"]["page_size"]
        settings.set("scan.page_size", 100)  # writes + saves
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if isinstance(data, dict):
            self._data = data
        else:
            log.warning("Ignoring settings in %s: top level is not an object", self._path)

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Tunables of the scan client."""

    page_size: int = 50
    virtualize_threshold: int = 100
    idle_timeout: float = 300.0
    error_display_seconds: float = 6.0
    move_to_recycle_bin: bool = True

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ClientConfig:
        """Read the config, falling back to defaults for invalid values."""
        settings = settings or Settings.instance()
        defaults = cls()
        return cls(
            page_size=_read(settings, "scan.page_size", int, defaults.page_size, minimum=1),
            virtualize_threshold=_read(
                settings, "scan.virtualize_threshold", int, defaults.virtualize_threshold, minimum=0
            ),
            idle_timeout=_read(settings, "scan.idle_timeout", float, defaults.idle_timeout, minimum=0),
            error_display_seconds=_read(
                settings, "ui.error_display_seconds", float, defaults.error_display_seconds, minimum=0
            ),
            move_to_recycle_bin=_read(settings, "clean.move_to_recycle_bin", bool, defaults.move_to_recycle_bin),
        )


def _read(settings: Settings, key: str, kind: type, default: Any, minimum: float | None = None) -> Any:
    value = settings.get(key)
    if value is None:
        return default
    # bool is an int subclass; accept it only where a bool is wanted
    if isinstance(value, bool) != (kind is bool) or not isinstance(value, (int, float, bool)):
        log.warning("Invalid value for %s: %r, using %r", key, value, default)
        return default
    value = kind(value)
    if minimum is not None and value < minimum:
        log.warning("Value for %s below %s: %r, using %r", key, minimum, value, default)
        return default
    return value
