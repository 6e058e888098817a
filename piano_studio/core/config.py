"""Configuration persistence using JSON format.

Settings are stored at ~/.piano_studio/config.json. Only values that affect
capture and export live here: tempo, time signature, MIDI port and output
directory.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from .constants import DEFAULT_BEAT_UNIT, DEFAULT_BEATS_PER_MEASURE, DEFAULT_BPM

log = logging.getLogger(__name__)

# Default configuration schema
DEFAULT_CONFIG = {
    "version": "1.0",
    "tempo": {
        "bpm": DEFAULT_BPM,
        "beats_per_measure": DEFAULT_BEATS_PER_MEASURE,
        "beat_unit": DEFAULT_BEAT_UNIT,
    },
    "midi": {
        "last_port": "",
        "auto_connect": True,
    },
    "recording": {
        "output_dir": "",  # empty = current directory
    },
}


class ConfigManager:
    """Manages user configuration with JSON persistence."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            config_dir: Custom config directory. If None, uses ~/.piano_studio/
        """
        if config_dir is None:
            config_dir = Path.home() / ".piano_studio"
        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"
        self._config: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load config from disk or create default."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.warning("Cannot create config directory %s: %s", self.config_dir, e)

        if self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("config root must be an object")
                self._config = self._merge_defaults(loaded)
            except (json.JSONDecodeError, OSError, ValueError) as e:
                log.warning("Failed to load config: %s. Using defaults.", e)
                self._config = copy.deepcopy(DEFAULT_CONFIG)
        else:
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save()

    def _merge_defaults(self, loaded: dict) -> dict:
        """Recursively merge loaded config with defaults."""
        def deep_merge(base: dict, override: dict) -> dict:
            merged = copy.deepcopy(base)
            for key, value in override.items():
                if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                    merged[key] = deep_merge(merged[key], value)
                else:
                    merged[key] = value
            return merged

        return deep_merge(DEFAULT_CONFIG, loaded)

    def _save(self) -> None:
        """Write config to disk."""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
        except OSError as e:
            log.warning("Failed to save config: %s", e)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value using dot notation.

        Example:
            config.get("tempo.bpm")
            config.get("midi.auto_connect", True)
        """
        value = self._config
        for key in key_path.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(key)
            if value is None:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set config value using dot notation and save.

        Example:
            config.set("tempo.bpm", 96)
            config.set("midi.last_port", "Roland FP-30X")
        """
        self.update({key_path: value})

    def update(self, values: dict[str, Any]) -> None:
        """Set several dot-path keys with a single write."""
        for key_path, value in values.items():
            keys = key_path.split(".")
            target = self._config
            for key in keys[:-1]:
                if key not in target or not isinstance(target[key], dict):
                    target[key] = {}
                target = target[key]
            target[keys[-1]] = value
        self._save()

    def get_all(self) -> dict[str, Any]:
        """Get entire config dictionary (for debugging)."""
        return copy.deepcopy(self._config)

    def reset(self) -> None:
        """Reset config to defaults."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._save()


# Global singleton instance
_global_config: ConfigManager | None = None


def get_config() -> ConfigManager:
    """Get global config instance (singleton pattern)."""
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager()
    return _global_config
