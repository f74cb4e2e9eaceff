"""
Settings manager for Pixel Forge
Handles saving and loading user preferences
"""

# Standard library imports
import copy
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

from .pixel_forge_constants import (
    DEFAULT_CANVAS_SIZE,
    DEFAULT_FPS,
    MAX_RECENT_FILES,
)
from .pixel_forge_utils import debug_log, sanitize_for_json


class SettingsManager:
    """Manages engine settings with JSON persistence"""

    def __init__(
        self,
        app_name: str = "pixel_forge",
        settings_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self.app_name = app_name
        self.settings_file = self._get_settings_path(settings_dir)
        self.settings = self._load_settings()

    def _get_settings_path(self, settings_dir: Optional[Union[str, Path]]) -> Path:
        """Get the settings file path, defaulting to a per-user directory"""
        if settings_dir is not None:
            directory = Path(settings_dir)
        elif os.name == "nt":  # Windows
            base = Path(os.environ.get("APPDATA", os.path.expanduser("~")))
            directory = base / self.app_name
        else:  # Linux/Mac
            directory = Path(os.path.expanduser("~")) / f".{self.app_name}"

        return directory / "settings.json"

    def _load_settings(self) -> dict[str, Any]:
        """Load settings from file, layered over the defaults"""
        settings = self._get_default_settings()
        if not self.settings_file.exists():
            return settings

        try:
            with open(self.settings_file, encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            # If file is corrupted, start fresh
            debug_log("SETTINGS", f"Ignoring unreadable settings file: {e}", "WARNING")
            return settings

        if not isinstance(stored, dict):
            debug_log("SETTINGS", "Settings file is not a JSON object", "WARNING")
            return settings

        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(settings.get(key), dict):
                settings[key].update(value)
            else:
                settings[key] = value
        return settings

    def _get_default_settings(self) -> dict[str, Any]:
        """Get default settings"""
        return copy.deepcopy(
            {
                "fps": DEFAULT_FPS,
                "tool_thickness": 1,
                "is_grid_visible": True,
                "default_canvas_width": DEFAULT_CANVAS_SIZE,
                "default_canvas_height": DEFAULT_CANVAS_SIZE,
                "last_export_dir": "",
                "recent_exports": [],
                "preferences": {
                    "max_recent_files": MAX_RECENT_FILES,
                },
            }
        )

    def save_settings(self) -> bool:
        """Save current settings to file; failures are logged, not raised"""
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(sanitize_for_json(self.settings), f, indent=2)
        except OSError as e:
            debug_log("SETTINGS", f"Could not save settings: {e}", "WARNING")
            return False
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value (dotted keys reach into nested sections)"""
        keys = key.split(".")
        value = self.settings
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a setting value and persist"""
        keys = key.split(".")
        target = self.settings
        for k in keys[:-1]:
            if not isinstance(target.get(k), dict):
                target[k] = {}
            target = target[k]
        target[keys[-1]] = value
        self.save_settings()

    def add_recent_export(self, file_path: Union[str, Path]) -> None:
        """Add an exported file to the front of the recent list"""
        # Ensure file_path is a string (not Path object) for JSON serialization
        file_path = str(file_path)

        recent = [p for p in self.settings.get("recent_exports", []) if p != file_path]
        recent.insert(0, file_path)

        max_recent = self.get("preferences.max_recent_files", MAX_RECENT_FILES)
        self.settings["recent_exports"] = recent[:max_recent]
        self.settings["last_export_dir"] = str(Path(file_path).parent)

        self.save_settings()

    def get_recent_exports(self) -> list[str]:
        return list(self.settings.get("recent_exports", []))
