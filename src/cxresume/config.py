"""User configuration.

Settings live in ``$XDG_CONFIG_HOME/cxresume/config.json`` (``~/.config``
when the variable is unset). Precedence: CLI overrides > config file >
defaults. A missing file is normal; an unreadable one is reported through
``load_error`` and otherwise ignored.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from cxresume.errors import ConfigError

CONFIG_FILE_NAME = "config.json"


def config_path() -> str:
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(xdg, "cxresume", CONFIG_FILE_NAME)


def _defaults() -> dict[str, Any]:
    return {
        "codexCmd": "codex",
        "logsRoot": os.path.join(os.path.expanduser("~"), ".codex", "sessions"),
        "preview": False,
        "pageSize": 30,
        "hide": [],
    }


def deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge *overrides* into *base*; nested dicts merge, ``None`` is skipped."""
    result = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_from_file(path: str) -> tuple[dict[str, Any], ConfigError | None]:
    if not os.path.exists(path):
        return {}, None
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return {}, ConfigError(f"Could not read {path}: {e}")
    if not isinstance(data, dict):
        return {}, ConfigError(f"{path}: expected a JSON object")
    return data, None


class SettingsManager:
    """Merged view of defaults, the config file and CLI overrides.

    Use ``create`` (file-backed) or ``in_memory`` (tests).
    """

    def __init__(
        self,
        *,
        settings_path: str | None,
        file_settings: dict[str, Any],
        load_error: ConfigError | None = None,
    ) -> None:
        self._settings_path = settings_path
        self._file_settings = dict(file_settings)
        self._load_error = load_error
        self._settings = deep_merge(_defaults(), self._file_settings)

    @classmethod
    def create(cls, path: str | None = None) -> SettingsManager:
        settings_path = path or config_path()
        settings, error = _load_from_file(settings_path)
        return cls(settings_path=settings_path, file_settings=settings, load_error=error)

    @classmethod
    def in_memory(cls, settings: dict[str, Any] | None = None) -> SettingsManager:
        return cls(settings_path=None, file_settings=settings or {})

    @property
    def settings(self) -> dict[str, Any]:
        return self._settings

    @property
    def settings_path(self) -> str | None:
        return self._settings_path

    @property
    def load_error(self) -> ConfigError | None:
        return self._load_error

    def apply_overrides(self, overrides: dict[str, Any]) -> None:
        self._settings = deep_merge(self._settings, overrides)

    # --- Getters ---

    def get_codex_cmd(self) -> str:
        return str(self._settings.get("codexCmd") or "codex")

    def get_logs_root(self) -> str:
        return os.path.expanduser(str(self._settings["logsRoot"]))

    def get_preview(self) -> bool:
        return bool(self._settings.get("preview"))

    def get_page_size(self) -> int:
        try:
            size = int(self._settings.get("pageSize") or 30)
        except (TypeError, ValueError):
            return 30
        return max(1, size)

    def get_hidden_roles(self) -> list[str]:
        hide = self._settings.get("hide") or []
        if isinstance(hide, str):
            return [hide]
        return [str(h) for h in hide]


def resolve_logs_root(root: str) -> str:
    """*root* if it exists, else the legacy singular ``session`` directory if that does."""
    if os.path.exists(root):
        return root
    trimmed = root.rstrip(os.sep)
    if trimmed.endswith("sessions"):
        legacy = trimmed[: -len("sessions")] + "session"
        if os.path.exists(legacy):
            return legacy
    return root
