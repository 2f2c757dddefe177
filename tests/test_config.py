"""Tests for cxresume.config -- layered settings."""

from __future__ import annotations

import json
import os

from cxresume.config import (
    SettingsManager,
    config_path,
    deep_merge,
    resolve_logs_root,
)


class TestConfigPath:
    def test_uses_xdg_config_home(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert config_path() == os.path.join(str(tmp_path), "cxresume", "config.json")

    def test_falls_back_to_dot_config(self, monkeypatch, tmp_path) -> None:
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert config_path() == os.path.join(str(tmp_path), ".config", "cxresume", "config.json")


def test_deep_merge_skips_none_and_merges_dicts() -> None:
    base = {"a": 1, "nested": {"x": 1, "y": 2}}
    merged = deep_merge(base, {"a": None, "nested": {"y": 3}, "b": 2})
    assert merged == {"a": 1, "nested": {"x": 1, "y": 3}, "b": 2}
    assert base["nested"] == {"x": 1, "y": 2}


class TestSettingsManager:
    def test_defaults(self) -> None:
        settings = SettingsManager.in_memory()
        assert settings.get_codex_cmd() == "codex"
        assert settings.get_logs_root().endswith(os.path.join(".codex", "sessions"))
        assert settings.get_preview() is False
        assert settings.get_page_size() == 30
        assert settings.get_hidden_roles() == []

    def test_file_values_override_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"codexCmd": "codex --full-auto", "hide": "tool", "pageSize": 10}))
        settings = SettingsManager.create(str(path))
        assert settings.load_error is None
        assert settings.settings_path == str(path)
        assert settings.get_codex_cmd() == "codex --full-auto"
        assert settings.get_hidden_roles() == ["tool"]
        assert settings.get_page_size() == 10

    def test_cli_overrides_win(self, tmp_path) -> None:
        settings = SettingsManager.in_memory({"codexCmd": "from-file", "logsRoot": "/file"})
        settings.apply_overrides({"codexCmd": "from-cli", "logsRoot": None})
        assert settings.get_codex_cmd() == "from-cli"
        assert settings.get_logs_root() == "/file"

    def test_missing_file_is_not_an_error(self, tmp_path) -> None:
        settings = SettingsManager.create(str(tmp_path / "absent.json"))
        assert settings.load_error is None
        assert settings.get_codex_cmd() == "codex"

    def test_broken_file_reports_error_and_uses_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        settings = SettingsManager.create(str(path))
        assert settings.load_error is not None
        assert str(path) in str(settings.load_error)
        assert settings.get_codex_cmd() == "codex"

    def test_non_object_file_is_rejected(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert SettingsManager.create(str(path)).load_error is not None

    def test_bad_page_size_falls_back(self) -> None:
        assert SettingsManager.in_memory({"pageSize": "many"}).get_page_size() == 30
        assert SettingsManager.in_memory({"pageSize": -4}).get_page_size() == 1

    def test_logs_root_expands_user(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        settings = SettingsManager.in_memory({"logsRoot": "~/logs"})
        assert settings.get_logs_root() == os.path.join(str(tmp_path), "logs")


class TestResolveLogsRoot:
    def test_existing_root_is_kept(self, tmp_path) -> None:
        root = tmp_path / "sessions"
        root.mkdir()
        assert resolve_logs_root(str(root)) == str(root)

    def test_legacy_singular_directory(self, tmp_path) -> None:
        legacy = tmp_path / "session"
        legacy.mkdir()
        assert resolve_logs_root(str(tmp_path / "sessions")) == str(legacy)

    def test_nothing_exists(self, tmp_path) -> None:
        missing = str(tmp_path / "sessions")
        assert resolve_logs_root(missing) == missing
