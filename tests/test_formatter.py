"""Tests for cxresume.picker.formatter -- block-style dialog previews."""

from __future__ import annotations

from datetime import datetime, timezone

from cxresume.picker.formatter import (
    MARKER,
    MIN_WRAP_WIDTH,
    PLAIN_THEME,
    format_preview,
    role_label,
)
from cxresume.tui.text import strip_ansi, visible_width
from cxresume.types import DialogTurn

TURNS = [
    DialogTurn("user", "please rename the configuration loader and its tests"),
    DialogTurn("tool", "$ rg load_config\nsrc/config.py:12"),
    DialogTurn("assistant", "Done.\n\tRenamed load_config -> read_settings across 4 files. 世界世界世界"),
]


def _plain(turns, **kwargs) -> list[str]:
    return strip_ansi(format_preview(turns, **kwargs)).split("\n")


class TestWrapping:
    def test_no_line_exceeds_wrap_width(self) -> None:
        out = format_preview(TURNS, frozenset({"tool"}), 20)
        for line in out.split("\n"):
            assert visible_width(line) <= 20

    def test_hidden_role_produces_no_lines(self) -> None:
        lines = _plain(TURNS, hidden_roles={"tool"}, wrap_width=20)
        assert not any("rg load_config" in line or "src/config" in line for line in lines)
        assert not any(line.startswith(MARKER + "Tool") for line in lines)

    def test_long_header_is_truncated(self) -> None:
        turn = DialogTurn("a-very-long-custom-role-name", "x")
        for line in format_preview([turn], wrap_width=10).split("\n"):
            assert visible_width(line) <= 10

    def test_tiny_width_is_raised_to_minimum(self) -> None:
        for line in format_preview([DialogTurn("user", "abcdef")], wrap_width=1).split("\n"):
            assert visible_width(line) <= MIN_WRAP_WIDTH

    def test_unwrapped_without_width(self) -> None:
        text = "x" * 300
        lines = _plain([DialogTurn("user", text)])
        assert lines[1] == MARKER + text


class TestLayout:
    def test_hello_world_scenario(self) -> None:
        lines = _plain([DialogTurn("user", "hello\nworld")])
        assert lines == [MARKER + "User", MARKER + "hello", MARKER + "world", ""]

    def test_header_carries_time(self) -> None:
        stamp = datetime(2025, 3, 1, 14, 2, 11)
        lines = _plain([DialogTurn("assistant", "ok", stamp)])
        assert lines[0] == MARKER + "AI 14:02:11"

    def test_every_turn_is_followed_by_blank_line(self) -> None:
        lines = _plain([DialogTurn("user", "a"), DialogTurn("assistant", "b")])
        assert lines == [MARKER + "User", MARKER + "a", "", MARKER + "AI", MARKER + "b", ""]

    def test_every_visual_line_has_marker(self) -> None:
        lines = _plain(TURNS, wrap_width=16)
        assert all(line.startswith(MARKER) for line in lines if line)

    def test_control_characters_are_removed(self) -> None:
        lines = _plain([DialogTurn("user", "a\r\x1b[31mb\x07")])
        assert lines[1] == MARKER + "ab"

    def test_empty_turn_list(self) -> None:
        assert format_preview([]) == ""

    def test_plain_theme_has_no_escapes(self) -> None:
        out = format_preview(TURNS, theme=PLAIN_THEME)
        assert "\x1b" not in out


class TestDeterminism:
    def test_identical_inputs_give_identical_output(self) -> None:
        stamp = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        turns = [DialogTurn("user", "hi", stamp), *TURNS]
        first = format_preview(turns, frozenset({"tool"}), 30)
        second = format_preview(list(turns), {"tool"}, 30)
        assert first == second


def test_role_labels() -> None:
    assert role_label("user") == "User"
    assert role_label("assistant") == "AI"
    assert role_label("system") == "System"
