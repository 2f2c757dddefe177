"""Tests for cxresume.picker.view -- screen composition."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.state import DeleteConfirmModal, NoticeModal, PickerState
from cxresume.picker.view import (
    abbreviate_home,
    frame,
    help_line,
    list_item_lines,
    page_info,
    relative_age,
    render_picker,
    render_preview,
)
from cxresume.tui.text import strip_ansi, visible_width
from cxresume.types import SessionMeta, SessionSummary

from .conftest import NOW, make_ref


def abc() -> PickerState:
    return PickerState(
        visible_files=(make_ref("A"), make_ref("B", 1), make_ref("C", 2)),
        columns=100,
    )


class TestRelativeAge:
    def test_units(self) -> None:
        cases = [
            (timedelta(seconds=30), "30s ago"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(days=2), "2d ago"),
            (timedelta(days=14), "2w ago"),
            (timedelta(days=60), "2mo ago"),
            (timedelta(days=400), "1y ago"),
        ]
        for delta, expected in cases:
            assert relative_age(NOW - delta, NOW) == expected

    def test_future_is_zero(self) -> None:
        assert relative_age(NOW + timedelta(minutes=1), NOW) == "0s ago"


class TestAbbreviateHome:
    def test_inside_home(self) -> None:
        assert abbreviate_home("/home/me/proj", "/home/me") == "~/proj"

    def test_home_itself(self) -> None:
        assert abbreviate_home("/home/me", "/home/me") == "~"

    def test_sibling_prefix_is_not_home(self) -> None:
        assert abbreviate_home("/home/mel/x", "/home/me") == "/home/mel/x"


def test_frame_has_exact_size_and_title() -> None:
    box = frame("Title", ["body"], 12, 4)
    assert len(box) == 4
    assert all(visible_width(line) == 12 for line in box)
    assert "Title" in strip_ansi(box[0])
    assert strip_ansi(box[1]) == "│body      │"


class TestHelpAndInfo:
    def test_workspace_key_listed_only_in_workspace_mode(self) -> None:
        assert "workspace new" not in strip_ansi(help_line(abc()))
        assert "s workspace new" in strip_ansi(help_line(replace(abc(), workspace_mode=True)))

    def test_page_info(self) -> None:
        assert strip_ansi(page_info(abc())) == "Page 1/1 | Showing 3/3"

    def test_page_info_shows_extra_args(self) -> None:
        state = replace(abc(), edited_extra_args="--model o3")
        assert strip_ansi(page_info(state)).endswith("| Options: --model o3")


class TestListItem:
    def test_real_id_and_age_fill_width(self) -> None:
        ref = make_ref("A", 5)
        meta = SessionMeta(id="0199-abc", working_directory="/home/me/proj")
        lines = list_item_lines(ref, meta, SessionSummary(4, "assistant"), 30, now=NOW, home="/home/me")
        plain = [strip_ansi(line) for line in lines]
        assert plain[0].startswith("0199-abc")
        assert plain[0].endswith("5m ago")
        assert visible_width(lines[0]) == 30
        assert plain[1] == "~/proj"
        assert plain[2] == "Messages: 4 • Last: Assistant"

    def test_fallback_id_is_marked(self) -> None:
        lines = list_item_lines(make_ref("A"), None, None, 30, now=NOW)
        plain = [strip_ansi(line) for line in lines]
        assert plain[0].startswith("~A.jsonl")
        assert "\x1b[3m" in lines[0]
        assert plain[1] == "-"
        assert plain[2] == "Messages: - • Last: -"


class TestPreviewPane:
    def test_loading_placeholder(self) -> None:
        body = render_preview(abc(), PrefetchCache(), 10)
        assert strip_ansi(body[2]) == "Loading…"

    def test_tail_and_scroll(self) -> None:
        state = abc()
        cache = PrefetchCache()
        text = "\n".join(f"l{i}" for i in range(6))
        cache.put_preview(PreviewKey(state.selected.path, state.preview_width), text)

        assert render_preview(state, cache, 5)[2:] == ["l3", "l4", "l5"]
        scrolled = replace(state, preview_scroll=2)
        assert render_preview(scrolled, cache, 5)[2:] == ["l1", "l2", "l3"]

    def test_info_line_names_session(self) -> None:
        state = abc()
        cache = PrefetchCache()
        cache.put_meta(state.selected.path, SessionMeta(id="0199-abc", working_directory="/w"))
        info = strip_ansi(render_preview(state, cache, 5)[0])
        assert info.startswith("Session: 0199-abc • Path: /w • Started: ")


class TestWholeScreen:
    def test_split_layout_fills_screen(self) -> None:
        lines = render_picker(abc(), PrefetchCache(), 24, now=NOW)
        assert len(lines) == 24
        assert all(visible_width(line) <= 100 for line in lines)
        text = strip_ansi("\n".join(lines))
        assert "Recent Sessions" in text
        assert "Conversation Preview" in text
        assert "~A.jsonl" in text

    def test_full_layout_has_no_list(self) -> None:
        lines = render_picker(replace(abc(), layout="full"), PrefetchCache(), 24, now=NOW)
        text = strip_ansi("\n".join(lines))
        assert "Recent Sessions" not in text
        assert "Conversation Preview" in text

    def test_delete_modal_drawn_on_top(self) -> None:
        state = abc()
        modal = DeleteConfirmModal(target=state.selected)
        text = strip_ansi("\n".join(render_picker(replace(state, modal=modal), PrefetchCache(), 24)))
        assert "Confirm Delete" in text
        assert "ID: ~A.jsonl" in text
        assert "Yes" in text and "No" in text

    def test_pending_delete_shows_progress(self) -> None:
        state = abc()
        modal = DeleteConfirmModal(target=state.selected, pending=True)
        text = strip_ansi("\n".join(render_picker(replace(state, modal=modal), PrefetchCache(), 24)))
        assert "Deleting…" in text
        assert "Yes" not in text

    def test_delete_modal_marks_fallback_id(self) -> None:
        state = abc()
        modal = DeleteConfirmModal(target=state.selected)
        raw = "\n".join(render_picker(replace(state, modal=modal), PrefetchCache(), 24))
        line = next(l for l in raw.split("\n") if "ID: " in strip_ansi(l))
        assert "\x1b[3m~A.jsonl" in line

    def test_delete_modal_id_follows_late_metadata(self) -> None:
        state = abc()
        state = replace(state, modal=DeleteConfirmModal(target=state.selected))
        cache = PrefetchCache()
        before = strip_ansi("\n".join(render_picker(state, cache, 24)))
        assert "ID: ~A.jsonl" in before

        cache.put_meta(state.selected.path, SessionMeta(id="0199-abc", working_directory="/w"))
        after = strip_ansi("\n".join(render_picker(state, cache, 24)))
        assert "ID: 0199-abc" in after
        assert "~A.jsonl" not in after

    def test_notice_modal(self) -> None:
        state = replace(abc(), modal=NoticeModal("Delete Failed", "permission denied"))
        text = strip_ansi("\n".join(render_picker(state, PrefetchCache(), 24)))
        assert "Delete Failed" in text
        assert "permission denied" in text
