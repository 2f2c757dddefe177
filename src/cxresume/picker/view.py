"""Turn a ``PickerState`` plus the caches into screen lines.

The split layout is a bordered session list on the left and a bordered
conversation preview on the right, under a one-line key help bar. The full
layout drops the list. Modals are drawn as centred boxes on top.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime, timezone

from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.formatter import rgb
from cxresume.picker.state import (
    PANE_GAP,
    DeleteConfirmModal,
    EditOptionsModal,
    NoticeModal,
    PickerState,
    list_pane_width,
    preview_pane_width,
)
from cxresume.tui.screen import composite
from cxresume.tui.text import hard_wrap, sanitize, truncate_to_width, visible_width
from cxresume.types import SessionFileRef, SessionMeta, SessionSummary, resolve_session_id

Style = Callable[[str], str]

GRAY = rgb(0x80, 0x80, 0x80)
GREEN = rgb(0x5A, 0xF7, 0x8E)
YELLOW = rgb(0xF3, 0xF9, 0x9D)
ORANGE = rgb(0xFF, 0x95, 0x00)
RED = rgb(0xFF, 0x6A, 0xC1)
PURPLE = rgb(0xBF, 0x5A, 0xF2)
BLUE = rgb(0x6A, 0xC8, 0xFF)
CYAN = rgb(0x5F, 0xBE, 0xAA)

ITEM_HEIGHT = 3
ITEM_GAP = 1

_SEP = GRAY(" • ")


def _italic(text: str) -> str:
    return f"\x1b[3m{text}\x1b[23m"


def _selected_row(text: str) -> str:
    return f"\x1b[44;1m{text}\x1b[22;49m"


def _button(text: str, bg: int) -> str:
    return f"\x1b[{bg};30;1m{text}\x1b[22;39;49m"


# ---------------------------------------------------------------------------
# Small formatting helpers
# ---------------------------------------------------------------------------


def relative_age(then: datetime, now: datetime | None = None) -> str:
    """``42s ago``, ``5m ago``, ``3d ago``, ``2w ago``, ``4mo ago``, ``1y ago``."""
    if now is None:
        now = datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.astimezone()
    if now.tzinfo is None:
        now = now.astimezone()
    seconds = max(0, int((now - then).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    if days < 28:
        return f"{days // 7}w ago"
    if days < 360:
        return f"{max(1, days // 30)}mo ago"
    return f"{max(1, days // 365)}y ago"


def abbreviate_home(path: str, home: str | None = None) -> str:
    home = home if home is not None else os.path.expanduser("~")
    if home and (path == home or path.startswith(home.rstrip("/") + "/")):
        return "~" + path[len(home.rstrip("/")) :]
    return path


def _styled_id(ref: SessionFileRef, meta: SessionMeta | None) -> tuple[str, int]:
    sid = resolve_session_id(ref, meta)
    if sid.is_fallback:
        text = "~" + sid.value
        return GRAY(_italic(text)), visible_width(text)
    return ORANGE(sid.value), visible_width(sid.value)


def _styled_path(cwd: str | None, home: str | None) -> str:
    if not cwd:
        return GRAY("-")
    short = abbreviate_home(cwd, home)
    if short.startswith("~/"):
        return PURPLE("~/") + CYAN(short[2:])
    return CYAN(short)


def _styled_role(summary: SessionSummary | None) -> str:
    role = summary.last_role if summary else None
    if role == "assistant":
        return GREEN("Assistant")
    if role == "user":
        return RED("User")
    if role:
        return GRAY(role.capitalize())
    return GRAY("-")


# ---------------------------------------------------------------------------
# Boxes
# ---------------------------------------------------------------------------


def frame(title: str, body: list[str], width: int, height: int, border: Style = GRAY) -> list[str]:
    """A box of exactly *width* x *height* with *title* in the top border."""
    if width < 2 or height < 2:
        return [" " * max(0, width)] * max(0, height)
    inner = width - 2
    label = truncate_to_width(f" {title} ", max(0, inner - 2), "") if title else ""
    top = border("┌─") + GREEN(label) + border("─" * max(0, inner - 1 - visible_width(label)) + "┐")
    if inner < 2:
        top = border("┌" + "─" * inner + "┐")
    lines = [top]
    for row in range(height - 2):
        text = body[row] if row < len(body) else ""
        lines.append(border("│") + truncate_to_width(text, inner, "", pad=True) + border("│"))
    lines.append(border("└" + "─" * inner + "┘"))
    return lines


# ---------------------------------------------------------------------------
# Panes
# ---------------------------------------------------------------------------


def help_line(state: PickerState) -> str:
    def key(k: str, label: str) -> str:
        return YELLOW(k) + " " + label

    parts = [
        key("↑/↓", "navigate"),
        key("Enter", "resume"),
        key("←/→", "pages"),
        key("j/k", "scroll"),
    ]
    if state.workspace_mode:
        parts.append(key("s", "workspace new"))
    parts += [
        key("n", "new"),
        key("d", "delete"),
        key("-", "edit options"),
        key("c", "copy ID"),
        key("f", "full"),
        key("q", "quit"),
    ]
    return GRAY("Usage: ") + _SEP.join(parts)


def page_info(state: PickerState) -> str:
    info = (
        f"Page {state.current_page + 1}/{state.page_count} | "
        f"Showing {len(state.page_items)}/{len(state.visible_files)}"
    )
    if state.edited_extra_args:
        info += f" | Options: {state.edited_extra_args}"
    return GRAY(info)


def list_item_lines(
    ref: SessionFileRef,
    meta: SessionMeta | None,
    summary: SessionSummary | None,
    width: int,
    *,
    now: datetime | None = None,
    home: str | None = None,
) -> list[str]:
    """The three display lines of one session row."""
    styled_id, id_width = _styled_id(ref, meta)
    started = meta.started_at if meta and meta.started_at else ref.modified_at
    age = relative_age(started, now)
    pad = max(1, width - id_width - visible_width(age))
    line1 = styled_id + " " * pad + GRAY(age)

    line2 = _styled_path(meta.working_directory if meta else None, home)

    count = str(summary.turn_count) if summary else "-"
    line3 = GRAY("Messages: ") + YELLOW(count) + _SEP + GRAY("Last: ") + _styled_role(summary)
    return [line1, line2, line3]


def render_list(
    state: PickerState,
    cache: PrefetchCache,
    width: int,
    height: int,
    *,
    now: datetime | None = None,
    home: str | None = None,
) -> list[str]:
    """Body lines of the list pane: page info, a gap, then the rows."""
    rows_height = max(0, height - 2)
    block = ITEM_HEIGHT + ITEM_GAP
    body: list[str] = []
    for index, ref in enumerate(state.page_items):
        lines = list_item_lines(
            ref,
            cache.get_meta(ref.path),
            cache.get_summary(ref.path),
            width - 2,
            now=now,
            home=home,
        )
        for line in lines:
            text = " " + truncate_to_width(line, width - 2, "…", pad=True) + " "
            body.append(_selected_row(text) if index == state.selected_index else text)
        body.extend([""] * ITEM_GAP)

    # Scroll just enough to keep the selected block fully visible
    bottom = state.selected_index * block + ITEM_HEIGHT
    offset = max(0, bottom - rows_height)
    return [" " + page_info(state), ""] + body[offset : offset + rows_height]


def info_line(ref: SessionFileRef | None, meta: SessionMeta | None, home: str | None = None) -> str:
    if ref is None:
        return ""
    styled_id, _ = _styled_id(ref, meta)
    started = ""
    if meta and meta.started_at:
        started = meta.started_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    return (
        GRAY("Session: ")
        + styled_id
        + _SEP
        + GRAY("Path: ")
        + _styled_path(meta.working_directory if meta else None, home)
        + _SEP
        + GRAY("Started: ")
        + (YELLOW(started) if started else GRAY("-"))
    )


def render_preview(
    state: PickerState,
    cache: PrefetchCache,
    height: int,
    *,
    home: str | None = None,
) -> list[str]:
    """Body lines of the preview pane, showing the tail minus the scroll offset."""
    ref = state.selected
    if ref is None:
        return ["", "", GRAY("No session selected")]
    meta = cache.get_meta(ref.path)
    text = cache.get_preview(PreviewKey(ref.path, state.preview_width))
    view_height = max(0, height - 2)
    if text is None:
        body = [GRAY("Loading…")]
    else:
        lines = text.split("\n")
        end = max(0, len(lines) - state.preview_scroll)
        body = lines[max(0, end - view_height) : end]
    return [info_line(ref, meta, home), ""] + body


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------


def _wrapped(text: str, width: int) -> list[str]:
    out: list[str] = []
    for raw in sanitize(text).split("\n"):
        out.extend(hard_wrap(raw, max(1, width)))
    return out


def delete_modal(
    modal: DeleteConfirmModal, columns: int, meta: SessionMeta | None = None
) -> list[str]:
    """The delete confirmation box; the id follows whatever metadata is cached now."""
    width = max(20, min(columns, columns * 8 // 10))
    inner = width - 4
    body = [""]
    body += [" " + line for line in _wrapped("Delete this session? This will remove the jsonl file.", inner)]
    styled_id, _ = _styled_id(modal.target, meta)
    body.append(" " + truncate_to_width("ID: " + styled_id, inner))
    body += [" " + line for line in _wrapped(f"File: {modal.target.path}", inner)]
    body.append("")
    if modal.pending:
        body.append(" " + GRAY("Deleting…"))
        body.append("")
    else:
        body.append(" " + GRAY("Use ←/→ to choose, Enter confirm, Y=Yes, N=No, Esc cancel"))
        body.append("")
        yes = _button("  Yes  ", 42) if modal.focus_yes else "  Yes  "
        no = "  No   " if modal.focus_yes else _button("  No   ", 41)
        gap = max(1, (width - 2) * 2 // 10)
        lead = max(0, (width - 2) * 35 // 100)
        body.append(" " * lead + yes + " " * gap + no)
    return frame("Confirm Delete", body, width, len(body) + 2, border=YELLOW)


def edit_modal(modal: EditOptionsModal, columns: int) -> list[str]:
    width = max(20, min(columns, columns * 8 // 10))
    body = [
        "",
        " " + GRAY("Enter extra command arguments (Enter to confirm / Esc to cancel):"),
        "",
        " " + modal.edit.render(width - 4),
        "",
    ]
    return frame("Edit Codex Options", body, width, len(body) + 2, border=BLUE)


def notice_modal(modal: NoticeModal, columns: int) -> list[str]:
    width = max(20, min(columns, columns * 7 // 10))
    body = [""] + [" " + line for line in _wrapped(modal.message, width - 4)]
    body += ["", " " + GRAY("Enter / Esc to dismiss")]
    return frame(modal.title, body, width, len(body) + 2, border=RED)


# ---------------------------------------------------------------------------
# Whole screen
# ---------------------------------------------------------------------------


def render_picker(
    state: PickerState,
    cache: PrefetchCache,
    rows: int,
    *,
    now: datetime | None = None,
    home: str | None = None,
) -> list[str]:
    columns = state.columns
    pane_height = max(0, rows - 1)
    lines = [truncate_to_width(help_line(state), columns, "…")]

    preview_width = preview_pane_width(state.layout, columns)
    preview = frame(
        "Conversation Preview",
        render_preview(state, cache, pane_height - 2, home=home),
        preview_width,
        pane_height,
    )
    if state.layout == "full":
        lines += preview
    else:
        left_width = list_pane_width(columns)
        left = frame(
            "Recent Sessions",
            render_list(state, cache, left_width - 2, pane_height - 2, now=now, home=home),
            left_width,
            pane_height,
        )
        gap = " " * PANE_GAP
        lines += [l + gap + r for l, r in zip(left, preview)]

    modal = state.modal
    if isinstance(modal, DeleteConfirmModal):
        box = delete_modal(modal, columns, cache.get_meta(modal.target.path))
        lines = composite(lines, box, columns, rows)
    elif isinstance(modal, EditOptionsModal):
        lines = composite(lines, edit_modal(modal, columns), columns, rows)
    elif isinstance(modal, NoticeModal):
        lines = composite(lines, notice_modal(modal, columns), columns, rows)
    return lines
