"""Picker state, events and effects.

Everything here is an immutable value. ``cxresume.picker.machine.reduce``
turns ``(PickerState, Event)`` into a new ``PickerState`` plus a list of
``Effect`` objects; the driver in ``cxresume.picker.app`` executes those.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, Union

from cxresume.tui.line_edit import LineEdit
from cxresume.types import Action, SessionFileRef, SessionMeta

Layout = Literal["split", "full"]

ITEMS_PER_PAGE = 30
PAGE_JUMP = 5

# Split layout geometry: list pane takes 35% of the screen but never less
# than 30 columns, then a one-column gap, then the bordered preview pane.
LIST_PANE_MIN = 30
LIST_PANE_RATIO = 0.35
PANE_GAP = 1
MIN_PREVIEW_WIDTH = 10


def list_pane_width(columns: int) -> int:
    return max(LIST_PANE_MIN, math.floor(columns * LIST_PANE_RATIO))


def preview_pane_width(layout: Layout, columns: int) -> int:
    """Outer width of the preview pane, borders included."""
    if layout == "full":
        return columns
    return max(0, columns - list_pane_width(columns) - PANE_GAP)


def preview_wrap_width(layout: Layout, columns: int) -> int:
    """Width the preview text is wrapped to for *layout* at *columns*."""
    return max(MIN_PREVIEW_WIDTH, preview_pane_width(layout, columns) - 2)


class Phase(enum.Enum):
    BROWSING = "browsing"
    MODAL_DELETE = "modalDelete"
    MODAL_EDIT_OPTIONS = "modalEditOptions"
    MODAL_NOTICE = "modalNotice"
    TERMINATED = "terminated"


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeleteConfirmModal:
    target: SessionFileRef
    focus_yes: bool = False
    # Set once the user confirmed; the modal stays up until the disk
    # operation reports back.
    pending: bool = False


@dataclass(frozen=True)
class EditOptionsModal:
    edit: LineEdit = field(default_factory=LineEdit)


@dataclass(frozen=True)
class NoticeModal:
    title: str
    message: str


Modal = Union[DeleteConfirmModal, EditOptionsModal, NoticeModal]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PickerState:
    visible_files: tuple[SessionFileRef, ...]
    current_page: int = 0
    selected_index: int = 0
    layout: Layout = "split"
    modal: Modal | None = None
    edited_extra_args: str = ""
    columns: int = 80
    # Lines scrolled up from the end of the preview; 0 follows the tail
    preview_scroll: int = 0
    terminated: bool = False
    result: Action | None = None
    workspace_mode: bool = False
    page_size: int = ITEMS_PER_PAGE

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.visible_files) / self.page_size))

    @property
    def page_items(self) -> tuple[SessionFileRef, ...]:
        start = self.current_page * self.page_size
        return self.visible_files[start : start + self.page_size]

    @property
    def selected(self) -> SessionFileRef | None:
        items = self.page_items
        if 0 <= self.selected_index < len(items):
            return items[self.selected_index]
        return None

    @property
    def preview_width(self) -> int:
        return preview_wrap_width(self.layout, self.columns)

    @property
    def phase(self) -> Phase:
        if self.terminated:
            return Phase.TERMINATED
        if isinstance(self.modal, DeleteConfirmModal):
            return Phase.MODAL_DELETE
        if isinstance(self.modal, EditOptionsModal):
            return Phase.MODAL_EDIT_OPTIONS
        if isinstance(self.modal, NoticeModal):
            return Phase.MODAL_NOTICE
        return Phase.BROWSING

    def neighbours(self) -> tuple[SessionFileRef, ...]:
        """The rows directly above and below the selection."""
        items = self.page_items
        return tuple(
            items[i]
            for i in (self.selected_index - 1, self.selected_index + 1)
            if 0 <= i < len(items)
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Started:
    """First event of every run."""


@dataclass(frozen=True)
class KeyPress:
    data: str


@dataclass(frozen=True)
class Resized:
    columns: int


@dataclass(frozen=True)
class DeleteCompleted:
    path: str


@dataclass(frozen=True)
class DeleteFailed:
    path: str
    message: str


@dataclass(frozen=True)
class FilterApplied:
    files: tuple[SessionFileRef, ...]


Event = Union[Started, KeyPress, Resized, DeleteCompleted, DeleteFailed, FilterApplied]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Render:
    pass


@dataclass(frozen=True)
class RestartPrefetch:
    page: tuple[SessionFileRef, ...]


@dataclass(frozen=True)
class Prefetch:
    refs: tuple[SessionFileRef, ...]


@dataclass(frozen=True)
class LoadPreview:
    ref: SessionFileRef
    width: int


@dataclass(frozen=True)
class PurgeCache:
    path: str


@dataclass(frozen=True)
class DeleteSession:
    ref: SessionFileRef


@dataclass(frozen=True)
class CopyToClipboard:
    text: str


Effect = Union[
    Render, RestartPrefetch, Prefetch, LoadPreview, PurgeCache, DeleteSession, CopyToClipboard
]


# ---------------------------------------------------------------------------
# Reducer context
# ---------------------------------------------------------------------------


def _no_meta(path: str) -> SessionMeta | None:
    return None


def _no_lines(path: str, width: int) -> int:
    return 0


@dataclass(frozen=True)
class ReducerContext:
    """Read-only facts the reducer may consult but never change."""

    meta_for: Callable[[str], SessionMeta | None] = _no_meta
    preview_line_count: Callable[[str, int], int] = _no_lines
    cwd: str = "."
