"""The picker's transition function.

``reduce(state, event, ctx)`` is pure: it returns the next state and the
effects the driver has to carry out, and never touches the terminal, the
caches or the disk itself.
"""

from __future__ import annotations

from dataclasses import replace

from cxresume.picker.state import (
    PAGE_JUMP,
    CopyToClipboard,
    DeleteCompleted,
    DeleteConfirmModal,
    DeleteFailed,
    DeleteSession,
    EditOptionsModal,
    Effect,
    Event,
    FilterApplied,
    KeyPress,
    LoadPreview,
    NoticeModal,
    PickerState,
    Prefetch,
    PurgeCache,
    ReducerContext,
    Render,
    Resized,
    RestartPrefetch,
    Started,
)
from cxresume.tui.keys import Key, parse_key
from cxresume.tui.line_edit import LineEdit
from cxresume.types import Action, resolve_session_id

Transition = tuple[PickerState, list[Effect]]

_QUIT_KEYS = ("q", Key.escape, Key.ctrl("c"))


def reduce(state: PickerState, event: Event, ctx: ReducerContext) -> Transition:
    if state.terminated:
        return state, []

    if isinstance(event, Started):
        return _enter_page(state, state.current_page)
    if isinstance(event, Resized):
        return _resize(state, event.columns)
    if isinstance(event, DeleteCompleted):
        return _delete_completed(state, event.path)
    if isinstance(event, DeleteFailed):
        return _delete_failed(state, event)
    if isinstance(event, FilterApplied):
        return _apply_filter(state, event)
    if isinstance(event, KeyPress):
        if isinstance(state.modal, DeleteConfirmModal):
            return _delete_modal_key(state, state.modal, event.data)
        if isinstance(state.modal, EditOptionsModal):
            return _edit_modal_key(state, state.modal, event.data)
        if isinstance(state.modal, NoticeModal):
            return _notice_modal_key(state, event.data)
        return _browse_key(state, event.data, ctx)
    return state, []


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


def _browse_key(state: PickerState, data: str, ctx: ReducerContext) -> Transition:
    key = parse_key(data)
    last = len(state.page_items) - 1

    if key == Key.up:
        return _select(state, state.selected_index - 1)
    if key == Key.down:
        return _select(state, state.selected_index + 1)
    if key == Key.page_up:
        return _select(state, state.selected_index - PAGE_JUMP)
    if key == Key.page_down:
        return _select(state, state.selected_index + PAGE_JUMP)
    if key == Key.home:
        return _select(state, 0)
    if key == Key.end:
        return _select(state, last)
    if key == Key.left:
        return _change_page(state, -1)
    if key == Key.right:
        return _change_page(state, 1)
    if key == "j":
        return _scroll_preview(state, -1, ctx)
    if key == "k":
        return _scroll_preview(state, 1, ctx)
    if key == "f":
        return _toggle_layout(state)
    if key in _QUIT_KEYS:
        return _terminate(state, None)

    selected = state.selected
    if selected is None:
        return state, []

    if key == Key.enter:
        return _terminate(
            state,
            Action("resume", path=selected.path, extra_args=state.edited_extra_args),
        )
    if key == "n":
        meta = ctx.meta_for(selected.path)
        cwd = meta.working_directory if meta and meta.working_directory else ctx.cwd
        return _terminate(
            state,
            Action("startNew", working_directory=cwd, extra_args=state.edited_extra_args),
        )
    if key == "s":
        if not state.workspace_mode:
            return state, []
        return _terminate(state, Action("workspaceCreate"))
    if key == "d":
        modal = DeleteConfirmModal(target=selected)
        return replace(state, modal=modal), [Render()]
    if key == "-":
        modal = EditOptionsModal(LineEdit.of(state.edited_extra_args))
        return replace(state, modal=modal), [Render()]
    if key == "c":
        sid = resolve_session_id(selected, ctx.meta_for(selected.path))
        return state, [CopyToClipboard(sid.value)]
    return state, []


def _clamp(index: int, count: int) -> int:
    return max(0, min(index, count - 1))


def _select(state: PickerState, index: int) -> Transition:
    items = state.page_items
    if not items:
        return state, []
    index = _clamp(index, len(items))
    if index == state.selected_index:
        return state, []
    state = replace(state, selected_index=index, preview_scroll=0)
    return state, _after_selection(state)


def _after_selection(state: PickerState) -> list[Effect]:
    selected = state.selected
    if selected is None:
        return [Render()]
    return [
        LoadPreview(selected, state.preview_width),
        Prefetch((selected,) + state.neighbours()),
        Render(),
    ]


def _change_page(state: PickerState, step: int) -> Transition:
    target = state.current_page + step
    if target < 0 or target >= state.page_count:
        return state, []
    return _enter_page(state, target)


def _enter_page(state: PickerState, page: int, selected_index: int = 0) -> Transition:
    state = replace(state, current_page=page, selected_index=0, preview_scroll=0)
    state = replace(state, selected_index=_clamp(selected_index, len(state.page_items)))
    effects: list[Effect] = [RestartPrefetch(state.page_items)]
    effects.extend(_after_selection(state))
    return state, effects


def _scroll_preview(state: PickerState, step: int, ctx: ReducerContext) -> Transition:
    selected = state.selected
    if selected is None:
        return state, []
    total = ctx.preview_line_count(selected.path, state.preview_width)
    scroll = max(0, min(state.preview_scroll + step, max(0, total - 1)))
    if scroll == state.preview_scroll:
        return state, []
    return replace(state, preview_scroll=scroll), [Render()]


def _toggle_layout(state: PickerState) -> Transition:
    layout = "full" if state.layout == "split" else "split"
    new = replace(state, layout=layout, preview_scroll=0)
    return new, _reload_if_width_changed(state, new)


def _resize(state: PickerState, columns: int) -> Transition:
    new = replace(state, columns=columns)
    return new, _reload_if_width_changed(state, new)


def _reload_if_width_changed(old: PickerState, new: PickerState) -> list[Effect]:
    selected = new.selected
    if selected is not None and new.preview_width != old.preview_width:
        return [LoadPreview(selected, new.preview_width), Render()]
    return [Render()]


def _terminate(state: PickerState, action: Action | None) -> Transition:
    return replace(state, terminated=True, result=action, modal=None), []


# ---------------------------------------------------------------------------
# Delete confirmation
# ---------------------------------------------------------------------------


def _delete_modal_key(
    state: PickerState, modal: DeleteConfirmModal, data: str
) -> Transition:
    if modal.pending:
        return state, []
    key = parse_key(data)
    if key == Key.left:
        return replace(state, modal=replace(modal, focus_yes=True)), [Render()]
    if key == Key.right:
        return replace(state, modal=replace(modal, focus_yes=False)), [Render()]
    if key in ("y", "Y"):
        return _confirm_delete(state, modal)
    if key in ("n", "N", Key.escape):
        return replace(state, modal=None), [Render()]
    if key == Key.enter:
        if modal.focus_yes:
            return _confirm_delete(state, modal)
        return replace(state, modal=None), [Render()]
    return state, []


def _confirm_delete(state: PickerState, modal: DeleteConfirmModal) -> Transition:
    return replace(state, modal=replace(modal, pending=True)), [
        DeleteSession(modal.target),
        Render(),
    ]


def _delete_completed(state: PickerState, path: str) -> Transition:
    remaining = tuple(ref for ref in state.visible_files if ref.path != path)
    effects: list[Effect] = [PurgeCache(path)]
    state = replace(state, modal=None, visible_files=remaining)
    if not remaining:
        return replace(state, terminated=True, result=None), effects

    page = min(state.current_page, state.page_count - 1)
    state, page_effects = _enter_page(state, page, state.selected_index)
    return state, effects + page_effects


def _delete_failed(state: PickerState, event: DeleteFailed) -> Transition:
    return replace(state, modal=NoticeModal("Delete Failed", event.message)), [Render()]


# ---------------------------------------------------------------------------
# Edit options / notice
# ---------------------------------------------------------------------------


def _edit_modal_key(state: PickerState, modal: EditOptionsModal, data: str) -> Transition:
    key = parse_key(data)
    if key == Key.enter:
        return replace(state, modal=None, edited_extra_args=modal.edit.value.strip()), [Render()]
    if key == Key.escape:
        return replace(state, modal=None), [Render()]
    edit = modal.edit.handle_key(data)
    if edit == modal.edit:
        return state, []
    return replace(state, modal=EditOptionsModal(edit)), [Render()]


def _notice_modal_key(state: PickerState, data: str) -> Transition:
    if parse_key(data) in (Key.enter, Key.escape, "q"):
        return replace(state, modal=None), [Render()]
    return state, []


# ---------------------------------------------------------------------------
# Background filter
# ---------------------------------------------------------------------------


def _apply_filter(state: PickerState, event: FilterApplied) -> Transition:
    if not event.files:
        return state, []
    removed = {ref.path for ref in state.visible_files} - {ref.path for ref in event.files}
    state = replace(state, visible_files=tuple(event.files))
    # The filter lands at an arbitrary moment; an open delete modal may point
    # at a row that is no longer listed.
    if isinstance(state.modal, DeleteConfirmModal) and state.modal.target.path in removed:
        if not state.modal.pending:
            state = replace(state, modal=None)
    return _enter_page(state, 0)
