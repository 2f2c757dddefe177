"""The interactive session picker.

``SessionPicker`` owns the single ``PickerState`` of a run. Input from the
terminal is queued and handed to ``reduce`` one event at a time; the effects
it returns are carried out here. A deletion is awaited in full, and its
outcome reduced, before the next queued event is looked at.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from cxresume.errors import StorageMutationError
from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.formatter import DEFAULT_THEME, PreviewTheme
from cxresume.picker.machine import reduce
from cxresume.picker.prefetch import PrefetchScheduler
from cxresume.picker.state import (
    ITEMS_PER_PAGE,
    CopyToClipboard,
    DeleteCompleted,
    DeleteFailed,
    DeleteSession,
    Effect,
    Event,
    FilterApplied,
    KeyPress,
    LoadPreview,
    PickerState,
    Prefetch,
    PurgeCache,
    ReducerContext,
    Render,
    Resized,
    RestartPrefetch,
    Started,
)
from cxresume.picker.view import render_picker
from cxresume.sessions import FileSessionStore, filter_by_directory
from cxresume.tui.screen import Screen
from cxresume.tui.terminal import ProcessTerminal, Terminal
from cxresume.types import Action, DialogTurn, Role, SessionFileRef, SessionMeta

logger = logging.getLogger(__name__)

TITLE = "cxresume - Sessions / Preview"


class SessionStore(Protocol):
    """Storage operations the picker needs. ``FileSessionStore`` is the real one."""

    async def quick_meta(self, path: str) -> SessionMeta: ...

    async def full_parse(self, path: str) -> list[DialogTurn]: ...

    async def delete(self, path: str) -> None: ...

    async def copy_to_clipboard(self, text: str) -> bool: ...


@dataclass(frozen=True)
class PickerOptions:
    hidden_roles: frozenset[Role] = frozenset()
    start_in_workspace_mode: bool = False
    current_directory_only: bool = False
    preset_files: tuple[SessionFileRef, ...] | None = None
    page_size: int = ITEMS_PER_PAGE


class SessionPicker:
    def __init__(
        self,
        files: Sequence[SessionFileRef],
        terminal: Terminal,
        store: SessionStore,
        options: PickerOptions | None = None,
        *,
        cwd: str | None = None,
        theme: PreviewTheme = DEFAULT_THEME,
        home: str | None = None,
    ) -> None:
        self.options = options or PickerOptions()
        self.terminal = terminal
        self.store = store
        self.cwd = cwd or os.getcwd()
        self.home = home
        self.files = tuple(files)

        self.cache = PrefetchCache()
        self.scheduler = PrefetchScheduler(
            self.cache,
            store.quick_meta,
            store.full_parse,
            hidden_roles=self.options.hidden_roles,
            on_update=self._on_cache_update,
            theme=theme,
        )
        self.screen = Screen(terminal)

        self._state = PickerState(
            visible_files=self.files,
            workspace_mode=self.options.start_in_workspace_mode,
            page_size=self.options.page_size,
        )
        self._events: asyncio.Queue[Event] = asyncio.Queue()
        self._render_requested = False
        self._stopped = True
        self._side_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> PickerState:
        return self._state

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self) -> Action | None:
        """Show the picker until the user picks, aborts or deletes everything."""
        if not self.files:
            return None

        self._state = PickerState(
            visible_files=self.files,
            columns=self.terminal.columns,
            workspace_mode=self.options.start_in_workspace_mode,
            page_size=self.options.page_size,
        )
        self._stopped = False
        self.terminal.start(self._on_input, self._on_resize)
        self.terminal.set_title(TITLE)
        self.terminal.hide_cursor()
        self.terminal.clear_screen()
        try:
            self._events.put_nowait(Started())
            if self.options.current_directory_only:
                self._spawn(self._filter_current_directory())
            while not self._state.terminated:
                event = await self._events.get()
                await self._dispatch(event)
        finally:
            self._stopped = True
            self.scheduler.close()
            for task in list(self._side_tasks):
                task.cancel()
            self.terminal.show_cursor()
            self.terminal.stop()

        result = self._state.result
        logger.debug("picker finished with %s", result)
        return result

    async def _dispatch(self, event: Event) -> None:
        self._state, effects = reduce(self._state, event, self._context())
        for effect in effects:
            await self._execute(effect)

    async def _execute(self, effect: Effect) -> None:
        if isinstance(effect, Render):
            self.request_render()
        elif isinstance(effect, RestartPrefetch):
            self.scheduler.start(effect.page)
        elif isinstance(effect, Prefetch):
            self.scheduler.prefetch(effect.refs)
        elif isinstance(effect, LoadPreview):
            self.scheduler.load_preview(effect.ref, effect.width)
        elif isinstance(effect, PurgeCache):
            # In-flight fetches may still hold the purged path
            self.scheduler.invalidate()
            self.cache.purge(effect.path)
        elif isinstance(effect, DeleteSession):
            await self._delete(effect.ref)
        elif isinstance(effect, CopyToClipboard):
            self._spawn(self._copy(effect.text))

    async def _delete(self, ref: SessionFileRef) -> None:
        try:
            await self.store.delete(ref.path)
        except StorageMutationError as exc:
            logger.warning("%s", exc)
            outcome: Event = DeleteFailed(ref.path, str(exc))
        else:
            outcome = DeleteCompleted(ref.path)
        await self._dispatch(outcome)

    async def _copy(self, text: str) -> None:
        copied = await self.store.copy_to_clipboard(text)
        if not copied:
            logger.debug("clipboard copy unavailable")

    def _context(self) -> ReducerContext:
        return ReducerContext(
            meta_for=self.cache.get_meta,
            preview_line_count=self._preview_line_count,
            cwd=self.cwd,
        )

    def _preview_line_count(self, path: str, width: int) -> int:
        text = self.cache.get_preview(PreviewKey(path, width))
        return text.count("\n") + 1 if text else 0

    # ------------------------------------------------------------------
    # Background filter
    # ------------------------------------------------------------------

    async def _filter_current_directory(self) -> None:
        matches = await filter_by_directory(self.files, self.cwd, meta=self.store.quick_meta)
        if self._stopped or not matches:
            return
        matches.sort(key=lambda r: r.modified_at, reverse=True)
        self._events.put_nowait(FilterApplied(tuple(matches)))

    # ------------------------------------------------------------------
    # Terminal callbacks
    # ------------------------------------------------------------------

    def _on_input(self, data: str) -> None:
        if not self._stopped:
            self._events.put_nowait(KeyPress(data))

    def _on_resize(self) -> None:
        if not self._stopped:
            self.screen.invalidate()
            self._events.put_nowait(Resized(self.terminal.columns))

    def _on_cache_update(self, path: str) -> None:
        selected = self._state.selected
        if selected is not None and selected.path == path:
            # A render for another width may have just evicted the one on screen
            width = self._state.preview_width
            if not self.cache.has_preview(PreviewKey(path, width)):
                self.scheduler.load_preview(selected, width)
        if any(ref.path == path for ref in self._state.page_items):
            self.request_render()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def request_render(self) -> None:
        """Schedule a render on the next loop tick; repeated calls coalesce."""
        if self._render_requested:
            return
        self._render_requested = True
        asyncio.get_running_loop().call_soon(self._render_tick)

    def _render_tick(self) -> None:
        self._render_requested = False
        if self._stopped or self._state.terminated:
            return
        self.render_now()

    def render_now(self) -> None:
        lines = render_picker(self._state, self.cache, self.terminal.rows, home=self.home)
        self.screen.render(lines)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._side_tasks.add(task)
        task.add_done_callback(self._side_tasks.discard)


async def pick_session(
    files: Iterable[SessionFileRef],
    options: PickerOptions | None = None,
    *,
    terminal: Terminal | None = None,
    store: SessionStore | None = None,
    cwd: str | None = None,
) -> Action | None:
    """Run the picker over *files* (or ``options.preset_files``) and return its Action."""
    options = options or PickerOptions()
    chosen = options.preset_files if options.preset_files is not None else tuple(files)
    picker = SessionPicker(
        chosen,
        terminal or ProcessTerminal(),
        store or FileSessionStore(),
        options,
        cwd=cwd,
    )
    return await picker.run()
