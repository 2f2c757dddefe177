"""Background population of the picker caches.

``PrefetchScheduler.start(page)`` opens a new *generation* and launches two
bounded pools of asyncio tasks over that page: metadata workers (cheap
header reads) and summary workers (full parses). Workers of one pool share a
cursor and keep claiming the next unclaimed item until the page is done or
their generation is no longer current.

Every task carries a ``LivenessToken``. Before writing into the cache a task
checks that its token is still alive; results from an abandoned page, a
deleted file or a closed picker are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.formatter import DEFAULT_THEME, PreviewTheme, format_preview
from cxresume.types import DialogTurn, Role, SessionFileRef, SessionMeta, SessionSummary

logger = logging.getLogger(__name__)

MetaFetcher = Callable[[str], Awaitable[SessionMeta]]
TurnsFetcher = Callable[[str], Awaitable[list[DialogTurn]]]

META_WORKERS = 8
SUMMARY_WORKERS = 3


@dataclass(frozen=True)
class LivenessToken:
    """Proof that a task belongs to the scheduler's current generation."""

    scheduler: PrefetchScheduler
    generation: int

    @property
    def alive(self) -> bool:
        return self.scheduler.is_current(self.generation)


class _Cursor:
    """Shared claim pointer over one page."""

    def __init__(self, items: Sequence[SessionFileRef]) -> None:
        self._items = tuple(items)
        self._next = 0

    def claim(self) -> SessionFileRef | None:
        if self._next >= len(self._items):
            return None
        item = self._items[self._next]
        self._next += 1
        return item


class PrefetchScheduler:
    def __init__(
        self,
        cache: PrefetchCache,
        fetch_meta: MetaFetcher,
        fetch_turns: TurnsFetcher,
        *,
        hidden_roles: Iterable[Role] = frozenset(),
        on_update: Callable[[str], None] | None = None,
        meta_workers: int = META_WORKERS,
        summary_workers: int = SUMMARY_WORKERS,
        theme: PreviewTheme = DEFAULT_THEME,
    ) -> None:
        self.cache = cache
        self._fetch_meta = fetch_meta
        self._fetch_turns = fetch_turns
        self._hidden_roles = frozenset(hidden_roles)
        self._on_update = on_update
        self._meta_workers = meta_workers
        self._summary_workers = summary_workers
        self._theme = theme

        self._generation = 0
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._inflight: set[tuple[object, ...]] = set()

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def token(self) -> LivenessToken:
        return LivenessToken(self, self._generation)

    def start(self, page: Sequence[SessionFileRef]) -> LivenessToken:
        """Abandon the previous page and start both worker pools on *page*."""
        if self._closed:
            return self.token()
        self._generation += 1
        token = self.token()

        meta_cursor = _Cursor(page)
        summary_cursor = _Cursor(page)
        for _ in range(min(self._meta_workers, len(page))):
            self._spawn(self._meta_worker(meta_cursor, token))
        for _ in range(min(self._summary_workers, len(page))):
            self._spawn(self._summary_worker(summary_cursor, token))
        logger.debug(
            "prefetch generation %d started for %d sessions", token.generation, len(page)
        )
        return token

    def invalidate(self) -> None:
        """Retire the current generation without starting a new one."""
        self._generation += 1

    def close(self) -> None:
        """Tear down: no further cache writes, pending tasks cancelled."""
        self._closed = True
        for task in list(self._tasks):
            task.cancel()

    # ------------------------------------------------------------------
    # On-demand requests
    # ------------------------------------------------------------------

    def prefetch(self, refs: Iterable[SessionFileRef]) -> None:
        """Fetch metadata and summaries for *refs* outside the worker pools."""
        if self._closed:
            return
        token = self.token()
        for ref in refs:
            if not self.cache.has_meta(ref.path):
                self._spawn(self._fetch_meta_once(ref, token))
            if not self.cache.has_summary(ref.path):
                self._spawn(self._fetch_summary_once(ref, token))

    def load_preview(self, ref: SessionFileRef, width: int) -> None:
        """Render the preview of *ref* at *width* unless it is cached."""
        if self._closed or self.cache.has_preview(PreviewKey(ref.path, width)):
            return
        self._spawn(self._render_preview(ref, width, self.token()))

    async def wait_idle(self) -> None:
        """Wait until every task spawned so far (and any they spawn) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _meta_worker(self, cursor: _Cursor, token: LivenessToken) -> None:
        while token.alive:
            ref = cursor.claim()
            if ref is None:
                return
            if not self.cache.has_meta(ref.path):
                await self._fetch_meta_once(ref, token)
            await asyncio.sleep(0)

    async def _summary_worker(self, cursor: _Cursor, token: LivenessToken) -> None:
        while token.alive:
            ref = cursor.claim()
            if ref is None:
                return
            if not self.cache.has_summary(ref.path):
                await self._fetch_summary_once(ref, token)
            await asyncio.sleep(0)

    async def _fetch_meta_once(self, ref: SessionFileRef, token: LivenessToken) -> None:
        key = ("meta", ref.path, token.generation)
        if key in self._inflight:
            return
        self._inflight.add(key)
        try:
            meta = await self._fetch_meta(ref.path)
        except Exception as exc:
            logger.debug("metadata fetch failed for %s: %s", ref.path, exc)
            return
        finally:
            self._inflight.discard(key)
        if not token.alive:
            logger.debug("discarding stale metadata for %s", ref.path)
            return
        self.cache.put_meta(ref.path, meta)
        self._notify(ref.path)

    async def _fetch_summary_once(self, ref: SessionFileRef, token: LivenessToken) -> None:
        key = ("summary", ref.path, token.generation)
        if key in self._inflight:
            return
        self._inflight.add(key)
        try:
            turns = await self._fetch_turns(ref.path)
        except Exception as exc:
            logger.debug("summary fetch failed for %s: %s", ref.path, exc)
            return
        finally:
            self._inflight.discard(key)
        if not token.alive:
            logger.debug("discarding stale summary for %s", ref.path)
            return
        self.cache.put_summary(ref.path, SessionSummary.from_turns(turns))
        self._notify(ref.path)

    async def _render_preview(
        self, ref: SessionFileRef, width: int, token: LivenessToken
    ) -> None:
        key = ("preview", ref.path, width, token.generation)
        if key in self._inflight:
            return
        self._inflight.add(key)
        try:
            turns = await self._fetch_turns(ref.path)
            text = format_preview(turns, self._hidden_roles, width, self._theme)
        except Exception as exc:
            logger.debug("preview failed for %s: %s", ref.path, exc)
            return
        finally:
            self._inflight.discard(key)
        if not token.alive:
            return
        self.cache.put_summary(ref.path, SessionSummary.from_turns(turns))
        self.cache.put_preview(PreviewKey(ref.path, width), text)
        self._notify(ref.path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self, path: str) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(path)
        except Exception:
            logger.exception("cache update listener failed")
