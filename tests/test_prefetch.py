"""Tests for cxresume.picker.prefetch -- generations and worker pools."""

from __future__ import annotations

import asyncio

import pytest

from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.formatter import PLAIN_THEME
from cxresume.picker.prefetch import PrefetchScheduler
from cxresume.types import DialogTurn, SessionMeta, SessionSummary

from .conftest import make_ref, make_refs


class FakeSource:
    """Fetchers that record calls and can hold chosen paths until released."""

    def __init__(self, *, gated: set[str] | None = None, failing: set[str] | None = None) -> None:
        self.gated = gated or set()
        self.failing = failing or set()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.meta_calls: list[str] = []
        self.turn_calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def fetch_meta(self, path: str) -> SessionMeta:
        self.meta_calls.append(path)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if path in self.gated:
                self.entered.set()
                await self.gate.wait()
            if path in self.failing:
                raise OSError(f"cannot read {path}")
            return SessionMeta(id=path.rsplit("/", 1)[-1], working_directory="/work")
        finally:
            self.active -= 1

    async def fetch_turns(self, path: str) -> list[DialogTurn]:
        self.turn_calls.append(path)
        if path in self.gated:
            await self.gate.wait()
        if path in self.failing:
            raise OSError(f"cannot read {path}")
        return [DialogTurn("user", "hello"), DialogTurn("assistant", "world")]


def _scheduler(source: FakeSource, cache: PrefetchCache | None = None, **kwargs) -> PrefetchScheduler:
    return PrefetchScheduler(
        cache or PrefetchCache(),
        source.fetch_meta,
        source.fetch_turns,
        theme=PLAIN_THEME,
        **kwargs,
    )


class TestWorkerPools:
    @pytest.mark.asyncio
    async def test_fills_meta_and_summary_for_page(self) -> None:
        source = FakeSource()
        scheduler = _scheduler(source)
        page = make_refs(10)

        scheduler.start(page)
        await scheduler.wait_idle()

        for ref in page:
            assert scheduler.cache.has_meta(ref.path)
            assert scheduler.cache.get_summary(ref.path) == SessionSummary(2, "assistant")
        assert sorted(source.meta_calls) == sorted(r.path for r in page)

    @pytest.mark.asyncio
    async def test_meta_pool_is_bounded(self) -> None:
        page = make_refs(10)
        source = FakeSource(gated={r.path for r in page})
        scheduler = _scheduler(source)

        scheduler.start(page)
        for _ in range(5):
            await asyncio.sleep(0)
        assert source.active == 8

        source.gate.set()
        await scheduler.wait_idle()
        assert source.max_active == 8
        assert len(source.meta_calls) == 10

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded_after_page_change(self) -> None:
        page = make_refs(10)
        ninth = page[8]
        source = FakeSource(gated={ninth.path})
        scheduler = _scheduler(source)

        scheduler.start(page)
        await asyncio.wait_for(source.entered.wait(), timeout=1)

        next_page = make_refs(3, prefix="p")
        scheduler.start(next_page)
        source.gate.set()
        await scheduler.wait_idle()

        assert not scheduler.cache.has_meta(ninth.path)
        for ref in next_page:
            assert scheduler.cache.has_meta(ref.path)

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self) -> None:
        page = make_refs(4)
        source = FakeSource(failing={page[1].path})
        scheduler = _scheduler(source)

        scheduler.start(page)
        await scheduler.wait_idle()

        assert not scheduler.cache.has_meta(page[1].path)
        assert not scheduler.cache.has_summary(page[1].path)
        for ref in (page[0], page[2], page[3]):
            assert scheduler.cache.has_meta(ref.path)
            assert scheduler.cache.has_summary(ref.path)

    @pytest.mark.asyncio
    async def test_warm_cache_makes_no_calls(self) -> None:
        page = make_refs(5)
        cache = PrefetchCache()
        for ref in page:
            cache.put_meta(ref.path, SessionMeta(id="x"))
            cache.put_summary(ref.path, SessionSummary(1, "user"))
        source = FakeSource()
        scheduler = _scheduler(source, cache)

        scheduler.start(page)
        await scheduler.wait_idle()

        assert source.meta_calls == []
        assert source.turn_calls == []

    @pytest.mark.asyncio
    async def test_empty_page_spawns_nothing(self) -> None:
        source = FakeSource()
        scheduler = _scheduler(source)
        scheduler.start(())
        await scheduler.wait_idle()
        assert source.meta_calls == []


class TestGenerations:
    @pytest.mark.asyncio
    async def test_start_bumps_generation(self) -> None:
        scheduler = _scheduler(FakeSource())
        first = scheduler.start(())
        second = scheduler.start(())
        assert second.generation == first.generation + 1
        assert not first.alive
        assert second.alive

    @pytest.mark.asyncio
    async def test_invalidate_retires_current_token(self) -> None:
        scheduler = _scheduler(FakeSource())
        token = scheduler.start(())
        scheduler.invalidate()
        assert not token.alive

    @pytest.mark.asyncio
    async def test_close_prevents_writes(self) -> None:
        ref = make_ref("only")
        source = FakeSource(gated={ref.path})
        scheduler = _scheduler(source)

        scheduler.prefetch([ref])
        await asyncio.wait_for(source.entered.wait(), timeout=1)
        scheduler.close()
        source.gate.set()
        await scheduler.wait_idle()

        assert not scheduler.cache.has_meta(ref.path)
        scheduler.start([ref])
        scheduler.load_preview(ref, 40)
        await scheduler.wait_idle()
        assert len(scheduler.cache) == 0


class TestOnDemand:
    @pytest.mark.asyncio
    async def test_load_preview_renders_at_width(self) -> None:
        ref = make_ref("a")
        updates: list[str] = []
        scheduler = _scheduler(FakeSource(), on_update=updates.append)

        scheduler.load_preview(ref, 40)
        await scheduler.wait_idle()

        text = scheduler.cache.get_preview(PreviewKey(ref.path, 40))
        assert text is not None
        assert "hello" in text and "world" in text
        assert scheduler.cache.has_summary(ref.path)
        assert updates == [ref.path]

    @pytest.mark.asyncio
    async def test_new_width_replaces_old_render(self) -> None:
        ref = make_ref("a")
        scheduler = _scheduler(FakeSource())

        scheduler.load_preview(ref, 40)
        await scheduler.wait_idle()
        scheduler.load_preview(ref, 60)
        await scheduler.wait_idle()

        assert scheduler.cache.has_preview(PreviewKey(ref.path, 60))
        assert not scheduler.cache.has_preview(PreviewKey(ref.path, 40))

    @pytest.mark.asyncio
    async def test_cached_preview_is_not_rendered_again(self) -> None:
        ref = make_ref("a")
        source = FakeSource()
        scheduler = _scheduler(source)
        scheduler.cache.put_preview(PreviewKey(ref.path, 40), "cached")

        scheduler.load_preview(ref, 40)
        await scheduler.wait_idle()

        assert source.turn_calls == []

    @pytest.mark.asyncio
    async def test_prefetch_skips_known_entries(self) -> None:
        refs = [make_ref("a"), make_ref("b")]
        source = FakeSource()
        scheduler = _scheduler(source)
        scheduler.cache.put_meta(refs[0].path, SessionMeta(id="a"))

        scheduler.prefetch(refs)
        await scheduler.wait_idle()

        assert source.meta_calls == [refs[1].path]
        assert sorted(source.turn_calls) == sorted(r.path for r in refs)

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_stop_workers(self) -> None:
        def explode(path: str) -> None:
            raise RuntimeError("listener broke")

        page = make_refs(3)
        scheduler = _scheduler(FakeSource(), on_update=explode)
        scheduler.start(page)
        await scheduler.wait_idle()
        assert all(scheduler.cache.has_meta(r.path) for r in page)
