"""Per-session caches backing the picker rows and preview pane.

Three independent maps, all keyed by session path:

* ``meta``     -- ``SessionMeta`` from the quick header parse
* ``summary``  -- ``SessionSummary`` from the full parse
* ``preview``  -- rendered preview text, keyed by ``PreviewKey(path, width)``

Only one preview width is kept per path: storing a render for a new width
drops the render made for the old one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from cxresume.types import SessionMeta, SessionSummary


class PreviewKey(NamedTuple):
    path: str
    width: int


@dataclass
class CacheStats:
    meta_hits: int = 0
    meta_misses: int = 0
    summary_hits: int = 0
    summary_misses: int = 0
    preview_hits: int = 0
    preview_misses: int = 0


class PrefetchCache:
    def __init__(self) -> None:
        self._meta: dict[str, SessionMeta] = {}
        self._summary: dict[str, SessionSummary] = {}
        self._preview: dict[PreviewKey, str] = {}
        self._preview_width: dict[str, int] = {}
        self.stats = CacheStats()

    # -- metadata -----------------------------------------------------------

    def has_meta(self, path: str) -> bool:
        return path in self._meta

    def get_meta(self, path: str) -> SessionMeta | None:
        meta = self._meta.get(path)
        if meta is None:
            self.stats.meta_misses += 1
        else:
            self.stats.meta_hits += 1
        return meta

    def put_meta(self, path: str, meta: SessionMeta) -> None:
        self._meta[path] = meta

    # -- summaries ----------------------------------------------------------

    def has_summary(self, path: str) -> bool:
        return path in self._summary

    def get_summary(self, path: str) -> SessionSummary | None:
        summary = self._summary.get(path)
        if summary is None:
            self.stats.summary_misses += 1
        else:
            self.stats.summary_hits += 1
        return summary

    def put_summary(self, path: str, summary: SessionSummary) -> None:
        self._summary[path] = summary

    # -- rendered previews --------------------------------------------------

    def has_preview(self, key: PreviewKey) -> bool:
        return key in self._preview

    def get_preview(self, key: PreviewKey) -> str | None:
        text = self._preview.get(key)
        if text is None:
            self.stats.preview_misses += 1
        else:
            self.stats.preview_hits += 1
        return text

    def put_preview(self, key: PreviewKey, text: str) -> None:
        old_width = self._preview_width.get(key.path)
        if old_width is not None and old_width != key.width:
            self._preview.pop(PreviewKey(key.path, old_width), None)
        self._preview[key] = text
        self._preview_width[key.path] = key.width

    # -- invalidation -------------------------------------------------------

    def purge(self, path: str) -> None:
        """Forget everything known about *path* in all three caches."""
        self._meta.pop(path, None)
        self._summary.pop(path, None)
        width = self._preview_width.pop(path, None)
        if width is not None:
            self._preview.pop(PreviewKey(path, width), None)

    def clear(self) -> None:
        self._meta.clear()
        self._summary.clear()
        self._preview.clear()
        self._preview_width.clear()

    def __len__(self) -> int:
        return len(self._meta) + len(self._summary) + len(self._preview)
