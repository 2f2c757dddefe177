"""Terminal text utilities: ANSI stripping, display widths, wrapping.

Widths are measured per grapheme cluster so that CJK characters, emoji and
combining marks occupy the columns a terminal actually gives them.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

# ---------------------------------------------------------------------------
# Escape sequences
# ---------------------------------------------------------------------------

# CSI (colours, cursor movement), OSC (titles, hyperlinks), APC payloads
_STRIP_RE = re.compile(
    r"\x1b\[[0-9;?]*[A-Za-z]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"
)
_ANSI_AT_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

RESET = "\x1b[0m"


def strip_ansi(text: str) -> str:
    return _STRIP_RE.sub("", text)


def sanitize(text: str) -> str:
    """Make arbitrary log text safe to print inside a pane.

    Escape sequences and control characters are removed, tabs become three
    spaces (the width ``visible_width`` assigns them) and CR is dropped.
    Newlines are preserved.
    """
    text = strip_ansi(text).replace("\r", "").replace("\t", "   ")
    return "".join(
        ch for ch in text if ch == "\n" or unicodedata.category(ch) != "Cc"
    )


# ---------------------------------------------------------------------------
# Width cache (capped)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------


def grapheme_width(g: str) -> int:
    """Return the terminal column width of one grapheme cluster."""
    if not g:
        return 0

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    # Emoji presentation: VS16, ZWJ sequences, skin tones, flags
    for ch in g:
        cp = ord(ch)
        if cp in (0xFE0F, 0x200D):
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2
    if unicodedata.category(first) in ("Mn", "Me", "Mc", "Cf"):
        return 0
    return max(_wcwidth.wcswidth(g), _wcwidth.wcwidth(first), 0)


def graphemes(text: str) -> list[str]:
    return list(grapheme.graphemes(text))


# ---------------------------------------------------------------------------
# visible_width
# ---------------------------------------------------------------------------


def visible_width(text: str) -> int:
    """Columns *text* occupies once ANSI codes are stripped.

    Tabs count as three columns. Plain ASCII takes a fast path; everything
    else is measured per grapheme and cached.
    """
    if not text:
        return 0
    stripped = strip_ansi(text).replace("\t", "   ")
    if not stripped:
        return 0
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached
    total = sum(grapheme_width(g) for g in grapheme.graphemes(stripped))
    return _cache_width(stripped, total)


# ---------------------------------------------------------------------------
# Wrapping and truncation
# ---------------------------------------------------------------------------


def hard_wrap(line: str, width: int) -> list[str]:
    """Split a single plain-text line into pieces no wider than *width*.

    Breaks fall on grapheme boundaries, never inside a cluster. An empty
    line yields one empty piece. A cluster wider than *width* on its own is
    still emitted on its own line.
    """
    if width <= 0 or not line:
        return [line]

    pieces: list[str] = []
    current: list[str] = []
    current_width = 0
    for g in grapheme.graphemes(line):
        w = grapheme_width(g)
        if current and current_width + w > width:
            pieces.append("".join(current))
            current = []
            current_width = 0
        current.append(g)
        current_width += w
    if current:
        pieces.append("".join(current))
    return pieces


def _take_columns(text: str, max_cols: int) -> str:
    """Longest prefix of *text* fitting in *max_cols*, ANSI codes kept."""
    out: list[str] = []
    cols = 0
    i = 0
    while i < len(text):
        m = _ANSI_AT_RE.match(text, i)
        if m is not None:
            out.append(m.group(0))
            i = m.end()
            continue
        # Advance by one grapheme cluster
        nxt = _ANSI_AT_RE.search(text, i)
        segment_end = nxt.start() if nxt else len(text)
        g = next(grapheme.graphemes(text[i:segment_end]))
        w = grapheme_width(g)
        if cols + w > max_cols:
            break
        out.append(g)
        cols += w
        i += len(g)
    return "".join(out)


def slice_columns(text: str, start: int, width: int) -> str:
    """Return the part of *text* covering columns ``[start, start + width)``.

    ANSI codes are all kept so colours set before *start* still apply. A
    wide cluster cut by either edge is replaced by spaces.
    """
    end = start + width
    out: list[str] = []
    col = 0
    i = 0
    while i < len(text):
        m = _ANSI_AT_RE.match(text, i)
        if m is not None:
            out.append(m.group(0))
            i = m.end()
            continue
        nxt = _ANSI_AT_RE.search(text, i)
        segment = text[i : nxt.start() if nxt else len(text)]
        for g in grapheme.graphemes(segment):
            w = grapheme_width(g)
            if col >= start and col + w <= end:
                out.append(g)
            elif col < end and col + w > start:
                out.append(" " * (min(col + w, end) - max(col, start)))
            col += w
        i += len(segment)
    return "".join(out)


def truncate_to_width(
    text: str,
    max_width: int,
    ellipsis: str = "…",
    pad: bool = False,
) -> str:
    """Fit *text* into *max_width* columns, appending *ellipsis* when cut.

    With ``pad`` the result is right-padded with spaces to exactly
    *max_width* columns.
    """
    if max_width <= 0:
        return ""

    text_width = visible_width(text)
    if text_width <= max_width:
        return text + " " * (max_width - text_width) if pad else text

    target = max_width - visible_width(ellipsis)
    if target <= 0:
        result = _take_columns(ellipsis, max_width)
    else:
        result = _take_columns(text, target) + (RESET if "\x1b[" in text else "") + ellipsis

    if pad:
        result += " " * (max_width - visible_width(result))
    return result
