"""Differential full-screen renderer.

``Screen`` keeps the previously written frame and only rewrites rows whose
content changed. A width change or an explicit ``invalidate`` forces a
full redraw.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cxresume.tui.text import RESET, slice_columns, truncate_to_width, visible_width

if TYPE_CHECKING:
    from cxresume.tui.terminal import Terminal

_MOVE_TO_FMT = "\x1b[{};1H"
_CLEAR_LINE = "\x1b[2K"

# Synchronized output (DEC mode 2026); terminals without support ignore it
_SYNC_BEGIN = "\x1b[?2026h"
_SYNC_END = "\x1b[?2026l"


class Screen:
    def __init__(self, terminal: Terminal) -> None:
        self.terminal = terminal
        self._previous: list[str] = []
        self._previous_width = 0
        self._full_redraws = 0

    @property
    def full_redraws(self) -> int:
        return self._full_redraws

    def invalidate(self) -> None:
        self._previous = []

    def render(self, lines: list[str]) -> None:
        """Write *lines* as the new frame, clipped to the terminal size."""
        width = self.terminal.columns
        height = self.terminal.rows
        frame = [truncate_to_width(line, width, "", pad=True) for line in lines[:height]]
        frame += [" " * width] * (height - len(frame))

        full = width != self._previous_width or len(self._previous) != len(frame)
        if full:
            self._full_redraws += 1

        buf = [_SYNC_BEGIN]
        if full:
            buf.append("\x1b[2J")
        for row, line in enumerate(frame):
            if not full and self._previous[row] == line:
                continue
            buf.append(_MOVE_TO_FMT.format(row + 1))
            buf.append(_CLEAR_LINE)
            buf.append(line)
            buf.append(RESET)
        buf.append(_SYNC_END)

        self.terminal.write("".join(buf))
        self._previous = frame
        self._previous_width = width


def composite(base: list[str], box: list[str], width: int, height: int) -> list[str]:
    """Draw *box* centred on top of *base* and return the merged rows."""
    rows = list(base) + [""] * max(0, height - len(base))
    box_width = max((visible_width(line) for line in box), default=0)
    top = max(0, (height - len(box)) // 2)
    left = max(0, (width - box_width) // 2)

    for offset, line in enumerate(box):
        row = top + offset
        if row >= len(rows):
            break
        under = rows[row]
        head = slice_columns(under, 0, left)
        rows[row] = (
            head
            + " " * (left - visible_width(head))
            + RESET
            + truncate_to_width(line, box_width, "", pad=True)
            + RESET
            + slice_columns(under, left + box_width, max(0, width - left - box_width))
        )
    return rows
