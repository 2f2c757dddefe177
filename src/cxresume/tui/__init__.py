"""Minimal terminal toolkit used by the session picker."""

from cxresume.tui.keys import Key, parse_key, split_sequences
from cxresume.tui.line_edit import LineEdit
from cxresume.tui.screen import Screen, composite
from cxresume.tui.terminal import ProcessTerminal, Terminal
from cxresume.tui.text import (
    hard_wrap,
    sanitize,
    slice_columns,
    strip_ansi,
    truncate_to_width,
    visible_width,
)

__all__ = [
    "Key",
    "LineEdit",
    "ProcessTerminal",
    "Screen",
    "Terminal",
    "composite",
    "hard_wrap",
    "parse_key",
    "sanitize",
    "slice_columns",
    "split_sequences",
    "strip_ansi",
    "truncate_to_width",
    "visible_width",
]
