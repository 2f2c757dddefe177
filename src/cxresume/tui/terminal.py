"""Terminal abstraction for raw-mode stdin/stdout interaction.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal`` that
switches the tty to raw mode, uses the alternate screen, enables bracketed
paste, and reads stdin through the asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable, Protocol

from cxresume.tui.keys import split_sequences

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_ALT_SCREEN_ENTER = "\x1b[?1049h"
_ALT_SCREEN_LEAVE = "\x1b[?1049l"
_BRACKETED_PASTE_ENABLE = "\x1b[?2004h"
_BRACKETED_PASTE_DISABLE = "\x1b[?2004l"
_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"
_SET_TITLE_FMT = "\x1b]0;{}\x07"

# A lone ESC is only an escape keypress if nothing follows it quickly
_ESCAPE_TIMEOUT = 0.05


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal I/O operations."""

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def clear_screen(self) -> None: ...

    def set_title(self, title: str) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Terminal backed by ``sys.stdin``/``sys.stdout``.

    Input is delivered one complete key sequence at a time. Resize
    notifications come from SIGWINCH.
    """

    def __init__(self) -> None:
        self._input_handler: Callable[[str], None] | None = None
        self._resize_handler: Callable[[], None] | None = None
        self._original_termios: list | None = None
        self._prev_sigwinch_handler: signal.Handlers | None = None
        self._reader_active = False
        self._pending = ""
        self._flush_handle: asyncio.TimerHandle | None = None

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).columns
        except (ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).lines
        except (ValueError, OSError):
            return 24

    # -- start / stop -------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        """Enter raw mode and the alternate screen, begin reading stdin."""
        self._input_handler = on_input
        self._resize_handler = on_resize

        fd = sys.stdin.fileno()
        self._original_termios = termios.tcgetattr(fd)
        tty.setraw(fd)

        self._raw_write(_ALT_SCREEN_ENTER + _BRACKETED_PASTE_ENABLE)

        self._prev_sigwinch_handler = signal.getsignal(signal.SIGWINCH)
        signal.signal(signal.SIGWINCH, self._on_sigwinch)

        loop = asyncio.get_running_loop()
        loop.add_reader(fd, self._on_stdin_readable)
        self._reader_active = True

    def stop(self) -> None:
        """Restore the terminal exactly as it was before ``start``."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

        fd = sys.stdin.fileno()
        if self._reader_active:
            try:
                asyncio.get_running_loop().remove_reader(fd)
            except (RuntimeError, ValueError):
                pass
            self._reader_active = False

        if self._prev_sigwinch_handler is not None:
            signal.signal(signal.SIGWINCH, self._prev_sigwinch_handler)
            self._prev_sigwinch_handler = None

        self._raw_write(_BRACKETED_PASTE_DISABLE + _ALT_SCREEN_LEAVE)

        if self._original_termios is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, self._original_termios)
            self._original_termios = None

        self._input_handler = None
        self._resize_handler = None

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        self._raw_write(data)

    def hide_cursor(self) -> None:
        self._raw_write(_HIDE_CURSOR)

    def show_cursor(self) -> None:
        self._raw_write(_SHOW_CURSOR)

    def clear_screen(self) -> None:
        self._raw_write(_CLEAR_SCREEN)

    def set_title(self, title: str) -> None:
        self._raw_write(_SET_TITLE_FMT.format(title))

    # -- private: stdin -----------------------------------------------------

    def _on_stdin_readable(self) -> None:
        try:
            raw = os.read(sys.stdin.fileno(), 4096)
        except OSError as exc:
            logger.debug("stdin read failed: %s", exc)
            return
        if not raw:
            return
        self._feed(raw.decode("utf-8", errors="replace"))

    def _feed(self, data: str) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

        sequences, self._pending = split_sequences(self._pending + data)
        for seq in sequences:
            self._emit(seq)

        if self._pending:
            loop = asyncio.get_running_loop()
            self._flush_handle = loop.call_later(_ESCAPE_TIMEOUT, self._flush_pending)

    def _flush_pending(self) -> None:
        self._flush_handle = None
        pending, self._pending = self._pending, ""
        if pending:
            self._emit(pending)

    def _emit(self, seq: str) -> None:
        if self._input_handler is not None:
            self._input_handler(seq)

    # -- private: SIGWINCH --------------------------------------------------

    def _on_sigwinch(self, signum: int, frame: object) -> None:
        if self._resize_handler is not None:
            self._resize_handler()

    # -- private: raw write -------------------------------------------------

    def _raw_write(self, data: str) -> None:
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError:
            pass
