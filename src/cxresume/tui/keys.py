"""Keyboard input decoding.

Turns raw terminal bytes into key identifiers such as ``"up"``,
``"pageDown"``, ``"ctrl+c"`` or a literal printable character. Only the
legacy xterm/VT sequences the picker binds are recognised; anything else is
reported as ``None`` so callers can treat it as text or ignore it.
"""

from __future__ import annotations

ESC = "\x1b"
BRACKETED_PASTE_START = "\x1b[200~"
BRACKETED_PASTE_END = "\x1b[201~"

# ---------------------------------------------------------------------------
# Named keys
# ---------------------------------------------------------------------------


class Key:
    """Named key constants."""

    escape = "escape"
    enter = "enter"
    tab = "tab"
    space = "space"
    backspace = "backspace"
    delete = "delete"
    home = "home"
    end = "end"
    page_up = "pageUp"
    page_down = "pageDown"
    up = "up"
    down = "down"
    left = "left"
    right = "right"

    @staticmethod
    def ctrl(key: str) -> str:
        return f"ctrl+{key}"


LEGACY_KEY_SEQUENCES: dict[str, str] = {
    "\x1b[A": Key.up,
    "\x1b[B": Key.down,
    "\x1b[C": Key.right,
    "\x1b[D": Key.left,
    "\x1b[H": Key.home,
    "\x1b[F": Key.end,
    "\x1bOA": Key.up,
    "\x1bOB": Key.down,
    "\x1bOC": Key.right,
    "\x1bOD": Key.left,
    "\x1bOH": Key.home,
    "\x1bOF": Key.end,
    "\x1b[1~": Key.home,
    "\x1b[4~": Key.end,
    "\x1b[7~": Key.home,
    "\x1b[8~": Key.end,
    "\x1b[3~": Key.delete,
    "\x1b[5~": Key.page_up,
    "\x1b[6~": Key.page_down,
}


# ---------------------------------------------------------------------------
# parse_key
# ---------------------------------------------------------------------------


def parse_key(data: str) -> str | None:
    """Return the key identifier for one complete input sequence."""
    if not data:
        return None

    named = LEGACY_KEY_SEQUENCES.get(data)
    if named is not None:
        return named

    if data == ESC:
        return Key.escape
    if data in ("\r", "\n"):
        return Key.enter
    if data == "\t":
        return Key.tab
    if data == " ":
        return Key.space
    if data in ("\x7f", "\x08"):
        return Key.backspace

    # Ctrl + letter (0x01 - 0x1a); CR/LF/TAB/BS were handled above
    if len(data) == 1 and 1 <= ord(data) <= 26:
        return Key.ctrl(chr(ord(data) + ord("a") - 1))

    if len(data) == 1 and data.isprintable():
        return data

    return None


def is_text_input(data: str) -> bool:
    """True when *data* is printable text rather than a control sequence."""
    return bool(data) and not data.startswith(ESC) and data.isprintable()


# ---------------------------------------------------------------------------
# Sequence splitting
# ---------------------------------------------------------------------------


def _sequence_end(data: str, start: int) -> int:
    """Index one past the escape sequence beginning at *start*.

    Returns ``-1`` when the sequence is not complete yet.
    """
    if start + 1 >= len(data):
        return -1
    kind = data[start + 1]

    if kind == "[":
        i = start + 2
        while i < len(data):
            if 0x40 <= ord(data[i]) <= 0x7E:
                return i + 1
            i += 1
        return -1

    if kind == "O":
        return start + 3 if start + 2 < len(data) else -1

    if kind in "]_P":
        for terminator in ("\x07", "\x1b\\"):
            idx = data.find(terminator, start + 2)
            if idx != -1:
                return idx + len(terminator)
        return -1

    # ESC followed by a single character (alt+key)
    return start + 2


def split_sequences(buffer: str) -> tuple[list[str], str]:
    """Split accumulated input into complete key sequences.

    Returns ``(sequences, remainder)``; the remainder is an unfinished
    escape sequence that needs more bytes. Bracketed pastes come back as a
    single sequence still wrapped in their start/end markers. Runs of plain
    characters are split one character per sequence.
    """
    sequences: list[str] = []
    i = 0
    while i < len(buffer):
        if buffer.startswith(BRACKETED_PASTE_START, i):
            end = buffer.find(BRACKETED_PASTE_END, i)
            if end == -1:
                return sequences, buffer[i:]
            end += len(BRACKETED_PASTE_END)
            sequences.append(buffer[i:end])
            i = end
            continue

        if buffer[i] == ESC:
            end = _sequence_end(buffer, i)
            if end == -1:
                return sequences, buffer[i:]
            sequences.append(buffer[i:end])
            i = end
            continue

        sequences.append(buffer[i])
        i += 1
    return sequences, ""


def unwrap_paste(data: str) -> str | None:
    """Return the pasted text of a bracketed paste, or ``None``."""
    if data.startswith(BRACKETED_PASTE_START) and data.endswith(BRACKETED_PASTE_END):
        return data[len(BRACKETED_PASTE_START) : -len(BRACKETED_PASTE_END)]
    return None
