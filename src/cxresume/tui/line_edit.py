"""Single-line text editing as an immutable value.

``LineEdit`` holds a value and a cursor; every edit returns a new instance,
so modal state built on it can live inside a frozen picker state.
Cursor movement and deletion step over whole grapheme clusters.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from cxresume.tui.keys import Key, is_text_input, parse_key, unwrap_paste
from cxresume.tui.text import graphemes, visible_width


@dataclass(frozen=True)
class LineEdit:
    value: str = ""
    cursor: int = 0

    @classmethod
    def of(cls, value: str) -> LineEdit:
        return cls(value=value, cursor=len(value))

    # -- edits --------------------------------------------------------------

    def insert(self, text: str) -> LineEdit:
        text = text.replace("\r", " ").replace("\n", " ")
        value = self.value[: self.cursor] + text + self.value[self.cursor :]
        return LineEdit(value, self.cursor + len(text))

    def backspace(self) -> LineEdit:
        if self.cursor == 0:
            return self
        before = graphemes(self.value[: self.cursor])
        size = len(before[-1])
        return LineEdit(
            self.value[: self.cursor - size] + self.value[self.cursor :],
            self.cursor - size,
        )

    def delete_forward(self) -> LineEdit:
        if self.cursor >= len(self.value):
            return self
        size = len(graphemes(self.value[self.cursor :])[0])
        return replace(
            self, value=self.value[: self.cursor] + self.value[self.cursor + size :]
        )

    def move_left(self) -> LineEdit:
        if self.cursor == 0:
            return self
        return replace(self, cursor=self.cursor - len(graphemes(self.value[: self.cursor])[-1]))

    def move_right(self) -> LineEdit:
        if self.cursor >= len(self.value):
            return self
        return replace(self, cursor=self.cursor + len(graphemes(self.value[self.cursor :])[0]))

    def clear(self) -> LineEdit:
        return LineEdit()

    # -- key dispatch -------------------------------------------------------

    def handle_key(self, data: str) -> LineEdit:
        """Apply one raw input sequence. Unknown keys leave the value as is."""
        pasted = unwrap_paste(data)
        if pasted is not None:
            return self.insert(pasted)

        key = parse_key(data)
        if key == Key.backspace:
            return self.backspace()
        if key == Key.delete:
            return self.delete_forward()
        if key == Key.left:
            return self.move_left()
        if key == Key.right:
            return self.move_right()
        if key in (Key.home, Key.ctrl("a")):
            return replace(self, cursor=0)
        if key in (Key.end, Key.ctrl("e")):
            return replace(self, cursor=len(self.value))
        if key == Key.ctrl("u"):
            return self.clear()
        if key == Key.space:
            return self.insert(" ")
        if is_text_input(data):
            return self.insert(data)
        return self

    # -- rendering ----------------------------------------------------------

    def render(self, width: int, prompt: str = "> ") -> str:
        """Render with a reverse-video cursor, scrolled to keep it visible."""
        available = max(1, width - visible_width(prompt) - 1)
        before = self.value[: self.cursor]
        after = self.value[self.cursor :]

        # Drop leading clusters until the cursor fits
        head = graphemes(before)
        while head and visible_width("".join(head)) > available:
            head.pop(0)
        before = "".join(head)

        tail = graphemes(after)
        at_cursor = tail[0] if tail else " "
        rest = "".join(tail[1:])
        room = available - visible_width(before) - visible_width(at_cursor)
        while rest and visible_width(rest) > max(room, 0):
            rest = "".join(graphemes(rest)[:-1])

        return f"{prompt}{before}\x1b[7m{at_cursor}\x1b[27m{rest}"
