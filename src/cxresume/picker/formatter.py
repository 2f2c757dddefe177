"""Block-style conversation preview.

Each dialog turn becomes a header line (role and time) followed by its body,
every visual line prefixed by a role-coloured bar so a turn reads as one
block::

    ┃ User 14:02:11
    ┃ please rename the config loader
    <blank>
    ┃ AI 14:02:19
    ┃ Done. I also updated the tests.
    <blank>

``format_preview`` is pure: the preview cache depends on identical inputs
giving byte-identical output.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from cxresume.tui.text import hard_wrap, sanitize, truncate_to_width, visible_width
from cxresume.types import DialogTurn, Role

MARKER = "┃ "
MARKER_WIDTH = 2
# Narrowest wrap width that still leaves two columns of text after the marker
MIN_WRAP_WIDTH = MARKER_WIDTH + 2


def rgb(r: int, g: int, b: int) -> Callable[[str], str]:
    def style(text: str) -> str:
        return f"\x1b[38;2;{r};{g};{b}m{text}\x1b[39m"

    return style


def _identity(text: str) -> str:
    return text


@dataclass(frozen=True)
class PreviewTheme:
    user: Callable[[str], str] = rgb(0xFF, 0x95, 0x00)
    assistant: Callable[[str], str] = rgb(0x5A, 0xF7, 0x8E)
    other: Callable[[str], str] = rgb(0xBF, 0x5A, 0xF2)
    time: Callable[[str], str] = rgb(0x80, 0x80, 0x80)

    def for_role(self, role: Role) -> Callable[[str], str]:
        if role == "user":
            return self.user
        if role == "assistant":
            return self.assistant
        return self.other


DEFAULT_THEME = PreviewTheme()
PLAIN_THEME = PreviewTheme(
    user=_identity, assistant=_identity, other=_identity, time=_identity
)


def role_label(role: Role) -> str:
    if role == "user":
        return "User"
    if role == "assistant":
        return "AI"
    return role.capitalize()


def _clock(ts: datetime) -> str:
    # Aware timestamps are shown in local time, naive ones as recorded
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime("%H:%M:%S")


def format_preview(
    turns: Iterable[DialogTurn],
    hidden_roles: Iterable[Role] = frozenset(),
    wrap_width: int | None = None,
    theme: PreviewTheme = DEFAULT_THEME,
) -> str:
    """Render *turns* as wrapped, role-marked preview text.

    Turns whose role is in *hidden_roles* are skipped. With *wrap_width*
    no visual line, header included, is wider than that many columns;
    without it body lines are emitted unwrapped.
    """
    hidden = frozenset(hidden_roles)
    if wrap_width is not None:
        wrap_width = max(wrap_width, MIN_WRAP_WIDTH)
    content_width = wrap_width - MARKER_WIDTH if wrap_width is not None else None

    out: list[str] = []
    for turn in turns:
        if turn.role in hidden:
            continue
        style = theme.for_role(turn.role)
        bar = style(MARKER)

        stamp = _clock(turn.timestamp) if turn.timestamp else ""
        header = style(role_label(turn.role))
        if stamp:
            header += " " + theme.time(stamp)
        if content_width is not None and visible_width(header) > content_width:
            header = truncate_to_width(header, content_width, "")
        out.append(bar + header)

        for raw in sanitize(turn.text).split("\n"):
            if content_width is None:
                out.append(bar + raw)
                continue
            out.extend(bar + piece for piece in hard_wrap(raw, content_width))

        out.append("")

    return "\n".join(out)
