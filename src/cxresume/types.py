"""Core value types shared by the session store, the picker and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = str  # "user" | "assistant" for parsed logs; hide sets may name others

ActionKind = Literal["resume", "startNew", "workspaceCreate"]


@dataclass(frozen=True)
class SessionFileRef:
    """One session log found on disk. Identity is ``path``."""

    path: str
    relative_path: str
    modified_at: datetime


@dataclass(frozen=True)
class SessionMeta:
    """Cheap metadata read from the head of a session log."""

    id: str | None = None
    working_directory: str | None = None
    started_at: datetime | None = None


@dataclass(frozen=True)
class DialogTurn:
    role: Role
    text: str
    timestamp: datetime | None = None


@dataclass(frozen=True)
class SessionSummary:
    turn_count: int
    last_role: Role | None

    @classmethod
    def from_turns(cls, turns: list[DialogTurn]) -> SessionSummary:
        return cls(
            turn_count=len(turns),
            last_role=turns[-1].role if turns else None,
        )


@dataclass(frozen=True)
class SessionId:
    """A session identifier plus whether it is a stand-in.

    Logs without an id in their header are addressed by their path relative
    to the sessions root. That is a different namespace from real ids, so
    the fallback is carried explicitly and rendered differently.
    """

    value: str
    is_fallback: bool = False


def resolve_session_id(ref: SessionFileRef, meta: SessionMeta | None) -> SessionId:
    if meta is not None and meta.id:
        return SessionId(meta.id)
    return SessionId(ref.relative_path or ref.path, is_fallback=True)


@dataclass(frozen=True)
class Action:
    """The single result a picker run hands back to its caller."""

    kind: ActionKind
    path: str | None = None
    working_directory: str | None = None
    extra_args: str = ""
