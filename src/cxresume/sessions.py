"""Reading Codex session logs from disk.

Codex writes one JSONL file per session under ``~/.codex/sessions`` (nested
by date). The first records carry a ``session_meta`` payload with the
session id, working directory and start time; dialog turns arrive as
``response_item`` records whose payload is a ``message``. Older logs put the
id in a top-level header and messages in top-level ``message`` records, and
some only carry ``event_msg`` user/agent messages. All three shapes are read.

The blocking readers (``read_*``, ``list_session_files``) are wrapped by
async functions that run them in a worker thread, so the picker's event loop
keeps handling input while files are parsed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Awaitable, Callable, Iterator, Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cxresume.errors import StorageMutationError, TransientFetchError
from cxresume.types import DialogTurn, SessionFileRef, SessionMeta

logger = logging.getLogger(__name__)

# How many records to scan for the session header before giving up
QUICK_META_MAX_LINES = 50

_DIALOG_ROLES = ("user", "assistant")


# --- Record models ---


class SessionMetaPayload(BaseModel):
    """Payload of a ``session_meta`` record (or a legacy header line)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    cwd: str | None = None
    timestamp: str | None = None


class ContentPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: str | None = None


class MessagePayload(BaseModel):
    """A ``message`` item: role plus a list of typed content parts."""

    model_config = ConfigDict(extra="ignore")

    type: str = "message"
    role: str = ""
    content: list[ContentPart] | str = Field(default_factory=list)

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n".join(
            part.text
            for part in self.content
            if part.type in ("input_text", "output_text", "text") and part.text
        )


class LogRecord(BaseModel):
    """One line of a session log. Unknown record types are kept loosely."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    timestamp: str | None = None
    payload: dict[str, Any] | None = None


# --- Low-level helpers ---


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def iter_records(path: str, limit: int | None = None) -> Iterator[dict[str, Any]]:
    """Yield the JSON objects of a JSONL file, skipping undecodable lines."""
    with open(path, encoding="utf-8", errors="replace") as f:
        for index, line in enumerate(f):
            if limit is not None and index >= limit:
                return
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                yield obj


# --- Discovery ---


def list_session_files(root: str) -> list[SessionFileRef]:
    """All ``*.jsonl`` files below *root*, newest first."""
    if not os.path.isdir(root):
        return []

    refs: list[SessionFileRef] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if not name.endswith(".jsonl"):
                continue
            full = os.path.join(dirpath, name)
            try:
                mtime = os.stat(full).st_mtime
            except OSError:
                # Files can disappear while we walk
                continue
            refs.append(
                SessionFileRef(
                    path=full,
                    relative_path=os.path.relpath(full, root),
                    modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                )
            )

    refs.sort(key=lambda r: r.modified_at, reverse=True)
    return refs


async def discover_sessions(root: str) -> list[SessionFileRef]:
    return await asyncio.to_thread(list_session_files, root)


def ref_for_path(path: str, root: str) -> SessionFileRef:
    """Build a ``SessionFileRef`` for a file that may live outside *root*."""
    mtime = os.stat(path).st_mtime
    rel = os.path.relpath(path, root) if root else os.path.basename(path)
    return SessionFileRef(
        path=path,
        relative_path=rel,
        modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
    )


# --- Quick metadata ---


def read_meta(path: str) -> SessionMeta:
    """Read id, working directory and start time from the head of a log."""
    for obj in iter_records(path, limit=QUICK_META_MAX_LINES):
        if obj.get("type") == "session_meta" and isinstance(obj.get("payload"), dict):
            raw = obj["payload"]
        elif "id" in obj and "type" not in obj:
            raw = obj
        else:
            continue
        try:
            payload = SessionMetaPayload.model_validate(raw)
        except ValidationError as exc:
            logger.debug("bad session header in %s: %s", path, exc)
            continue
        return SessionMeta(
            id=payload.id or None,
            working_directory=payload.cwd or None,
            started_at=parse_timestamp(payload.timestamp or obj.get("timestamp")),
        )
    return SessionMeta()


async def quick_meta(path: str) -> SessionMeta:
    try:
        return await asyncio.to_thread(read_meta, path)
    except OSError as exc:
        raise TransientFetchError(path, str(exc)) from exc


# --- Full parse ---


def _message_turn(payload: dict[str, Any], timestamp: str | None) -> DialogTurn | None:
    try:
        message = MessagePayload.model_validate(payload)
    except ValidationError:
        return None
    if message.type != "message" or message.role not in _DIALOG_ROLES:
        return None
    text = message.text()
    if not text.strip():
        return None
    return DialogTurn(role=message.role, text=text, timestamp=parse_timestamp(timestamp))


def _event_turn(payload: dict[str, Any], timestamp: str | None) -> DialogTurn | None:
    kind = payload.get("type")
    if kind == "user_message":
        role = "user"
    elif kind in ("agent_message", "assistant_message"):
        role = "assistant"
    else:
        return None
    text = payload.get("message") or payload.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    return DialogTurn(role=role, text=text, timestamp=parse_timestamp(timestamp))


def read_turns(path: str) -> list[DialogTurn]:
    """All user/assistant turns of a log, in file order.

    ``response_item`` messages (and legacy top-level ``message`` records) are
    the primary source. Codex mirrors the same dialog as ``event_msg``
    records, which are only used for logs that carry nothing else.
    """
    items: list[DialogTurn] = []
    events: list[DialogTurn] = []
    for obj in iter_records(path):
        try:
            record = LogRecord.model_validate(obj)
        except ValidationError:
            continue
        turn: DialogTurn | None = None
        if record.type == "response_item" and record.payload:
            turn = _message_turn(record.payload, record.timestamp)
            if turn:
                items.append(turn)
        elif record.type == "message":
            turn = _message_turn(obj, record.timestamp)
            if turn:
                items.append(turn)
        elif record.type == "event_msg" and record.payload:
            turn = _event_turn(record.payload, record.timestamp)
            if turn:
                events.append(turn)
    return items or events


async def full_parse(path: str) -> list[DialogTurn]:
    try:
        return await asyncio.to_thread(read_turns, path)
    except OSError as exc:
        raise TransientFetchError(path, str(exc)) from exc


# --- Search and filters ---


def _matches(path: str, needle: str) -> bool:
    try:
        turns = read_turns(path)
    except OSError as exc:
        logger.debug("search skipped %s: %s", path, exc)
        return False
    return any(needle in turn.text.lower() for turn in turns)


async def search_sessions(files: Sequence[SessionFileRef], query: str) -> list[SessionFileRef]:
    """Sessions whose dialog text contains *query* (case-insensitive)."""
    needle = query.lower()
    if not needle:
        return list(files)
    results: list[SessionFileRef] = []
    for ref in files:
        if await asyncio.to_thread(_matches, ref.path, needle):
            results.append(ref)
    return results


def same_directory(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


async def filter_by_directory(
    files: Sequence[SessionFileRef],
    cwd: str,
    *,
    meta: Callable[[str], Awaitable[SessionMeta]] = quick_meta,
) -> list[SessionFileRef]:
    """Sessions whose recorded working directory is *cwd*.

    *meta* reads the header of one session; unreadable sessions are skipped.
    """
    matches: list[SessionFileRef] = []
    for ref in files:
        try:
            header = await meta(ref.path)
        except TransientFetchError as exc:
            logger.debug("directory filter skipped %s: %s", ref.path, exc.reason)
            continue
        if header.working_directory and same_directory(header.working_directory, cwd):
            matches.append(ref)
    return matches


# --- Mutations ---


async def delete_session_file(path: str) -> None:
    try:
        await asyncio.to_thread(os.unlink, path)
    except OSError as exc:
        raise StorageMutationError(path, exc.strerror or str(exc)) from exc
    logger.info("deleted session log %s", path)


# --- Clipboard ---


def _clipboard_commands() -> list[list[str]]:
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if sys.platform.startswith("win"):
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


def copy_text_to_clipboard(text: str) -> bool:
    """Best-effort copy through the platform's clipboard tool."""
    for cmd in _clipboard_commands():
        if shutil.which(cmd[0]) is None:
            continue
        try:
            subprocess.run(
                cmd,
                input=text,
                text=True,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=2,
            )
            return True
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("clipboard command %s failed: %s", cmd[0], exc)
    return False


async def copy_to_clipboard(text: str) -> bool:
    return await asyncio.to_thread(copy_text_to_clipboard, text)


# --- Store ---


class FileSessionStore:
    """The on-disk implementation of the picker's ``SessionStore``."""

    async def quick_meta(self, path: str) -> SessionMeta:
        return await quick_meta(path)

    async def full_parse(self, path: str) -> list[DialogTurn]:
        return await full_parse(path)

    async def delete(self, path: str) -> None:
        await delete_session_file(path)

    async def copy_to_clipboard(self, text: str) -> bool:
        return await copy_to_clipboard(text)
