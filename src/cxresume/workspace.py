"""Per-directory record of the sessions that belong to a workspace.

The record is ``<cwd>/.cxresume/sessions.json``::

    {"version": 1, "sessionIds": ["0199...", "0199..."]}

Ids are kept oldest first, so the last entry is the latest session.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cxresume.errors import TransientFetchError
from cxresume.launch import build_new_command, launch_command
from cxresume.sessions import discover_sessions, quick_meta, same_directory
from cxresume.types import SessionFileRef

logger = logging.getLogger(__name__)

WORKSPACE_DIR_NAME = ".cxresume"
RECORD_FILE_NAME = "sessions.json"


class WorkspaceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    session_ids: list[str] = Field(default_factory=list, alias="sessionIds")


def record_path(cwd: str) -> str:
    return os.path.join(cwd, WORKSPACE_DIR_NAME, RECORD_FILE_NAME)


def read_workspace_session_ids(cwd: str) -> list[str]:
    path = record_path(cwd)
    if not os.path.exists(path):
        return []
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return WorkspaceRecord.model_validate(data).session_ids
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("ignoring unreadable workspace record %s: %s", path, exc)
        return []


def write_workspace_session_ids(cwd: str, ids: Sequence[str]) -> None:
    path = record_path(cwd)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    record = WorkspaceRecord(session_ids=list(ids))
    Path(path).write_text(
        json.dumps(record.model_dump(by_alias=True), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


def add_workspace_session_ids(cwd: str, ids: Sequence[str]) -> list[str]:
    """Append *ids* not yet recorded and return the full list."""
    current = read_workspace_session_ids(cwd)
    changed = False
    for session_id in ids:
        if session_id not in current:
            current.append(session_id)
            changed = True
    if changed:
        write_workspace_session_ids(cwd, current)
    return current


async def _ids_for_directory(files: Sequence[SessionFileRef], cwd: str) -> list[str]:
    """Ids of sessions in *files* recorded in *cwd*, oldest first."""
    ids: list[str] = []
    for ref in sorted(files, key=lambda r: r.modified_at):
        try:
            meta = await quick_meta(ref.path)
        except TransientFetchError as exc:
            logger.debug("skipping %s: %s", ref.path, exc.reason)
            continue
        if meta.id and meta.working_directory and same_directory(meta.working_directory, cwd):
            ids.append(meta.id)
    return ids


async def ensure_workspace_session_ids(cwd: str, root: str) -> list[str]:
    """The recorded ids for *cwd*, seeding the record on first use."""
    ids = read_workspace_session_ids(cwd)
    if ids:
        return ids
    seeded = await _ids_for_directory(await discover_sessions(root), cwd)
    if seeded:
        write_workspace_session_ids(cwd, seeded)
        logger.info("seeded workspace record for %s with %d sessions", cwd, len(seeded))
    return seeded


async def find_sessions_by_ids(
    root: str, ids: Sequence[str]
) -> tuple[list[SessionFileRef], list[str]]:
    """Session files for *ids* (newest first) and the ids with no file."""
    wanted = set(ids)
    found: dict[str, SessionFileRef] = {}
    for ref in await discover_sessions(root):
        if len(found) == len(wanted):
            break
        try:
            meta = await quick_meta(ref.path)
        except TransientFetchError:
            continue
        if meta.id in wanted and meta.id not in found:
            found[meta.id] = ref
    files = sorted(found.values(), key=lambda r: r.modified_at, reverse=True)
    missing = [i for i in ids if i not in found]
    return files, missing


async def create_workspace_session(
    cwd: str,
    root: str,
    codex_cmd: str,
    extra_args: str = "",
    *,
    launcher: Callable[[str, str], int] = launch_command,
) -> list[str]:
    """Launch a fresh agent in *cwd* and record the sessions it created.

    Returns the ids that were added to the workspace record.
    """
    before = {ref.path for ref in await discover_sessions(root)}
    command = build_new_command(codex_cmd, extra_args)
    await asyncio.to_thread(launcher, command, cwd)

    created = [ref for ref in await discover_sessions(root) if ref.path not in before]
    new_ids = await _ids_for_directory(created, cwd)
    if new_ids:
        add_workspace_session_ids(cwd, new_ids)
    else:
        logger.info("no new session was recorded for %s", cwd)
    return new_ids
