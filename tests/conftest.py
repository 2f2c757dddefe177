from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from cxresume.types import SessionFileRef

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_ref(name: str, minutes_ago: int = 0) -> SessionFileRef:
    return SessionFileRef(
        path=f"/logs/{name}.jsonl",
        relative_path=f"{name}.jsonl",
        modified_at=NOW - timedelta(minutes=minutes_ago),
    )


def make_refs(count: int, prefix: str = "s") -> tuple[SessionFileRef, ...]:
    return tuple(make_ref(f"{prefix}{i:03d}", i) for i in range(count))


def write_log(path, records: list[dict], mtime: float | None = None) -> str:
    """Write *records* as a JSONL session log and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return str(path)


def codex_log(session_id: str, cwd: str, *messages: tuple[str, str]) -> list[dict]:
    """Records of a current-format Codex log with the given (role, text) turns."""
    records: list[dict] = [
        {
            "timestamp": "2025-03-01T10:00:00.000Z",
            "type": "session_meta",
            "payload": {"id": session_id, "cwd": cwd, "timestamp": "2025-03-01T10:00:00.000Z"},
        }
    ]
    for i, (role, text) in enumerate(messages):
        part = "input_text" if role == "user" else "output_text"
        records.append(
            {
                "timestamp": f"2025-03-01T10:00:{i:02d}.000Z",
                "type": "response_item",
                "payload": {"type": "message", "role": role, "content": [{"type": part, "text": text}]},
            }
        )
        kind = "user_message" if role == "user" else "agent_message"
        records.append(
            {
                "timestamp": f"2025-03-01T10:00:{i:02d}.000Z",
                "type": "event_msg",
                "payload": {"type": kind, "message": text},
            }
        )
    return records


@pytest.fixture
def sessions_root(tmp_path):
    root = tmp_path / "sessions"
    root.mkdir()
    return root
