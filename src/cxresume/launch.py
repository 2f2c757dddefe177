"""Building and running the agent command line."""

from __future__ import annotations

import logging
import os
import subprocess

from cxresume.errors import LaunchError

logger = logging.getLogger(__name__)


def shell_quote(arg: str) -> str:
    """Quote *arg* as one POSIX shell word, always single-quoted."""
    if arg == "":
        return "''"
    return "'" + arg.replace("'", "'\\''") + "'"


def build_resume_command(codex_cmd: str, session_id: str, extra_args: str = "") -> str:
    """``<codex> resume '<id>' [extra args]``; *extra_args* is passed through verbatim."""
    parts = [codex_cmd, "resume", shell_quote(session_id), extra_args.strip()]
    return " ".join(p for p in parts if p)


def build_new_command(codex_cmd: str, extra_args: str = "") -> str:
    return " ".join(p for p in (codex_cmd, extra_args.strip()) if p)


def launch_command(command: str, cwd: str | None = None) -> int:
    """Run *command* through the shell with the terminal attached.

    Returns the exit status. Raises ``LaunchError`` when the process cannot
    be started at all.
    """
    workdir = cwd or os.getcwd()
    logger.info("launching %r in %s", command, workdir)
    try:
        completed = subprocess.run(command, shell=True, cwd=workdir, check=False)
    except OSError as exc:
        raise LaunchError(f"Could not start {command!r}: {exc}") from exc
    if completed.returncode != 0:
        logger.debug("%r exited with status %d", command, completed.returncode)
    return completed.returncode
