"""CLI entry point for cxresume.

Finds a session (interactively, by search, or by file), then runs
``codex resume <id>`` for it. With the ``cwd`` positional the picker is
limited to the sessions recorded for the current directory.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shutil
import sys
import tempfile
from collections.abc import Sequence

from cxresume import __version__
from cxresume.config import SettingsManager, resolve_logs_root
from cxresume.errors import LaunchError, TransientFetchError
from cxresume.launch import build_new_command, build_resume_command, launch_command
from cxresume.picker import PickerOptions, pick_session
from cxresume.picker.formatter import format_preview
from cxresume.sessions import (
    full_parse,
    list_session_files,
    quick_meta,
    ref_for_path,
    search_sessions,
)
from cxresume.types import Action, SessionFileRef, resolve_session_id
from cxresume.workspace import (
    create_workspace_session,
    ensure_workspace_session_ids,
    find_sessions_by_ids,
)

logger = logging.getLogger(__name__)

HIDE_CHOICES = ("tool", "thinking", "user", "assistant", "system")
DEFAULT_HIDE = ["tool", "thinking"]
LIST_LIMIT = 100
PREVIEW_TURNS = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cxresume",
        description="Resume Codex sessions from ~/.codex/sessions",
        epilog=(
            "positionals:\n"
            "  cwd    only sessions recorded for the current workspace\n"
            "  .      prefer sessions started in the current directory"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("targets", nargs="*", metavar="cwd|.", help=argparse.SUPPRESS)
    parser.add_argument("--list", action="store_true", help="List recent session files")
    parser.add_argument("--open", metavar="FILE", help="Open a specific session file")
    parser.add_argument("--root", metavar="DIR", help="Override sessions root (default: ~/.codex/sessions)")
    parser.add_argument("--codex", metavar="CMD", help='Codex launch command (default: "codex")')
    parser.add_argument("--search", metavar="TEXT", help="Content search, then pick from matches")
    parser.add_argument(
        "--preview",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Print the last few turns before resuming",
    )
    parser.add_argument(
        "--hide",
        nargs="*",
        metavar="TYPE",
        help="Hide types in preview: tool thinking user assistant system (default: tool thinking)",
    )
    parser.add_argument("--print", dest="print_only", action="store_true", help="Only print the command and exit")
    parser.add_argument("--no-launch", action="store_true", help="Do not launch Codex")
    parser.add_argument(
        "-n", "--new", dest="new_session", action="store_true",
        help='(with "cwd") create and record a new workspace session',
    )
    parser.add_argument(
        "-l", "--latest", dest="resume_latest", action="store_true",
        help='(with "cwd") resume the most recent recorded workspace session',
    )
    parser.add_argument("--debug", action="store_true", help="Write debug logs")
    parser.add_argument("--log-file", metavar="PATH", help="Write logs to PATH")
    parser.add_argument("-v", "--version", action="version", version=__version__)
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse *argv*, handing words after --hide that are not types back to the positionals."""
    args = build_parser().parse_args(argv)
    if args.hide:
        count = 0
        while count < len(args.hide) and args.hide[count] in HIDE_CHOICES:
            count += 1
        args.targets = list(args.targets) + args.hide[count:]
        args.hide = args.hide[:count]
    return args


def configure_logging(debug: bool, log_file: str | None) -> None:
    """Log to a file when asked to; the picker owns the terminal otherwise."""
    path = log_file or os.environ.get("CXRESUME_LOG")
    if debug and not path:
        path = os.path.join(tempfile.gettempdir(), "cxresume.log")
    if path:
        level = logging.DEBUG if debug else logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        filename=path,
    )


class Runner:
    """One invocation of the command: settings plus the parsed arguments."""

    def __init__(self, args: argparse.Namespace, settings: SettingsManager) -> None:
        self.args = args
        self.settings = settings
        self.root = resolve_logs_root(settings.get_logs_root())
        self.codex_cmd = settings.get_codex_cmd()
        self.cwd = os.getcwd()
        if args.hide is None:
            self.hidden = settings.get_hidden_roles()
        else:
            self.hidden = list(args.hide) or DEFAULT_HIDE

    # --- Launching ---

    def resume(self, session_id: str, extra_args: str = "", working_dir: str | None = None) -> int:
        command = build_resume_command(self.codex_cmd, session_id, extra_args)
        return self._run(command, working_dir)

    def start_new(self, extra_args: str = "", working_dir: str | None = None) -> int:
        return self._run(build_new_command(self.codex_cmd, extra_args), working_dir)

    def _run(self, command: str, working_dir: str | None) -> int:
        if self.args.print_only:
            print(command)
            return 0
        if self.args.no_launch:
            print(f"Command generated but not launched (--no-launch): {command}")
            return 0
        try:
            return launch_command(command, working_dir or self.cwd)
        except LaunchError as exc:
            print(f"Could not start Codex: {exc}", file=sys.stderr)
            return 1

    async def create_workspace_session(self, extra_args: str = "") -> int:
        if self.args.print_only or self.args.no_launch:
            return self.start_new(extra_args, self.cwd)
        try:
            ids = await create_workspace_session(self.cwd, self.root, self.codex_cmd, extra_args)
        except LaunchError as exc:
            print(f"Failed to create a new workspace session: {exc}", file=sys.stderr)
            return 1
        if ids:
            print(f"Recorded {len(ids)} new session(s) for {self.cwd}")
        return 0

    # --- Picker ---

    async def pick(
        self, files: Sequence[SessionFileRef], *, workspace_mode: bool, current_dir_only: bool
    ) -> Action | None:
        if not sys.stdin.isatty() or not sys.stdout.isatty():
            print("The interactive picker needs a terminal.", file=sys.stderr)
            return None
        options = PickerOptions(
            hidden_roles=frozenset(self.hidden),
            start_in_workspace_mode=workspace_mode,
            current_directory_only=current_dir_only,
            page_size=self.settings.get_page_size(),
        )
        return await pick_session(files, options, cwd=self.cwd)

    async def handle_action(self, action: Action) -> int | str:
        """Launch for ``startNew``/``workspaceCreate``; return the path to resume otherwise."""
        if action.kind == "startNew":
            return self.start_new(action.extra_args, action.working_directory)
        if action.kind == "workspaceCreate":
            return await self.create_workspace_session(action.extra_args)
        return action.path or ""

    # --- Main flow ---

    async def list_sessions(self) -> int:
        files = list_session_files(self.root)
        if not files:
            print(f"No session files found. Root: {self.root}")
            return 0
        print(f"Found {len(files)} sessions under {self.root}")
        for ref in files[:LIST_LIMIT]:
            stamp = ref.modified_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            print(f"- {ref.relative_path} ({stamp})")
        if len(files) > LIST_LIMIT:
            print(f"... and {len(files) - LIST_LIMIT} more")
        return 0

    async def run(self) -> int:
        args = self.args
        if args.list:
            return await self.list_sessions()

        targets = list(args.targets)
        workspace_mode = "cwd" in targets
        current_dir_only = not workspace_mode and "." in targets
        unknown = [t for t in targets if t not in ("cwd", ".")]
        if unknown:
            logger.warning("ignoring unknown arguments: %s", " ".join(unknown))

        if workspace_mode and args.new_session and args.resume_latest:
            print("Options -n and -l cannot be used together.", file=sys.stderr)
            return 2

        workspace_ids: list[str] = []
        workspace_files: list[SessionFileRef] = []
        if workspace_mode:
            if args.new_session:
                return await self.create_workspace_session()
            workspace_ids = await ensure_workspace_session_ids(self.cwd, self.root)
            if args.resume_latest:
                if not workspace_ids:
                    print("No sessions recorded for this directory yet.")
                    return 0
                return self.resume(workspace_ids[-1])
            workspace_files, missing = await find_sessions_by_ids(self.root, workspace_ids)
            if not workspace_files and workspace_ids:
                # Codex may still be flushing a just-created log
                await asyncio.sleep(0.3)
                workspace_files, missing = await find_sessions_by_ids(self.root, workspace_ids)
            if missing:
                logger.debug("missing session files for ids: %s", ", ".join(missing))
        workspace_paths = {os.path.realpath(ref.path) for ref in workspace_files}

        target: str | None = args.open
        extra_args = ""
        working_dir: str | None = None

        if args.search:
            results = await search_sessions(list_session_files(self.root), args.search)
            if workspace_mode:
                results = [r for r in results if os.path.realpath(r.path) in workspace_paths]
            if not results:
                suffix = " (workspace sessions only)" if workspace_mode else ""
                print(f'No matches for "{args.search}" under {self.root}{suffix}.')
                return 0
            action = await self.pick(results, workspace_mode=workspace_mode, current_dir_only=False)
            if action is None:
                return 0
            outcome = await self.handle_action(action)
            if isinstance(outcome, int):
                return outcome
            target, extra_args, working_dir = outcome, action.extra_args, action.working_directory
        elif target is None:
            if workspace_mode:
                files = workspace_files
                if not files:
                    if workspace_ids:
                        print("Session files not found yet; try again shortly or check ~/.codex/sessions.")
                    else:
                        print("No sessions recorded for this directory yet.")
                    return 0
            else:
                files = list_session_files(self.root)
                if not files:
                    print(f"No session files found. Root: {self.root}")
                    return 0
            action = await self.pick(
                files, workspace_mode=workspace_mode, current_dir_only=current_dir_only
            )
            if action is None:
                return 0
            outcome = await self.handle_action(action)
            if isinstance(outcome, int):
                return outcome
            target, extra_args, working_dir = outcome, action.extra_args, action.working_directory
        else:
            candidate = target if os.path.isabs(target) else os.path.join(self.root, target)
            if os.path.exists(candidate):
                target = candidate
            if workspace_mode and os.path.realpath(target) not in workspace_paths:
                print(
                    "This session is not recorded for the current directory; "
                    'use "cxresume cwd" to pick a recorded session.',
                    file=sys.stderr,
                )
                return 1

        if not os.path.exists(target):
            print(f"File not found: {target}", file=sys.stderr)
            return 2

        return await self.resume_file(target, extra_args, working_dir)

    async def resume_file(self, path: str, extra_args: str, working_dir: str | None) -> int:
        logger.debug("extracting session id from %s", path)
        try:
            meta = await quick_meta(path)
        except TransientFetchError as exc:
            logger.debug("%s", exc)
            meta = None
        sid = resolve_session_id(ref_for_path(path, self.root), meta)
        if sid.is_fallback:
            print(f"Warning: session id not found in meta; using relative path as id: {sid.value}")

        want_preview = self.args.preview if self.args.preview is not None else self.settings.get_preview()
        if want_preview and not self.args.print_only:
            await self.print_preview(path)

        return self.resume(sid.value, extra_args, working_dir or self.cwd)

    async def print_preview(self, path: str) -> None:
        try:
            turns = await full_parse(path)
        except TransientFetchError as exc:
            logger.debug("preview skipped: %s", exc)
            return
        if not turns:
            return
        width = shutil.get_terminal_size().columns
        print("\nPreview of recent dialog:")
        print(format_preview(turns[-PREVIEW_TURNS:], self.hidden, width))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.debug, args.log_file)

    settings = SettingsManager.create()
    if settings.load_error is not None:
        logger.warning("%s", settings.load_error)
    settings.apply_overrides({"codexCmd": args.codex, "logsRoot": args.root})

    try:
        code = asyncio.run(Runner(args, settings).run())
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
