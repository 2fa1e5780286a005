"""Shadowpoint CLI.

Principles:
- The working tree is only ever written by `reset` and `undo`.
- Every command prints a short summary; errors go to stderr with exit code 1.
- Stdlib-only.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .. import __version__
from ..core.controller import DEFAULT_TASK_ID, CheckpointController
from ..utils.env import is_debug_mode


STATUS_SYMBOLS = {
    "Added": "A",
    "Modified": "M",
    "Deleted": "D",
    "Renamed": "R",
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowpoint",
        description="Shadowpoint - shadow git checkpoints for a working directory",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )
    parser.add_argument(
        "--workspace",
        "-C",
        metavar="PATH",
        help="Working directory to snapshot (default: current directory)",
    )
    parser.add_argument(
        "--storage",
        metavar="PATH",
        help="Root directory for shadow repositories",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Create the shadow repository for the working directory")

    save = subparsers.add_parser("save", help="Snapshot the working directory")
    save.add_argument("--task", default=DEFAULT_TASK_ID, help="Task id recorded in the commit message")

    diff = subparsers.add_parser("diff", help="List files changed between snapshots")
    diff.add_argument("from_hash", nargs="?", metavar="FROM", help="Base snapshot (default: first snapshot)")
    diff.add_argument("to_hash", nargs="?", metavar="TO", help="Target snapshot (default: working directory)")
    diff.add_argument("--content", action="store_true", help="Print before/after contents")

    show = subparsers.add_parser("show", help="Print a file as it was at a snapshot")
    show.add_argument("hash", help="Snapshot hash")
    show.add_argument("path", help="Path relative to the working directory")

    reset = subparsers.add_parser("reset", help="DESTRUCTIVE: reset the working directory to a snapshot")
    reset.add_argument("hash", help="Snapshot hash")

    undo = subparsers.add_parser("undo", help="Undo the last generation (or restore a given snapshot)")
    undo.add_argument("hash", nargs="?", help="Snapshot to restore (default: pre-generation snapshot)")

    changes = subparsers.add_parser("changes", help="Show files changed by the last generation")
    changes.add_argument("--undo", action="store_true", help="Show the last undo instead")

    subparsers.add_parser("status", help="Show checkpoint status")

    subparsers.add_parser("delete", help="Delete all checkpoints for the working directory")

    return parser


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(args: list[str] | None = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.debug:
        os.environ["SHADOWPOINT_DEBUG"] = "1"
    configure_logging(is_debug_mode())

    if not parsed.command:
        parser.print_help()
        return 1

    controller = CheckpointController(
        working_directory=_determine_working_directory(parsed.workspace),
        storage_root=parsed.storage,
    )

    if parsed.command == "init":
        return cmd_init(controller)
    if parsed.command == "save":
        return cmd_save(parsed, controller)
    if parsed.command == "diff":
        return cmd_diff(parsed, controller)
    if parsed.command == "show":
        return cmd_show(parsed, controller)
    if parsed.command == "reset":
        return cmd_reset(parsed, controller)
    if parsed.command == "undo":
        return cmd_undo(parsed, controller)
    if parsed.command == "changes":
        return cmd_changes(parsed, controller)
    if parsed.command == "status":
        return cmd_status(controller)
    if parsed.command == "delete":
        return cmd_delete(controller)

    parser.print_help()
    return 1


def cmd_init(controller: CheckpointController) -> int:
    result = controller.init()
    if not _check(result):
        return 1
    if not result.get("checkpointsEnabled"):
        print("Checkpoints are disabled.")
        return 0

    print(f"Shadow repository: {result['storagePath']}")
    print(f"Working directory: {result['workingDirectory']}")
    print(f"Head: {result.get('headHash') or '-'}")
    return 0


def cmd_save(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.save(args.task)
    if not _check(result):
        return 1
    if not result.get("checkpointsEnabled"):
        print("Checkpoints are disabled.")
        return 0
    print(f"Saved: {result['hash']}")
    return 0


def cmd_diff(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.diff(args.from_hash, args.to_hash, include_content=args.content)
    if not _check(result):
        return 1
    _print_changes(result["changes"], content=args.content)
    return 0


def cmd_show(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.show(args.hash, args.path)
    if not _check(result):
        return 1
    sys.stdout.write(result["content"])
    return 0


def cmd_reset(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.reset(args.hash)
    if not _check(result):
        return 1
    print(f"Working directory reset to: {result.get('hash') or args.hash}")
    return 0


def cmd_undo(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.undo(args.hash)
    if not _check(result):
        return 1
    print(f"Restored: {result['targetHash']}  (previous state saved as {result['beforeHash']})")
    _print_changes(result["changes"])
    return 0


def cmd_changes(args: argparse.Namespace, controller: CheckpointController) -> int:
    result = controller.show_changes("undo" if args.undo else "generation")
    if not _check(result):
        return 1
    print(f"{result['fromHash']} -> {result.get('toHash') or 'working directory'}")
    _print_changes(result["changes"])
    return 0


def cmd_status(controller: CheckpointController) -> int:
    status = controller.get_status()
    print(f"Enabled:           {'yes' if status.enabled else 'no'}")
    print(f"Working directory: {status.working_directory}")
    print(f"Shadow repository: {status.storage_path or '-'}")
    print(f"Initialized:       {'yes' if status.initialized else 'no'}")
    print(f"Head:              {status.head_hash or '-'}")
    if status.task_id:
        print(f"Task:              {status.task_id}")
    if status.pre_generation_hash:
        print(f"Pre-generation:    {status.pre_generation_hash}")
    if status.post_generation_hash:
        print(f"Post-generation:   {status.post_generation_hash}")
    if status.undo_after_hash:
        print(f"Last undo:         {status.undo_before_hash} -> {status.undo_after_hash}")
    if status.error:
        print(f"Error: {status.error}", file=sys.stderr)
        return 1
    return 0


def cmd_delete(controller: CheckpointController) -> int:
    result = controller.delete()
    if result.get("deleted"):
        print("Checkpoints deleted.")
    else:
        print("No checkpoints to delete.")
    return 0


def _check(result: dict) -> bool:
    if not result.get("success"):
        print(f"Error: {result.get('error')}", file=sys.stderr)
        return False
    return True


def _print_changes(changes: list[dict], *, content: bool = False) -> None:
    if not changes:
        print("No changes.")
        return

    for entry in changes:
        symbol = STATUS_SYMBOLS.get(entry.get("status", ""), "?")
        path = entry.get("relativePath", "")
        if entry.get("previousPath"):
            print(f"{symbol}  {entry['previousPath']} -> {path}")
        else:
            print(f"{symbol}  {path}")
        if content:
            print("--- before")
            print(entry.get("before", ""))
            print("+++ after")
            print(entry.get("after", ""))
    print(f"\n{len(changes)} file(s) changed")


def _determine_working_directory(selected: str | None) -> Path:
    if selected and selected.strip():
        return Path(selected.strip()).expanduser()
    val = os.environ.get("SHADOWPOINT_WORKSPACE")
    if isinstance(val, str) and val.strip():
        return Path(val.strip()).expanduser()
    return Path.cwd()


if __name__ == "__main__":
    sys.exit(main())
