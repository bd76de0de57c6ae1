"""Command-line interface for tasksync.

Usage::

    tasksync [--root DIR] [--mode github|local] <command> [args]

Results go to stdout; logs and errors go to stderr.
"""

from __future__ import annotations

import argparse
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from .commands import build_commands
from .config import MODES, Settings, load_settings, resolve_root
from .dashboard import DashboardRegenerator
from .errors import TaskSyncError
from .linking import IssueLinker
from .models import TRACKER_STATUSES, TaskStatus
from .store import TaskStore
from .synchronizer import StatusSynchronizer
from .tasksync_logging import setup_logging
from .tracker import GitHubIssueTracker

LIST_ROW_FORMAT = "%-12s %-12s %-10s %s"
TITLE_WIDTH = 40


class Context:
    """What a command handler needs: settings plus the injectable collaborators."""

    def __init__(
        self,
        settings: Settings,
        tracker: Optional[GitHubIssueTracker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.tracker = tracker if tracker is not None else GitHubIssueTracker.from_settings(settings)
        self.sleep = sleep

    def commands(self):
        return build_commands(self.settings, tracker=self.tracker, sleep=self.sleep)

    def store(self) -> TaskStore:
        return TaskStore(self.settings.tasks_dir)

    def synchronizer(self) -> StatusSynchronizer:
        return StatusSynchronizer.from_settings(self.settings, tracker=self.tracker, sleep=self.sleep)

    def linker(self) -> IssueLinker:
        return IssueLinker(self.store(), self.tracker)


def _out(line: str = "") -> None:
    print(line, file=sys.stdout)


def _print_move(result: Dict[str, Any]) -> None:
    if "issue_number" in result and "task_id" not in result:
        _out(f"Issue #{result['issue_number']} set to {result['label']}")
        return
    if not result["moved"]:
        _out(f"{result['task_id']} is already {result['status']}")
        return
    _out(f"Moved {result['task_id']}: {result['previous_status']} -> {result['status']}")
    _out(f"  {result['destination']}")
    if result.get("remote_error"):
        _out(f"  warning: issue #{result['issue_number']} not updated: {result['remote_error']}")
    elif result.get("remote_updated"):
        _out(f"  issue #{result['issue_number']} updated")


# ----------------------------------------------------------------------
# Command handlers
# ----------------------------------------------------------------------


def cmd_list(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.commands().list(args.status)
    if "issues" in result:
        rows = [
            ("#%s" % issue["number"], issue["status"] or "-", ",".join(issue["assignees"]) or "-", issue["title"])
            for issue in result["issues"]
        ]
    else:
        rows = [
            (task["task_id"], task["status"], task["assignee"] or task["owner"] or "-", task["title"])
            for task in result["tasks"]
        ]
    if not rows:
        _out("No tasks found.")
        return
    _out(LIST_ROW_FORMAT % ("ID", "STATUS", "ASSIGNEE", "TITLE"))
    for task_id, status, assignee, title in rows:
        _out(LIST_ROW_FORMAT % (task_id, status, assignee, title[:TITLE_WIDTH]))


def cmd_create(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.commands().create(args.title)
    if "task" in result:
        _out(f"Created {result['task']['task_id']}: {result['task']['path']}")
    else:
        _out(f"Created issue #{result['issue_number']}: {result['url']}")


def cmd_start(ctx: Context, args: argparse.Namespace) -> None:
    _print_move(ctx.commands().start(args.id, args.owner))


def cmd_review(ctx: Context, args: argparse.Namespace) -> None:
    _print_move(ctx.commands().review(args.id))


def cmd_done(ctx: Context, args: argparse.Namespace) -> None:
    _print_move(ctx.commands().done(args.id))


def cmd_show(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.commands().show(args.id)
    sys.stdout.write(result["content"])
    if not result["content"].endswith("\n"):
        _out()


def cmd_move(ctx: Context, args: argparse.Namespace) -> None:
    _print_move(ctx.synchronizer().move_task(args.id, args.status, args.owner).to_dict())


def cmd_dashboard(ctx: Context, args: argparse.Namespace) -> None:
    path = DashboardRegenerator.from_settings(ctx.settings, sleep=ctx.sleep).refresh()
    _out(f"Dashboard updated: {path}")


def cmd_issue_status(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.linker().update_issue_status(args.number, args.status, args.owner)
    _out(f"Issue #{result['issue_number']} set to {result['label']}")


def cmd_create_issue(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.linker().create_issue_from_task(args.task_id)
    if result["created"]:
        _out(f"Created issue #{result['issue_number']} for {result['task_id']}: {result['url']}")
    else:
        _out(f"{result['task_id']} is already linked to issue #{result['issue_number']}")


def cmd_sync_issue(ctx: Context, args: argparse.Namespace) -> None:
    result = ctx.linker().sync_issue_to_task(args.number)
    _out(f"Created {result['task_id']} from issue #{result['issue_number']}: {result['path']}")


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tasksync",
        description="Move task files between status directories and keep GitHub issues and the dashboard in step.",
    )
    parser.add_argument("--root", help="Project root (default: nearest directory containing .claude/)")
    parser.add_argument("--mode", choices=MODES, help="Operating mode (default: from .claude/config.yaml)")
    parser.add_argument("--log-level", help="Console log level (default: INFO)")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    p = subparsers.add_parser("list", help="List tasks")
    p.add_argument("status", nargs="?", choices=[s.value for s in TaskStatus], help="Only this status")
    p.set_defaults(handler=cmd_list)

    p = subparsers.add_parser("create", help="Create a backlog task")
    p.add_argument("title")
    p.set_defaults(handler=cmd_create)

    p = subparsers.add_parser("start", help="Start work on a task")
    p.add_argument("id")
    p.add_argument("owner", nargs="?", help="Owner (local mode default: current user)")
    p.set_defaults(handler=cmd_start)

    p = subparsers.add_parser("review", help="Submit a task for review")
    p.add_argument("id")
    p.set_defaults(handler=cmd_review)

    p = subparsers.add_parser("done", help="Complete a task")
    p.add_argument("id")
    p.set_defaults(handler=cmd_done)

    p = subparsers.add_parser("show", help="Show a task")
    p.add_argument("id")
    p.set_defaults(handler=cmd_show)

    p = subparsers.add_parser("move", help="Move a task file to a status directory")
    p.add_argument("id")
    p.add_argument("status", choices=[s.value for s in TaskStatus])
    p.add_argument("owner", nargs="?", help="Required for in-progress")
    p.set_defaults(handler=cmd_move)

    p = subparsers.add_parser("dashboard", help="Regenerate the dashboard")
    p.set_defaults(handler=cmd_dashboard)

    p = subparsers.add_parser("issue-status", help="Set the status label of an issue")
    p.add_argument("number", type=int)
    p.add_argument("status", choices=list(TRACKER_STATUSES))
    p.add_argument("owner", nargs="?")
    p.set_defaults(handler=cmd_issue_status)

    p = subparsers.add_parser("create-issue", help="Open an issue for a task file")
    p.add_argument("task_id")
    p.set_defaults(handler=cmd_create_issue)

    p = subparsers.add_parser("sync-issue", help="Create a task file from an issue")
    p.add_argument("number", type=int)
    p.set_defaults(handler=cmd_sync_issue)

    return parser


def main(
    argv: Optional[List[str]] = None,
    *,
    tracker: Optional[GitHubIssueTracker] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(resolve_root(args.root), mode=args.mode)
        setup_logging(args.log_level or settings.log_level, args.log_file)
        args.handler(Context(settings, tracker=tracker, sleep=sleep), args)
    except TaskSyncError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
