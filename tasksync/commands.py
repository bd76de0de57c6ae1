"""The ``list/create/start/review/done/show`` commands for both operating modes.

In ``github`` mode tasks are issues and every command talks to the
tracker. In ``local`` mode tasks are files in the store and status
changes go through the synchronizer.
"""

from __future__ import annotations

import getpass
import logging
import time
from typing import Any, Callable, Dict, Optional

from .config import MODE_GITHUB, MODE_LOCAL
from .errors import ConfigurationError, MissingArgumentError
from .models import TaskStatus
from .store import TaskStore
from .synchronizer import StatusSynchronizer
from .tracker import DEFAULT_LIST_LIMIT, STATUS_LABEL_PREFIX, GitHubIssueTracker

logger = logging.getLogger("tasksync.commands")


def _current_user() -> Optional[str]:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return None


def _issue_number(value: Any) -> int:
    text = str(value if value is not None else "").strip().lstrip("#")
    if not text:
        raise MissingArgumentError("An issue number is required")
    if not text.isdigit():
        raise MissingArgumentError(f"'{value}' is not an issue number")
    return int(text)


class LocalCommands:
    """Commands backed by the local task store."""

    mode = MODE_LOCAL

    def __init__(
        self,
        synchronizer: StatusSynchronizer,
        *,
        default_owner: Callable[[], Optional[str]] = _current_user,
    ):
        self.synchronizer = synchronizer
        self.store: TaskStore = synchronizer.store
        self._default_owner = default_owner

    def list(self, status: Optional[str] = None) -> Dict[str, Any]:
        parsed = TaskStatus.parse(status) if status else None
        tasks = self.store.list_tasks(parsed)
        return {"mode": self.mode, "status": parsed.value if parsed else None, "tasks": [t.to_dict() for t in tasks]}

    def create(self, title: str) -> Dict[str, Any]:
        self.store.ensure_layout()
        task = self.store.create_task(title)
        return {"mode": self.mode, "task": task.to_dict()}

    def start(self, task_id: str, owner: Optional[str] = None) -> Dict[str, Any]:
        owner = owner or self._default_owner()
        return self._move(task_id, TaskStatus.IN_PROGRESS, owner)

    def review(self, task_id: str) -> Dict[str, Any]:
        return self._move(task_id, TaskStatus.REVIEW)

    def done(self, task_id: str) -> Dict[str, Any]:
        return self._move(task_id, TaskStatus.COMPLETED)

    def show(self, task_id: str) -> Dict[str, Any]:
        task = self.store.get(task_id)
        return {
            "mode": self.mode,
            "task": task.to_dict(),
            "content": task.path.read_text(encoding="utf-8"),
        }

    def _move(self, task_id: str, status: TaskStatus, owner: Optional[str] = None) -> Dict[str, Any]:
        if not (task_id or "").strip():
            raise MissingArgumentError("A task ID is required")
        result = self.synchronizer.move_task(task_id, status, owner)
        return {"mode": self.mode, **result.to_dict()}


class GitHubCommands:
    """Commands backed by GitHub issues."""

    mode = MODE_GITHUB

    def __init__(self, tracker: GitHubIssueTracker):
        self.tracker = tracker

    def list(self, status: Optional[str] = None) -> Dict[str, Any]:
        parsed = TaskStatus.parse(status) if status else None
        self.tracker.ensure_available()
        issues = self.tracker.list_issues(parsed.value if parsed else None, limit=DEFAULT_LIST_LIMIT)
        rows = []
        for issue in issues:
            labels = [label.get("name", "") for label in issue.get("labels") or []]
            status_labels = [label[len(STATUS_LABEL_PREFIX):] for label in labels if label.startswith(STATUS_LABEL_PREFIX)]
            rows.append({
                "number": issue.get("number"),
                "title": issue.get("title", ""),
                "state": issue.get("state", ""),
                "status": status_labels[0] if status_labels else None,
                "assignees": [person.get("login", "") for person in issue.get("assignees") or []],
                "labels": labels,
            })
        return {"mode": self.mode, "status": parsed.value if parsed else None, "issues": rows}

    def create(self, title: str) -> Dict[str, Any]:
        title = (title or "").strip()
        if not title:
            raise MissingArgumentError("Task title is required")
        self.tracker.ensure_available()
        issue = self.tracker.create_issue(title, [TaskStatus.BACKLOG.label])
        logger.info(f"Created issue #{issue['number']}: {issue['url']}")
        return {"mode": self.mode, "issue_number": issue["number"], "url": issue["url"], "title": title}

    def start(self, number: Any, owner: Optional[str] = None) -> Dict[str, Any]:
        return self._set_status(number, TaskStatus.IN_PROGRESS, owner)

    def review(self, number: Any) -> Dict[str, Any]:
        return self._set_status(number, TaskStatus.REVIEW)

    def done(self, number: Any) -> Dict[str, Any]:
        return self._set_status(number, TaskStatus.COMPLETED)

    def show(self, number: Any) -> Dict[str, Any]:
        number = _issue_number(number)
        self.tracker.ensure_available()
        return {"mode": self.mode, "issue_number": number, "content": self.tracker.view_issue_text(number)}

    def _set_status(self, number: Any, status: TaskStatus, owner: Optional[str] = None) -> Dict[str, Any]:
        number = _issue_number(number)
        self.tracker.ensure_available()
        self.tracker.set_status(number, status, owner=owner)
        return {"mode": self.mode, "issue_number": number, "status": status.value, "label": status.label}


def build_commands(
    settings,
    *,
    tracker: Optional[GitHubIssueTracker] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """Pick the command set for ``settings.mode``."""
    tracker = tracker if tracker is not None else GitHubIssueTracker.from_settings(settings)
    if settings.mode == MODE_GITHUB:
        return GitHubCommands(tracker)
    if settings.mode == MODE_LOCAL:
        return LocalCommands(StatusSynchronizer.from_settings(settings, tracker=tracker, sleep=sleep))
    raise ConfigurationError(f"Unknown mode '{settings.mode}'")
