"""Links between task files and tracker issues."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from .documents import TaskDocument, issue_task_document
from .errors import MissingArgumentError
from .models import TaskStatus
from .store import TASK_ID_PREFIX, TaskStore
from .tasksync_logging import log_error_with_context, log_issue_linked, log_operation
from .tracker import GitHubIssueTracker, status_label, validate_tracker_status

logger = logging.getLogger("tasksync.linking")

# First match wins.
KIND_LABEL_RULES = (
    ("feature", re.compile(r"feature|feat", re.IGNORECASE)),
    ("bug", re.compile(r"bug|fix", re.IGNORECASE)),
    ("refactor", re.compile(r"refactor", re.IGNORECASE)),
    ("docs", re.compile(r"doc", re.IGNORECASE)),
    ("test", re.compile(r"test", re.IGNORECASE)),
)
DEFAULT_KIND_LABEL = "task"

LINKABLE_STATUSES = (TaskStatus.BACKLOG, TaskStatus.IN_PROGRESS, TaskStatus.REVIEW)


def infer_kind_label(title: str) -> str:
    for label, pattern in KIND_LABEL_RULES:
        if pattern.search(title or ""):
            return label
    return DEFAULT_KIND_LABEL


class IssueLinker:
    """Create issues from tasks, tasks from issues, and relabel issues directly."""

    def __init__(self, store: TaskStore, tracker: GitHubIssueTracker):
        self.store = store
        self.tracker = tracker

    def create_issue_from_task(self, task_id: str) -> Dict[str, Any]:
        """Open an issue for an unfinished task and record the link in its file."""
        self.tracker.ensure_available()
        task = self.store.get(task_id, LINKABLE_STATUSES)
        logger.info(f"Found task file {task.path}")

        if task.issue_number is not None:
            logger.warning(f"{task.task_id} is already linked to issue #{task.issue_number}")
            return {
                "task_id": task.task_id,
                "issue_number": task.issue_number,
                "created": False,
                "path": str(task.path),
            }

        labels = [status_label(TaskStatus.BACKLOG.value), infer_kind_label(task.title)]
        try:
            with log_operation("create_issue_from_task", task_id=task.task_id):
                document = TaskDocument.load(task.path)
                issue = self.tracker.create_issue(task.title, labels, body=document.content)
                document.set_issue_link(issue["number"], issue["url"])
                self.store.save(document, task.path)
        except Exception as e:
            log_error_with_context(e, {"operation": "create_issue_from_task", "task_id": task.task_id})
            raise

        logger.info(f"Created issue #{issue['number']} for {task.task_id}: {issue['url']}")
        log_issue_linked(task.task_id, issue["number"], url=issue["url"])
        return {
            "task_id": task.task_id,
            "issue_number": issue["number"],
            "url": issue["url"],
            "labels": labels,
            "created": True,
            "path": str(task.path),
        }

    def sync_issue_to_task(self, issue_number: int) -> Dict[str, Any]:
        """Write a backlog task file mirroring an existing issue."""
        if issue_number is None or str(issue_number).strip() == "":
            raise MissingArgumentError("An issue number is required")
        self.tracker.ensure_available()
        number = int(issue_number)
        task_id = f"{TASK_ID_PREFIX}{number}"

        try:
            with log_operation("sync_issue_to_task", issue_number=number):
                issue = self.tracker.view_issue(number)
                url = issue.get("url") or self.tracker.issue_url(number)
                document = issue_task_document(task_id, issue, url, self.store.today())
                path = self.store.write_document(task_id, document)
        except Exception as e:
            log_error_with_context(e, {"operation": "sync_issue_to_task", "issue_number": number})
            raise

        logger.info(f"Created task file {path} from issue #{number}")
        log_issue_linked(task_id, number, url=url)
        return {
            "task_id": task_id,
            "issue_number": number,
            "url": url,
            "title": issue.get("title", ""),
            "path": str(path),
        }

    def update_issue_status(self, issue_number: int, status: str, owner: Optional[str] = None) -> Dict[str, Any]:
        """Relabel an issue without touching any task file."""
        if issue_number is None or str(issue_number).strip() == "":
            raise MissingArgumentError("An issue number is required")
        value = validate_tracker_status(status)
        self.tracker.ensure_available()
        self.tracker.set_status(int(issue_number), value, owner=owner)
        return {"issue_number": int(issue_number), "status": value, "label": status_label(value)}
