"""Status synchronization for tasksync.

Moving a task is a fixed sequence: locate the file, rename it into the
target status directory, mirror the status on the linked issue, then
regenerate the dashboard. The steps are not transactional: a failed
remote update leaves the file where it was moved to.
"""

from __future__ import annotations

import logging
from typing import Optional

from .dashboard import DashboardRegenerator
from .documents import TaskDocument
from .errors import ExternalToolUnavailableError, IssueTrackerError, MissingArgumentError
from .models import MoveResult, TaskStatus
from .store import TaskStore
from .tasksync_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_task_moved,
)
from .tracker import GitHubIssueTracker

logger = logging.getLogger("tasksync.synchronizer")

HISTORY_NOTE = "moved"


class StatusSynchronizer:
    """Moves task files between status directories and keeps issues in step."""

    def __init__(
        self,
        store: TaskStore,
        dashboard: Optional[DashboardRegenerator] = None,
        tracker: Optional[GitHubIssueTracker] = None,
    ):
        self.store = store
        self.dashboard = dashboard
        self.tracker = tracker

    @classmethod
    def from_settings(cls, settings, *, tracker: Optional[GitHubIssueTracker] = None, **dashboard_kwargs):
        store = TaskStore(settings.tasks_dir)
        return cls(
            store,
            DashboardRegenerator.from_settings(settings, store=store, **dashboard_kwargs),
            tracker if tracker is not None else GitHubIssueTracker.from_settings(settings),
        )

    @log_performance("move_task")
    def move_task(self, task_id: str, target: "str | TaskStatus", owner: Optional[str] = None) -> MoveResult:
        """Move ``task_id`` to ``target``; see the module docstring for the sequence."""
        status = TaskStatus.parse(target)
        owner = (owner or "").strip() or None
        if status is TaskStatus.IN_PROGRESS and not owner:
            raise MissingArgumentError(f"An owner is required to move {task_id} to in-progress")

        try:
            with log_operation("move_task", task_id=task_id, target=status.value, owner=owner):
                task = self.store.get(task_id)
                logger.info(f"Found {task.task_id} at {task.path} ({task.status.value})")

                if task.status is status:
                    logger.warning(f"{task.task_id} is already '{status.value}'; nothing to do")
                    return MoveResult(
                        task_id=task.task_id,
                        previous_status=task.status,
                        status=status,
                        source=task.path,
                        destination=task.path,
                        owner=task.owner,
                        issue_number=task.issue_number,
                        moved=False,
                    )

                destination = self.store.relocate(task, status, owner)
                self._record_move(destination, status, owner)

                result = MoveResult(
                    task_id=task.task_id,
                    previous_status=task.status,
                    status=status,
                    source=task.path,
                    destination=destination,
                    owner=owner if status is TaskStatus.IN_PROGRESS else None,
                    issue_number=task.issue_number,
                )

                self._update_remote(result, owner)

                if self.dashboard is not None:
                    result.dashboard_path = self.dashboard.refresh()
        except Exception as e:
            log_error_with_context(e, {
                "operation": "move_task",
                "task_id": task_id,
                "target": status.value,
                "owner": owner,
            })
            raise

        logger.info(f"Moved {result.task_id}: {result.previous_status.value} -> {result.status.value}")
        log_task_moved(
            result.task_id,
            result.previous_status.value,
            result.status.value,
            owner=result.owner,
            issue_number=result.issue_number,
            remote_updated=result.remote_updated,
        )
        return result

    def _record_move(self, path, status: TaskStatus, owner: Optional[str]) -> None:
        """Update front matter and the history table of the moved file."""
        document = TaskDocument.load(path)
        today = self.store.today()
        document.set("status", status.value)
        document.set("updated", today)
        if owner and status is TaskStatus.IN_PROGRESS:
            document.set("assignee", owner)
        if not document.append_history(today, owner, status.value, HISTORY_NOTE):
            logger.debug(f"{path.name} has no history table; skipping history row")
        self.store.save(document, path)

    def _update_remote(self, result: MoveResult, owner: Optional[str]) -> None:
        if result.issue_number is None:
            logger.warning(f"{result.task_id} has no linked issue; skipping tracker update")
            return
        if self.tracker is None:
            logger.debug("No issue tracker configured; skipping tracker update")
            return
        try:
            self.tracker.set_status(result.issue_number, result.status, owner=owner)
        except (IssueTrackerError, ExternalToolUnavailableError) as e:
            result.remote_error = str(e)
            logger.warning(
                f"Moved {result.task_id} but could not update issue #{result.issue_number}: {e}"
            )
            return
        result.remote_updated = True
