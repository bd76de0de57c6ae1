"""Dashboard regeneration.

The dashboard is a Markdown file recomputed from a full rescan of the
task store. It holds no state of its own; its "last updated" stamp is the
newest task file modification time, so regenerating an unchanged store
produces the same bytes.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .errors import TaskFileError
from .lock import CooperativeLock
from .models import STATUS_ORDER, DashboardEntry, DashboardSummary, TaskStatus
from .store import TaskStore
from .tasksync_logging import (
    log_dashboard_refreshed,
    log_error_with_context,
    log_operation,
    log_performance,
)

logger = logging.getLogger("tasksync.dashboard")

TITLE_WIDTH = 30

STATUS_HEADINGS = {
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.REVIEW: "In review",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.BACKLOG: "Backlog",
}


def _format_mtime(timestamp: float, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return datetime.fromtimestamp(timestamp).strftime(fmt)


def _cell(value: str) -> str:
    return value.replace("|", "\\|")


class DashboardRegenerator:
    """Recompute and rewrite the dashboard file."""

    def __init__(
        self,
        store: TaskStore,
        dashboard_path: Path | str,
        lock_path: Path | str,
        *,
        recent_completed_limit: int = 10,
        lock_attempts: int = 30,
        lock_poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.dashboard_path = Path(dashboard_path)
        self.lock_path = Path(lock_path)
        self.recent_completed_limit = recent_completed_limit
        self.lock_attempts = lock_attempts
        self.lock_poll_interval = lock_poll_interval
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, store: Optional[TaskStore] = None, **kwargs) -> "DashboardRegenerator":
        options = {
            "recent_completed_limit": settings.recent_completed_limit,
            "lock_attempts": settings.lock_attempts,
            "lock_poll_interval": settings.lock_poll_interval,
        }
        options.update(kwargs)
        return cls(store or TaskStore(settings.tasks_dir), settings.dashboard_path, settings.lock_path, **options)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def summarize(self) -> DashboardSummary:
        """Scan the store and build the aggregate view."""
        summary = DashboardSummary()
        completed: List[tuple] = []
        newest: Optional[float] = None

        for path, status, owner in self.store.iter_locations():
            try:
                task = self.store.read_task(path, status, owner)
                title, issue_number = task.title, task.issue_number
            except TaskFileError as e:
                logger.warning(f"{e}; listing it by file name")
                title, issue_number = path.stem, None
            mtime = path.stat().st_mtime
            newest = mtime if newest is None else max(newest, mtime)
            summary.counts[status] += 1

            entry = DashboardEntry(
                task_id=path.stem,
                title=title[:TITLE_WIDTH],
                owner=owner,
                modified=_format_mtime(mtime),
                issue_number=issue_number,
            )
            if status is TaskStatus.IN_PROGRESS:
                summary.in_progress.append(entry)
            elif status is TaskStatus.REVIEW:
                summary.review.append(entry)
            elif status is TaskStatus.BACKLOG:
                summary.backlog.append(entry)
            else:
                completed.append((mtime, entry))

        completed.sort(key=lambda item: (-item[0], item[1].task_id))
        summary.recently_completed = [entry for _, entry in completed[: self.recent_completed_limit]]
        summary.last_updated = _format_mtime(newest, "%Y-%m-%d %H:%M:%S") if newest is not None else None
        return summary

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, summary: DashboardSummary) -> str:
        lines: List[str] = [
            "# Project Progress Dashboard",
            "",
            f"Last updated: {summary.last_updated or '-'}",
            "",
            "## Summary",
            "",
            "| Status | Count | Share |",
            "|--------|-------|-------|",
        ]
        for status in reversed(STATUS_ORDER):
            lines.append(
                f"| {STATUS_HEADINGS[status]} | {summary.counts.get(status, 0)} | {summary.percentage(status)}% |"
            )
        lines.append(f"| **Total** | **{summary.total}** | **100%** |")

        lines += ["", "## In progress", ""]
        lines += self._table(
            ["Task", "Title", "Owner", "Started", "Issue"],
            [[e.task_id, e.title, e.owner or "-", e.modified, e.issue_ref] for e in summary.in_progress],
            "No tasks in progress.",
        )

        lines += ["", "## Awaiting review", ""]
        lines += self._table(
            ["Task", "Title", "Submitted", "Reviewer", "Issue"],
            [[e.task_id, e.title, e.modified, "-", e.issue_ref] for e in summary.review],
            "No tasks awaiting review.",
        )

        lines += ["", "## Backlog", ""]
        lines += self._table(
            ["Task", "Title", "Priority", "Depends on", "Issue"],
            [[e.task_id, e.title, "-", "-", e.issue_ref] for e in summary.backlog],
            "The backlog is empty.",
        )

        lines += ["", f"## Recently completed (last {self.recent_completed_limit})", ""]
        lines += self._table(
            ["Task", "Title", "Completed", "Owner", "Issue"],
            [[e.task_id, e.title, e.modified, "-", e.issue_ref] for e in summary.recently_completed],
            "No completed tasks yet.",
        )

        lines += [
            "",
            "## Progress",
            "",
            "```",
            f"Progress: [{summary.progress_bar()}] {summary.percentage(TaskStatus.COMPLETED)}%",
            "```",
            "",
            "---",
            "",
            "Generated by `tasksync dashboard`; edits to this file are overwritten.",
        ]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _table(headers: List[str], rows: List[List[str]], empty_message: str) -> List[str]:
        if not rows:
            return [empty_message]
        lines = [
            "| " + " | ".join(headers) + " |",
            "|" + "|".join("-" * (len(header) + 2) for header in headers) + "|",
        ]
        for row in rows:
            lines.append("| " + " | ".join(_cell(str(value)) for value in row) + " |")
        return lines

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    @log_performance("refresh_dashboard")
    def refresh(self) -> Path:
        """Regenerate the dashboard file under the cooperative lock."""
        lock = CooperativeLock(
            self.lock_path,
            attempts=self.lock_attempts,
            poll_interval=self.lock_poll_interval,
            sleep=self._sleep,
        )
        try:
            with log_operation("refresh_dashboard", path=str(self.dashboard_path)):
                with lock:
                    summary = self.summarize()
                    content = self.render(summary)
                    self.dashboard_path.parent.mkdir(parents=True, exist_ok=True)
                    tmp_path = self.dashboard_path.with_name(self.dashboard_path.name + ".tmp")
                    tmp_path.write_text(content, encoding="utf-8")
                    os.replace(tmp_path, self.dashboard_path)
        except Exception as e:
            log_error_with_context(e, {"operation": "refresh_dashboard", "path": str(self.dashboard_path)})
            raise

        logger.info(f"Dashboard updated: {self.dashboard_path}")
        log_dashboard_refreshed(self.dashboard_path, summary.total)
        return self.dashboard_path
