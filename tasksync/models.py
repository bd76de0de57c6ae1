"""Data models for tasksync.

This module contains the core data structures used throughout tasksync,
representing task statuses, task files, move results and the dashboard
summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import InvalidStatusError


STATUS_LABEL_PREFIX = "status: "


class TaskStatus(str, Enum):
    """Task lifecycle status; the value doubles as the directory name."""

    BACKLOG = "backlog"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | TaskStatus") -> "TaskStatus":
        """Parse a user supplied status value."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        valid = ", ".join(status.value for status in cls)
        raise InvalidStatusError(f"Invalid status '{value}' (expected one of: {valid})")

    @property
    def label(self) -> str:
        """Issue tracker label mirroring this status."""
        return f"{STATUS_LABEL_PREFIX}{self.value}"

    @property
    def directory_name(self) -> str:
        return self.value


# Search and display order.
STATUS_ORDER: List[TaskStatus] = [
    TaskStatus.BACKLOG,
    TaskStatus.IN_PROGRESS,
    TaskStatus.REVIEW,
    TaskStatus.COMPLETED,
]

# Statuses the issue tracker accepts as labels; "blocked" exists only remotely.
TRACKER_STATUSES = tuple(status.value for status in STATUS_ORDER) + ("blocked",)


@dataclass(slots=True)
class Task:
    """A task file located in the store.

    ``status`` and ``owner`` come from the file's location, never from its
    contents.
    """

    task_id: str
    title: str
    status: TaskStatus
    path: Path
    owner: Optional[str] = None
    assignee: Optional[str] = None
    issue_number: Optional[int] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    body: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "task_id": self.task_id,
            "title": self.title,
            "status": self.status.value,
            "path": str(self.path),
            "owner": self.owner,
            "assignee": self.assignee,
            "issue_number": self.issue_number,
            "created": self.created,
            "updated": self.updated,
        }


@dataclass(slots=True)
class MoveResult:
    """Outcome of a single synchronizer invocation."""

    task_id: str
    previous_status: TaskStatus
    status: TaskStatus
    source: Path
    destination: Path
    owner: Optional[str] = None
    issue_number: Optional[int] = None
    moved: bool = True
    remote_updated: bool = False
    remote_error: Optional[str] = None
    dashboard_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "task_id": self.task_id,
            "previous_status": self.previous_status.value,
            "status": self.status.value,
            "source": str(self.source),
            "destination": str(self.destination),
            "owner": self.owner,
            "issue_number": self.issue_number,
            "moved": self.moved,
            "remote_updated": self.remote_updated,
            "remote_error": self.remote_error,
            "dashboard_path": str(self.dashboard_path) if self.dashboard_path else None,
        }


@dataclass(slots=True)
class DashboardEntry:
    """One row of a dashboard listing."""

    task_id: str
    title: str
    owner: Optional[str]
    modified: str
    issue_number: Optional[int]

    @property
    def issue_ref(self) -> str:
        return f"#{self.issue_number}" if self.issue_number is not None else "-"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "owner": self.owner,
            "modified": self.modified,
            "issue_number": self.issue_number,
        }


@dataclass(slots=True)
class DashboardSummary:
    """Aggregate view of the store at regeneration time."""

    counts: Dict[TaskStatus, int] = field(default_factory=lambda: {status: 0 for status in STATUS_ORDER})
    in_progress: List[DashboardEntry] = field(default_factory=list)
    review: List[DashboardEntry] = field(default_factory=list)
    backlog: List[DashboardEntry] = field(default_factory=list)
    recently_completed: List[DashboardEntry] = field(default_factory=list)
    last_updated: Optional[str] = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def percentage(self, status: TaskStatus) -> int:
        """Integer share of ``status`` in the total, rounded down."""
        if self.total == 0:
            return 0
        return self.counts.get(status, 0) * 100 // self.total

    def progress_bar(self, width: int = 10) -> str:
        filled = self.percentage(TaskStatus.COMPLETED) * width // 100
        return "█" * filled + "░" * (width - filled)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "counts": {status.value: self.counts.get(status, 0) for status in STATUS_ORDER},
            "total": self.total,
            "percentages": {status.value: self.percentage(status) for status in STATUS_ORDER},
            "in_progress": [entry.to_dict() for entry in self.in_progress],
            "review": [entry.to_dict() for entry in self.review],
            "backlog": [entry.to_dict() for entry in self.backlog],
            "recently_completed": [entry.to_dict() for entry in self.recently_completed],
            "last_updated": self.last_updated,
        }
