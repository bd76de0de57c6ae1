"""Task store backed by a directory tree.

Layout::

    <tasks_dir>/backlog/<ID>.md
    <tasks_dir>/in-progress/<owner>/<ID>.md
    <tasks_dir>/review/<ID>.md
    <tasks_dir>/completed/<ID>.md

A task's status is the directory that holds its file.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .documents import TaskDocument, new_task_document
from .errors import DuplicateTaskError, MissingArgumentError, TaskExistsError, TaskNotFoundError
from .models import STATUS_ORDER, Task, TaskStatus
from .tasksync_logging import log_error_with_context, log_operation, log_task_created

logger = logging.getLogger("tasksync.store")

TASK_SUFFIX = ".md"
TASK_ID_PREFIX = "TASK-"
_NUMERIC_ID_PATTERN = re.compile(rf"^{TASK_ID_PREFIX}(\d+)")

TaskLocation = Tuple[Path, TaskStatus, Optional[str]]


def _check_name(value: Optional[str], what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise MissingArgumentError(f"{what} is required")
    if "/" in value or "\\" in value or value in {".", ".."}:
        raise MissingArgumentError(f"{what} must be a plain name, got '{value}'")
    return value


class TaskStore:
    """Manage task files within the status directory tree."""

    def __init__(self, tasks_dir: Path | str, *, today: Callable[[], date] = date.today):
        self.tasks_dir = Path(tasks_dir)
        self._today = today

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def status_dir(self, status: TaskStatus) -> Path:
        return self.tasks_dir / status.directory_name

    def destination_dir(self, status: TaskStatus, owner: Optional[str] = None) -> Path:
        """Directory a task with ``status`` belongs in."""
        if status is TaskStatus.IN_PROGRESS:
            return self.status_dir(status) / _check_name(owner, "Owner")
        return self.status_dir(status)

    def ensure_layout(self) -> None:
        for status in STATUS_ORDER:
            self.status_dir(status).mkdir(parents=True, exist_ok=True)

    def today(self) -> str:
        return self._today().isoformat()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def iter_locations(self, statuses: Optional[Iterable[TaskStatus]] = None) -> Iterator[TaskLocation]:
        """Yield ``(path, status, owner)`` for every task file."""
        for status in statuses or STATUS_ORDER:
            directory = self.status_dir(status)
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob(f"*{TASK_SUFFIX}")):
                if path.is_file():
                    yield path, status, None
            for subdir in sorted(p for p in directory.iterdir() if p.is_dir()):
                for path in sorted(subdir.glob(f"*{TASK_SUFFIX}")):
                    if path.is_file():
                        yield path, status, subdir.name

    def locate(self, task_id: str, statuses: Optional[Iterable[TaskStatus]] = None) -> Optional[Task]:
        """Find a task by linear search over the status directories.

        A task file must live in exactly one place; finding the same ID
        twice raises DuplicateTaskError instead of picking one.
        """
        task_id = _check_name(task_id, "Task ID")
        filename = f"{task_id}{TASK_SUFFIX}"
        matches: List[TaskLocation] = []
        for status in statuses or STATUS_ORDER:
            directory = self.status_dir(status)
            if not directory.is_dir():
                continue
            direct = directory / filename
            if direct.is_file():
                matches.append((direct, status, None))
            for subdir in sorted(p for p in directory.iterdir() if p.is_dir()):
                candidate = subdir / filename
                if candidate.is_file():
                    matches.append((candidate, status, subdir.name))

        if not matches:
            return None
        if len(matches) > 1:
            raise DuplicateTaskError(task_id, [path for path, _, _ in matches])
        return self.read_task(*matches[0])

    def get(self, task_id: str, statuses: Optional[Iterable[TaskStatus]] = None) -> Task:
        statuses = list(statuses or STATUS_ORDER)
        task = self.locate(task_id, statuses)
        if task is None:
            searched = ", ".join(str(self.status_dir(status)) for status in statuses)
            raise TaskNotFoundError(task_id, searched)
        return task

    def read_task(self, path: Path, status: TaskStatus, owner: Optional[str] = None) -> Task:
        document = TaskDocument.load(path)
        task_id = path.stem
        return Task(
            task_id=task_id,
            title=document.title(task_id),
            status=status,
            path=path,
            owner=owner,
            assignee=document.get("assignee"),
            issue_number=document.issue_number(),
            created=document.get("created"),
            updated=document.get("updated"),
            body=document.content,
        )

    def list_tasks(self, status: Optional[TaskStatus] = None) -> List[Task]:
        """All tasks, in status order then by ID."""
        statuses = [status] if status else STATUS_ORDER
        tasks = [self.read_task(path, st, owner) for path, st, owner in self.iter_locations(statuses)]
        tasks.sort(key=lambda task: (STATUS_ORDER.index(task.status), task.task_id))
        return tasks

    def count_tasks(self) -> dict:
        counts = {status: 0 for status in STATUS_ORDER}
        for _, status, _ in self.iter_locations():
            counts[status] += 1
        return counts

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def next_task_id(self) -> str:
        """One above the highest ``TASK-<n>`` anywhere in the store."""
        highest = 0
        for path, _, _ in self.iter_locations():
            match = _NUMERIC_ID_PATTERN.match(path.stem)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{TASK_ID_PREFIX}{highest + 1:03d}"

    def create_task(
        self,
        title: str,
        *,
        body: Optional[str] = None,
        issue_number: Optional[int] = None,
        task_id: Optional[str] = None,
    ) -> Task:
        """Create a new backlog task file, optionally already linked to an issue."""
        title = (title or "").strip()
        if not title:
            raise MissingArgumentError("Task title is required")

        try:
            with log_operation("create_task", title=title):
                task_id = _check_name(task_id, "Task ID") if task_id else self.next_task_id()
                document = new_task_document(task_id, title, self.today(), body=body)
                if issue_number is not None:
                    document.set("issue", int(issue_number))
                path = self.write_document(task_id, document)
        except Exception as e:
            log_error_with_context(e, {"operation": "create_task", "title": title, "task_id": task_id})
            raise

        logger.info(f"Created task {task_id}: {path}")
        log_task_created(task_id, TaskStatus.BACKLOG.value, path=str(path))
        return self.read_task(path, TaskStatus.BACKLOG)

    def write_document(
        self,
        task_id: str,
        document: TaskDocument,
        status: TaskStatus = TaskStatus.BACKLOG,
    ) -> Path:
        """Write a new task file, refusing to shadow an existing task ID."""
        existing = self.locate(task_id)
        if existing is not None:
            raise TaskExistsError(f"Task '{task_id}' already exists at {existing.path}")
        directory = self.status_dir(status)
        directory.mkdir(parents=True, exist_ok=True)
        return self.save(document, directory / f"{task_id}{TASK_SUFFIX}")

    def save(self, document: TaskDocument, path: Path) -> Path:
        return document.save(path)

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def relocate(self, task: Task, status: TaskStatus, owner: Optional[str] = None) -> Path:
        """Rename the task file into the directory for ``status``."""
        destination_dir = self.destination_dir(status, owner)
        destination = destination_dir / task.path.name
        if destination.exists():
            raise TaskExistsError(f"Cannot move {task.task_id}: {destination} already exists")
        destination_dir.mkdir(parents=True, exist_ok=True)
        task.path.rename(destination)
        logger.debug(f"Renamed {task.path} -> {destination}")
        return destination
