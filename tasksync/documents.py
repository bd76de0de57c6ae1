"""Reading and writing task files.

A task file is Markdown with an optional YAML front-matter block
(``id``, ``status``, ``assignee``, ``issue``, ``created``, ``updated``).
Front matter is handled by python-frontmatter; the body conventions
(title heading, GitHub issue line, history table) are handled here.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import frontmatter
import yaml

from .errors import TaskFileError

FRONT_MATTER_KEYS = ("id", "status", "assignee", "issue", "created", "updated")

HISTORY_HEADING = "## History"
HISTORY_TABLE_HEADER = (
    "| Date | Owner | Status | Note |",
    "|------|-------|--------|------|",
)

_ISSUE_LINE_PATTERN = re.compile(r"^\*\*GitHub Issue\*\*:.*$", re.MULTILINE)
_ISSUE_REF_PATTERN = re.compile(r"GitHub Issue.*?#(\d+)")
_TITLE_PATTERN = re.compile(r"^# (?P<title>.+?)\s*$", re.MULTILINE)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _as_issue_number(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = re.search(r"\d+", str(value))
    return int(match.group(0)) if match else None


class TaskDocument:
    """In-memory view of one task file."""

    def __init__(self, post: frontmatter.Post):
        self.post = post

    @classmethod
    def load(cls, path: Path) -> "TaskDocument":
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise TaskFileError(path, f"not valid UTF-8 ({e.reason})") from e
        return cls.loads(text, source=path)

    @classmethod
    def loads(cls, text: str, source: Optional[Path] = None) -> "TaskDocument":
        try:
            return cls(frontmatter.loads(text))
        except yaml.YAMLError as e:
            raise TaskFileError(source or "<string>", f"invalid front matter: {e}") from e

    @classmethod
    def create(cls, content: str, **metadata: Any) -> "TaskDocument":
        ordered: Dict[str, Any] = {key: metadata.pop(key, "") for key in FRONT_MATTER_KEYS}
        ordered.update(metadata)
        return cls(frontmatter.Post(content, **ordered))

    # ------------------------------------------------------------------
    # Front matter
    # ------------------------------------------------------------------

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.post.metadata

    @property
    def content(self) -> str:
        return self.post.content

    @content.setter
    def content(self, value: str) -> None:
        self.post.content = value

    def get(self, key: str) -> Optional[str]:
        return _as_text(self.post.metadata.get(key))

    def set(self, key: str, value: Any) -> None:
        self.post.metadata[key] = "" if value is None else value

    # ------------------------------------------------------------------
    # Body conventions
    # ------------------------------------------------------------------

    def title(self, task_id: Optional[str] = None) -> str:
        """Return the first level-one heading, without a ``<task-id>: `` prefix."""
        match = _TITLE_PATTERN.search(self.content)
        if not match:
            return task_id or ""
        title = match.group("title").strip()
        if task_id and title.startswith(f"{task_id}: "):
            title = title[len(task_id) + 2:].strip()
        return title or (task_id or "")

    def issue_number(self) -> Optional[int]:
        number = _as_issue_number(self.post.metadata.get("issue"))
        if number is not None:
            return number
        match = _ISSUE_REF_PATTERN.search(self.content)
        return int(match.group(1)) if match else None

    def set_issue_link(self, number: int, url: str) -> None:
        """Record the linked issue in the front matter and under the title."""
        self.set("issue", int(number))
        link_line = f"**GitHub Issue**: [#{number}]({url})"
        content = self.content
        if _ISSUE_LINE_PATTERN.search(content):
            self.content = _ISSUE_LINE_PATTERN.sub(lambda _: link_line, content, count=1)
            return

        lines = content.splitlines()
        for index, line in enumerate(lines):
            if line.startswith("# "):
                lines[index + 1:index + 1] = ["", link_line]
                self.content = "\n".join(lines)
                return
        self.content = f"{link_line}\n\n{content}" if content else link_line

    def append_history(self, when: str, owner: Optional[str], status: str, note: str) -> bool:
        """Append a row to the history table; False when the file has none."""
        lines = self.content.splitlines()
        try:
            start = next(i for i, line in enumerate(lines) if line.strip() == HISTORY_HEADING)
        except StopIteration:
            return False

        last_row = None
        for index in range(start + 1, len(lines)):
            stripped = lines[index].strip()
            if stripped.startswith("|") and stripped.endswith("|"):
                last_row = index
            elif stripped.startswith("#") or (stripped and last_row is not None):
                break
        if last_row is None:
            return False

        row = f"| {when} | {owner or '-'} | {status} | {note} |"
        lines.insert(last_row + 1, row)
        self.content = "\n".join(lines)
        return True

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def dumps(self) -> str:
        text = frontmatter.dumps(self.post, sort_keys=False)
        return text if text.endswith("\n") else text + "\n"

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.write_text(self.dumps(), encoding="utf-8")
        return path


def _history_table(rows: Iterable[str]) -> List[str]:
    return [HISTORY_HEADING, "", *HISTORY_TABLE_HEADER, *rows]


def new_task_document(task_id: str, title: str, today: str, *, body: Optional[str] = None) -> TaskDocument:
    """Document for a freshly created backlog task."""
    sections = [
        f"# {title}",
        "",
        "## Summary",
        "",
        body.strip() if body else "",
        "",
        "## Requirements",
        "",
        "- [ ]",
        "",
        "## Dependencies",
        "",
        "",
        "## Notes",
        "",
        "",
        *_history_table([f"| {today} | - | backlog | created |"]),
    ]
    return TaskDocument.create(
        "\n".join(sections),
        id=task_id,
        status="backlog",
        created=today,
        updated=today,
    )


def issue_task_document(
    task_id: str,
    issue: Dict[str, Any],
    issue_url: str,
    today: str,
) -> TaskDocument:
    """Document for a backlog task generated from a tracker issue."""
    number = int(issue["number"])
    labels = ", ".join(label.get("name", "") for label in issue.get("labels") or [])
    assignees = ", ".join(person.get("login", "") for person in issue.get("assignees") or [])
    sections = [
        f"# {task_id}: {issue.get('title', '').strip()}",
        "",
        f"**GitHub Issue**: [#{number}]({issue_url})",
        "",
        f"**Labels**: {labels or '-'}",
        f"**Assignees**: {assignees or 'unassigned'}",
        "",
        "## Summary",
        "",
        (issue.get("body") or "").strip(),
        "",
        "## Done when",
        "",
        "- [ ] Implementation complete",
        "- [ ] Tests written and passing",
        "- [ ] Documentation updated",
        "",
        *_history_table([f"| {today} | - | backlog | created from issue #{number} |"]),
    ]
    return TaskDocument.create(
        "\n".join(sections),
        id=task_id,
        status="backlog",
        issue=number,
        created=today,
        updated=today,
    )
