"""GitHub issue tracker accessed through the ``gh`` command-line tool.

Every call goes through a single runner (``subprocess.run`` by default)
so tests can substitute a recording fake.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import ExternalToolUnavailableError, InvalidStatusError, IssueTrackerError
from .models import STATUS_LABEL_PREFIX, TRACKER_STATUSES, TaskStatus
from .tasksync_logging import log_issue_status_updated

logger = logging.getLogger("tasksync.tracker")

Runner = Callable[..., subprocess.CompletedProcess]

DEFAULT_LIST_LIMIT = 50
ISSUE_JSON_FIELDS = "number,title,body,labels,assignees,milestone,state,url"
_ISSUE_URL_PATTERN = re.compile(r"/issues/(\d+)")

STATUS_COMMENTS = {
    "backlog": "Moved back to the backlog",
    "in-progress": "Started work",
    "review": "Ready for review",
    "blocked": "Blocked",
}
COMPLETED_COMMENT = "Done. Implementation completed and review approved."


def status_label(status: str) -> str:
    return f"{STATUS_LABEL_PREFIX}{status}"


def validate_tracker_status(status: "str | TaskStatus") -> str:
    value = status.value if isinstance(status, TaskStatus) else str(status or "").strip().lower()
    if value not in TRACKER_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}' (expected one of: {', '.join(TRACKER_STATUSES)})"
        )
    return value


class GitHubIssueTracker:
    """Thin wrapper over ``gh issue`` subcommands."""

    def __init__(
        self,
        executable: str = "gh",
        *,
        timeout: float = 30.0,
        runner: Optional[Runner] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.executable = executable
        self.timeout = timeout
        self._runner = runner or subprocess.run
        self._which = which

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "GitHubIssueTracker":
        return cls(settings.gh_executable, timeout=settings.gh_timeout, **kwargs)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def ensure_available(self) -> None:
        if self._which(self.executable) is None:
            raise ExternalToolUnavailableError(
                f"GitHub CLI ({self.executable}) is not installed; see https://cli.github.com/"
            )

    def run(self, *args: str) -> str:
        """Run ``gh <args>`` and return its stdout."""
        command = [self.executable, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = self._runner(command, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise ExternalToolUnavailableError(
                f"GitHub CLI ({self.executable}) is not installed; see https://cli.github.com/"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise IssueTrackerError(
                f"'{' '.join(command)}' timed out after {self.timeout}s", command=command
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise IssueTrackerError(
                f"'{' '.join(command)}' failed with exit status {result.returncode}: {stderr}",
                command=command,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout or ""

    def _run_json(self, *args: str) -> Any:
        output = self.run(*args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise IssueTrackerError(f"Unexpected output from gh {' '.join(args)}: {output[:200]}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_issues(self, status: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT) -> List[Dict[str, Any]]:
        args = ["issue", "list", "--limit", str(limit), "--json", "number,title,labels,state,assignees"]
        if status:
            args += ["--label", status_label(validate_tracker_status(status))]
        return self._run_json(*args)

    def view_issue(self, number: int) -> Dict[str, Any]:
        return self._run_json("issue", "view", str(number), "--json", ISSUE_JSON_FIELDS)

    def view_issue_text(self, number: int) -> str:
        return self.run("issue", "view", str(number))

    def status_labels(self, number: int) -> List[str]:
        data = self._run_json("issue", "view", str(number), "--json", "labels")
        return [
            label["name"]
            for label in data.get("labels") or []
            if label.get("name", "").startswith(STATUS_LABEL_PREFIX)
        ]

    def repository(self) -> str:
        """``owner/name`` of the current repository."""
        return self.run("repo", "view", "--json", "nameWithOwner", "-q", ".nameWithOwner").strip()

    def issue_url(self, number: int) -> str:
        return f"https://github.com/{self.repository()}/issues/{number}"

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_issue(self, title: str, labels: Sequence[str], body: str = "") -> Dict[str, Any]:
        """Create an issue; returns ``{"number": ..., "url": ...}``."""
        output = self.run(
            "issue", "create",
            "--title", title,
            "--label", ",".join(labels),
            "--body", body,
        ).strip()
        match = _ISSUE_URL_PATTERN.search(output)
        if not match:
            raise IssueTrackerError(f"Could not find an issue number in gh output: {output}")
        url = output.splitlines()[-1].strip()
        return {"number": int(match.group(1)), "url": url}

    def edit_labels(self, number: int, add: Sequence[str] = (), remove: Sequence[str] = ()) -> None:
        args = ["issue", "edit", str(number)]
        for label in add:
            args += ["--add-label", label]
        for label in remove:
            args += ["--remove-label", label]
        self.run(*args)

    def comment(self, number: int, body: str) -> None:
        self.run("issue", "comment", str(number), "--body", body)

    def close(self, number: int, comment: Optional[str] = None) -> None:
        args = ["issue", "close", str(number)]
        if comment:
            args += ["--comment", comment]
        self.run(*args)

    def _try_comment(self, number: int, body: str) -> None:
        try:
            self.comment(number, body)
        except IssueTrackerError as e:
            logger.warning(f"Could not comment on issue #{number}: {e}")

    def set_status(self, number: int, status: "str | TaskStatus", owner: Optional[str] = None) -> None:
        """Mirror ``status`` on the issue; ``completed`` closes it without relabeling."""
        value = validate_tracker_status(status)
        target = status_label(value)

        if value == TaskStatus.COMPLETED.value:
            self.close(number, COMPLETED_COMMENT)
        else:
            current = self.status_labels(number)
            stale = [label for label in current if label != target]
            if target not in current or stale:
                self.edit_labels(number, add=[target] if target not in current else [], remove=stale)

            message = STATUS_COMMENTS[value]
            if owner:
                message = f"{message} ({owner})"
            self._try_comment(number, message)

        logger.info(f"Issue #{number} set to {target}")
        log_issue_status_updated(number, value, owner=owner)
