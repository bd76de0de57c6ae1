"""Exceptions for tasksync.

Each error also derives from the closest builtin so callers that only
know about ``ValueError`` or ``FileNotFoundError`` keep working.
"""


class TaskSyncError(Exception):
    """Base exception for tasksync errors."""

    pass


class TaskNotFoundError(TaskSyncError, FileNotFoundError):
    """Raised when a task file cannot be found in the store."""

    def __init__(self, task_id: str, searched: str = ""):
        self.task_id = task_id
        message = f"Task file '{task_id}.md' not found"
        if searched:
            message += f" (searched: {searched})"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class TaskExistsError(TaskSyncError, FileExistsError):
    """Raised when a task file already exists where one is about to be written."""

    def __str__(self) -> str:
        return self.args[0]


class InvalidStatusError(TaskSyncError, ValueError):
    """Raised when a status value is outside the known set."""

    pass


class MissingArgumentError(TaskSyncError, ValueError):
    """Raised when a required argument (ID, title, owner) is missing."""

    pass


class ConfigurationError(TaskSyncError, ValueError):
    """Raised when the configuration is invalid."""

    pass


class ExternalToolUnavailableError(TaskSyncError, RuntimeError):
    """Raised when the issue tracker CLI is not installed."""

    pass


class IssueTrackerError(TaskSyncError, RuntimeError):
    """Raised when an issue tracker command fails."""

    def __init__(self, message: str, *, command=None, returncode=None, stderr: str = ""):
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class LockTimeoutError(TaskSyncError, TimeoutError):
    """Raised when the dashboard lock is still held after polling."""

    def __init__(self, lock_path, attempts: int):
        self.lock_path = lock_path
        self.attempts = attempts
        super().__init__(
            f"Timed out waiting for lock {lock_path} after {attempts} attempts "
            f"(another process may be updating; remove it manually with: rm {lock_path})"
        )

    def __str__(self) -> str:
        return self.args[0]


class TaskFileError(TaskSyncError, ValueError):
    """Raised when a task file cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read task file {path}: {reason}")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateTaskError(TaskExistsError):
    """Raised when one task ID has files in more than one location."""

    def __init__(self, task_id: str, paths):
        self.task_id = task_id
        self.paths = list(paths)
        super().__init__(
            f"Task '{task_id}' exists in more than one location: {', '.join(str(p) for p in self.paths)}"
        )
