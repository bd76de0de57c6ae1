"""MCP server exposing the task synchronizer as tools."""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import TextResource

from .commands import build_commands
from .config import Settings, load_settings, resolve_root
from .dashboard import DashboardRegenerator
from .errors import ConfigurationError
from .linking import IssueLinker
from .store import TaskStore
from .synchronizer import StatusSynchronizer
from .tracker import GitHubIssueTracker

mcp = FastMCP("tasksync")


DASHBOARD_URI = "tasksync://dashboard"


def _text_resource(text: str) -> TextResource:
    return TextResource(uri=DASHBOARD_URI, name="dashboard", mime_type="text/markdown", text=text)


def _settings(root: Optional[str], mode: Optional[str] = None) -> Settings:
    return load_settings(resolve_root(root), mode=mode)


def _commands(root: Optional[str], mode: Optional[str]):
    return build_commands(_settings(root, mode))


def _linker(root: Optional[str]) -> IssueLinker:
    settings = _settings(root)
    return IssueLinker(TaskStore(settings.tasks_dir), GitHubIssueTracker.from_settings(settings))


@mcp.tool()
def list_tasks(status: Optional[str] = None, mode: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """List tasks (local mode) or issues (github mode), optionally filtered by status."""
    return _commands(root, mode).list(status)


@mcp.tool()
def create_task(title: str, mode: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Create a backlog task file (local mode) or a backlog issue (github mode)."""
    return _commands(root, mode).create(title)


@mcp.tool()
def start_task(
    task_id: str,
    owner: Optional[str] = None,
    mode: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Move a task to in-progress under ``owner``.
    In local mode the owner defaults to the current user."""
    return _commands(root, mode).start(task_id, owner)


@mcp.tool()
def review_task(task_id: str, mode: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Move a task to review."""
    return _commands(root, mode).review(task_id)


@mcp.tool()
def complete_task(task_id: str, mode: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Move a task to completed; a linked issue is closed."""
    return _commands(root, mode).done(task_id)


@mcp.tool()
def show_task(task_id: str, mode: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the task file contents (local mode) or the issue text (github mode)."""
    return _commands(root, mode).show(task_id)


@mcp.tool()
def move_task(
    task_id: str,
    status: str,
    owner: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Move a task file to ``status``, relabel its linked issue and refresh the dashboard.
    Moving to in-progress requires an owner."""
    synchronizer = StatusSynchronizer.from_settings(_settings(root))
    return synchronizer.move_task(task_id, status, owner).to_dict()


@mcp.tool()
def refresh_dashboard(root: Optional[str] = None) -> Dict[str, Any]:
    """Regenerate the dashboard from the task directories."""
    regenerator = DashboardRegenerator.from_settings(_settings(root))
    path = regenerator.refresh()
    return {"dashboard_path": str(path), "summary": regenerator.summarize().to_dict()}


@mcp.tool()
def update_issue_status(
    issue_number: int,
    status: str,
    owner: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Set the status label of an issue without touching task files.
    Accepts backlog, in-progress, review, completed or blocked."""
    return _linker(root).update_issue_status(issue_number, status, owner)


@mcp.tool()
def create_issue_from_task(task_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Open an issue for an unfinished task and write the link into the task file."""
    return _linker(root).create_issue_from_task(task_id)


@mcp.tool()
def sync_issue_to_task(issue_number: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Create a backlog task file mirroring an existing issue."""
    return _linker(root).sync_issue_to_task(issue_number)


@mcp.resource(DASHBOARD_URI)
def resource_dashboard():
    """Current dashboard contents."""
    try:
        settings = _settings(None)
    except ConfigurationError as e:
        return _text_resource(f"No project root detected: {e}")

    if not settings.dashboard_path.exists():
        return _text_resource("No dashboard has been generated yet. Call refresh_dashboard first.")
    return _text_resource(settings.dashboard_path.read_text(encoding="utf-8"))
