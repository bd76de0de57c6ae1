"""End-to-end test of a task moving through every status.

Drives the synchronizer against a real directory tree with a scripted gh
runner, checking the store, the linked issue and the dashboard after each
step.
"""

import pytest

from tasksync.commands import LocalCommands
from tasksync.config import load_settings
from tasksync.dashboard import DashboardRegenerator
from tasksync.errors import LockTimeoutError
from tasksync.linking import IssueLinker
from tasksync.models import TaskStatus
from tasksync.store import TaskStore
from tasksync.synchronizer import StatusSynchronizer
from tasksync.tracker import GitHubIssueTracker

from ..fakes import REPO_URL, FakeGh, gh_available


@pytest.fixture()
def environment(project):
    settings = load_settings(project, mode="local")
    gh = FakeGh()
    gh.respond_json("issue", "view", "--json", "labels", data={"labels": []})
    tracker = GitHubIssueTracker(runner=gh, which=gh_available)
    sleeps = []
    synchronizer = StatusSynchronizer.from_settings(settings, tracker=tracker, sleep=sleeps.append)
    commands = LocalCommands(synchronizer, default_owner=lambda: "alice")
    return settings, gh, synchronizer, commands, sleeps


def _counts(store: TaskStore):
    return {status.value: count for status, count in store.count_tasks().items()}


class TestTaskLifecycle:
    """A linked task going backlog -> in-progress -> review -> completed."""

    def test_full_lifecycle(self, environment):
        """Test counts, issue labels and the dashboard at every step."""
        settings, gh, synchronizer, commands, sleeps = environment
        store = synchronizer.store

        commands.create("Other work")
        created = commands.create("Feature: export")
        task_id = created["task"]["task_id"]
        assert task_id == "TASK-002"

        gh.respond("issue", "create", stdout=f"{REPO_URL}/issues/40\n")
        linked = IssueLinker(store, synchronizer.tracker).create_issue_from_task(task_id)
        assert linked["issue_number"] == 40
        assert linked["labels"] == ["status: backlog", "feature"]

        assert _counts(store) == {"backlog": 2, "in-progress": 0, "review": 0, "completed": 0}

        steps = [
            ("start", TaskStatus.IN_PROGRESS, {"backlog": 1, "in-progress": 1, "review": 0, "completed": 0}),
            ("review", TaskStatus.REVIEW, {"backlog": 1, "in-progress": 0, "review": 1, "completed": 0}),
            ("done", TaskStatus.COMPLETED, {"backlog": 1, "in-progress": 0, "review": 0, "completed": 1}),
        ]
        previous_labels = ["status: backlog"]
        for command, status, expected in steps:
            gh.respond_json(
                "issue", "view", "--json", "labels",
                data={"labels": [{"name": label} for label in previous_labels]},
            )

            result = getattr(commands, command)(task_id)

            assert result["status"] == status.value
            assert result["remote_updated"] is True
            assert _counts(store) == expected
            assert sum(expected.values()) == 2

            if status is TaskStatus.COMPLETED:
                assert gh.commands("issue", "close", "40")
            else:
                edit = gh.commands("issue", "edit", "40")[-1]
                assert edit[edit.index("--add-label") + 1] == status.label
                assert edit[edit.index("--remove-label") + 1] == previous_labels[0]
                previous_labels = [status.label]

            dashboard = settings.dashboard_path.read_text(encoding="utf-8")
            assert "| **Total** | **2** | **100%** |" in dashboard

        assert gh.commands("issue", "close", "40")
        assert (settings.tasks_dir / "completed" / f"{task_id}.md").exists()
        assert store.get(task_id).owner is None
        dashboard = settings.dashboard_path.read_text(encoding="utf-8")
        assert "| Completed | 1 | 50% |" in dashboard
        assert f"| {task_id} | Feature: export |" in dashboard
        assert "Progress: [█████░░░░░] 50%" in dashboard
        assert sleeps == []
        assert not settings.lock_path.exists()

    def test_regeneration_is_stable(self, environment):
        """Test that two refreshes of an unchanged store write identical files."""
        settings, _, synchronizer, commands, _ = environment
        commands.create("One")
        commands.start("TASK-001")

        first = synchronizer.dashboard.refresh().read_bytes()
        second = synchronizer.dashboard.refresh().read_bytes()

        assert first == second

    def test_same_status_leaves_everything_untouched(self, environment):
        """Test a repeated review command."""
        settings, gh, synchronizer, commands, _ = environment
        commands.create("One")
        commands.review("TASK-001")
        dashboard_before = settings.dashboard_path.read_bytes()
        calls_before = len(gh.calls)

        result = commands.review("TASK-001")

        assert result["moved"] is False
        assert len(gh.calls) == calls_before
        assert settings.dashboard_path.read_bytes() == dashboard_before

    def test_remote_failure_keeps_file_moved(self, environment):
        """Test that a gh failure does not undo the local move."""
        settings, gh, synchronizer, commands, _ = environment
        commands.create("One")
        gh.respond("issue", "create", stdout=f"{REPO_URL}/issues/41\n")
        IssueLinker(synchronizer.store, synchronizer.tracker).create_issue_from_task("TASK-001")
        gh.fail("issue", "edit", stderr="HTTP 401: Bad credentials")

        result = commands.review("TASK-001")

        assert result["remote_updated"] is False
        assert "Bad credentials" in result["remote_error"]
        assert (settings.tasks_dir / "review" / "TASK-001.md").exists()
        assert "| In review | 1 | 100% |" in settings.dashboard_path.read_text(encoding="utf-8")

    def test_concurrent_holder_times_out(self, environment):
        """Test a lock held by another process for longer than the wait."""
        settings, _, synchronizer, commands, sleeps = environment
        commands.create("One")
        settings.lock_path.write_text("4242\n", encoding="utf-8")

        with pytest.raises(LockTimeoutError):
            commands.review("TASK-001")

        assert len(sleeps) == settings.lock_attempts
        assert (settings.tasks_dir / "review" / "TASK-001.md").exists()
        assert settings.lock_path.read_text(encoding="utf-8") == "4242\n"

    def test_waiter_proceeds_once_lock_released(self, project):
        """Test that a waiting regeneration succeeds after the holder finishes."""
        settings = load_settings(project, mode="local")
        store = TaskStore(settings.tasks_dir)
        store.ensure_layout()
        store.create_task("One")
        settings.lock_path.write_text("4242\n", encoding="utf-8")
        regenerator = DashboardRegenerator.from_settings(
            settings, store=store, sleep=lambda _: settings.lock_path.unlink()
        )

        regenerator.refresh()

        assert "| Backlog | 1 | 100% |" in settings.dashboard_path.read_text(encoding="utf-8")
        assert not settings.lock_path.exists()
