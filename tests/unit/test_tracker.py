"""Unit tests for the gh-backed issue tracker."""

import subprocess

import pytest

from tasksync.errors import ExternalToolUnavailableError, InvalidStatusError, IssueTrackerError
from tasksync.models import TaskStatus
from tasksync.tracker import COMPLETED_COMMENT, GitHubIssueTracker, validate_tracker_status

from ..fakes import REPO_URL, FakeGh, gh_available, gh_missing


class TestRun:
    """Test cases for invoking gh."""

    def test_run_passes_timeout_and_captures_output(self, fake_gh, tracker):
        """Test the subprocess options used for every call."""
        fake_gh.respond("repo", "view", stdout="acme/widgets\n")

        assert tracker.repository() == "acme/widgets"
        assert fake_gh.calls[-1][0] == "gh"
        assert fake_gh.kwargs[-1] == {"capture_output": True, "text": True, "timeout": 30.0}

    def test_non_zero_exit_raises(self, fake_gh, tracker):
        """Test that a failing command becomes IssueTrackerError."""
        fake_gh.fail("issue", "comment", stderr="HTTP 404")

        with pytest.raises(IssueTrackerError, match="HTTP 404") as excinfo:
            tracker.comment(3, "hi")

        assert excinfo.value.returncode == 1
        assert excinfo.value.command[:3] == ["gh", "issue", "comment"]

    def test_missing_executable(self):
        """Test that a missing gh binary is reported as unavailable."""
        def runner(command, **kwargs):
            raise FileNotFoundError(command[0])

        tracker = GitHubIssueTracker(runner=runner, which=gh_missing)

        with pytest.raises(ExternalToolUnavailableError):
            tracker.ensure_available()
        with pytest.raises(ExternalToolUnavailableError):
            tracker.run("issue", "list")

    def test_timeout(self):
        """Test that a hung gh call is reported as a tracker error."""
        def runner(command, **kwargs):
            raise subprocess.TimeoutExpired(command, kwargs["timeout"])

        tracker = GitHubIssueTracker(timeout=2.0, runner=runner, which=gh_available)

        with pytest.raises(IssueTrackerError, match="timed out"):
            tracker.run("issue", "list")

    def test_invalid_json(self, fake_gh, tracker):
        """Test that unparseable JSON output is reported."""
        fake_gh.respond("issue", "list", stdout="not json")

        with pytest.raises(IssueTrackerError, match="Unexpected output"):
            tracker.list_issues()


class TestQueries:
    """Test cases for read-only gh calls."""

    def test_list_issues_filters_by_label(self, fake_gh, tracker):
        """Test listing issues with a status label filter."""
        fake_gh.respond_json("issue", "list", data=[{"number": 1, "title": "A", "labels": []}])

        issues = tracker.list_issues("review", limit=10)

        assert issues == [{"number": 1, "title": "A", "labels": []}]
        args = fake_gh.commands("issue", "list")[-1]
        assert args[args.index("--label") + 1] == "status: review"
        assert args[args.index("--limit") + 1] == "10"

    def test_list_issues_rejects_unknown_status(self, tracker):
        """Test the status validation before any gh call."""
        with pytest.raises(InvalidStatusError):
            tracker.list_issues("done")

    def test_status_labels(self, fake_gh, tracker):
        """Test reading only the status labels of an issue."""
        fake_gh.respond_json(
            "issue", "view", "--json", "labels",
            data={"labels": [{"name": "bug"}, {"name": "status: backlog"}]},
        )

        assert tracker.status_labels(4) == ["status: backlog"]

    def test_issue_url(self, fake_gh, tracker):
        """Test building an issue URL from the current repository."""
        fake_gh.respond("repo", "view", stdout="acme/widgets\n")

        assert tracker.issue_url(9) == f"{REPO_URL}/issues/9"


class TestMutations:
    """Test cases for gh calls that change issues."""

    def test_create_issue_parses_number(self, fake_gh, tracker):
        """Test creating an issue and reading its number from the URL."""
        fake_gh.respond("issue", "create", stdout=f"Creating issue in acme/widgets\n\n{REPO_URL}/issues/17\n")

        issue = tracker.create_issue("Add login", ["status: backlog", "feature"], body="Body")

        assert issue == {"number": 17, "url": f"{REPO_URL}/issues/17"}
        args = fake_gh.commands("issue", "create")[-1]
        assert args[args.index("--label") + 1] == "status: backlog,feature"
        assert args[args.index("--body") + 1] == "Body"

    def test_create_issue_without_url(self, fake_gh, tracker):
        """Test unexpected create output."""
        fake_gh.respond("issue", "create", stdout="something else")

        with pytest.raises(IssueTrackerError):
            tracker.create_issue("x", ["status: backlog"])

    def test_set_status_replaces_stale_labels(self, fake_gh, tracker):
        """Test relabeling an issue that carries another status label."""
        fake_gh.respond_json("issue", "view", "--json", "labels", data={"labels": [{"name": "status: backlog"}]})

        tracker.set_status(8, TaskStatus.IN_PROGRESS, owner="alice")

        edit = fake_gh.commands("issue", "edit")[-1]
        assert edit[:3] == ["issue", "edit", "8"]
        assert edit[edit.index("--add-label") + 1] == "status: in-progress"
        assert edit[edit.index("--remove-label") + 1] == "status: backlog"
        comment = fake_gh.commands("issue", "comment")[-1]
        assert comment[comment.index("--body") + 1] == "Started work (alice)"
        assert fake_gh.commands("issue", "close") == []

    def test_set_status_skips_edit_when_already_labeled(self, fake_gh, tracker):
        """Test that an issue already carrying only the target label is not edited."""
        fake_gh.respond_json("issue", "view", "--json", "labels", data={"labels": [{"name": "status: review"}]})

        tracker.set_status(8, "review")

        assert fake_gh.commands("issue", "edit") == []
        assert fake_gh.commands("issue", "comment")

    def test_set_status_completed_closes(self, fake_gh, tracker):
        """Test that completing closes the issue with a comment."""
        tracker.set_status(8, "completed")

        close = fake_gh.commands("issue", "close")[-1]
        assert close[:3] == ["issue", "close", "8"]
        assert close[close.index("--comment") + 1] == COMPLETED_COMMENT
        assert fake_gh.commands("issue", "comment") == []
        assert fake_gh.commands("issue", "edit") == []

    def test_set_status_completed_closes_when_labels_cannot_change(self, fake_gh, tracker):
        """Test that a repository without a completed label still gets the issue closed."""
        fake_gh.fail("issue", "edit", stderr="could not add label: 'status: completed' not found")

        tracker.set_status(3, TaskStatus.COMPLETED)

        assert fake_gh.commands("issue", "close", "3")

    def test_set_status_blocked(self, fake_gh, tracker):
        """Test the remote-only blocked status."""
        tracker.set_status(8, "blocked")

        edit = fake_gh.commands("issue", "edit")[-1]
        assert edit[edit.index("--add-label") + 1] == "status: blocked"

    def test_comment_failure_is_not_fatal(self, fake_gh, tracker):
        """Test that a failed status comment does not fail the relabel."""
        fake_gh.fail("issue", "comment")

        tracker.set_status(8, "review")

        assert fake_gh.commands("issue", "edit")

    def test_edit_failure_propagates(self, fake_gh, tracker):
        """Test that a failed relabel is reported."""
        fake_gh.fail("issue", "edit")

        with pytest.raises(IssueTrackerError):
            tracker.set_status(8, "review")


class TestValidateTrackerStatus:
    """Test cases for validate_tracker_status."""

    def test_accepts_enum_and_blocked(self):
        """Test the accepted values."""
        assert validate_tracker_status(TaskStatus.REVIEW) == "review"
        assert validate_tracker_status(" Blocked ") == "blocked"

    def test_rejects_unknown(self):
        """Test an unknown status."""
        with pytest.raises(InvalidStatusError):
            validate_tracker_status("archived")


def test_from_settings(settings):
    """Test building a tracker from settings."""
    tracker = GitHubIssueTracker.from_settings(settings, runner=FakeGh())

    assert tracker.executable == "gh"
    assert tracker.timeout == 30.0
