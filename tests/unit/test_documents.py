"""Unit tests for task file reading and writing."""

import pytest

from tasksync.documents import TaskDocument, issue_task_document, new_task_document
from tasksync.errors import TaskFileError


class TestNewTaskDocument:
    """Test cases for freshly created task documents."""

    def test_front_matter_order_and_values(self):
        """Test that front matter keys are written in a stable order."""
        document = new_task_document("TASK-001", "Add login", "2026-01-15")

        text = document.dumps()

        assert text.startswith("---\nid: TASK-001\nstatus: backlog\n")
        assert text.index("assignee:") < text.index("issue:") < text.index("created:") < text.index("updated:")
        assert text.endswith("\n")

        reloaded = TaskDocument.loads(text)
        assert reloaded.get("created") == "2026-01-15"
        assert reloaded.get("assignee") is None
        assert reloaded.issue_number() is None

    def test_body_sections(self):
        """Test the title, body and history table of a new task."""
        document = new_task_document("TASK-001", "Add login", "2026-01-15", body="Users sign in.")

        assert document.title("TASK-001") == "Add login"
        assert "## Summary\n\nUsers sign in." in document.content
        assert "| 2026-01-15 | - | backlog | created |" in document.content


class TestTaskDocument:
    """Test cases for TaskDocument body conventions."""

    def test_title_strips_task_id_prefix(self):
        """Test reading the title heading of a hand-written file."""
        document = TaskDocument.loads("# TASK-005: Fix the parser\n\nBody\n")

        assert document.title("TASK-005") == "Fix the parser"
        assert document.metadata == {}

    def test_title_falls_back_to_task_id(self):
        """Test files without a heading."""
        document = TaskDocument.loads("No heading here\n")

        assert document.title("TASK-005") == "TASK-005"

    def test_issue_number_from_front_matter(self):
        """Test that the front matter issue key takes precedence."""
        document = TaskDocument.loads(
            "---\nissue: 42\n---\n# T\n\n**GitHub Issue**: [#7](https://github.com/a/b/issues/7)\n"
        )

        assert document.issue_number() == 42

    def test_issue_number_from_body_line(self):
        """Test the issue link line used by files without front matter."""
        document = TaskDocument.loads("# T\n\n**GitHub Issue**: [#7](https://github.com/a/b/issues/7)\n")

        assert document.issue_number() == 7

    def test_empty_issue_key_falls_back_to_body(self):
        """Test that an empty front matter issue value is ignored."""
        document = TaskDocument.loads("---\nissue: ''\n---\n# T\n\n**GitHub Issue**: [#9](u)\n")

        assert document.issue_number() == 9

    def test_set_issue_link_inserts_after_title(self):
        """Test linking an issue to a file that has no link yet."""
        document = TaskDocument.loads("# Title\n\nbody")

        document.set_issue_link(7, "https://github.com/a/b/issues/7")

        assert document.content == "# Title\n\n**GitHub Issue**: [#7](https://github.com/a/b/issues/7)\n\nbody"
        assert document.metadata["issue"] == 7

    def test_set_issue_link_replaces_existing_line(self):
        """Test that relinking rewrites the existing line in place."""
        document = TaskDocument.loads("# Title\n\n**GitHub Issue**: [#1](old)\n\nbody")

        document.set_issue_link(2, "new")

        assert "[#1](old)" not in document.content
        assert document.content.count("**GitHub Issue**") == 1
        assert "**GitHub Issue**: [#2](new)" in document.content

    def test_append_history_adds_row_after_last(self):
        """Test appending a history row."""
        document = new_task_document("TASK-001", "Add login", "2026-01-15")

        assert document.append_history("2026-01-16", "alice", "in-progress", "moved") is True

        lines = document.content.splitlines()
        assert lines[-2] == "| 2026-01-15 | - | backlog | created |"
        assert lines[-1] == "| 2026-01-16 | alice | in-progress | moved |"

    def test_append_history_stops_at_next_section(self):
        """Test that rows go into the history table, not after later sections."""
        document = TaskDocument.loads(
            "# T\n\n## History\n\n| Date | Owner | Status | Note |\n|---|---|---|---|\n"
            "| 2026-01-01 | - | backlog | created |\n\n## Notes\n\ntext\n"
        )

        document.append_history("2026-01-02", None, "review", "moved")

        content = document.content
        assert "| 2026-01-02 | - | review | moved |" in content
        assert content.index("| 2026-01-02 |") < content.index("## Notes")

    def test_append_history_without_table(self):
        """Test that files without a history table are left alone."""
        document = TaskDocument.loads("# T\n\nbody\n")

        assert document.append_history("2026-01-02", None, "review", "moved") is False
        assert document.content == "# T\n\nbody"

    def test_set_none_writes_empty_value(self):
        """Test that clearing a key keeps it in the front matter."""
        document = new_task_document("TASK-001", "Add login", "2026-01-15")

        document.set("assignee", None)

        assert document.metadata["assignee"] == ""
        assert document.get("assignee") is None

    def test_save_and_load(self, tmp_path):
        """Test writing a document to disk and reading it back."""
        document = new_task_document("TASK-001", "Add login", "2026-01-15")
        path = document.save(tmp_path / "TASK-001.md")

        reloaded = TaskDocument.load(path)

        assert reloaded.get("id") == "TASK-001"
        assert reloaded.title("TASK-001") == "Add login"

    def test_load_invalid_front_matter_names_the_file(self, tmp_path):
        """Test that unparseable front matter is reported with the file path."""
        path = tmp_path / "TASK-001.md"
        path.write_text("---\ntitle: [unclosed\n---\n# Broken\n", encoding="utf-8")

        with pytest.raises(TaskFileError, match="TASK-001.md") as excinfo:
            TaskDocument.load(path)

        assert excinfo.value.path == path
        assert isinstance(excinfo.value, ValueError)

    def test_load_non_utf8_file(self, tmp_path):
        """Test that undecodable bytes are reported as a task file error."""
        path = tmp_path / "TASK-002.md"
        path.write_bytes(b"# Title \xff\xfe\n")

        with pytest.raises(TaskFileError, match="not valid UTF-8"):
            TaskDocument.load(path)


class TestIssueTaskDocument:
    """Test cases for documents generated from issues."""

    def test_issue_document(self):
        """Test mirroring an issue into a task document."""
        issue = {
            "number": 12,
            "title": "Crash on start ",
            "body": "Steps to reproduce",
            "labels": [{"name": "bug"}, {"name": "status: backlog"}],
            "assignees": [],
        }

        document = issue_task_document("TASK-12", issue, "https://github.com/a/b/issues/12", "2026-01-15")

        assert document.title("TASK-12") == "Crash on start"
        assert document.issue_number() == 12
        assert "**Labels**: bug, status: backlog" in document.content
        assert "**Assignees**: unassigned" in document.content
        assert "Steps to reproduce" in document.content
        assert "created from issue #12" in document.content
