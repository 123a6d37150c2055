"""Integration tests driving the MCP tools end to end.

The tool functions are called directly with an explicit ``root`` so no
server process is needed.
"""

import pytest

import main
from tasksync.models import STATUS_COMPLETED, STATUS_IN_PROGRESS
from tasksync.workspace import Workspace


CHANGE_ID = "add-aider-support"

OUTLINE = (
    "## 1. Foundation\n"
    "- [ ] Lay groundwork\n"
    "- [ ] Add config\n"
    "\n"
    "## 5. Support Aider\n"
    "- [ ] Detect aider\n"
    "- [ ] Write aider config\n"
    "- [ ] Document aider\n"
)


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.delenv("TASKSYNC_PROJECT_ROOT", raising=False)
    monkeypatch.delenv("TASKSYNC_STORAGE_DIR", raising=False)
    workspace = Workspace(tmp_path)
    workspace.save_outline(CHANGE_ID, OUTLINE)
    spec_dir = workspace.change_dir(CHANGE_ID) / "specs" / "support-aider"
    spec_dir.mkdir(parents=True)
    (spec_dir / "spec.md").write_text("# Support Aider\n", encoding="utf-8")
    return tmp_path


class TestToolWorkflow:
    """The full outline to ledger to progress loop."""

    def test_complete_workflow(self, project):
        """Test accept, progress updates and markdown sync."""
        root = str(project)

        sections = main.list_sections(CHANGE_ID, root=root)
        assert [s["name"] for s in sections["sections"]] == ["Foundation", "Support Aider"]

        accepted = main.accept_tasks(CHANGE_ID, root=root)
        assert accepted["layout"] == "capability"
        assert accepted["task_count"] == 5
        assert len(accepted["files"]) == 2

        first = main.next_task(CHANGE_ID, root=root)
        assert first["task"]["id"] == "1.1"
        assert first["summary"]["pending"] == 5

        for task_id in ("1.1", "1.2"):
            main.update_task_status(CHANGE_ID, task_id, STATUS_COMPLETED, root=root)
        updated = main.update_task_status(CHANGE_ID, "5.1", STATUS_IN_PROGRESS, root=root)
        assert updated["previous_status"] == "pending"

        nxt = main.next_task(CHANGE_ID, root=root)
        assert nxt["task"]["id"] == "5.2"

        summary = main.task_summary(CHANGE_ID, root=root)
        assert summary["completed"] == 2
        assert summary["in_progress"] == 1

        synced = main.sync_task_markdown(CHANGE_ID, root=root)
        assert synced["updated"] == 2

        reaccepted = main.accept_tasks(CHANGE_ID, root=root)
        assert reaccepted["preserved"] == 5

    def test_dry_run(self, project):
        """Test that a dry run reports files without writing them."""
        result = main.accept_tasks(CHANGE_ID, dry_run=True, root=str(project))

        assert result["dry_run"] is True
        assert not (project / ".tasksync" / "changes" / CHANGE_ID / "tasks.jsonc").exists()

    def test_list_changes(self, project):
        """Test listing changes through the tool."""
        result = main.list_changes(root=str(project))

        assert result["changes"][0]["change_id"] == CHANGE_ID
        assert result["changes"][0]["capabilities"] == ["support-aider"]


class TestRootResolution:
    """Locating the project root without an explicit argument."""

    def test_environment_root(self, project, monkeypatch):
        """Test the project root environment variable."""
        monkeypatch.setenv("TASKSYNC_PROJECT_ROOT", str(project))

        assert main.accept_tasks(CHANGE_ID)["task_count"] == 5

    def test_registered_change_root(self, project, tmp_path_factory, monkeypatch):
        """Test that a registered root is used for later calls."""
        monkeypatch.chdir(tmp_path_factory.mktemp("elsewhere"))
        main.set_change_root(CHANGE_ID, str(project))

        assert main.list_sections(CHANGE_ID)["sections"][1]["name"] == "Support Aider"

    def test_missing_root(self, project):
        """Test the error for a root that does not exist."""
        with pytest.raises(ValueError, match="does not exist"):
            main.list_changes(root=str(project / "missing"))

    def test_changes_resource(self, project, monkeypatch):
        """Test the changes resource text."""
        monkeypatch.setenv("TASKSYNC_PROJECT_ROOT", str(project))
        main.accept_tasks(CHANGE_ID)

        text = main.resource_changes()

        assert text.startswith("tasksync Changes")
        assert f"- {CHANGE_ID}" in text
        assert "Capabilities: support-aider" in text
