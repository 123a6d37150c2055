"""Unit tests for writing statuses back into the outline."""

import pytest

from tasksync.exceptions import OutlineDecodeError, OutlineNotFoundError
from tasksync.markdown_sync import sync_statuses_to_markdown
from tasksync.models import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING


OUTLINE = (
    "# Tasks\n"
    "## 1. Setup\n"
    "- [ ] 1.1 Create project\n"
    "  - with a note\n"
    "- [x] 1.2 Add config\n"
    "- [ ] 1.3 Write docs\n"
)


class TestSyncStatusesToMarkdown:
    """Test cases for checkbox updates."""

    def test_ticks_and_clears(self, tmp_path):
        """Test updating marks in both directions."""
        path = tmp_path / "tasks.md"
        path.write_text(OUTLINE, encoding="utf-8")

        updated = sync_statuses_to_markdown(path, {
            "1.1": STATUS_COMPLETED,
            "1.2": STATUS_IN_PROGRESS,
            "1.3": STATUS_PENDING,
        })

        assert updated == 2
        assert path.read_text(encoding="utf-8") == (
            "# Tasks\n"
            "## 1. Setup\n"
            "- [x] 1.1 Create project\n"
            "  - with a note\n"
            "- [ ] 1.2 Add config\n"
            "- [ ] 1.3 Write docs\n"
        )

    def test_no_changes_leaves_file(self, tmp_path):
        """Test that agreeing marks are not rewritten."""
        path = tmp_path / "tasks.md"
        path.write_text(OUTLINE, encoding="utf-8")
        before = path.stat().st_mtime_ns

        assert sync_statuses_to_markdown(path, {"1.2": STATUS_COMPLETED, "9.9": STATUS_COMPLETED}) == 0
        assert path.stat().st_mtime_ns == before

    def test_upper_case_mark_counts_as_completed(self, tmp_path):
        """Test that '[X]' already agrees with completed."""
        path = tmp_path / "tasks.md"
        path.write_text("- [X] done\n", encoding="utf-8")

        assert sync_statuses_to_markdown(path, {"1": STATUS_COMPLETED}) == 0

    def test_crlf_preserved(self, tmp_path):
        """Test that Windows line endings survive."""
        path = tmp_path / "tasks.md"
        path.write_bytes(b"## 1. A\r\n- [ ] task\r\n")

        assert sync_statuses_to_markdown(path, {"1.1": STATUS_COMPLETED}) == 1
        assert path.read_bytes() == b"## 1. A\r\n- [x] task\r\n"

    def test_missing_outline(self, tmp_path):
        """Test the error for a missing file."""
        with pytest.raises(OutlineNotFoundError):
            sync_statuses_to_markdown(tmp_path / "tasks.md", {})

    def test_undecodable_outline(self, tmp_path):
        """Test that invalid UTF-8 is reported and the file left alone."""
        path = tmp_path / "tasks.md"
        path.write_bytes(b"## 1. A\n- [ ] \xff\n")

        with pytest.raises(OutlineDecodeError):
            sync_statuses_to_markdown(path, {"1.1": STATUS_COMPLETED})

        assert path.read_bytes() == b"## 1. A\n- [ ] \xff\n"
