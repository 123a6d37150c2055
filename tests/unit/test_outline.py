"""Unit tests for outline parsing.

Covers section detection and numbering, task ID recomputation,
continuation capture and the line bookkeeping used for splitting.
"""

import pytest

from tasksync.exceptions import OutlineDecodeError, OutlineNotFoundError
from tasksync.models import STATUS_COMPLETED, STATUS_PENDING
from tasksync.outline import (
    LineKind,
    _Scan,
    _step,
    classify_line,
    count_lines,
    parse_outline,
    parse_outline_file,
    read_outline_text,
)


SAMPLE_OUTLINE = (
    "## 1. Setup\n"
    "- [ ] 1.1 First setup task\n"
    "- [ ] 1.2 Second setup task\n"
    "\n"
    "## 2. Implementation\n"
    "- [ ] 2.1 Build it\n"
    "- [x] 2.2 Wire it\n"
    "- [ ] 2.3 Ship it\n"
    "## 3. Testing\n"
    "- [ ] 3.1 Test it\n"
)


class TestSections:
    """Test cases for section headers."""

    def test_sections_and_tasks(self):
        """Test parsing a numbered outline."""
        outline = parse_outline(SAMPLE_OUTLINE)

        assert [s.name for s in outline.sections] == ["Setup", "Implementation", "Testing"]
        assert [s.number for s in outline.sections] == ["1", "2", "3"]
        assert [t.id for t in outline.tasks] == ["1.1", "1.2", "2.1", "2.2", "2.3", "3.1"]
        assert outline.sections[1].tasks[0].section == "Implementation"

    def test_section_line_bounds(self):
        """Test that a section runs up to the line before the next header."""
        outline = parse_outline(SAMPLE_OUTLINE)

        bounds = [(s.start_line, s.end_line) for s in outline.sections]
        assert bounds == [(1, 4), (5, 8), (9, 10)]
        assert [s.line_count for s in outline.sections] == [4, 4, 2]
        assert outline.line_count == 10

    def test_implicit_numbering_continues_from_max(self):
        """Test mixing explicit and implicit section numbers."""
        text = "## 1. A\n- [ ] a\n## B\n- [ ] b\n## 5. C\n- [ ] c\n## D\n- [ ] d\n"
        outline = parse_outline(text)

        assert [s.number for s in outline.sections] == ["1", "2", "5", "6"]
        assert [t.id for t in outline.tasks] == ["1.1", "2.1", "5.1", "6.1"]

    def test_header_strictness(self):
        """Test that only '## ' opens a section."""
        text = "# Title\n### Sub heading\n##NoSpace\n- [ ] lonely task\n"
        outline = parse_outline(text)

        assert outline.sections == []
        assert [t.id for t in outline.tasks] == ["1"]

    def test_headers_without_tasks(self):
        """Test sections with no tasks yield an empty task list."""
        outline = parse_outline("## Alpha\n\n## Beta\n")

        assert len(outline.sections) == 2
        assert outline.tasks == []

    def test_malformed_line_count(self):
        """Test that an end before the start counts as zero lines."""
        outline = parse_outline("## A\n")
        section = outline.sections[0]
        section.end_line = 0

        assert section.line_count == 0


class TestTasks:
    """Test cases for task lines."""

    def test_loose_tasks_get_flat_ids(self):
        """Test tasks before any header."""
        outline = parse_outline("- [ ] first\n- [ ] second\n## 1. Later\n- [ ] third\n")

        assert [t.id for t in outline.loose_tasks] == ["1", "2"]
        assert all(t.section == "" for t in outline.loose_tasks)
        assert outline.sections[0].tasks[0].id == "1.1"

    def test_source_ids_are_discarded(self):
        """Test that literal IDs are replaced by positional ones."""
        text = (
            "## 1. Setup\n"
            "- [ ] 9.9 Wrong id\n"
            "- [ ] 1.2.3.4.5.6 Deep id\n"
            "- [ ] 3. Dotted number\n"
            "- [ ] 1.a Letter in id\n"
            "- [ ] 9.9 Duplicate literal\n"
        )
        tasks = parse_outline(text).tasks

        assert [t.id for t in tasks] == ["1.1", "1.2", "1.3", "1.4", "1.5"]
        assert [t.description for t in tasks] == [
            "Wrong id",
            "Deep id",
            "Dotted number",
            "1.a Letter in id",
            "Duplicate literal",
        ]

    def test_completion_marker(self):
        """Test both cases of the completion marker."""
        tasks = parse_outline("- [x] done\n- [X] also done\n- [ ] open\n").tasks

        assert [t.status for t in tasks] == [STATUS_COMPLETED, STATUS_COMPLETED, STATUS_PENDING]

    def test_unicode_preserved(self):
        """Test that descriptions keep every code point."""
        description = "Deploy \U0001F680 \u200bzero\u200d width \u202eRTL\u202c caf\u00e9 e\u0301 `code` **bold**"
        tasks = parse_outline(f"- [ ] {description}\n").tasks

        assert tasks[0].description == description

    def test_other_line_breaks_stay_in_description(self):
        """Test that only newlines end a line."""
        tasks = parse_outline("- [ ] first\u2028still first\x0cand more\x85end\n").tasks

        assert len(tasks) == 1
        assert tasks[0].description == "first\u2028still first\x0cand more\x85end"

    def test_crlf_line_endings(self):
        """Test that carriage returns do not leak into descriptions."""
        outline = parse_outline("## 1. A\r\n- [ ] task\r\n")

        assert outline.tasks[0].description == "task"

    def test_line_numbers_recorded(self):
        """Test that each task remembers its outline line."""
        tasks = parse_outline(SAMPLE_OUTLINE).tasks

        assert [t.line for t in tasks] == [2, 3, 6, 7, 8, 10]

    def test_indented_checkbox_is_not_a_task(self):
        """Test that only column-zero checkboxes are tasks."""
        tasks = parse_outline("- [ ] parent\n  - [ ] nested\n").tasks

        assert len(tasks) == 1
        assert tasks[0].description == "parent\n  - [ ] nested"


class TestContinuation:
    """Test cases for multi-line descriptions."""

    def test_blank_line_terminates_capture(self):
        """Test the continuation boundary."""
        text = "- [ ] 1.1 Task\n  - Item one\n\n  - Item two\n"
        task = parse_outline(text).tasks[0]

        assert "Item one" in task.description
        assert "Item two" not in task.description
        assert task.description == "Task\n  - Item one"

    def test_mixed_indentation_and_numbered_items(self):
        """Test tabs, spaces and numbered sub-items."""
        text = (
            "## 1. Work\n"
            "- [ ] Task\n"
            "\t- tab item with `backticks` and \"quotes\"\n"
            "    1. numbered [bracket]\n"
            "  \t      - deep mixed\n"
            "- [ ] Next\n"
        )
        tasks = parse_outline(text).tasks

        assert tasks[0].description == (
            "Task\n"
            "\t- tab item with `backticks` and \"quotes\"\n"
            "    1. numbered [bracket]\n"
            "  \t      - deep mixed"
        )
        assert tasks[1].description == "Next"

    def test_header_terminates_capture(self):
        """Test that a header ends the previous task."""
        text = "- [ ] Task\n## 1. Section\n  - not attached\n"
        outline = parse_outline(text)

        assert outline.loose_tasks[0].description == "Task"
        assert outline.sections[0].tasks == []

    def test_plain_text_terminates_capture(self):
        """Test that a non-bullet line ends capture."""
        tasks = parse_outline("- [ ] Task\n  plain note\n  - after note\n").tasks

        assert tasks[0].description == "Task"

    def test_long_continuation(self):
        """Test that capture has no length limit."""
        items = "".join(f"  - item {i}\n" for i in range(500))
        task = parse_outline("- [ ] Task\n" + items).tasks[0]

        assert task.description.count("\n") == 500


class TestEdgeCases:
    """Test cases for empty input and files."""

    def test_empty_text(self):
        """Test parsing an empty outline."""
        outline = parse_outline("")

        assert outline.sections == []
        assert outline.tasks == []
        assert outline.line_count == 0

    def test_count_lines(self):
        """Test line counting."""
        assert count_lines("") == 0
        assert count_lines("a") == 1
        assert count_lines("a\n") == 1
        assert count_lines("a\nb") == 2
        assert count_lines("line\n" * 100) == 100

    def test_missing_file(self, tmp_path):
        """Test that a missing outline is an error."""
        with pytest.raises(OutlineNotFoundError, match="outline not found"):
            parse_outline_file(tmp_path / "tasks.md")

    def test_missing_file_is_file_not_found(self, tmp_path):
        """Test that callers can catch the builtin error."""
        with pytest.raises(FileNotFoundError):
            parse_outline_file(tmp_path / "tasks.md")

    def test_parse_file(self, tmp_path):
        """Test reading an outline from disk."""
        path = tmp_path / "tasks.md"
        path.write_text(SAMPLE_OUTLINE, encoding="utf-8")

        assert len(parse_outline_file(path).tasks) == 6

    def test_invalid_utf8(self, tmp_path):
        """Test that undecodable bytes give a typed error with the offset."""
        path = tmp_path / "tasks.md"
        path.write_bytes(b"## 1. A\n- [ ] caf\xe9 task\n")

        with pytest.raises(OutlineDecodeError, match="not valid UTF-8 at byte 17") as exc_info:
            parse_outline_file(path)

        assert exc_info.value.path == path
        assert exc_info.value.offset == 17
        assert isinstance(exc_info.value, ValueError)

    def test_crlf_kept_when_read(self, tmp_path):
        """Test that reading leaves carriage returns for the parser to strip."""
        path = tmp_path / "tasks.md"
        path.write_bytes(b"## 1. A\r\n- [ ] task\r\n")

        assert read_outline_text(path) == "## 1. A\r\n- [ ] task\r\n"
        assert parse_outline_file(path).tasks[0].description == "task"

    @pytest.mark.parametrize(
        "line, kind",
        [
            ("", LineKind.BLANK),
            ("   \t", LineKind.BLANK),
            ("## Title", LineKind.HEADER),
            ("### Title", LineKind.OTHER),
            ("- [ ] task", LineKind.TASK),
            ("- [x] task", LineKind.TASK),
            ("  - item", LineKind.CONTINUATION),
            ("\t12. item", LineKind.CONTINUATION),
            ("- plain bullet", LineKind.OTHER),
        ],
    )
    def test_classify_line(self, line, kind):
        """Test line classification."""
        assert classify_line(line) is kind


class TestFold:
    """Test cases for the line-by-line accumulator."""

    def test_steps_do_not_edit_earlier_accumulators(self):
        """Test that each step leaves the accumulator it was given untouched."""
        header = _step(_Scan(), 1, "## 1. A")
        with_task = _step(header, 2, "- [ ] task")
        continued = _step(with_task, 3, "  - detail")

        assert header.sections[0].tasks == []
        assert header.sections[0].end_line == 1
        assert with_task.sections[0].tasks[0].description == "task"
        assert continued.sections[0].tasks[0].description == "task\n  - detail"

    def test_loose_task_continuation(self):
        """Test that loose tasks are extended without touching the earlier step."""
        with_task = _step(_Scan(), 1, "- [ ] loose")
        continued = _step(with_task, 2, "  - more")

        assert with_task.loose_tasks[0].description == "loose"
        assert continued.loose_tasks[0].description == "loose\n  - more"

    def test_reparse_gives_equal_results(self):
        """Test that parsing the same text twice gives equal outlines."""
        assert parse_outline(SAMPLE_OUTLINE) == parse_outline(SAMPLE_OUTLINE)
