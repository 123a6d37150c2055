"""Outline parsing.

Turns a ``tasks.md`` checklist into sections and tasks. IDs are always
recomputed from position: ``<section-number>.<n>`` inside a section and a
plain ``1``, ``2``, ... for tasks that appear before the first header.
Literal IDs written in the outline are discarded.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple

from .exceptions import OutlineDecodeError, OutlineNotFoundError
from .models import STATUS_COMPLETED, STATUS_PENDING, Section, Task


_SECTION_PATTERN = re.compile(r"^## (?P<rest>.*)$")
_SECTION_NUMBER_PATTERN = re.compile(r"^(?P<number>\d+)\.(?:\s+|$)(?P<name>.*)$")
_TASK_PATTERN = re.compile(
    r"^- \[(?P<mark>[ xX])\](?:\s+\d+(?:\.\d+)*\.?(?=\s|$))?[ \t]*(?P<description>.*)$"
)
_CONTINUATION_PATTERN = re.compile(r"^[ \t]+(?:-|\d+\.)")


class LineKind(enum.Enum):
    BLANK = "blank"
    HEADER = "header"
    TASK = "task"
    CONTINUATION = "continuation"
    OTHER = "other"


def classify_line(line: str) -> LineKind:
    if not line.strip():
        return LineKind.BLANK
    if _SECTION_PATTERN.match(line):
        return LineKind.HEADER
    if _TASK_PATTERN.match(line):
        return LineKind.TASK
    if _CONTINUATION_PATTERN.match(line):
        return LineKind.CONTINUATION
    return LineKind.OTHER


@dataclass(slots=True)
class Outline:
    """Result of parsing an outline."""

    sections: List[Section] = field(default_factory=list)
    loose_tasks: List[Task] = field(default_factory=list)
    line_count: int = 0

    @property
    def tasks(self) -> List[Task]:
        tasks = list(self.loose_tasks)
        for section in self.sections:
            tasks.extend(section.tasks)
        return tasks


@dataclass(frozen=True)
class _Scan:
    """Accumulator threaded through the line fold.

    Every step returns a new accumulator; sections and tasks already
    collected are replaced, never edited.
    """

    sections: Tuple[Section, ...] = ()
    loose_tasks: Tuple[Task, ...] = ()
    max_section_number: int = 0
    capturing: bool = False


def _current_section(scan: _Scan) -> Optional[Section]:
    return scan.sections[-1] if scan.sections else None


def _with_current_section(scan: _Scan, section: Section) -> _Scan:
    return replace(scan, sections=scan.sections[:-1] + (section,))


def _close_section(scan: _Scan, end_line: int) -> _Scan:
    section = _current_section(scan)
    if section is None:
        return scan
    return _with_current_section(scan, replace(section, end_line=end_line))


def _start_section(scan: _Scan, line_no: int, line: str) -> _Scan:
    scan = _close_section(scan, line_no - 1)
    rest = _SECTION_PATTERN.match(line).group("rest").strip()
    numbered = _SECTION_NUMBER_PATTERN.match(rest)
    if numbered:
        number = int(numbered.group("number"))
        name = numbered.group("name").strip()
    else:
        number = scan.max_section_number + 1
        name = rest
    section = Section(name=name, number=str(number), start_line=line_no, end_line=line_no)
    return replace(
        scan,
        sections=scan.sections + (section,),
        max_section_number=max(scan.max_section_number, number),
        capturing=False,
    )


def _add_task(scan: _Scan, line_no: int, line: str) -> _Scan:
    match = _TASK_PATTERN.match(line)
    status = STATUS_COMPLETED if match.group("mark") in ("x", "X") else STATUS_PENDING
    description = match.group("description")
    section = _current_section(scan)
    if section is None:
        task = Task(
            id=str(len(scan.loose_tasks) + 1),
            section="",
            description=description,
            status=status,
            line=line_no,
        )
        return replace(scan, loose_tasks=scan.loose_tasks + (task,), capturing=True)

    task = Task(
        id=f"{section.number}.{len(section.tasks) + 1}",
        section=section.name,
        description=description,
        status=status,
        line=line_no,
    )
    scan = _with_current_section(scan, replace(section, tasks=section.tasks + [task]))
    return replace(scan, capturing=True)


def _continue_task(scan: _Scan, line: str) -> _Scan:
    section = _current_section(scan)
    if section is not None:
        if not section.tasks:
            return scan
        last = section.tasks[-1]
        extended = replace(last, description=f"{last.description}\n{line}")
        return _with_current_section(scan, replace(section, tasks=section.tasks[:-1] + [extended]))
    if not scan.loose_tasks:
        return scan
    last = scan.loose_tasks[-1]
    extended = replace(last, description=f"{last.description}\n{line}")
    return replace(scan, loose_tasks=scan.loose_tasks[:-1] + (extended,))


def _step(scan: _Scan, line_no: int, line: str) -> _Scan:
    kind = classify_line(line)
    if kind is LineKind.HEADER:
        return _start_section(scan, line_no, line)
    if kind is LineKind.TASK:
        return _add_task(scan, line_no, line)
    if kind is LineKind.CONTINUATION and scan.capturing:
        return _continue_task(scan, line)
    if scan.capturing:
        return replace(scan, capturing=False)
    return scan


def split_lines(text: str) -> List[str]:
    """Split on newlines only; other Unicode line separators stay inside a line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def count_lines(text: str) -> int:
    """Number of lines, a trailing newline does not open a new one."""
    return len(split_lines(text))


def parse_outline(text: str) -> Outline:
    """Parse outline text into sections and tasks."""
    lines = split_lines(text)
    scan = _Scan()
    for line_no, line in enumerate(lines, start=1):
        scan = _step(scan, line_no, line)
    scan = _close_section(scan, len(lines))
    return Outline(
        sections=list(scan.sections),
        loose_tasks=list(scan.loose_tasks),
        line_count=len(lines),
    )


def read_outline_text(path: Path | str) -> str:
    """Read an outline as UTF-8 with its line endings untouched.

    A missing or undecodable file is an error.
    """
    outline_path = Path(path)
    if not outline_path.is_file():
        raise OutlineNotFoundError(outline_path)
    try:
        return outline_path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise OutlineDecodeError(outline_path, exc.start, exc.reason) from exc


def parse_outline_file(path: Path | str) -> Outline:
    """Read and parse an outline file."""
    return parse_outline(read_outline_text(path))
