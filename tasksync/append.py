"""Append injector: synthesize configured tasks under a trailing section."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import DEFAULT_APPEND_SECTION, STATUS_PENDING, AppendConfig, Section, Task


def extract_section_number(task_id: str) -> str:
    """First dot component of an ID; an ID without a dot is its own section."""
    return task_id.split(".", 1)[0]


def find_next_section_number(tasks: Sequence[Task]) -> int:
    highest = 0
    for task in tasks:
        head = extract_section_number(task.id)
        if head.isascii() and head.isdigit():
            highest = max(highest, int(head))
    return highest + 1


def create_appended_tasks(config: AppendConfig, next_number: int) -> List[Task]:
    section = config.section or DEFAULT_APPEND_SECTION
    return [
        Task(id=f"{next_number}.{index}", section=section, description=description, status=STATUS_PENDING)
        for index, description in enumerate(config.tasks, start=1)
    ]


def build_appended_section(config: Optional[AppendConfig], existing: Sequence[Task]) -> Optional[Section]:
    """Trailing section holding the appended tasks, or ``None`` if nothing to add."""
    if config is None or not config.tasks:
        return None
    number = find_next_section_number(existing)
    return Section(
        name=config.section or DEFAULT_APPEND_SECTION,
        number=str(number),
        start_line=0,
        end_line=0,
        tasks=create_appended_tasks(config, number),
    )
