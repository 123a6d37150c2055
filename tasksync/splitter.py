"""Partitioning of a parsed task set into a document tree.

Three layouts are produced:

* flat: a single version 1 document (fewer than two populated sections,
  or a short outline with no capability match);
* capability: sections matching ``specs/<capability>/`` move into
  ``specs/<capability>/tasks.jsonc`` and leave a reference task behind;
* size: outlines longer than the threshold get one ``tasks-<n>.jsonc``
  per section.

Each child document's path is built from the glob published in the
root's ``includes`` so the two can never disagree.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .capabilities import CAPABILITY_SPECS_DIR, CapabilityLookup, match_section_to_capability
from .models import (
    REF_PREFIX,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    ChildDocument,
    DocumentTree,
    FlatDocument,
    RootDocument,
    Section,
    SubsectionGroup,
    Task,
    copy_task,
)

logger = logging.getLogger("tasksync.splitter")

DEFAULT_SPLIT_THRESHOLD = 100

CAPABILITY_CHILD_GLOB = f"{CAPABILITY_SPECS_DIR}/*/tasks.jsonc"
SECTION_CHILD_GLOB = "tasks-*.jsonc"


def child_path_for(glob: str, key: str) -> str:
    """Fill the single ``*`` of an includes glob."""
    return glob.replace("*", key, 1)


def should_split(line_count: int, section_count: int, threshold: int = DEFAULT_SPLIT_THRESHOLD) -> bool:
    return section_count >= 2 and line_count > threshold


def should_split_section(section: Section, threshold: int = DEFAULT_SPLIT_THRESHOLD) -> bool:
    return section.line_count > threshold


def extract_id_prefix(task_id: str) -> str:
    """``"1.2.3"`` -> ``"1.2"``; an ID without a dot is its own prefix."""
    head, dot, _ = task_id.rpartition(".")
    return head if dot else task_id


def parse_subsections(tasks: Sequence[Task]) -> List[SubsectionGroup]:
    """Group consecutive tasks that share an ID prefix, in encounter order."""
    groups: List[SubsectionGroup] = []
    for task in tasks:
        prefix = extract_id_prefix(task.id)
        if groups and groups[-1].prefix == prefix:
            groups[-1].tasks.append(task)
        else:
            groups.append(SubsectionGroup(prefix=prefix, tasks=[task]))
    return groups


def compute_aggregate_status(tasks: Sequence[Task]) -> str:
    if not tasks:
        return STATUS_PENDING
    statuses = {task.status for task in tasks}
    if statuses == {STATUS_COMPLETED}:
        return STATUS_COMPLETED
    if statuses == {STATUS_PENDING}:
        return STATUS_PENDING
    return STATUS_IN_PROGRESS


def _detach(tasks: Sequence[Task]) -> List[Task]:
    return [copy_task(task, section="", children=None) for task in tasks]


def _reference(tasks: Sequence[Task], section: Section, path: str, description: str) -> Task:
    return Task(
        id=tasks[0].id,
        section=section.name,
        description=description,
        status=compute_aggregate_status(tasks),
        children=f"{REF_PREFIX}{path}",
    )


def _section_label(section: Section) -> str:
    return section.name or f"Section {section.number}"


class _TreeBuilder:
    def __init__(self, includes: List[str]):
        self.root_tasks: List[Task] = []
        self.children: Dict[str, ChildDocument] = {}
        self.includes = includes

    def keep(self, tasks: Sequence[Task]) -> None:
        self.root_tasks.extend(copy_task(task) for task in tasks)

    def link(self, tasks: Sequence[Task], section: Section, path: str, description: str) -> None:
        reference = _reference(tasks, section, path, description)
        self.root_tasks.append(reference)
        self.children[path] = ChildDocument(parent=reference.id, tasks=_detach(tasks))

    def build(self) -> DocumentTree:
        return DocumentTree(
            root=RootDocument(tasks=self.root_tasks, includes=list(self.includes)),
            children=self.children,
        )


def _capability_matches(sections: Sequence[Section], lookup: CapabilityLookup) -> List[Tuple[Section, Optional[str]]]:
    claimed: set[str] = set()
    matches: List[Tuple[Section, Optional[str]]] = []
    for section in sections:
        capability = match_section_to_capability(section.name, lookup) if section.tasks else None
        if capability and capability in claimed:
            logger.warning(
                f"Section '{section.name}' maps to capability '{capability}' which is already "
                "claimed by an earlier section; keeping it in the root document"
            )
            capability = None
        if capability:
            claimed.add(capability)
        matches.append((section, capability))
    return matches


def _split_by_capability(
    loose_tasks: Sequence[Task],
    matches: Sequence[Tuple[Section, Optional[str]]],
) -> DocumentTree:
    builder = _TreeBuilder([CAPABILITY_CHILD_GLOB])
    builder.keep(loose_tasks)
    for section, capability in matches:
        if capability:
            path = child_path_for(CAPABILITY_CHILD_GLOB, capability)
            builder.link(section.tasks, section, path, _section_label(section))
        else:
            builder.keep(section.tasks)
    return builder.build()


def _split_by_section(
    loose_tasks: Sequence[Task],
    sections: Sequence[Section],
    threshold: int,
) -> DocumentTree:
    builder = _TreeBuilder([SECTION_CHILD_GLOB])
    builder.keep(loose_tasks)
    for section in sections:
        if not section.tasks:
            continue
        groups = parse_subsections(section.tasks) if should_split_section(section, threshold) else []
        if len(groups) > 1:
            for group in groups:
                path = child_path_for(SECTION_CHILD_GLOB, group.prefix)
                builder.link(group.tasks, section, path, f"{_section_label(section)} ({group.prefix})")
        else:
            path = child_path_for(SECTION_CHILD_GLOB, section.number)
            builder.link(section.tasks, section, path, _section_label(section))
    return builder.build()


def split_tasks(
    loose_tasks: Sequence[Task],
    sections: Sequence[Section],
    line_count: int,
    lookup: CapabilityLookup,
    threshold: int = DEFAULT_SPLIT_THRESHOLD,
) -> DocumentTree:
    """Decide the layout for a parsed task set and build the document tree.

    ``sections`` are in outline order (appended sections last). Tasks are
    copied; the inputs are not modified.
    """
    populated = [section for section in sections if section.tasks]
    if len(populated) < 2:
        tasks = list(loose_tasks) + [task for section in populated for task in section.tasks]
        return DocumentTree(root=FlatDocument(tasks=[copy_task(task) for task in tasks]))

    matches = _capability_matches(populated, lookup)
    if any(capability for _, capability in matches):
        logger.debug(f"Splitting {len(populated)} sections by capability")
        return _split_by_capability(loose_tasks, matches)

    if should_split(line_count, len(populated), threshold):
        logger.debug(f"Splitting {line_count}-line outline by section")
        return _split_by_section(loose_tasks, populated, threshold)

    tasks = list(loose_tasks) + [task for section in populated for task in section.tasks]
    return DocumentTree(root=FlatDocument(tasks=[copy_task(task) for task in tasks]))
