"""Data models for the task outline synchronization engine.

This module holds the records shared by every stage of the pipeline:
tasks and sections produced by the outline parser, the versioned task
documents written to disk, and small value types used for appending and
reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from .exceptions import DocumentParseError


STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

TASK_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

REF_PREFIX = "$ref:"

DEFAULT_APPEND_SECTION = "Automated Follow-up"


@dataclass(slots=True)
class Task:
    """A single checklist item."""

    id: str
    section: str
    description: str
    status: str = STATUS_PENDING
    children: Optional[str] = None
    line: int = 0

    def to_dict(self) -> Dict[str, str]:
        """Convert to the on-disk representation."""
        data = {
            "id": self.id,
            "section": self.section,
            "description": self.description,
            "status": self.status,
        }
        if self.children:
            data["children"] = self.children
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from the on-disk representation."""
        return cls(
            id=str(data.get("id", "")),
            section=data.get("section", "") or "",
            description=data.get("description", "") or "",
            status=data.get("status", STATUS_PENDING) or STATUS_PENDING,
            children=data.get("children") or None,
        )

    @property
    def child_path(self) -> Optional[str]:
        """Relative path named by the children reference, if any."""
        if self.children and self.children.startswith(REF_PREFIX):
            return self.children[len(REF_PREFIX):]
        return None

    def validate(self) -> List[str]:
        """Validate the task and return any issues."""
        issues = []
        if not self.id:
            issues.append("Task ID is required")
        if self.status not in TASK_STATUSES:
            issues.append(f"Invalid status '{self.status}' for task {self.id}")
        if self.children and not self.children.startswith(REF_PREFIX):
            issues.append(f"Children of task {self.id} must start with '{REF_PREFIX}'")
        return issues


@dataclass(slots=True)
class Section:
    """A contiguous ``##``-headed region of the outline."""

    name: str
    number: str
    start_line: int
    end_line: int = 0
    tasks: List[Task] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        if self.end_line < self.start_line:
            return 0
        return self.end_line - self.start_line + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "number": self.number,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "line_count": self.line_count,
            "tasks": [task.to_dict() for task in self.tasks],
        }


@dataclass(slots=True)
class SubsectionGroup:
    """Consecutive tasks sharing the same ID prefix."""

    prefix: str
    tasks: List[Task] = field(default_factory=list)


@dataclass(slots=True)
class AppendConfig:
    """Extra tasks to synthesize under a trailing section."""

    tasks: List[str] = field(default_factory=list)
    section: str = DEFAULT_APPEND_SECTION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppendConfig":
        """Create from dictionary representation."""
        return cls(
            tasks=[str(item) for item in data.get("tasks") or []],
            section=data.get("section") or DEFAULT_APPEND_SECTION,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"section": self.section, "tasks": list(self.tasks)}


@dataclass(slots=True)
class TaskSummary:
    """Status counts over a task ledger."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0

    @classmethod
    def from_tasks(cls, tasks: List[Task]) -> "TaskSummary":
        summary = cls()
        for task in tasks:
            summary.total += 1
            if task.status == STATUS_COMPLETED:
                summary.completed += 1
            elif task.status == STATUS_IN_PROGRESS:
                summary.in_progress += 1
            else:
                summary.pending += 1
        return summary

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "in_progress": self.in_progress,
            "pending": self.pending,
        }


# ----------------------------------------------------------------------
# Persisted documents
# ----------------------------------------------------------------------


@dataclass(slots=True)
class FlatDocument:
    """Version 1 document: every task in one list."""

    tasks: List[Task] = field(default_factory=list)

    version = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "tasks": [task.to_dict() for task in self.tasks],
        }


@dataclass(slots=True)
class RootDocument:
    """Version 2 root: its own tasks plus globs locating child documents."""

    tasks: List[Task] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)

    version = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "includes": list(self.includes),
            "tasks": [task.to_dict() for task in self.tasks],
        }


@dataclass(slots=True)
class ChildDocument:
    """Version 2 child owned by exactly one root task."""

    parent: str
    tasks: List[Task] = field(default_factory=list)

    version = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "parent": self.parent,
            "tasks": [task.to_dict() for task in self.tasks],
        }


TasksDocument = Union[FlatDocument, RootDocument, ChildDocument]


def document_from_dict(data: Any) -> TasksDocument:
    """Build the matching document variant from decoded JSON."""
    if not isinstance(data, dict):
        raise DocumentParseError("tasks document must be a JSON object")

    raw_tasks = data.get("tasks") or []
    if not isinstance(raw_tasks, list) or not all(isinstance(item, dict) for item in raw_tasks):
        raise DocumentParseError("'tasks' must be a list of objects")
    tasks = [Task.from_dict(item) for item in raw_tasks]

    version = data.get("version")
    if version == 1:
        return FlatDocument(tasks=tasks)
    if version == 2:
        if data.get("parent"):
            return ChildDocument(parent=str(data["parent"]), tasks=tasks)
        return RootDocument(tasks=tasks, includes=[str(item) for item in data.get("includes") or []])
    raise DocumentParseError(f"unsupported tasks document version: {version!r}")


@dataclass(slots=True)
class DocumentTree:
    """A root (or flat) document plus the children it owns.

    Child keys are paths relative to the directory holding the root document,
    written with forward slashes exactly as they appear in ``$ref`` links.
    """

    root: Union[FlatDocument, RootDocument]
    children: Dict[str, ChildDocument] = field(default_factory=dict)

    @property
    def is_hierarchical(self) -> bool:
        return isinstance(self.root, RootDocument)

    def reference_tasks(self) -> List[Task]:
        return [task for task in self.root.tasks if task.child_path]

    def assembled_tasks(self) -> List[Task]:
        """Every real task in order, children expanded in place of their reference."""
        tasks: List[Task] = []
        for task in self.root.tasks:
            child = self.children.get(task.child_path) if task.child_path else None
            if child is not None:
                tasks.extend(child.tasks)
            else:
                tasks.append(task)
        return tasks


def copy_task(task: Task, **changes: Any) -> Task:
    return replace(task, **changes)
