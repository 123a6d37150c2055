"""Custom exceptions for tasksync."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


class TaskSyncError(Exception):
    """Base exception for tasksync operations."""


class ConfigError(TaskSyncError):
    """Project configuration could not be loaded."""


class OutlineNotFoundError(TaskSyncError, FileNotFoundError):
    """The source outline does not exist."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"outline not found: {self.path}")


class OutlineDecodeError(TaskSyncError, ValueError):
    """The outline is not valid UTF-8."""

    def __init__(self, path: Path | str, offset: int, reason: str):
        self.path = Path(path)
        self.offset = offset
        super().__init__(f"outline {self.path} is not valid UTF-8 at byte {offset}: {reason}")


class NoValidTasksError(TaskSyncError):
    """The outline has content but not a single checkbox task."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(
            f"no valid tasks found in {self.path}; "
            "expected format: '- [ ] N.N Task', '- [ ] N. Task', or '- [ ] Task'"
        )


class DuplicateTaskIDError(TaskSyncError, ValueError):
    """Two or more tasks share the same computed ID."""

    def __init__(self, ids: Iterable[str]):
        self.ids: List[str] = sorted(set(ids))
        super().__init__(f"duplicate task IDs found: [{' '.join(self.ids)}]")


class JSONCValidationError(TaskSyncError):
    """Serialized output could not be parsed back."""

    def __init__(self, message: str, *, offset: int, context: str):
        self.offset = offset
        self.context = context
        super().__init__(message)


class DocumentParseError(TaskSyncError):
    """A stored tasks document is not valid JSON or has an unknown shape."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)


class TaskNotFoundError(TaskSyncError):
    """No task with the requested ID exists in the ledger."""

    def __init__(self, task_id: str, path: Optional[Path] = None):
        self.task_id = task_id
        self.path = path
        where = f" in {path}" if path else ""
        super().__init__(f"task '{task_id}' not found{where}")


class InvalidStatusError(TaskSyncError, ValueError):
    """A status string outside pending, in_progress and completed."""


class CircularReferenceError(TaskSyncError):
    """A chain of $ref links points back at a document already visited."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"circular reference detected: {path}")
