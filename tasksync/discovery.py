"""Walking a ledger across ``$ref`` links.

Reference tasks are replaced by the tasks of the document they point at,
resolved relative to the referring file. Unreadable references are skipped
with a warning; a reference back to a document already on the current path
is an error.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional, Tuple

from .exceptions import CircularReferenceError, DocumentParseError
from .jsonc import read_document
from .models import STATUS_PENDING, Task, TaskSummary

logger = logging.getLogger("tasksync.discovery")


def iter_ledger_tasks(root_path: Path | str) -> Iterator[Tuple[Path, Task]]:
    """Yield ``(document path, task)`` for every real task in order."""
    yield from _walk(Path(root_path).resolve(), ())


def _walk(path: Path, visiting: Tuple[Path, ...]) -> Iterator[Tuple[Path, Task]]:
    if path in visiting:
        raise CircularReferenceError(path)
    document = read_document(path)
    visiting = visiting + (path,)
    for task in document.tasks:
        if not task.child_path:
            yield path, task
            continue
        child_path = (path.parent / PurePosixPath(task.child_path)).resolve()
        if not child_path.is_file():
            logger.warning(f"Task {task.id} references missing document {child_path}; skipping")
            continue
        try:
            yield from _walk(child_path, visiting)
        except DocumentParseError as exc:
            logger.warning(f"Task {task.id} references unreadable document {child_path}: {exc}")


def find_next_pending_task(root_path: Path | str) -> Optional[Tuple[Path, Task]]:
    for path, task in iter_ledger_tasks(root_path):
        if task.status == STATUS_PENDING:
            return path, task
    return None


def summarize(root_path: Path | str) -> TaskSummary:
    return TaskSummary.from_tasks([task for _, task in iter_ledger_tasks(root_path)])
