"""Rendering and writing of task document trees.

Nothing is written until every file of the tree has been rendered and
parsed back successfully, and until the assembled task set is known to
have unique IDs.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence

from .exceptions import DocumentParseError, DuplicateTaskIDError
from .jsonc import marshal_document, read_document, validate_output
from .merge import resolve_includes
from .models import ChildDocument, DocumentTree, Task, TasksDocument

logger = logging.getLogger("tasksync.writer")

FILE_MODE = 0o644
PRODUCT_NAME = "tasksync"


@dataclass(slots=True)
class RenderedFile:
    """A document rendered to text, ready to be written."""

    path: Path
    text: str
    task_count: int

    def to_dict(self) -> dict:
        return {"path": str(self.path), "task_count": self.task_count, "bytes": len(self.text.encode("utf-8"))}


def _banner_value(value: str) -> str:
    # a newline here would end the comment and leak text into the JSON
    return " ".join(str(value).splitlines()) or "-"


def root_file_header(change_id: Optional[str]) -> str:
    lines = [
        f"// {PRODUCT_NAME} Tasks File (JSONC)",
        f"// Generated by: {PRODUCT_NAME} accept {_banner_value(change_id or '-')}",
        "//",
        "// Status Values: pending, in_progress, completed",
        "// Status Transitions: pending -> in_progress -> completed",
        "//",
        "// Edit tasks.md to change task content, then re-run accept.",
        "// Statuses recorded here are kept across regenerations.",
    ]
    return "\n".join(lines) + "\n\n"


def child_file_header(change_id: Optional[str], parent_task_id: str) -> str:
    change = _banner_value(change_id or "-")
    lines = [
        f"// Generated by: {PRODUCT_NAME} accept {change}",
        f"// Parent change: {change}",
        f"// Parent task: {_banner_value(parent_task_id)}",
        "//",
        "// Status Values:",
        "//   pending     - not started",
        "//   in_progress - currently being worked on",
        "//   completed   - done and verified",
        "//",
        "// Status Transitions:",
        "//   pending -> in_progress -> completed",
        "//",
        "// Workflow:",
        "//   1. Mark a task in_progress before starting it",
        "//   2. Do the work",
        "//   3. Mark it completed as soon as it is verified",
        "//",
        "// IMPORTANT - Update Status Immediately:",
        "//   Do NOT batch status updates.",
        "//   Do NOT wait until all tasks are done.",
    ]
    return "\n".join(lines) + "\n\n"


def validate_id_uniqueness(tasks: Iterable[Task]) -> None:
    """Raise with every duplicated ID, not just the first."""
    counts = Counter(task.id for task in tasks)
    duplicates = [task_id for task_id, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateTaskIDError(duplicates)


def render_document(document: TasksDocument, header: str) -> str:
    """Banner plus JSON, validated by parsing it back."""
    text = header + marshal_document(document)
    validate_output(text)
    return text


def render_tree(tree: DocumentTree, output_path: Path, change_id: Optional[str] = None) -> List[RenderedFile]:
    """Render the root and every child; children come first."""
    validate_id_uniqueness(tree.assembled_tasks())
    base = output_path.parent
    rendered: List[RenderedFile] = []
    for relative, child in tree.children.items():
        rendered.append(RenderedFile(
            path=base / PurePosixPath(relative),
            text=render_document(child, header_for(child, change_id)),
            task_count=len(child.tasks),
        ))
    rendered.append(RenderedFile(
        path=output_path,
        text=render_document(tree.root, header_for(tree.root, change_id)),
        task_count=len(tree.root.tasks),
    ))
    return rendered


def write_file(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps "\n" on every platform so reruns stay byte-identical
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)
    os.chmod(path, FILE_MODE)


def _is_child_document(path: Path) -> bool:
    try:
        return isinstance(read_document(path), ChildDocument)
    except DocumentParseError:
        return False


def delete_old_child_files(root_dir: Path, patterns: Sequence[str], keep: Iterable[Path]) -> List[Path]:
    """Remove files matched by ``patterns`` that are not part of the new tree.

    Only generated child documents are removed; anything else the globs
    happen to match is left in place.
    """
    keep_set = {Path(path).resolve() for path in keep}
    removed: List[Path] = []
    for path in resolve_includes(root_dir, list(patterns)):
        if path.resolve() in keep_set:
            continue
        if not _is_child_document(path):
            logger.warning(f"Keeping {path}: matches the includes but is not a child document")
            continue
        path.unlink()
        removed.append(path)
        logger.info(f"Removed stale child document {path}")
    return removed


def write_tree(
    rendered: Sequence[RenderedFile],
    root_dir: Path,
    stale_patterns: Sequence[str] = (),
) -> List[Path]:
    """Write rendered files after clearing stale children; returns removed paths."""
    removed = delete_old_child_files(root_dir, stale_patterns, (item.path for item in rendered))
    for item in rendered:
        write_file(item.path, item.text)
        logger.debug(f"Wrote {item.path} ({item.task_count} tasks)")
    return removed


def header_for(document: TasksDocument, change_id: Optional[str]) -> str:
    if isinstance(document, ChildDocument):
        return child_file_header(change_id, document.parent)
    return root_file_header(change_id)
