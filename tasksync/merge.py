"""Status-preserving merge.

Statuses recorded in the previous generation of a ledger are reapplied to
a freshly built document tree by exact task ID. The previous tree is read
through the globs its own root published, so a layout change between
generations (flat to split or back) keeps every status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from .jsonc import read_document
from .models import ChildDocument, DocumentTree, RootDocument, Task
from .splitter import compute_aggregate_status

logger = logging.getLogger("tasksync.merge")


@dataclass(slots=True)
class StatusSnapshot:
    """Statuses recovered from a previous ledger generation."""

    statuses: Dict[str, str] = field(default_factory=dict)
    children: List[Path] = field(default_factory=list)
    orphans: List[Path] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)


def _record(statuses: Dict[str, str], tasks: List[Task], source: Path) -> None:
    for task in tasks:
        issues = task.validate()
        if issues:
            logger.warning(f"Ignoring recorded status in {source}: {'; '.join(issues)}")
            continue
        statuses[task.id] = task.status


def is_safe_include(pattern: str) -> bool:
    """Relative glob that cannot climb out of the root document's directory."""
    if not pattern or "\\" in pattern:
        return False
    posix = PurePosixPath(pattern)
    return not posix.is_absolute() and not Path(pattern).is_absolute() and ".." not in posix.parts


def resolve_includes(root_dir: Path, patterns: List[str]) -> List[Path]:
    """Files matched by the root's ``includes`` globs, de-duplicated and sorted.

    Unsafe patterns are skipped, and so is any match that resolves outside
    ``root_dir`` (through a symlink, for instance).
    """
    base = root_dir.resolve()
    found = set()
    for pattern in patterns:
        if not is_safe_include(pattern):
            logger.warning(f"Ignoring include pattern {pattern!r} outside {root_dir}")
            continue
        try:
            matches = list(root_dir.glob(pattern))
        except (NotImplementedError, ValueError) as exc:
            logger.warning(f"Ignoring unusable include pattern {pattern!r}: {exc}")
            continue
        for path in matches:
            if path.is_file() and path.resolve().is_relative_to(base):
                found.add(path)
    return sorted(found)


def load_status_snapshot(root_path: Path | str) -> StatusSnapshot:
    """Read every status from the ledger rooted at ``root_path``.

    A missing root yields an empty snapshot. Child documents whose parent is
    not a task of the root are skipped and listed in ``orphans``.
    """
    path = Path(root_path)
    snapshot = StatusSnapshot()
    if not path.is_file():
        return snapshot

    document = read_document(path)
    _record(snapshot.statuses, document.tasks, path)
    if not isinstance(document, RootDocument):
        return snapshot

    snapshot.includes = [pattern for pattern in document.includes if is_safe_include(pattern)]
    root_ids = {task.id for task in document.tasks}
    for child_path in resolve_includes(path.parent, document.includes):
        if child_path == path:
            continue
        child = read_document(child_path)
        if not isinstance(child, ChildDocument) or child.parent not in root_ids:
            logger.warning(f"Skipping orphaned child document {child_path}")
            snapshot.orphans.append(child_path)
            continue
        snapshot.children.append(child_path)
        _record(snapshot.statuses, child.tasks, child_path)
    return snapshot


def load_existing_statuses(root_path: Path | str) -> Dict[str, str]:
    return load_status_snapshot(root_path).statuses


def apply_statuses(tree: DocumentTree, statuses: Optional[Dict[str, str]]) -> int:
    """Overwrite task statuses by ID; returns how many tasks took a recorded status.

    Reference tasks are refreshed from their child's tasks afterwards.
    """
    preserved = 0
    if statuses:
        for task in tree.assembled_tasks():
            recorded = statuses.get(task.id)
            if recorded is not None:
                task.status = recorded
                preserved += 1
    refresh_reference_statuses(tree)
    return preserved


def refresh_reference_statuses(tree: DocumentTree) -> None:
    for task in tree.reference_tasks():
        child = tree.children.get(task.child_path)
        if child is not None:
            task.status = compute_aggregate_status(child.tasks)
