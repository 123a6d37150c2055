"""Workspace management for tasksync.

A workspace is a project root holding one directory per change under
``<root>/<storage-dir>/changes/``. Each change directory carries the
outline (``tasks.md``), the generated ledger (``tasks.jsonc`` plus any
child documents) and the capability specs under ``specs/``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .accept import LEDGER_FILE_NAME, OUTLINE_FILE_NAME, AcceptResult, accept_outline
from .capabilities import DirectoryCapabilityLookup
from .config import STORAGE_DIR_ENV, load_settings
from .discovery import find_next_pending_task, iter_ledger_tasks, summarize
from .exceptions import InvalidStatusError, TaskNotFoundError
from .jsonc import read_document
from .markdown_sync import sync_statuses_to_markdown
from .models import TASK_STATUSES, ChildDocument, RootDocument, TaskSummary
from .outline import parse_outline_file
from .splitter import compute_aggregate_status
from .sync_logging import (
    log_error_with_context,
    log_markdown_synced,
    log_operation,
    log_performance,
    log_task_status_update,
    observability_hooks,
)
from .writer import header_for, render_document, write_file

logger = logging.getLogger("tasksync.workspace")

_CHANGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Global registry for change roots
_CHANGE_ROOT_REGISTRY: Dict[str, Path] = {}


def register_change_root(change_id: str, root: Path | str) -> Path:
    """Record the project root that owns a change."""
    resolved = Path(root).resolve()
    _CHANGE_ROOT_REGISTRY[change_id.lower()] = resolved
    return resolved


def lookup_change_root(change_id: str) -> Optional[Path]:
    """Return the registered project root for the change, if any."""
    return _CHANGE_ROOT_REGISTRY.get(change_id.lower())


class Workspace:
    """Manage task outlines and their ledgers within a repository."""

    STORAGE_DIR_ENV = STORAGE_DIR_ENV

    def __init__(self, root: Path | str):
        """Initialize workspace with given root directory."""
        try:
            self.root = Path(root).resolve()
            self.settings = load_settings(self.root)
            self.base_dir = self.root / self.settings.storage_dir
            self.changes_dir = self.base_dir / "changes"

            try:
                self.changes_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create workspace directories: {e}")
                raise RuntimeError(f"Could not initialize workspace at {self.root}: {e}") from e

            logger.debug(f"Workspace initialized at {self.root}")
            observability_hooks.log_sync_event("workspace_initialized", root=str(self.root))

        except Exception as e:
            log_error_with_context(e, {"operation": "workspace_init", "root": str(root)})
            raise

    # ------------------------------------------------------------------
    # Change helpers
    # ------------------------------------------------------------------

    def change_dir(self, change_id: str) -> Path:
        if not change_id or not _CHANGE_ID_PATTERN.match(change_id):
            raise ValueError(f"Invalid change ID '{change_id}'")
        return self.changes_dir / change_id

    def outline_path(self, change_id: str) -> Path:
        return self.change_dir(change_id) / OUTLINE_FILE_NAME

    def ledger_path(self, change_id: str) -> Path:
        return self.change_dir(change_id) / LEDGER_FILE_NAME

    def list_changes(self) -> List[Dict[str, Any]]:
        """List all changes in the workspace."""
        changes: List[Dict[str, Any]] = []
        for path in sorted(self.changes_dir.iterdir()):
            if not path.is_dir():
                continue
            outline = path / OUTLINE_FILE_NAME
            ledger = path / LEDGER_FILE_NAME
            lookup = DirectoryCapabilityLookup(path, self.settings.capability_marker)
            changes.append(
                {
                    "change_id": path.name,
                    "outline_path": str(outline) if outline.exists() else None,
                    "ledger_path": str(ledger) if ledger.exists() else None,
                    "capabilities": lookup.available(),
                }
            )
        return changes

    def save_outline(self, change_id: str, content: str) -> Path:
        """Create or replace the outline of a change."""
        path = self.outline_path(change_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info(f"Outline saved to {path}")
        return path

    def _require_ledger(self, change_id: str) -> Path:
        path = self.ledger_path(change_id)
        if not path.exists():
            raise FileNotFoundError(
                f"No {LEDGER_FILE_NAME} found for change '{change_id}'. Run accept first."
            )
        return path

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def sections(self, change_id: str) -> List[Dict[str, Any]]:
        """Parsed sections of the outline; nothing is written."""
        outline = parse_outline_file(self.outline_path(change_id))
        return [section.to_dict() for section in outline.sections]

    @log_performance("accept_change")
    def accept(self, change_id: str, *, dry_run: bool = False) -> AcceptResult:
        """Regenerate the ledger of a change from its outline."""
        try:
            change_dir = self.change_dir(change_id)
            return accept_outline(
                change_dir / OUTLINE_FILE_NAME,
                change_dir / LEDGER_FILE_NAME,
                change_id=change_id,
                append=self.settings.append,
                capabilities=DirectoryCapabilityLookup(change_dir, self.settings.capability_marker),
                threshold=self.settings.split_line_threshold,
                dry_run=dry_run,
                require_tasks=True,
            )
        except Exception as e:
            log_error_with_context(e, {
                "operation": "accept_change",
                "change_id": change_id,
                "dry_run": dry_run,
            })
            raise

    # ------------------------------------------------------------------
    # Ledger progress
    # ------------------------------------------------------------------

    def next_task(self, change_id: str) -> Optional[Dict[str, Any]]:
        """The first pending task, following child documents in order."""
        found = find_next_pending_task(self._require_ledger(change_id))
        if found is None:
            return None
        path, task = found
        return {**task.to_dict(), "document": str(path)}

    def summary(self, change_id: str) -> TaskSummary:
        return summarize(self._require_ledger(change_id))

    def statuses(self, change_id: str) -> Dict[str, str]:
        return {task.id: task.status for _, task in iter_ledger_tasks(self._require_ledger(change_id))}

    @log_performance("update_task_status")
    def update_task_status(self, change_id: str, task_id: str, status: str) -> Dict[str, Any]:
        """Set one task's status in whichever document holds it.

        When the task lives in a child document, the owning reference task
        in the root is refreshed to the child's aggregate status.
        """
        try:
            if status not in TASK_STATUSES:
                raise InvalidStatusError(
                    f"Invalid status '{status}'; expected one of {', '.join(TASK_STATUSES)}"
                )
            if not task_id or not task_id.strip():
                raise ValueError("Task ID cannot be empty")

            with log_operation("update_task_status", change_id=change_id, task_id=task_id, status=status):
                root_path = self._require_ledger(change_id)
                holder = next(
                    (path for path, task in iter_ledger_tasks(root_path) if task.id == task_id),
                    None,
                )
                if holder is None:
                    raise TaskNotFoundError(task_id, root_path)

                document = read_document(holder)
                previous = None
                for task in document.tasks:
                    if task.id == task_id and not task.child_path:
                        previous = task.status
                        task.status = status
                write_file(holder, render_document(document, header_for(document, change_id)))

                if isinstance(document, ChildDocument) and holder != root_path.resolve():
                    self._refresh_reference(change_id, root_path, holder, document)

                log_task_status_update(change_id, task_id, status, previous=previous)
                logger.info(f"Updated task '{task_id}' of change '{change_id}' to {status}")

                return {
                    "task_id": task_id,
                    "status": status,
                    "previous_status": previous,
                    "document": str(holder),
                    "summary": self.summary(change_id).to_dict(),
                }

        except Exception as e:
            log_error_with_context(e, {
                "operation": "update_task_status",
                "change_id": change_id,
                "task_id": task_id,
                "status": status,
            })
            raise

    def _refresh_reference(self, change_id: str, root_path: Path, child_path: Path, child: ChildDocument) -> None:
        root = read_document(root_path)
        if not isinstance(root, RootDocument):
            return
        changed = False
        for task in root.tasks:
            if task.child_path and (root_path.parent / task.child_path).resolve() == child_path:
                aggregate = compute_aggregate_status(child.tasks)
                if task.status != aggregate:
                    task.status = aggregate
                    changed = True
        if changed:
            write_file(root_path, render_document(root, header_for(root, change_id)))

    @log_performance("sync_markdown")
    def sync_markdown(self, change_id: str) -> Dict[str, Any]:
        """Copy ledger statuses into the outline's checkboxes."""
        try:
            outline = self.outline_path(change_id)
            updated = sync_statuses_to_markdown(outline, self.statuses(change_id))
            log_markdown_synced(change_id, outline, updated)
            return {"outline_path": str(outline), "updated": updated}
        except Exception as e:
            log_error_with_context(e, {"operation": "sync_markdown", "change_id": change_id})
            raise
