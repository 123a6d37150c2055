"""The synchronization pass: outline in, validated ledger tree out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .append import build_appended_section
from .capabilities import CapabilityLookup, DirectoryCapabilityLookup
from .exceptions import NoValidTasksError
from .merge import apply_statuses, load_status_snapshot
from .models import AppendConfig, RootDocument
from .outline import parse_outline, read_outline_text
from .splitter import CAPABILITY_CHILD_GLOB, DEFAULT_SPLIT_THRESHOLD, split_tasks
from .sync_logging import (
    log_document_written,
    log_operation,
    log_performance,
    log_statuses_merged,
    log_tasks_appended,
)
from .writer import RenderedFile, render_tree, validate_id_uniqueness, write_tree

logger = logging.getLogger("tasksync.accept")

LEDGER_FILE_NAME = "tasks.jsonc"
OUTLINE_FILE_NAME = "tasks.md"

LAYOUT_FLAT = "flat"
LAYOUT_CAPABILITY = "capability"
LAYOUT_SECTION = "section"


@dataclass(slots=True)
class AcceptResult:
    """Outcome of one synchronization pass."""

    outline_path: Path
    output_path: Path
    layout: str
    files: List[RenderedFile] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    orphans: List[Path] = field(default_factory=list)
    task_count: int = 0
    preserved: int = 0
    appended: int = 0
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outline_path": str(self.outline_path),
            "output_path": str(self.output_path),
            "layout": self.layout,
            "files": [item.to_dict() for item in self.files],
            "removed": [str(path) for path in self.removed],
            "orphans": [str(path) for path in self.orphans],
            "task_count": self.task_count,
            "preserved": self.preserved,
            "appended": self.appended,
            "dry_run": self.dry_run,
        }


def _layout(root: Any) -> str:
    if not isinstance(root, RootDocument):
        return LAYOUT_FLAT
    return LAYOUT_CAPABILITY if CAPABILITY_CHILD_GLOB in root.includes else LAYOUT_SECTION


@log_performance("accept_outline")
def accept_outline(
    outline_path: Path | str,
    output_path: Path | str | None = None,
    *,
    change_id: Optional[str] = None,
    append: Optional[AppendConfig] = None,
    capabilities: Optional[CapabilityLookup] = None,
    statuses: Optional[Dict[str, str]] = None,
    threshold: int = DEFAULT_SPLIT_THRESHOLD,
    dry_run: bool = False,
    require_tasks: bool = False,
) -> AcceptResult:
    """Regenerate the ledger for ``outline_path``.

    Statuses are taken from ``statuses`` when given, otherwise from the
    ledger already at ``output_path``. Capabilities default to the
    ``specs/`` directory next to the output. With ``dry_run`` every check
    runs but nothing is written or removed.
    """
    outline_path = Path(outline_path)
    output_path = Path(output_path) if output_path else outline_path.parent / LEDGER_FILE_NAME

    with log_operation("accept_outline", change_id=change_id, outline=str(outline_path), dry_run=dry_run):
        text = read_outline_text(outline_path)
        outline = parse_outline(text)
        if require_tasks and not outline.tasks and text.strip():
            raise NoValidTasksError(outline_path)

        sections = list(outline.sections)
        appended = build_appended_section(append, outline.tasks)
        if appended is not None:
            sections.append(appended)
            log_tasks_appended(change_id, appended.name, len(appended.tasks))

        validate_id_uniqueness(outline.loose_tasks + [task for section in sections for task in section.tasks])

        snapshot = load_status_snapshot(output_path)
        if statuses is None:
            statuses = snapshot.statuses

        lookup = capabilities if capabilities is not None else DirectoryCapabilityLookup(output_path.parent)
        tree = split_tasks(outline.loose_tasks, sections, outline.line_count, lookup, threshold)
        preserved = apply_statuses(tree, statuses)
        log_statuses_merged(change_id, preserved)

        rendered = render_tree(tree, output_path, change_id)

        removed: List[Path] = []
        if not dry_run:
            stale_patterns = list(snapshot.includes)
            if isinstance(tree.root, RootDocument):
                stale_patterns.extend(p for p in tree.root.includes if p not in stale_patterns)
            removed = write_tree(rendered, output_path.parent, stale_patterns)
            for item in rendered:
                log_document_written(change_id, item.path, item.task_count)

        result = AcceptResult(
            outline_path=outline_path,
            output_path=output_path,
            layout=_layout(tree.root),
            files=rendered,
            removed=removed,
            orphans=list(snapshot.orphans),
            task_count=len(tree.assembled_tasks()),
            preserved=preserved,
            appended=len(appended.tasks) if appended else 0,
            dry_run=dry_run,
        )
        logger.info(
            f"Accepted {outline_path} -> {output_path} ({result.layout}, {result.task_count} tasks, "
            f"{len(rendered)} files{', dry run' if dry_run else ''})"
        )
        return result
