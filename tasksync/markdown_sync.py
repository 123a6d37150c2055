"""Write ledger statuses back into the outline's checkboxes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

from .models import STATUS_COMPLETED
from .outline import parse_outline, read_outline_text
from .writer import write_file

logger = logging.getLogger("tasksync.markdown_sync")

_MARK_INDEX = 3  # "- [x]"


def sync_statuses_to_markdown(outline_path: Path | str, statuses: Dict[str, str]) -> int:
    """Tick or clear checkboxes to match ``statuses``; returns the number of changed lines.

    Only checkbox characters change. The file is left untouched when every
    mark already agrees with the ledger.
    """
    path = Path(outline_path)
    text = read_outline_text(path)
    lines = text.split("\n")

    updated = 0
    for task in parse_outline(text).tasks:
        status = statuses.get(task.id)
        if status is None:
            continue
        mark = "x" if status == STATUS_COMPLETED else " "
        line = lines[task.line - 1]
        if line[_MARK_INDEX].lower() == mark:
            continue
        lines[task.line - 1] = line[:_MARK_INDEX] + mark + line[_MARK_INDEX + 1:]
        updated += 1

    if updated:
        write_file(path, "\n".join(lines))
        logger.info(f"Updated {updated} checkbox(es) in {path}")
    return updated
