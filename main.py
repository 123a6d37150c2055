"""MCP server exposing the tasksync ledger tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from tasksync.config import LOG_LEVEL_ENV, PROJECT_ROOT_ENV
from tasksync.sync_logging import initialize_default_logging
from tasksync.workspace import (
    Workspace,
    lookup_change_root as _lookup_change_root,
    register_change_root as _register_change_root,
)

mcp = FastMCP("tasksync")


PROJECT_MARKER_DIRECTORIES = (".tasksync",)
SERVER_ROOT = Path(__file__).resolve().parent


def _storage_markers() -> List[str]:
    markers: List[str] = []
    preferred = os.getenv(Workspace.STORAGE_DIR_ENV)
    if preferred:
        markers.append(preferred)
    markers.extend(marker for marker in PROJECT_MARKER_DIRECTORIES if marker not in markers)
    return markers


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    if SERVER_ROOT not in bases:
        bases.append(SERVER_ROOT)
    for parent in SERVER_ROOT.parents:
        if parent not in bases:
            bases.append(parent)
    return bases


def _locate_workspace_root() -> Optional[Path]:
    for base in _candidate_bases():
        for marker in _storage_markers():
            if (base / marker).is_dir():
                return base
    return None


def _locate_existing_change(change_id: str) -> Optional[Path]:
    registered = _lookup_change_root(change_id)
    if registered:
        for marker in _storage_markers():
            if (registered / marker / "changes" / change_id).is_dir():
                return registered

    for base in _candidate_bases():
        for marker in _storage_markers():
            if (base / marker / "changes" / change_id).is_dir():
                return _register_change_root(change_id, base)
    return None


def _resolve_root(root: Optional[str], *, change_id: Optional[str] = None) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    if change_id:
        change_root = _locate_existing_change(change_id)
        if change_root:
            return change_root

    detected_root = _locate_workspace_root()
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _workspace(root: Optional[str], *, change_id: Optional[str] = None) -> Workspace:
    resolved = _resolve_root(root, change_id=change_id)
    workspace = Workspace(resolved)
    if change_id:
        _register_change_root(change_id, resolved)
    return workspace


def _workspace_optional(root: Optional[str]) -> Optional[Workspace]:
    try:
        return _workspace(root)
    except ValueError:
        return None


@mcp.resource("tasksync://changes")
def resource_changes() -> str:
    """Changes known to the workspace, with their outline and ledger paths."""

    workspace = _workspace_optional(None)
    if not workspace:
        return f"No project root detected. Launch tools with a 'root' argument or set {PROJECT_ROOT_ENV}."

    changes = workspace.list_changes()
    if not changes:
        return "No changes have been created yet."

    lines = ["tasksync Changes"]
    for change in changes:
        lines.append("")
        lines.append(f"- {change['change_id']}")
        if change.get("outline_path"):
            lines.append(f"  Outline: {change['outline_path']}")
        if change.get("ledger_path"):
            lines.append(f"  Ledger: {change['ledger_path']}")
        if change.get("capabilities"):
            lines.append(f"  Capabilities: {', '.join(change['capabilities'])}")
    return "\n".join(lines)


@mcp.tool()
def set_change_root(change_id: str, root: str) -> Dict[str, str]:
    """Register the project root that owns a change so later calls can omit 'root'."""

    resolved = _resolve_root(root)
    registered = _register_change_root(change_id, resolved)
    return {"change_id": change_id, "root": str(registered)}


@mcp.tool()
def list_changes(root: Optional[str] = None) -> Dict[str, Any]:
    """List every change directory with its outline, ledger and capability specs."""

    workspace = _workspace(root)
    return {"changes": workspace.list_changes()}


@mcp.tool()
def list_sections(change_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Parse the change's tasks.md and report its sections and tasks without writing anything."""

    workspace = _workspace(root, change_id=change_id)
    return {"change_id": change_id, "sections": workspace.sections(change_id)}


@mcp.tool()
def accept_tasks(change_id: str, dry_run: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Regenerate tasks.jsonc (and any child documents) from tasks.md.
    Recorded task statuses are preserved by task ID. With dry_run the files are
    rendered and validated but not written."""

    workspace = _workspace(root, change_id=change_id)
    result = workspace.accept(change_id, dry_run=dry_run)
    return {"change_id": change_id, **result.to_dict()}


@mcp.tool()
def next_task(change_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the first pending task of the change, descending into child documents."""

    workspace = _workspace(root, change_id=change_id)
    return {
        "change_id": change_id,
        "task": workspace.next_task(change_id),
        "summary": workspace.summary(change_id).to_dict(),
    }


@mcp.tool()
def update_task_status(change_id: str, task_id: str, status: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Set a task to pending, in_progress or completed. Update each task as soon as its state changes."""

    workspace = _workspace(root, change_id=change_id)
    return {"change_id": change_id, **workspace.update_task_status(change_id, task_id, status)}


@mcp.tool()
def task_summary(change_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Count tasks by status across the whole ledger."""

    workspace = _workspace(root, change_id=change_id)
    return {"change_id": change_id, **workspace.summary(change_id).to_dict()}


@mcp.tool()
def sync_task_markdown(change_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Tick or clear the checkboxes in tasks.md to match the ledger statuses."""

    workspace = _workspace(root, change_id=change_id)
    return {"change_id": change_id, **workspace.sync_markdown(change_id)}


if __name__ == "__main__":
    initialize_default_logging(os.getenv(LOG_LEVEL_ENV))
    mcp.run(transport="stdio")
