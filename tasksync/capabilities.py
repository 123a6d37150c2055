"""Capability matching.

A section whose normalized name equals a capability directory under
``<change>/specs/`` is moved into its own child document. Lookups are
behind a small read-only interface so the splitter never needs a real
directory tree.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional, Protocol

DEFAULT_MARKER_FILE = "spec.md"
CAPABILITY_SPECS_DIR = "specs"

_NUMBER_PREFIX = re.compile(r"^\s*\d+\.")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_capability_name(name: str) -> str:
    """Kebab-case a section name; degenerate names come back empty."""
    value = _NUMBER_PREFIX.sub("", name, count=1).lower()
    slug = _NON_ALNUM.sub("-", value).strip("-")
    if not re.search(r"[a-z]", slug):
        return ""
    return slug


class CapabilityLookup(Protocol):
    def exists(self, capability: str) -> bool:
        ...


class DirectoryCapabilityLookup:
    """Capabilities found on disk as ``<change_dir>/specs/<name>/<marker>``."""

    def __init__(self, change_dir: Path | str, marker: str = DEFAULT_MARKER_FILE):
        self.specs_dir = Path(change_dir) / CAPABILITY_SPECS_DIR
        self.marker = marker

    def exists(self, capability: str) -> bool:
        if not capability:
            return False
        return (self.specs_dir / capability / self.marker).is_file()

    def available(self) -> list[str]:
        if not self.specs_dir.is_dir():
            return []
        return sorted(
            path.name for path in self.specs_dir.iterdir() if (path / self.marker).is_file()
        )


class StaticCapabilityLookup:
    """A fixed set of capability names."""

    def __init__(self, capabilities: Iterable[str] = ()):
        self.capabilities = frozenset(capabilities)

    def exists(self, capability: str) -> bool:
        return bool(capability) and capability in self.capabilities


def match_section_to_capability(name: str, lookup: CapabilityLookup) -> Optional[str]:
    """Return the capability a section belongs to, or ``None``."""
    capability = normalize_capability_name(name)
    if capability and lookup.exists(capability):
        return capability
    return None
