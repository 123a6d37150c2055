"""Comment-safe JSON codec for task documents.

Task documents are plain JSON preceded by a ``//`` banner. ``strip_comments``
removes comments that sit outside string literals and never touches text
inside a string, however much it looks like a comment. Every document the
writer produces is parsed back through ``validate_output`` before it is
allowed to reach disk.
"""

from __future__ import annotations

import enum
import json
from pathlib import Path
from typing import List

from .exceptions import DocumentParseError, JSONCValidationError
from .models import TasksDocument, document_from_dict

CONTEXT_RADIUS = 50

COMMON_CAUSES = (
    "unescaped special characters (quotes, backslashes, control characters) in task text",
    "a bug in JSON escaping in the serializer",
    "truncated output (the write was interrupted or the buffer was cut short)",
)


class ScanState(enum.Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"
    ESCAPE = "escape"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"


def strip_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments that occur outside JSON strings."""
    out: List[str] = []
    state = ScanState.NORMAL
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        nxt = text[i + 1] if i + 1 < length else ""

        if state is ScanState.NORMAL:
            if char == '"':
                state = ScanState.IN_STRING
                out.append(char)
            elif char == "/" and nxt == "/":
                state = ScanState.LINE_COMMENT
                i += 1
            elif char == "/" and nxt == "*":
                state = ScanState.BLOCK_COMMENT
                i += 1
            else:
                out.append(char)
        elif state is ScanState.IN_STRING:
            out.append(char)
            if char == "\\":
                state = ScanState.ESCAPE
            elif char == '"':
                state = ScanState.NORMAL
        elif state is ScanState.ESCAPE:
            out.append(char)
            state = ScanState.IN_STRING
        elif state is ScanState.LINE_COMMENT:
            if char == "\n":
                out.append(char)
                state = ScanState.NORMAL
        elif state is ScanState.BLOCK_COMMENT:
            if char == "*" and nxt == "/":
                state = ScanState.NORMAL
                i += 1
        i += 1

    return "".join(out)


def marshal_document(document: TasksDocument) -> str:
    """Serialize a document as two-space indented JSON ending in a newline."""
    return json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n"


def error_context(text: str, offset: int, radius: int = CONTEXT_RADIUS) -> str:
    """Slice of ``text`` around ``offset``, clamped to the buffer."""
    offset = min(max(offset, 0), len(text))
    start = max(0, offset - radius)
    end = min(len(text), offset + radius)
    return text[start:end]


def validate_output(text: str) -> None:
    """Parse ``text`` after stripping comments, raising a diagnostic on failure."""
    stripped = strip_comments(text)
    try:
        json.loads(stripped)
    except json.JSONDecodeError as exc:
        context = error_context(stripped, exc.pos)
        causes = "\n".join(f"  - {cause}" for cause in COMMON_CAUSES)
        message = (
            f"JSONC validation failed: {exc.msg} (line {exc.lineno}, column {exc.colno})\n"
            f"Problematic content near position {exc.pos}:\n"
            f"  {context!r}\n"
            f"Common causes:\n{causes}"
        )
        raise JSONCValidationError(message, offset=exc.pos, context=context) from exc


def parse_document(text: str, *, source: str = "tasks.jsonc") -> TasksDocument:
    """Decode a stored document, banner and all."""
    try:
        data = json.loads(strip_comments(text))
    except json.JSONDecodeError as exc:
        raise DocumentParseError(f"failed to parse {source}: {exc}") from exc
    try:
        return document_from_dict(data)
    except DocumentParseError as exc:
        raise DocumentParseError(f"failed to parse {source}: {exc}") from exc


def read_document(path: Path | str) -> TasksDocument:
    document_path = Path(path)
    try:
        text = document_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentParseError(
            f"failed to parse {document_path.name}: not valid UTF-8 at byte {exc.start}", path=document_path
        ) from exc
    try:
        return parse_document(text, source=document_path.name)
    except DocumentParseError as exc:
        raise DocumentParseError(str(exc), path=document_path) from exc
