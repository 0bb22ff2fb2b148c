"""Marker-delimited block replace / insert.

The rebuilt region keeps the shape of the one it replaces: leading and
trailing line breaks, the indentation of the start marker's line, any
indentation sitting right before the end marker, and the document's
line-ending style.
"""

from __future__ import annotations

from safeedit.errors import MarkerNotFound, RegionNotEmpty
from safeedit.text.newlines import normalize_to_lf
from safeedit.transform.models import BlockMode, BlockOptions, EditOutcome


def preferred_line_ending(region: str, document: str) -> str:
    if "\r\n" in region or "\r\n" in document:
        return "\r\n"
    return "\n"


def has_leading_linebreak(text: str) -> bool:
    return text.startswith("\n") or text.startswith("\r\n")


def has_trailing_linebreak(text: str) -> bool:
    return text.endswith("\n")


def block_indent(text: str, marker_start: int) -> str:
    """Leading spaces/tabs of the line holding the start marker."""
    line_start = text.rfind("\n", 0, marker_start) + 1
    prefix = text[line_start:marker_start]
    return prefix[: len(prefix) - len(prefix.lstrip(" \t"))]


def extract_trailing_indent(region: str) -> str:
    pos = region.rfind("\n")
    if pos == -1:
        return ""
    tail = region[pos + 1:]
    if tail and not tail.strip(" \t"):
        return tail
    return ""


def _needs_indent(line: str, indent: str) -> bool:
    if not indent or not line:
        return False
    return line[0] not in (" ", "\t")


def adjust_block_body(existing: str, requested: str, document: str, indent: str) -> str:
    """Rebuild *requested* so it fits where *existing* currently sits."""
    newline = preferred_line_ending(existing, document)
    body = normalize_to_lf(requested)

    if has_leading_linebreak(existing) and not body.startswith("\n"):
        body = "\n" + body
    if has_trailing_linebreak(existing) and not body.endswith("\n"):
        body += "\n"

    lines = body.split("\n")
    rebuilt = []
    for idx, line in enumerate(lines):
        if _needs_indent(line, indent):
            rebuilt.append(indent)
        rebuilt.append(line)
        if idx < len(lines) - 1:
            rebuilt.append("\n")
    result = "".join(rebuilt)

    trailing_indent = extract_trailing_indent(normalize_to_lf(existing))
    if trailing_indent and not result.endswith("\n" + trailing_indent):
        if not result.endswith("\n"):
            result += "\n"
        result += trailing_indent

    if newline == "\n":
        return result
    return result.replace("\n", newline)


def apply_block(text: str, options: BlockOptions) -> EditOutcome:
    start_pos = text.find(options.start_marker)
    if start_pos == -1:
        raise MarkerNotFound(f"start marker '{options.start_marker}' not found")
    after_start = start_pos + len(options.start_marker)
    end_pos = text.find(options.end_marker, after_start)
    if end_pos == -1:
        raise MarkerNotFound(f"end marker '{options.end_marker}' not found after start marker")

    existing = text[after_start:end_pos]
    if options.mode is BlockMode.INSERT and existing.strip():
        raise RegionNotEmpty("insert mode requires the block region to be empty")

    desired = adjust_block_body(existing, options.body, text, block_indent(text, start_pos))
    if desired == existing:
        return EditOutcome(new_text=None, message="block already matches the requested body")

    return EditOutcome(new_text=text[:after_start] + desired + text[end_pos:], replacements=1)
