"""Exact-context hunk application with newline-style preservation."""

from __future__ import annotations

from typing import List, Sequence

from safeedit.errors import DeleteNotEmpty, HunkMismatch
from safeedit.patch.models import FilePatch, Hunk, LineType, PatchKind
from safeedit.text.newlines import (
    detect_line_ending_style,
    normalize_to_lf,
    restore_from_lf,
    split_keepends,
)


def apply_hunks(text: str, hunks: Sequence[Hunk]) -> str:
    """Apply *hunks* in order to LF-normalized *text*.

    Context and removed lines must match exactly at the position the
    hunk header names; there is no offset search.
    """
    source = split_keepends(text)
    out: List[str] = []
    cursor = 0

    for number, hunk in enumerate(hunks, 1):
        anchor = hunk.anchor
        if anchor < cursor or anchor > len(source):
            raise HunkMismatch(
                f"hunk #{number} ({hunk.header}) starts at line {anchor + 1}, "
                f"outside the remaining text (line {cursor + 1} of {len(source)})"
            )
        out.extend(source[cursor:anchor])
        idx = anchor
        for hunk_line in hunk.lines:
            if hunk_line.line_type is not LineType.ADDED:
                expected = hunk_line.text
                actual = source[idx] if idx < len(source) else None
                if actual != expected:
                    raise HunkMismatch(
                        f"hunk #{number} ({hunk.header}) does not match at line {idx + 1}: "
                        f"expected {expected!r}, found {actual!r}"
                    )
                idx += 1
            if hunk_line.line_type is not LineType.REMOVED:
                out.append(hunk_line.text)
        cursor = idx

    out.extend(source[cursor:])
    return "".join(out)


def apply_patch_preserving_newlines(text: str, hunks: Sequence[Hunk]) -> str:
    """Apply hunks to *text*, keeping its dominant CRLF/CR/LF style."""
    style = detect_line_ending_style(text)
    patched = apply_hunks(normalize_to_lf(text), hunks)
    return restore_from_lf(patched, style)


def apply_file_patch(patch: FilePatch, base_text: str) -> str:
    """Apply *patch* to *base_text* with the rules of its kind.

    Create patches ignore *base_text* and start from an empty file;
    delete patches must leave nothing behind.
    """
    if patch.kind is PatchKind.CREATE:
        base_text = ""
    new_text = apply_patch_preserving_newlines(base_text, patch.hunks)
    if patch.kind is PatchKind.DELETE and new_text:
        raise DeleteNotEmpty(
            f"delete patch {patch.label} for {patch.old_path} did not result in empty content"
        )
    return new_text
