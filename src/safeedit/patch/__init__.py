"""Unified-diff patches: parsing, classification, and application."""

from safeedit.patch.applier import apply_file_patch, apply_hunks, apply_patch_preserving_newlines
from safeedit.patch.models import FilePatch, Hunk, HunkLine, LineType, PatchKind
from safeedit.patch.parser import (
    PatchParser,
    classify_paths,
    label_to_path,
    load_file_patches,
    parse_patch_text,
    split_segments,
)

__all__ = [
    "FilePatch",
    "Hunk",
    "HunkLine",
    "LineType",
    "PatchKind",
    "PatchParser",
    "apply_file_patch",
    "apply_hunks",
    "apply_patch_preserving_newlines",
    "classify_paths",
    "label_to_path",
    "load_file_patches",
    "parse_patch_text",
    "split_segments",
]
