"""Data models for unified-diff patches."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class LineType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


class PatchKind(str, Enum):
    MODIFY = "modify"
    CREATE = "create"
    DELETE = "delete"
    RENAME = "rename"


@dataclass(frozen=True, slots=True)
class HunkLine:
    """A single body line of a hunk, without its prefix or newline."""

    line_type: LineType
    content: str
    no_newline: bool = False  # followed by "\ No newline at end of file"

    @property
    def text(self) -> str:
        return self.content if self.no_newline else self.content + "\n"


@dataclass
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str = ""
    lines: List[HunkLine] = field(default_factory=list)

    @property
    def anchor(self) -> int:
        """0-based index in the old text where the hunk begins."""
        if self.old_count == 0:
            return self.old_start
        return self.old_start - 1


@dataclass
class FilePatch:
    """One file's worth of a (possibly multi-file) patch."""

    source: Path
    index: int  # 1-based segment number within *source*
    patch_text: str
    kind: PatchKind
    old_path: Optional[Path] = None
    new_path: Optional[Path] = None
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.source}#{self.index}"

    @property
    def display_path(self) -> str:
        if self.old_path and self.new_path and self.old_path != self.new_path:
            return f"{self.old_path} -> {self.new_path}"
        target = self.new_path or self.old_path
        return str(target) if target else "(unknown path)"
