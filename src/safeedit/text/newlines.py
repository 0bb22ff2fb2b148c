"""Line-ending style detection and LF round-tripping."""

from __future__ import annotations

import os
from enum import Enum
from typing import List, Optional


class LineEndingStyle(str, Enum):
    LF = "lf"
    CRLF = "crlf"
    CR = "cr"

    @property
    def sequence(self) -> str:
        return {"lf": "\n", "crlf": "\r\n", "cr": "\r"}[self.value]


def detect_line_ending_style(text: str) -> LineEndingStyle:
    """Dominant style: any CRLF wins, then bare CR, else LF."""
    if "\r\n" in text:
        return LineEndingStyle.CRLF
    if "\r" in text:
        return LineEndingStyle.CR
    return LineEndingStyle.LF


def system_default_style() -> LineEndingStyle:
    return LineEndingStyle.CRLF if os.name == "nt" else LineEndingStyle.LF


def normalize_to_lf(text: str) -> str:
    if "\r" not in text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")


def restore_from_lf(text: str, style: LineEndingStyle) -> str:
    if style is LineEndingStyle.LF:
        return text
    return text.replace("\n", style.sequence)


def resolve_style(choice: str, existing: Optional[LineEndingStyle]) -> LineEndingStyle:
    """Map a CLI choice (auto/lf/crlf/cr) onto a concrete style."""
    if choice == "auto":
        return existing or system_default_style()
    return LineEndingStyle(choice)


def split_keepends(text: str) -> List[str]:
    """Split on ``\\n`` only, keeping the terminator on each line.

    Unlike :meth:`str.splitlines` this leaves form feeds and other
    Unicode line separators inside their line.
    """
    if not text:
        return []
    lines = [line + "\n" for line in text.split("\n")]
    last = lines.pop()
    if last != "\n":
        lines.append(last[:-1])
    return lines
