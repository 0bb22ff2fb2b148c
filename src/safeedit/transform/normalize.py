"""Whitespace and invisible-character hygiene for text files."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Optional

ZERO_WIDTH_CHARS = frozenset("\u200b\u200c\u200d\ufeff")


@dataclass
class NormalizeOptions:
    strip_zero_width: bool = False
    strip_control: bool = False
    trim_trailing_space: bool = False
    ensure_eol: bool = False
    detect_zero_width: bool = True
    detect_control: bool = True
    detect_trailing_space: bool = True
    detect_final_newline: bool = True

    @property
    def mutates(self) -> bool:
        return self.strip_zero_width or self.strip_control or self.trim_trailing_space or self.ensure_eol


@dataclass
class NormalizeReport:
    """Counts are None when the corresponding detection is disabled."""

    zero_width: Optional[int] = None
    control_chars: Optional[int] = None
    trailing_spaces: Optional[int] = None
    missing_final_newline: Optional[bool] = None


@dataclass
class NormalizeOutcome:
    report: NormalizeReport
    cleaned: Optional[str] = None  # None when nothing changed


def is_control_char(ch: str) -> bool:
    return unicodedata.category(ch) == "Cc" and ch not in "\n\t\r"


def _trailing_ws(line: str) -> int:
    return len(line) - len(line.rstrip(" \t"))


def normalize_text(text: str, opts: NormalizeOptions) -> NormalizeOutcome:
    report = NormalizeReport(
        zero_width=0 if opts.detect_zero_width else None,
        control_chars=0 if opts.detect_control else None,
        trailing_spaces=0 if opts.detect_trailing_space else None,
        missing_final_newline=(bool(text) and not text.endswith("\n")) if opts.detect_final_newline else None,
    )

    out_lines = []
    for raw in text.split("\n"):
        kept = []
        for ch in raw:
            if ch in ZERO_WIDTH_CHARS:
                if report.zero_width is not None:
                    report.zero_width += 1
                if opts.strip_zero_width:
                    continue
            elif is_control_char(ch):
                if report.control_chars is not None:
                    report.control_chars += 1
                if opts.strip_control:
                    continue
            kept.append(ch)
        line = "".join(kept)

        had_cr = line.endswith("\r")
        if had_cr:
            line = line[:-1]
        trailing = _trailing_ws(line)
        if report.trailing_spaces is not None:
            report.trailing_spaces += trailing
        if opts.trim_trailing_space and trailing:
            line = line[: len(line) - trailing]
        if had_cr:
            line += "\r"
        out_lines.append(line)

    cleaned = "\n".join(out_lines)
    if opts.ensure_eol and cleaned and not cleaned.endswith("\n"):
        cleaned += "\n"

    return NormalizeOutcome(report=report, cleaned=cleaned if cleaned != text else None)
