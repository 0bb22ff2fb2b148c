"""Line diffing, hunk grouping, span summaries and unified-diff output.

Opcodes follow :mod:`difflib` conventions: ``(tag, i1, i2, j1, j2)`` with
tags ``equal``, ``replace``, ``delete`` and ``insert``.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from safeedit.text.newlines import split_keepends

logger = logging.getLogger(__name__)

Opcode = Tuple[str, int, int, int, int]

DEFAULT_EDIT_BUDGET = 2000


class LineDiffer(Protocol):
    def opcodes(self, a: Sequence[str], b: Sequence[str]) -> List[Opcode]:
        ...


# --- backends ---


class SequenceMatcherDiffer:
    """difflib backend; also the fallback for oversized Myers runs."""

    name = "difflib"

    def opcodes(self, a: Sequence[str], b: Sequence[str]) -> List[Opcode]:
        matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)
        return [tuple(op) for op in matcher.get_opcodes()]  # type: ignore[misc]


class MyersDiffer:
    """Myers O(ND) shortest edit script.

    Gives up after *max_edits* edit steps and hands the input to the
    difflib backend, so a total rewrite of a large file stays bounded.
    """

    name = "myers"

    def __init__(self, max_edits: int = DEFAULT_EDIT_BUDGET) -> None:
        self.max_edits = max_edits
        self._fallback = SequenceMatcherDiffer()

    def opcodes(self, a: Sequence[str], b: Sequence[str]) -> List[Opcode]:
        script = self._edit_script(a, b)
        if script is None:
            logger.debug(
                "myers edit budget %d exceeded (%d vs %d lines); using difflib",
                self.max_edits, len(a), len(b),
            )
            return self._fallback.opcodes(a, b)
        return _script_to_opcodes(script)

    def _edit_script(self, a: Sequence[str], b: Sequence[str]) -> Optional[List[str]]:
        n, m = len(a), len(b)
        max_d = min(n + m, self.max_edits)
        v: Dict[int, int] = {1: 0}
        trace: List[Dict[int, int]] = []

        for d in range(max_d + 1):
            trace.append(dict(v))
            for k in range(-d, d + 1, 2):
                if k == -d or (k != d and v[k - 1] < v[k + 1]):
                    x = v[k + 1]
                else:
                    x = v[k - 1] + 1
                y = x - k
                while x < n and y < m and a[x] == b[y]:
                    x += 1
                    y += 1
                v[k] = x
                if x >= n and y >= m:
                    return _backtrack(trace, n, m)
        return None


def _backtrack(trace: List[Dict[int, int]], n: int, m: int) -> List[str]:
    script: List[str] = []
    x, y = n, m
    for d in range(len(trace) - 1, -1, -1):
        v = trace[d]
        k = x - y
        if k == -d or (k != d and v[k - 1] < v[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = v[prev_k]
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            script.append("=")
            x -= 1
            y -= 1
        if d > 0:
            script.append("+" if x == prev_x else "-")
        x, y = prev_x, prev_y
    script.reverse()
    return script


def _script_to_opcodes(script: List[str]) -> List[Opcode]:
    opcodes: List[Opcode] = []
    i = j = idx = 0
    while idx < len(script):
        i0, j0 = i, j
        if script[idx] == "=":
            while idx < len(script) and script[idx] == "=":
                i += 1
                j += 1
                idx += 1
            opcodes.append(("equal", i0, i, j0, j))
            continue
        while idx < len(script) and script[idx] != "=":
            if script[idx] == "-":
                i += 1
            else:
                j += 1
            idx += 1
        if i > i0 and j > j0:
            tag = "replace"
        elif i > i0:
            tag = "delete"
        else:
            tag = "insert"
        opcodes.append((tag, i0, i, j0, j))
    return opcodes


def default_differ() -> LineDiffer:
    return MyersDiffer()


def diff_lines(old: str, new: str, differ: Optional[LineDiffer] = None) -> Tuple[List[str], List[str], List[Opcode]]:
    """Split both texts into lines (terminators kept) and diff them."""
    a = split_keepends(old)
    b = split_keepends(new)
    return a, b, (differ or default_differ()).opcodes(a, b)


def group_opcodes(opcodes: Sequence[Opcode], context: int = 3) -> List[List[Opcode]]:
    """Cluster changes into hunks with *context* lines around each.

    Returns an empty list when nothing changed.
    """
    codes = list(opcodes)
    if not any(tag != "equal" for tag, *_ in codes):
        return []
    if codes[0][0] == "equal":
        tag, i1, i2, j1, j2 = codes[0]
        codes[0] = (tag, max(i1, i2 - context), i2, max(j1, j2 - context), j2)
    if codes[-1][0] == "equal":
        tag, i1, i2, j1, j2 = codes[-1]
        codes[-1] = (tag, i1, min(i2, i1 + context), j1, min(j2, j1 + context))

    groups: List[List[Opcode]] = []
    group: List[Opcode] = []
    for tag, i1, i2, j1, j2 in codes:
        if tag == "equal" and i2 - i1 > 2 * context:
            group.append((tag, i1, min(i2, i1 + context), j1, min(j2, j1 + context)))
            groups.append(group)
            group = []
            i1, j1 = max(i1, i2 - context), max(j1, j2 - context)
        group.append((tag, i1, i2, j1, j2))
    if group and not (len(group) == 1 and group[0][0] == "equal"):
        groups.append(group)
    return [g for g in groups if any(op[0] != "equal" for op in g)]


# --- spans ---


class LineSpanKind(str, Enum):
    MODIFIED = "modified"
    ADDED = "added"


@dataclass(frozen=True)
class LineSpan:
    kind: LineSpanKind
    start: int  # 1-based, inclusive
    end: int

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "start": self.start, "end": self.end}


def collect_line_spans(old: str, new: str, differ: Optional[LineDiffer] = None) -> List[LineSpan]:
    """Changed line ranges: old-side for edits, new-side for insertions.

    Ranges that overlap or touch are merged (Modified wins) so the result
    is disjoint and sorted.
    """
    _, _, opcodes = diff_lines(old, new, differ)
    raw: List[LineSpan] = []
    for tag, i1, i2, j1, j2 in opcodes:
        if tag in ("replace", "delete"):
            raw.append(LineSpan(LineSpanKind.MODIFIED, i1 + 1, max(i2, i1 + 1)))
        elif tag == "insert":
            raw.append(LineSpan(LineSpanKind.ADDED, j1 + 1, max(j2, j1 + 1)))
    return merge_spans(raw)


def merge_spans(spans: Sequence[LineSpan]) -> List[LineSpan]:
    merged: List[LineSpan] = []
    for span in sorted(spans, key=lambda s: (s.start, s.end)):
        if merged and span.start <= merged[-1].end + 1:
            prev = merged[-1]
            kind = (
                LineSpanKind.MODIFIED
                if LineSpanKind.MODIFIED in (prev.kind, span.kind)
                else LineSpanKind.ADDED
            )
            merged[-1] = LineSpan(kind, prev.start, max(prev.end, span.end))
        else:
            merged.append(span)
    return merged


def summarize_lines(old: str, new: str, differ: Optional[LineDiffer] = None) -> str:
    """Short "L3, L4-L6, +L9" description of what changed."""
    _, _, opcodes = diff_lines(old, new, differ)
    parts: List[str] = []
    for tag, i1, i2, j1, _j2 in opcodes:
        if tag in ("replace", "delete"):
            start, end = i1 + 1, i2
            parts.append(f"L{start}" if start >= end else f"L{start}-L{end}")
        elif tag == "insert":
            parts.append(f"+L{j1 + 1}")
    return ", ".join(parts) if parts else "no-change"


def describe_spans(spans: Sequence[LineSpan]) -> str:
    out = []
    for span in spans:
        kind = "M" if span.kind is LineSpanKind.MODIFIED else "A"
        if span.end > span.start:
            out.append(f"{kind} L{span.start}-L{span.end}")
        else:
            out.append(f"{kind} L{span.start}")
    return ", ".join(out)


# --- unified diff ---

_NO_NEWLINE_MARKER = "\\ No newline at end of file\n"


def _format_range(start: int, stop: int) -> str:
    beginning = start + 1
    length = stop - start
    if length == 1:
        return str(beginning)
    if length == 0:
        beginning -= 1
    return f"{beginning},{length}"


def _emit(out: List[str], prefix: str, line: str) -> None:
    if line.endswith("\n"):
        out.append(prefix + line)
    else:
        out.append(prefix + line + "\n")
        out.append(_NO_NEWLINE_MARKER)


def unified_diff(
    old_label: str,
    new_label: str,
    old: str,
    new: str,
    context: int = 3,
    differ: Optional[LineDiffer] = None,
) -> str:
    """Render a standard unified diff that :mod:`safeedit.patch` can apply.

    Returns an empty string when the texts are identical.
    """
    a, b, opcodes = diff_lines(old, new, differ)
    groups = group_opcodes(opcodes, context)
    if not groups:
        return ""

    out = [f"--- {old_label}\n", f"+++ {new_label}\n"]
    for group in groups:
        i1, i2 = group[0][1], group[-1][2]
        j1, j2 = group[0][3], group[-1][4]
        out.append(f"@@ -{_format_range(i1, i2)} +{_format_range(j1, j2)} @@\n")
        for tag, oi1, oi2, oj1, oj2 in group:
            if tag == "equal":
                for line in a[oi1:oi2]:
                    _emit(out, " ", line)
                continue
            if tag in ("replace", "delete"):
                for line in a[oi1:oi2]:
                    _emit(out, "-", line)
            if tag in ("replace", "insert"):
                for line in b[oj1:oj2]:
                    _emit(out, "+", line)
    return "".join(out)
