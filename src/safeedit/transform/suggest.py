"""Fuzzy "did you mean" suggestions for patterns that matched nothing.

Every line is scanned with two window widths (pattern length and
pattern length + 2); each window is scored by code-point Levenshtein
distance and the best window per line competes for the top slots.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from safeedit.transform.models import Suggestion

SUGGESTION_LIMIT = 3


def levenshtein(a: str, b: str) -> int:
    """Edit distance over Unicode code points (two-row DP)."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    current = [0] * (len(b) + 1)
    for i, ca in enumerate(a):
        current[0] = i + 1
        for j, cb in enumerate(b):
            cost = 0 if ca == cb else 1
            current[j + 1] = min(current[j] + 1, previous[j + 1] + 1, previous[j] + cost)
        previous, current = current, previous
    return previous[len(b)]


def best_window(line: str, pattern: str) -> Optional[Tuple[int, int, str]]:
    """Return ``(score, column, snippet)`` of the best window on *line*."""
    if not line:
        return None

    pat_len = max(len(pattern), 1)
    best: Optional[Tuple[int, int, str]] = None
    for start in range(len(line)):
        for width in (pat_len, pat_len + 2):
            end = min(start + width, len(line))
            if end <= start:
                continue
            snippet = line[start:end]
            score = levenshtein(snippet, pattern)
            if best is None or (score, start, len(snippet)) < (best[0], best[1], len(best[2])):
                best = (score, start, snippet)
    return best


def collect_suggestions(text: str, pattern: str, limit: int = SUGGESTION_LIMIT) -> List[Suggestion]:
    if not pattern:
        return []

    found: List[Suggestion] = []
    for line_idx, raw in enumerate(text.split("\n")):
        line = raw[:-1] if raw.endswith("\r") else raw
        hit = best_window(line, pattern)
        if hit is None:
            continue
        score, column, snippet = hit
        found.append(
            Suggestion(score=score, line_idx=line_idx, column=column, line=line, snippet=snippet)
        )

    found.sort(key=lambda s: (s.score, s.line_idx, s.column))
    return found[:limit]


def render_diff_hint(snippet: str, pattern: str) -> Tuple[str, str]:
    """Return the pattern and a marker line with ``^`` under mismatches."""
    width = max(len(snippet), len(pattern))
    marks = []
    for idx in range(width):
        sc = snippet[idx] if idx < len(snippet) else " "
        pc = pattern[idx] if idx < len(pattern) else " "
        marks.append(" " if sc == pc else "^")
    return pattern, "".join(marks)


def format_suggestions(suggestions: List[Suggestion], pattern: str) -> List[str]:
    """Human-readable report lines for *suggestions*."""
    if not suggestions:
        return [f"no similar text found for '{pattern}'"]

    lines = ["no exact matches; closest candidates:"]
    for s in suggestions:
        lines.append(
            f"  - line {s.line_idx + 1} column {s.column + 1} (score {s.score}): {s.line.strip()}"
        )
        lines.append(f"    snippet: {s.snippet}")
        pattern_view, marker = render_diff_hint(s.snippet, pattern)
        lines.append(f"    pattern: {pattern_view}")
        lines.append(f"             {marker}")
    return lines
