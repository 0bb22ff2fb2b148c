"""Regex/literal replace with ``count``, ``expect`` and ``after_line``."""

from __future__ import annotations

from bisect import bisect_right
from typing import List, Optional

from safeedit.errors import CountMismatch
from safeedit.transform.matcher import RegexMatcher, TextMatcher
from safeedit.transform.models import EditOutcome, ReplaceOptions
from safeedit.transform.suggest import collect_suggestions


class LineIndex:
    """Sorted line-start offsets for offset -> 1-based line lookups."""

    def __init__(self, text: str) -> None:
        self.starts: List[int] = [0]
        pos = text.find("\n")
        while pos != -1:
            self.starts.append(pos + 1)
            pos = text.find("\n", pos + 1)

    def line_at(self, offset: int) -> int:
        return bisect_right(self.starts, offset)


def apply_replace(text: str, options: ReplaceOptions, matcher: Optional[TextMatcher] = None) -> EditOutcome:
    """Replace eligible matches of ``options.pattern`` in *text*.

    Matches starting on or before ``after_line`` are skipped and do not
    count towards ``count`` or ``expect``.
    """
    matcher = matcher or RegexMatcher(options.pattern)
    line_index = LineIndex(text) if options.after_line is not None else None

    parts: List[str] = []
    last_end = 0
    replacements = 0
    filtered = 0

    for match in matcher.finditer(text):
        if line_index is not None and line_index.line_at(match.start()) <= options.after_line:
            filtered += 1
            continue
        if options.count is not None and replacements >= options.count:
            break

        parts.append(text[last_end:match.start()])
        if options.allow_captures:
            parts.append(match.expand(options.replacement))
        else:
            parts.append(options.replacement)
        last_end = match.end()
        replacements += 1

    if replacements == 0:
        if options.after_line is not None and filtered > 0:
            return EditOutcome(
                new_text=None,
                filtered=filtered,
                message=(
                    f"no matches after line {options.after_line}; "
                    f"{filtered} occurrence(s) were at or before that line"
                ),
            )
        return EditOutcome(
            new_text=None,
            message=f"no matches for pattern '{options.pattern}'",
            suggestions=tuple(collect_suggestions(text, options.pattern)),
        )

    parts.append(text[last_end:])

    if options.expect is not None and replacements != options.expect:
        raise CountMismatch(options.expect, replacements)

    new_text = "".join(parts)
    if new_text == text:
        return EditOutcome(
            new_text=None,
            replacements=replacements,
            filtered=filtered,
            message="replacement text is identical to the matched text",
        )
    return EditOutcome(new_text=new_text, replacements=replacements, filtered=filtered)
