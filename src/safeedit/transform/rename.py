"""Token rename with optional word boundaries and case preservation."""

from __future__ import annotations

from enum import Enum

from safeedit.transform.matcher import RegexMatcher
from safeedit.transform.models import EditOutcome, RenameOptions
from safeedit.transform.suggest import collect_suggestions


class CaseKind(str, Enum):
    UPPER = "upper"
    LOWER = "lower"
    CAPITALIZED = "capitalized"
    MIXED = "mixed"


def detect_case_kind(text: str) -> CaseKind:
    letters = [ch for ch in text if ch.isalpha()]
    if not letters:
        return CaseKind.MIXED
    if all(ch.isupper() for ch in letters):
        return CaseKind.UPPER
    if all(ch.islower() for ch in letters):
        return CaseKind.LOWER
    if text[0].isupper() and not any(ch.isupper() for ch in text[1:]):
        return CaseKind.CAPITALIZED
    return CaseKind.MIXED


def adjust_case(source: str, target: str) -> str:
    """Render *target* in the case shape of *source*."""
    kind = detect_case_kind(source)
    if kind is CaseKind.UPPER:
        return target.upper()
    if kind is CaseKind.LOWER:
        return target.lower()
    if kind is CaseKind.CAPITALIZED:
        return target[:1].upper() + target[1:].lower()
    return target


def apply_rename(text: str, options: RenameOptions) -> EditOutcome:
    matcher = RegexMatcher.literal(
        options.from_,
        word_boundary=options.word_boundary,
        ignore_case=options.case_aware,
    )

    parts = []
    last_end = 0
    matches = 0
    for match in matcher.finditer(text):
        parts.append(text[last_end:match.start()])
        if options.case_aware:
            parts.append(adjust_case(match.group(), options.to))
        else:
            parts.append(options.to)
        last_end = match.end()
        matches += 1

    if matches == 0:
        guard = " with word-boundary guard" if options.word_boundary else ""
        return EditOutcome(
            new_text=None,
            message=f"rename: no matches for '{options.from_}'{guard}",
            suggestions=tuple(collect_suggestions(text, options.from_)),
        )

    parts.append(text[last_end:])
    new_text = "".join(parts)
    if new_text == text:
        return EditOutcome(new_text=None, replacements=matches, message="rename produced identical text")
    return EditOutcome(new_text=new_text, replacements=matches)
