"""Pure text transforms: replace, block, rename, normalize, suggestions."""

from safeedit.transform.block import apply_block
from safeedit.transform.matcher import RegexMatcher, TextMatcher
from safeedit.transform.models import (
    BlockMode,
    BlockOptions,
    EditOutcome,
    RenameOptions,
    ReplaceOptions,
    Suggestion,
    TransformResult,
)
from safeedit.transform.normalize import NormalizeOptions, NormalizeOutcome, NormalizeReport, normalize_text
from safeedit.transform.rename import adjust_case, apply_rename, detect_case_kind
from safeedit.transform.replace import LineIndex, apply_replace
from safeedit.transform.suggest import collect_suggestions, format_suggestions, levenshtein

__all__ = [
    "BlockMode",
    "BlockOptions",
    "EditOutcome",
    "LineIndex",
    "NormalizeOptions",
    "NormalizeOutcome",
    "NormalizeReport",
    "RegexMatcher",
    "RenameOptions",
    "ReplaceOptions",
    "Suggestion",
    "TextMatcher",
    "TransformResult",
    "adjust_case",
    "apply_block",
    "apply_rename",
    "apply_replace",
    "collect_suggestions",
    "detect_case_kind",
    "format_suggestions",
    "levenshtein",
    "normalize_text",
]
