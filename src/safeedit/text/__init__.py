"""Text layer: encodings and line endings."""

from safeedit.text.encoding import (
    DecodedText,
    EncodingDecision,
    EncodingSource,
    EncodingStrategy,
    canonical_name,
)
from safeedit.text.newlines import (
    LineEndingStyle,
    detect_line_ending_style,
    normalize_to_lf,
    restore_from_lf,
    split_keepends,
)

__all__ = [
    "DecodedText",
    "EncodingDecision",
    "EncodingSource",
    "EncodingStrategy",
    "LineEndingStyle",
    "canonical_name",
    "detect_line_ending_style",
    "normalize_to_lf",
    "restore_from_lf",
    "split_keepends",
]
