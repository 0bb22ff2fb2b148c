"""Read-only file review: head/tail/range/around slices and follow mode."""

from safeedit.review.slices import (
    Around,
    Head,
    Range,
    ReviewOptions,
    ReviewSlice,
    Tail,
    highlight_line,
    parse_line_context,
    parse_range_spec,
)
from safeedit.review.viewer import follow_file, review_file, run_review

__all__ = [
    "Around",
    "Head",
    "Range",
    "ReviewOptions",
    "ReviewSlice",
    "Tail",
    "follow_file",
    "highlight_line",
    "parse_line_context",
    "parse_range_spec",
    "review_file",
    "run_review",
]
