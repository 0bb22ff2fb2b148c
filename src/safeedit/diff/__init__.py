"""Diff engine: line diffing, bounded rendering, paging, span summaries."""

from safeedit.diff.engine import (
    LineDiffer,
    LineSpan,
    LineSpanKind,
    MyersDiffer,
    SequenceMatcherDiffer,
    collect_line_spans,
    describe_spans,
    group_opcodes,
    merge_spans,
    summarize_lines,
    unified_diff,
)
from safeedit.diff.render import (
    ColorChoice,
    DiffDisplayConfig,
    DiffPager,
    PagerMode,
    RenderedDiff,
    display_diff,
    render_diff,
)

__all__ = [
    "ColorChoice",
    "DiffDisplayConfig",
    "DiffPager",
    "LineDiffer",
    "LineSpan",
    "LineSpanKind",
    "MyersDiffer",
    "PagerMode",
    "RenderedDiff",
    "SequenceMatcherDiffer",
    "collect_line_spans",
    "describe_spans",
    "display_diff",
    "group_opcodes",
    "merge_spans",
    "render_diff",
    "summarize_lines",
    "unified_diff",
]
