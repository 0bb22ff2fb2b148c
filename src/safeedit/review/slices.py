"""Line-slice specs for ``safeedit review``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple, Union

from safeedit.errors import ConfigError

DEFAULT_HEAD_LINES = 40


@dataclass(frozen=True)
class Head:
    count: int


@dataclass(frozen=True)
class Tail:
    count: int


@dataclass(frozen=True)
class Range:
    start: int
    end: int


@dataclass(frozen=True)
class Around:
    line: int
    context: int


ReviewSlice = Union[Head, Tail, Range, Around]


def _two_numbers(spec: str, separators: str, usage: str) -> Tuple[int, int]:
    parts = re.split(f"[{re.escape(separators)}]", spec.strip())
    if len(parts) != 2:
        raise ConfigError(f"'{spec}': {usage}")
    try:
        return int(parts[0].strip()), int(parts[1].strip())
    except ValueError as exc:
        raise ConfigError(f"'{spec}': {usage}") from exc


def parse_range_spec(spec: str) -> Tuple[int, int]:
    """``"10:20"`` or ``"10-20"`` -> ``(10, 20)``."""
    start, end = _two_numbers(spec, ":-", "range spec should be in the form start:end")
    if start <= 0 or end <= 0:
        raise ConfigError("line numbers start at 1")
    if start > end:
        raise ConfigError("range start must be <= end")
    return start, end


def parse_line_context(spec: str) -> Tuple[int, int]:
    """``"42:5"`` or ``"42,5"`` -> ``(42, 5)``."""
    line, context = _two_numbers(spec, ":,", "around spec requires line:context")
    if line <= 0:
        raise ConfigError("line numbers start at 1")
    if context < 0:
        raise ConfigError("context must be >= 0")
    return line, context


def build_matcher(search: Optional[str], regex: bool = False) -> Optional[Pattern[str]]:
    if search is None:
        return None
    try:
        return re.compile(search if regex else re.escape(search))
    except re.error as exc:
        raise ConfigError(f"invalid search pattern: {exc}") from exc


@dataclass
class ReviewOptions:
    slices: List[ReviewSlice] = field(default_factory=list)
    matcher: Optional[Pattern[str]] = None
    follow: bool = False

    @classmethod
    def from_input(
        cls,
        *,
        head: Optional[int] = None,
        tail: Optional[int] = None,
        lines: Optional[str] = None,
        around: Optional[str] = None,
        search: Optional[str] = None,
        regex: bool = False,
        follow: bool = False,
    ) -> "ReviewOptions":
        """Slices print in the order range, around, head, tail."""
        slices: List[ReviewSlice] = []
        if lines is not None:
            slices.append(Range(*parse_range_spec(lines)))
        if around is not None:
            slices.append(Around(*parse_line_context(around)))
        if head is not None:
            slices.append(Head(head))
        if tail is not None:
            slices.append(Tail(tail))
        if not slices:
            slices.append(Head(DEFAULT_HEAD_LINES))
        return cls(slices=slices, matcher=build_matcher(search, regex), follow=follow)


def to_indices(start_line: int, end_line: int, total: int) -> Tuple[int, int]:
    """Clamp a 1-based inclusive line range to 0-based slice bounds."""
    start = min(max(start_line - 1, 0), max(total - 1, 0))
    end = max(end_line - 1, start)
    return start, min(end + 1, total)


def slice_bounds(slice_: ReviewSlice, total: int) -> Tuple[str, int, int]:
    """Heading plus 0-based ``[start, end)`` for one slice."""
    if isinstance(slice_, Head):
        return f"-- head ({slice_.count} lines) --", 0, min(slice_.count, total)
    if isinstance(slice_, Tail):
        return f"-- tail ({slice_.count} lines) --", max(total - slice_.count, 0), total
    if isinstance(slice_, Range):
        return (f"-- lines {slice_.start} to {slice_.end} --", *to_indices(slice_.start, slice_.end, total))
    start_line = max(slice_.line - slice_.context, 0)
    end_line = slice_.line + slice_.context
    return (
        f"-- around line {slice_.line} +/- {slice_.context} --",
        *to_indices(start_line, end_line, total),
    )


def highlight_line(line: str, matcher: Optional[Pattern[str]]) -> str:
    if matcher is None:
        return line
    return matcher.sub(lambda m: f">>{m.group(0)}<<", line)


def format_line(number: int, line: str, matcher: Optional[Pattern[str]] = None) -> str:
    return f"{number:>6} | {highlight_line(line, matcher)}"
