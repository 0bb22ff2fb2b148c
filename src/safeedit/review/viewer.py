"""Static and follow-mode file review."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Pattern, Sequence

from rich.console import Console
from rich.markup import escape

from safeedit.errors import ConfigError, FileIOError
from safeedit.files.models import FileEntry
from safeedit.review.slices import ReviewOptions, format_line, slice_bounds
from safeedit.text.encoding import EncodingStrategy

logger = logging.getLogger(__name__)

FOLLOW_INTERVAL = 0.75


def view_lines(text: str) -> List[str]:
    """Lines as displayed: split on LF, CR stripped, no trailing empty line."""
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _read_text(path: Path, strategy: EncodingStrategy):
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise FileIOError(f"failed to read {path}: {exc}") from exc
    return strategy.decode(data)


def print_lines(console: Console, lines: Sequence[str], start: int, end: int, matcher: Optional[Pattern[str]]) -> None:
    for idx in range(start, min(end, len(lines))):
        console.print(format_line(idx + 1, lines[idx], matcher), markup=False, highlight=False)


def render_content(console: Console, lines: Sequence[str], options: ReviewOptions) -> None:
    if not lines:
        console.print("(file is empty)")
        return
    for slice_ in options.slices:
        heading, start, end = slice_bounds(slice_, len(lines))
        console.print(heading, markup=False)
        print_lines(console, lines, start, end, options.matcher)


def review_file(console: Console, entry: FileEntry, strategy: EncodingStrategy, options: ReviewOptions) -> List[str]:
    """Print the configured slices of one file; returns its lines."""
    console.print(f"[bold]=== {escape(str(entry.path))} ===[/bold]")
    if entry.is_binary:
        console.print("skipping (suspected binary file)")
        return []
    decoded = _read_text(entry.path, strategy)
    console.print(
        f"decoded as {decoded.decision.encoding} via {decoded.decision.source.value} "
        f"(errors: {'yes' if decoded.had_errors else 'no'})"
    )
    lines = view_lines(decoded.text)
    render_content(console, lines, options)
    return lines


def follow_file(
    console: Console,
    entry: FileEntry,
    strategy: EncodingStrategy,
    options: ReviewOptions,
    *,
    interval: float = FOLLOW_INTERVAL,
    max_polls: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Print the view, then stream appended lines until interrupted.

    Only complete (newline-terminated) lines are streamed. When the file
    shrinks, the whole view is printed again.
    """
    review_file(console, entry, strategy, options)
    text = _read_text(entry.path, strategy).text
    seen = text.count("\n")
    size = len(text)
    polls = 0
    console.print(f"[dim]following {escape(str(entry.path))} (Ctrl-C to stop)[/dim]")

    while max_polls is None or polls < max_polls:
        sleep(interval)
        polls += 1
        text = _read_text(entry.path, strategy).text
        complete = text.count("\n")
        if len(text) < size:
            logger.debug("%s shrank from %d to %d chars", entry.path, size, len(text))
            console.print("[yellow]-- file truncated; reprinting view --[/yellow]")
            render_content(console, view_lines(text), options)
        elif complete > seen:
            lines = view_lines(text)
            print_lines(console, lines, seen, complete, options.matcher)
        seen = complete
        size = len(text)


def run_review(
    console: Console,
    entries: Sequence[FileEntry],
    strategy: EncodingStrategy,
    options: ReviewOptions,
    **follow_kwargs,
) -> None:
    if options.follow:
        if len(entries) != 1:
            raise ConfigError("follow mode needs exactly one file")
        follow_file(console, entries[0], strategy, options, **follow_kwargs)
        return
    for entry in entries:
        review_file(console, entry, strategy, options)
