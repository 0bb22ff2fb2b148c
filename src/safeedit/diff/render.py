"""Bounded diff rendering and the interactive diff pager."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from safeedit.diff.engine import LineDiffer, diff_lines, group_opcodes

logger = logging.getLogger(__name__)

MAX_RENDER_LINES = 5000
MAX_RENDER_BYTES = 5 * 1024 * 1024
MAX_LINE_BYTES = 64 * 1024
PAGE_SIZE = 200
TRUNCATED_SUFFIX = " (line truncated)"
ELISION = "..."

_ROW_STYLE = {
    "-": "red",
    "+": "green",
    " ": "",
    ELISION: "dim",
}


class PagerMode(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class ColorChoice(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


@dataclass
class DiffDisplayConfig:
    context: int = 3
    pager: PagerMode = PagerMode.AUTO
    colorize: bool = True
    interactive: bool = False
    max_lines: int = MAX_RENDER_LINES
    max_bytes: int = MAX_RENDER_BYTES
    max_line_bytes: int = MAX_LINE_BYTES
    page_size: int = PAGE_SIZE


DiffRow = Tuple[str, str]  # (marker, content without line terminator)


@dataclass
class RenderedDiff:
    rows: List[DiffRow] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    truncated_lines: int = 0
    capped: bool = False

    def to_text(self, colorize: bool = True) -> List[Text]:
        out = []
        for marker, content in self.rows:
            plain = marker if marker == ELISION else f"{marker} {content}"
            out.append(Text(plain, style=_ROW_STYLE[marker] if colorize else ""))
        return out


def _clip_line(content: str, max_line_bytes: int) -> Tuple[str, bool]:
    encoded = content.encode("utf-8")
    if len(encoded) <= max_line_bytes:
        return content, False
    clipped = encoded[:max_line_bytes].decode("utf-8", errors="ignore")
    return clipped + TRUNCATED_SUFFIX, True


def render_diff(
    old: str,
    new: str,
    config: Optional[DiffDisplayConfig] = None,
    differ: Optional[LineDiffer] = None,
) -> RenderedDiff:
    """Produce preview rows for *old* -> *new*, stopping at the first cap hit."""
    config = config or DiffDisplayConfig()
    a, b, opcodes = diff_lines(old, new, differ)
    result = RenderedDiff()
    total_bytes = 0

    def push(marker: str, line: str) -> bool:
        nonlocal total_bytes
        if len(result.rows) >= config.max_lines:
            result.warnings.append(
                f"diff preview stopped after {config.max_lines} lines (line cap reached)"
            )
            return False
        content, clipped = _clip_line(line.rstrip("\r\n"), config.max_line_bytes)
        row_bytes = len(marker) + 1 + len(content.encode("utf-8")) + 1
        if total_bytes + row_bytes > config.max_bytes:
            result.warnings.append(
                f"diff preview stopped after {config.max_bytes} bytes (byte cap reached)"
            )
            return False
        if clipped:
            result.truncated_lines += 1
        total_bytes += row_bytes
        result.rows.append((marker, content))
        return True

    def emit_group(group) -> bool:
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                rows = [(" ", line) for line in a[i1:i2]]
            else:
                rows = [("-", line) for line in a[i1:i2]] if tag != "insert" else []
                if tag != "delete":
                    rows += [("+", line) for line in b[j1:j2]]
            for marker, line in rows:
                if not push(marker, line):
                    return False
        return True

    for idx, group in enumerate(group_opcodes(opcodes, config.context)):
        if idx > 0:
            result.rows.append((ELISION, ""))
        if not emit_group(group):
            result.capped = True
            break

    if result.truncated_lines:
        result.warnings.append(
            f"{result.truncated_lines} long line(s) truncated to {config.max_line_bytes} bytes"
        )
    return result


# --- pager ---

PAGER_HELP = (
    "pager commands: n next page, p previous page, g <line> go to line, "
    "h head, t tail, q quit, ? help"
)


class DiffPager:
    """Page through rendered rows with single-letter commands."""

    def __init__(
        self,
        lines: List[Text],
        console: Console,
        read_command: Callable[[str], Optional[str]],
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.lines = lines
        self.console = console
        self.read_command = read_command
        self.page_size = max(1, page_size)
        self.top = 0

    @property
    def last_top(self) -> int:
        pages = max(1, math.ceil(len(self.lines) / self.page_size))
        return (pages - 1) * self.page_size

    def show(self) -> None:
        end = min(self.top + self.page_size, len(self.lines))
        for line in self.lines[self.top:end]:
            self.console.print(line)
        page = self.top // self.page_size + 1
        pages = self.last_top // self.page_size + 1
        self.console.print(
            f"[dim]-- lines {self.top + 1}-{end} of {len(self.lines)} "
            f"(page {page}/{pages}); n/p/g <line>/h/t/q, ? for help --[/dim]"
        )

    def handle(self, command: str) -> bool:
        """Apply one command; returns False when the pager should exit."""
        cmd = command.strip()
        if cmd in ("q", "quit"):
            return False
        if cmd in ("", "n"):
            if self.top >= self.last_top:
                return False
            self.top += self.page_size
        elif cmd == "p":
            self.top = max(0, self.top - self.page_size)
        elif cmd == "h":
            self.top = 0
        elif cmd == "t":
            self.top = self.last_top
        elif cmd.startswith("g"):
            arg = cmd[1:].strip()
            if not arg.isdigit() or int(arg) < 1:
                self.console.print("[yellow]usage: g <line>[/yellow]")
                return True
            line = min(int(arg), max(1, len(self.lines)))
            self.top = ((line - 1) // self.page_size) * self.page_size
        elif cmd == "?":
            self.console.print(PAGER_HELP)
            return True
        else:
            self.console.print(f"[yellow]unknown pager command '{escape(cmd)}'[/yellow] ({PAGER_HELP})")
            return True
        self.show()
        return True

    def run(self) -> None:
        self.show()
        while True:
            command = self.read_command("pager> ")
            if command is None or not self.handle(command):
                return


def display_diff(
    old: str,
    new: str,
    config: DiffDisplayConfig,
    console: Console,
    read_command: Optional[Callable[[str], Optional[str]]] = None,
    differ: Optional[LineDiffer] = None,
) -> RenderedDiff:
    """Render the diff and print it inline or through the pager."""
    rendered = render_diff(old, new, config, differ)
    lines = rendered.to_text(config.colorize)

    wants_pager = config.pager is PagerMode.ALWAYS or (
        config.pager is PagerMode.AUTO and len(lines) > config.page_size
    )
    if wants_pager and config.interactive and read_command is not None:
        DiffPager(lines, console, read_command, config.page_size).run()
    else:
        if config.pager is PagerMode.ALWAYS:
            console.print("[dim]note: pager requested but output is not interactive; printing inline[/dim]")
        for line in lines:
            console.print(line)

    for warning in rendered.warnings:
        logger.debug("render warning: %s", warning)
        console.print(f"[yellow]warning:[/yellow] {warning}")
    return rendered
