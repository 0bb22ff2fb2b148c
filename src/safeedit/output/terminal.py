"""Rich terminal output: command headers, suggestions, log tables."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from safeedit.diff.engine import describe_spans
from safeedit.files.models import FileEntry
from safeedit.output.changelog import ChangeRecord
from safeedit.transform.normalize import NormalizeReport

_MAX_LISTED_FILES = 10

_ACTION_STYLE = {
    "applied": "green",
    "dry-run": "cyan",
    "no-op": "dim",
    "skipped": "yellow",
    "deleted": "red",
}


def print_command_header(
    console: Console,
    command: str,
    *,
    apply: bool,
    auto_apply: bool,
    encoding: str,
    entries: Sequence[FileEntry] = (),
    settings: Optional[Dict[str, object]] = None,
    details: Sequence[str] = (),
) -> None:
    """Describe what a command is about to do before the per-file loop."""
    mode = "apply" if apply else "dry-run"
    if auto_apply:
        mode += " (auto-approve)"
    console.print(f"[bold]command:[/bold] {command}")
    console.print(f"[dim]mode:[/dim]              {mode}")
    console.print(f"[dim]encoding strategy:[/dim] {escape(encoding)}")
    for key, value in (settings or {}).items():
        console.print(f"[dim]{key}:[/dim] {escape(str(value))}")

    if not entries:
        console.print("[dim]resolved files:[/dim] (none)")
    else:
        console.print(f"[dim]resolved files ({len(entries)}):[/dim]")
        for entry in entries[:_MAX_LISTED_FILES]:
            hint = ", binary? yes" if entry.is_binary else ""
            console.print(f"  - {escape(str(entry.path))} ({entry.metadata.len} bytes{hint})")
        if len(entries) > _MAX_LISTED_FILES:
            console.print("  ...")
    for detail in details:
        console.print(escape(detail))
    console.print("---")


def print_preview_header(console: Console, path: Path, summary: str) -> None:
    console.print(f"[bold]--- preview: {escape(str(path))} ({summary}) ---[/bold]")


def print_suggestions(console: Console, lines: Sequence[str]) -> None:
    for line in lines:
        console.print(escape(line), highlight=False)


def print_log(console: Console, records: Sequence[ChangeRecord]) -> None:
    """Render change-log records as a table."""
    if not records:
        console.print("change log is empty.")
        return
    table = Table(title="safeedit change log", border_style="dim", title_style="bold")
    table.add_column("Timestamp", style="dim")
    table.add_column("Command", style="cyan")
    table.add_column("Action")
    table.add_column("Lines", style="green")
    table.add_column("Path", style="magenta")
    table.add_column("Spans")
    for r in records:
        table.add_row(
            r.timestamp,
            r.command,
            Text(r.action, style=_ACTION_STYLE.get(r.action, "")),
            escape(r.lines),
            escape(r.path),
            describe_spans(r.spans),
        )
    console.print(table)


def print_report(console: Console, rows: List[Dict[str, object]], since: Optional[str]) -> None:
    total = sum(int(row["count"]) for row in rows)  # type: ignore[arg-type]
    console.print(f"Report entries: {total} (since {since or 'beginning of log'})")
    table = Table(border_style="dim")
    table.add_column("Command", style="cyan")
    table.add_column("Action")
    table.add_column("Count", justify="right", style="green")
    for row in rows:
        table.add_row(str(row["command"]), str(row["action"]), str(row["count"]))
    console.print(table)


def _fmt_count(value: Optional[int]) -> str:
    return "n/a" if value is None else str(value)


def _fmt_bool(value: Optional[bool]) -> str:
    if value is None:
        return "n/a"
    return "yes" if value else "no"


def print_normalize_report(
    console: Console,
    path: Path,
    report: NormalizeReport,
    encoding: Optional[str] = None,
    convert_to: Optional[str] = None,
) -> None:
    console.print(
        f"{escape(str(path))} -> zero-width: {_fmt_count(report.zero_width)}, "
        f"control: {_fmt_count(report.control_chars)}, "
        f"trailing spaces: {_fmt_count(report.trailing_spaces)}, "
        f"missing final newline: {_fmt_bool(report.missing_final_newline)}"
    )
    if encoding and convert_to:
        console.print(f"    encoding: {encoding} -> {convert_to}")
    elif encoding:
        console.print(f"    encoding: {encoding}")
    elif convert_to:
        console.print(f"    convert encoding: {convert_to}")

