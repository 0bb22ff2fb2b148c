"""safeedit CLI: Typer application wrapping the preview/approve/apply pipeline."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from safeedit import __version__

app = typer.Typer(
    name="safeedit",
    help="Preview, approve, and apply text edits with backups and undo patches.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


@contextmanager
def _errors() -> Iterator[None]:
    """Map expected failures to a red message and exit code 2."""
    from safeedit.errors import ConfigError, SafeEditError

    try:
        yield
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    except SafeEditError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc


def _session(ctx: typer.Context):
    from safeedit.commands import Session
    from safeedit.config.loader import load_config

    config_path = (ctx.obj or {}).get("config")
    with _errors():
        cfg = load_config(Path.cwd(), config_path)
    return Session(config=cfg, console=console)


# ── shared options ────────────────────────────────────────────────────────────

TARGET_OPT = typer.Option(None, "--target", "-t", help="File or directory to edit (repeatable)")
GLOB_OPT = typer.Option(None, "--glob", "-g", help="Glob pattern selecting files (repeatable)")
ENCODING_OPT = typer.Option(None, "--encoding", help="Force an encoding instead of detecting it")
APPLY_OPT = typer.Option(False, "--apply", help="Write changes (default is dry-run)")
YES_OPT = typer.Option(False, "--yes", "-y", help="Approve every change without prompting")
NO_BACKUP_OPT = typer.Option(False, "--no-backup", help="Do not write .bak sidecars")
CONTEXT_OPT = typer.Option(None, "--context", "-C", min=0, help="Context lines around each change")
PAGER_OPT = typer.Option(None, "--pager", help="Diff pager: auto | always | never")
COLOR_OPT = typer.Option(None, "--color", help="Colour diffs: auto | always | never")
JSON_OPT = typer.Option(False, "--json", help="Emit one JSON event per file on stdout")
HIDDEN_OPT = typer.Option(False, "--include-hidden", help="Include dotfiles and dot-directories")
EXCLUDE_OPT = typer.Option(None, "--exclude", help="Glob of paths to skip (repeatable)")
UNDO_OPT = typer.Option(None, "--undo-log", help="Directory for reverse patches of applied changes")


def _common(
    target: Optional[List[Path]],
    glob: Optional[List[str]],
    encoding: Optional[str],
    apply: bool,
    yes: bool,
    no_backup: bool,
    context: Optional[int],
    pager: Optional[str],
    color: Optional[str],
    json_out: bool,
    include_hidden: bool,
    exclude: Optional[List[str]],
    undo_log: Optional[Path],
):
    from safeedit.commands import CommonOptions

    for name, value in (("--pager", pager), ("--color", color)):
        if value is not None and value not in ("auto", "always", "never"):
            console.print(f"[bold red]Invalid {name}:[/bold red] {escape(value)} (auto, always, never)")
            raise typer.Exit(code=2)
    return CommonOptions(
        targets=list(target or []),
        globs=list(glob or []),
        encoding=encoding,
        apply=apply,
        auto_apply=yes,
        no_backup=no_backup,
        context=context,
        pager=pager,
        color=color,
        json=json_out,
        include_hidden=include_hidden,
        exclude=list(exclude or []),
        undo_log=undo_log,
    )


# ── replace ───────────────────────────────────────────────────────────────────


@app.command()
def replace(
    ctx: typer.Context,
    pattern: str = typer.Option(..., "--pattern", "-p", help="Text (or regex with --regex) to find"),
    with_: Optional[str] = typer.Option(None, "--with", "-w", help="Replacement text"),
    with_stdin: bool = typer.Option(False, "--with-stdin", help="Read the replacement from stdin"),
    with_here: Optional[str] = typer.Option(None, "--with-here", metavar="TAG", help="Read the replacement until a TAG line"),
    regex: bool = typer.Option(False, "--regex", help="Treat the pattern as a regular expression"),
    literal: bool = typer.Option(False, "--literal", help="Treat the pattern as plain text (default)"),
    diff_only: bool = typer.Option(False, "--diff-only", help="Only preview, even with --apply"),
    count: Optional[int] = typer.Option(None, "--count", min=1, help="Replace at most N matches per file"),
    expect: Optional[int] = typer.Option(None, "--expect", min=0, help="Fail unless exactly N matches are replaced"),
    after_line: Optional[int] = typer.Option(None, "--after-line", min=0, help="Only replace matches after this line"),
    target: Optional[List[Path]] = TARGET_OPT,
    glob: Optional[List[str]] = GLOB_OPT,
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Replace text or regex matches across files."""
    from safeedit.commands import resolve_text_source, run_replace

    if regex and literal:
        console.print("[bold red]Error:[/bold red] --regex and --literal are mutually exclusive")
        raise typer.Exit(code=2)
    common = _common(target, glob, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, include_hidden, exclude, undo_log)
    session = _session(ctx)
    with _errors():
        replacement, source = resolve_text_source(
            session, "replacement text",
            literal=[with_] if with_ is not None else None,
            use_stdin=with_stdin,
            here=with_here,
        )
        run_replace(
            session, common,
            pattern=pattern,
            replacement=replacement,
            replacement_source=source,
            regex=regex,
            count=count,
            expect=expect,
            after_line=after_line,
            diff_only=diff_only,
        )


# ── block ─────────────────────────────────────────────────────────────────────


@app.command()
def block(
    ctx: typer.Context,
    start_marker: str = typer.Option(..., "--start-marker", help="Line text opening the block"),
    end_marker: str = typer.Option(..., "--end-marker", help="Line text closing the block"),
    mode: str = typer.Option("replace", "--mode", help="replace | insert"),
    body: Optional[List[str]] = typer.Option(None, "--body", help="Body line (repeatable, joined by newlines)"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="Read the body from a file"),
    with_stdin: bool = typer.Option(False, "--with-stdin", help="Read the body from stdin"),
    body_here: Optional[str] = typer.Option(None, "--body-here", metavar="TAG", help="Read the body until a TAG line"),
    target: Optional[List[Path]] = TARGET_OPT,
    glob: Optional[List[str]] = GLOB_OPT,
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Replace or fill the region between two marker lines."""
    from safeedit.commands import resolve_text_source, run_block
    from safeedit.transform.models import BlockMode

    try:
        block_mode = BlockMode(mode)
    except ValueError:
        console.print(f"[bold red]Invalid mode:[/bold red] {escape(mode)} (replace, insert)")
        raise typer.Exit(code=2)
    common = _common(target, glob, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, include_hidden, exclude, undo_log)
    session = _session(ctx)
    with _errors():
        text, source = resolve_text_source(
            session, "block body",
            literal=body, file=body_file, use_stdin=with_stdin, here=body_here,
        )
        run_block(
            session, common,
            start_marker=start_marker, end_marker=end_marker,
            body=text, mode=block_mode, body_source=source,
        )


# ── rename ────────────────────────────────────────────────────────────────────


@app.command()
def rename(
    ctx: typer.Context,
    from_: str = typer.Option(..., "--from", help="Identifier to rename"),
    to: str = typer.Option(..., "--to", help="New identifier"),
    word_boundary: bool = typer.Option(True, "--word-boundary/--no-word-boundary", help="Only match whole identifiers"),
    case_aware: bool = typer.Option(False, "--case-aware", help="Match any case and keep each match's casing"),
    target: Optional[List[Path]] = TARGET_OPT,
    glob: Optional[List[str]] = GLOB_OPT,
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Rename an identifier across files."""
    from safeedit.commands import run_rename

    common = _common(target, glob, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, include_hidden, exclude, undo_log)
    session = _session(ctx)
    with _errors():
        run_rename(session, common, from_=from_, to=to, word_boundary=word_boundary, case_aware=case_aware)


# ── apply ─────────────────────────────────────────────────────────────────────


@app.command("apply")
def apply_patch(
    ctx: typer.Context,
    patch: List[Path] = typer.Option(..., "--patch", help="Unified diff file (repeatable)"),
    root: Optional[Path] = typer.Option(None, "--root", help="Directory patch paths are relative to"),
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Apply unified-diff patches (modify, create, delete, rename)."""
    from safeedit.commands import run_apply

    common = _common(None, None, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, False, None, undo_log)
    session = _session(ctx)
    with _errors():
        run_apply(session, common, patch_files=patch, root=root)


# ── write ─────────────────────────────────────────────────────────────────────


@app.command()
def write(
    ctx: typer.Context,
    path: Path = typer.Option(..., "--path", help="File to create or overwrite"),
    body: Optional[List[str]] = typer.Option(None, "--body", help="Body line (repeatable, joined by newlines)"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="Read the body from a file"),
    with_stdin: bool = typer.Option(False, "--with-stdin", help="Read the body from stdin"),
    body_here: Optional[str] = typer.Option(None, "--body-here", metavar="TAG", help="Read the body until a TAG line"),
    allow_overwrite: bool = typer.Option(False, "--allow-overwrite", help="Permit replacing an existing file"),
    line_ending: str = typer.Option("auto", "--line-ending", help="auto | lf | crlf | cr"),
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Write a whole file from text, a file, or stdin."""
    from safeedit.commands import resolve_text_source, run_write

    if line_ending not in ("auto", "lf", "crlf", "cr"):
        console.print(f"[bold red]Invalid line ending:[/bold red] {escape(line_ending)} (auto, lf, crlf, cr)")
        raise typer.Exit(code=2)
    common = _common(None, None, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, False, None, undo_log)
    session = _session(ctx)
    with _errors():
        text, source = resolve_text_source(
            session, "file body",
            literal=body, file=body_file, use_stdin=with_stdin, here=body_here,
        )
        run_write(
            session, common,
            path=path, body=text, body_source=source,
            line_ending=line_ending, allow_overwrite=allow_overwrite,
        )


# ── normalize ─────────────────────────────────────────────────────────────────


@app.command()
def normalize(
    ctx: typer.Context,
    convert_encoding: Optional[str] = typer.Option(None, "--convert-encoding", help="Re-encode files to this encoding"),
    strip_zero_width: bool = typer.Option(False, "--strip-zero-width", help="Remove zero-width characters"),
    strip_control: bool = typer.Option(False, "--strip-control", help="Remove control characters"),
    trim_trailing_space: bool = typer.Option(False, "--trim-trailing-space", help="Trim trailing spaces and tabs"),
    ensure_eol: bool = typer.Option(False, "--ensure-eol", help="Add a final newline when missing"),
    report_format: str = typer.Option("table", "--report-format", help="table | json"),
    scan_encoding: bool = typer.Option(False, "--scan-encoding", help="Report the detected encoding"),
    scan_zero_width: bool = typer.Option(False, "--scan-zero-width", help="Count zero-width characters"),
    scan_control: bool = typer.Option(False, "--scan-control", help="Count control characters"),
    scan_trailing_space: bool = typer.Option(False, "--scan-trailing-space", help="Count trailing whitespace"),
    scan_final_newline: bool = typer.Option(False, "--scan-final-newline", help="Check for a final newline"),
    target: Optional[List[Path]] = TARGET_OPT,
    glob: Optional[List[str]] = GLOB_OPT,
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Report and optionally fix zero-width, control, whitespace, and encoding issues."""
    from safeedit.commands import NormalizeRequest, run_normalize

    common = _common(target, glob, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, include_hidden, exclude, undo_log)
    request = NormalizeRequest(
        strip_zero_width=strip_zero_width,
        strip_control=strip_control,
        trim_trailing_space=trim_trailing_space,
        ensure_eol=ensure_eol,
        convert_encoding=convert_encoding,
        report_format=report_format,
        scan_encoding=scan_encoding,
        scan_zero_width=scan_zero_width,
        scan_control=scan_control,
        scan_trailing_space=scan_trailing_space,
        scan_final_newline=scan_final_newline,
    )
    session = _session(ctx)
    with _errors():
        run_normalize(session, common, request)


# ── review ────────────────────────────────────────────────────────────────────


@app.command()
def review(
    ctx: typer.Context,
    head: Optional[int] = typer.Option(None, "--head", min=0, help="Show the first N lines"),
    tail: Optional[int] = typer.Option(None, "--tail", min=0, help="Show the last N lines"),
    lines: Optional[str] = typer.Option(None, "--lines", help="Show a line range START:END"),
    around: Optional[str] = typer.Option(None, "--around", help="Show LINE:CONTEXT lines around a line"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep printing lines appended to one file"),
    search: Optional[str] = typer.Option(None, "--search", help="Highlight matches of this text"),
    regex: bool = typer.Option(False, "--regex", help="Treat --search as a regular expression"),
    target: Optional[List[Path]] = TARGET_OPT,
    glob: Optional[List[str]] = GLOB_OPT,
    encoding: Optional[str] = ENCODING_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
) -> None:
    """Print slices of files with line numbers (read-only)."""
    from safeedit.commands import CommonOptions, run_review_command
    from safeedit.review.slices import ReviewOptions

    session = _session(ctx)
    common = CommonOptions(
        targets=list(target or []),
        globs=list(glob or []),
        encoding=encoding,
        include_hidden=include_hidden,
        exclude=list(exclude or []),
    )
    with _errors():
        options = ReviewOptions.from_input(
            head=head, tail=tail, lines=lines, around=around,
            search=search, regex=regex, follow=follow,
        )
        try:
            run_review_command(session, common, options)
        except KeyboardInterrupt:
            console.print("[dim]stopped following.[/dim]")


# ── batch ─────────────────────────────────────────────────────────────────────


@app.command()
def batch(
    ctx: typer.Context,
    plan: Path = typer.Argument(..., help="YAML or JSON plan file"),
    encoding: Optional[str] = ENCODING_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
    no_backup: bool = NO_BACKUP_OPT,
    context: Optional[int] = CONTEXT_OPT,
    pager: Optional[str] = PAGER_OPT,
    color: Optional[str] = COLOR_OPT,
    json_out: bool = JSON_OPT,
    include_hidden: bool = HIDDEN_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    undo_log: Optional[Path] = UNDO_OPT,
) -> None:
    """Run the steps of a batch plan in order."""
    from safeedit.batch import load_plan, run_batch

    common = _common(None, None, encoding, apply, yes, no_backup, context, pager, color,
                     json_out, include_hidden, exclude, undo_log)
    session = _session(ctx)
    with _errors():
        steps = load_plan(plan)
        run_batch(session, common, steps)


# ── log / report ──────────────────────────────────────────────────────────────


@app.command("log")
def show_log(
    ctx: typer.Context,
    tail: int = typer.Option(20, "--tail", "-n", min=0, help="Number of recent entries (0 = all)"),
) -> None:
    """Show recent change-log entries."""
    from safeedit.commands import run_log

    session = _session(ctx)
    run_log(session, tail)


@app.command()
def report(
    ctx: typer.Context,
    since: Optional[str] = typer.Option(None, "--since", help="Only count entries at or after this RFC 3339 time"),
    format: str = typer.Option("table", "--format", "-f", help="table | json"),
) -> None:
    """Summarize the change log per command and action."""
    from safeedit.commands import run_report

    session = _session(ctx)
    with _errors():
        run_report(session, since, format)


# ── cleanup ───────────────────────────────────────────────────────────────────


@app.command()
def cleanup(
    ctx: typer.Context,
    root: Path = typer.Option(Path("."), "--root", help="Directory to search for backups"),
    include_hidden: bool = HIDDEN_OPT,
    apply: bool = APPLY_OPT,
    yes: bool = YES_OPT,
) -> None:
    """Find (and with --apply delete) .bak backup files."""
    from safeedit.commands import CommonOptions, run_cleanup_command

    if not root.is_dir():
        console.print(f"[red]✗[/red] {escape(str(root))} is not a directory")
        raise typer.Exit(code=1)
    session = _session(ctx)
    common = CommonOptions(apply=apply, auto_apply=yes, include_hidden=include_hidden)
    with _errors():
        run_cleanup_command(session, common, root)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Generate a starter .safeedit.toml in the current directory."""
    from safeedit.config.defaults import DEFAULT_TOML
    from safeedit.config.loader import CONFIG_FILENAME

    config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {escape(str(config_path))}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {escape(str(config_path))}")


# ── version / logging ─────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"safeedit {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=debug, rich_tracebacks=debug)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .safeedit.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
) -> None:
    """safeedit: previewable, reversible bulk text edits."""
    _setup_logging(verbose, debug)
    ctx.obj = {"config": config}
