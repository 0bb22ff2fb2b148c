"""Command orchestration shared by the CLI and batch plans.

Each ``run_*`` function resolves targets, builds a :class:`RunContext`
from the common flags plus the loaded config, prints the command header,
and hands off to the pipeline.
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO

from rich.console import Console
from rich.markup import escape

from safeedit.config.schema import SafeEditConfig
from safeedit.diff.render import DiffDisplayConfig, PagerMode
from safeedit.errors import ConfigError, FileIOError, InputError
from safeedit.files.models import FileEntry, FileMetadata
from safeedit.files.resolver import resolve_targets
from safeedit.output.changelog import ChangeLog
from safeedit.output.terminal import print_command_header
from safeedit.patch.parser import load_file_patches
from safeedit.pipeline.models import PipelineOptions, PromptFn, RunContext, stdout_emit
from safeedit.pipeline.runner import (
    run_normalize_command,
    run_patch_command,
    run_text_command,
    run_write_command,
)
from safeedit.review.slices import ReviewOptions
from safeedit.text.encoding import EncodingStrategy
from safeedit.transform.block import apply_block
from safeedit.transform.matcher import RegexMatcher
from safeedit.transform.models import BlockMode, BlockOptions, RenameOptions, ReplaceOptions
from safeedit.transform.normalize import NormalizeOptions
from safeedit.transform.rename import apply_rename
from safeedit.transform.replace import apply_replace

logger = logging.getLogger(__name__)


# --- shared options ---


@dataclass
class CommonOptions:
    """Flags every mutating command accepts. ``None`` defers to config."""

    targets: List[Path] = field(default_factory=list)
    globs: List[str] = field(default_factory=list)
    encoding: Optional[str] = None
    apply: bool = False
    auto_apply: bool = False
    no_backup: bool = False
    context: Optional[int] = None
    pager: Optional[str] = None
    color: Optional[str] = None
    json: bool = False
    include_hidden: bool = False
    exclude: List[str] = field(default_factory=list)
    undo_log: Optional[Path] = None

    def merged(self, overrides: Mapping[str, Any]) -> "CommonOptions":
        """Copy with plan-level *overrides* applied (unknown keys rejected)."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"unknown common option(s): {', '.join(unknown)}")
        values = dict(overrides)
        if "targets" in values:
            values["targets"] = [Path(p) for p in values["targets"] or []]
        if values.get("undo_log") is not None:
            values["undo_log"] = Path(values["undo_log"])
        return dataclasses.replace(self, **values)


@dataclass
class Session:
    """Process-level collaborators: config, console, and stdin/stdout hooks."""

    config: SafeEditConfig = field(default_factory=SafeEditConfig)
    console: Console = field(default_factory=lambda: Console(stderr=True))
    prompt: Optional[PromptFn] = None
    emit: Callable[[str], None] = stdout_emit
    stdin: Optional[TextIO] = None
    interactive: Optional[bool] = None  # None = detect from the terminal

    def read_stdin(self) -> str:
        return (self.stdin or sys.stdin).read()


def _colorize(session: Session, choice: str) -> bool:
    if choice == "always":
        return True
    if choice == "never":
        return False
    return session.console.is_terminal


def _interactive(session: Session, common: CommonOptions) -> bool:
    if common.auto_apply or common.json:
        return False
    if session.interactive is not None:
        return session.interactive
    return sys.stdin.isatty() and session.console.is_terminal


def build_context(session: Session, common: CommonOptions, command: str, *, apply: Optional[bool] = None) -> RunContext:
    cfg = session.config
    pager = common.pager or cfg.diff.pager
    try:
        pager_mode = PagerMode(pager)
    except ValueError as exc:
        raise ConfigError(f"invalid pager mode '{pager}' (auto, always, never)") from exc

    display = DiffDisplayConfig(
        context=cfg.diff.context if common.context is None else common.context,
        pager=pager_mode,
        colorize=_colorize(session, common.color or cfg.diff.color),
        interactive=_interactive(session, common),
        max_lines=cfg.diff.max_lines,
        max_bytes=cfg.diff.max_bytes,
        max_line_bytes=cfg.diff.max_line_bytes,
        page_size=cfg.diff.page_size,
    )
    undo_log = common.undo_log
    if undo_log is None and cfg.apply.undo_log:
        undo_log = Path(cfg.apply.undo_log)
    options = PipelineOptions(
        apply=common.apply if apply is None else apply,
        auto_apply=common.auto_apply,
        backups=cfg.apply.backups and not common.no_backup,
        undo_log=undo_log,
        json=common.json,
        display=display,
    )
    changelog = ChangeLog(Path(cfg.log.path), cfg.log.max_entries) if cfg.log.enabled else None
    return RunContext(
        command=command,
        options=options,
        console=session.console,
        encoding=EncodingStrategy(common.encoding or cfg.encoding.default),
        changelog=changelog,
        prompt=session.prompt,
        emit=session.emit,
    )


def _header(ctx: RunContext, common: CommonOptions, entries: Sequence[FileEntry], details: Sequence[str]) -> None:
    display = ctx.options.display
    settings: Dict[str, object] = {
        "context lines": display.context,
        "pager": display.pager.value,
        "json output": common.json,
        "include hidden": common.include_hidden,
    }
    if common.exclude:
        settings["exclude globs"] = ", ".join(common.exclude)
    if not ctx.options.backups:
        settings["backups"] = "disabled"
    if ctx.options.undo_log is not None:
        settings["undo log dir"] = ctx.options.undo_log
    if common.globs:
        settings["globs"] = ", ".join(common.globs)
    print_command_header(
        ctx.console,
        ctx.command,
        apply=ctx.options.apply,
        auto_apply=common.auto_apply,
        encoding=ctx.encoding.describe(),
        entries=entries,
        settings=settings,
        details=details,
    )


def _entries(common: CommonOptions) -> List[FileEntry]:
    return resolve_targets(common.targets, common.globs, common.include_hidden, common.exclude)


# --- text sources ---


def read_heredoc(session: Session, tag: str, description: str) -> str:
    """Read stdin lines until one equals *tag*."""
    if not tag.strip():
        raise InputError("heredoc terminator cannot be empty")
    session.console.print(f"Enter {description}; finish with a line containing only {tag}.")
    stream = session.stdin or sys.stdin
    buf: List[str] = []
    while True:
        line = stream.readline()
        if not line:
            raise InputError(f"stdin closed before heredoc terminator '{tag}'")
        if line.rstrip("\r\n") == tag:
            return "".join(buf)
        buf.append(line)


def resolve_text_source(
    session: Session,
    description: str,
    *,
    literal: Optional[Sequence[str]] = None,
    file: Optional[Path] = None,
    use_stdin: bool = False,
    here: Optional[str] = None,
) -> tuple:
    """Return ``(text, source_label)`` from exactly one input source."""
    chosen = [bool(literal), file is not None, use_stdin, here is not None]
    if sum(chosen) > 1:
        raise InputError(f"{description}: choose only one input source")
    if literal:
        return "\n".join(literal), "literal"
    if file is not None:
        try:
            return file.read_text(encoding="utf-8"), "file"
        except OSError as exc:
            raise FileIOError(f"reading {description} from {file}: {exc}") from exc
    if here is not None:
        return read_heredoc(session, here, description), "heredoc"
    if use_stdin:
        return session.read_stdin(), "stdin"
    raise InputError(f"{description} required; pass it as text, a file, --here TAG, or --stdin")


# --- commands ---


def run_replace(
    session: Session,
    common: CommonOptions,
    *,
    pattern: str,
    replacement: str,
    replacement_source: str = "literal",
    regex: bool = False,
    count: Optional[int] = None,
    expect: Optional[int] = None,
    after_line: Optional[int] = None,
    diff_only: bool = False,
) -> RunContext:
    literal_mode = not regex
    matcher = RegexMatcher.literal(pattern) if literal_mode else RegexMatcher(pattern)
    options = ReplaceOptions(
        pattern=pattern,
        replacement=replacement,
        allow_captures=not literal_mode,
        count=count,
        expect=expect,
        after_line=after_line,
    )
    entries = _entries(common)
    ctx = build_context(session, common, "replace", apply=common.apply and not diff_only)
    if diff_only:
        ctx.console.print("diff-only mode enabled: changes will not be written even with --apply.")
    _header(ctx, common, entries, [
        f"pattern={pattern}",
        f"replacement_source={replacement_source}",
        f"replacement_length={len(replacement)} chars",
        f"mode={'literal' if literal_mode else 'regex'}",
        f"count={count}",
        f"expect={expect}",
        f"after_line={after_line}",
        f"diff_only={diff_only}",
    ])
    run_text_command(ctx, entries, lambda text: apply_replace(text, options, matcher), pattern=pattern)
    return ctx


def run_block(
    session: Session,
    common: CommonOptions,
    *,
    start_marker: str,
    end_marker: str,
    body: str,
    mode: BlockMode = BlockMode.REPLACE,
    body_source: str = "literal",
) -> RunContext:
    options = BlockOptions(start_marker=start_marker, end_marker=end_marker, mode=mode, body=body)
    entries = _entries(common)
    ctx = build_context(session, common, "block")
    _header(ctx, common, entries, [
        f"start_marker={start_marker}",
        f"end_marker={end_marker}",
        f"mode={mode.value}",
        f"body_source={body_source}",
        f"body_length={len(body)} chars",
    ])
    run_text_command(ctx, entries, lambda text: apply_block(text, options))
    return ctx


def run_rename(
    session: Session,
    common: CommonOptions,
    *,
    from_: str,
    to: str,
    word_boundary: bool = True,
    case_aware: bool = False,
) -> RunContext:
    if not from_:
        raise InputError("rename needs a non-empty --from")
    options = RenameOptions(from_=from_, to=to, word_boundary=word_boundary, case_aware=case_aware)
    entries = _entries(common)
    ctx = build_context(session, common, "rename")
    _header(ctx, common, entries, [
        f"from={from_}",
        f"to={to}",
        f"word_boundary={word_boundary}",
        f"case_aware={case_aware}",
    ])
    run_text_command(ctx, entries, lambda text: apply_rename(text, options), pattern=from_)
    return ctx


def run_apply(
    session: Session,
    common: CommonOptions,
    *,
    patch_files: Sequence[Path],
    root: Optional[Path] = None,
) -> RunContext:
    if not patch_files:
        raise InputError("at least one --patch file is required")
    root_dir = (root or Path.cwd()).resolve()
    if not root_dir.is_dir():
        raise InputError(f"patch root {root_dir} is not a directory")

    patches = [fp for path in patch_files for fp in load_file_patches(Path(path))]
    ctx = build_context(session, common, "apply")
    if not patches:
        ctx.console.print("no applicable patch hunks to review.")
        return ctx

    summary_entries = []
    for fp in patches:
        rel = fp.new_path or fp.old_path
        if rel is None:
            continue
        target = rel if rel.is_absolute() else root_dir / rel
        size = target.stat().st_size if target.is_file() else 0
        summary_entries.append(FileEntry(target, FileMetadata(len=size)))

    _header(ctx, common, summary_entries, [
        f"patch files: {', '.join(str(p) for p in patch_files)}",
        f"root: {root_dir}",
    ])
    run_patch_command(ctx, patches, root_dir)
    return ctx


def run_write(
    session: Session,
    common: CommonOptions,
    *,
    path: Path,
    body: str,
    body_source: str = "literal",
    line_ending: str = "auto",
    allow_overwrite: bool = False,
) -> RunContext:
    ctx = build_context(session, common, "write")
    size = path.stat().st_size if path.is_file() else 0
    _header(ctx, common, [FileEntry(path, FileMetadata(len=size))], [
        f"body_source={body_source}",
        f"body_length={len(body)} chars",
        f"line_ending={line_ending}",
        f"allow_overwrite={allow_overwrite}",
    ])
    run_write_command(ctx, path, body, line_ending=line_ending, allow_overwrite=allow_overwrite)
    return ctx


@dataclass
class NormalizeRequest:
    strip_zero_width: bool = False
    strip_control: bool = False
    trim_trailing_space: bool = False
    ensure_eol: bool = False
    convert_encoding: Optional[str] = None
    report_format: str = "table"
    scan_encoding: bool = False
    scan_zero_width: bool = False
    scan_control: bool = False
    scan_trailing_space: bool = False
    scan_final_newline: bool = False

    def options(self) -> NormalizeOptions:
        """Without any ``scan_*`` flag every detector runs."""
        any_scan = (
            self.scan_encoding or self.scan_zero_width or self.scan_control
            or self.scan_trailing_space or self.scan_final_newline
        )
        return NormalizeOptions(
            strip_zero_width=self.strip_zero_width,
            strip_control=self.strip_control,
            trim_trailing_space=self.trim_trailing_space,
            ensure_eol=self.ensure_eol,
            detect_zero_width=self.scan_zero_width if any_scan else True,
            detect_control=self.scan_control if any_scan else True,
            detect_trailing_space=self.scan_trailing_space if any_scan else True,
            detect_final_newline=self.scan_final_newline if any_scan else True,
        )

    @property
    def detect_encoding(self) -> bool:
        any_scan = (
            self.scan_encoding or self.scan_zero_width or self.scan_control
            or self.scan_trailing_space or self.scan_final_newline
        )
        return self.scan_encoding if any_scan else True


def run_normalize(session: Session, common: CommonOptions, request: NormalizeRequest) -> RunContext:
    if request.report_format not in ("table", "json"):
        raise ConfigError(f"unknown report format '{request.report_format}' (table, json)")
    entries = _entries(common)
    ctx = build_context(session, common, "normalize")
    _header(ctx, common, entries, [
        f"strip_zero_width={request.strip_zero_width}",
        f"strip_control={request.strip_control}",
        f"trim_trailing_space={request.trim_trailing_space}",
        f"ensure_eol={request.ensure_eol}",
        f"report_format={request.report_format}",
        f"convert_encoding={request.convert_encoding or 'none'}",
    ])
    run_normalize_command(
        ctx,
        entries,
        request.options(),
        convert_to=request.convert_encoding,
        report_json=request.report_format == "json",
        detect_encoding=request.detect_encoding,
    )
    return ctx


def run_review_command(
    session: Session,
    common: CommonOptions,
    options: ReviewOptions,
    **follow_kwargs,
) -> None:
    from safeedit.review.viewer import run_review

    entries = _entries(common)
    strategy = EncodingStrategy(common.encoding or session.config.encoding.default)
    run_review(session.console, entries, strategy, options, **follow_kwargs)


def _changelog(session: Session) -> ChangeLog:
    cfg = session.config.log
    return ChangeLog(Path(cfg.path), cfg.max_entries)


def run_log(session: Session, tail: int = 20) -> None:
    from safeedit.output.terminal import print_log

    print_log(session.console, _changelog(session).read_recent(tail))


def run_report(session: Session, since: Optional[str] = None, fmt: str = "table") -> None:
    """Summarize change-log records per (command, action)."""
    from safeedit.output import json_report
    from safeedit.output.changelog import parse_rfc3339
    from safeedit.output.terminal import print_report

    if fmt not in ("table", "json"):
        raise ConfigError(f"unknown report format '{fmt}' (table, json)")
    records = _changelog(session).read_all()
    if since:
        try:
            cutoff = parse_rfc3339(since)
        except ValueError as exc:
            raise ConfigError(f"invalid --since timestamp '{since}': expected RFC 3339") from exc
        kept = []
        for r in records:
            try:
                if parse_rfc3339(r.timestamp) >= cutoff:
                    kept.append(r)
            except ValueError:
                logger.debug("skipping change log record with bad timestamp %r", r.timestamp)
        records = kept

    rows = json_report.summarize_records(records)
    if fmt == "json":
        session.emit(json_report.render({"since": since, "total": len(records), "entries": rows}))
    else:
        print_report(session.console, rows, since)


def run_cleanup_command(session: Session, common: CommonOptions, root: Path) -> Optional[RunContext]:
    """List backup sidecars under *root*; delete them in apply mode."""
    from safeedit.pipeline.cleanup import find_backup_files, run_cleanup

    candidates = find_backup_files(root, common.include_hidden)
    if not candidates:
        session.console.print(f"no backup files found under {escape(str(root))}.")
        return None
    session.console.print(f"found {len(candidates)} backup file(s) under {escape(str(root))}:")
    for path in candidates:
        session.console.print(f"  - {path}", markup=False)
    if not common.apply:
        session.console.print("dry-run: rerun with --apply to delete these backups.")
        return None
    ctx = build_context(session, common, "cleanup")
    run_cleanup(ctx, candidates)
    return ctx
