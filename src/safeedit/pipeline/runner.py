"""Per-file apply loop shared by every mutating command.

Each work item goes: read -> decode -> transform/patch -> preview ->
approval -> commit -> record. Outcomes land in ``ctx.stats`` as one of
applied, skipped, dry-run or no-op.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.markup import escape

from safeedit.diff.engine import LineSpan, collect_line_spans, summarize_lines
from safeedit.diff.render import display_diff
from safeedit.errors import InputError, PatchError
from safeedit.files.models import FileEntry
from safeedit.files.resolver import detect_binary
from safeedit.output import json_report
from safeedit.output.terminal import print_normalize_report, print_preview_header, print_suggestions
from safeedit.patch.applier import apply_file_patch
from safeedit.patch.models import FilePatch, PatchKind
from safeedit.pipeline.approval import resolve_decision
from safeedit.pipeline.models import ApprovalDecision, RunContext
from safeedit.pipeline.writer import apply_transform, delete_file_with_undo, read_bytes, write_new_file
from safeedit.text.encoding import DecodedText, EncodingDecision, EncodingSource, canonical_name
from safeedit.text.newlines import (
    detect_line_ending_style,
    normalize_to_lf,
    resolve_style,
    restore_from_lf,
)
from safeedit.transform.models import EditOutcome, TransformResult
from safeedit.transform.normalize import NormalizeOptions, normalize_text
from safeedit.transform.suggest import format_suggestions

logger = logging.getLogger(__name__)

EditFn = Callable[[str], EditOutcome]
CommitFn = Callable[[], None]


# --- recording ---


def record(
    ctx: RunContext,
    path: Path,
    action: str,
    lines: str = "",
    spans: Sequence[LineSpan] = (),
    *,
    applied: bool = False,
    dry_run: bool = False,
    patch_kind: Optional[PatchKind] = None,
) -> None:
    """Change-log record (apply mode only) plus optional JSON event."""
    if ctx.options.apply and ctx.changelog is not None:
        ctx.changelog.record(ctx.command, path, action, lines, spans)
    if ctx.options.json:
        event = json_report.diff_event(
            ctx.command, path, action, lines, spans,
            applied=applied, dry_run=dry_run, patch_kind=patch_kind,
        )
        ctx.emit(json_report.render(event))


def finish(ctx: RunContext) -> None:
    """Print the closing stats line if anything was processed."""
    if ctx.stats.total:
        ctx.console.print(ctx.stats.summary_line(ctx.command))


def _skip_binary(ctx: RunContext, path: Path, patch_kind: Optional[PatchKind] = None) -> None:
    ctx.console.print(f"skipping {escape(str(path))} (suspected binary file)")
    ctx.stats.skipped += 1
    record(
        ctx, path, "skipped", "suspected binary file",
        dry_run=not ctx.options.apply, patch_kind=patch_kind,
    )


def _no_op(ctx: RunContext, path: Path, patch_kind: Optional[PatchKind] = None) -> None:
    ctx.stats.no_op += 1
    record(ctx, path, "no-op", "no change", dry_run=not ctx.options.apply, patch_kind=patch_kind)


def _decode(ctx: RunContext, path: Path) -> DecodedText:
    decoded = ctx.encoding.decode(read_bytes(path))
    if decoded.had_errors:
        logger.warning("decoding %s as %s replaced invalid bytes", path, decoded.decision.encoding)
        ctx.console.print(
            f"[yellow]warning:[/yellow] decoding errors in {escape(str(path))} "
            f"({decoded.decision.encoding}); invalid bytes were replaced"
        )
    return decoded


# --- review + commit ---


def review_and_commit(
    ctx: RunContext,
    path: Path,
    old_text: str,
    new_text: str,
    commit: CommitFn,
    *,
    patch_kind: Optional[PatchKind] = None,
    applied_action: str = "applied",
    summary: Optional[str] = None,
    show_diff: bool = True,
) -> Optional[ApprovalDecision]:
    """Preview a candidate change, then dry-run it or ask and commit it."""
    lines = summary or summarize_lines(old_text, new_text, ctx.differ)
    spans = collect_line_spans(old_text, new_text, ctx.differ)

    if show_diff:
        print_preview_header(ctx.console, path, lines)
        display_diff(
            old_text, new_text, ctx.options.display, ctx.console,
            read_command=ctx.prompt, differ=ctx.differ,
        )

    if not ctx.options.apply:
        ctx.stats.dry_run += 1
        ctx.console.print("[cyan]dry-run:[/cyan] rerun with --apply to write this change.")
        record(ctx, path, "dry-run", lines, spans, dry_run=True, patch_kind=patch_kind)
        return None

    decision = resolve_decision(ctx, path)
    if decision is ApprovalDecision.QUIT:
        ctx.console.print("stopping after user request.")
        ctx.stats.skipped += 1
        ctx.halted = True
        return decision
    if decision is ApprovalDecision.SKIP:
        ctx.console.print(f"skipped {escape(str(path))}")
        ctx.stats.skipped += 1
        record(ctx, path, "skipped", lines, spans, patch_kind=patch_kind)
        return decision

    commit()
    ctx.stats.applied += 1
    record(ctx, path, applied_action, lines, spans, applied=True, patch_kind=patch_kind)
    return decision


def _report_no_change(ctx: RunContext, path: Path, outcome: EditOutcome, pattern: Optional[str]) -> None:
    if outcome.message:
        ctx.console.print(f"{escape(str(path))}: {escape(outcome.message)}")
    if outcome.suggestions or (pattern and not outcome.replacements and not outcome.filtered):
        print_suggestions(ctx.console, format_suggestions(list(outcome.suggestions), pattern or ""))


# --- text commands (replace / block / rename) ---


def run_text_command(
    ctx: RunContext,
    entries: Sequence[FileEntry],
    edit: EditFn,
    *,
    pattern: Optional[str] = None,
) -> None:
    """Run a pure text transform over every entry."""
    for entry in entries:
        if ctx.halted:
            break
        if entry.is_binary:
            _skip_binary(ctx, entry.path)
            continue

        decoded = _decode(ctx, entry.path)
        outcome = edit(decoded.text)
        if not outcome.changed:
            _report_no_change(ctx, entry.path, outcome, pattern)
            _no_op(ctx, entry.path)
            continue

        assert outcome.new_text is not None
        result = TransformResult(decoded=decoded, new_text=outcome.new_text)
        review_and_commit(
            ctx,
            entry.path,
            result.decoded.text,
            result.new_text,
            lambda: apply_transform(
                ctx, entry.path, result.decoded.decision, result.decoded.text, result.new_text
            ),
        )
    finish(ctx)


# --- patches ---


def resolve_patch_target(root: Path, relative: Path) -> Path:
    return relative if relative.is_absolute() else root / relative


def _run_modify(ctx: RunContext, patch: FilePatch, root: Path) -> None:
    assert patch.new_path is not None
    target = resolve_patch_target(root, patch.new_path)
    if not target.is_file():
        raise PatchError(f"patch {patch.label} targets missing file {target}")
    if detect_binary(target):
        _skip_binary(ctx, target, PatchKind.MODIFY)
        return
    decoded = _decode(ctx, target)
    new_text = apply_file_patch(patch, decoded.text)
    if new_text == decoded.text:
        ctx.console.print(f"{escape(str(target))}: patch produced no change")
        _no_op(ctx, target, PatchKind.MODIFY)
        return
    review_and_commit(
        ctx, target, decoded.text, new_text,
        lambda: apply_transform(ctx, target, decoded.decision, decoded.text, new_text),
        patch_kind=PatchKind.MODIFY,
    )


def _run_create(ctx: RunContext, patch: FilePatch, root: Path) -> None:
    assert patch.new_path is not None
    target = resolve_patch_target(root, patch.new_path)
    if target.exists():
        raise PatchError(f"refusing to create {target}: file already exists")
    new_text = apply_file_patch(patch, "")
    if not new_text:
        ctx.console.print(f"{escape(str(target))}: creating an empty file")
    review_and_commit(
        ctx, target, "", new_text,
        lambda: write_new_file(ctx, target, new_text),
        patch_kind=PatchKind.CREATE,
        summary=None if new_text else "empty file",
    )


def _run_delete(ctx: RunContext, patch: FilePatch, root: Path) -> None:
    assert patch.old_path is not None
    target = resolve_patch_target(root, patch.old_path)
    if not target.is_file():
        raise PatchError(f"patch {patch.label} deletes missing file {target}")
    if detect_binary(target):
        _skip_binary(ctx, target, PatchKind.DELETE)
        return
    decoded = _decode(ctx, target)
    apply_file_patch(patch, decoded.text)
    review_and_commit(
        ctx, target, decoded.text, "",
        lambda: delete_file_with_undo(ctx, target, decoded.text),
        patch_kind=PatchKind.DELETE,
        applied_action="deleted",
        summary=None if decoded.text else "empty file",
    )


def _run_rename(ctx: RunContext, patch: FilePatch, root: Path) -> None:
    assert patch.old_path is not None and patch.new_path is not None
    source = resolve_patch_target(root, patch.old_path)
    dest = resolve_patch_target(root, patch.new_path)
    if not source.is_file():
        raise PatchError(f"patch {patch.label} renames missing file {source}")
    if dest.exists():
        raise PatchError(f"refusing to rename {source} -> {dest}: destination already exists")
    if detect_binary(source):
        _skip_binary(ctx, source, PatchKind.RENAME)
        return
    decoded = _decode(ctx, source)
    new_text = apply_file_patch(patch, decoded.text)
    ctx.console.print(f"rename: {escape(str(source))} -> {escape(str(dest))}")

    def commit() -> None:
        write_new_file(ctx, dest, new_text, decoded.decision)
        delete_file_with_undo(ctx, source, decoded.text)
        record(ctx, source, "deleted (rename)", "", applied=True, patch_kind=PatchKind.RENAME)

    unchanged = new_text == decoded.text
    if unchanged:
        ctx.console.print("(no content change; rename only)")
    review_and_commit(
        ctx, dest, decoded.text, new_text, commit,
        patch_kind=PatchKind.RENAME,
        applied_action="applied (rename)",
        summary="rename only" if unchanged else None,
        show_diff=not unchanged,
    )


_PATCH_HANDLERS = {
    PatchKind.MODIFY: _run_modify,
    PatchKind.CREATE: _run_create,
    PatchKind.DELETE: _run_delete,
    PatchKind.RENAME: _run_rename,
}


def run_patch_command(ctx: RunContext, patches: Sequence[FilePatch], root: Path) -> None:
    """Apply each file patch as its own work item, in order."""
    for patch in patches:
        if ctx.halted:
            break
        logger.debug("processing %s (%s)", patch.label, patch.kind.value)
        kind = escape(f"[{patch.kind.value}]")
        ctx.console.print(
            f"[bold]--- patch {escape(patch.label)} ({escape(patch.display_path)}) {kind} ---[/bold]"
        )
        _PATCH_HANDLERS[patch.kind](ctx, patch, root)
    finish(ctx)


# --- write ---


def run_write_command(
    ctx: RunContext,
    path: Path,
    body: str,
    *,
    line_ending: str = "auto",
    allow_overwrite: bool = False,
) -> None:
    """Write *body* to *path*, creating or (if allowed) replacing it."""
    if path.exists():
        if not path.is_file():
            raise InputError(f"{path} is not a regular file")
        if not allow_overwrite:
            raise InputError(f"refusing to overwrite existing file {path} (pass --allow-overwrite)")
        if detect_binary(path):
            raise InputError(f"refusing to overwrite {path}: suspected binary file")
        decoded = _decode(ctx, path)
        existing = detect_line_ending_style(decoded.text) if decoded.text else None
        style = resolve_style(line_ending, existing)
        new_text = restore_from_lf(normalize_to_lf(body), style)
        if new_text == decoded.text:
            ctx.console.print(f"{escape(str(path))}: content already matches")
            _no_op(ctx, path, PatchKind.MODIFY)
        else:
            review_and_commit(
                ctx, path, decoded.text, new_text,
                lambda: apply_transform(ctx, path, decoded.decision, decoded.text, new_text),
                patch_kind=PatchKind.MODIFY,
            )
    else:
        style = resolve_style(line_ending, None)
        new_text = restore_from_lf(normalize_to_lf(body), style)
        review_and_commit(
            ctx, path, "", new_text,
            lambda: write_new_file(ctx, path, new_text),
            patch_kind=PatchKind.CREATE,
            summary=None if new_text else "empty file",
        )
    finish(ctx)


# --- normalize ---


def run_normalize_command(
    ctx: RunContext,
    entries: Sequence[FileEntry],
    opts: NormalizeOptions,
    *,
    convert_to: Optional[str] = None,
    report_json: bool = False,
    detect_encoding: bool = True,
) -> None:
    """Report (and optionally fix) text hygiene issues per file."""
    target_encoding = canonical_name(convert_to) if convert_to else None

    for entry in entries:
        if ctx.halted:
            break
        if entry.is_binary:
            _skip_binary(ctx, entry.path)
            continue

        decoded = _decode(ctx, entry.path)
        outcome = normalize_text(decoded.text, opts)
        source_encoding = decoded.decision.encoding if detect_encoding else None
        if report_json:
            ctx.emit(json_report.render(
                json_report.normalize_row(entry.path, outcome.report, source_encoding, target_encoding)
            ))
        else:
            print_normalize_report(ctx.console, entry.path, outcome.report, source_encoding, target_encoding)

        if outcome.cleaned is None and target_encoding is None:
            _no_op(ctx, entry.path)
            continue

        new_text = outcome.cleaned if outcome.cleaned is not None else decoded.text
        decision: EncodingDecision = decoded.decision
        if target_encoding is not None:
            decision = EncodingDecision(target_encoding, EncodingSource.OVERRIDE)

        convert_only = outcome.cleaned is None
        summary: Optional[str] = None
        if convert_only:
            summary = f"encoding conversion to {convert_to}"
            ctx.console.print(
                f"(no textual diff) {escape(str(entry.path))} will be rewritten using {convert_to}"
            )

        review_and_commit(
            ctx,
            entry.path,
            decoded.text,
            new_text,
            lambda: apply_transform(ctx, entry.path, decision, decoded.text, new_text),
            summary=summary,
            show_diff=not convert_only,
        )
    finish(ctx)

