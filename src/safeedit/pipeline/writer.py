"""Durable writes: undo patches, backups, and temp-file + rename.

Order for every committed change: reverse patch first, then the backup
sidecar, then the atomic replace.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Optional

from rich.markup import escape

from safeedit.diff.engine import unified_diff
from safeedit.errors import FileIOError
from safeedit.output.changelog import rfc3339_now
from safeedit.pipeline.models import RunContext
from safeedit.text.encoding import EncodingDecision

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = '\\/:*?"<>|'


def sanitize_path(path: Path) -> str:
    """Flatten *path* into a file-name-safe string."""
    return "".join("_" if ch in _UNSAFE_PATH_CHARS else ch for ch in str(path))


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileIOError(f"reading {path}: {exc}") from exc


def backup_candidate(path: Path, index: int) -> Path:
    suffix = ".bak" if index == 0 else f".bak{index}"
    return path.with_name(path.name + suffix)


def create_backup(path: Path) -> Optional[Path]:
    """Copy *path* to the first free ``.bak``/``.bakN`` sidecar."""
    if not path.exists():
        return None
    index = 0
    while backup_candidate(path, index).exists():
        index += 1
    candidate = backup_candidate(path, index)
    try:
        shutil.copy2(path, candidate)
    except OSError as exc:
        raise FileIOError(f"creating backup {candidate}: {exc}") from exc
    return candidate


def write_via_temp(path: Path, data: bytes) -> None:
    """Write *data* next to *path*, fsync, then rename over *path*."""
    parent = path.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileIOError(f"creating directory {parent}: {exc}") from exc

    temp_path = parent / f".safeedit-tmp-{os.getpid()}-{time.time_ns()}"
    try:
        with open(temp_path, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError as exc:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        raise FileIOError(f"writing {path}: {exc}") from exc


def write_undo_patch(directory: Path, path: Path, old_text: str, new_text: str) -> Path:
    """Store the reverse diff (new -> old) for one change."""
    patch = unified_diff(str(path), str(path), new_text, old_text, 3)
    target = directory / f"{rfc3339_now()}_{sanitize_path(path)}.patch"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        target.write_text(patch, encoding="utf-8")
    except OSError as exc:
        raise FileIOError(f"writing undo patch {target}: {exc}") from exc
    logger.debug("undo patch written to %s", target)
    return target


def _encode(ctx: RunContext, path: Path, text: str, decision: EncodingDecision) -> bytes:
    data, lossy = ctx.encoding.encode(text, decision)
    if lossy:
        logger.warning("lossy encode of %s as %s", path, decision.encoding)
        ctx.console.print(
            f"[yellow]warning:[/yellow] encoding fallback occurred when writing {escape(str(path))}; "
            "output may be lossy"
        )
    return data


def apply_transform(ctx: RunContext, path: Path, decision: EncodingDecision, old_text: str, new_text: str) -> None:
    """Commit *new_text* over an existing (or new) file."""
    data = _encode(ctx, path, new_text, decision)
    if ctx.options.undo_log is not None:
        write_undo_patch(ctx.options.undo_log, path, old_text, new_text)
    backup = create_backup(path) if ctx.options.backups else None
    write_via_temp(path, data)
    if backup is not None:
        ctx.console.print(f"backup saved: {escape(str(path))} -> {escape(str(backup))}")
    ctx.console.print(f"[green]applied[/green] {escape(str(path))}")


def write_new_file(ctx: RunContext, path: Path, text: str, decision: Optional[EncodingDecision] = None) -> None:
    """Create *path* in the strategy's encoding (override, else UTF-8)."""
    apply_transform(ctx, path, decision or ctx.encoding.empty_decision(), "", text)


def delete_file_with_undo(ctx: RunContext, path: Path, old_text: str) -> None:
    if ctx.options.undo_log is not None:
        write_undo_patch(ctx.options.undo_log, path, old_text, "")
    if path.exists():
        backup = create_backup(path) if ctx.options.backups else None
        if backup is not None:
            ctx.console.print(f"backup saved: {escape(str(path))} -> {escape(str(backup))}")
        try:
            path.unlink()
        except OSError as exc:
            raise FileIOError(f"removing {path}: {exc}") from exc
    ctx.console.print(f"[red]deleted[/red] {escape(str(path))}")
