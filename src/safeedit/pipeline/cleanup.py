"""Find and remove ``.bak``/``.bakN`` sidecars left by earlier applies."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List

from rich.markup import escape

from safeedit.errors import FileIOError
from safeedit.pipeline.approval import resolve_decision
from safeedit.pipeline.models import ApprovalDecision, RunContext

_BACKUP_SUFFIX_RE = re.compile(r"\.bak\d*$")


def is_backup_file(path: Path) -> bool:
    return bool(_BACKUP_SUFFIX_RE.search(path.name)) and path.name != ".bak"


def find_backup_files(root: Path, include_hidden: bool = False) -> List[Path]:
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        if not include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for name in filenames:
            if not include_hidden and name.startswith("."):
                continue
            path = Path(dirpath) / name
            if is_backup_file(path):
                found.append(path)
    return sorted(found)


def run_cleanup(ctx: RunContext, candidates: List[Path]) -> None:
    """Delete *candidates* one approval at a time."""
    for path in candidates:
        decision = resolve_decision(ctx, path)
        if decision is ApprovalDecision.QUIT:
            ctx.console.print("stopping cleanup after user request.")
            break
        if decision is ApprovalDecision.SKIP:
            ctx.console.print(f"skipped {escape(str(path))}")
            ctx.stats.skipped += 1
            continue
        try:
            path.unlink()
        except OSError as exc:
            raise FileIOError(f"removing backup {path}: {exc}") from exc
        ctx.console.print(f"removed {escape(str(path))}")
        ctx.stats.applied += 1
        if ctx.changelog is not None:
            ctx.changelog.record(ctx.command, path, "removed")
    ctx.console.print(ctx.stats.summary_line("cleanup"))
