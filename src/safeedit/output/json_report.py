"""JSON events for machine consumers (``--json``)."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from safeedit.diff.engine import LineSpan
from safeedit.output.changelog import ChangeRecord
from safeedit.patch.models import PatchKind
from safeedit.transform.normalize import NormalizeReport


def diff_event(
    command: str,
    path: Path,
    action: str,
    lines: str,
    spans: Sequence[LineSpan],
    *,
    applied: bool,
    dry_run: bool,
    patch_kind: Optional[PatchKind] = None,
) -> Dict[str, Any]:
    """One per-file event; *patch_kind* is only set for patch commands."""
    event: Dict[str, Any] = {
        "command": command,
        "path": str(path),
        "action": action,
        "lines": lines,
        "spans": [s.to_dict() for s in spans],
        "applied": applied,
        "dry_run": dry_run,
    }
    if patch_kind is not None:
        event["patch_kind"] = patch_kind.value
    return event


def render(event: Dict[str, Any]) -> str:
    """Return a single-line JSON string."""
    return json.dumps(event, ensure_ascii=False)


def summarize_records(records: Iterable[ChangeRecord]) -> List[Dict[str, Any]]:
    """Count change-log records per (command, action), sorted."""
    counts = Counter((r.command, r.action) for r in records)
    return [
        {"command": command, "action": action, "count": count}
        for (command, action), count in sorted(counts.items())
    ]


def normalize_row(
    path: Path,
    report: NormalizeReport,
    encoding: Optional[str] = None,
    convert_to: Optional[str] = None,
) -> Dict[str, Any]:
    """Row for ``normalize --report-format json``."""
    return {
        "path": str(path),
        "zero_width": report.zero_width,
        "control_chars": report.control_chars,
        "trailing_spaces": report.trailing_spaces,
        "missing_final_newline": report.missing_final_newline,
        "encoding": encoding,
        "convert_encoding": convert_to,
    }
