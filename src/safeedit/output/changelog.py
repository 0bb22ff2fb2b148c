"""Append-only JSONL change log, capped to the most recent entries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from safeedit.diff.engine import LineSpan, LineSpanKind

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path(".safeedit") / "change_log.jsonl"
MAX_ENTRIES = 500


def rfc3339_now() -> str:
    """Current UTC time as an RFC 3339 string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ChangeRecord:
    timestamp: str
    command: str
    path: str
    action: str
    lines: str = ""
    spans: List[LineSpan] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "command": self.command,
            "path": self.path,
            "action": self.action,
            "lines": self.lines,
            "spans": [s.to_dict() for s in self.spans],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        spans = [
            LineSpan(LineSpanKind(s["kind"]), int(s["start"]), int(s["end"]))
            for s in data.get("spans") or []
        ]
        return cls(
            timestamp=str(data.get("timestamp", "")),
            command=str(data.get("command", "")),
            path=str(data.get("path", "")),
            action=str(data.get("action", "")),
            lines=str(data.get("lines", "")),
            spans=spans,
        )


class ChangeLog:
    """Writer/reader for the change log file.

    Write failures are logged as warnings and never raised: the file
    change a record describes has already happened.
    """

    def __init__(self, path: Path = DEFAULT_LOG_PATH, max_entries: int = MAX_ENTRIES) -> None:
        self.path = Path(path)
        self.max_entries = max_entries

    def record(
        self,
        command: str,
        path: Path,
        action: str,
        lines: str = "",
        spans: Sequence[LineSpan] = (),
    ) -> Optional[ChangeRecord]:
        entry = ChangeRecord(
            timestamp=rfc3339_now(),
            command=command,
            path=str(path),
            action=action,
            lines=lines,
            spans=list(spans),
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry.to_dict()) + "\n")
            self._truncate()
        except OSError as exc:
            logger.warning("could not write change log %s: %s", self.path, exc)
            return None
        return entry

    def _truncate(self) -> None:
        lines = self.path.read_text(encoding="utf-8").splitlines()
        if len(lines) <= self.max_entries:
            return
        keep = lines[-self.max_entries:]
        self.path.write_text("\n".join(keep) + "\n", encoding="utf-8")

    def read_all(self) -> List[ChangeRecord]:
        if not self.path.is_file():
            return []
        records: List[ChangeRecord] = []
        for number, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                records.append(ChangeRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as exc:
                logger.debug("skipping malformed change log line %d: %s", number, exc)
        return records

    def read_recent(self, tail: int) -> List[ChangeRecord]:
        records = self.read_all()
        return records[-tail:] if tail > 0 else records
