"""Unified diff parser: segment splitting, label cleanup, classification.

A patch file may hold several files. Segments start at ``diff --...``
or ``--- `` lines; each must carry exactly one ``---``/``+++`` header
pair. Hunks are parsed eagerly so a broken patch fails before any file
is touched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from safeedit.errors import FileIOError, MalformedPatch, MissingHeader
from safeedit.patch.models import FilePatch, Hunk, HunkLine, LineType, PatchKind

# --- Regex patterns for diff parsing ---

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_NEWLINE_RE = re.compile(r"^\\ ")
_DIFF_LINE_PREFIX = "diff --"
_OLD_HEADER_PREFIX = "--- "
_NEW_HEADER_PREFIX = "+++ "
_DEV_NULL = "/dev/null"


@dataclass
class Segment:
    old_label: Optional[str]
    new_label: Optional[str]
    body: str


def label_to_path(label: str) -> Optional[Path]:
    """Turn a header label into a relative path, or None for /dev/null."""
    trimmed = label.split("\t", 1)[0].strip()
    if trimmed == _DEV_NULL:
        return None
    unquoted = trimmed.strip('"')
    if unquoted.startswith("a/") or unquoted.startswith("b/"):
        unquoted = unquoted[2:]
    while unquoted.startswith("./"):
        unquoted = unquoted[2:]
    if not unquoted or unquoted == _DEV_NULL:
        return None
    return Path(unquoted)


def classify_paths(old_label: str, new_label: str) -> Tuple[PatchKind, Optional[Path], Optional[Path]]:
    old_path = label_to_path(old_label)
    new_path = label_to_path(new_label)
    if old_path is not None and new_path is not None:
        kind = PatchKind.MODIFY if old_path == new_path else PatchKind.RENAME
        return kind, old_path, new_path
    if new_path is not None:
        return PatchKind.CREATE, None, new_path
    if old_path is not None:
        return PatchKind.DELETE, old_path, None
    raise MalformedPatch("patch is missing both old and new file labels")


def _hunk_counts(line: str) -> Optional[Tuple[int, int]]:
    m = _HUNK_HEADER_RE.match(line)
    if m is None:
        return None
    old_count = int(m.group(2)) if m.group(2) is not None else 1
    new_count = int(m.group(4)) if m.group(4) is not None else 1
    return old_count, new_count


def split_segments(text: str) -> List[Segment]:
    """Split raw patch text into per-file segments (CR characters dropped)."""
    segments: List[Segment] = []
    current: Optional[Segment] = None
    buffer: List[str] = []
    old_remaining = new_remaining = 0

    def finalize() -> None:
        assert current is not None
        if current.old_label is None:
            raise MissingHeader("patch segment missing --- header")
        if current.new_label is None:
            raise MissingHeader("patch segment missing +++ header")
        current.body = "".join(buffer)
        segments.append(current)

    for chunk in text.replace("\r", "").splitlines(keepends=True):
        line = chunk.rstrip("\n")

        # Inside a hunk body every line belongs to the hunk, even "--- x".
        if old_remaining > 0 or new_remaining > 0:
            if line.startswith(" ") or line == "":
                old_remaining -= 1
                new_remaining -= 1
            elif line.startswith("-"):
                old_remaining -= 1
            elif line.startswith("+"):
                new_remaining -= 1
            buffer.append(chunk)
            continue

        if line.startswith(_DIFF_LINE_PREFIX):
            if current is not None:
                finalize()
                current = None
                buffer = []
            continue

        if line.startswith(_OLD_HEADER_PREFIX):
            if current is not None:
                finalize()
            current = Segment(old_label=line[len(_OLD_HEADER_PREFIX):].strip(), new_label=None, body="")
            buffer = [chunk]
            continue

        if current is None:
            continue

        if current.new_label is None and line.startswith(_NEW_HEADER_PREFIX):
            current.new_label = line[len(_NEW_HEADER_PREFIX):].strip()
            buffer.append(chunk)
            continue

        counts = _hunk_counts(line)
        if counts is not None:
            if current.new_label is None:
                raise MissingHeader("patch segment missing +++ header")
            old_remaining, new_remaining = counts
        buffer.append(chunk)

    if current is not None:
        finalize()
    return segments


def parse_hunks(body: str) -> List[Hunk]:
    """Parse the hunks of one segment body."""
    hunks: List[Hunk] = []
    hunk: Optional[Hunk] = None
    old_left = new_left = 0

    raw_lines = body.split("\n")
    if body.endswith("\n"):
        raw_lines.pop()

    for number, line in enumerate(raw_lines, 1):
        m = _HUNK_HEADER_RE.match(line)
        if m:
            if hunk is not None and (old_left or new_left):
                raise MalformedPatch(f"hunk '{hunk.header}' ends early (line {number})")
            old_count = int(m.group(2)) if m.group(2) is not None else 1
            new_count = int(m.group(4)) if m.group(4) is not None else 1
            hunk = Hunk(
                old_start=int(m.group(1)),
                old_count=old_count,
                new_start=int(m.group(3)),
                new_count=new_count,
                header=line.strip(),
            )
            hunks.append(hunk)
            old_left, new_left = old_count, new_count
            continue

        if hunk is None:
            continue  # file headers, index lines, blank separators

        if _NO_NEWLINE_RE.match(line):
            if hunk.lines:
                last = hunk.lines[-1]
                hunk.lines[-1] = HunkLine(last.line_type, last.content, no_newline=True)
            continue

        if old_left <= 0 and new_left <= 0:
            continue  # trailing text after a complete hunk

        if line.startswith(" ") or line == "":
            line_type = LineType.CONTEXT
            old_left -= 1
            new_left -= 1
        elif line.startswith("-"):
            line_type = LineType.REMOVED
            old_left -= 1
        elif line.startswith("+"):
            line_type = LineType.ADDED
            new_left -= 1
        else:
            raise MalformedPatch(f"unexpected line in hunk '{hunk.header}': {line!r}")
        if old_left < 0 or new_left < 0:
            raise MalformedPatch(f"hunk '{hunk.header}' has more lines than its header declares")
        hunk.lines.append(HunkLine(line_type, line[1:]))

    if hunk is not None and (old_left > 0 or new_left > 0):
        raise MalformedPatch(f"hunk '{hunk.header}' is truncated")
    return hunks


class PatchParser:
    """Parse patch text into classified :class:`FilePatch` objects.

    Usage::

        for file_patch in PatchParser(text, source=Path("fix.patch")).parse():
            ...
    """

    def __init__(self, text: str, source: Path = Path("<patch>")) -> None:
        self._text = text
        self._source = source

    def parse(self) -> List[FilePatch]:
        patches: List[FilePatch] = []
        for idx, segment in enumerate(split_segments(self._text), 1):
            where = f"{self._source} segment {idx}"
            try:
                hunks = parse_hunks(segment.body)
                kind, old_path, new_path = classify_paths(segment.old_label or "", segment.new_label or "")
            except MalformedPatch as exc:
                raise MalformedPatch(f"failed to parse patch {where}: {exc}") from exc
            patches.append(
                FilePatch(
                    source=self._source,
                    index=idx,
                    patch_text=segment.body,
                    kind=kind,
                    old_path=old_path,
                    new_path=new_path,
                    hunks=hunks,
                )
            )
        return patches


def parse_patch_text(text: str, source: Path = Path("<patch>")) -> List[FilePatch]:
    return PatchParser(text, source).parse()


def load_file_patches(path: Path) -> List[FilePatch]:
    """Read and parse the patch file at *path*."""
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FileIOError(f"reading patch {path}: {exc}") from exc
    return parse_patch_text(raw, source=path)
