"""Target resolution: explicit paths, globs, directory walks.

Hidden files (any path component starting with ``.``) are skipped unless
requested. Exclude globs are matched with :func:`fnmatch.fnmatch` against
the slash-normalized path and its basename.
"""

from __future__ import annotations

import glob
import logging
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from safeedit.errors import FileIOError, InputError
from safeedit.files.models import FileEntry, FileMetadata

logger = logging.getLogger(__name__)

BINARY_CHECK_BYTES = 4096
_MAX_ASCENT = 64
_MAX_SIBLINGS = 256


def detect_binary(path: Path) -> bool:
    """A NUL byte in the first 4 KiB marks the file as probably binary."""
    try:
        with path.open("rb") as fh:
            return b"\0" in fh.read(BINARY_CHECK_BYTES)
    except OSError as exc:
        raise FileIOError(f"opening {path} for binary detection: {exc}") from exc


def _has_hidden_component(parts: Iterable[str]) -> bool:
    return any(part.startswith(".") and part not in (".", "..") for part in parts)


def _normalize_slashes(path: Path) -> str:
    return str(path).replace("\\", "/")


def is_excluded(path: Path, patterns: Sequence[str]) -> bool:
    candidate = _normalize_slashes(path)
    return any(fnmatch(candidate, pat) or fnmatch(path.name, pat) for pat in patterns)


def _make_entry(path: Path) -> FileEntry:
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise FileIOError(f"unable to read metadata for {path}: {exc}") from exc
    return FileEntry(path=path, metadata=FileMetadata(len=size, is_probably_binary=detect_binary(path)))


def _walk(root: Path, include_hidden: bool, exclude: Sequence[str], acc: List[FileEntry]) -> None:
    def on_error(err: OSError) -> None:
        logger.warning("skipping %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=False):
        if not include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        dirnames.sort()
        for name in sorted(filenames):
            if not include_hidden and name.startswith("."):
                continue
            path = Path(dirpath) / name
            if exclude and is_excluded(path, exclude):
                continue
            if not path.is_file():
                continue
            try:
                acc.append(_make_entry(path))
            except FileIOError as exc:
                logger.warning("skipping %s", exc)


def _append_path(path: Path, include_hidden: bool, exclude: Sequence[str], acc: List[FileEntry]) -> None:
    if not path.exists():
        hint = suggest_path(path)
        if hint is not None:
            raise InputError(f"unable to read metadata for {path}; did you mean {hint}?")
        raise InputError(f"unable to read metadata for {path}: no such file or directory")

    resolved = path.resolve()
    if resolved.is_dir():
        _walk(resolved, include_hidden, exclude, acc)
        return
    if not include_hidden and _has_hidden_component(path.parts):
        logger.debug("skipping hidden target %s", path)
        return
    if exclude and is_excluded(resolved, exclude):
        return
    if resolved.is_file():
        acc.append(_make_entry(resolved))


def resolve_targets(
    explicit: Sequence[Path],
    globs: Sequence[str] = (),
    include_hidden: bool = False,
    exclude: Sequence[str] = (),
) -> List[FileEntry]:
    """Expand targets and globs into a sorted, de-duplicated entry list.

    Raises :class:`InputError` when nothing matched.
    """
    entries: List[FileEntry] = []
    for path in explicit:
        _append_path(Path(path), include_hidden, exclude, entries)

    for pattern in globs:
        for match in sorted(glob.glob(pattern, recursive=True)):
            _append_path(Path(match), include_hidden, exclude, entries)

    if not entries:
        hint = suggest_path(Path(explicit[0])) if explicit else None
        if hint is not None:
            raise InputError(f"no files matched; did you mean {hint}?")
        raise InputError("no files matched; provide a target path or --glob")

    unique = {entry.path: entry for entry in entries}
    return [unique[p] for p in sorted(unique)]


# --- "did you mean" ---


def _suffixes(needle: Path) -> List[Path]:
    parts = [p for p in needle.parts if p not in (".", "..", needle.anchor)]
    out: List[Path] = []
    for idx in range(len(parts)):
        candidate = Path(*parts[idx:])
        if candidate not in out:
            out.append(candidate)
    return out


def suggest_path(original: Path, base: Optional[Path] = None) -> Optional[Path]:
    """Look for an existing file matching the tail of a mistyped path.

    Walks up from *base* (default: the current directory), trying each
    path suffix directly and inside each sibling directory.
    """
    if not str(original):
        return None
    if original.is_absolute():
        base, original = original.parent, Path(original.name)
    current = (base or Path.cwd()).resolve()
    suffixes = _suffixes(original)
    if not suffixes:
        return None
    checked: Set[Path] = set()

    def check(candidate: Path) -> Optional[Path]:
        if candidate in checked:
            return None
        checked.add(candidate)
        return candidate if candidate.exists() else None

    for _ in range(_MAX_ASCENT):
        for suffix in suffixes:
            hit = check(current / suffix)
            if hit is not None:
                return hit
        try:
            children = sorted(current.iterdir())[:_MAX_SIBLINGS]
        except OSError:
            children = []
        for child in children:
            if not child.is_dir():
                continue
            for suffix in suffixes:
                hit = check(child / suffix)
                if hit is not None:
                    return hit
        if current.parent == current:
            break
        current = current.parent
    return None
