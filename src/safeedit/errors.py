"""Error taxonomy shared by every safeedit component.

The CLI catches :class:`SafeEditError` and maps it to exit code 2, so
anything raised from the core should derive from it.
"""

from __future__ import annotations


class SafeEditError(Exception):
    """Base class for all expected safeedit failures."""


# --- Configuration ---


class ConfigError(SafeEditError):
    """Raised when configuration, flags, or plans are malformed."""


class UnknownEncoding(ConfigError):
    """Raised when an encoding label is not a recognised charset."""


class InvalidPattern(ConfigError):
    """Raised when a search pattern does not compile."""


# --- Input ---


class InputError(SafeEditError):
    """Raised when the requested edit does not fit the file contents."""


class MarkerNotFound(InputError):
    """Raised when a block start or end marker is missing."""


class CountMismatch(InputError):
    """Raised when ``--expect`` disagrees with the replacement count."""

    def __init__(self, expected: int, found: int) -> None:
        super().__init__(f"expected {expected} matches but found {found}")
        self.expected = expected
        self.found = found


class RegionNotEmpty(InputError):
    """Raised when insert mode targets a block that already has content."""


# --- Patches ---


class PatchError(SafeEditError):
    """Raised when a unified diff cannot be parsed or applied."""


class MalformedPatch(PatchError):
    """Raised when a patch segment or hunk is not valid unified diff."""


class MissingHeader(PatchError):
    """Raised when a segment lacks its ``---`` or ``+++`` header."""


class HunkMismatch(PatchError):
    """Raised when hunk context does not match the target text exactly."""


class DeleteNotEmpty(PatchError):
    """Raised when a delete patch leaves content behind."""


# --- I/O ---


class FileIOError(SafeEditError):
    """Raised when reading, writing, renaming, or backing up a file fails."""
