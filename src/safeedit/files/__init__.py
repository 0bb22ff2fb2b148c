"""Target file resolution."""

from safeedit.files.models import FileEntry, FileMetadata
from safeedit.files.resolver import detect_binary, is_excluded, resolve_targets, suggest_path

__all__ = ["FileEntry", "FileMetadata", "detect_binary", "is_excluded", "resolve_targets", "suggest_path"]
