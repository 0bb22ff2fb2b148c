"""File entries handed to the apply pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileMetadata:
    len: int
    is_probably_binary: bool = False


@dataclass(frozen=True)
class FileEntry:
    path: Path
    metadata: FileMetadata

    @property
    def is_binary(self) -> bool:
        return self.metadata.is_probably_binary
