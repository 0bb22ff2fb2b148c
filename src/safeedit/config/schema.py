"""Configuration schema: dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

PagerChoice = Literal["auto", "always", "never"]
ColorSetting = Literal["auto", "always", "never"]

PAGER_CHOICES = ("auto", "always", "never")


@dataclass
class DiffConfig:
    context: int = 3
    pager: PagerChoice = "auto"
    color: ColorSetting = "auto"
    max_lines: int = 5000
    max_bytes: int = 5 * 1024 * 1024
    max_line_bytes: int = 64 * 1024
    page_size: int = 200


@dataclass
class ApplyConfig:
    backups: bool = True
    undo_log: Optional[str] = None  # directory for reverse patches


@dataclass
class LogConfig:
    enabled: bool = True
    path: str = ".safeedit/change_log.jsonl"
    max_entries: int = 500


@dataclass
class EncodingConfig:
    default: Optional[str] = None  # None = auto-detect


@dataclass
class SafeEditConfig:
    version: str = "1.0"
    diff: DiffConfig = field(default_factory=DiffConfig)
    apply: ApplyConfig = field(default_factory=ApplyConfig)
    log: LogConfig = field(default_factory=LogConfig)
    encoding: EncodingConfig = field(default_factory=EncodingConfig)
