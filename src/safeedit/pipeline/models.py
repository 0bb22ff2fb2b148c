"""Pipeline state: approval decisions, stats, options, and the run context."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.text import Text

from safeedit.diff.engine import LineDiffer
from safeedit.diff.render import DiffDisplayConfig
from safeedit.output.changelog import ChangeLog
from safeedit.text.encoding import EncodingStrategy

PromptFn = Callable[[str], Optional[str]]


class ApprovalDecision(str, Enum):
    APPLY = "apply"
    APPLY_ALL = "apply-all"
    SKIP = "skip"
    QUIT = "quit"


@dataclass
class CommandStats:
    applied: int = 0
    skipped: int = 0
    dry_run: int = 0
    no_op: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.skipped + self.dry_run + self.no_op

    def summary_line(self, label: str) -> str:
        return (
            f"{label} summary: applied={self.applied}, skipped={self.skipped}, "
            f"dry-run={self.dry_run}, no-op={self.no_op}"
        )


@dataclass
class PipelineOptions:
    apply: bool = False
    auto_apply: bool = False
    backups: bool = True
    undo_log: Optional[Path] = None
    json: bool = False
    display: DiffDisplayConfig = field(default_factory=DiffDisplayConfig)


def console_prompt(console: Console) -> PromptFn:
    """Line reader bound to *console*; returns None on end of input."""

    def read(prompt: str) -> Optional[str]:
        try:
            return console.input(Text(prompt))
        except EOFError:
            return None

    return read


def stdout_emit(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


@dataclass
class RunContext:
    """Mutable state for one command invocation, threaded through the loop."""

    command: str
    options: PipelineOptions
    console: Console
    encoding: EncodingStrategy = field(default_factory=EncodingStrategy)
    changelog: Optional[ChangeLog] = None
    prompt: Optional[PromptFn] = None
    emit: Callable[[str], None] = stdout_emit
    differ: Optional[LineDiffer] = None
    stats: CommandStats = field(default_factory=CommandStats)
    apply_all: bool = False
    halted: bool = False

    def __post_init__(self) -> None:
        if self.prompt is None:
            self.prompt = console_prompt(self.console)
        if self.options.auto_apply:
            self.apply_all = True
