"""Transform data models: options, outcomes, and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from safeedit.text.encoding import DecodedText


class BlockMode(str, Enum):
    INSERT = "insert"
    REPLACE = "replace"


@dataclass(frozen=True)
class ReplaceOptions:
    pattern: str
    replacement: str
    allow_captures: bool = False
    count: Optional[int] = None
    expect: Optional[int] = None
    after_line: Optional[int] = None


@dataclass(frozen=True)
class BlockOptions:
    start_marker: str
    end_marker: str
    mode: BlockMode
    body: str


@dataclass(frozen=True)
class RenameOptions:
    from_: str
    to: str
    word_boundary: bool = True
    case_aware: bool = False


@dataclass(frozen=True)
class Suggestion:
    """A near-miss location for a pattern that did not match."""

    score: int
    line_idx: int  # 0-based
    column: int  # 0-based, in characters
    line: str
    snippet: str


@dataclass(frozen=True)
class EditOutcome:
    """What a pure transform computed.

    ``new_text`` is None when the transform made no change; a changed
    outcome never carries text equal to the input.
    """

    new_text: Optional[str]
    replacements: int = 0
    filtered: int = 0
    message: Optional[str] = None
    suggestions: Tuple[Suggestion, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.new_text is not None


@dataclass(frozen=True)
class TransformResult:
    """Decoded source plus the candidate replacement text."""

    decoded: DecodedText
    new_text: str

    def __post_init__(self) -> None:
        if self.new_text == self.decoded.text:
            raise ValueError("TransformResult requires new_text to differ")
