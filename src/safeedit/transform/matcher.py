"""Regex capability used by the transforms.

Transforms only rely on :class:`TextMatcher`, so a different regex
backend can be dropped in without touching the pipeline.
"""

from __future__ import annotations

import re
from typing import Iterator, Protocol


class MatchLike(Protocol):
    def start(self) -> int: ...

    def end(self) -> int: ...

    def group(self) -> str: ...

    def expand(self, template: str) -> str: ...


class TextMatcher(Protocol):
    pattern: str

    def finditer(self, text: str) -> Iterator[MatchLike]: ...


class RegexMatcher:
    """``re``-backed matcher. Raises InvalidPattern on bad expressions."""

    def __init__(self, pattern: str, *, ignore_case: bool = False) -> None:
        from safeedit.errors import InvalidPattern

        flags = re.IGNORECASE if ignore_case else 0
        try:
            self._regex = re.compile(pattern, flags)
        except re.error as exc:
            raise InvalidPattern(f"invalid pattern: {exc}") from exc
        self.pattern = pattern

    @classmethod
    def literal(cls, text: str, *, word_boundary: bool = False, ignore_case: bool = False) -> "RegexMatcher":
        expr = re.escape(text)
        if word_boundary:
            expr = rf"\b{expr}\b"
        return cls(expr, ignore_case=ignore_case)

    def finditer(self, text: str) -> Iterator[MatchLike]:
        return self._regex.finditer(text)

    def search(self, text: str) -> bool:
        return self._regex.search(text) is not None
