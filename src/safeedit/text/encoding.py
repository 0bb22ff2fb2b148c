"""Encoding detection, lossy decoding, and reversible encoding.

Decision order: explicit override, then byte-order mark, then "is it
valid UTF-8", then the statistical detector from ``chardet``.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import chardet

from safeedit.errors import UnknownEncoding

logger = logging.getLogger(__name__)

# Fallback when the detector has no opinion (mirrors the WHATWG default).
_DETECTOR_FALLBACK = "cp1252"

_BOMS: Tuple[Tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


class EncodingSource(str, Enum):
    OVERRIDE = "override"
    BOM = "bom"
    DETECTOR = "detector"
    ASSUMED_UTF8 = "assumed-utf8"


@dataclass(frozen=True)
class EncodingDecision:
    """Result of one detection run."""

    encoding: str  # canonical Python codec name
    source: EncodingSource

    @property
    def bom(self) -> bytes:
        """BOM to write back, if the decision came from one."""
        if self.source is not EncodingSource.BOM:
            return b""
        for bom, name in _BOMS:
            if name == self.encoding:
                return bom
        return b""


@dataclass(frozen=True)
class DecodedText:
    """Decoded file contents plus how they were decoded."""

    text: str
    had_errors: bool
    decision: EncodingDecision


def canonical_name(label: str) -> str:
    """Resolve *label* to a canonical codec name or raise UnknownEncoding."""
    trimmed = label.strip()
    if not trimmed:
        raise UnknownEncoding("empty encoding label")
    try:
        info = codecs.lookup(trimmed)
    except LookupError as exc:
        raise UnknownEncoding(f"unknown encoding override '{trimmed}'") from exc
    # bytes->bytes codecs (base64, zlib...) are not charsets
    if not getattr(info, "_is_text_encoding", True):
        raise UnknownEncoding(f"'{trimmed}' is not a text encoding")
    return info.name


def detect_bom(data: bytes) -> Optional[str]:
    for bom, name in _BOMS:
        if data.startswith(bom):
            return name
    return None


def _is_utf8(data: bytes) -> bool:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def _detect(data: bytes) -> str:
    guess = chardet.detect(data).get("encoding")
    if not guess:
        return _DETECTOR_FALLBACK
    try:
        return canonical_name(guess)
    except UnknownEncoding:
        logger.debug("detector proposed unusable encoding %r", guess)
        return _DETECTOR_FALLBACK


def detect_auto(data: bytes) -> EncodingDecision:
    """Pick an encoding for *data* without an override."""
    bom_encoding = detect_bom(data)
    if bom_encoding is not None:
        return EncodingDecision(bom_encoding, EncodingSource.BOM)
    if _is_utf8(data):
        return EncodingDecision("utf-8", EncodingSource.ASSUMED_UTF8)
    return EncodingDecision(_detect(data), EncodingSource.DETECTOR)


class EncodingStrategy:
    """Decides and performs byte <-> text conversion for one command."""

    def __init__(self, override_label: Optional[str] = None) -> None:
        self.override_label: Optional[str] = None
        self.override_encoding: Optional[str] = None
        if override_label is not None:
            self.override_encoding = canonical_name(override_label)
            self.override_label = override_label.strip()

    def describe(self) -> str:
        if self.override_encoding is not None:
            return (
                f"override '{self.override_label}' ({self.override_encoding}), "
                "auto-detect disabled"
            )
        return "auto-detect (BOM -> UTF-8 -> detector)"

    def decide(self, data: bytes) -> EncodingDecision:
        if self.override_encoding is not None:
            return EncodingDecision(self.override_encoding, EncodingSource.OVERRIDE)
        return detect_auto(data)

    def decode(self, data: bytes) -> DecodedText:
        decision = self.decide(data)
        payload = data
        bom = decision.bom
        if bom and payload.startswith(bom):
            payload = payload[len(bom):]
        try:
            text = payload.decode(decision.encoding)
            had_errors = False
        except UnicodeDecodeError:
            text = payload.decode(decision.encoding, errors="replace")
            had_errors = True
        return DecodedText(text=text, had_errors=had_errors, decision=decision)

    def encode(self, text: str, decision: EncodingDecision) -> Tuple[bytes, bool]:
        """Return ``(data, had_errors)``; *had_errors* flags a lossy encode."""
        try:
            body = text.encode(decision.encoding)
            had_errors = False
        except UnicodeEncodeError:
            body = text.encode(decision.encoding, errors="replace")
            had_errors = True
        return decision.bom + body, had_errors

    def empty_decision(self) -> EncodingDecision:
        """Decision used for files that do not exist yet."""
        return self.decide(b"")
