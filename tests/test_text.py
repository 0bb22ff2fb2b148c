"""Tests for encoding detection and line-ending handling."""

import codecs

import pytest

from safeedit.errors import UnknownEncoding
from safeedit.text.encoding import (
    EncodingDecision,
    EncodingSource,
    EncodingStrategy,
    canonical_name,
    detect_auto,
    detect_bom,
)
from safeedit.text.newlines import (
    LineEndingStyle,
    detect_line_ending_style,
    normalize_to_lf,
    resolve_style,
    restore_from_lf,
    split_keepends,
)


class TestCanonicalName:
    def test_aliases_resolve(self):
        assert canonical_name("UTF8") == "utf-8"
        assert canonical_name(" latin-1 ") == "iso8859-1"
        assert canonical_name("windows-1252") == "cp1252"

    def test_unknown_label(self):
        with pytest.raises(UnknownEncoding):
            canonical_name("klingon-8")

    def test_empty_label(self):
        with pytest.raises(UnknownEncoding):
            canonical_name("   ")

    def test_non_text_codec_rejected(self):
        with pytest.raises(UnknownEncoding):
            canonical_name("base64")


class TestDetection:
    def test_bom_wins(self):
        data = codecs.BOM_UTF16_LE + "hi".encode("utf-16-le")
        assert detect_bom(data) == "utf-16-le"
        decision = detect_auto(data)
        assert decision.source is EncodingSource.BOM
        assert decision.encoding == "utf-16-le"

    def test_valid_utf8_is_assumed(self):
        decision = detect_auto("héllo wörld".encode("utf-8"))
        assert decision == EncodingDecision("utf-8", EncodingSource.ASSUMED_UTF8)

    def test_invalid_utf8_goes_to_detector(self):
        decision = detect_auto("café crème brûlée".encode("cp1252") * 20)
        assert decision.source is EncodingSource.DETECTOR
        assert decision.encoding != "utf-8"

    def test_empty_bytes_assumed_utf8(self):
        assert detect_auto(b"").encoding == "utf-8"


class TestEncodingStrategy:
    def test_override_skips_detection(self):
        strategy = EncodingStrategy("latin-1")
        decoded = strategy.decode("é".encode("utf-8"))
        assert decoded.decision.source is EncodingSource.OVERRIDE
        assert decoded.text == "Ã©"
        assert "auto-detect disabled" in strategy.describe()

    def test_bad_override_raises(self):
        with pytest.raises(UnknownEncoding):
            EncodingStrategy("nope-42")

    def test_bom_is_stripped_and_restored(self):
        data = codecs.BOM_UTF8 + b"line\n"
        strategy = EncodingStrategy()
        decoded = strategy.decode(data)
        assert decoded.text == "line\n"
        encoded, lossy = strategy.encode(decoded.text, decoded.decision)
        assert encoded == data
        assert lossy is False

    def test_round_trip(self):
        strategy = EncodingStrategy()
        text = "naïve café\r\nsecond\n"
        decoded = strategy.decode(text.encode("utf-8"))
        assert strategy.encode(decoded.text, decoded.decision)[0].decode("utf-8") == text

    def test_decode_errors_are_replaced(self):
        decoded = EncodingStrategy("utf-8").decode(b"ok \xff\xfe end")
        assert decoded.had_errors is True
        assert "�" in decoded.text

    def test_lossy_encode_flagged(self):
        strategy = EncodingStrategy("ascii")
        data, lossy = strategy.encode("snow ☃", strategy.empty_decision())
        assert lossy is True
        assert data == b"snow ?"

    def test_empty_decision_uses_override(self):
        assert EncodingStrategy("utf-16-le").empty_decision().encoding == "utf-16-le"
        assert EncodingStrategy().empty_decision().encoding == "utf-8"


class TestLineEndings:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("a\nb\n", LineEndingStyle.LF),
            ("a\r\nb\n", LineEndingStyle.CRLF),
            ("a\rb\r", LineEndingStyle.CR),
            ("", LineEndingStyle.LF),
        ],
    )
    def test_detect(self, text, expected):
        assert detect_line_ending_style(text) is expected

    def test_normalize_and_restore(self):
        assert normalize_to_lf("a\r\nb\rc\n") == "a\nb\nc\n"
        assert restore_from_lf("a\nb\n", LineEndingStyle.CRLF) == "a\r\nb\r\n"
        assert restore_from_lf("a\nb\n", LineEndingStyle.LF) == "a\nb\n"

    def test_resolve_style(self):
        assert resolve_style("auto", LineEndingStyle.CR) is LineEndingStyle.CR
        assert resolve_style("crlf", LineEndingStyle.LF) is LineEndingStyle.CRLF

    def test_split_keepends(self):
        assert split_keepends("") == []
        assert split_keepends("a\nb") == ["a\n", "b"]
        assert split_keepends("a\n\n") == ["a\n", "\n"]
        assert split_keepends("x\x0cy\n") == ["x\x0cy\n"]
