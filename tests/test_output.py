"""Tests for the change log, JSON events, and terminal rendering."""

import io
import json
from pathlib import Path

from rich.console import Console

from safeedit.diff.engine import LineSpan, LineSpanKind
from safeedit.files.models import FileEntry, FileMetadata
from safeedit.output import json_report
from safeedit.output.changelog import ChangeLog, ChangeRecord, parse_rfc3339, rfc3339_now
from safeedit.output.terminal import (
    print_command_header,
    print_log,
    print_normalize_report,
    print_report,
)
from safeedit.patch.models import PatchKind
from safeedit.transform.normalize import NormalizeReport


def _console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


class TestChangeLog:
    def test_record_and_read(self, tmp_path: Path):
        log = ChangeLog(tmp_path / "logs" / "change_log.jsonl")
        spans = [LineSpan(LineSpanKind.MODIFIED, 2, 3)]
        entry = log.record("replace", Path("a.txt"), "applied", "L2-L3", spans)
        assert entry is not None
        (back,) = log.read_all()
        assert back == entry
        assert back.spans == spans

    def test_line_format(self, tmp_path: Path):
        path = tmp_path / "log.jsonl"
        ChangeLog(path).record("block", Path("x"), "dry-run")
        data = json.loads(path.read_text().splitlines()[0])
        assert set(data) == {"timestamp", "command", "path", "action", "lines", "spans"}
        assert data["timestamp"].endswith("Z")

    def test_capped_to_max_entries(self, tmp_path: Path):
        log = ChangeLog(tmp_path / "log.jsonl", max_entries=3)
        for i in range(5):
            log.record("replace", Path(f"f{i}"), "applied")
        records = log.read_all()
        assert [r.path for r in records] == ["f2", "f3", "f4"]

    def test_malformed_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "log.jsonl"
        log = ChangeLog(path)
        log.record("replace", Path("good"), "applied")
        with path.open("a") as fh:
            fh.write("{not json\n\n")
        assert [r.path for r in log.read_all()] == ["good"]

    def test_read_recent(self, tmp_path: Path):
        log = ChangeLog(tmp_path / "log.jsonl")
        for i in range(4):
            log.record("rename", Path(f"f{i}"), "applied")
        assert [r.path for r in log.read_recent(2)] == ["f2", "f3"]
        assert len(log.read_recent(0)) == 4

    def test_missing_file_reads_empty(self, tmp_path: Path):
        assert ChangeLog(tmp_path / "nope.jsonl").read_all() == []

    def test_write_failure_is_not_raised(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        log = ChangeLog(blocker / "sub" / "log.jsonl")
        assert log.record("replace", Path("a"), "applied") is None

    def test_rfc3339_round_trip(self):
        stamp = rfc3339_now()
        assert parse_rfc3339(stamp).tzinfo is not None
        assert parse_rfc3339("2024-01-02T03:04:05").tzinfo is not None


class TestJsonReport:
    def test_diff_event(self):
        event = json_report.diff_event(
            "apply", Path("a.txt"), "applied", "L1",
            [LineSpan(LineSpanKind.ADDED, 1, 1)],
            applied=True, dry_run=False, patch_kind=PatchKind.CREATE,
        )
        assert event["patch_kind"] == "create"
        assert event["spans"] == [{"kind": "added", "start": 1, "end": 1}]
        assert json.loads(json_report.render(event)) == event

    def test_patch_kind_omitted_for_text_commands(self):
        event = json_report.diff_event("replace", Path("a"), "no-op", "", [], applied=False, dry_run=True)
        assert "patch_kind" not in event

    def test_render_is_single_line(self):
        assert "\n" not in json_report.render({"a": "x\ny"})

    def test_summarize_records(self):
        records = [
            ChangeRecord("t", "replace", "a", "applied"),
            ChangeRecord("t", "replace", "b", "applied"),
            ChangeRecord("t", "apply", "c", "deleted"),
        ]
        assert json_report.summarize_records(records) == [
            {"command": "apply", "action": "deleted", "count": 1},
            {"command": "replace", "action": "applied", "count": 2},
        ]

    def test_normalize_row(self):
        row = json_report.normalize_row(Path("f"), NormalizeReport(zero_width=2), "utf-8", None)
        assert row["zero_width"] == 2
        assert row["control_chars"] is None
        assert row["encoding"] == "utf-8"


class TestTerminal:
    def test_command_header(self):
        console = _console()
        entries = [FileEntry(Path("a[1].txt"), FileMetadata(len=5))]
        print_command_header(
            console, "replace", apply=True, auto_apply=True, encoding="auto",
            entries=entries, settings={"context lines": 3}, details=["pattern=[x]"],
        )
        out = console.file.getvalue()
        assert "command: replace" in out
        assert "apply (auto-approve)" in out
        assert "a[1].txt (5 bytes)" in out
        assert "pattern=[x]" in out
        assert out.rstrip().endswith("---")

    def test_log_table(self):
        console = _console()
        print_log(console, [ChangeRecord("2024-01-01T00:00:00Z", "replace", "a.txt", "applied", "L1")])
        out = console.file.getvalue()
        assert "a.txt" in out and "replace" in out

    def test_empty_log(self):
        console = _console()
        print_log(console, [])
        assert "change log is empty." in console.file.getvalue()

    def test_report(self):
        console = _console()
        print_report(console, [{"command": "replace", "action": "applied", "count": 2}], None)
        out = console.file.getvalue()
        assert "Report entries: 2 (since beginning of log)" in out

    def test_normalize_report(self):
        console = _console()
        print_normalize_report(console, Path("f.txt"), NormalizeReport(1, 0, 2, True), "utf-8", "latin-1")
        out = console.file.getvalue()
        assert "zero-width: 1" in out
        assert "missing final newline: yes" in out
        assert "encoding: utf-8 -> latin-1" in out
