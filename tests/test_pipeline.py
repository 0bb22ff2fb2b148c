"""Tests for the apply pipeline: approval, durable writes, and the per-file loop."""

import codecs
import json
import os
import stat
from pathlib import Path

import pytest

from safeedit.errors import CountMismatch, InputError, PatchError
from safeedit.files.models import FileEntry, FileMetadata
from safeedit.patch.applier import apply_file_patch
from safeedit.patch.parser import parse_patch_text
from safeedit.pipeline.approval import prompt_approval
from safeedit.pipeline.cleanup import find_backup_files, is_backup_file, run_cleanup
from safeedit.pipeline.models import ApprovalDecision, CommandStats
from safeedit.pipeline.runner import (
    run_normalize_command,
    run_patch_command,
    run_text_command,
    run_write_command,
)
from safeedit.pipeline.writer import (
    backup_candidate,
    create_backup,
    sanitize_path,
    write_undo_patch,
    write_via_temp,
)
from safeedit.transform.matcher import RegexMatcher
from safeedit.transform.models import ReplaceOptions
from safeedit.transform.normalize import NormalizeOptions
from safeedit.transform.replace import apply_replace


def _entry(path: Path, binary: bool = False) -> FileEntry:
    return FileEntry(path, FileMetadata(len=path.stat().st_size, is_probably_binary=binary))


def _replacer(pattern: str, replacement: str, **kwargs):
    options = ReplaceOptions(pattern=pattern, replacement=replacement, **kwargs)
    matcher = RegexMatcher.literal(pattern)
    return lambda text: apply_replace(text, options, matcher)


def _output(ctx) -> str:
    return ctx.console.file.getvalue()


class TestApprovalPrompt:
    @pytest.mark.parametrize(
        "answer,expected",
        [
            ("", ApprovalDecision.APPLY),
            ("Y", ApprovalDecision.APPLY),
            ("no", ApprovalDecision.SKIP),
            ("a", ApprovalDecision.APPLY_ALL),
            ("q", ApprovalDecision.QUIT),
        ],
    )
    def test_answers(self, answer, expected):
        assert prompt_approval(Path("f"), lambda _p: answer) is expected

    def test_reprompts_on_unknown(self):
        answers = ["maybe", "n"]
        invalid = []
        decision = prompt_approval(Path("f"), lambda _p: answers.pop(0), on_invalid=invalid.append)
        assert decision is ApprovalDecision.SKIP
        assert invalid == ["maybe"]

    def test_eof_quits(self):
        assert prompt_approval(Path("f"), lambda _p: None) is ApprovalDecision.QUIT

    def test_prompt_text(self):
        seen = []
        prompt_approval(Path("dir/f.txt"), lambda p: seen.append(p) or "y")
        assert seen == [f"Apply change to {Path('dir/f.txt')}? [y]es/[n]o/[a]ll/[q]uit: "]


class TestWriter:
    def test_sanitize_path(self):
        assert sanitize_path(Path("a/b:c*d")) == "a_b_c_d"

    def test_backup_numbering(self, tmp_path: Path):
        target = tmp_path / "f.txt"
        target.write_text("v1")
        assert create_backup(target) == backup_candidate(target, 0)
        target.write_text("v2")
        second = create_backup(target)
        assert second == tmp_path / "f.txt.bak1"
        assert second.read_text() == "v2"
        assert (tmp_path / "f.txt.bak").read_text() == "v1"

    def test_backup_of_missing_file(self, tmp_path: Path):
        assert create_backup(tmp_path / "missing") is None

    def test_write_via_temp_keeps_mode_and_cleans_up(self, tmp_path: Path):
        target = tmp_path / "script.sh"
        target.write_text("old")
        os.chmod(target, 0o750)
        write_via_temp(target, b"new")
        assert target.read_bytes() == b"new"
        assert stat.S_IMODE(target.stat().st_mode) == 0o750
        assert [p.name for p in tmp_path.iterdir()] == ["script.sh"]

    def test_write_via_temp_creates_parents(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "c.txt"
        write_via_temp(target, b"x")
        assert target.read_bytes() == b"x"

    def test_undo_patch_restores_original(self, tmp_path: Path):
        undo_dir = tmp_path / "undo"
        written = write_undo_patch(undo_dir, Path("src/f.txt"), "a\nb\n", "a\nB\n")
        assert written.parent == undo_dir
        assert written.name.endswith("_src_f.txt.patch")
        (patch,) = parse_patch_text(written.read_text())
        assert apply_file_patch(patch, "a\nB\n") == "a\nb\n"


class TestTextCommand:
    def test_dry_run_leaves_file(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx()
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert path.read_text() == "foo\n"
        assert ctx.stats.dry_run == 1
        assert ctx.changelog.read_all() == []
        out = _output(ctx)
        assert "- foo" in out and "+ bar" in out
        assert "replace summary: applied=0, skipped=0, dry-run=1, no-op=0" in out

    def test_auto_apply_writes_backup_and_log(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, auto_apply=True)
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert path.read_text() == "bar\n"
        assert (path.parent / "a.txt.bak").read_text() == "foo\n"
        (record,) = ctx.changelog.read_all()
        assert record.action == "applied"
        assert record.lines == "L1"
        assert ctx.prompt.asked == []

    def test_no_backup(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, auto_apply=True, backups=False)
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert not (path.parent / "a.txt.bak").exists()

    def test_skip_answer(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, answers=["n"])
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert path.read_text() == "foo\n"
        assert ctx.stats.skipped == 1
        assert [r.action for r in ctx.changelog.read_all()] == ["skipped"]

    def test_apply_all_is_sticky(self, make_ctx, make_file):
        paths = [make_file(f"f{i}.txt", "foo\n") for i in range(3)]
        ctx = make_ctx(apply=True, answers=["a"])
        run_text_command(ctx, [_entry(p) for p in paths], _replacer("foo", "bar"))
        assert all(p.read_text() == "bar\n" for p in paths)
        assert len(ctx.prompt.asked) == 1
        assert ctx.stats.applied == 3

    def test_quit_halts_remaining(self, make_ctx, make_file):
        first = make_file("f1.txt", "foo\n")
        second = make_file("f2.txt", "foo\n")
        ctx = make_ctx(apply=True, answers=["q"])
        run_text_command(ctx, [_entry(first), _entry(second)], _replacer("foo", "bar"))
        assert first.read_text() == "foo\n" and second.read_text() == "foo\n"
        assert ctx.halted is True
        assert ctx.stats.skipped == 1
        assert ctx.stats.total == 1

    def test_eof_at_prompt_quits(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True)
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert path.read_text() == "foo\n"
        assert "stopping after user request." in _output(ctx)

    def test_invalid_answer_reprompts(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, answers=["what", "y"])
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        assert path.read_text() == "bar\n"
        assert "please answer y, n, a, or q" in _output(ctx)

    def test_no_op_prints_suggestions(self, make_ctx, make_file):
        path = make_file("a.txt", "the colr is red\n")
        ctx = make_ctx(apply=True, auto_apply=True)
        run_text_command(ctx, [_entry(path)], _replacer("color", "colour"), pattern="color")
        out = _output(ctx)
        assert "no matches for pattern 'color'" in out
        assert "closest candidates" in out
        assert ctx.stats.no_op == 1
        assert [r.action for r in ctx.changelog.read_all()] == ["no-op"]

    def test_binary_skipped(self, make_ctx, make_file):
        path = make_file("blob.bin", b"\x00foo")
        ctx = make_ctx(apply=True, auto_apply=True)
        run_text_command(ctx, [_entry(path, binary=True)], _replacer("foo", "bar"))
        assert path.read_bytes() == b"\x00foo"
        assert "suspected binary file" in _output(ctx)

    def test_json_events(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\nx\n")
        ctx = make_ctx(json=True)
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        (event,) = [json.loads(e) for e in ctx.events]
        assert event["action"] == "dry-run"
        assert event["dry_run"] is True and event["applied"] is False
        assert event["spans"] == [{"kind": "modified", "start": 1, "end": 1}]

    def test_transform_errors_propagate(self, make_ctx, make_file):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, auto_apply=True)
        with pytest.raises(CountMismatch):
            run_text_command(ctx, [_entry(path)], _replacer("foo", "bar", expect=2))

    def test_bom_and_crlf_preserved(self, make_ctx, make_file):
        data = codecs.BOM_UTF8 + "foo\r\nbar\r\n".encode("utf-8")
        path = make_file("bom.txt", data)
        ctx = make_ctx(apply=True, auto_apply=True, backups=False)
        run_text_command(ctx, [_entry(path)], _replacer("foo", "baz"))
        assert path.read_bytes() == codecs.BOM_UTF8 + b"baz\r\nbar\r\n"

    def test_undo_log_written(self, make_ctx, make_file, tmp_path):
        path = make_file("a.txt", "foo\n")
        ctx = make_ctx(apply=True, auto_apply=True, undo_log=tmp_path / "undo")
        run_text_command(ctx, [_entry(path)], _replacer("foo", "bar"))
        (undo,) = (tmp_path / "undo").iterdir()
        (patch,) = parse_patch_text(undo.read_text())
        assert apply_file_patch(patch, path.read_text()) == "foo\n"


class TestPatchCommand:
    def test_modify(self, make_ctx, tmp_path, sample_patch_modify):
        target = tmp_path / "greet.py"
        target.write_text('def greet(name):\n    return "hi " + name\n\n')
        ctx = make_ctx("apply", apply=True, auto_apply=True, json=True)
        run_patch_command(ctx, parse_patch_text(sample_patch_modify), tmp_path)
        assert "Hello, {name}!" in target.read_text()
        event = json.loads(ctx.events[0])
        assert event["patch_kind"] == "modify"

    def test_create_and_refuse_existing(self, make_ctx, tmp_path, sample_patch_create):
        ctx = make_ctx("apply", apply=True, auto_apply=True)
        patches = parse_patch_text(sample_patch_create)
        run_patch_command(ctx, patches, tmp_path)
        assert (tmp_path / "notes.txt").read_text() == "first\nsecond"
        with pytest.raises(PatchError, match="already exists"):
            run_patch_command(make_ctx("apply", apply=True, auto_apply=True), patches, tmp_path)

    def test_delete(self, make_ctx, tmp_path, sample_patch_delete):
        target = tmp_path / "old.txt"
        target.write_text("one\ntwo\n")
        ctx = make_ctx("apply", apply=True, auto_apply=True, undo_log=tmp_path / "undo")
        run_patch_command(ctx, parse_patch_text(sample_patch_delete), tmp_path)
        assert not target.exists()
        assert (tmp_path / "old.txt.bak").read_text() == "one\ntwo\n"
        assert [r.action for r in ctx.changelog.read_all()] == ["deleted"]
        assert len(list((tmp_path / "undo").iterdir())) == 1

    def test_rename(self, make_ctx, tmp_path, sample_patch_rename):
        (tmp_path / "a.txt").write_text("keep\nold\n")
        ctx = make_ctx("apply", apply=True, auto_apply=True, backups=False)
        run_patch_command(ctx, parse_patch_text(sample_patch_rename), tmp_path)
        assert not (tmp_path / "a.txt").exists()
        assert (tmp_path / "b.txt").read_text() == "keep\nnew\n"
        assert [r.action for r in ctx.changelog.read_all()] == ["deleted (rename)", "applied (rename)"]

    def test_rename_refuses_existing_destination(self, make_ctx, tmp_path, sample_patch_rename):
        (tmp_path / "a.txt").write_text("keep\nold\n")
        (tmp_path / "b.txt").write_text("taken\n")
        with pytest.raises(PatchError, match="destination already exists"):
            run_patch_command(make_ctx("apply", apply=True), parse_patch_text(sample_patch_rename), tmp_path)

    def test_dry_run_touches_nothing(self, make_ctx, tmp_path, sample_patch_delete):
        target = tmp_path / "old.txt"
        target.write_text("one\ntwo\n")
        ctx = make_ctx("apply")
        run_patch_command(ctx, parse_patch_text(sample_patch_delete), tmp_path)
        assert target.exists()
        assert ctx.stats.dry_run == 1

    def test_missing_target(self, make_ctx, tmp_path, sample_patch_modify):
        with pytest.raises(PatchError, match="missing file"):
            run_patch_command(make_ctx("apply"), parse_patch_text(sample_patch_modify), tmp_path)


class TestWriteCommand:
    def test_creates_file(self, make_ctx, tmp_path):
        target = tmp_path / "new" / "file.txt"
        ctx = make_ctx("write", apply=True, auto_apply=True)
        run_write_command(ctx, target, "hello\nworld\n", line_ending="lf")
        assert target.read_bytes() == b"hello\nworld\n"

    def test_refuses_overwrite(self, make_ctx, make_file):
        path = make_file("f.txt", "old\n")
        with pytest.raises(InputError, match="allow-overwrite"):
            run_write_command(make_ctx("write", apply=True), path, "new\n")

    def test_overwrite_keeps_existing_line_endings(self, make_ctx, make_file):
        path = make_file("f.txt", b"old\r\n")
        ctx = make_ctx("write", apply=True, auto_apply=True, backups=False)
        run_write_command(ctx, path, "new\nlines\n", allow_overwrite=True)
        assert path.read_bytes() == b"new\r\nlines\r\n"

    def test_same_content_is_no_op(self, make_ctx, make_file):
        path = make_file("f.txt", "same\n")
        ctx = make_ctx("write", apply=True, auto_apply=True)
        run_write_command(ctx, path, "same\n", allow_overwrite=True, line_ending="lf")
        assert ctx.stats.no_op == 1


class TestNormalizeCommand:
    def test_report_only(self, make_ctx, make_file):
        path = make_file("f.txt", "a \n")
        ctx = make_ctx("normalize", apply=True, auto_apply=True)
        run_normalize_command(ctx, [_entry(path)], NormalizeOptions())
        assert path.read_text() == "a \n"
        assert "trailing spaces: 1" in _output(ctx)
        assert ctx.stats.no_op == 1

    def test_trim_with_json_report(self, make_ctx, make_file):
        path = make_file("f.txt", "a \nb\t\n")
        ctx = make_ctx("normalize", apply=True, auto_apply=True, backups=False)
        run_normalize_command(ctx, [_entry(path)], NormalizeOptions(trim_trailing_space=True), report_json=True)
        assert path.read_text() == "a\nb\n"
        row = json.loads(ctx.events[0])
        assert row["trailing_spaces"] == 2
        assert row["encoding"] == "utf-8"

    def test_convert_encoding_only(self, make_ctx, make_file):
        path = make_file("f.txt", "café\n")
        ctx = make_ctx("normalize", apply=True, auto_apply=True, backups=False)
        run_normalize_command(ctx, [_entry(path)], NormalizeOptions(), convert_to="latin-1")
        assert path.read_bytes() == "café\n".encode("latin-1")
        assert "will be rewritten using latin-1" in _output(ctx)
        assert ctx.stats.applied == 1


class TestCleanup:
    def test_is_backup_file(self):
        assert is_backup_file(Path("a.txt.bak"))
        assert is_backup_file(Path("a.txt.bak12"))
        assert not is_backup_file(Path("a.bakery"))
        assert not is_backup_file(Path(".bak"))

    def test_find_skips_hidden(self, tmp_path: Path):
        (tmp_path / "a.txt.bak").write_text("x")
        (tmp_path / ".secret").mkdir()
        (tmp_path / ".secret" / "b.bak").write_text("x")
        assert find_backup_files(tmp_path) == [tmp_path / "a.txt.bak"]
        assert len(find_backup_files(tmp_path, include_hidden=True)) == 2

    def test_run_cleanup(self, make_ctx, tmp_path: Path):
        keep = tmp_path / "keep.bak"
        drop = tmp_path / "drop.bak1"
        keep.write_text("x")
        drop.write_text("x")
        ctx = make_ctx("cleanup", apply=True, answers=["y", "n"])
        run_cleanup(ctx, [drop, keep])
        assert not drop.exists()
        assert keep.exists()
        assert ctx.stats == CommandStats(applied=1, skipped=1)
        assert [r.action for r in ctx.changelog.read_all()] == ["removed"]
