"""Tests for batch plan parsing and execution."""

import io
import json
from pathlib import Path

import pytest

from safeedit.batch import (
    BlockStep,
    NormalizeStep,
    RenameStep,
    ReplaceStep,
    load_plan,
    parse_plan,
    run_batch,
    step_kind,
)
from safeedit.commands import CommonOptions, Session
from safeedit.errors import ConfigError, CountMismatch, FileIOError, InputError

YAML_PLAN = """\
steps:
  - command: replace
    pattern: foo
    replacement: bar
    common:
      targets: [a.txt]
  - command: rename
    from: oldName
    to: newName
  - command: block
    start_marker: "# BEGIN"
    end_marker: "# END"
    body: generated
  - command: normalize
    trim_trailing_space: true
"""


@pytest.fixture
def session(quiet_console, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    events = []
    s = Session(console=quiet_console, emit=events.append, interactive=False)
    s.events = events
    return s


class TestParsePlan:
    def test_yaml_steps(self):
        steps = parse_plan(YAML_PLAN, Path("plan.yaml"))
        assert [step_kind(s) for s in steps] == ["replace", "rename", "block", "normalize"]
        assert steps[0] == ReplaceStep(pattern="foo", replacement="bar", common={"targets": ["a.txt"]})
        assert isinstance(steps[1], RenameStep) and steps[1].from_ == "oldName"
        assert isinstance(steps[2], BlockStep) and steps[2].mode == "replace"
        assert isinstance(steps[3], NormalizeStep) and steps[3].trim_trailing_space is True

    def test_json_plan(self):
        text = json.dumps({"steps": [{"command": "replace", "pattern": "x", "replacement": "y", "regex": True}]})
        (step,) = parse_plan(text, Path("plan.JSON"))
        assert step.regex is True

    @pytest.mark.parametrize(
        "text,message",
        [
            ("steps: [", "failed to parse plan"),
            ("- just a list\n", "must be a mapping with a 'steps' list"),
            ("steps: []\n", "does not contain any steps"),
            ("steps:\n  - 42\n", "each step must be a mapping"),
            ("steps:\n  - command: explode\n", "unknown command 'explode'"),
            ("steps:\n  - command: replace\n    pattern: a\n    colour: red\n", "unknown field"),
            ("steps:\n  - command: rename\n    from: a\n", "step 1"),
            ("steps:\n  - command: replace\n    pattern: a\n    common: nope\n", "'common' must be a mapping"),
        ],
    )
    def test_invalid_plans(self, text, message):
        with pytest.raises(ConfigError, match=message):
            parse_plan(text, Path("plan.yaml"))

    def test_load_missing_plan(self, tmp_path):
        with pytest.raises(FileIOError, match="reading plan"):
            load_plan(tmp_path / "missing.yaml")


class TestCommonOptions:
    def test_merged_overrides(self):
        base = CommonOptions(targets=[Path("x")], apply=False)
        merged = base.merged({"targets": ["a", "b"], "apply": True, "undo_log": "undo"})
        assert merged.targets == [Path("a"), Path("b")]
        assert merged.apply is True
        assert merged.undo_log == Path("undo")
        assert base.apply is False

    def test_unknown_common_key(self):
        with pytest.raises(ConfigError, match="unknown common option"):
            CommonOptions().merged({"yolo": True})


class TestRunBatch:
    def test_steps_run_in_order(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("foo oldName \n# BEGIN\nstale\n# END\n")
        plan = tmp_path / "plan.yaml"
        plan.write_text(YAML_PLAN.replace("      targets: [a.txt]\n", "      targets: [a.txt]\n      apply: true\n"))
        common = CommonOptions(targets=[Path("a.txt")], apply=True, auto_apply=True, no_backup=True)

        run_batch(session, common, load_plan(plan))

        assert (tmp_path / "a.txt").read_text() == "bar newName\n# BEGIN\ngenerated\n# END\n"
        out = session.console.file.getvalue()
        assert "=== Batch Step 1/4: replace ===" in out
        assert "=== Batch Step 4/4: normalize ===" in out
        assert out.index("Step 1/4") < out.index("Step 2/4") < out.index("Step 3/4")

    def test_step_common_overrides_cli(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("foo\n")
        steps = parse_plan(
            "steps:\n  - command: replace\n    pattern: foo\n    replacement: bar\n"
            "    common:\n      apply: false\n",
            Path("plan.yaml"),
        )
        run_batch(session, CommonOptions(targets=[Path("a.txt")], apply=True, auto_apply=True), steps)
        assert (tmp_path / "a.txt").read_text() == "foo\n"
        assert "dry-run" in session.console.file.getvalue()

    def test_replacement_from_stdin(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("foo\n")
        session.stdin = io.StringIO("piped")
        steps = parse_plan(
            "steps:\n  - command: replace\n    pattern: foo\n    with_stdin: true\n", Path("p.yaml")
        )
        run_batch(session, CommonOptions(targets=[Path("a.txt")], apply=True, auto_apply=True), steps)
        assert (tmp_path / "a.txt").read_text() == "piped\n"

    def test_replace_without_source_fails(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("foo\n")
        steps = parse_plan("steps:\n  - command: replace\n    pattern: foo\n", Path("p.yaml"))
        with pytest.raises(InputError, match="missing replacement"):
            run_batch(session, CommonOptions(targets=[Path("a.txt")]), steps)

    def test_bad_block_mode(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("x\n")
        steps = parse_plan(
            "steps:\n  - command: block\n    start_marker: A\n    end_marker: B\n"
            "    body: x\n    mode: sideways\n",
            Path("p.yaml"),
        )
        with pytest.raises(ConfigError, match="unknown block mode"):
            run_batch(session, CommonOptions(targets=[Path("a.txt")]), steps)

    def test_failure_aborts_later_steps(self, session, tmp_path):
        (tmp_path / "a.txt").write_text("foo\n")
        steps = parse_plan(
            "steps:\n"
            "  - command: replace\n    pattern: foo\n    replacement: bar\n    expect: 5\n"
            "  - command: replace\n    pattern: foo\n    replacement: baz\n",
            Path("p.yaml"),
        )
        with pytest.raises(CountMismatch):
            run_batch(session, CommonOptions(targets=[Path("a.txt")], apply=True, auto_apply=True), steps)
        assert "Step 2/2" not in session.console.file.getvalue()
        assert (tmp_path / "a.txt").read_text() == "foo\n"
