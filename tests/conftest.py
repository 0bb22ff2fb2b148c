"""Shared test fixtures: sample patches, scratch files, run contexts."""

from __future__ import annotations

import io
import textwrap
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest
from rich.console import Console

from safeedit.diff.render import DiffDisplayConfig, PagerMode
from safeedit.output.changelog import ChangeLog
from safeedit.pipeline.models import PipelineOptions, RunContext


@pytest.fixture
def sample_patch_modify() -> str:
    """A git-style patch changing one line of greet.py."""
    return textwrap.dedent("""\
        diff --git a/greet.py b/greet.py
        index 1234567..abcdef0 100644
        --- a/greet.py
        +++ b/greet.py
        @@ -1,3 +1,3 @@
         def greet(name):
        -    return "hi " + name
        +    return f"Hello, {name}!"

    """)


@pytest.fixture
def sample_patch_create() -> str:
    """A patch creating notes.txt without a trailing newline."""
    return textwrap.dedent("""\
        --- /dev/null
        +++ b/notes.txt
        @@ -0,0 +1,2 @@
        +first
        +second
        \\ No newline at end of file
    """)


@pytest.fixture
def sample_patch_delete() -> str:
    """A patch removing old.txt."""
    return textwrap.dedent("""\
        --- a/old.txt
        +++ /dev/null
        @@ -1,2 +0,0 @@
        -one
        -two
    """)


@pytest.fixture
def sample_patch_rename() -> str:
    """A patch renaming a.txt to b.txt with one edit."""
    return textwrap.dedent("""\
        diff --git a/a.txt b/b.txt
        similarity index 90%
        rename from a.txt
        rename to b.txt
        --- a/a.txt
        +++ b/b.txt
        @@ -1,2 +1,2 @@
         keep
        -old
        +new
    """)


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a file under tmp_path; bytes are written verbatim."""

    def _make(name: str, content, encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_bytes(content.encode(encoding))
        return path

    return _make


class ScriptedPrompt:
    """Prompt stand-in answering from a fixed list; None once exhausted."""

    def __init__(self, answers: Iterable[Optional[str]] = ()) -> None:
        self.answers: List[Optional[str]] = list(answers)
        self.asked: List[str] = []

    def __call__(self, prompt: str) -> Optional[str]:
        self.asked.append(prompt)
        if not self.answers:
            return None
        return self.answers.pop(0)


@pytest.fixture
def quiet_console() -> Console:
    """Console writing to an in-memory buffer; read it via ``.file.getvalue()``."""
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def make_ctx(tmp_path: Path, quiet_console: Console):
    """Build a RunContext whose prompt, JSON events and change log are captured."""

    def _make(
        command: str = "replace",
        *,
        apply: bool = False,
        auto_apply: bool = False,
        backups: bool = True,
        undo_log: Optional[Path] = None,
        json: bool = False,
        answers: Iterable[Optional[str]] = (),
    ) -> RunContext:
        events: List[str] = []
        ctx = RunContext(
            command=command,
            options=PipelineOptions(
                apply=apply,
                auto_apply=auto_apply,
                backups=backups,
                undo_log=undo_log,
                json=json,
                display=DiffDisplayConfig(pager=PagerMode.NEVER, colorize=False),
            ),
            console=quiet_console,
            changelog=ChangeLog(tmp_path / ".safeedit" / "change_log.jsonl"),
            prompt=ScriptedPrompt(answers),
            emit=events.append,
        )
        ctx.events = events  # type: ignore[attr-defined]
        return ctx

    return _make
