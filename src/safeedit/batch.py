"""Batch plans: a YAML (or JSON) list of steps run in order.

Example plan::

    steps:
      - command: replace
        pattern: foo
        replacement: bar
        common:
          targets: [src]
          apply: true
      - command: normalize
        trim_trailing_space: true
        common:
          globs: ["**/*.md"]
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from safeedit.errors import ConfigError, FileIOError, InputError

logger = logging.getLogger(__name__)


# --- plan models ---


@dataclass
class ReplaceStep:
    pattern: str
    replacement: Optional[str] = None
    regex: bool = False
    literal: bool = False
    diff_only: bool = False
    count: Optional[int] = None
    expect: Optional[int] = None
    after_line: Optional[int] = None
    with_stdin: bool = False
    common: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RenameStep:
    from_: str
    to: str
    word_boundary: bool = True
    case_aware: bool = False
    common: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BlockStep:
    start_marker: str
    end_marker: str
    mode: str = "replace"
    body: Optional[str] = None
    body_file: Optional[str] = None
    with_stdin: bool = False
    common: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NormalizeStep:
    convert_encoding: Optional[str] = None
    strip_zero_width: bool = False
    strip_control: bool = False
    trim_trailing_space: bool = False
    ensure_eol: bool = False
    report_format: str = "table"
    scan_encoding: bool = False
    scan_zero_width: bool = False
    scan_control: bool = False
    scan_trailing_space: bool = False
    scan_final_newline: bool = False
    common: Dict[str, Any] = field(default_factory=dict)


PlanStep = Union[ReplaceStep, RenameStep, BlockStep, NormalizeStep]

STEP_TYPES = {
    "replace": ReplaceStep,
    "rename": RenameStep,
    "block": BlockStep,
    "normalize": NormalizeStep,
}

# YAML keys that are Python keywords
_KEY_ALIASES = {"from": "from_"}


def step_kind(step: PlanStep) -> str:
    for kind, cls in STEP_TYPES.items():
        if isinstance(step, cls):
            return kind
    raise TypeError(f"not a plan step: {step!r}")


# --- loading ---


def _build_step(raw: Any, index: int, source: Path) -> PlanStep:
    where = f"{source} step {index}"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: each step must be a mapping")
    data = {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}
    kind = data.pop("command", None)
    cls = STEP_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise ConfigError(
            f"{where}: unknown command {kind!r} (expected one of {', '.join(STEP_TYPES)})"
        )
    common = data.get("common")
    if common is None:
        data["common"] = {}
    elif not isinstance(common, dict):
        raise ConfigError(f"{where}: 'common' must be a mapping")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{where}: unknown field(s) for {kind}: {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigError(f"{where}: {exc}") from exc


def parse_plan(text: str, source: Path) -> List[PlanStep]:
    """Parse plan *text*; JSON when *source* ends in ``.json``, else YAML."""
    try:
        if source.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to parse plan {source}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("steps"), list):
        raise ConfigError(f"plan {source} must be a mapping with a 'steps' list")
    steps = [_build_step(raw, idx, source) for idx, raw in enumerate(data["steps"], 1)]
    if not steps:
        raise ConfigError(f"plan {source} does not contain any steps")
    return steps


def load_plan(path: Path) -> List[PlanStep]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileIOError(f"reading plan {path}: {exc}") from exc
    return parse_plan(text, path)


# --- execution ---


def _run_step(session, common, step: PlanStep) -> None:
    from safeedit import commands
    from safeedit.transform.models import BlockMode

    merged = common.merged(step.common)

    if isinstance(step, ReplaceStep):
        if step.replacement is not None:
            replacement, source = step.replacement, "literal"
        elif step.with_stdin:
            replacement, source = session.read_stdin(), "stdin"
        else:
            raise InputError("replace step missing replacement text or input source")
        commands.run_replace(
            session, merged,
            pattern=step.pattern,
            replacement=replacement,
            replacement_source=source,
            regex=step.regex and not step.literal,
            count=step.count,
            expect=step.expect,
            after_line=step.after_line,
            diff_only=step.diff_only,
        )
    elif isinstance(step, RenameStep):
        commands.run_rename(
            session, merged,
            from_=step.from_, to=step.to,
            word_boundary=step.word_boundary, case_aware=step.case_aware,
        )
    elif isinstance(step, BlockStep):
        try:
            mode = BlockMode(step.mode)
        except ValueError as exc:
            raise ConfigError(f"unknown block mode '{step.mode}' (insert, replace)") from exc
        body, source = commands.resolve_text_source(
            session, "block body",
            literal=[step.body] if step.body is not None else None,
            file=Path(step.body_file) if step.body_file else None,
            use_stdin=step.with_stdin,
        )
        commands.run_block(
            session, merged,
            start_marker=step.start_marker, end_marker=step.end_marker,
            body=body, mode=mode, body_source=source,
        )
    else:
        request = commands.NormalizeRequest(
            **{f.name: getattr(step, f.name) for f in dataclasses.fields(step) if f.name != "common"}
        )
        commands.run_normalize(session, merged, request)


def run_batch(session, common, steps: List[PlanStep]) -> None:
    """Run *steps* in order; the first failing step aborts the plan."""
    total = len(steps)
    for idx, step in enumerate(steps, 1):
        kind = step_kind(step)
        logger.info("batch step %d/%d: %s", idx, total, kind)
        session.console.print(f"[bold]=== Batch Step {idx}/{total}: {kind} ===[/bold]")
        _run_step(session, common, step)
