"""Per-file approval prompt."""

from __future__ import annotations

from pathlib import Path

from safeedit.pipeline.models import ApprovalDecision, PromptFn, RunContext

_ANSWERS = {
    "": ApprovalDecision.APPLY,
    "y": ApprovalDecision.APPLY,
    "yes": ApprovalDecision.APPLY,
    "n": ApprovalDecision.SKIP,
    "no": ApprovalDecision.SKIP,
    "a": ApprovalDecision.APPLY_ALL,
    "all": ApprovalDecision.APPLY_ALL,
    "q": ApprovalDecision.QUIT,
    "quit": ApprovalDecision.QUIT,
}


def prompt_approval(path: Path, ask: PromptFn, on_invalid=None) -> ApprovalDecision:
    """Ask until a recognised answer arrives. End of input means quit."""
    while True:
        answer = ask(f"Apply change to {path}? [y]es/[n]o/[a]ll/[q]uit: ")
        if answer is None:
            return ApprovalDecision.QUIT
        decision = _ANSWERS.get(answer.strip().lower())
        if decision is not None:
            return decision
        if on_invalid is not None:
            on_invalid(answer)


def resolve_decision(ctx: RunContext, path: Path) -> ApprovalDecision:
    """Sticky apply-all short-circuits the prompt; ApplyAll sets it."""
    if ctx.apply_all:
        return ApprovalDecision.APPLY
    assert ctx.prompt is not None
    decision = prompt_approval(
        path,
        ctx.prompt,
        on_invalid=lambda _answer: ctx.console.print("please answer y, n, a, or q"),
    )
    if decision is ApprovalDecision.APPLY_ALL:
        ctx.apply_all = True
    return decision
