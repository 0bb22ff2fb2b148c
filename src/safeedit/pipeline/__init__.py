"""Apply pipeline: preview, approval, durable writes, and stats."""

from safeedit.pipeline.models import (
    ApprovalDecision,
    CommandStats,
    PipelineOptions,
    RunContext,
)
from safeedit.pipeline.runner import (
    run_normalize_command,
    run_patch_command,
    run_text_command,
    run_write_command,
)

__all__ = [
    "ApprovalDecision",
    "CommandStats",
    "PipelineOptions",
    "RunContext",
    "run_normalize_command",
    "run_patch_command",
    "run_text_command",
    "run_write_command",
]
