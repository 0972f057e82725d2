"""Data models for stories, runs, prompt versions and metrics."""

from .story import (
    RunMode,
    Story,
    DoRResult,
    EvalDimensions,
    EvalResult,
    LLMRequestDebug,
    RunDebug,
    Run,
    ProjectSettings,
    RunRequest,
    RunBatch,
)
from .workflow_state import RunState, RunTrace, ALLOWED_TRANSITIONS
from .prompt_version import PromptStatus, PromptVersion, ActivePrompt
from .llm_metrics import LLMCallMetrics, RunMetrics

__all__ = [
    # Story and run models
    "RunMode",
    "Story",
    "DoRResult",
    "EvalDimensions",
    "EvalResult",
    "LLMRequestDebug",
    "RunDebug",
    "Run",
    "ProjectSettings",
    "RunRequest",
    "RunBatch",
    # Run state machine
    "RunState",
    "RunTrace",
    "ALLOWED_TRANSITIONS",
    # Prompt versions
    "PromptStatus",
    "PromptVersion",
    "ActivePrompt",
    # Metrics
    "LLMCallMetrics",
    "RunMetrics",
]
