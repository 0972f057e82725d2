"""
Data models for user stories and the runs that produce them.

A request yields one Run per model. Every Run is complete and inspectable,
even when generation failed: failures surface through dor.fail_reasons,
eval.flags and eval.needs_review instead of exceptions.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class RunMode(str, Enum):
    """How many models a request fans out to."""

    SINGLE = "single"
    COMPARE = "compare"


class Story(BaseModel):
    """A user story: title, description and acceptance criteria."""

    title: str = ""
    description: str = ""
    acceptance_criteria: list[str] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "Story":
        """Story with every field blank (no usable model output)."""
        return cls()

    def is_empty(self) -> bool:
        return not (self.title or self.description or self.acceptance_criteria)


class DoRResult(BaseModel):
    """Definition of Ready outcome for the final story of a run."""

    passed: bool
    iterations: int = Field(1, ge=1, description="1 = first pass, 2 = repair round used")
    fail_reasons: list[str] = Field(default_factory=list)


class EvalDimensions(BaseModel):
    """The five 1-5 quality dimensions."""

    clarity: int = Field(..., ge=1, le=5)
    testability: int = Field(..., ge=1, le=5)
    completeness: int = Field(..., ge=1, le=5)
    scope: int = Field(..., ge=1, le=5)
    consistency: int = Field(..., ge=1, le=5)

    def values(self) -> list[int]:
        return [self.clarity, self.testability, self.completeness, self.scope, self.consistency]


class EvalResult(BaseModel):
    """Quality evaluation of a story."""

    overall: float = Field(..., ge=1.0, le=5.0)
    needs_review: bool
    dimensions: EvalDimensions
    flags: list[str] = Field(default_factory=list)
    explanations: Optional[dict[str, list[str]]] = None
    unclear_ac_indices: Optional[list[int]] = None


class LLMRequestDebug(BaseModel):
    """Redacted copy of what was sent to the generation endpoint."""

    provider: str
    model: str
    prompt_version: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    payload: Any = None


class RunDebug(BaseModel):
    """Debug block attached to every run."""

    llm_request: LLMRequestDebug
    llm_error: Optional[str] = None
    requested_model: Optional[str] = None
    states: list[str] = Field(default_factory=list)
    testability: Optional[dict[str, Any]] = None
    metrics: Optional[dict[str, Any]] = None


class Run(BaseModel):
    """One generation + validation + scoring cycle for one model."""

    run_id: str
    model_id: str
    final_story: Story
    dor: DoRResult
    eval: EvalResult
    debug: RunDebug
    story_id: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True


class ProjectSettings(BaseModel):
    """
    Project context sent along with the raw requirements.

    Accepts both the camelCase keys used by the UI and snake_case keys.
    """

    project_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("projectName", "project_name")
    )
    project_description: Optional[str] = Field(
        None, validation_alias=AliasChoices("projectDescription", "project_description")
    )
    persona: Optional[str] = None
    tone: Optional[str] = None
    format: Optional[str] = None
    custom_prompt: Optional[str] = Field(
        None, validation_alias=AliasChoices("customPrompt", "custom_prompt")
    )
    file_content: Optional[str] = Field(
        None, validation_alias=AliasChoices("fileContent", "file_content")
    )
    technical_context: Optional[str] = Field(
        None, validation_alias=AliasChoices("technicalContext", "technical_context")
    )
    project_context: Optional[str] = None
    additional_context: Optional[str] = Field(
        None, validation_alias=AliasChoices("additionalContext", "additional_context")
    )

    class Config:
        """Pydantic config."""
        extra = "allow"


class RunRequest(BaseModel):
    """Inbound request validated at the boundary."""

    raw_input: str = ""
    project_settings: ProjectSettings = Field(default_factory=ProjectSettings)
    run_mode: RunMode = RunMode.SINGLE
    models: list[str] = Field(default_factory=list)
    custom_prompt: Optional[str] = Field(
        None, description="Overrides project_settings.custom_prompt when set"
    )

    def effective_custom_prompt(self) -> str:
        return self.custom_prompt or self.project_settings.custom_prompt or ""


class RunBatch(BaseModel):
    """All runs produced for one request."""

    request_id: str
    run_mode: RunMode
    comparison_group_id: Optional[str] = None
    prompt_version: str = "default"
    runs: list[Run] = Field(default_factory=list)

    @property
    def needs_review_count(self) -> int:
        return sum(1 for run in self.runs if run.eval.needs_review)
