"""
Run Orchestrator - one state machine per requested model.

PENDING -> GENERATING -> VALIDATING -> (REPAIRING) -> SCORING -> DONE

Every failure inside a run (missing key, rate limit, parse error, failed
repair) is captured in that run's DoR and evaluation. run() always returns
one complete Run per model, in request order.
"""

import uuid
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from ..models.llm_metrics import RunMetrics
from ..models.story import (
    LLMRequestDebug,
    Run,
    RunBatch,
    RunDebug,
    RunMode,
    RunRequest,
    Story,
)
from ..models.prompt_version import ActivePrompt
from ..models.workflow_state import RunState, RunTrace
from ..prompts.story_prompt import build_story_messages, build_template_inputs
from ..utils.config_loader import ScoringConfig, StoryBuilderConfig
from ..utils.redaction import redact_secrets
from ..utils.structured_logging import get_run_logger
from .dor import evaluate_dor
from .generation import GenerationClient
from .prompt_store import PromptStore, StaticPromptStore
from .repair import repair_acceptance_criteria
from .scoring import FLAG_MODEL_FALLBACK, score_story
from .testability import TESTABILITY_RULES, PatternRule
from .validation import InvalidStory, PartialStory, validate_story

logger = logging.getLogger(__name__)

DEFAULT_SINGLE_MODEL = "openai:gpt-5-nano"
DEFAULT_COMPARE_MODELS = ("openai:gpt-5-nano", "google:gemini-2.5-flash-lite")


@dataclass
class OrchestratorConfig:
    """Explicit orchestrator settings, fixed at construction time."""

    default_single_model: str = DEFAULT_SINGLE_MODEL
    default_compare_models: tuple[str, ...] = DEFAULT_COMPARE_MODELS
    unavailable_models: frozenset[str] = frozenset()
    fallback_model: Optional[str] = None
    max_text_length: int = 10000
    parallel: bool = True
    max_workers: Optional[int] = None
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    rules: tuple[PatternRule, ...] = TESTABILITY_RULES

    @classmethod
    def from_config(cls, config: StoryBuilderConfig) -> "OrchestratorConfig":
        return cls(
            default_single_model=config.models.default_single,
            default_compare_models=tuple(config.models.default_compare),
            unavailable_models=frozenset(config.models.unavailable),
            fallback_model=config.models.fallback,
            max_text_length=config.limits.max_text_length,
            parallel=config.orchestrator.parallel,
            max_workers=config.orchestrator.max_workers,
            scoring=config.scoring,
        )


@dataclass
class _RunContext:
    """Inputs shared read-only by every run of one request."""

    request_id: str
    prompt: ActivePrompt
    messages: list[dict[str, str]]


class StoryRunOrchestrator:
    """Fans a request out to its models and collects one Run per model."""

    def __init__(
        self,
        client: GenerationClient,
        config: Optional[OrchestratorConfig] = None,
        prompt_store: Optional[PromptStore] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Generation client shared by all runs (stateless per call)
            config: Orchestrator settings (defaults when omitted)
            prompt_store: Template store (empty static store when omitted)
        """
        self.client = client
        self.config = config or OrchestratorConfig()
        self.prompt_store = prompt_store or StaticPromptStore()

    def effective_models(self, request: RunRequest) -> list[str]:
        """Explicit model list, else the defaults for the run mode."""
        if request.models:
            return list(request.models)
        if request.run_mode == RunMode.COMPARE:
            return list(self.config.default_compare_models)
        return [self.config.default_single_model]

    def resolve_model(self, requested: str) -> str:
        """Swap an unavailable model for the configured fallback, if any."""
        if requested in self.config.unavailable_models and self.config.fallback_model:
            logger.warning(
                f"Model {requested} unavailable, falling back to {self.config.fallback_model}"
            )
            return self.config.fallback_model
        return requested

    def run(self, request: RunRequest) -> RunBatch:
        """
        Process one request.

        Args:
            request: Validated run request

        Returns:
            RunBatch with one Run per effective model, in request order
        """
        request_id = str(uuid.uuid4())
        comparison_group_id = str(uuid.uuid4()) if request.run_mode == RunMode.COMPARE else None
        models = self.effective_models(request)

        raw_input = request.raw_input.strip()
        logger.info(
            f"request_id={request_id} run_mode={request.run_mode.value} "
            f"models={','.join(models)} raw_len={len(raw_input)} "
            f'raw_preview="{raw_input[:120].replace(chr(10), " ")}"'
        )

        prompt = self.prompt_store.resolve_active_prompt()
        inputs = build_template_inputs(request, self.config.max_text_length)
        context = _RunContext(
            request_id=request_id,
            prompt=prompt,
            messages=build_story_messages(prompt.template, inputs, request.raw_input),
        )

        if self.config.parallel and len(models) > 1:
            workers = self.config.max_workers or len(models)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                runs = list(executor.map(lambda m: self._run_model(context, m), models))
        else:
            runs = [self._run_model(context, model) for model in models]

        batch = RunBatch(
            request_id=request_id,
            run_mode=request.run_mode,
            comparison_group_id=comparison_group_id,
            prompt_version=prompt.name,
            runs=runs,
        )
        logger.info(
            f"request_id={request_id} completed runs={len(runs)} "
            f"needs_review={batch.needs_review_count}"
        )
        return batch

    def _run_model(self, context: _RunContext, requested_model: str) -> Run:
        """Run the state machine for one model."""
        model_id = self.resolve_model(requested_model)
        run_id = str(uuid.uuid4())
        trace = RunTrace(run_id=run_id, model_id=model_id)
        metrics = RunMetrics(run_id=run_id, model_id=model_id)
        run_log = get_run_logger(__name__, context.request_id, run_id, model_id)

        story = Story.empty()
        llm_error: Optional[str] = None
        iterations = 1

        trace.advance(RunState.GENERATING)
        result = self.client.generate_story(model_id, context.messages)
        metrics.add_call(result.metrics)

        if not result.success:
            llm_error = result.error
        else:
            trace.advance(RunState.VALIDATING)
            outcome = validate_story(result.data)

            if isinstance(outcome, PartialStory):
                trace.advance(RunState.REPAIRING)
                iterations = 2
                run_log.info(
                    f"request_id={context.request_id} run_id={run_id[:8]} "
                    f"partial story, repairing ACs: {', '.join(outcome.issues)}"
                )
                repair = repair_acceptance_criteria(
                    self.client, model_id, outcome.story.title, outcome.story.description
                )
                metrics.add_call(repair.metrics)
                if repair.success:
                    story = outcome.story.model_copy(update={"acceptance_criteria": repair.criteria})
                else:
                    # Keep the validated text, never invent criteria
                    story = outcome.story.model_copy(update={"acceptance_criteria": []})
                    llm_error = f"AC repair failed: {repair.error or 'insufficient criteria'}"
            elif isinstance(outcome, InvalidStory):
                llm_error = f"Invalid LLM response: {', '.join(outcome.issues)}"
                run_log.warning(f"request_id={context.request_id} run_id={run_id[:8]} {llm_error}")
            else:
                story = outcome.story

        trace.advance(RunState.SCORING)
        dor = evaluate_dor(story, llm_error=llm_error, iterations=iterations)
        evaluation, report = score_story(
            story,
            dor,
            llm_error=llm_error,
            rules=self.config.rules,
            thresholds=self.config.scoring,
        )

        if model_id != requested_model:
            explanations = dict(evaluation.explanations or {})
            explanations[FLAG_MODEL_FALLBACK] = [
                f"Requested model {requested_model} is unavailable, ran {model_id} instead"
            ]
            evaluation = evaluation.model_copy(update={
                "flags": [*evaluation.flags, FLAG_MODEL_FALLBACK],
                "explanations": explanations,
            })

        trace.advance(RunState.DONE)

        debug = RunDebug(
            llm_request=LLMRequestDebug(
                provider=model_id.split(":")[0] or "unknown",
                model=model_id,
                prompt_version=context.prompt.name,
                messages=redact_secrets(context.messages),
                payload=redact_secrets(result.payload),
            ),
            llm_error=llm_error,
            requested_model=requested_model if model_id != requested_model else None,
            states=trace.as_list(),
            testability=report.to_json() if report else None,
            metrics=metrics.to_json(),
        )

        run_log.info(
            f"request_id={context.request_id} run_id={run_id[:8]} model={model_id} "
            f"dor_passed={dor.passed} overall={evaluation.overall} "
            f"needs_review={evaluation.needs_review} "
            f'title="{story.title[:50] or "[empty]"}"'
        )

        return Run(
            run_id=run_id,
            model_id=model_id,
            final_story=story,
            dor=dor,
            eval=evaluation,
            debug=debug,
        )
