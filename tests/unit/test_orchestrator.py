"""Unit tests for the run orchestrator."""

import json

import pytest

from storybuilder.models import (
    PromptStatus,
    PromptVersion,
    ProjectSettings,
    RunMode,
    RunRequest,
)
from storybuilder.phases.generation import GenerationClient
from storybuilder.phases.orchestrator import OrchestratorConfig, StoryRunOrchestrator
from storybuilder.phases.prompt_store import StaticPromptStore

OPENAI = "openai:gpt-5-nano"
GEMINI = "google:gemini-2.5-flash-lite"
OPENAI_GW = "openai/gpt-5-nano"
GEMINI_GW = "google/gemini-2.5-flash-lite"

REPAIRED = [
    "User can request a reset link",
    "System emails the link within 60 seconds",
    "Given an expired link, when opened, then an error is shown",
    "Verify the password is hashed before it is stored",
    "Ensure the old password stops working after reset",
]


@pytest.fixture
def build_orchestrator(fake_openai):
    """Factory: script -> (orchestrator, fake client)."""

    def build(script, config=None, prompt_store=None):
        fake = fake_openai(script)
        orchestrator = StoryRunOrchestrator(
            client=GenerationClient(client=fake),
            config=config or OrchestratorConfig(),
            prompt_store=prompt_store,
        )
        return orchestrator, fake

    return build


class TestSingleRun:
    """Tests for the per-model state machine."""

    def test_valid_story(self, build_orchestrator, make_completion, good_story):
        """A valid story goes straight to scoring with one iteration."""
        orchestrator, _ = build_orchestrator({OPENAI_GW: [make_completion(tool_args=good_story)]})

        batch = orchestrator.run(RunRequest(raw_input="Password reset"))

        assert batch.run_mode == RunMode.SINGLE
        assert batch.comparison_group_id is None
        assert len(batch.runs) == 1
        run = batch.runs[0]
        assert run.model_id == OPENAI
        assert run.final_story.title == good_story["title"]
        assert run.dor.passed is True
        assert run.dor.iterations == 1
        assert run.eval.overall == 4.4
        assert run.eval.needs_review is False
        assert run.debug.llm_error is None
        assert run.debug.states == ["pending", "generating", "validating", "scoring", "done"]
        assert run.debug.testability["testable_count"] == 4
        assert run.debug.metrics["calls"][0]["call_purpose"] == "generation"

    def test_rate_limited_run(self, build_orchestrator, status_error):
        """A 429 produces a complete, flagged run."""
        orchestrator, _ = build_orchestrator({OPENAI_GW: [status_error(429)]})

        run = orchestrator.run(RunRequest(raw_input="Password reset")).runs[0]

        assert run.eval.flags == ["llm_error"]
        assert run.eval.overall == 1.0
        assert run.eval.needs_review is True
        assert run.final_story.is_empty()
        assert run.dor.fail_reasons[0] == "LLM error: Rate limit exceeded, please try again later"
        assert run.debug.llm_error == "Rate limit exceeded, please try again later"
        assert run.debug.states == ["pending", "generating", "scoring", "done"]
        assert run.debug.testability is None

    def test_missing_key_run(self, monkeypatch):
        """Missing configuration is captured in the run, never raised."""
        monkeypatch.delenv("TEST_GATEWAY_KEY", raising=False)
        orchestrator = StoryRunOrchestrator(client=GenerationClient(api_key_env="TEST_GATEWAY_KEY"))

        run = orchestrator.run(RunRequest(raw_input="x")).runs[0]

        assert run.debug.llm_error == "TEST_GATEWAY_KEY not configured"
        assert run.debug.llm_request.payload["model"] == OPENAI_GW

    def test_partial_story_repaired(self, build_orchestrator, make_completion, good_story):
        """One criterion triggers repair; five repaired criteria are merged."""
        good_story["acceptance_criteria"] = ["User can reset the password"]
        orchestrator, fake = build_orchestrator({OPENAI_GW: [
            make_completion(tool_args=good_story),
            make_completion(content=json.dumps(REPAIRED)),
        ]})

        run = orchestrator.run(RunRequest(raw_input="Password reset")).runs[0]

        assert run.dor.iterations == 2
        assert run.final_story.acceptance_criteria == REPAIRED
        assert run.final_story.title == good_story["title"]
        assert run.debug.llm_error is None
        assert "llm_error" not in run.eval.flags
        assert "repairing" in run.debug.states
        assert run.debug.metrics["repair_used"] is True
        assert len(fake.chat.completions.calls) == 2

    def test_repair_failure(self, build_orchestrator, make_completion, good_story, status_error):
        """Failed repair keeps the text, empties criteria and flags the run."""
        good_story["acceptance_criteria"] = []
        orchestrator, _ = build_orchestrator({OPENAI_GW: [
            make_completion(tool_args=good_story),
            status_error(500),
        ]})

        run = orchestrator.run(RunRequest(raw_input="Password reset")).runs[0]

        assert run.dor.iterations == 2
        assert run.final_story.title == good_story["title"]
        assert run.final_story.acceptance_criteria == []
        assert run.debug.llm_error == "AC repair failed: Repair API error: 500"
        assert run.eval.flags == ["llm_error"]
        assert run.eval.needs_review is True

    def test_invalid_story(self, build_orchestrator, make_completion):
        """Unusable title/description yields an empty story and an error."""
        orchestrator, _ = build_orchestrator({OPENAI_GW: [
            make_completion(tool_args={"title": "", "description": "short"}),
        ]})

        run = orchestrator.run(RunRequest(raw_input="x")).runs[0]

        assert run.final_story.is_empty()
        assert run.debug.llm_error.startswith("Invalid LLM response: Missing or invalid title")
        assert run.eval.overall == 1.0
        assert run.debug.states == ["pending", "generating", "validating", "scoring", "done"]

    def test_debug_block(self, build_orchestrator, make_completion, good_story):
        """Debug carries the redacted payload actually sent."""
        store = StaticPromptStore([PromptVersion(
            id="1",
            name="v2-security",
            template="Project {{ project_name }}. {{ custom_prompt }} {{ sprint }}",
            status=PromptStatus.ACTIVE,
        )])
        orchestrator, fake = build_orchestrator(
            {OPENAI_GW: [make_completion(tool_args=good_story)]}, prompt_store=store,
        )
        request = RunRequest(
            raw_input="  Password reset  ",
            project_settings=ProjectSettings(projectName="Shop"),
            custom_prompt="Focus on security",
        )

        run = orchestrator.run(request).runs[0]

        llm_request = run.debug.llm_request
        assert llm_request.provider == "openai"
        assert llm_request.model == OPENAI
        assert llm_request.prompt_version == "v2-security"
        assert llm_request.payload == fake.chat.completions.calls[0]
        system = llm_request.messages[0]["content"]
        assert system.startswith("Project Shop. Focus on security {{ sprint }}")
        assert llm_request.messages[1] == {"role": "user", "content": "Password reset"}

    def test_custom_rule_table(self, build_orchestrator, make_completion, good_story):
        """Injected rules drive the testability score."""
        from storybuilder.phases.testability import make_rule

        config = OrchestratorConfig(rules=(make_rule("never", r"^$never"),))
        orchestrator, _ = build_orchestrator(
            {OPENAI_GW: [make_completion(tool_args=good_story)]}, config=config,
        )

        run = orchestrator.run(RunRequest(raw_input="x")).runs[0]

        assert run.eval.dimensions.testability == 2
        assert run.eval.unclear_ac_indices == [0, 1, 2, 3]


class TestCompareMode:
    """Tests for multi-model requests."""

    def test_default_models_and_group(self, build_orchestrator, make_completion, good_story):
        orchestrator, _ = build_orchestrator({
            OPENAI_GW: [make_completion(tool_args=good_story)],
            GEMINI_GW: [make_completion(tool_args=good_story)],
        })

        batch = orchestrator.run(RunRequest(raw_input="x", run_mode=RunMode.COMPARE))

        assert [r.model_id for r in batch.runs] == [OPENAI, GEMINI]
        assert batch.comparison_group_id is not None
        assert batch.runs[0].run_id != batch.runs[1].run_id

    @pytest.mark.parametrize("parallel", [True, False])
    def test_failure_is_isolated(self, build_orchestrator, make_completion, good_story, status_error, parallel):
        """One model failing never affects the other."""
        orchestrator, _ = build_orchestrator(
            {
                OPENAI_GW: [status_error(402)],
                GEMINI_GW: [make_completion(tool_args=good_story)],
            },
            config=OrchestratorConfig(parallel=parallel),
        )

        batch = orchestrator.run(RunRequest(raw_input="x", run_mode="compare"))

        failed, ok = batch.runs
        assert failed.model_id == OPENAI
        assert failed.eval.flags == ["llm_error"]
        assert failed.debug.llm_error == "Payment required, please add credits to workspace"
        assert ok.model_id == GEMINI
        assert ok.dor.passed is True
        assert ok.debug.llm_error is None
        assert batch.needs_review_count == 1

    def test_explicit_models_in_order(self, build_orchestrator, make_completion, good_story):
        orchestrator, _ = build_orchestrator({
            GEMINI_GW: [make_completion(tool_args=good_story)],
            OPENAI_GW: [make_completion(tool_args=good_story)],
        })

        batch = orchestrator.run(RunRequest(raw_input="x", run_mode="compare", models=[GEMINI, OPENAI]))

        assert [r.model_id for r in batch.runs] == [GEMINI, OPENAI]


class TestModelFallback:
    """Tests for unavailable-model substitution."""

    def test_unavailable_model_replaced(self, build_orchestrator, make_completion, good_story):
        config = OrchestratorConfig(unavailable_models=frozenset({OPENAI}), fallback_model=GEMINI)
        orchestrator, fake = build_orchestrator(
            {GEMINI_GW: [make_completion(tool_args=good_story)]}, config=config,
        )

        run = orchestrator.run(RunRequest(raw_input="x")).runs[0]

        assert run.model_id == GEMINI
        assert run.debug.requested_model == OPENAI
        assert "model_fallback_used" in run.eval.flags
        assert "model_fallback_used" in run.eval.explanations
        assert fake.chat.completions.calls[0]["model"] == GEMINI_GW

    def test_no_fallback_configured(self, build_orchestrator, make_completion, good_story):
        config = OrchestratorConfig(unavailable_models=frozenset({OPENAI}))
        orchestrator, _ = build_orchestrator(
            {OPENAI_GW: [make_completion(tool_args=good_story)]}, config=config,
        )

        run = orchestrator.run(RunRequest(raw_input="x")).runs[0]

        assert run.model_id == OPENAI
        assert run.debug.requested_model is None
        assert "model_fallback_used" not in run.eval.flags


class TestRequestValidation:
    """Inbound request validation at the boundary."""

    def test_invalid_run_mode(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            RunRequest(raw_input="x", run_mode="batch")
