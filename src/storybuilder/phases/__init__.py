"""
Pipeline phases for the story builder.

Per model run:
1. Generation - GenerationClient.generate_story()
2. Validation - validate_story() -> ValidStory | PartialStory | InvalidStory
3. Criteria Repair - repair_acceptance_criteria() (PartialStory only)
4. Definition of Ready - evaluate_dor()
5. Quality Scoring - score_story()

StoryRunOrchestrator wires the phases together; save_run_batch() persists
the finished batch.
"""

from .generation import (
    GenerationClient,
    GenerationError,
    GenerationResult,
    ErrorKind,
    parse_story_response,
    to_gateway_model_id,
)

from .validation import (
    ValidStory,
    PartialStory,
    InvalidStory,
    ValidationOutcome,
    validate_story,
    normalize_criteria,
)

from .repair import (
    RepairResult,
    repair_acceptance_criteria,
    parse_repair_content,
)

from .testability import (
    TESTABILITY_HEURISTIC_VERSION,
    TESTABILITY_RULES,
    PatternRule,
    CriteriaReport,
    analyze_testability,
)

from .dor import evaluate_dor

from .scoring import score_story

from .prompt_store import (
    PromptStore,
    StaticPromptStore,
    RestPromptStore,
)

from .run_store import (
    SavedSession,
    save_run_batch,
    load_stories,
)

from .orchestrator import (
    OrchestratorConfig,
    StoryRunOrchestrator,
)

__all__ = [
    # Generation
    "GenerationClient",
    "GenerationError",
    "GenerationResult",
    "ErrorKind",
    "parse_story_response",
    "to_gateway_model_id",
    # Validation
    "ValidStory",
    "PartialStory",
    "InvalidStory",
    "ValidationOutcome",
    "validate_story",
    "normalize_criteria",
    # Repair
    "RepairResult",
    "repair_acceptance_criteria",
    "parse_repair_content",
    # Testability
    "TESTABILITY_HEURISTIC_VERSION",
    "TESTABILITY_RULES",
    "PatternRule",
    "CriteriaReport",
    "analyze_testability",
    # DoR and scoring
    "evaluate_dor",
    "score_story",
    # Stores
    "PromptStore",
    "StaticPromptStore",
    "RestPromptStore",
    "SavedSession",
    "save_run_batch",
    "load_stories",
    # Orchestration
    "OrchestratorConfig",
    "StoryRunOrchestrator",
]
