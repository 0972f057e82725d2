"""
Quality scoring for generated stories.

Five 1-5 dimensions without an extra LLM call:
- clarity: description follows the "As a / want / so that" template
- testability: share of criteria matching the testability rule table
- completeness: number of acceptance criteria
- scope: title and description length balance
- consistency: Definition of Ready outcome

An upstream generation error short-circuits everything to the minimum.
"""

import math
import logging
from typing import Optional

from ..models.story import DoRResult, EvalDimensions, EvalResult, Story
from ..utils.config_loader import ScoringConfig
from .dor import follows_story_format
from .testability import TESTABILITY_RULES, CriteriaReport, PatternRule, analyze_testability

logger = logging.getLogger(__name__)

FLAG_LLM_ERROR = "llm_error"
FLAG_BROAD_REQUIREMENTS = "broad_requirements"
FLAG_UNCLEAR_AC = "unclear_acceptance_criteria"
FLAG_MISSING_EDGE_CASES = "missing_edge_cases"
FLAG_DOR_FAILED = "dor_failed"
FLAG_MODEL_FALLBACK = "model_fallback_used"

UNCLEAR_AC_EXPLANATION = (
    "Some acceptance criteria lack clear testable patterns. Good ACs include: action verbs, "
    "conditional outcomes, security/performance constraints, or verifiable state changes."
)

DEFAULT_SCORING = ScoringConfig()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_clarity(description: str) -> int:
    if follows_story_format(description):
        return 5
    lower = (description or "").lower()
    if "want" in lower or "need" in lower:
        return 4
    return 3


def score_testability(report: CriteriaReport) -> int:
    if report.total == 0:
        return 2
    return min(5, 2 + _round_half_up(report.ratio * 3))


def score_completeness(criteria_count: int) -> int:
    if criteria_count >= 5:
        return 5
    if criteria_count >= 3:
        return 4
    if criteria_count >= 1:
        return 2
    return 1


def score_scope(story: Story, thresholds: ScoringConfig = DEFAULT_SCORING) -> tuple[int, bool]:
    """
    Score scope from title/description lengths.

    Returns:
        (score, is_broad) where is_broad means the description is long
        enough to raise broad_requirements
    """
    title_len = len(story.title or "")
    desc_len = len(story.description or "")

    scope = 4
    if title_len < thresholds.scope_title_min or title_len > thresholds.scope_title_max:
        scope = 3
    if desc_len < thresholds.scope_description_min:
        scope = 3

    is_broad = desc_len > thresholds.broad_description_max
    if is_broad:
        scope = 3
    return scope, is_broad


def needs_review(
    overall: float,
    dimensions: EvalDimensions,
    dor_passed: bool,
    review_threshold: float = DEFAULT_SCORING.review_threshold,
) -> bool:
    return (
        overall < review_threshold
        or dimensions.testability < 3
        or dimensions.completeness < 3
        or not dor_passed
    )


def overall_score(dimensions: EvalDimensions) -> float:
    """Mean of the five dimensions, one decimal."""
    values = dimensions.values()
    return round(sum(values) / len(values), 1)


def error_evaluation(llm_error: str) -> EvalResult:
    """Minimum scores for a run whose generation failed."""
    dimensions = EvalDimensions(clarity=1, testability=1, completeness=1, scope=1, consistency=1)
    return EvalResult(
        overall=1.0,
        needs_review=True,
        dimensions=dimensions,
        flags=[FLAG_LLM_ERROR],
        explanations={FLAG_LLM_ERROR: [llm_error]},
    )


def score_story(
    story: Story,
    dor: DoRResult,
    llm_error: Optional[str] = None,
    rules: tuple[PatternRule, ...] = TESTABILITY_RULES,
    thresholds: ScoringConfig = DEFAULT_SCORING,
) -> tuple[EvalResult, Optional[CriteriaReport]]:
    """
    Evaluate story quality.

    Args:
        story: Final story of the run
        dor: Definition of Ready result for the same story
        llm_error: Upstream error message, if any
        rules: Testability rule table
        thresholds: Tunable scoring thresholds

    Returns:
        Tuple of (EvalResult, CriteriaReport or None when short-circuited by an error)
    """
    if llm_error:
        return error_evaluation(llm_error), None

    flags: list[str] = []
    explanations: dict[str, list[str]] = {}

    report = analyze_testability(
        story.acceptance_criteria, rules=rules, threshold=thresholds.testability_threshold
    )

    scope, is_broad = score_scope(story, thresholds)
    if is_broad:
        flags.append(FLAG_BROAD_REQUIREMENTS)

    dimensions = EvalDimensions(
        clarity=score_clarity(story.description),
        testability=score_testability(report),
        completeness=score_completeness(len(story.acceptance_criteria)),
        scope=scope,
        consistency=4 if dor.passed else 3,
    )
    overall = overall_score(dimensions)

    if dimensions.testability < 3:
        flags.append(FLAG_UNCLEAR_AC)
        explanations[FLAG_UNCLEAR_AC] = [UNCLEAR_AC_EXPLANATION]
    if dimensions.completeness < 3:
        flags.append(FLAG_MISSING_EDGE_CASES)
    if not dor.passed:
        flags.append(FLAG_DOR_FAILED)
        explanations[FLAG_DOR_FAILED] = list(dor.fail_reasons)

    unclear = report.unclear_indices
    result = EvalResult(
        overall=overall,
        needs_review=needs_review(overall, dimensions, dor.passed, thresholds.review_threshold),
        dimensions=dimensions,
        flags=flags,
        explanations=explanations or None,
        unclear_ac_indices=unclear or None,
    )

    logger.debug(f"Scored story overall={result.overall} flags={result.flags}")
    return result, report
