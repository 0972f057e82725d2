"""
Definition of Ready checks.

Deterministic rules over the final story of a run. Every check runs and every
failure is reported, in a fixed order, so the reasons read the same way on
every run.
"""

import math
import logging
from typing import Optional

from ..models.story import DoRResult, Story
from .testability import PatternRule, make_rule
from .validation import MAX_CRITERIA, MIN_CRITERIA, MIN_TITLE_LENGTH

logger = logging.getLogger(__name__)

# Connextra template markers, checked case-insensitively
STORY_FORMAT_MARKERS = ("as a", "want", "so that")

DOR_TESTABLE_PREFIX: PatternRule = make_rule(
    "dorActionVerbPrefix",
    r"^(user can|system|given|when|then|verify|ensure|check|validate|confirm|display|show"
    r"|allow|prevent|enable|disable)",
)

TITLE_REASON = "Title is missing or too short"
FORMAT_REASON = "Description does not follow 'As a [role], I want [goal], so that [benefit]' format"
TESTABLE_REASON = "Less than half of acceptance criteria appear testable"


def follows_story_format(description: str) -> bool:
    """True when the description contains all three Connextra markers."""
    lower = (description or "").lower()
    return all(marker in lower for marker in STORY_FORMAT_MARKERS)


def evaluate_dor(
    story: Story,
    llm_error: Optional[str] = None,
    iterations: int = 1,
    testable_rule: PatternRule = DOR_TESTABLE_PREFIX,
) -> DoRResult:
    """
    Evaluate the Definition of Ready.

    Checks (in order, all reported):
    1. Upstream generation error -> "LLM error: <message>"
    2. Title missing or shorter than MIN_TITLE_LENGTH
    3. Description not in "As a ..., I want ..., so that ..." form
    4. Criteria count outside MIN_CRITERIA..MAX_CRITERIA
    5. Fewer than half of the criteria start with a testable prefix

    Args:
        story: Final story of the run
        llm_error: Upstream error message, if any
        iterations: Generation rounds used (2 when repair ran)
        testable_rule: Prefix rule for check 5

    Returns:
        DoRResult (passed iff no fail reasons)
    """
    fail_reasons: list[str] = []

    if llm_error:
        fail_reasons.append(f"LLM error: {llm_error}")

    if not story.title or len(story.title) < MIN_TITLE_LENGTH:
        fail_reasons.append(TITLE_REASON)

    if not follows_story_format(story.description):
        fail_reasons.append(FORMAT_REASON)

    criteria = story.acceptance_criteria
    if len(criteria) < MIN_CRITERIA:
        fail_reasons.append(
            f"Insufficient acceptance criteria ({len(criteria)}, need {MIN_CRITERIA}-{MAX_CRITERIA})"
        )
    elif len(criteria) > MAX_CRITERIA:
        fail_reasons.append(f"Too many acceptance criteria ({len(criteria)}, max {MAX_CRITERIA})")

    testable_count = sum(1 for ac in criteria if testable_rule.matches(ac.strip()))
    if testable_count < math.ceil(len(criteria) / 2):
        fail_reasons.append(TESTABLE_REASON)

    passed = not fail_reasons
    logger.debug(f"DoR passed={passed} reasons={len(fail_reasons)}")
    return DoRResult(passed=passed, iterations=iterations, fail_reasons=fail_reasons)
