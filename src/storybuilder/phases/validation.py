"""
Structural validation of model output.

The decoded model response is untrusted. validate_story() classifies it into
one of three outcomes:

- ValidStory: title, description and 3-7 criteria all usable
- PartialStory: title and description usable, criteria insufficient
  (the criteria repair round can fix this)
- InvalidStory: title or description unusable
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from ..models.story import Story

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10
MIN_CRITERIA = 3
MAX_CRITERIA = 7


@dataclass
class ValidStory:
    """Story passed every structural check."""

    story: Story
    issues: list[str] = field(default_factory=list)
    kind: Literal["valid"] = "valid"


@dataclass
class PartialStory:
    """Title and description are usable; acceptance criteria are not."""

    story: Story
    issues: list[str] = field(default_factory=list)
    kind: Literal["partial"] = "partial"


@dataclass
class InvalidStory:
    """No usable title or description."""

    issues: list[str] = field(default_factory=list)
    kind: Literal["invalid"] = "invalid"


ValidationOutcome = Union[ValidStory, PartialStory, InvalidStory]


def normalize_criteria(value: Any, limit: int = MAX_CRITERIA) -> list[str]:
    """
    Normalize an acceptance-criteria value.

    Keeps only string entries, trims them, drops empties and caps the list.
    Anything that is not a list yields an empty list.
    """
    if not isinstance(value, list):
        return []
    criteria = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return criteria[:limit]


def _usable_text(value: Any, min_length: int) -> str | None:
    if isinstance(value, str) and len(value.strip()) >= min_length:
        return value.strip()
    return None


def validate_story(candidate: Any) -> ValidationOutcome:
    """
    Validate a decoded model response against the story minimums.

    Rules:
    1. Response must be an object
    2. Title: string, >= MIN_TITLE_LENGTH chars after trimming
    3. Description: string, >= MIN_DESCRIPTION_LENGTH chars after trimming
    4. Acceptance criteria: MIN_CRITERIA..MAX_CRITERIA non-empty strings
       after normalization (extra entries are cut, not rejected)

    Args:
        candidate: Decoded JSON from the model

    Returns:
        ValidStory, PartialStory or InvalidStory
    """
    if not isinstance(candidate, dict):
        return InvalidStory(issues=["Response is not an object"])

    issues: list[str] = []

    title = _usable_text(candidate.get("title"), MIN_TITLE_LENGTH)
    description = _usable_text(candidate.get("description"), MIN_DESCRIPTION_LENGTH)

    if not title:
        issues.append("Missing or invalid title")
    if not description:
        issues.append("Missing or invalid description")

    criteria = normalize_criteria(candidate.get("acceptance_criteria"))
    if len(criteria) < MIN_CRITERIA:
        issues.append(f"Only {len(criteria)} acceptance criteria (need {MIN_CRITERIA}-{MAX_CRITERIA})")

    if title and description:
        story = Story(title=title, description=description, acceptance_criteria=criteria)
        if len(criteria) >= MIN_CRITERIA:
            return ValidStory(story=story)
        logger.debug(f"Partial story: {issues}")
        return PartialStory(story=story, issues=issues)

    return InvalidStory(issues=issues)
