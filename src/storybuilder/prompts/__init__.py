"""Prompt templates for story generation and repair."""

from .template_filler import (
    fill_prompt_template,
    TEMPLATE_PLACEHOLDERS,
    EMPTY_VALUE,
)
from .story_prompt import (
    DEFAULT_STORY_TEMPLATE,
    JSON_INSTRUCTION,
    build_template_inputs,
    build_system_prompt,
    build_story_messages,
)
from .repair_prompt import (
    REPAIR_CRITERIA_COUNT,
    REPAIR_SYSTEM_PROMPT,
    build_repair_messages,
)

__all__ = [
    "fill_prompt_template",
    "TEMPLATE_PLACEHOLDERS",
    "EMPTY_VALUE",
    "DEFAULT_STORY_TEMPLATE",
    "JSON_INSTRUCTION",
    "build_template_inputs",
    "build_system_prompt",
    "build_story_messages",
    "REPAIR_CRITERIA_COUNT",
    "REPAIR_SYSTEM_PROMPT",
    "build_repair_messages",
]
