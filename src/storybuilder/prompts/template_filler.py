"""Placeholder substitution for prompt templates."""

import re

EMPTY_VALUE = "[none]"

# Placeholders the story generator fills
TEMPLATE_PLACEHOLDERS = (
    "project_name",
    "project_description",
    "persona",
    "tone",
    "format",
    "raw_input",
    "custom_prompt",
    "file_content",
    "project_context",
)

# {{ name }} with optional whitespace inside the braces
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}\s][^{}]*?)\s*\}\}")


def fill_prompt_template(
    template: str,
    inputs: dict[str, str | None],
    keep_unknown: bool = False,
) -> str:
    """
    Replace {{ name }} placeholders with input values.

    Whitespace inside the braces is optional ({{name}} and {{  name }} both
    match) and names are compared literally, so "a.b" only matches "a.b".
    Empty or missing values render as "[none]".

    Args:
        template: Template text
        inputs: Mapping of placeholder name to replacement value
        keep_unknown: Leave placeholders whose name is not a key of inputs
            untouched instead of rendering "[none]"

    Returns:
        Filled template
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in inputs:
            return inputs[name] or EMPTY_VALUE
        return match.group(0) if keep_unknown else EMPTY_VALUE

    return PLACEHOLDER_PATTERN.sub(_replace, template)
