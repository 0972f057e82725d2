"""Prompt construction for story generation."""

from ..models.story import RunRequest
from ..utils.html_cleaner import clean_file_content
from .template_filler import EMPTY_VALUE, fill_prompt_template

# Used when the prompt store has no versions at all
DEFAULT_STORY_TEMPLATE = (
    "Generate a user story based on the following input. Return JSON with title, "
    'description (in "As a [role], I want [goal], so that [benefit]" format), and '
    "acceptance_criteria (array of 3-7 testable criteria)."
)

# Appended to every filled template, whatever the prompt version says
JSON_INSTRUCTION = """IMPORTANT: You MUST respond with valid JSON only. The response must be a JSON object with exactly these fields:
- "title": string (5-10 words, clear and concise)
- "description": string (in "As a [role], I want [goal], so that [benefit]" format)
- "acceptance_criteria": array of 3-7 strings (each being a testable acceptance criterion)

Do not include any text outside the JSON object."""

EMPTY_INPUT = "[empty input]"


def build_template_inputs(request: RunRequest, max_text_length: int = 10000) -> dict[str, str]:
    """
    Build placeholder values from the request.

    Args:
        request: Validated run request
        max_text_length: Cap for raw input and file content

    Returns:
        Mapping for every recognised placeholder ("[none]" where empty)
    """
    settings = request.project_settings
    file_text = clean_file_content(settings.file_content, max_length=max_text_length)
    project_context = (
        settings.technical_context
        or settings.project_context
        or settings.additional_context
    )

    return {
        "project_name": settings.project_name or EMPTY_VALUE,
        "project_description": settings.project_description or EMPTY_VALUE,
        "persona": settings.persona or EMPTY_VALUE,
        "tone": settings.tone or EMPTY_VALUE,
        "format": settings.format or EMPTY_VALUE,
        "raw_input": request.raw_input.strip()[:max_text_length],
        "custom_prompt": request.effective_custom_prompt() or EMPTY_VALUE,
        "file_content": file_text or EMPTY_VALUE,
        "project_context": project_context or EMPTY_VALUE,
    }


def build_system_prompt(template: str, inputs: dict[str, str]) -> str:
    """Fill the template and append the JSON-only instruction."""
    filled = fill_prompt_template(template, inputs, keep_unknown=True)
    return f"{filled}\n\n{JSON_INSTRUCTION}"


def build_story_messages(template: str, inputs: dict[str, str], raw_input: str) -> list[dict[str, str]]:
    """
    Build the chat messages for the generation call.

    Args:
        template: Active prompt template text
        inputs: Placeholder values from build_template_inputs()
        raw_input: Free-text requirements from the request

    Returns:
        [system, user] messages
    """
    return [
        {"role": "system", "content": build_system_prompt(template, inputs)},
        {"role": "user", "content": raw_input.strip() or EMPTY_INPUT},
    ]
