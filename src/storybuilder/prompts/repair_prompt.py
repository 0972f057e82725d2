"""Prompt for the acceptance-criteria repair call."""

REPAIR_CRITERIA_COUNT = 5

REPAIR_SYSTEM_PROMPT = (
    "You are an expert at writing testable acceptance criteria for user stories. "
    f"Return ONLY a JSON array of {REPAIR_CRITERIA_COUNT} acceptance criteria strings, no other text."
)

REPAIR_PROMPT_TEMPLATE = """Generate exactly {count} testable acceptance criteria for this user story:

Title: {title}
Description: {description}

Return ONLY a JSON array of {count} strings. Example format:
["User can...", "System validates...", "Error message shows...", "Data is saved...", "UI updates..."]"""


def build_repair_messages(title: str, description: str) -> list[dict[str, str]]:
    """
    Build messages asking for exactly REPAIR_CRITERIA_COUNT criteria.

    Args:
        title: Validated story title
        description: Validated story description

    Returns:
        [system, user] messages
    """
    return [
        {"role": "system", "content": REPAIR_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": REPAIR_PROMPT_TEMPLATE.format(
                count=REPAIR_CRITERIA_COUNT,
                title=title,
                description=description,
            ),
        },
    ]
