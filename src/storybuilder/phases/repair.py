"""
Criteria Repair - narrow second call for acceptance criteria.

Only used when validation returned a PartialStory. Asks the same model for
exactly five criteria for the validated title and description and accepts
either a bare JSON array or {"acceptance_criteria": [...]}.
"""

import json
import re
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..models.llm_metrics import LLMCallMetrics
from ..prompts.repair_prompt import build_repair_messages
from .generation import GenerationClient, GenerationError, message_content, record_usage
from .validation import MIN_CRITERIA, normalize_criteria

logger = logging.getLogger(__name__)

REPAIR_PARSE_ERROR = "Failed to parse repair response"

# Outermost [...] in free text
EMBEDDED_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


@dataclass
class RepairResult:
    """Outcome of a criteria repair call."""

    success: bool
    criteria: list[str] = field(default_factory=list)
    error: Optional[str] = None
    payload: Optional[dict] = None
    metrics: Optional[LLMCallMetrics] = None


def _criteria_from(parsed: Any) -> list[str]:
    if isinstance(parsed, list):
        return normalize_criteria(parsed)
    if isinstance(parsed, dict):
        return normalize_criteria(parsed.get("acceptance_criteria"))
    return []


def parse_repair_content(content: Optional[str]) -> list[str]:
    """
    Parse criteria from repair response text.

    A JSON decode failure falls back to the first embedded "[...]" span.

    Returns:
        Normalized criteria (possibly fewer than MIN_CRITERIA, possibly empty)
    """
    if not content:
        return []

    try:
        return _criteria_from(json.loads(content))
    except json.JSONDecodeError:
        match = EMBEDDED_ARRAY_PATTERN.search(content)
        if not match:
            return []
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return []
        return normalize_criteria(parsed)


def repair_acceptance_criteria(
    client: GenerationClient,
    model_id: str,
    title: str,
    description: str,
) -> RepairResult:
    """
    Request replacement acceptance criteria.

    Args:
        client: Generation client
        model_id: Model that produced the partial story
        title: Validated title
        description: Validated description

    Returns:
        RepairResult; success requires at least MIN_CRITERIA criteria
    """
    messages = build_repair_messages(title, description)
    payload = client.build_json_payload(model_id, messages)
    metrics = LLMCallMetrics(model=model_id, call_purpose="repair")
    start_time = time.time()

    logger.info(f"Repair AC call for model={payload['model']}")

    try:
        completion = client.send(payload)
    except GenerationError as e:
        metrics.duration_ms = int((time.time() - start_time) * 1000)
        error = f"Repair API error: {e.status_code}" if e.status_code else e.message
        metrics.error = error
        logger.error(f"Repair call failed model={model_id}: {error}")
        return RepairResult(success=False, error=error, payload=payload, metrics=metrics)

    metrics.duration_ms = int((time.time() - start_time) * 1000)
    record_usage(metrics, completion)

    criteria = parse_repair_content(message_content(completion))
    if len(criteria) < MIN_CRITERIA:
        metrics.error = REPAIR_PARSE_ERROR
        logger.warning(f"Repair returned {len(criteria)} usable criteria for model={model_id}")
        return RepairResult(success=False, error=REPAIR_PARSE_ERROR, payload=payload, metrics=metrics)

    metrics.success = True
    logger.info(f"Repair succeeded with {len(criteria)} ACs for model={model_id}")
    return RepairResult(success=True, criteria=criteria, payload=payload, metrics=metrics)
