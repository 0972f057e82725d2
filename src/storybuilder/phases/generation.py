"""
Generation Client - structured story generation through an OpenAI-compatible gateway.

Handles:
- Payload construction with a forced tool call (schema-constrained output)
- Error translation (missing key, 429, 402, other API/transport failures)
- Response parsing: tool-call arguments, then raw JSON content, then a
  fenced ```json block
- Per-call metrics

Failures never raise past generate_story(); they come back as a typed
GenerationResult with the payload that was (or would have been) sent.
"""

import json
import os
import re
import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import openai
from openai import OpenAI

from ..models.llm_metrics import LLMCallMetrics

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_API_KEY_ENV = "AI_GATEWAY_API_KEY"

RATE_LIMIT_MESSAGE = "Rate limit exceeded, please try again later"
PAYMENT_REQUIRED_MESSAGE = "Payment required, please add credits to workspace"
PARSE_ERROR_MESSAGE = "Failed to parse LLM response as JSON"
EMPTY_RESPONSE_MESSAGE = "No valid response from LLM"

STORY_TOOL_NAME = "generate_user_story"

# Tool schema that forces structured output
STORY_TOOL = {
    "type": "function",
    "function": {
        "name": STORY_TOOL_NAME,
        "description": (
            "Generate a structured user story with title, description in "
            "'As a [role], I want [goal], so that [benefit]' format, and 3-7 "
            "testable acceptance criteria"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "A clear, concise title for the user story (5-10 words)",
                },
                "description": {
                    "type": "string",
                    "description": "User story in 'As a [role], I want [goal], so that [benefit]' format",
                },
                "acceptance_criteria": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "3-7 testable acceptance criteria as bullet points",
                },
            },
            "required": ["title", "description", "acceptance_criteria"],
            "additionalProperties": False,
        },
    },
}

FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class ErrorKind(str, Enum):
    """Kinds of generation failure."""

    CONFIGURATION = "configuration"
    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"
    API_ERROR = "api_error"
    TRANSPORT = "transport"
    PARSE = "parse"
    EMPTY_RESPONSE = "empty_response"


class GenerationError(Exception):
    """A failed call to the generation endpoint."""

    def __init__(self, kind: ErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


@dataclass
class GenerationResult:
    """Outcome of one structured generation call."""

    success: bool
    payload: dict
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    metrics: Optional[LLMCallMetrics] = None


def to_gateway_model_id(model_id: str) -> str:
    """Map "provider:model" ids to the gateway's "provider/model" form."""
    return model_id.replace(":", "/", 1)


def _get(obj: Any, key: str) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _first_message(completion: Any) -> Any:
    choices = _get(completion, "choices") or []
    if not choices:
        return None
    return _get(choices[0], "message")


def message_content(completion: Any) -> Optional[str]:
    """Text content of the first choice, if any."""
    return _get(_first_message(completion), "content")


def parse_story_response(completion: Any) -> Any:
    """
    Extract the story object from a chat completion.

    Order: first tool call's arguments, then the content as JSON, then JSON
    inside a fenced code block.

    Raises:
        GenerationError: PARSE when content exists but is not JSON,
            EMPTY_RESPONSE when there is nothing to parse
    """
    message = _first_message(completion)

    tool_calls = _get(message, "tool_calls") or []
    if tool_calls:
        arguments = _get(_get(tool_calls[0], "function"), "arguments")
        if arguments:
            try:
                return json.loads(arguments)
            except json.JSONDecodeError as e:
                logger.warning(f"Failed to parse tool call arguments: {e}")

    content = _get(message, "content")
    if content:
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            match = FENCED_JSON_PATTERN.search(content)
            if match:
                try:
                    return json.loads(match.group(1).strip())
                except json.JSONDecodeError:
                    pass
            raise GenerationError(ErrorKind.PARSE, PARSE_ERROR_MESSAGE)

    raise GenerationError(ErrorKind.EMPTY_RESPONSE, EMPTY_RESPONSE_MESSAGE)


class GenerationClient:
    """Client for the chat completion gateway."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        client: Any = None,
    ):
        """
        Initialize the generation client.

        Args:
            base_url: Gateway base URL (OpenAI-compatible /chat/completions)
            api_key_env: Environment variable holding the API key, read per call
            api_key: Explicit API key (overrides the environment)
            temperature: Optional sampling temperature added to payloads
            client: Pre-built OpenAI-compatible client (tests inject fakes here)
        """
        self.base_url = base_url
        self.api_key_env = api_key_env
        self.temperature = temperature
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        api_key = self._api_key or os.getenv(self.api_key_env)
        if not api_key:
            raise GenerationError(ErrorKind.CONFIGURATION, f"{self.api_key_env} not configured")

        # SDK retries disabled; one call per attempt
        return OpenAI(api_key=api_key, base_url=self.base_url, max_retries=0)

    def build_story_payload(self, model_id: str, messages: list[dict[str, str]]) -> dict:
        """Build the forced-tool-call payload for story generation."""
        payload: dict[str, Any] = {
            "model": to_gateway_model_id(model_id),
            "messages": messages,
            "tools": [STORY_TOOL],
            "tool_choice": {"type": "function", "function": {"name": STORY_TOOL_NAME}},
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    def build_json_payload(self, model_id: str, messages: list[dict[str, str]]) -> dict:
        """Build a JSON-mode payload (used by the criteria repair call)."""
        payload: dict[str, Any] = {
            "model": to_gateway_model_id(model_id),
            "messages": messages,
            "response_format": {"type": "json_object"},
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    def send(self, payload: dict) -> Any:
        """
        Send a payload to the gateway.

        Returns:
            The chat completion object

        Raises:
            GenerationError: For missing configuration and every API/transport failure
        """
        client = self._get_client()

        try:
            return client.chat.completions.create(**payload)
        except openai.RateLimitError as e:
            logger.error(f"LLM error: 429 {str(e)[:200]}")
            raise GenerationError(ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE, 429) from e
        except openai.APIStatusError as e:
            logger.error(f"LLM error: {e.status_code} {str(e)[:200]}")
            if e.status_code == 402:
                raise GenerationError(ErrorKind.PAYMENT_REQUIRED, PAYMENT_REQUIRED_MESSAGE, 402) from e
            raise GenerationError(
                ErrorKind.API_ERROR, f"LLM API error: {e.status_code}", e.status_code
            ) from e
        except openai.APIConnectionError as e:
            logger.error(f"LLM transport error: {e}")
            raise GenerationError(ErrorKind.TRANSPORT, str(e) or "Connection error") from e
        except Exception as e:
            logger.error(f"LLM call failed: {type(e).__name__}: {str(e)[:200]}")
            raise GenerationError(ErrorKind.API_ERROR, str(e) or "Unknown error") from e

    def generate_story(self, model_id: str, messages: list[dict[str, str]]) -> GenerationResult:
        """
        Run one structured generation call.

        Args:
            model_id: Model identifier ("provider:model")
            messages: Ordered role/content messages

        Returns:
            GenerationResult; payload is always set, data only on success
        """
        payload = self.build_story_payload(model_id, messages)
        metrics = LLMCallMetrics(model=model_id, call_purpose="generation")
        start_time = time.time()

        try:
            logger.info(f"Calling gateway model={payload['model']}")
            completion = self.send(payload)
            record_usage(metrics, completion)
            data = parse_story_response(completion)
        except GenerationError as e:
            metrics.duration_ms = int((time.time() - start_time) * 1000)
            metrics.error = e.message
            logger.error(f"Generation failed model={model_id} kind={e.kind.value}: {e.message}")
            return GenerationResult(
                success=False,
                payload=payload,
                error=e.message,
                error_kind=e.kind,
                metrics=metrics,
            )

        metrics.duration_ms = int((time.time() - start_time) * 1000)
        metrics.success = True
        logger.info(
            f"Generation succeeded model={model_id} tokens={metrics.tokens_total} "
            f"duration_ms={metrics.duration_ms}"
        )
        return GenerationResult(success=True, payload=payload, data=data, metrics=metrics)


def record_usage(metrics: LLMCallMetrics, completion: Any) -> None:
    """Copy token usage from the completion into the call metrics."""
    usage = _get(completion, "usage")
    if not usage:
        return
    metrics.tokens_in = _get(usage, "prompt_tokens") or 0
    metrics.tokens_out = _get(usage, "completion_tokens") or 0
    metrics.tokens_total = metrics.tokens_in + metrics.tokens_out
