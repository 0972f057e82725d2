"""Shared fixtures: fake OpenAI-compatible clients and canned model output."""

import json
import threading
from types import SimpleNamespace

import httpx
import openai
import pytest

GATEWAY_URL = "https://gateway.test/v1/chat/completions"

GOOD_STORY = {
    "title": "Reset password via email link",
    "description": "As a registered user, I want to reset my password by email, so that I can regain access to my account.",
    "acceptance_criteria": [
        "User can request a reset link from the login page",
        "System sends the reset email within 60 seconds",
        "Given an expired link, when the user opens it, then an error is shown",
        "Verify the new password is hashed before it is stored",
    ],
}


class FakeCompletions:
    """Scripted chat.completions endpoint, one queue per gateway model id."""

    def __init__(self, script: dict):
        self.script = {model: list(items) for model, items in script.items()}
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def create(self, **payload):
        with self._lock:
            self.calls.append(payload)
            item = self.script[payload["model"]].pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _completion(tool_args=None, content=None, prompt_tokens=120, completion_tokens=80):
    tool_calls = None
    if tool_args is not None:
        arguments = tool_args if isinstance(tool_args, str) else json.dumps(tool_args)
        tool_calls = [SimpleNamespace(
            id="call_1",
            type="function",
            function=SimpleNamespace(name="generate_user_story", arguments=arguments),
        )]
    message = SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(index=0, message=message, finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def _status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", GATEWAY_URL)
    response = httpx.Response(status_code, request=request, json={"error": {"message": "boom"}})
    if status_code == 429:
        return openai.RateLimitError("Too Many Requests", response=response, body=None)
    if status_code >= 500:
        return openai.InternalServerError("Server Error", response=response, body=None)
    return openai.APIStatusError(f"HTTP {status_code}", response=response, body=None)


@pytest.fixture
def good_story() -> dict:
    return json.loads(json.dumps(GOOD_STORY))


@pytest.fixture
def make_completion():
    """Factory for chat completions (tool call and/or text content)."""
    return _completion


@pytest.fixture
def status_error():
    """Factory for real openai status errors backed by httpx responses."""
    return _status_error


@pytest.fixture
def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", GATEWAY_URL))


@pytest.fixture
def fake_openai():
    """Factory: script {gateway_model: [completion | exception, ...]} -> fake client."""

    def build(script: dict):
        return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(script)))

    return build
