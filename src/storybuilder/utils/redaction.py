"""
Redaction of debug payloads.

Produces a copy of an arbitrary JSON-like value that is safe to expose:
long strings are truncated, transport headers are dropped and values behind
sensitive-looking keys are masked. Only used to build debug records, never on
data that feeds generation or scoring.
"""

import re
from typing import Any

MAX_TEXT_LENGTH = 10000
TRUNCATION_MARKER = "...[truncated]"
REDACTED = "[REDACTED]"

SENSITIVE_KEYS = re.compile(
    r"api[_-]?key|token|authorization|secret|password|cookie|session|refresh|jwt|bearer|private|signature",
    re.IGNORECASE,
)


def redact_secrets(value: Any, max_length: int = MAX_TEXT_LENGTH) -> Any:
    """
    Return a redacted copy of a nested structure.

    - Strings longer than max_length are cut and suffixed with "...[truncated]"
    - Keys named "headers" (any case) are dropped
    - Keys matching SENSITIVE_KEYS get the value "[REDACTED]"
    - Lists and tuples are walked element by element (tuples become lists)

    Args:
        value: Any JSON-like value (dict, list, str, number, bool, None)
        max_length: Maximum string length before truncation

    Returns:
        Structurally identical copy with secrets removed
    """
    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_length:
            return value[:max_length] + TRUNCATION_MARKER
        return value

    if isinstance(value, (list, tuple)):
        return [redact_secrets(item, max_length) for item in value]

    if isinstance(value, dict):
        result: dict[str, Any] = {}
        for key, item in value.items():
            key_str = str(key)
            if key_str.lower() == "headers":
                continue
            if SENSITIVE_KEYS.search(key_str):
                result[key_str] = REDACTED
            else:
                result[key_str] = redact_secrets(item, max_length)
        return result

    return value
