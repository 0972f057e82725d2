"""
Structured logging configuration.

JSON lines for batch/automation use, plain messages for the interactive CLI.
Run-scoped loggers attach request_id / run_id / model_id to every record so
the JSON output of parallel runs can be told apart.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, MutableMapping

# Record attributes copied into the JSON entry when present
STRUCTURED_FIELDS = ("request_id", "run_id", "model_id", "stage", "duration_ms", "tokens")


class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter for machine-readable output."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


class RunLogAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps run identifiers onto every record."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def get_run_logger(name: str, request_id: str, run_id: str = "", model_id: str = "") -> RunLogAdapter:
    """Return a logger bound to one request (and optionally one run)."""
    extra = {"request_id": request_id}
    if run_id:
        extra["run_id"] = run_id
    if model_id:
        extra["model_id"] = model_id
    return RunLogAdapter(logging.getLogger(name), extra)


def setup_structured_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure logging for the story builder.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, use JSON format; otherwise use simple format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logging.root.handlers = [handler]
        logging.root.setLevel(log_level)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(message)s",
            force=True,
        )
