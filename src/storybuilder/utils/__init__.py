"""Utility functions."""

from .redaction import redact_secrets, SENSITIVE_KEYS, MAX_TEXT_LENGTH
from .config_loader import load_config, StoryBuilderConfig
from .html_cleaner import clean_file_content
from .markdown_formatter import format_story, format_run_summary
from .structured_logging import setup_structured_logging, get_run_logger

__all__ = [
    "redact_secrets",
    "SENSITIVE_KEYS",
    "MAX_TEXT_LENGTH",
    "load_config",
    "StoryBuilderConfig",
    "clean_file_content",
    "format_story",
    "format_run_summary",
    "setup_structured_logging",
    "get_run_logger",
]
