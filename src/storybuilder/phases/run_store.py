"""
Run Store - persist a RunBatch as a session directory.

Layout:
    <output_dir>/<session_id>/session.json   request and session metadata
    <output_dir>/<session_id>/stories.json   one row per run, with story_id
    <output_dir>/<session_id>/report.md      human-readable summary

Stories are stored only after every run of the request has completed.
"""

import json
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..models.story import RunBatch, RunRequest
from ..utils.markdown_formatter import format_run_summary

logger = logging.getLogger(__name__)

# Schema version for forward compatibility
RUN_STORE_VERSION = 1
SESSION_TITLE_LENGTH = 100
DEFAULT_SESSION_TITLE = "New Story"


@dataclass
class SavedSession:
    """Where a batch was written and the ids assigned to its stories."""

    session_id: str
    session_dir: Path
    story_ids: list[str] = field(default_factory=list)


def session_title(raw_input: str) -> str:
    return raw_input.strip()[:SESSION_TITLE_LENGTH] or DEFAULT_SESSION_TITLE


def _story_row(batch: RunBatch, request: RunRequest, index: int, story_id: str, session_id: str) -> dict:
    run = batch.runs[index]
    return {
        "id": story_id,
        "session_id": session_id,
        "source": "llm",
        "story": {
            "title": run.final_story.title,
            "description": run.final_story.description,
            "acceptance_criteria": run.final_story.acceptance_criteria,
            "model_id": run.model_id,
            "run_id": run.run_id,
            "raw_input": request.raw_input,
            "project_settings": request.project_settings.model_dump(exclude_none=True),
            "dor": run.dor.model_dump(),
            "eval": run.eval.model_dump(exclude_none=True),
            "debug": run.debug.model_dump(),
            "comparison_group_id": batch.comparison_group_id,
            "generated_at": datetime.now().isoformat(),
        },
    }


def _report(batch: RunBatch) -> str:
    lines = [
        f"# Story Builder Session: {batch.request_id[:8]}",
        "",
        f"- Mode: {batch.run_mode.value}",
        f"- Prompt version: {batch.prompt_version}",
        f"- Runs: {len(batch.runs)} ({batch.needs_review_count} need review)",
    ]
    if batch.comparison_group_id:
        lines.append(f"- Comparison group: {batch.comparison_group_id}")

    for run in batch.runs:
        lines.extend(["", "---", "", format_run_summary(run)])
    return "\n".join(lines) + "\n"


def save_run_batch(batch: RunBatch, request: RunRequest, output_dir: str | Path) -> SavedSession:
    """
    Persist a completed batch.

    Args:
        batch: Completed runs for one request
        request: The request that produced them
        output_dir: Root directory for session folders

    Returns:
        SavedSession with one story_id per run, in run order

    Raises:
        OSError: If the session directory or files cannot be written
    """
    session_id = str(uuid.uuid4())
    session_dir = Path(output_dir) / session_id
    session_dir.mkdir(parents=True, exist_ok=True)

    story_ids = [str(uuid.uuid4()) for _ in batch.runs]

    session = {
        "version": RUN_STORE_VERSION,
        "id": session_id,
        "request_id": batch.request_id,
        "title": session_title(request.raw_input),
        "status": "active",
        "run_mode": batch.run_mode.value,
        "comparison_group_id": batch.comparison_group_id,
        "prompt_version": batch.prompt_version,
        "context_defaults": request.project_settings.model_dump(exclude_none=True),
        "created_at": datetime.now().isoformat(),
    }
    rows = [
        _story_row(batch, request, i, story_id, session_id)
        for i, story_id in enumerate(story_ids)
    ]

    (session_dir / "session.json").write_text(
        json.dumps(session, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    (session_dir / "stories.json").write_text(
        json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    (session_dir / "report.md").write_text(_report(batch), encoding="utf-8")

    logger.info(f"Saved session {session_id[:8]} with {len(rows)} stories: {session_dir}")
    return SavedSession(session_id=session_id, session_dir=session_dir, story_ids=story_ids)


def load_stories(session_dir: str | Path) -> list[dict]:
    """Read back the story rows of a saved session ([] when missing or unreadable)."""
    filepath = Path(session_dir) / "stories.json"

    if not filepath.exists():
        logger.warning(f"Stories file not found: {filepath}")
        return []

    try:
        return json.loads(filepath.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.error(f"Failed to load stories: {e}")
        return []
