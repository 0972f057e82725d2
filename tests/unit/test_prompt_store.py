"""Unit tests for prompt template resolution."""

from datetime import datetime
from unittest.mock import MagicMock

import requests

from storybuilder.models import PromptStatus, PromptVersion
from storybuilder.phases.prompt_store import RestPromptStore, StaticPromptStore
from storybuilder.prompts import DEFAULT_STORY_TEMPLATE


def _version(name: str, status: PromptStatus, day: int) -> PromptVersion:
    return PromptVersion(
        id=name,
        name=name,
        template=f"template {name}",
        status=status,
        created_at=datetime(2026, 1, day),
    )


def _response(rows):
    response = MagicMock()
    response.json.return_value = rows
    response.raise_for_status.return_value = None
    return response


class TestStaticPromptStore:
    """Tests for StaticPromptStore resolution order."""

    def test_active_version_wins(self):
        store = StaticPromptStore([
            _version("v1", PromptStatus.ACTIVE, 1),
            _version("v2", PromptStatus.DRAFT, 5),
        ])

        prompt = store.resolve_active_prompt()

        assert prompt.name == "v1"
        assert prompt.template == "template v1"

    def test_most_recent_when_none_active(self):
        store = StaticPromptStore([
            _version("old", PromptStatus.ARCHIVED, 1),
            _version("new", PromptStatus.DRAFT, 9),
            _version("mid", PromptStatus.DRAFT, 4),
        ])

        assert store.resolve_active_prompt().name == "new"

    def test_default_when_empty(self):
        prompt = StaticPromptStore().resolve_active_prompt()

        assert prompt.name == "default"
        assert prompt.template == DEFAULT_STORY_TEMPLATE


class TestRestPromptStore:
    """Tests for RestPromptStore with a mocked requests session."""

    def _store(self, session):
        return RestPromptStore("https://db.test/", "secret-key", session=session)

    def test_active_row(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response([{
            "id": "1",
            "name": "v3",
            "template": "Write a story for {{project_name}}",
            "description": None,
            "status": "active",
            "created_at": "2026-01-07T10:00:00+00:00",
        }])

        prompt = self._store(session).resolve_active_prompt()

        assert prompt.name == "v3"
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url == "https://db.test/rest/v1/sb_prompt_versions"
        assert params["status"] == "eq.active"
        assert session.headers["apikey"] == "secret-key"

    def test_latest_when_no_active(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = [
            _response([]),
            _response([{"id": "2", "name": "draft-7", "template": "t", "status": "draft",
                        "created_at": "2026-01-05T00:00:00"}]),
        ]

        prompt = self._store(session).resolve_active_prompt()

        assert prompt.name == "draft-7"
        latest_params = session.get.call_args_list[1].kwargs["params"]
        assert "status" not in latest_params
        assert latest_params["order"] == "created_at.desc"

    def test_default_when_table_empty(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = [_response([]), _response([])]

        assert self._store(session).resolve_active_prompt().name == "default"

    def test_store_error_is_non_fatal(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.exceptions.ConnectionError("down")

        prompt = self._store(session).resolve_active_prompt()

        assert prompt.name == "default"
        assert prompt.template == DEFAULT_STORY_TEMPLATE
