"""
Prompt Store - resolves the template used for a request.

Resolution order:
1. The version whose status is "active"
2. Otherwise the most recently created version
3. Otherwise the built-in default template (name "default")

Store failures are logged and never fail a request.
"""

import logging
from typing import Iterable, Optional

import requests

from ..models.prompt_version import ActivePrompt, PromptStatus, PromptVersion
from ..prompts.story_prompt import DEFAULT_STORY_TEMPLATE

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_NAME = "default"


def default_prompt() -> ActivePrompt:
    return ActivePrompt(template=DEFAULT_STORY_TEMPLATE, name=DEFAULT_PROMPT_NAME)


class PromptStore:
    """Base prompt store. Subclasses supply the two lookups."""

    def find_active(self) -> Optional[PromptVersion]:
        raise NotImplementedError

    def find_latest(self) -> Optional[PromptVersion]:
        raise NotImplementedError

    def resolve_active_prompt(self) -> ActivePrompt:
        """
        Pick the template for a request.

        Returns:
            ActivePrompt with the template text and version name
        """
        try:
            version = self.find_active()
            if version:
                logger.info(f"Using active prompt: {version.name}")
                return ActivePrompt(template=version.template, name=version.name)

            version = self.find_latest()
            if version:
                logger.info(f"No active prompt, using most recent: {version.name}")
                return ActivePrompt(template=version.template, name=version.name)
        except Exception as e:
            logger.error(f"Prompt store lookup failed (non-fatal): {type(e).__name__}: {e}")
            return default_prompt()

        logger.info("No prompt versions found, using default")
        return default_prompt()


class StaticPromptStore(PromptStore):
    """In-memory prompt store."""

    def __init__(self, versions: Optional[Iterable[PromptVersion]] = None):
        self.versions: list[PromptVersion] = list(versions or [])

    def find_active(self) -> Optional[PromptVersion]:
        active = [v for v in self.versions if v.status == PromptStatus.ACTIVE]
        if not active:
            return None
        if len(active) > 1:
            logger.warning(f"{len(active)} active prompt versions, using the most recent")
        return max(active, key=lambda v: v.created_at)

    def find_latest(self) -> Optional[PromptVersion]:
        if not self.versions:
            return None
        return max(self.versions, key=lambda v: v.created_at)


class RestPromptStore(PromptStore):
    """Prompt versions table behind a PostgREST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "sb_prompt_versions",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the REST prompt store.

        Args:
            base_url: Project URL (e.g., https://xyz.supabase.co)
            api_key: Service or anon key sent as apikey and bearer token
            table: Prompt versions table name
            session: Pre-built requests session (tests inject mocks here)
        """
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _select_one(self, params: dict) -> Optional[PromptVersion]:
        query = {"select": "id,name,template,description,status,created_at", **params}
        response = self.session.get(self.table_url, params=query, timeout=(5, 30))
        response.raise_for_status()
        rows = response.json() or []
        if not rows:
            return None
        return PromptVersion(**rows[0])

    def find_active(self) -> Optional[PromptVersion]:
        return self._select_one({
            "status": f"eq.{PromptStatus.ACTIVE.value}",
            "order": "created_at.desc",
            "limit": 1,
        })

    def find_latest(self) -> Optional[PromptVersion]:
        return self._select_one({"order": "created_at.desc", "limit": 1})
