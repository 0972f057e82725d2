"""Prompt template versions consumed by the story generator."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PromptStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class PromptVersion(BaseModel):
    """A stored prompt template."""

    id: str
    name: str
    template: str
    description: Optional[str] = None
    status: PromptStatus = PromptStatus.DRAFT
    created_at: datetime = Field(default_factory=datetime.now)


class ActivePrompt(BaseModel):
    """The template selected for a request and the version name it came from."""

    template: str
    name: str = "default"
