"""Configuration loader."""

import yaml
from pathlib import Path
from pydantic import BaseModel, Field
from typing import Optional


class GatewayConfig(BaseModel):
    """OpenAI-compatible chat completion gateway."""

    base_url: str = "https://ai.gateway.lovable.dev/v1"
    api_key_env: str = "AI_GATEWAY_API_KEY"
    temperature: Optional[float] = None


class ModelsConfig(BaseModel):
    """Default model selection and availability."""

    default_single: str = "openai:gpt-5-nano"
    default_compare: list[str] = Field(
        default_factory=lambda: ["openai:gpt-5-nano", "google:gemini-2.5-flash-lite"]
    )
    unavailable: set[str] = Field(default_factory=set)
    fallback: Optional[str] = None


class LimitsConfig(BaseModel):
    max_text_length: int = 10000


class ScoringConfig(BaseModel):
    """Tunable thresholds for the quality scorer."""

    scope_title_min: int = 10
    scope_title_max: int = 100
    scope_description_min: int = 30
    broad_description_max: int = 500
    review_threshold: float = 4.0
    testability_threshold: float = 0.5


class OrchestratorSettings(BaseModel):
    parallel: bool = True
    max_workers: Optional[int] = None


class PromptStoreConfig(BaseModel):
    backend: str = "static"  # "static" | "rest"
    rest_url_env: str = "PROMPT_STORE_URL"
    rest_key_env: str = "PROMPT_STORE_KEY"
    table: str = "sb_prompt_versions"


class OutputConfig(BaseModel):
    dir: str = "outputs"


class StoryBuilderConfig(BaseModel):
    """Story builder configuration model."""

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    prompt_store: PromptStoreConfig = Field(default_factory=PromptStoreConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def load_config(config_path: str | Path = "config/storybuilder_config.yaml") -> StoryBuilderConfig:
    """
    Load story builder configuration from YAML file.

    Args:
        config_path: Path to config file

    Returns:
        Loaded configuration (missing sections take their defaults)

    Raises:
        FileNotFoundError: If config file not found
        yaml.YAMLError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    return StoryBuilderConfig(**config_data)
