"""
Configuration loader for autoissue.
Merges built-in defaults with user, repo and environment overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class RoutingConfig(BaseModel):
    normalizer: str = "gemini/gemini-2.5-flash"
    extractor: str = "gemini/gemini-2.5-flash"
    composer: str = "gemini/gemini-2.5-flash"


class LimitsConfig(BaseModel):
    request_timeout: float = 60.0
    max_retries: int = Field(default=3, ge=1, le=5)
    retry_wait_seconds: float = 2.0
    max_tokens: int = 4096
    temperature: float = 0.2


class TrackerConfig(BaseModel):
    gh_binary: str = "gh"
    timeout: float = 30.0
    label_limit: int = 100
    milestone_limit: int = 10
    collaborator_limit: int = 30


class ContextConfig(BaseModel):
    filename: str = "GEMINI.md"
    max_bytes: int = 2048


class AutoIssueConfig(BaseModel):
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    dry_run: bool = False

    def with_model(self, model: str) -> "AutoIssueConfig":
        """Route every stage to one model (``--model`` / AUTOISSUE_MODEL)."""
        routing = RoutingConfig(normalizer=model, extractor=model, composer=model)
        return self.model_copy(update={"routing": routing})


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "autoissue" / "config.yaml"

_TRUTHY = ("1", "true", "yes", "on")


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(
    repo_path: Path | None = None,
    user_config: Path | None = USER_CONFIG_PATH,
) -> AutoIssueConfig:
    """
    Load config by merging, lowest priority first:
      1. Built-in defaults (autoissue/config.yaml)
      2. User overrides (~/.config/autoissue/config.yaml)
      3. Repo overrides (<repo>/.autoissue/config.yaml)
      4. Environment (AUTOISSUE_MODEL, AUTOISSUE_DRY_RUN)
    """
    base = _read_yaml(_DEFAULT_CONFIG_PATH)

    if user_config and user_config.exists():
        base = _deep_merge(base, _read_yaml(user_config))

    if repo_path:
        repo_config = repo_path / ".autoissue" / "config.yaml"
        if repo_config.exists():
            base = _deep_merge(base, _read_yaml(repo_config))

    if os.environ.get("AUTOISSUE_DRY_RUN", "").lower() in _TRUTHY:
        base["dry_run"] = True

    config = AutoIssueConfig(**base)

    model = os.environ.get("AUTOISSUE_MODEL")
    if model:
        config = config.with_model(model)
    return config


def validate_api_keys() -> dict[str, bool]:
    """Check which provider API keys are available (LiteLLM reads them directly)."""
    return {
        "GEMINI_API_KEY":    bool(os.environ.get("GEMINI_API_KEY")),
        "GOOGLE_API_KEY":    bool(os.environ.get("GOOGLE_API_KEY")),
        "OPENAI_API_KEY":    bool(os.environ.get("OPENAI_API_KEY")),
        "ANTHROPIC_API_KEY": bool(os.environ.get("ANTHROPIC_API_KEY")),
    }
