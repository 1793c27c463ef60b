"""Configuration for the release builder.

Settings come from an optional YAML file, then environment variables on
top. A missing file means "all defaults"; a malformed one is an error
rather than a silent fallback.

Example ``release-builder.yaml``:

    api_base_url: https://notes.example.com
    http_timeout_s: 20
    default_lookback_days: 14
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

# Environment variable -> config field
ENV_OVERRIDES: dict[str, str] = {
    "RELEASE_BUILDER_API_BASE_URL": "api_base_url",
    "RELEASE_BUILDER_API_TOKEN": "api_token",
    "RELEASE_BUILDER_GENERATION_URL": "generation_url",
    "SUPABASE_URL": "persistence_url",
    "SUPABASE_KEY": "persistence_key",
    "RELEASE_BUILDER_HTTP_TIMEOUT_S": "http_timeout_s",
    "RELEASE_BUILDER_LOOKBACK_DAYS": "default_lookback_days",
    "RELEASE_BUILDER_SESSION_IDLE_S": "session_idle_timeout_s",
}


class BuilderConfig(BaseModel):
    """Connection settings for the provider, generation and persistence APIs.

    Attributes:
        api_base_url: Base URL of the integrations API serving provider data
        api_token: Bearer token forwarded to the integrations API
        generation_url: Full URL of the AI generation endpoint
        persistence_url: Base URL of the PostgREST store holding drafts
        persistence_key: API key for the store
        http_timeout_s: Transport timeout applied to every HTTP client
        default_lookback_days: Lookback window new sessions start with
        session_idle_timeout_s: Idle time after which the API drops a session
    """

    api_base_url: str = "http://localhost:3000"
    api_token: str | None = None
    generation_url: str | None = None
    persistence_url: str | None = None
    persistence_key: str | None = None
    http_timeout_s: float = Field(30.0, gt=0)
    default_lookback_days: int = Field(30, ge=1, le=365)
    session_idle_timeout_s: float = Field(3600.0, gt=0)

    @property
    def resolved_generation_url(self) -> str:
        if self.generation_url:
            return self.generation_url
        return f"{self.api_base_url.rstrip('/')}/api/release-notes/generate"


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> BuilderConfig:
    """Load a BuilderConfig from YAML and apply environment overrides.

    Args:
        path: YAML file to read. Skipped when None or when it doesn't exist.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        A validated BuilderConfig.

    Raises:
        ValueError: If the YAML is malformed or a value fails validation.
    """
    raw: dict = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            try:
                raw = yaml.safe_load(config_path.read_text()) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
            if not isinstance(raw, dict):
                raise ValueError(f"Invalid config in {path}: expected a mapping")

    env = os.environ if environ is None else environ
    for var, field in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            raw[field] = value

    try:
        return BuilderConfig.model_validate(raw)
    except Exception as exc:
        raise ValueError(f"Invalid builder config: {exc}") from exc
