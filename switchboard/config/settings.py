"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a site administration assistant. Answer concisely. When a tool can "
    "retrieve exact data (plugins, posts, users, memberships), call the tool "
    "instead of guessing."
)


class LLMSettings(BaseSettings):
    """Provider routing and generation defaults."""

    primary_provider: str = Field(default="openai", description="Provider used when a request names none")
    fallback_provider: str | None = Field(
        default="anthropic",
        description="Provider tried once when the selected provider fails. Empty disables fallback.",
    )
    forced_provider: str = Field(
        default="openai",
        description="Provider pinned for requests carrying structured-data tools",
    )
    forced_provider_tools: list[str] = Field(
        default_factory=lambda: [
            "list_plugins",
            "list_posts",
            "list_pages",
            "list_comments",
            "list_users",
            "list_memberships",
            "list_membership_levels",
        ],
        description="Substrings of tool names that pin a request to forced_provider. "
                    "Set via LLM_FORCED_PROVIDER_TOOLS='[\"list_plugins\"]'",
    )
    models: dict[str, str] = Field(
        default_factory=lambda: {
            "openai": "gpt-4o",
            "anthropic": "claude-3-5-sonnet-20241022",
        },
        description="Default model per provider",
    )
    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Legacy flat API key mapping, provider name -> key",
    )
    temperature: float = Field(default=0.7, description="Default sampling temperature")
    max_tokens: int = Field(default=2048, description="Default maximum tokens in response")
    request_timeout: float = Field(default=60.0, gt=0, description="Provider call timeout in seconds")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System prompt for chat requests")

    model_config = SettingsConfigDict(env_prefix="LLM_")


class CacheSettings(BaseSettings):
    """Response cache configuration."""

    enabled: bool = Field(default=True, description="Global response caching switch")
    default_ttl: int = Field(default=3600, ge=0, description="TTL in seconds when a request sets no cache_ttl")
    backend: Literal["memory", "sqlite"] = Field(default="memory", description="Cache storage backend")
    sqlite_path: str = Field(default="data/cache/responses.db", description="SQLite cache file")
    max_entries: int = Field(default=2048, gt=0, description="Memory backend capacity")

    model_config = SettingsConfigDict(env_prefix="CACHE_")


class HistorySettings(BaseSettings):
    """Conversation history storage."""

    backend: Literal["memory", "sqlite"] = Field(default="memory", description="History storage backend")
    sqlite_path: str = Field(default="data/history/conversations.db", description="SQLite history file")

    model_config = SettingsConfigDict(env_prefix="HISTORY_")


class ToolSettings(BaseSettings):
    """Tool schema generation."""

    conflict_exclusions: list[str] = Field(
        default_factory=lambda: ["membership"],
        description="Operation-name substrings skipped on generic tools because a "
                    "dedicated domain tool already covers them",
    )

    model_config = SettingsConfigDict(env_prefix="TOOL_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
