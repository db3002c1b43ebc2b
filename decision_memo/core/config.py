"""
Configuration management using Pydantic Settings.
Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SlackSettings(BaseSettings):
    """Slack platform configuration settings."""

    model_config = SettingsConfigDict(env_prefix="SLACK_")

    bot_token: str = Field(default="", description="Bot user OAuth token (xoxb-...)")
    signing_secret: str = Field(default="", description="Signing secret for request verification")
    # Socket Mode is not used by the HTTP transport; kept so deployments can share one env file
    app_token: str = Field(default="", description="App-level token (xapp-...)")

    api_base_url: str = Field(default="https://slack.com/api", description="Slack Web API base URL")
    timeout: int = Field(default=10, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Max attempts for retryable requests")
    bot_name: str = Field(default="Decision Memo", description="Display name used in /invite instructions")
    command_name: str = Field(default="/decisionmemo", description="Slash command that starts a session")
    shortcut_callback_id: str = Field(
        default="call_decision_memo_tool",
        description="Callback ID of the message shortcut",
    )


class AnthropicSettings(BaseSettings):
    """Anthropic (draft generator) configuration settings."""

    model_config = SettingsConfigDict(env_prefix="ANTHROPIC_")

    api_key: str = Field(default="", description="Anthropic API key")
    model: str = Field(default="claude-sonnet-4-5", description="Model used for questions and memos")
    timeout_seconds: float = Field(default=30.0, description="Upper bound for a single completion")
    question_max_tokens: int = Field(default=1000, description="Max tokens for clarifying questions")
    memo_max_tokens: int = Field(default=4000, description="Max tokens for memo drafting")


class MemoSettings(BaseSettings):
    """Conversation and memo configuration."""

    model_config = SettingsConfigDict(env_prefix="MEMO_")

    max_context_chars: int = Field(default=25000, description="Cap applied to ingested context")
    max_questions: int = Field(default=2, description="Max model-proposed clarifying questions")
    feedback_contact: Optional[str] = Field(
        default=None,
        description="Slack handle mentioned in closing tips for feedback (e.g. @ryan)",
    )
    event_dedupe_ttl: int = Field(
        default=600, description="Seconds a delivered Slack event id is remembered"
    )


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="decision-memo", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")

    # Sub-settings
    slack: SlackSettings = Field(default_factory=SlackSettings)
    anthropic: AnthropicSettings = Field(default_factory=AnthropicSettings)
    memo: MemoSettings = Field(default_factory=MemoSettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"app_env must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    def environment_report(self) -> dict[str, bool]:
        """Which secrets are present, without exposing their values."""
        return {
            "SLACK_BOT_TOKEN": bool(self.slack.bot_token),
            "SLACK_SIGNING_SECRET": bool(self.slack.signing_secret),
            "SLACK_APP_TOKEN": bool(self.slack.app_token),
            "ANTHROPIC_API_KEY": bool(self.anthropic.api_key),
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
