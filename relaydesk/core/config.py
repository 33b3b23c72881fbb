from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConversationSettings(BaseModel):
    min_request_length: int = Field(150, ge=1, description="Minimum characters accepted for a request text.")
    min_answer_length: int = Field(1, ge=1, description="Minimum characters accepted for a fulfiller answer.")
    default_locale: str = Field("ru", min_length=2, description="Locale used for broadcast channels and fallbacks.")
    supported_locales: list[str] = Field(default_factory=lambda: ["ru", "en"])
    preview_length: int = Field(200, ge=16, description="Answer length shown in request listings before truncation.")


class ChannelSettings(BaseModel):
    reviewer_chat_id: str = Field("reviewers", min_length=1, description="Broadcast channel for reviewer decisions.")
    fulfiller_chat_id: str = Field("fulfillers", min_length=1, description="Broadcast channel for take offers.")


class TelegramSettings(BaseModel):
    enabled: bool = Field(False, description="Deliver notifications through the Telegram Bot API.")
    bot_token: str | None = Field(default=None, description="Bot token issued by BotFather.")
    api_base: str = Field("https://api.telegram.org", description="Bot API base URL.")
    timeout_seconds: float = Field(10.0, ge=0.1)


class SessionSettings(BaseModel):
    backend: Literal["memory", "redis"] = Field("memory")
    redis_url: RedisDsn = Field(
        "redis://localhost:6379/0",
        description="Connection URL used when the redis session backend is selected.",
    )
    namespace: str = Field("relaydesk:session", min_length=1, description="Key prefix for stored sessions.")
    lock_timeout_seconds: float = Field(30.0, ge=1.0, description="Upper bound on how long one event holds a session lock.")


class ReviewerSettings(BaseModel):
    bootstrap_ids: list[str] = Field(
        default_factory=list,
        description="Actor ids registered as reviewer_admin on first contact, or promoted on their next event.",
    )


class ObservabilitySettings(BaseModel):
    prometheus_enabled: bool = Field(True)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool = Field(True)


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")
    api_v1_prefix: str = Field("/api/v1")

    conversation: ConversationSettings = Field(default_factory=ConversationSettings)  # type: ignore[arg-type]
    channels: ChannelSettings = Field(default_factory=ChannelSettings)  # type: ignore[arg-type]
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)  # type: ignore[arg-type]
    sessions: SessionSettings = Field(default_factory=SessionSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]
    reviewers: ReviewerSettings = Field(default_factory=ReviewerSettings)  # type: ignore[arg-type]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        materialized = dict(overrides)
        allowed_keys = {"environment", "conversation", "channels", "sessions", "reviewers"}
        filtered = {key: value for key, value in materialized.items() if key in allowed_keys}
        if filtered:
            return Settings(**filtered)
    return _get_cached_settings()
