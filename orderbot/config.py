from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: str = Field(default="dev", alias="APP_ENV")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_temperature: float = Field(default=0.2, alias="OPENAI_TEMPERATURE")
    openai_tool_choice: str = Field(default="auto", alias="OPENAI_TOOL_CHOICE")
    classifier_timeout_seconds: float = Field(default=20.0, alias="CLASSIFIER_TIMEOUT_SECONDS")
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")

    restaurant_name: str = Field(default="Momo House", alias="RESTAURANT_NAME")
    currency_label: str = Field(default="Rs.", alias="CURRENCY_LABEL")
    order_id_prefix: str = Field(default="MH", alias="ORDER_ID_PREFIX")
    menu_path: Optional[str] = Field(default=None, alias="MENU_PATH")

    # Conversation behaviour
    history_limit: int = Field(default=12, alias="HISTORY_LIMIT")
    order_history_limit: int = Field(default=5, alias="ORDER_HISTORY_LIMIT")
    deposit_rate: float = Field(default=0.20, alias="DEPOSIT_RATE")

    # Outbound relay; empty keeps messages in the in-process outbox only
    outbound_webhook_url: Optional[str] = Field(default=None, alias="OUTBOUND_WEBHOOK_URL")

    # LangSmith / LangChain tracing
    langsmith_api_key: str | None = Field(default=None, alias="LANGSMITH_API_KEY")
    langsmith_endpoint: str | None = Field(default=None, alias="LANGSMITH_ENDPOINT")
    langsmith_project: str | None = Field(default=None, alias="LANGSMITH_PROJECT")
    langsmith_tracing_v2: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
