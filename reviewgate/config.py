"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
import json
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from reviewgate.models.schemas import ReviewConfig, ReviewLimits

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

_DEFAULT_MODELS = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o",
    "ollama": "llama3.1",
    "custom": "llama-3.3-70b-versatile",
}


class Settings(BaseSettings):
    """Runtime settings for the webhook gateway, completion service, and GitHub."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="APP_ENV"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    webhook_host: str = Field(default="127.0.0.1", validation_alias="WEBHOOK_HOST")
    webhook_port: int = Field(default=7890, ge=0, le=65535, validation_alias="WEBHOOK_PORT")
    webhook_secret: str = Field(default="", validation_alias="WEBHOOK_SECRET")
    webhook_path: str = Field(default="/webhook", validation_alias="WEBHOOK_PATH")
    health_path: str = Field(default="/health", validation_alias="HEALTH_PATH")
    event_queue_size: int = Field(default=100, ge=1, validation_alias="EVENT_QUEUE_SIZE")

    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    github_api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")

    llm_provider: Literal["groq", "openai", "ollama", "custom"] = Field(
        default="groq", validation_alias="LLM_PROVIDER"
    )
    llm_api_key: str | None = Field(default=None, validation_alias="LLM_API_KEY")
    llm_model_name: str | None = Field(default=None, validation_alias="LLM_MODEL_NAME")
    llm_endpoint: str | None = Field(default=None, validation_alias="LLM_ENDPOINT")

    review_categories: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="REVIEW_CATEGORIES"
    )
    review_custom_rules: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="REVIEW_CUSTOM_RULES"
    )
    review_max_batch_chars: int = Field(default=25_000, gt=0, validation_alias="REVIEW_MAX_BATCH_CHARS")
    review_request_timeout: float = Field(default=90.0, gt=0, validation_alias="REVIEW_REQUEST_TIMEOUT")
    review_max_retries: int = Field(default=2, ge=0, validation_alias="REVIEW_MAX_RETRIES")
    review_backoff_seconds: float = Field(default=10.0, ge=0, validation_alias="REVIEW_BACKOFF_SECONDS")

    @field_validator("webhook_secret", mode="before")
    @classmethod
    def _strip_secret(cls, value: str | None) -> str:
        if value is None:
            return ""
        return value.strip()

    @field_validator("github_token", "llm_api_key", "llm_endpoint", "llm_model_name", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("webhook_path", "health_path", mode="before")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        path = str(value).strip().rstrip("/")
        if not path.startswith("/"):
            path = f"/{path}"
        return path

    @field_validator("review_categories", "review_custom_rules", mode="before")
    @classmethod
    def _split_list(cls, value: str | list[str] | None) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            if raw.startswith("["):
                value = json.loads(raw)
            else:
                value = raw.split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _validate_required_config(self) -> "Settings":
        if self.llm_provider in {"groq", "openai", "custom"} and not self.llm_api_key:
            raise ValueError(
                f"LLM_API_KEY is required when LLM_PROVIDER is '{self.llm_provider}'."
            )

        if self.llm_provider == "custom" and not self.llm_endpoint:
            raise ValueError("LLM_ENDPOINT is required when LLM_PROVIDER is 'custom'.")

        if self.llm_provider == "ollama" and not self.llm_endpoint:
            self.llm_endpoint = "http://localhost:11434"

        if self.llm_provider == "groq" and not self.llm_endpoint:
            self.llm_endpoint = GROQ_BASE_URL

        if not self.llm_model_name:
            self.llm_model_name = _DEFAULT_MODELS[self.llm_provider]

        return self

    def review_config(self) -> ReviewConfig:
        """Build the explicit rule configuration handed to each review call."""
        return ReviewConfig(
            categories=list(self.review_categories),
            custom_rules=list(self.review_custom_rules),
            limits=ReviewLimits(
                max_batch_chars=self.review_max_batch_chars,
                request_timeout=self.review_request_timeout,
                max_retries=self.review_max_retries,
                backoff_seconds=self.review_backoff_seconds,
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache validated settings."""
    return Settings()
