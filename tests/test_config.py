"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from reviewgate.config import GROQ_BASE_URL, Settings


def load(**env) -> Settings:
    return Settings(_env_file=None, **env)


def test_defaults():
    settings = load(LLM_API_KEY="k")
    assert settings.webhook_port == 7890
    assert settings.webhook_path == "/webhook"
    assert settings.health_path == "/health"
    assert settings.webhook_secret == ""
    assert settings.llm_provider == "groq"
    assert settings.llm_endpoint == GROQ_BASE_URL
    assert settings.llm_model_name == "llama-3.3-70b-versatile"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "env-key")
    monkeypatch.setenv("WEBHOOK_PORT", "9000")
    monkeypatch.setenv("WEBHOOK_SECRET", "  shh  ")
    monkeypatch.setenv("REVIEW_CATEGORIES", "security, naming")
    monkeypatch.setenv("REVIEW_CUSTOM_RULES", '["No print calls", "Log with %s args"]')
    settings = Settings(_env_file=None)
    assert settings.llm_api_key == "env-key"
    assert settings.webhook_port == 9000
    assert settings.webhook_secret == "shh"
    assert settings.review_categories == ["security", "naming"]
    assert settings.review_custom_rules == ["No print calls", "Log with %s args"]


def test_paths_get_leading_slash():
    settings = load(LLM_API_KEY="k", WEBHOOK_PATH="hooks/github/", HEALTH_PATH="/")
    assert settings.webhook_path == "/hooks/github"
    assert settings.health_path == "/"


@pytest.mark.parametrize("provider", ["groq", "openai", "custom"])
def test_hosted_providers_require_api_key(provider, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    with pytest.raises(ValidationError):
        load(LLM_PROVIDER=provider, LLM_ENDPOINT="http://llm.local")


def test_custom_requires_endpoint(monkeypatch):
    monkeypatch.delenv("LLM_ENDPOINT", raising=False)
    with pytest.raises(ValidationError):
        load(LLM_PROVIDER="custom", LLM_API_KEY="k")


def test_ollama_defaults(monkeypatch):
    monkeypatch.delenv("LLM_ENDPOINT", raising=False)
    monkeypatch.delenv("LLM_MODEL_NAME", raising=False)
    settings = load(LLM_PROVIDER="ollama")
    assert settings.llm_endpoint == "http://localhost:11434"
    assert settings.llm_model_name == "llama3.1"


def test_review_config_carries_limits():
    settings = load(
        LLM_API_KEY="k",
        REVIEW_MAX_BATCH_CHARS="1000",
        REVIEW_REQUEST_TIMEOUT="30",
        REVIEW_MAX_RETRIES="4",
        REVIEW_BACKOFF_SECONDS="1.5",
        REVIEW_CUSTOM_RULES="Rule A,Rule B",
    )
    config = settings.review_config()
    assert config.custom_rules == ["Rule A", "Rule B"]
    assert config.limits.max_batch_chars == 1000
    assert config.limits.request_timeout == 30.0
    assert config.limits.max_retries == 4
    assert config.limits.backoff_seconds == 1.5
