"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from reviewgate.config import Settings
from tests.helpers import RecordingSleep


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        LLM_PROVIDER="groq",
        LLM_API_KEY="test-key",
        WEBHOOK_HOST="127.0.0.1",
        WEBHOOK_SECRET="",
        _env_file=None,
    )
