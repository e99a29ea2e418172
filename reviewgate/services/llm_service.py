"""Completion provider abstraction and concrete provider implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from reviewgate.config import Settings
from reviewgate.errors import RateLimited, RemoteError, RemoteTimeout

_ERROR_SNIPPET = 300


class CompletionProvider(ABC):
    """Base interface for the remote text-completion service.

    Implementations make exactly one attempt per call and translate failures
    into ``RemoteTimeout``, ``RateLimited`` or ``RemoteError``. Retrying is the
    caller's job.
    """

    def __init__(self, model_name: str) -> None:
        self._model_name = model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        timeout: float = 90.0,
        temperature: float = 0.15,
        top_p: float = 0.8,
        max_tokens: int = 8192,
    ) -> str:
        """Return the text of a single non-streaming completion."""

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


class OpenAICompatibleProvider(CompletionProvider):
    """Chat-completions provider for Groq, OpenAI, and self-hosted compatible endpoints."""

    def __init__(
        self,
        api_key: str,
        model_name: str,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(model_name)
        # SDK retries are disabled: rate-limit backoff is owned by the review service.
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            http_client=http_client,
        )

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        timeout: float = 90.0,
        temperature: float = 0.15,
        top_p: float = 0.8,
        max_tokens: int = 8192,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self._model_name,
                messages=messages,
                temperature=temperature,
                top_p=top_p,
                max_tokens=max_tokens,
                stream=False,
                timeout=timeout,
            )
        except openai.APITimeoutError as exc:
            raise RemoteTimeout(timeout) from exc
        except openai.RateLimitError as exc:
            raise RateLimited(self._status_message(exc)) from exc
        except openai.APIStatusError as exc:
            raise RemoteError(exc.status_code, self._status_message(exc)) from exc
        except openai.APIConnectionError as exc:
            raise RemoteError(None, str(exc)) from exc

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise RemoteError(None, "Empty response from completion service")
        return text

    async def aclose(self) -> None:
        await self._client.close()

    @staticmethod
    def _status_message(exc: openai.APIStatusError) -> str:
        body = exc.body
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])[:_ERROR_SNIPPET]
        return str(exc.message)[:_ERROR_SNIPPET]


class OllamaProvider(CompletionProvider):
    """Ollama provider using Ollama's local HTTP API."""

    def __init__(
        self,
        endpoint: str,
        model_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(model_name)
        self._client = client or httpx.AsyncClient(base_url=endpoint.rstrip("/"), timeout=120.0)

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        timeout: float = 90.0,
        temperature: float = 0.15,
        top_p: float = 0.8,
        max_tokens: int = 8192,
    ) -> str:
        payload: dict[str, Any] = {
            "model": self._model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "top_p": top_p,
                "num_predict": max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            response = await self._client.post("/api/generate", json=payload, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise RemoteTimeout(timeout) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(None, str(exc)) from exc

        if response.status_code == 429:
            raise RateLimited(_error_message(response))
        if response.status_code != 200:
            raise RemoteError(response.status_code, _error_message(response))

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteError(response.status_code, "Failed to parse completion response") from exc
        if not isinstance(data, dict):
            raise RemoteError(response.status_code, "Failed to parse completion response")
        text = data.get("response", "")
        if not text:
            raise RemoteError(None, "Empty response from completion service")
        return str(text)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:_ERROR_SNIPPET]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:_ERROR_SNIPPET]
        if isinstance(error, str) and error:
            return error[:_ERROR_SNIPPET]
    return response.text[:_ERROR_SNIPPET]


def build_completion_provider(settings: Settings) -> CompletionProvider:
    """Select a completion provider implementation from app settings."""
    model_name = settings.llm_model_name or ""

    if settings.llm_provider in {"groq", "openai", "custom"}:
        if settings.llm_provider == "custom" and not settings.llm_endpoint:
            raise ValueError("LLM_ENDPOINT is required for custom provider.")
        return OpenAICompatibleProvider(
            api_key=settings.llm_api_key or "",
            model_name=model_name,
            base_url=settings.llm_endpoint,
        )

    if settings.llm_provider == "ollama":
        endpoint = settings.llm_endpoint or "http://localhost:11434"
        return OllamaProvider(endpoint=endpoint, model_name=model_name)

    raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")
