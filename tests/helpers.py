"""Fakes and builders shared by the test modules."""

from __future__ import annotations

import json
from typing import Any

from reviewgate.models.schemas import ChangedFile, FileStatus
from reviewgate.services.llm_service import CompletionProvider


def make_file(
    path: str = "src/app.py",
    diff: str | None = "@@ -1,1 +1,2 @@\n line\n+print('debug')",
    status: FileStatus = FileStatus.MODIFIED,
) -> ChangedFile:
    """Build a changed file with a small default diff."""
    return ChangedFile(path=path, status=status, diff_text=diff, added_lines=1, removed_lines=0)


def issues_payload(*items: dict[str, Any]) -> str:
    return json.dumps(list(items))


class StubProvider(CompletionProvider):
    """Completion provider replaying scripted responses.

    Each script entry is either the text to return or an exception to raise.
    """

    def __init__(self, *script: str | Exception, model_name: str = "stub-model") -> None:
        super().__init__(model_name)
        self._script = list(script)
        self.calls: list[dict[str, Any]] = []

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
        self.calls.append(
            {
                "prompt": prompt,
                "system_prompt": system_prompt,
                "timeout": timeout,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if not self._script:
            return "[]"
        result = self._script.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingQueue:
    """Stand-in for the event queue that keeps published events in a list."""

    def __init__(self) -> None:
        self.events: list = []

    async def publish(self, event) -> None:
        self.events.append(event)


def pull_request_payload(action: str = "opened", number: int = 42) -> dict[str, Any]:
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "title": "Add retry to uploader",
            "head": {"ref": "feature/retry", "sha": "abc123"},
        },
        "repository": {
            "full_name": "acme/rocket",
            "name": "rocket",
            "owner": {"login": "acme"},
        },
        "sender": {"login": "octocat"},
    }
