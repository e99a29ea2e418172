"""GitHub REST adapter implementing the version-control collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Literal, Protocol

import httpx

from reviewgate.models.schemas import ChangedFile, RepositoryRef, ReviewOutcome, ReviewStatus
from reviewgate.services.review_formatter import format_review_comment, status_description

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
STATUS_CONTEXT = "reviewgate"

CommitState = Literal["error", "failure", "pending", "success"]
ReviewEvent = Literal["APPROVE", "REQUEST_CHANGES", "COMMENT"]

_REVIEW_EVENTS: dict[ReviewStatus, ReviewEvent] = {
    ReviewStatus.FAIL: "REQUEST_CHANGES",
    ReviewStatus.WARN: "COMMENT",
    ReviewStatus.PASS: "APPROVE",
}


class VersionControlAPI(Protocol):
    """What the host needs from the source-control service."""

    async def get_changed_files(self, repository: RepositoryRef, subject_id: int) -> list[ChangedFile]:
        ...

    async def mark_pending(self, repository: RepositoryRef, head_sha: str) -> None:
        ...

    async def post_outcome(
        self,
        repository: RepositoryRef,
        subject_id: int,
        outcome: ReviewOutcome,
        head_sha: str | None = None,
    ) -> None:
        ...


@dataclass(slots=True)
class GitHubService:
    """Thin async client wrapper for GitHub REST operations."""

    token: str | None = None
    api_url: str = "https://api.github.com"
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    async def list_pull_request_files(
        self,
        repository: RepositoryRef,
        pr_number: int,
    ) -> list[dict[str, Any]]:
        """Return every file row of a pull request, following pagination."""
        url = f"/repos/{repository.full_name}/pulls/{pr_number}/files"
        rows: list[dict[str, Any]] = []
        page = 1
        async with self._client() as client:
            while True:
                response = await client.get(url, params={"per_page": PAGE_SIZE, "page": page})
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, list) or not data:
                    break
                rows.extend(item for item in data if isinstance(item, dict))
                if len(data) < PAGE_SIZE:
                    break
                page += 1
        return rows

    async def get_changed_files(self, repository: RepositoryRef, subject_id: int) -> list[ChangedFile]:
        rows = await self.list_pull_request_files(repository, subject_id)
        return [ChangedFile.from_github(row) for row in rows]

    async def create_commit_status(
        self,
        repository: RepositoryRef,
        sha: str,
        state: CommitState,
        description: str,
    ) -> None:
        """Create a commit status; failures are logged, not raised."""
        url = f"/repos/{repository.full_name}/statuses/{sha}"
        payload = {"state": state, "description": description[:140], "context": STATUS_CONTEXT}
        async with self._client() as client:
            response = await client.post(url, json=payload)
        if response.status_code >= 400:
            logger.warning(
                "Unable to create commit status repository=%s status=%s body=%s",
                repository.full_name,
                response.status_code,
                response.text[:500],
            )

    async def mark_pending(self, repository: RepositoryRef, head_sha: str) -> None:
        await self.create_commit_status(repository, head_sha, "pending", "AI review in progress...")

    async def submit_review(
        self,
        repository: RepositoryRef,
        pr_number: int,
        event: ReviewEvent,
        body: str,
    ) -> None:
        url = f"/repos/{repository.full_name}/pulls/{pr_number}/reviews"
        async with self._client() as client:
            response = await client.post(url, json={"event": event, "body": body})
            response.raise_for_status()

    async def post_pull_request_comment(self, repository: RepositoryRef, pr_number: int, body: str) -> None:
        url = f"/repos/{repository.full_name}/issues/{pr_number}/comments"
        async with self._client() as client:
            response = await client.post(url, json={"body": body})
            response.raise_for_status()

    async def post_outcome(
        self,
        repository: RepositoryRef,
        subject_id: int,
        outcome: ReviewOutcome,
        head_sha: str | None = None,
    ) -> None:
        """Publish a review, falling back to a plain comment when GitHub rejects it."""
        if head_sha:
            state: CommitState = "failure" if outcome.status is ReviewStatus.FAIL else "success"
            await self.create_commit_status(repository, head_sha, state, status_description(outcome))

        body = format_review_comment(outcome, subject_id)
        try:
            await self.submit_review(repository, subject_id, _REVIEW_EVENTS[outcome.status], body)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Failed to submit PR review for %s#%s (status=%s); falling back to comment",
                repository.full_name,
                subject_id,
                exc.response.status_code,
            )
            await self.post_pull_request_comment(repository, subject_id, body)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._build_headers(),
            timeout=30.0,
            transport=self.transport,
        )

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "reviewgate/0.1",
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers
