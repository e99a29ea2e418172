"""Core review orchestration: batching, remote calls with retry, aggregation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import logging

from reviewgate.errors import ExhaustedRetries, InvalidArgument, RateLimited, RemoteCallError
from reviewgate.models.schemas import (
    Category,
    ChangedFile,
    FileReview,
    FileStatus,
    Issue,
    ReviewConfig,
    ReviewLimits,
    ReviewOutcome,
    ReviewStatus,
    ReviewSummary,
    Severity,
)
from reviewgate.services.batching import batch_files, reviewable_files
from reviewgate.services.issue_parser import UNKNOWN_FILE, parse_issues
from reviewgate.services.llm_service import CompletionProvider
from reviewgate.services.prompting import SYSTEM_PROMPT, build_review_prompt

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

API_ERROR_ISSUE_ID = "ai-api-error"


@dataclass(slots=True)
class ReviewService:
    """Turn a change-set into a ``ReviewOutcome`` via the completion service.

    Holds no state between calls; every ``review`` takes its configuration
    explicitly. Batches run one after another so the rate-limit backoff
    throttles the whole review.
    """

    llm_provider: CompletionProvider
    sleep: Sleep = field(default=asyncio.sleep)

    async def review(
        self,
        change_set: Sequence[ChangedFile] | None,
        config: ReviewConfig | None,
    ) -> ReviewOutcome:
        """Review every reviewable file and aggregate the findings."""
        files = self._validate_input(change_set, config)
        limits = config.limits

        reviewable = reviewable_files(files)
        batches = batch_files(reviewable, limits.max_batch_chars)

        issues: list[Issue] = []
        attempted = 0
        failed = 0
        last_error = ""

        for idx, batch in enumerate(batches, start=1):
            if not batch:
                continue
            attempted += 1
            prompt = build_review_prompt(batch, config.categories, config.custom_rules)
            logger.info(
                "Analyzing batch %s/%s (%s files) via %s",
                idx,
                len(batches),
                len(batch),
                self.llm_provider.model_name,
            )
            try:
                raw = await self._call_with_retry(prompt, limits)
            except RemoteCallError as exc:
                failed += 1
                last_error = str(exc)
                logger.warning("Completion call failed for batch %s/%s: %s", idx, len(batches), exc)
                continue
            issues.extend(parse_issues(raw, batch, start_index=len(issues)))

        if attempted and failed == attempted:
            issues.append(self._api_error_issue(reviewable[0], last_error))

        return self._build_outcome(files, issues, failed)

    async def verify_connection(self, timeout: float = 30.0) -> bool:
        """Check that the completion service answers a trivial prompt."""
        try:
            response = await self.llm_provider.complete(
                'Respond with exactly: {"status":"ok"}',
                timeout=timeout,
                max_tokens=32,
            )
        except RemoteCallError:
            logger.exception("Completion service verification failed.")
            return False
        return "ok" in response

    async def _call_with_retry(self, prompt: str, limits: ReviewLimits) -> str:
        """Call the provider, retrying only on rate limits with linear backoff."""
        attempts = limits.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self.llm_provider.complete(
                    prompt,
                    SYSTEM_PROMPT,
                    timeout=limits.request_timeout,
                    temperature=limits.temperature,
                    top_p=limits.top_p,
                    max_tokens=limits.max_tokens,
                )
            except RateLimited as exc:
                if attempt == attempts:
                    raise ExhaustedRetries(attempts) from exc
                delay = limits.backoff_seconds * attempt
                logger.warning(
                    "Rate limited - waiting %ss before retry %s/%s",
                    delay,
                    attempt + 1,
                    attempts,
                )
                await self.sleep(delay)
        raise ExhaustedRetries(attempts)

    @staticmethod
    def _validate_input(
        change_set: Sequence[ChangedFile] | None,
        config: ReviewConfig | None,
    ) -> list[ChangedFile]:
        if change_set is None:
            raise InvalidArgument("change_set must not be None.")
        if isinstance(change_set, (str, bytes)) or not isinstance(change_set, Sequence):
            raise InvalidArgument("change_set must be a sequence of ChangedFile.")
        if not isinstance(config, ReviewConfig):
            raise InvalidArgument("config must be a ReviewConfig.")
        files = list(change_set)
        for position, item in enumerate(files):
            if not isinstance(item, ChangedFile):
                raise InvalidArgument(
                    f"change_set[{position}] is {type(item).__name__}, expected ChangedFile."
                )
        return files

    @staticmethod
    def _api_error_issue(first_file: ChangedFile, last_error: str) -> Issue:
        return Issue(
            id=API_ERROR_ISSUE_ID,
            file=first_file.path,
            line=0,
            severity=Severity.ERROR,
            category=Category.BEST_PRACTICE,
            message=(
                f"AI review failed: {last_error}. "
                "Check your completion service API key and try again."
            ),
            suggestion="Verify LLM_API_KEY and the provider endpoint, then re-run the review.",
        )

    @staticmethod
    def _reattribute_removed(files: list[ChangedFile], issues: list[Issue]) -> list[Issue]:
        """Move issues naming a removed file onto the first reviewable file.

        Removed files never get a ``per_file`` entry.
        """
        kept = {item.path for item in files if item.status is not FileStatus.REMOVED}
        removed = {item.path for item in files if item.status is FileStatus.REMOVED} - kept
        if not removed:
            return issues
        reviewable = reviewable_files(files)
        target = reviewable[0].path if reviewable else UNKNOWN_FILE
        moved = []
        for issue in issues:
            if issue.file in removed:
                logger.debug("Issue %s names removed file %s; moving to %s", issue.id, issue.file, target)
                issue = issue.model_copy(update={"file": target})
            moved.append(issue)
        return moved

    def _build_outcome(
        self,
        files: list[ChangedFile],
        issues: list[Issue],
        failed_batches: int,
    ) -> ReviewOutcome:
        issues = self._reattribute_removed(files, issues)
        by_file: dict[str, list[Issue]] = {}
        for issue in issues:
            by_file.setdefault(issue.file, []).append(issue)

        per_file: list[FileReview] = []
        listed: set[str] = set()
        for item in files:
            if item.status is FileStatus.REMOVED or item.path in listed:
                continue
            listed.add(item.path)
            per_file.append(
                FileReview(
                    file=item.path,
                    status=item.status,
                    added_lines=item.added_lines,
                    removed_lines=item.removed_lines,
                    issues=tuple(by_file.get(item.path, ())),
                )
            )
        # Issues the service attributed to files outside the reviewed set.
        for path, file_issues in by_file.items():
            if path not in listed:
                listed.add(path)
                per_file.append(FileReview(file=path, issues=tuple(file_issues)))

        summary = ReviewSummary.from_issues(issues, total_files=len(files))
        return ReviewOutcome(
            issues=tuple(issues),
            per_file=tuple(per_file),
            summary=summary,
            status=ReviewStatus.from_summary(summary),
            model_used=self.llm_provider.model_name,
            failed_batches=failed_batches,
        )
