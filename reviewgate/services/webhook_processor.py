"""Host-side handling of accepted events: fetch diffs, review, publish."""

from __future__ import annotations

import logging
import time

import httpx

from reviewgate.errors import InvalidArgument
from reviewgate.models.schemas import InboundEvent, ReviewConfig, ReviewOutcome
from reviewgate.services.github_service import VersionControlAPI
from reviewgate.services.review_service import ReviewService

logger = logging.getLogger(__name__)


class WebhookProcessor:
    """Consume events from the gateway queue and run one review per event."""

    def __init__(
        self,
        vcs: VersionControlAPI,
        review_service: ReviewService,
        review_config: ReviewConfig,
    ) -> None:
        self.vcs = vcs
        self.review_service = review_service
        self.review_config = review_config

    async def process_event(self, event: InboundEvent) -> ReviewOutcome | None:
        """Queue handler entrypoint."""
        started = time.perf_counter()
        repository = event.repository
        try:
            files = await self.vcs.get_changed_files(repository, event.subject_id)
        except httpx.HTTPError:
            logger.exception(
                "Unable to fetch PR files for %s#%s", repository.full_name, event.subject_id
            )
            return None

        if event.head_sha:
            try:
                await self.vcs.mark_pending(repository, event.head_sha)
            except httpx.HTTPError:
                logger.warning("Unable to mark %s as pending", event.head_sha, exc_info=True)

        logger.info(
            "AI-reviewing PR #%s: %s files (repository=%s)",
            event.subject_id,
            len(files),
            repository.full_name,
        )
        try:
            outcome = await self.review_service.review(files, self.review_config)
        except InvalidArgument:
            logger.exception(
                "Unable to review %s#%s", repository.full_name, event.subject_id
            )
            return None

        try:
            await self.vcs.post_outcome(repository, event.subject_id, outcome, event.head_sha)
        except httpx.HTTPError:
            logger.exception(
                "Unable to publish review for %s#%s", repository.full_name, event.subject_id
            )

        logger.info(
            "Review complete for PR #%s: status=%s issues=%s failed_batches=%s elapsed=%.1fs",
            event.subject_id,
            outcome.status.value,
            outcome.summary.total_issues,
            outcome.failed_batches,
            time.perf_counter() - started,
        )
        return outcome
