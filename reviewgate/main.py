"""Host entry point wiring the gateway, event queue, and review orchestrator."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass
import logging

from reviewgate.config import Settings, get_settings
from reviewgate.services.event_queue import EventQueue
from reviewgate.services.gateway import WebhookGateway
from reviewgate.services.github_service import GitHubService
from reviewgate.services.llm_service import CompletionProvider, build_completion_provider
from reviewgate.services.review_service import ReviewService
from reviewgate.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@dataclass(slots=True)
class Host:
    """Shared resources for one running gateway."""

    settings: Settings
    queue: EventQueue
    gateway: WebhookGateway
    provider: CompletionProvider
    review_service: ReviewService
    processor: WebhookProcessor

    async def start(self) -> None:
        await self.queue.start()
        await self.gateway.start()
        logger.info(
            "reviewgate started with provider=%s model=%s",
            self.settings.llm_provider,
            self.provider.model_name,
        )

    async def stop(self) -> None:
        await self.gateway.stop()
        await self.queue.stop()
        await self.provider.aclose()
        logger.info("reviewgate shutdown complete")


def create_host(settings: Settings | None = None) -> Host:
    """Build every collaborator from settings without starting anything."""
    settings = settings or get_settings()
    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set; only public repositories can be reviewed.")

    provider = build_completion_provider(settings)
    review_service = ReviewService(llm_provider=provider)
    github_service = GitHubService(token=settings.github_token, api_url=settings.github_api_url)
    processor = WebhookProcessor(
        vcs=github_service,
        review_service=review_service,
        review_config=settings.review_config(),
    )
    queue = EventQueue(maxsize=settings.event_queue_size, handler=processor.process_event)
    gateway = WebhookGateway(settings=settings, queue=queue)
    return Host(
        settings=settings,
        queue=queue,
        gateway=gateway,
        provider=provider,
        review_service=review_service,
        processor=processor,
    )


async def serve(settings: Settings | None = None) -> None:
    """Run the gateway until the server is asked to exit."""
    host = create_host(settings)
    await host.start()
    try:
        await host.gateway.wait_closed()
    finally:
        await host.stop()


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    with suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))
