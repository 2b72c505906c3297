"""Builds the service graph once from settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Any, Callable, Optional

import httpx

from github_rss.config.database import create_db_engine, create_session_factory, init_db
from github_rss.config.settings import Settings
from github_rss.crawlers.github_client import GitHubFeedClient
from github_rss.jobs.generation_queue import GenerationQueue
from github_rss.orchestrator import FeedGenerationOrchestrator
from github_rss.services.feed_service import RepositoryFeedService
from github_rss.services.publisher import FilesystemPublisher
from github_rss.services.repository_store import RepositoryStore


@dataclass(slots=True)
class Container:
    settings: Settings
    store: RepositoryStore
    github_client: GitHubFeedClient
    publisher: FilesystemPublisher
    orchestrator: FeedGenerationOrchestrator
    queue: Optional[GenerationQueue]
    service: RepositoryFeedService

    async def aclose(self) -> None:
        if self.queue is not None:
            await self.queue.stop()
        await self.github_client.aclose()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_container(
    settings: Settings,
    *,
    session_factory: Optional[Callable[[], Any]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Container:
    """Wire every capability from one settings object.

    Raises ConfigurationError when a required credential is missing.
    """
    if session_factory is None:
        engine = create_db_engine(settings.DATABASE_URL)
        init_db(engine)
        session_factory = create_session_factory(engine)

    store = RepositoryStore(session_factory)
    github_client = GitHubFeedClient(
        token=settings.GITHUB_TOKEN,
        token_required=settings.GITHUB_TOKEN_REQUIRED,
        base_url=settings.GITHUB_API_URL,
        per_page=settings.GITHUB_PER_PAGE,
        user_agent=settings.USER_AGENT,
        timeout_seconds=settings.GITHUB_TIMEOUT_SECONDS,
        max_retries=settings.GITHUB_MAX_RETRIES,
        backoff_base_seconds=settings.GITHUB_BACKOFF_BASE_SECONDS,
        backoff_max_seconds=settings.GITHUB_BACKOFF_MAX_SECONDS,
        rate_limit_buffer_seconds=settings.GITHUB_RATE_LIMIT_BUFFER_SECONDS,
        transport=transport,
    )
    publisher = FilesystemPublisher(output_dir=settings.RSS_OUTPUT_DIR, public_base_url=settings.PUBLIC_BASE_URL)
    orchestrator = FeedGenerationOrchestrator(
        store=store,
        github_client=github_client,
        publisher=publisher,
        fetch_timeout_seconds=settings.FEED_FETCH_TIMEOUT_SECONDS,
        staleness_window=timedelta(minutes=settings.FEED_STALENESS_MINUTES),
        generation_lease=timedelta(minutes=settings.GENERATION_LEASE_MINUTES),
    )
    queue = None if settings.INLINE_GENERATION else GenerationQueue(orchestrator)
    service = RepositoryFeedService(
        store=store,
        orchestrator=orchestrator,
        github_client=github_client,
        publisher=publisher,
        queue=queue,
        verify_repository_exists=settings.VERIFY_REPOSITORY_EXISTS,
    )
    return Container(
        settings=settings,
        store=store,
        github_client=github_client,
        publisher=publisher,
        orchestrator=orchestrator,
        queue=queue,
        service=service,
    )
