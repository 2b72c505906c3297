"""Feed generation orchestrator with per-feed-type failure isolation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
import logging
from typing import Any, Callable, Optional, Sequence

from github_rss.crawlers.github_client import sanitize_for_log, sanitize_log_extra
from github_rss.exceptions import GatewayError
from github_rss.models.repository import ALL_FEED_TYPES, FeedType, Repository, RepositoryStatus, empty_feeds
from github_rss.services.publisher import ArtifactPublisher
from github_rss.services.repository_store import RepositoryStore
from github_rss.services.rss_renderer import render_feed
from github_rss.services.staleness import DEFAULT_STALENESS_WINDOW, needs_refresh

logger = logging.getLogger(__name__)

BEST_EFFORT_FEED_TYPES = (FeedType.DISCUSSIONS,)
DEFAULT_FETCH_TIMEOUT_SECONDS = 60.0
DEFAULT_GENERATION_LEASE = timedelta(minutes=15)

REASON_FRESH = "fresh"
REASON_IN_PROGRESS = "generation already in progress"


@dataclass(slots=True)
class GenerationResult:
    """Outcome of one `generate` call."""

    repository_id: str
    status: str
    feeds: dict[str, Optional[str]] = field(default_factory=empty_feeds)
    error: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None
    failed_feed_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "status": self.status,
            "feeds": dict(self.feeds),
            "error": self.error,
            "skipped": self.skipped,
            "reason": self.reason,
            "failed_feed_types": list(self.failed_feed_types),
        }


class FeedGenerationOrchestrator:
    """Drives a repository through `generating` into `ready` or `error`.

    Fetch and render run per feed type; a GitHub failure for one type only
    leaves that feed empty. Anything that fails outside that boundary (the
    publisher being unconfigured, the store failing) marks the whole record as
    `error`.
    """

    def __init__(
        self,
        *,
        store: RepositoryStore,
        github_client: Any,
        publisher: ArtifactPublisher,
        renderer: Callable[..., str] = render_feed,
        feed_types: Sequence[FeedType] = ALL_FEED_TYPES,
        fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        staleness_window: timedelta = DEFAULT_STALENESS_WINDOW,
        generation_lease: timedelta = DEFAULT_GENERATION_LEASE,
    ) -> None:
        self._store = store
        self._github_client = github_client
        self._publisher = publisher
        self._renderer = renderer
        self._feed_types = tuple(feed_types)
        self._fetch_timeout_seconds = fetch_timeout_seconds
        self._staleness_window = staleness_window
        self._generation_lease = generation_lease

    @property
    def staleness_window(self) -> timedelta:
        return self._staleness_window

    async def generate(self, repository_id: str, *, force: bool = False) -> GenerationResult:
        record = self._store.get(repository_id)

        if not force and record.status == RepositoryStatus.READY.value and not needs_refresh(
            record, window=self._staleness_window
        ):
            return GenerationResult(
                repository_id=record.id,
                status=record.status,
                feeds=dict(record.feeds or empty_feeds()),
                skipped=True,
                reason=REASON_FRESH,
            )

        if not self._store.begin_generation(repository_id, lease=self._generation_lease):
            logger.info(
                "Generation rejected, another pass holds the repository",
                extra=sanitize_log_extra(repository=record.url),
            )
            return GenerationResult(
                repository_id=record.id,
                status=RepositoryStatus.GENERATING.value,
                feeds=dict(record.feeds or empty_feeds()),
                skipped=True,
                reason=REASON_IN_PROGRESS,
            )

        logger.info("Feed generation started", extra=sanitize_log_extra(repository=record.url, force=force))

        try:
            feeds, failed = await self._generate_feeds(record)
            committed = self._store.mark_ready(repository_id, feeds)
        except Exception as exc:
            message = sanitize_for_log(str(exc) or exc.__class__.__name__, key="error")
            logger.exception(
                "Feed generation failed",
                extra=sanitize_log_extra(repository=record.url, error=message),
            )
            self._store.mark_error(repository_id, message)
            return GenerationResult(
                repository_id=record.id,
                status=RepositoryStatus.ERROR.value,
                feeds=dict(record.feeds or empty_feeds()),
                error=message,
            )

        logger.info(
            "Feed generation completed",
            extra=sanitize_log_extra(repository=record.url, failed_feed_types=failed),
        )
        return GenerationResult(
            repository_id=committed.id,
            status=committed.status,
            feeds=dict(committed.feeds),
            failed_feed_types=failed,
        )

    async def _generate_feeds(self, record: Repository) -> tuple[dict[str, Optional[str]], list[str]]:
        rendered = await asyncio.gather(*(self._render_one(record, feed_type) for feed_type in self._feed_types))

        documents = {feed_type.value: xml for feed_type, xml in zip(self._feed_types, rendered) if xml is not None}
        published = await self._publisher.publish(record.path_key, documents) if documents else {}

        feeds = empty_feeds()
        feeds.update({key: url for key, url in published.items() if key in feeds})
        failed = [key for key, url in feeds.items() if url is None]
        return feeds, failed

    async def _render_one(self, record: Repository, feed_type: FeedType) -> Optional[str]:
        try:
            items = await asyncio.wait_for(
                self._github_client.fetch_feed(record.owner, record.repo, feed_type),
                timeout=self._fetch_timeout_seconds,
            )
        except (GatewayError, asyncio.TimeoutError) as exc:
            logger.warning(
                "Feed fetch failed",
                extra=sanitize_log_extra(
                    repository=record.url,
                    feed_type=feed_type.value,
                    status_code=getattr(exc, "status_code", None),
                    error=str(exc) or exc.__class__.__name__,
                ),
            )
            if feed_type not in BEST_EFFORT_FEED_TYPES:
                return None
            items = []

        return self._renderer(record, feed_type, items)
