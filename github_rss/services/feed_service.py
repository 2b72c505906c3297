"""Lookup entry point and repository-level operations."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Mapping, Optional

from github_rss.crawlers.github_client import sanitize_log_extra
from github_rss.exceptions import GenerationInProgress, RepositoryNotFound
from github_rss.models.repository import ALL_FEED_TYPES, Repository, RepositoryStatus
from github_rss.orchestrator import REASON_FRESH, FeedGenerationOrchestrator, GenerationResult
from github_rss.services.publisher import ArtifactPublisher
from github_rss.services.repository_store import RepositoryStore
from github_rss.services.staleness import is_servable, needs_refresh
from github_rss.services.url_parser import ParsedGitHubUrl, parse_github_url

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    found: bool
    repository: Optional[Repository]
    parsed_url: ParsedGitHubUrl
    direct_urls: dict[str, Optional[str]] = field(default_factory=dict)
    generation_triggered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "repository": self.repository.to_dict() if self.repository is not None else None,
            "parsed_url": {
                "owner": self.parsed_url.owner,
                "repo": self.parsed_url.repo,
                "full_url": self.parsed_url.full_url,
            },
            "direct_urls": dict(self.direct_urls),
            "generation_triggered": self.generation_triggered,
        }


class RepositoryFeedService:
    """Resolves GitHub URLs to tracked records and triggers generation.

    With a queue, generation is handed to the background worker and callers
    poll `search` to observe progress. Without one, it runs inline.
    """

    def __init__(
        self,
        *,
        store: RepositoryStore,
        orchestrator: FeedGenerationOrchestrator,
        github_client: Any,
        publisher: ArtifactPublisher,
        queue: Optional[Any] = None,
        verify_repository_exists: bool = True,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._github_client = github_client
        self._publisher = publisher
        self._queue = queue
        self._verify_repository_exists = verify_repository_exists

    async def search(self, github_url: str) -> SearchResult:
        parsed = parse_github_url(github_url)
        await self._ensure_exists_upstream(parsed)

        record = self._store.find_by_owner_repo(parsed.owner, parsed.repo)
        found = record is not None
        triggered = False

        if record is None:
            record = self._store.insert(parsed)
            logger.info("Repository record created", extra={"repository": parsed.full_url})
            record = await self._trigger(record.id)
            triggered = True
        elif needs_refresh(record, window=self._orchestrator.staleness_window):
            logger.info("Cached feeds are stale, regenerating", extra={"repository": parsed.full_url})
            record = await self._trigger(record.id)
            triggered = True

        return SearchResult(
            found=found,
            repository=record,
            parsed_url=parsed,
            direct_urls=dict(record.feeds or {}),
            generation_triggered=triggered,
        )

    async def create(self, github_url: str) -> Repository:
        """Track a new repository; raises AlreadyExists when it is known."""
        parsed = parse_github_url(github_url)
        await self._ensure_exists_upstream(parsed)
        record = self._store.insert(parsed)
        return await self._trigger(record.id)

    async def force_generate(self, repository_id: str) -> GenerationResult:
        return await self._orchestrator.generate(repository_id, force=True)

    def get_feeds(self, repository_id: str) -> dict[str, Optional[str]]:
        return dict(self._store.get(repository_id).feeds or {})

    async def get_feeds_with_cache(self, repository_id: str) -> dict[str, Optional[str]]:
        """Cached feeds while fresh, otherwise a synchronous regeneration."""
        record = self._store.get(repository_id)
        if is_servable(record, window=self._orchestrator.staleness_window):
            return dict(record.feeds or {})
        if record.status == RepositoryStatus.GENERATING.value:
            raise GenerationInProgress(f"Feeds for {record.owner}/{record.repo} are being generated")

        result = await self._orchestrator.generate(repository_id)
        if result.skipped and result.reason != REASON_FRESH:
            raise GenerationInProgress(f"Feeds for {record.owner}/{record.repo} are being generated")
        return dict(result.feeds)

    def get_direct_urls(self, repository_id: str) -> dict[str, str]:
        record = self._store.get(repository_id)
        return {feed_type.value: self._publisher.url_for(record.path_key, feed_type) for feed_type in ALL_FEED_TYPES}

    def get_pending(self) -> list[Repository]:
        return self._store.list_by_status((RepositoryStatus.PENDING, RepositoryStatus.GENERATING))

    def get_all(self) -> list[Repository]:
        return self._store.list_all()

    def update_status(
        self,
        repository_id: str,
        status: RepositoryStatus | str,
        feeds: Optional[Mapping[str, Optional[str]]] = None,
        error: Optional[str] = None,
    ) -> Repository:
        return self._store.update_status(repository_id, status, feeds=feeds, error=error)

    async def _ensure_exists_upstream(self, parsed: ParsedGitHubUrl) -> None:
        if not self._verify_repository_exists:
            return
        if not await self._github_client.repository_exists(parsed.owner, parsed.repo):
            logger.info("Repository not found on GitHub", extra=sanitize_log_extra(repository=parsed.full_url))
            raise RepositoryNotFound(f"Repository {parsed.owner}/{parsed.repo} not found on GitHub")

    async def _trigger(self, repository_id: str) -> Repository:
        if self._queue is not None:
            self._queue.enqueue(repository_id)
        else:
            await self._orchestrator.generate(repository_id)
        return self._store.get(repository_id)
