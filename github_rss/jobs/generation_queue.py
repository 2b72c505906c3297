"""Background hand-off between the lookup entry point and the orchestrator."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from github_rss.crawlers.github_client import sanitize_log_extra
from github_rss.exceptions import RecordNotFound

logger = logging.getLogger(__name__)


class GenerationQueue:
    """FIFO of repository ids consumed by a single worker task.

    An id that is already waiting is not queued twice.
    """

    def __init__(self, orchestrator: Any) -> None:
        self._orchestrator = orchestrator
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._queued: set[str] = set()
        self._worker: Optional[asyncio.Task] = None
        self.processed: int = 0

    def enqueue(self, repository_id: str) -> bool:
        if repository_id in self._queued:
            return False
        self._queued.add(repository_id)
        self._queue.put_nowait(repository_id)
        logger.info("Generation job enqueued", extra={"repository_id": repository_id})
        return True

    def is_queued(self, repository_id: str) -> bool:
        return repository_id in self._queued

    def __len__(self) -> int:
        return self._queue.qsize()

    async def run_worker(self) -> None:
        """Consume jobs until cancelled."""
        while True:
            repository_id = await self._queue.get()
            self._queued.discard(repository_id)
            try:
                await self.process(repository_id)
            finally:
                self._queue.task_done()

    async def process(self, repository_id: str) -> None:
        try:
            result = await self._orchestrator.generate(repository_id)
            self.processed += 1
            logger.info(
                "Generation job finished",
                extra=sanitize_log_extra(repository_id=repository_id, status=result.status, reason=result.reason),
            )
        except RecordNotFound:
            logger.warning("Generation job dropped, record no longer exists", extra={"repository_id": repository_id})
        except Exception as exc:
            logger.exception(
                "Generation job failed",
                extra=sanitize_log_extra(repository_id=repository_id, error=str(exc)),
            )

    async def drain(self) -> None:
        """Process everything queued right now without a running worker."""
        while not self._queue.empty():
            repository_id = self._queue.get_nowait()
            self._queued.discard(repository_id)
            try:
                await self.process(repository_id)
            finally:
                self._queue.task_done()

    def start(self) -> asyncio.Task:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self.run_worker(), name="feed-generation-worker")
        return self._worker

    async def join(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
