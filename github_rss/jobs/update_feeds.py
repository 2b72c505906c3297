"""Scheduled pass that (re)generates repositories waiting for feeds."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Sequence

from github_rss.crawlers.github_client import sanitize_for_log, sanitize_log_extra
from github_rss.models.repository import RepositoryStatus

logger = logging.getLogger(__name__)

SCHEDULED_STATUSES = (RepositoryStatus.PENDING, RepositoryStatus.GENERATING, RepositoryStatus.ERROR)


async def run_update_pass(
    *,
    store: Any,
    orchestrator: Any,
    statuses: Sequence[RepositoryStatus] = SCHEDULED_STATUSES,
) -> dict[str, Any]:
    """Generate every record in `statuses`, one repository at a time, oldest first.

    A `generating` record whose lease is still held is reported as skipped.
    """
    repositories = store.list_by_status(statuses)
    stats: dict[str, Any] = {
        "started_at": datetime.now(UTC).isoformat(),
        "repositories": len(repositories),
        "ready": 0,
        "failed": 0,
        "skipped": 0,
        "errors": [],
    }
    logger.info("Scheduled feed update started", extra={"repositories": len(repositories)})

    for record in repositories:
        try:
            result = await orchestrator.generate(record.id)
        except Exception as exc:
            stats["failed"] += 1
            stats["errors"].append(f"{record.owner}/{record.repo}: {sanitize_for_log(str(exc), key='error')}")
            logger.warning(
                "Scheduled generation raised",
                extra=sanitize_log_extra(repository=record.url, error=str(exc)),
            )
            continue

        if result.skipped:
            stats["skipped"] += 1
        elif result.status == RepositoryStatus.READY.value:
            stats["ready"] += 1
        else:
            stats["failed"] += 1
            stats["errors"].append(f"{record.owner}/{record.repo}: {result.error}")

    stats["completed_at"] = datetime.now(UTC).isoformat()
    stats["success"] = stats["failed"] == 0
    logger.info(
        "Scheduled feed update completed",
        extra=sanitize_log_extra(ready=stats["ready"], failed=stats["failed"], skipped=stats["skipped"]),
    )
    return stats
