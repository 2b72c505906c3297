"""Freshness policy for cached feeds."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from github_rss.models.repository import RepositoryStatus

DEFAULT_STALENESS_WINDOW = timedelta(minutes=30)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def needs_refresh(
    record: Any,
    *,
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_STALENESS_WINDOW,
) -> bool:
    """True when a `ready` record's feeds are older than the window.

    Records in any other status are never cached, so there is nothing to refresh.
    """
    if record.status != RepositoryStatus.READY.value:
        return False

    last_update = as_utc(record.last_update)
    if last_update is None:
        return True
    current = as_utc(now) or datetime.now(UTC)
    return last_update <= current - window


def is_servable(
    record: Any,
    *,
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_STALENESS_WINDOW,
) -> bool:
    return record.status == RepositoryStatus.READY.value and not needs_refresh(record, now=now, window=window)
