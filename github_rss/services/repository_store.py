"""Persistence access for repository records."""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from github_rss.exceptions import AlreadyExists, RecordNotFound
from github_rss.models.repository import Repository, RepositoryStatus, empty_feeds, utcnow
from github_rss.services.url_parser import ParsedGitHubUrl

logger = logging.getLogger(__name__)


class RepositoryStore:
    """Reads and status transitions for `repositories` rows.

    Each call opens and closes its own session; returned rows are detached
    snapshots.
    """

    def __init__(self, session_factory: Callable[[], Any]) -> None:
        self._session_factory = session_factory

    def get(self, repository_id: str) -> Repository:
        db = self._session_factory()
        try:
            record = db.query(Repository).filter_by(id=repository_id).first()
        finally:
            db.close()
        if record is None:
            raise RecordNotFound(f"Repository {repository_id} not found")
        return record

    def find_by_owner_repo(self, owner: str, repo: str) -> Optional[Repository]:
        db = self._session_factory()
        try:
            return db.query(Repository).filter_by(owner=owner.lower(), repo=repo.lower()).first()
        finally:
            db.close()

    def insert(self, parsed: ParsedGitHubUrl, *, now: Optional[datetime] = None) -> Repository:
        """Create a `pending` record; a duplicate owner/repo raises AlreadyExists."""
        timestamp = now or utcnow()
        record = Repository(
            owner=parsed.owner,
            repo=parsed.repo,
            url=parsed.full_url,
            status=RepositoryStatus.PENDING.value,
            feeds=empty_feeds(),
            error=None,
            created_at=timestamp,
            last_update=timestamp,
        )
        db = self._session_factory()
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
            return record
        except IntegrityError as exc:
            db.rollback()
            raise AlreadyExists(f"Repository {parsed.owner}/{parsed.repo} is already tracked") from exc
        finally:
            db.close()

    def begin_generation(self, repository_id: str, *, lease: timedelta, now: Optional[datetime] = None) -> bool:
        """Atomically move a record into `generating`.

        Succeeds only if no other pass holds it, or the holder's lease expired.
        """
        timestamp = now or utcnow()
        statement = (
            update(Repository)
            .where(Repository.id == repository_id)
            .where(
                or_(
                    Repository.status != RepositoryStatus.GENERATING.value,
                    Repository.last_update.is_(None),
                    Repository.last_update < timestamp - lease,
                )
            )
            .values(status=RepositoryStatus.GENERATING.value, last_update=timestamp)
            .execution_options(synchronize_session=False)
        )
        db = self._session_factory()
        try:
            result = db.execute(statement)
            db.commit()
            return result.rowcount == 1
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def mark_ready(self, repository_id: str, feeds: Mapping[str, Optional[str]]) -> Repository:
        return self.update_status(repository_id, RepositoryStatus.READY, feeds=feeds)

    def mark_error(self, repository_id: str, message: str) -> Repository:
        return self.update_status(repository_id, RepositoryStatus.ERROR, error=message)

    def update_status(
        self,
        repository_id: str,
        status: RepositoryStatus | str,
        *,
        feeds: Optional[Mapping[str, Optional[str]]] = None,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Repository:
        """Apply a status transition; `error` survives only on the error status."""
        status = RepositoryStatus(status)
        db = self._session_factory()
        try:
            record = db.query(Repository).filter_by(id=repository_id).first()
            if record is None:
                raise RecordNotFound(f"Repository {repository_id} not found")

            record.status = status.value
            record.last_update = now or utcnow()
            if feeds is not None:
                merged = empty_feeds()
                merged.update({key: url for key, url in feeds.items() if key in merged})
                record.feeds = merged
            record.error = (error or "unknown error") if status == RepositoryStatus.ERROR else None
            db.commit()
            db.refresh(record)
            return record
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_by_status(self, statuses: Iterable[RepositoryStatus | str]) -> list[Repository]:
        """Records in the given statuses, oldest first."""
        values = [RepositoryStatus(status).value for status in statuses]
        db = self._session_factory()
        try:
            query = db.query(Repository).filter(Repository.status.in_(values))
            return list(query.order_by(Repository.created_at.asc()).all())
        finally:
            db.close()

    def list_all(self) -> list[Repository]:
        db = self._session_factory()
        try:
            return list(db.query(Repository).order_by(Repository.created_at.desc()).all())
        finally:
            db.close()
