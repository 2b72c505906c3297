"""Tracked GitHub repository and its RSS generation state."""

from datetime import UTC, datetime
import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from github_rss.config.database import Base


class RepositoryStatus(str, enum.Enum):
    """Generation lifecycle; every value except GENERATING is an idle rest state."""

    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


class FeedType(str, enum.Enum):
    """GitHub activity categories mirrored into RSS."""

    ISSUES = "issues"
    PULL_REQUESTS = "pullRequests"
    DISCUSSIONS = "discussions"
    RELEASES = "releases"


ALL_FEED_TYPES = (FeedType.ISSUES, FeedType.PULL_REQUESTS, FeedType.DISCUSSIONS, FeedType.RELEASES)


def empty_feeds() -> dict[str, None]:
    return {feed_type.value: None for feed_type in ALL_FEED_TYPES}


def utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class Repository(Base):
    """Repository record mapped to `repositories` table."""

    __tablename__ = "repositories"

    id = Column(String(32), primary_key=True, default=_new_id)
    owner = Column(String(100), nullable=False)
    repo = Column(String(100), nullable=False)
    url = Column(String(300), unique=True, nullable=False)

    status = Column(String(20), nullable=False, default=RepositoryStatus.PENDING.value)
    feeds = Column(JSON, nullable=False, default=empty_feeds)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_update = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_repositories_owner_repo", "owner", "repo", unique=True),
        Index("idx_repositories_status", "status"),
        Index("idx_repositories_last_update", "last_update"),
    )

    @property
    def path_key(self) -> str:
        """Storage key segment, `{owner}-{repo}`."""
        return f"{self.owner}-{self.repo}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "repo": self.repo,
            "url": self.url,
            "status": self.status,
            "feeds": dict(self.feeds or empty_feeds()),
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }

    def __repr__(self):
        return f"<Repository {self.owner}/{self.repo} ({self.status})>"
