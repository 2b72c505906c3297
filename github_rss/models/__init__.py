"""Database models"""

from github_rss.models.repository import (
    ALL_FEED_TYPES,
    FeedType,
    Repository,
    RepositoryStatus,
    empty_feeds,
)

__all__ = [
    "ALL_FEED_TYPES",
    "FeedType",
    "Repository",
    "RepositoryStatus",
    "empty_feeds",
]
