"""Publishes rendered RSS documents to durable storage."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import re
from typing import Mapping, Optional, Protocol

from github_rss.crawlers.github_client import sanitize_log_extra
from github_rss.exceptions import ConfigurationError, PublishError
from github_rss.models.repository import FeedType

logger = logging.getLogger(__name__)

RSS_CONTENT_TYPE = "application/rss+xml"
RSS_PREFIX = "rss"

_PATH_KEY = re.compile(r"^[a-z0-9_.-]+$")


class ArtifactPublisher(Protocol):
    """Stores one document per (repository, feed type) and returns its URL."""

    async def publish(self, repository_path_key: str, documents: Mapping[str, str]) -> dict[str, Optional[str]]: ...

    def url_for(self, repository_path_key: str, feed_type: FeedType | str) -> str: ...


def object_key(repository_path_key: str, feed_type: FeedType | str) -> str:
    """`rss/{owner}-{repo}/{feedType}.xml`"""
    return f"{RSS_PREFIX}/{repository_path_key}/{FeedType(feed_type).value}.xml"


def validate_path_key(repository_path_key: str) -> str:
    if not _PATH_KEY.match(repository_path_key) or repository_path_key.startswith("."):
        raise PublishError(f"Invalid repository path key: {repository_path_key!r}")
    return repository_path_key


class FilesystemPublisher:
    """Writes feeds under `output_dir` and serves them from `public_base_url`.

    Every publish overwrites the previous document for the same key. A failed
    write only loses that feed type; the others are still stored.
    """

    def __init__(self, *, output_dir: Optional[str | Path], public_base_url: Optional[str]) -> None:
        self._output_dir = Path(output_dir) if output_dir else None
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _require_config(self) -> tuple[Path, str]:
        if self._output_dir is None or not self._public_base_url:
            raise ConfigurationError("RSS_OUTPUT_DIR and PUBLIC_BASE_URL must both be configured to publish feeds")
        return self._output_dir, self._public_base_url

    def url_for(self, repository_path_key: str, feed_type: FeedType | str) -> str:
        _, base_url = self._require_config()
        return f"{base_url}/{object_key(repository_path_key, feed_type)}"

    def path_for(self, repository_path_key: str, feed_type: FeedType | str) -> Path:
        output_dir, _ = self._require_config()
        return output_dir / object_key(validate_path_key(repository_path_key), feed_type)

    async def publish(self, repository_path_key: str, documents: Mapping[str, str]) -> dict[str, Optional[str]]:
        self._require_config()
        validate_path_key(repository_path_key)

        feed_types = list(documents.keys())
        results = await asyncio.gather(
            *(self._publish_one(repository_path_key, feed_type, documents[feed_type]) for feed_type in feed_types)
        )
        return dict(zip(feed_types, results))

    async def _publish_one(self, repository_path_key: str, feed_type: str, xml: str) -> Optional[str]:
        try:
            target = self.path_for(repository_path_key, feed_type)
            await asyncio.to_thread(self._write, target, xml)
        except (OSError, PublishError) as exc:
            logger.warning(
                "Failed to publish feed",
                extra=sanitize_log_extra(repository=repository_path_key, feed_type=feed_type, error=str(exc)),
            )
            return None
        return self.url_for(repository_path_key, feed_type)

    @staticmethod
    def _write(target: Path, xml: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(".xml.tmp")
        tmp.write_text(xml, encoding="utf-8")
        tmp.replace(target)

    def read(self, repository_path_key: str, feed_type: FeedType | str) -> Optional[str]:
        """Return a stored document, or None when it was never published."""
        target = self.path_for(repository_path_key, feed_type)
        if not target.is_file():
            return None
        return target.read_text(encoding="utf-8")
