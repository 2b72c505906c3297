from __future__ import annotations

from typing import Any

import pytest

from github_rss.config.database import create_db_engine, create_session_factory, init_db
from github_rss.exceptions import GatewayError
from github_rss.models.repository import FeedType
from github_rss.services.publisher import FilesystemPublisher
from github_rss.services.repository_store import RepositoryStore

PUBLIC_BASE_URL = "https://feeds.example.com"


class FakeGitHubClient:
    """Serves canned payloads per feed type; `failures` raise instead."""

    def __init__(
        self,
        data: dict[str, list[dict[str, Any]]] | None = None,
        failures: dict[str, Exception] | None = None,
        exists: bool = True,
    ) -> None:
        self.data = data or {}
        self.failures = failures or {}
        self.exists = exists
        self.fetch_calls: list[tuple[str, str, str]] = []
        self.exists_calls: list[tuple[str, str]] = []

    async def fetch_feed(self, owner: str, repo: str, feed_type: Any) -> list[dict[str, Any]]:
        key = FeedType(feed_type).value
        self.fetch_calls.append((owner, repo, key))
        if key in self.failures:
            raise self.failures[key]
        return list(self.data.get(key, []))

    async def repository_exists(self, owner: str, repo: str) -> bool:
        self.exists_calls.append((owner, repo))
        return self.exists

    async def aclose(self) -> None:
        return None


def sample_payloads() -> dict[str, list[dict[str, Any]]]:
    return {
        "issues": [
            {
                "number": 7,
                "title": "Crash on start",
                "html_url": "https://github.com/octocat/hello-world/issues/7",
                "body": "Steps: run `app`",
                "created_at": "2024-03-01T10:00:00Z",
            }
        ],
        "pullRequests": [
            {
                "number": 8,
                "title": "Fix crash",
                "html_url": "https://github.com/octocat/hello-world/pull/8",
                "body": None,
                "created_at": "2024-03-02T10:00:00Z",
            }
        ],
        "releases": [
            {
                "tag_name": "v1.0.0",
                "name": "First",
                "html_url": "https://github.com/octocat/hello-world/releases/tag/v1.0.0",
                "body": "## Notes\n- initial",
                "published_at": "2024-03-03T10:00:00Z",
                "created_at": "2024-03-02T09:00:00Z",
            }
        ],
    }


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> RepositoryStore:
    return RepositoryStore(session_factory)


@pytest.fixture
def publisher(tmp_path) -> FilesystemPublisher:
    return FilesystemPublisher(output_dir=tmp_path / "public", public_base_url=PUBLIC_BASE_URL)


@pytest.fixture
def github_client() -> FakeGitHubClient:
    return FakeGitHubClient(data=sample_payloads())


@pytest.fixture
def gateway_error() -> GatewayError:
    return GatewayError("GitHub API error: 502 Bad Gateway", status_code=502, body="upstream")
