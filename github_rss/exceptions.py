"""Error taxonomy for the feed generation pipeline."""

from __future__ import annotations

from typing import Optional


class GitHubRssError(Exception):
    """Base error for the RSS generator."""


class InvalidUrl(GitHubRssError):
    """The input is not a `github.com/{owner}/{repo}` URL."""


class AlreadyExists(GitHubRssError):
    """A record for this owner/repo is already tracked."""


class RepositoryNotFound(GitHubRssError):
    """The repository does not exist upstream or is not accessible."""


class RecordNotFound(GitHubRssError):
    """No tracked record matches the given id."""


class GenerationInProgress(GitHubRssError):
    """Another pass holds the repository in `generating`."""


class ConfigurationError(GitHubRssError):
    """Required credentials or settings are missing."""


class PublishError(GitHubRssError):
    """Writing a rendered feed to storage failed."""


class GatewayError(GitHubRssError):
    """Non-404 failure returned by the GitHub API."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
