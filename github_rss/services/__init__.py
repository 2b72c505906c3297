"""Feed generation services."""

from github_rss.services.publisher import ArtifactPublisher, FilesystemPublisher
from github_rss.services.repository_store import RepositoryStore
from github_rss.services.rss_renderer import FeedItem, clean_description, render_feed
from github_rss.services.staleness import is_servable, needs_refresh
from github_rss.services.url_parser import ParsedGitHubUrl, parse_github_url

__all__ = [
    "ArtifactPublisher",
    "FilesystemPublisher",
    "RepositoryStore",
    "FeedItem",
    "clean_description",
    "render_feed",
    "is_servable",
    "needs_refresh",
    "ParsedGitHubUrl",
    "parse_github_url",
]
