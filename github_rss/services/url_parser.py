"""GitHub repository URL parsing."""

from __future__ import annotations

from dataclasses import dataclass
import re

from github_rss.exceptions import InvalidUrl

_GITHUB_REPO = re.compile(r"github\.com[/:]([^/\s?#:]+)/([^/\s?#]+)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ParsedGitHubUrl:
    owner: str
    repo: str

    @property
    def full_url(self) -> str:
        return canonical_url(self.owner, self.repo)

    # Renderer and publisher read the same attribute name as the stored record
    @property
    def url(self) -> str:
        return self.full_url


def canonical_url(owner: str, repo: str) -> str:
    return f"https://github.com/{owner}/{repo}"


def parse_github_url(github_url: str) -> ParsedGitHubUrl:
    """Extract a lowercased owner/repo pair, dropping a trailing `.git`."""
    match = _GITHUB_REPO.search(github_url or "")
    if not match:
        raise InvalidUrl(f"Invalid GitHub URL format: {github_url!r}")

    owner, repo = match.group(1), match.group(2)
    if repo.lower().endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise InvalidUrl(f"Invalid GitHub URL format: {github_url!r}")
    return ParsedGitHubUrl(owner=owner.lower(), repo=repo.lower())
