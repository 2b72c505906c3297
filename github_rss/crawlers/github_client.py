"""Async GitHub client that fetches repository activity per feed type."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from github_rss.exceptions import ConfigurationError, GatewayError
from github_rss.models.repository import FeedType

logger = logging.getLogger(__name__)

_REDACTED = "***REDACTED***"
# Log fields that carry a credential, and fields that carry a GitHub response body
_CREDENTIAL_FIELDS = ("authorization", "token")
_BODY_FIELDS = ("body",)
_CREDENTIAL_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)[^\s,;]+"),
    re.compile(r"(?i)(token\s*[=:]\s*)[^\s,;&]+"),
    re.compile(r"()\bgh[pousr]_[A-Za-z0-9]{20,}"),
)

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 50


def sanitize_for_log(value: Any, *, key: Optional[str] = None) -> Any:
    """Redact GitHub credentials and response bodies from a log value."""
    field = (key or "").lower()
    if any(name in field for name in _CREDENTIAL_FIELDS):
        return _REDACTED
    if isinstance(value, dict):
        return {str(name): sanitize_for_log(item, key=str(name)) for name, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_log(item) for item in value]
    if not isinstance(value, str):
        return value
    if any(name in field for name in _BODY_FIELDS):
        return f"<redacted payload ({len(value)} chars)>" if value.strip() else ""
    for pattern in _CREDENTIAL_PATTERNS:
        value = pattern.sub(rf"\1{_REDACTED}", value)
    return value


def sanitize_log_extra(**kwargs: Any) -> dict[str, Any]:
    """Helper for `extra=` payloads in structured logging."""

    return {key: sanitize_for_log(value, key=key) for key, value in kwargs.items()}


class _RateLimitRetryableError(Exception):
    """Retryable rate-limit signal for tenacity."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GitHubFeedClient:
    """GitHub REST client for the four RSS feed types.

    404 responses mean "this repository has no such activity" and come back as
    an empty list; any other failure raises `GatewayError`.
    """

    BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"
    ACCEPT_JSON = "application/vnd.github+json"

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        token_required: bool = False,
        base_url: Optional[str] = None,
        per_page: int = DEFAULT_PER_PAGE,
        user_agent: str = "GitHub-RSS-Generator/1.0",
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 16.0,
        rate_limit_buffer_seconds: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if token_required and not token:
            raise ConfigurationError("GitHub token is required but GITHUB_TOKEN is not set")

        self._token = token
        self._base_url = (base_url or self.BASE_URL).rstrip("/")
        self._per_page = max(1, min(int(per_page), MAX_PER_PAGE))
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._max_retries = max(1, max_retries)
        self._backoff_base_seconds = backoff_base_seconds
        self._backoff_max_seconds = backoff_max_seconds
        self._rate_limit_buffer_seconds = rate_limit_buffer_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def per_page(self) -> int:
        return self._per_page

    async def __aenter__(self) -> "GitHubFeedClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_endpoint(self, owner: str, repo: str, feed_type: FeedType | str) -> tuple[str, dict[str, Any]]:
        """Return the API path and query parameters for one feed type."""
        feed_type = FeedType(feed_type)
        base = f"/repos/{owner}/{repo}"
        if feed_type in (FeedType.ISSUES, FeedType.PULL_REQUESTS):
            resource = "issues" if feed_type == FeedType.ISSUES else "pulls"
            return f"{base}/{resource}", {
                "state": "all",
                "sort": "created",
                "direction": "desc",
                "per_page": self._per_page,
            }
        if feed_type == FeedType.RELEASES:
            return f"{base}/releases", {"per_page": self._per_page}
        return f"{base}/discussions", {"per_page": self._per_page}

    async def fetch_feed(self, owner: str, repo: str, feed_type: FeedType | str) -> list[dict[str, Any]]:
        path, params = self.build_endpoint(owner, repo, feed_type)
        response = await self._request(path, params=params)

        if response.status_code == 404:
            logger.info(
                "GitHub feed source not found, treating as empty",
                extra=sanitize_log_extra(path=path, feed_type=FeedType(feed_type).value),
            )
            return []

        self._raise_for_status(response, path)
        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning(
                "GitHub API returned a non-JSON body",
                extra=sanitize_log_extra(path=path, status_code=response.status_code, body=response.text),
            )
            raise GatewayError(
                f"GitHub API returned invalid JSON for {path}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        return payload if isinstance(payload, list) else []

    async def repository_exists(self, owner: str, repo: str) -> bool:
        path = f"/repos/{owner}/{repo}"
        response = await self._request(path)
        if response.status_code == 404:
            return False
        self._raise_for_status(response, path)
        return True

    async def _request(self, path: str, *, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        client = await self._ensure_client()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_base_seconds, max=self._backoff_max_seconds),
                retry=retry_if_exception_type(_RateLimitRetryableError),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(path, params=params)
                    if self._is_rate_limited(response):
                        wait_seconds = self._compute_rate_limit_wait(response.headers)
                        logger.warning(
                            "GitHub API rate limit encountered",
                            extra=sanitize_log_extra(
                                path=path,
                                params=params,
                                status_code=response.status_code,
                                retry_after_seconds=wait_seconds,
                            ),
                        )
                        if wait_seconds > 0:
                            await asyncio.sleep(min(wait_seconds, self._backoff_max_seconds))
                        raise _RateLimitRetryableError(
                            f"GitHub rate limit encountered ({response.status_code})",
                            status_code=response.status_code,
                            body=response.text,
                        )
                    return response
        except _RateLimitRetryableError as exc:
            logger.warning(
                "GitHub request failed after rate-limit retries",
                extra=sanitize_log_extra(path=path, error=str(exc), status_code=exc.status_code),
            )
            raise GatewayError(str(exc), status_code=exc.status_code, body=exc.body) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc)),
            )
            raise GatewayError(f"GitHub request failed: {exc}") from exc

        raise GatewayError("Unknown GitHub request failure")

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        body = response.text
        logger.warning(
            "GitHub API returned an error status",
            extra=sanitize_log_extra(path=path, status_code=response.status_code, body=body),
        )
        raise GatewayError(
            f"GitHub API error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            body=body,
        )

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        headers = {
            "Accept": self.ACCEPT_JSON,
            "User-Agent": self._user_agent,
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
        )
        return self._client

    def _compute_rate_limit_wait(self, headers: httpx.Headers) -> float:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass

        reset_raw = headers.get("x-ratelimit-reset")
        if reset_raw is not None:
            try:
                reset_epoch = int(reset_raw)
                wait_seconds = reset_epoch - int(time.time()) + self._rate_limit_buffer_seconds
                return float(max(wait_seconds, 0))
            except ValueError:
                pass

        return self._backoff_base_seconds
