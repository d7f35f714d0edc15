"""Async HTTP client for the GitHub API.

Handles authentication headers, retries with exponential backoff, and both
primary (x-ratelimit-remaining) and secondary (retry-after) rate limits.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from gh_overseer import __version__
from gh_overseer.github.auth import GitHubAuth

logger = logging.getLogger(__name__)


class RateLimitInfo(BaseModel):
    """GitHub API rate limit information from response headers."""

    limit: int
    remaining: int
    reset: datetime
    used: int
    resource: str = "core"

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> Optional["RateLimitInfo"]:
        """Extract rate limit info from response headers.

        Returns:
            RateLimitInfo if headers present, None otherwise.
        """
        if "x-ratelimit-limit" not in headers:
            return None

        return cls(
            limit=int(headers.get("x-ratelimit-limit", "0")),
            remaining=int(headers.get("x-ratelimit-remaining", "0")),
            reset=datetime.fromtimestamp(int(headers.get("x-ratelimit-reset", "0")), tz=UTC),
            used=int(headers.get("x-ratelimit-used", "0")),
            resource=headers.get("x-ratelimit-resource", "core"),
        )


@dataclass
class GitHubResponse:
    """GitHub API response with parsed data and metadata."""

    status_code: int
    data: Any
    headers: httpx.Headers
    rate_limit: RateLimitInfo | None = None
    url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class HTTPRateLimitState:
    """Tracks rate limit state across HTTP requests."""

    last_rate_limit: RateLimitInfo | None = None
    last_check: datetime = field(default_factory=lambda: datetime.now(UTC))
    requests_made: int = 0
    rate_limit_hits: int = 0

    def update(self, rate_limit: RateLimitInfo | None) -> None:
        """Record one request and the rate limit info it returned."""
        self.requests_made += 1
        if not rate_limit:
            return
        self.last_rate_limit = rate_limit
        self.last_check = datetime.now(UTC)
        if rate_limit.remaining == 0:
            self.rate_limit_hits += 1
            logger.warning(
                "Rate limit reached. Limit: %d, Reset: %s",
                rate_limit.limit,
                rate_limit.reset.isoformat(),
            )


class GitHubHTTPError(Exception):
    """Base exception for GitHub HTTP errors."""


class RateLimitExceeded(GitHubHTTPError):
    """Raised when rate limit is exceeded."""

    def __init__(self, reset_at: datetime) -> None:
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded. Resets at {reset_at.isoformat()}")


class GitHubClient:
    """Async HTTP client for GitHub API with rate limit handling."""

    BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0
    DEFAULT_MAX_RETRIES = 3
    INITIAL_BACKOFF = 1.0
    BACKOFF_MULTIPLIER = 2.0

    def __init__(
        self,
        auth: GitHubAuth | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_url: str = BASE_URL,
    ) -> None:
        """Initialize GitHub HTTP client.

        Args:
            auth: GitHubAuth instance. If None, resolves a token from the environment.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of retries for failed requests.
            base_url: Base URL for GitHub API.
        """
        self._auth = auth or GitHubAuth()
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_url = base_url.rstrip("/")

        self._client: httpx.AsyncClient | None = None
        self._rate_limit_state = HTTPRateLimitState()

    @property
    def rate_limit_state(self) -> HTTPRateLimitState:
        return self._rate_limit_state

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"gh-overseer/{__version__}",
        }
        headers.update(self._auth.get_authorization_header())
        return headers

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._get_headers(),
                follow_redirects=True,
            )
        return self._client

    def _rate_limit_wait(self, response: httpx.Response, attempt: int) -> float | None:
        """Return seconds to wait for a rate limited response, or None if not limited.

        Raises:
            RateLimitExceeded: If the primary limit is exhausted and retries are used up.
        """
        retry_after = response.headers.get("retry-after")
        if retry_after:
            logger.warning("Secondary rate limit hit. Retry after %s seconds", retry_after)
            return float(retry_after)

        rate_limit = RateLimitInfo.from_headers(response.headers)
        if rate_limit is None or rate_limit.remaining != 0:
            return None

        if attempt >= self._max_retries:
            raise RateLimitExceeded(reset_at=rate_limit.reset)

        wait_seconds = max((rate_limit.reset - datetime.now(UTC)).total_seconds(), 0) + 1
        logger.warning(
            "Primary rate limit exhausted. Waiting %d seconds until %s",
            wait_seconds,
            rate_limit.reset.isoformat(),
        )
        return wait_seconds

    def _backoff(self, attempt: int) -> float:
        return self.INITIAL_BACKOFF * (self.BACKOFF_MULTIPLIER**attempt)

    async def _do_request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute an HTTP request, retrying transient failures.

        Raises:
            GitHubHTTPError: On request failure after retries, or a 4xx other than 403/404.
            RateLimitExceeded: If the rate limit stays exhausted.
        """
        client = await self._ensure_client()

        for attempt in range(self._max_retries + 1):
            logger.debug("%s %s (attempt %d)", method, path, attempt + 1)
            try:
                response = await client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                logger.warning("Transport error for %s %s: %s", method, path, e)
                if attempt >= self._max_retries:
                    raise GitHubHTTPError(f"Request failed: {e}") from e
                await asyncio.sleep(self._backoff(attempt))
                continue

            if response.status_code in (429, 403):
                wait_seconds = self._rate_limit_wait(response, attempt)
                if wait_seconds is not None and attempt < self._max_retries:
                    await asyncio.sleep(wait_seconds)
                    continue

            if 500 <= response.status_code < 600:
                logger.warning("Server error %d for %s %s", response.status_code, method, path)
                if attempt >= self._max_retries:
                    break
                await asyncio.sleep(self._backoff(attempt))
                continue

            # 403 and 404 are returned to the caller
            if 400 <= response.status_code < 500 and response.status_code not in (403, 404):
                logger.error(
                    "Client error %d for %s %s: %s",
                    response.status_code,
                    method,
                    path,
                    response.text,
                )
                raise GitHubHTTPError(f"Client error {response.status_code} for {method} {path}")

            return response

        raise GitHubHTTPError(f"Max retries ({self._max_retries}) exceeded for {method} {path}")

    async def request(self, method: str, path: str, **kwargs: Any) -> GitHubResponse:
        """Make an HTTP request to GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: API path, or an absolute URL such as a pagination link.
            **kwargs: Additional arguments passed to httpx (params, json, etc.).

        Returns:
            GitHubResponse with parsed data and metadata.
        """
        response = await self._do_request(method, path, **kwargs)

        rate_limit = RateLimitInfo.from_headers(response.headers)
        self._rate_limit_state.update(rate_limit)

        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                logger.warning("Failed to parse JSON response: %s", e)
                data = response.text

        return GitHubResponse(
            status_code=response.status_code,
            data=data,
            headers=response.headers,
            rate_limit=rate_limit,
            url=str(response.url),
        )

    async def get(self, path: str, **kwargs: Any) -> GitHubResponse:
        return await self.request("GET", path, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
