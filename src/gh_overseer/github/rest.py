"""GitHub REST API client with pagination.

Provides the listing endpoints the fetcher needs, following Link headers until
the last page. A semaphore bounds the number of requests in flight across all
repository workers sharing one client.
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from typing import Any

from gh_overseer.github.http import GitHubClient, GitHubHTTPError

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')
PER_PAGE = 100


class RestClient:
    """GitHub REST API client with pagination and bounded concurrency."""

    def __init__(self, http_client: GitHubClient, max_concurrent_requests: int = 8) -> None:
        """Initialize REST API client.

        Args:
            http_client: GitHubClient instance for HTTP requests.
            max_concurrent_requests: Upper bound on simultaneous requests.
        """
        self._http = http_client
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)

    @staticmethod
    def _parse_link_header(link_header: str | None) -> dict[str, str]:
        """Parse a Link header into {rel: url}, e.g. {"next": url, "last": url}."""
        if not link_header:
            return {}
        links = {}
        for part in link_header.split(","):
            match = LINK_PATTERN.match(part.strip())
            if match:
                url, rel = match.groups()
                links[rel] = url
        return links

    async def _paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncIterator[list[Any]]:
        """Yield each page of a listing endpoint.

        A 404 ends the listing without items.

        Raises:
            GitHubHTTPError: If any page returns a non-success status.
        """
        url = path
        page_params = {"per_page": PER_PAGE, **(params or {})}
        page_num = 1

        while True:
            async with self._semaphore:
                # The next link already carries the query string
                response = await self._http.get(url, params=page_params if page_num == 1 else None)

            if response.status_code == 404:
                logger.debug("Resource not found (404): %s", url)
                return

            if not response.is_success:
                msg = f"GET {url} failed with status {response.status_code} (page {page_num})"
                raise GitHubHTTPError(msg)

            data = response.data
            if not isinstance(data, list):
                data = [data] if data else []
            yield data

            links = self._parse_link_header(response.headers.get("link"))
            if "next" not in links:
                break

            url = links["next"]
            page_num += 1
            logger.debug("Following pagination to page %d of %s", page_num, path)

    async def _collect(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        items: list[Any] = []
        async for page in self._paginate(path, params):
            items.extend(page)
        return items

    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str = "all",
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        """List issues and pull requests of a repository.

        Args:
            owner: Repository owner.
            repo: Repository name.
            state: "open", "closed" or "all".
            since: ISO 8601 timestamp; only items updated at or after it are returned.
        """
        params: dict[str, Any] = {"state": state, "sort": "updated", "direction": "desc"}
        if since:
            params["since"] = since
        return await self._collect(f"/repos/{owner}/{repo}/issues", params)

    async def list_issue_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        """List comments on one issue, optionally only those updated since a timestamp."""
        params = {"since": since} if since else None
        return await self._collect(f"/repos/{owner}/{repo}/issues/{issue_number}/comments", params)

    async def list_pull_request_comments(
        self,
        owner: str,
        repo: str,
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        """List review comments on every pull request of a repository."""
        params: dict[str, Any] = {"sort": "created", "direction": "asc"}
        if since:
            params["since"] = since
        return await self._collect(f"/repos/{owner}/{repo}/pulls/comments", params)

    async def list_reviews(self, owner: str, repo: str, pull_number: int) -> list[dict[str, Any]]:
        """List reviews of one pull request. The endpoint has no time filter."""
        return await self._collect(f"/repos/{owner}/{repo}/pulls/{pull_number}/reviews")
