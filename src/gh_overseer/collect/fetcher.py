"""Background fetches of one repository's activity records.

Each fetch operation starts immediately as an asyncio task and resolves to a
single batch (a list of records). Remote failures never propagate: they are
logged and degrade to an empty batch, or to a batch missing the failed issue
or pull request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import ValidationError

from gh_overseer.github.http import GitHubHTTPError
from gh_overseer.models import (
    Issue,
    IssueComment,
    PullRequestComment,
    PullRequestReview,
    to_utc,
)

if TYPE_CHECKING:
    from gh_overseer.github.rest import RestClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors absorbed by the fetcher; anything else is a bug and propagates
FETCH_ERRORS = (
    GitHubHTTPError,
    httpx.HTTPError,
    ValidationError,
    KeyError,
    ValueError,
    TypeError,
)


class InvalidRepositoryError(ValueError):
    """Raised when a repository identifier is not of the form 'owner/name'."""


def split_repo(repo: str) -> tuple[str, str]:
    """Split 'owner/name' into its two parts.

    Raises:
        InvalidRepositoryError: If either part is missing.
    """
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name:
        msg = f"invalid repo name '{repo}', should be 'owner/repo_name'"
        raise InvalidRepositoryError(msg)
    return owner, name


class Fetcher:
    """Fetches issues, comments and reviews of a single repository."""

    def __init__(
        self,
        rest_client: RestClient,
        repo: str,
        start_time: datetime,
        logger: logging.Logger = logger,
    ) -> None:
        """Initialize the fetcher.

        Args:
            rest_client: Shared REST client.
            repo: Repository identifier, 'owner/name'.
            start_time: Only activity updated at or after this instant is requested.
            logger: Logger for progress and failure lines.

        Raises:
            InvalidRepositoryError: If repo is not 'owner/name'.
        """
        self.owner, self.repo_name = split_repo(repo)
        self._rest = rest_client
        self._since = to_utc(start_time).isoformat().replace("+00:00", "Z")
        self._logger = logger
        self._logger.info("fetcher init with repo '%s'", self.full_name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo_name}"

    def fetch_issues(self) -> asyncio.Task[list[Issue]]:
        """Fetch every issue and pull request updated since the start time."""

        async def run() -> list[Issue]:
            try:
                payloads = await self._rest.list_issues(
                    self.owner, self.repo_name, state="all", since=self._since
                )
                return [Issue.from_api(p) for p in payloads]
            except FETCH_ERRORS as e:
                self._logger.error("failed to fetch issues from %s: %s", self.full_name, e)
                return []

        return self._spawn("issues", run)

    def fetch_issue_comments(
        self, issue_numbers: Iterable[int]
    ) -> asyncio.Task[list[IssueComment]]:
        """Fetch comments of the given issues. Pull request numbers must not be passed."""
        numbers = list(issue_numbers)

        async def fetch_one(number: int) -> list[IssueComment]:
            payloads = await self._rest.list_issue_comments(
                self.owner, self.repo_name, number, since=self._since
            )
            return [IssueComment.from_api(p) for p in payloads]

        return self._spawn(
            "issue comments", lambda: self._fetch_each(numbers, fetch_one, "issue comments")
        )

    def fetch_pull_request_comments(self) -> asyncio.Task[list[PullRequestComment]]:
        """Fetch review comments of all pull requests created or updated since the start time."""

        async def run() -> list[PullRequestComment]:
            try:
                payloads = await self._rest.list_pull_request_comments(
                    self.owner, self.repo_name, since=self._since
                )
                return [PullRequestComment.from_api(p) for p in payloads]
            except FETCH_ERRORS as e:
                self._logger.error(
                    "failed to fetch pull request comments from %s: %s", self.full_name, e
                )
                return []

        return self._spawn("pull request comments", run)

    def fetch_pull_request_reviews(
        self, pull_numbers: Iterable[int]
    ) -> asyncio.Task[list[PullRequestReview]]:
        """Fetch all reviews of the given pull requests, regardless of time."""
        numbers = list(pull_numbers)

        async def fetch_one(number: int) -> list[PullRequestReview]:
            payloads = await self._rest.list_reviews(self.owner, self.repo_name, number)
            return [PullRequestReview.from_api(p) for p in payloads]

        return self._spawn(
            "pull request reviews",
            lambda: self._fetch_each(numbers, fetch_one, "pull request reviews"),
        )

    async def _fetch_each(
        self,
        numbers: list[int],
        fetch_one: Callable[[int], Awaitable[list[T]]],
        kind: str,
    ) -> list[T]:
        """Run fetch_one for each number in turn, skipping the ones that fail."""
        records: list[T] = []
        for number in numbers:
            try:
                records.extend(await fetch_one(number))
            except FETCH_ERRORS as e:
                self._logger.error(
                    "failed to fetch %s from %s#%d: %s", kind, self.full_name, number, e
                )
        return records

    def _spawn(
        self, kind: str, fetch: Callable[[], Coroutine[Any, Any, list[Any]]]
    ) -> asyncio.Task[Any]:
        self._logger.info("fetching %s from '%s'", kind, self.full_name)
        return asyncio.create_task(fetch(), name=f"fetch {kind} {self.full_name}")
