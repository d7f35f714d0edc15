"""Collection orchestrator.

Runs one worker per configured repository. Each worker fetches the issue list,
then fans out three dependent fetches and folds every batch into its own
``Stats``. Finished ``Stats`` are handed over through a queue and merged into
the final report once every worker is done.
"""

import asyncio
import logging
from datetime import datetime

from gh_overseer.collect.aggregator import FilterPolicy, Stats
from gh_overseer.collect.fetcher import Fetcher, InvalidRepositoryError
from gh_overseer.config import Config
from gh_overseer.github.auth import AuthenticationError, GitHubAuth
from gh_overseer.github.http import GitHubClient
from gh_overseer.github.rest import RestClient

logger = logging.getLogger(__name__)


class CollectionError(Exception):
    """Raised when collection cannot start at all."""


def build_policy(config: Config, start_time: datetime, end_time: datetime) -> FilterPolicy:
    """Build the filter policy shared (by copy) by every repository worker."""
    return FilterPolicy(
        allowed_users=frozenset(config.review.users),
        start=start_time,
        end=end_time,
        lgtm_comments=tuple(config.review.lgtm_comments),
    )


async def collect_repo_stats(
    fetcher: Fetcher,
    stats: Stats,
    logger: logging.Logger = logger,
) -> Stats:
    """Fetch one repository's activity and fold it into stats.

    Args:
        fetcher: Fetcher bound to the repository.
        stats: Empty Stats owned by this worker.
        logger: Logger for progress lines.

    Returns:
        The same stats instance, filled in. Left empty when no issues came back.
    """
    issues_and_prs = await fetcher.fetch_issues()
    if not issues_and_prs:
        # Zero issues in range and a failed fetch look the same here
        logger.warning("no issues and pull requests fetched for '%s'", fetcher.full_name)
        return stats
    stats.traverse_issues(issues_and_prs)

    issue_numbers = [i.number for i in issues_and_prs if not i.is_pull_request]
    pull_numbers = [i.number for i in issues_and_prs if i.is_pull_request]

    # Start all three before awaiting any
    issue_comments = fetcher.fetch_issue_comments(issue_numbers)
    pull_request_comments = fetcher.fetch_pull_request_comments()
    pull_request_reviews = fetcher.fetch_pull_request_reviews(pull_numbers)

    try:
        stats.traverse_issue_comments(await issue_comments)
        stats.traverse_pull_request_comments(await pull_request_comments)
        stats.traverse_pull_request_reviews(await pull_request_reviews)
    except BaseException:
        # Timeouts and worker failures must not leave fetches running
        for task in (issue_comments, pull_request_comments, pull_request_reviews):
            task.cancel()
        raise

    logger.info(
        "collected '%s': %d issues, %d pull requests",
        fetcher.full_name,
        len(issue_numbers),
        len(pull_numbers),
    )
    return stats


async def _run_worker(
    fetcher: Fetcher,
    stats: Stats,
    results: asyncio.Queue[Stats],
    timeout: float | None,
    logger: logging.Logger,
) -> None:
    try:
        finished = await asyncio.wait_for(collect_repo_stats(fetcher, stats, logger), timeout)
    except TimeoutError:
        logger.error(
            "collection for '%s' timed out after %.1fs, dropping it", fetcher.full_name, timeout
        )
        return
    # The worker hands over its Stats and no longer touches it
    results.put_nowait(finished)


async def run_collection(
    config: Config,
    start_time: datetime,
    end_time: datetime,
    rest_client: RestClient,
    logger: logging.Logger = logger,
) -> Stats:
    """Collect and merge stats for every configured repository.

    A malformed repository identifier or a failing worker only loses that
    repository; the others still contribute.

    Args:
        config: Application configuration (users, repos, LGTM markers).
        start_time: Inclusive window start.
        end_time: Inclusive window end.
        rest_client: REST client shared by all workers.
        logger: Logger for progress and failure lines.

    Returns:
        The merged Stats. Empty when no worker produced anything.
    """
    policy = build_policy(config, start_time, end_time)
    logger.info("time range: %s ~ %s", policy.start.isoformat(), policy.end.isoformat())

    results: asyncio.Queue[Stats] = asyncio.Queue()
    repos: list[str] = []
    tasks: list[asyncio.Task[None]] = []

    for repo in config.review.repos:
        try:
            fetcher = Fetcher(rest_client, repo, policy.start, logger=logger)
        except InvalidRepositoryError as e:
            logger.error("failed to init fetcher for '%s': %s", repo, e)
            continue
        worker = _run_worker(
            fetcher,
            Stats(policy, logger=logger),
            results,
            config.collection.repo_timeout_seconds,
            logger,
        )
        repos.append(repo)
        tasks.append(asyncio.create_task(worker, name=f"collect {repo}"))

    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    for repo, outcome in zip(repos, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            logger.error("failed to finish task for '%s': %s", repo, outcome)

    merged: Stats | None = None
    while not results.empty():
        stats = results.get_nowait()
        if merged is None:
            merged = stats
        else:
            merged.merge(stats)

    if merged is None:
        logger.info("no stats generated at all")
        return Stats(policy, logger=logger)

    logger.info("all stats merged for %d users", len(merged.users()))
    return merged


async def collect_stats(config: Config, start_time: datetime, end_time: datetime) -> Stats:
    """Build the GitHub clients from config and run the collection.

    Raises:
        CollectionError: If no usable GitHub token is available.
    """
    try:
        auth = GitHubAuth(token=config.github_personal_token())
    except AuthenticationError as e:
        raise CollectionError(str(e)) from e

    http_client = GitHubClient(auth=auth)
    rest_client = RestClient(
        http_client, max_concurrent_requests=config.collection.max_concurrent_requests
    )
    logger.info("github client instance built")

    try:
        return await run_collection(config, start_time, end_time, rest_client)
    finally:
        state = http_client.rate_limit_state
        remaining = state.last_rate_limit.remaining if state.last_rate_limit else None
        logger.info(
            "github requests made: %d, rate limit hits: %d, remaining quota: %s",
            state.requests_made,
            state.rate_limit_hits,
            remaining,
        )
        await http_client.close()
