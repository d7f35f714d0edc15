"""Per-user activity counters with allow-list and time window filtering.

A ``Stats`` instance is created per repository worker, fed the fetched record
batches, and finally merged with the other workers' instances. Filtering only
happens while traversing records; ``merge`` adds counters as they are.
"""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from gh_overseer.models import (
    Issue,
    IssueComment,
    PullRequestComment,
    PullRequestReview,
    Record,
    ReviewState,
    to_utc,
)

COUNTERS = (
    "issues",
    "pull_requests",
    "issue_comments",
    "pr_review_comments",
    "lgtms",
    "labels",
)


@dataclass(frozen=True)
class FilterPolicy:
    """Which records count: allowed authors, a closed time window, LGTM markers."""

    allowed_users: frozenset[str]
    start: datetime
    end: datetime
    lgtm_comments: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_users", frozenset(self.allowed_users))
        object.__setattr__(self, "lgtm_comments", tuple(self.lgtm_comments))
        object.__setattr__(self, "start", to_utc(self.start))
        object.__setattr__(self, "end", to_utc(self.end))
        if self.start > self.end:
            msg = f"start ({self.start.isoformat()}) is after end ({self.end.isoformat()})"
            raise ValueError(msg)

    def is_user_allowed(self, user: str) -> bool:
        return user in self.allowed_users

    def within_time_range(self, dt: datetime | None) -> bool:
        """Check start <= dt <= end; a missing timestamp is never in range."""
        if dt is None:
            return False
        return self.start <= to_utc(dt) <= self.end

    def is_comment_lgtm(self, body: str) -> bool:
        return any(marker in body for marker in self.lgtm_comments)


@dataclass(eq=True)
class Stats:
    """Activity counters keyed by username.

    Equality compares the six counters only, so two instances built with
    different policies are equal when they counted the same activity.
    """

    policy: FilterPolicy = field(compare=False)
    logger: logging.Logger = field(
        default=logging.getLogger(__name__), compare=False, repr=False
    )

    issues: Counter[str] = field(default_factory=Counter)
    pull_requests: Counter[str] = field(default_factory=Counter)
    issue_comments: Counter[str] = field(default_factory=Counter)
    pr_review_comments: Counter[str] = field(default_factory=Counter)
    lgtms: Counter[str] = field(default_factory=Counter)
    labels: Counter[str] = field(default_factory=Counter)

    def traverse(self, records: Iterable[Record]) -> None:
        """Classify each record and bump the matching counter."""
        for record in records:
            self._count(record)

    def traverse_issues(self, issues: Iterable[Issue]) -> None:
        self.traverse(issues)

    def traverse_issue_comments(self, comments: Iterable[IssueComment]) -> None:
        self.traverse(comments)

    def traverse_pull_request_comments(self, comments: Iterable[PullRequestComment]) -> None:
        self.traverse(comments)

    def traverse_pull_request_reviews(self, reviews: Iterable[PullRequestReview]) -> None:
        self.traverse(reviews)

    def _count(self, record: Record) -> None:
        if not self._accepts(record):
            return

        match record:
            case Issue(is_pull_request=True):
                self.logger.debug("count pull request #%d by %s", record.number, record.author)
                self.add_pull_request(record.author)
            case Issue():
                self.logger.debug("count issue #%d by %s", record.number, record.author)
                self.add_issue(record.author)
            case IssueComment():
                self.logger.debug("count issue comment %d by %s", record.id, record.author)
                self.add_issue_comment(record.author)
            case PullRequestComment() if self.policy.is_comment_lgtm(record.body.strip()):
                self.logger.debug("count LGTM comment %d by %s", record.id, record.author)
                self.add_lgtm(record.author)
            case PullRequestComment():
                self.logger.debug("count review comment %d by %s", record.id, record.author)
                self.add_pr_review_comment(record.author)
            case PullRequestReview(state=ReviewState.APPROVED):
                self.logger.debug("count approval %d by %s", record.id, record.author)
                self.add_lgtm(record.author)
            case PullRequestReview():
                self.logger.debug(
                    "skip review %d by %s with state %s", record.id, record.author, record.state
                )

    def _accepts(self, record: Record) -> bool:
        """Apply the allow-list and the variant's time window rule."""
        within = self.policy.within_time_range
        match record:
            case Issue():
                in_window = within(record.created_at)
            case IssueComment() | PullRequestComment():
                in_window = within(record.created_at) or within(record.updated_at)
            case PullRequestReview():
                in_window = within(record.submitted_at)
            case _:
                raise TypeError(f"unsupported record type: {type(record).__name__}")

        user_allowed = self.policy.is_user_allowed(record.author)
        self.logger.debug(
            "filter %s %d [user_allowed] %s [within_time_range] %s",
            type(record).__name__,
            getattr(record, "number", None) or getattr(record, "id", 0),
            user_allowed,
            in_window,
        )
        return user_allowed and in_window

    def add_issue(self, user: str) -> None:
        self.issues[user] += 1

    def add_pull_request(self, user: str) -> None:
        self.pull_requests[user] += 1

    def add_issue_comment(self, user: str) -> None:
        self.issue_comments[user] += 1

    def add_pr_review_comment(self, user: str) -> None:
        self.pr_review_comments[user] += 1

    def add_lgtm(self, user: str) -> None:
        self.lgtms[user] += 1

    def add_label(self, user: str) -> None:
        # No fetch path produces label events yet
        self.labels[user] += 1

    def merge(self, other: "Stats") -> None:
        """Add all of other's counters into self. other's policy is ignored."""
        for name in COUNTERS:
            mine: Counter[str] = getattr(self, name)
            for user, delta in getattr(other, name).items():
                mine[user] += delta

    def users(self) -> list[str]:
        """Every user with at least one counted event, sorted."""
        return sorted(set().union(*(getattr(self, name) for name in COUNTERS)))

    def to_dict(self) -> dict[str, dict[str, int]]:
        """Export the counters as plain dicts, sorted by username."""
        return {name: dict(sorted(getattr(self, name).items())) for name in COUNTERS}

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in COUNTERS)
