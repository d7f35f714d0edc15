"""Activity records fetched from the GitHub REST API.

Every record is an immutable pydantic model built from a raw API payload via
``from_api``. The four variants form the closed ``Record`` union that the
aggregator dispatches on. Timestamps are always timezone-aware UTC.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to an aware UTC instant.

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_timestamp(ts: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp (e.g. "2024-01-15T10:30:00Z") to UTC.

    Args:
        ts: Timestamp string, or None.

    Returns:
        Aware UTC datetime, or None if ts is None or empty.

    Raises:
        ValueError: If ts is not a valid ISO 8601 timestamp.
    """
    if not ts:
        return None
    return to_utc(datetime.fromisoformat(ts.replace("Z", "+00:00")))


def _login(user: dict[str, Any] | None) -> str:
    if not user:
        return ""
    return user.get("login") or ""


def _trailing_number(url: str | None) -> int | None:
    if not url:
        return None
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else None


class ReviewState(str, Enum):
    """Outcome of a pull request review."""

    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"

    @classmethod
    def parse(cls, value: str | None) -> "ReviewState | None":
        """Return the matching state, or None for missing/unknown values."""
        if not value:
            return None
        try:
            return cls(value.upper())
        except ValueError:
            return None


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Issue(_Record):
    """An issue or, when is_pull_request is set, a pull request."""

    number: int
    title: str = ""
    state: str = ""
    author: str
    created_at: datetime
    is_pull_request: bool = False

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Issue":
        """Build from a /repos/{owner}/{repo}/issues item."""
        return cls(
            number=payload["number"],
            title=payload.get("title") or "",
            state=payload.get("state") or "",
            author=_login(payload.get("user")),
            created_at=parse_timestamp(payload["created_at"]),
            # The issues endpoint marks pull requests with a "pull_request" object
            is_pull_request=payload.get("pull_request") is not None,
        )


class IssueComment(_Record):
    """A comment on an issue."""

    id: int
    issue_number: int | None = None
    author: str
    body: str = ""
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "IssueComment":
        """Build from a /repos/{owner}/{repo}/issues/{n}/comments item."""
        return cls(
            id=payload["id"],
            issue_number=_trailing_number(payload.get("issue_url")),
            author=_login(payload.get("user")),
            body=payload.get("body") or "",
            created_at=parse_timestamp(payload["created_at"]),
            updated_at=parse_timestamp(payload.get("updated_at")),
        )


class PullRequestComment(_Record):
    """A review comment on a line of a pull request diff."""

    id: int
    pull_number: int | None = None
    author: str
    body: str = ""
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "PullRequestComment":
        """Build from a /repos/{owner}/{repo}/pulls/comments item."""
        created_at = parse_timestamp(payload["created_at"])
        return cls(
            id=payload["id"],
            pull_number=_trailing_number(payload.get("pull_request_url")),
            author=_login(payload.get("user")),
            body=payload.get("body") or "",
            created_at=created_at,
            updated_at=parse_timestamp(payload.get("updated_at")) or created_at,
        )


class PullRequestReview(_Record):
    """A submitted (or pending) pull request review."""

    id: int
    author: str
    body: str = ""
    state: ReviewState | None = None
    submitted_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "PullRequestReview":
        """Build from a /repos/{owner}/{repo}/pulls/{n}/reviews item."""
        return cls(
            id=payload["id"],
            author=_login(payload.get("user")),
            body=payload.get("body") or "",
            state=ReviewState.parse(payload.get("state")),
            submitted_at=parse_timestamp(payload.get("submitted_at")),
        )


Record = Issue | IssueComment | PullRequestComment | PullRequestReview
