"""Tests for record models and timestamp helpers."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from gh_overseer.models import (
    Issue,
    IssueComment,
    PullRequestComment,
    PullRequestReview,
    ReviewState,
    parse_timestamp,
    to_utc,
)


class TestTimestamps:
    """Tests for parse_timestamp and to_utc."""

    def test_parse_zulu(self) -> None:
        """Test parsing a GitHub 'Z' timestamp."""
        assert parse_timestamp("2024-01-15T10:30:00Z") == datetime(
            2024, 1, 15, 10, 30, tzinfo=UTC
        )

    def test_parse_offset_normalized(self) -> None:
        """Test an offset timestamp is converted to UTC."""
        parsed = parse_timestamp("2024-01-15T12:30:00+02:00")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_parse_none_and_empty(self) -> None:
        """Test missing timestamps parse to None."""
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_parse_invalid(self) -> None:
        """Test garbage raises ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

    def test_to_utc_naive(self) -> None:
        """Test naive datetimes are taken as UTC."""
        assert to_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_to_utc_aware(self) -> None:
        """Test aware datetimes are converted."""
        dt = datetime(2024, 1, 1, 5, tzinfo=timezone(timedelta(hours=5)))
        assert to_utc(dt) == datetime(2024, 1, 1, 0, tzinfo=UTC)


class TestIssue:
    """Tests for Issue.from_api."""

    def test_plain_issue(self, issue_payloads: list[dict]) -> None:
        """Test an issue without the pull_request key."""
        issue = Issue.from_api(issue_payloads[0])
        assert issue.number == 1
        assert issue.author == "alice"
        assert issue.is_pull_request is False
        assert issue.created_at == datetime(2024, 1, 15, 10, tzinfo=UTC)

    def test_pull_request_marker(self, issue_payloads: list[dict]) -> None:
        """Test the pull_request key marks the item as a PR."""
        issue = Issue.from_api(issue_payloads[1])
        assert issue.is_pull_request is True
        assert issue.state == "closed"

    def test_missing_user(self) -> None:
        """Test a ghost user becomes the empty author."""
        issue = Issue.from_api(
            {"number": 9, "user": None, "created_at": "2024-01-01T00:00:00Z"}
        )
        assert issue.author == ""

    def test_missing_created_at_rejected(self) -> None:
        """Test an item without created_at cannot be built."""
        with pytest.raises((KeyError, ValidationError)):
            Issue.from_api({"number": 9, "user": {"login": "alice"}})

    def test_frozen(self, issue_payloads: list[dict]) -> None:
        """Test records are immutable."""
        issue = Issue.from_api(issue_payloads[0])
        with pytest.raises(ValidationError):
            issue.author = "bob"


class TestComments:
    """Tests for comment models."""

    def test_issue_comment(self) -> None:
        """Test an issue comment payload with issue_url."""
        comment = IssueComment.from_api(
            {
                "id": 100,
                "issue_url": "https://api.github.com/repos/owner/repo/issues/7",
                "user": {"login": "bob"},
                "body": "Thanks!",
                "created_at": "2024-01-02T00:00:00Z",
                "updated_at": "2024-01-03T00:00:00Z",
            }
        )
        assert comment.issue_number == 7
        assert comment.author == "bob"
        assert comment.updated_at == datetime(2024, 1, 3, tzinfo=UTC)

    def test_issue_comment_without_update(self) -> None:
        """Test updated_at is optional."""
        comment = IssueComment.from_api(
            {"id": 1, "user": {"login": "bob"}, "body": None, "created_at": "2024-01-02T00:00:00Z"}
        )
        assert comment.updated_at is None
        assert comment.body == ""
        assert comment.issue_number is None

    def test_pull_request_comment(self) -> None:
        """Test a review comment payload."""
        comment = PullRequestComment.from_api(
            {
                "id": 200,
                "pull_request_url": "https://api.github.com/repos/owner/repo/pulls/12",
                "user": {"login": "alice"},
                "body": "LGTM",
                "created_at": "2024-01-02T00:00:00Z",
                "updated_at": "2024-01-04T00:00:00Z",
            }
        )
        assert comment.pull_number == 12
        assert comment.updated_at == datetime(2024, 1, 4, tzinfo=UTC)

    def test_pull_request_comment_without_user(self) -> None:
        """Test a missing user maps to the empty author and updated_at falls back."""
        comment = PullRequestComment.from_api(
            {"id": 201, "body": "x", "created_at": "2024-01-02T00:00:00Z"}
        )
        assert comment.author == ""
        assert comment.updated_at == comment.created_at


class TestReviews:
    """Tests for PullRequestReview and ReviewState."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("APPROVED", ReviewState.APPROVED),
            ("approved", ReviewState.APPROVED),
            ("CHANGES_REQUESTED", ReviewState.CHANGES_REQUESTED),
            ("COMMENTED", ReviewState.COMMENTED),
            ("DISMISSED", ReviewState.DISMISSED),
            ("PENDING", ReviewState.PENDING),
            ("SOMETHING_NEW", None),
            (None, None),
        ],
    )
    def test_state_parse(self, raw: str | None, expected: ReviewState | None) -> None:
        """Test review state strings map onto the enum."""
        assert ReviewState.parse(raw) is expected

    def test_pending_review_has_no_submission(self) -> None:
        """Test a pending review without submitted_at."""
        review = PullRequestReview.from_api(
            {"id": 5, "user": {"login": "alice"}, "state": "PENDING", "body": ""}
        )
        assert review.state is ReviewState.PENDING
        assert review.submitted_at is None

    def test_approved_review(self) -> None:
        """Test an approved review payload."""
        review = PullRequestReview.from_api(
            {
                "id": 6,
                "user": {"login": "alice"},
                "state": "APPROVED",
                "body": "ship it",
                "submitted_at": "2024-01-20T08:00:00Z",
            }
        )
        assert review.state is ReviewState.APPROVED
        assert review.submitted_at == datetime(2024, 1, 20, 8, tzinfo=UTC)
