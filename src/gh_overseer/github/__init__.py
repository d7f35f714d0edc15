"""GitHub API clients."""

from gh_overseer.github.auth import AuthenticationError, GitHubAuth
from gh_overseer.github.http import (
    GitHubClient,
    GitHubHTTPError,
    GitHubResponse,
    HTTPRateLimitState,
    RateLimitExceeded,
    RateLimitInfo,
)
from gh_overseer.github.rest import RestClient

__all__ = [
    "AuthenticationError",
    "GitHubAuth",
    "GitHubClient",
    "GitHubHTTPError",
    "GitHubResponse",
    "HTTPRateLimitState",
    "RateLimitExceeded",
    "RateLimitInfo",
    "RestClient",
]
