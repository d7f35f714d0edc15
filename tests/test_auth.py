"""Tests for GitHub authentication module."""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gh_overseer.github.auth import AuthenticationError, GitHubAuth, _get_gh_cli_token


def gh_cli_result(returncode: int = 1, stdout: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    return result


class TestGitHubAuthValidTokens:
    """Tests for GitHubAuth initialization with valid tokens."""

    @pytest.mark.parametrize("prefix", ["ghp_", "gho_", "ghu_", "ghs_"])
    def test_valid_prefixed_token(self, prefix: str) -> None:
        """Test initialization with each accepted prefix."""
        token = prefix + "a" * 36
        assert GitHubAuth(token=token).token == token

    def test_valid_fine_grained_token(self) -> None:
        """Test initialization with a github_pat_ token."""
        token = "github_pat_11ABCDEFG0" + "x" * 60
        assert GitHubAuth(token=token).token == token

    def test_valid_classic_token(self) -> None:
        """Test initialization with valid classic token (40 hex chars)."""
        token = "abc123def456abc789def012abc345def6789abc"
        assert GitHubAuth(token=token).token == token


class TestGitHubAuthInvalidTokens:
    """Tests for GitHubAuth initialization with invalid tokens."""

    def test_missing_token_everywhere(self) -> None:
        """Test that AuthenticationError is raised when no source has a token."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("gh_overseer.github.auth.subprocess.run", return_value=gh_cli_result()),
            pytest.raises(AuthenticationError, match="GitHub token not found"),
        ):
            GitHubAuth(token=None)

    def test_empty_token_treated_as_missing(self) -> None:
        """Test an empty explicit token falls through to the other sources."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("gh_overseer.github.auth.subprocess.run", return_value=gh_cli_result()),
            pytest.raises(AuthenticationError, match="GitHub token not found"),
        ):
            GitHubAuth(token="")

    def test_invalid_prefix(self) -> None:
        """Test that AuthenticationError is raised for invalid prefix."""
        with pytest.raises(AuthenticationError, match="Invalid token format"):
            GitHubAuth(token="invalid_prefix_token123456")

    @pytest.mark.parametrize("token", ["g" * 40, "a" * 39])
    def test_invalid_classic_token(self, token: str) -> None:
        """Test non-hex or wrong-length classic tokens are rejected."""
        with pytest.raises(AuthenticationError, match="Invalid token format"):
            GitHubAuth(token=token)

    def test_token_too_short(self) -> None:
        """Test that AuthenticationError is raised for token that appears too short."""
        with pytest.raises(AuthenticationError, match="Token appears too short"):
            GitHubAuth(token="ghp_short")


class TestTokenSources:
    """Tests for token source precedence."""

    def test_overseer_env_var(self) -> None:
        """Test the GH_OVERSEER_GITHUB_PERSONAL_TOKEN variable is read."""
        token = "ghp_" + "e" * 36
        with patch.dict(os.environ, {"GH_OVERSEER_GITHUB_PERSONAL_TOKEN": token}, clear=True):
            assert GitHubAuth(token=None).token == token

    def test_overseer_env_var_before_github_token(self) -> None:
        """Test the tool's own variable beats GITHUB_TOKEN."""
        ours = "ghp_" + "f" * 36
        generic = "ghp_" + "g" * 36
        env = {"GH_OVERSEER_GITHUB_PERSONAL_TOKEN": ours, "GITHUB_TOKEN": generic}
        with patch.dict(os.environ, env, clear=True):
            assert GitHubAuth(token=None).token == ours

    def test_explicit_token_overrides_env(self) -> None:
        """Test that explicit token takes precedence over environment variables."""
        explicit = "ghp_" + "h" * 36
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_" + "i" * 36}, clear=True):
            assert GitHubAuth(token=explicit).token == explicit

    def test_falls_back_to_gh_cli(self) -> None:
        """Test GitHubAuth falls back to gh CLI when no env var is set."""
        token = "ghp_" + "o" * 36
        with (
            patch.dict(os.environ, {}, clear=True),
            patch(
                "gh_overseer.github.auth.subprocess.run",
                return_value=gh_cli_result(0, f"{token}\n"),
            ),
        ):
            assert GitHubAuth(token=None).token == token

    def test_env_var_takes_precedence_over_gh_cli(self) -> None:
        """Test GITHUB_TOKEN env var takes precedence over gh CLI."""
        env_token = "ghp_" + "p" * 36
        with (
            patch.dict(os.environ, {"GITHUB_TOKEN": env_token}, clear=True),
            patch(
                "gh_overseer.github.auth.subprocess.run",
                return_value=gh_cli_result(0, "ghp_" + "q" * 36),
            ) as run,
        ):
            assert GitHubAuth(token=None).token == env_token
            run.assert_not_called()


class TestGitHubAuthHeaders:
    """Tests for authorization header generation."""

    def test_get_authorization_header(self) -> None:
        """Test get_authorization_header returns correct dict."""
        token = "ghp_" + "h" * 36
        assert GitHubAuth(token=token).get_authorization_header() == {
            "Authorization": f"token {token}"
        }


class TestGhCliTokenLoading:
    """Tests for GitHub CLI token loading."""

    def test_success(self) -> None:
        """Test _get_gh_cli_token returns the stripped token when gh CLI succeeds."""
        token = "ghp_" + "n" * 36
        with patch(
            "gh_overseer.github.auth.subprocess.run", return_value=gh_cli_result(0, f"{token}\n")
        ):
            assert _get_gh_cli_token() == token

    @pytest.mark.parametrize(
        "outcome",
        [
            {"return_value": gh_cli_result(1, "")},
            {"return_value": gh_cli_result(0, "")},
            {"side_effect": FileNotFoundError("gh not found")},
            {"side_effect": subprocess.TimeoutExpired("gh", 5)},
        ],
    )
    def test_unavailable(self, outcome: dict) -> None:
        """Test failure, empty output, missing binary and timeout all yield None."""
        with patch("gh_overseer.github.auth.subprocess.run", **outcome):
            assert _get_gh_cli_token() is None
