"""GitHub authentication.

Resolves the personal access token from, in order: an explicit value (usually
from the config file), the GH_OVERSEER_GITHUB_PERSONAL_TOKEN and GITHUB_TOKEN
environment variables, and finally the GitHub CLI.
"""

import logging
import os
import re
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GH_OVERSEER_GITHUB_PERSONAL_TOKEN", "GITHUB_TOKEN")


class AuthenticationError(Exception):
    """Raised when authentication fails or token is invalid."""


def _get_gh_cli_token() -> str | None:
    """Try to get token from `gh auth token`."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except FileNotFoundError:
        logger.debug("gh CLI not found")
        return None
    except subprocess.TimeoutExpired:
        logger.debug("gh CLI command timed out after 5 seconds")
        return None

    if result.returncode != 0:
        logger.debug("gh CLI returned non-zero exit code (%d)", result.returncode)
        return None
    return result.stdout.strip() or None


class GitHubAuth:
    """GitHub token holder.

    Accepted formats:
    - ghp_ / gho_ / ghu_ / ghs_ prefixed tokens
    - github_pat_ fine-grained tokens
    - classic 40 character hex tokens
    """

    VALID_PREFIXES = ("ghp_", "gho_", "ghu_", "ghs_", "github_pat_")
    CLASSIC_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{40}$")

    def __init__(self, token: str | None = None) -> None:
        """Resolve and validate the token.

        Args:
            token: Explicit token. Falls back to the environment, then gh CLI.

        Raises:
            AuthenticationError: If no token is found or its format is invalid.
        """
        source = "explicit parameter"
        loaded = token
        if not loaded:
            for env_var in TOKEN_ENV_VARS:
                if os.environ.get(env_var):
                    loaded = os.environ[env_var]
                    source = f"{env_var} environment variable"
                    break
        if not loaded:
            loaded = _get_gh_cli_token()
            source = "gh CLI"

        if not loaded:
            raise AuthenticationError(
                "GitHub token not found. Set access.github_personal_token in the config, "
                f"export one of {', '.join(TOKEN_ENV_VARS)}, or run `gh auth login`."
            )

        logger.info("Using GitHub token from %s", source)
        self._token: str = loaded
        self._validate_token()

    def _validate_token(self) -> None:
        token = self._token
        has_valid_prefix = token.startswith(self.VALID_PREFIXES)
        is_classic = bool(self.CLASSIC_TOKEN_PATTERN.match(token))

        if not has_valid_prefix and not is_classic:
            raise AuthenticationError(
                f"Invalid token format. Expected prefix {self.VALID_PREFIXES} "
                "or 40-character hex string (classic token)"
            )
        if has_valid_prefix and len(token) < 20:
            raise AuthenticationError("Token appears too short to be valid")

    @property
    def token(self) -> str:
        return self._token

    def get_authorization_header(self) -> dict[str, str]:
        """Get the Authorization header for API requests."""
        return {"Authorization": f"token {self._token}"}
