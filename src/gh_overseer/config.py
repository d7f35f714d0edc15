"""Configuration loading and validation."""

import os
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from gh_overseer.models import to_utc

GITHUB_PERSONAL_TOKEN_ENV = "GH_OVERSEER_GITHUB_PERSONAL_TOKEN"


class AccessConfig(BaseModel):
    """Credentials for the GitHub API."""

    github_personal_token: str | None = None


class ReviewConfig(BaseModel):
    """Who and what to count."""

    users: list[str] = Field(default_factory=list)
    repos: list[str] = Field(default_factory=list, description="'owner/name' identifiers")
    lgtm_comments: list[str] = Field(
        default_factory=list,
        description="Substrings that mark a PR comment as an approval",
    )


class WindowsConfig(BaseModel):
    """Time window configuration. CLI flags take precedence."""

    since: datetime | None = None
    until: datetime | None = None

    @field_validator("since", "until")
    @classmethod
    def normalize_utc(cls, v: datetime | None) -> datetime | None:
        """Store both bounds as UTC instants."""
        return to_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_order(self) -> "WindowsConfig":
        """Validate that since is not after until."""
        if self.since and self.until and self.since > self.until:
            msg = (
                f"since ({self.since.isoformat()}) must not be after "
                f"until ({self.until.isoformat()})"
            )
            raise ValueError(msg)
        return self


class CollectionConfig(BaseModel):
    """Collection behavior."""

    max_concurrent_requests: int = Field(default=8, ge=1, le=100)
    repo_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Drop a repository whose worker runs longer than this",
    )


class Config(BaseModel):
    """Root configuration model."""

    access: AccessConfig = Field(default_factory=AccessConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    windows: WindowsConfig = Field(default_factory=WindowsConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)

    def github_personal_token(self) -> str | None:
        """Return the GitHub token, preferring the environment over the file."""
        return os.environ.get(GITHUB_PERSONAL_TOKEN_ENV) or self.access.github_personal_token


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValidationError: If the config is invalid.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open() as f:
        raw_config: dict[str, Any] = yaml.safe_load(f) or {}

    return Config.model_validate(raw_config)
