"""Configuration for talking to a Git Data API.

Three values are required to build a client: the account name, its personal
access token and the API URL of the repository, along the lines of
``https://api.github.com/repos/{owner}/{repo}``. They are usually supplied
through the environment (optionally from a ``.env`` file)::

    export GITHUB_USERNAME=octocat
    export GITHUB_TOKEN=ghp_xxxxxxxxxxxx
    export GITHUB_REPO_URL=https://api.github.com/repos/octocat/hello-world

Optional tuning:

    GITDATA_MAX_CONCURRENCY  blobs fetched/transformed at once (default 8)
    GITDATA_TIMEOUT          total HTTP timeout in seconds (default 30)
"""

import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_USERNAME = "GITHUB_USERNAME"
ENV_TOKEN = "GITHUB_TOKEN"
ENV_REPO_URL = "GITHUB_REPO_URL"
ENV_MAX_CONCURRENCY = "GITDATA_MAX_CONCURRENCY"
ENV_TIMEOUT = "GITDATA_TIMEOUT"

DEFAULT_MAX_CONCURRENCY = 8

TOKEN_PATTERNS = [
    r"^ghp_[a-zA-Z0-9]{36}$",  # Personal access tokens (classic)
    r"^github_pat_[a-zA-Z0-9_]{82}$",  # Fine-grained personal access tokens
    r"^ghs_[a-zA-Z0-9]{36}$",  # GitHub App installation tokens
    r"^ghu_[a-zA-Z0-9]{36}$",  # GitHub App user tokens
]


def is_valid_github_token(token: str) -> bool:
    """Validate GitHub token format"""
    if not token or len(token.strip()) == 0:
        return False
    return any(re.match(pattern, token.strip()) for pattern in TOKEN_PATTERNS)


class GitHubConfig(BaseModel):
    """Credentials and location of the repository to commit to."""

    username: str = Field(min_length=1)
    personal_access_token: str = Field(min_length=1)
    repo_url: str = Field(min_length=1)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("username", "personal_access_token")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("repo_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value.rstrip("/")

    def model_post_init(self, __context) -> None:
        if not is_valid_github_token(self.personal_access_token):
            logger.warning("⚠️ GitHub token format appears invalid")

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "GitHubConfig":
        missing = [
            name
            for name in (ENV_USERNAME, ENV_TOKEN, ENV_REPO_URL)
            if not values.get(name)
        ]
        if missing:
            raise ConfigurationError(f"missing {', '.join(missing)}")

        data = {
            "username": values[ENV_USERNAME],
            "personal_access_token": values[ENV_TOKEN],
            "repo_url": values[ENV_REPO_URL],
        }
        if values.get(ENV_MAX_CONCURRENCY):
            data["max_concurrency"] = values[ENV_MAX_CONCURRENCY]
        if values.get(ENV_TIMEOUT):
            data["timeout_seconds"] = values[ENV_TIMEOUT]

        try:
            return cls(**data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(problems) from e

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "GitHubConfig":
        """Build the configuration from the process environment.

        If ``env_file`` exists it is loaded first; variables already set in the
        environment take precedence over the file.
        """
        if env_file is not None:
            if env_file.exists():
                load_dotenv(env_file, override=False)
                logger.info(f"Loaded environment variables from {env_file}")
            else:
                logger.debug(f"🔍 No .env file at {env_file}")
        return cls.from_mapping(os.environ)
