"""Authenticated HTTP transport for the Git Data API"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import aiohttp

from ..config import GitHubConfig
from ..errors import DecodingFailure, UnexpectedStatus
from .codec import decode_json

logger = logging.getLogger(__name__)

USER_AGENT = "gitdata-commit/0.1.0"


@dataclass
class GitHubClient:
    """Issues JSON requests against one repository's API URL.

    Every non-2xx answer raises UnexpectedStatus; callers that give specific
    statuses a meaning (missing branch, rejected ref update) catch and
    translate it.
    """

    username: str
    token: str
    repo_url: str
    session: aiohttp.ClientSession
    timeout: Optional[aiohttp.ClientTimeout] = None
    auth: aiohttp.BasicAuth = field(init=False, repr=False)

    def __post_init__(self):
        self.repo_url = self.repo_url.rstrip("/")
        self.auth = aiohttp.BasicAuth(self.username, self.token)

    @classmethod
    def from_config(
        cls, config: GitHubConfig, session: aiohttp.ClientSession
    ) -> "GitHubClient":
        return cls(
            username=config.username,
            token=config.personal_access_token,
            repo_url=config.repo_url,
            session=session,
            timeout=aiohttp.ClientTimeout(total=config.timeout_seconds),
        )

    def url(self, path: str) -> str:
        return f"{self.repo_url}/{path.lstrip('/')}"

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        url = self.url(path)
        logger.debug(f"{method} {url} params={dict(params or {})}")

        kwargs: dict[str, Any] = {"headers": self.headers, "auth": self.auth}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        async with self.session.request(method, url, **kwargs) as response:
            raw = await response.read()
            if not 200 <= response.status < 300:
                body = raw.decode("utf-8", errors="replace")
                logger.debug(f"{method} {url} -> {response.status}: {body[:200]}")
                raise UnexpectedStatus(response.status, body or None)
            logger.debug(f"{method} {url} -> {response.status}")
            if not raw:
                return None
            try:
                body = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodingFailure(f"Response body is not UTF-8: {e}") from e
            return decode_json(body)

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Make GET request to the repository API"""
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any) -> Any:
        """Make POST request to the repository API"""
        return await self.request("POST", path, json=body)

    async def patch(self, path: str, body: Any) -> Any:
        """Make PATCH request to the repository API"""
        return await self.request("PATCH", path, json=body)
