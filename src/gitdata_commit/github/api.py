"""Typed Git Data API operations.

Each method is one request/response round trip. Reads (``get_*``,
``resolve_branch`` and the listings) have no side effects and can be
re-issued freely; ``create_*`` and ``update_ref`` change remote state.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence
from urllib.parse import quote

import aiohttp
from pydantic import TypeAdapter

from ..config import DEFAULT_MAX_CONCURRENCY, GitHubConfig
from ..errors import InvalidBranch, InvalidParameter, RefUpdateConflict, UnexpectedStatus
from .client import GitHubClient
from .codec import DirectoryEntry, decode_entries, decode_entry, decode_model, decode_with
from .models import (
    Author,
    Blob,
    Branch,
    BranchDetail,
    CreatedObject,
    GitCommit,
    NewBlob,
    NewCommit,
    NewTree,
    Reference,
    ReferencePatch,
    RepoCommit,
    Tag,
    Tree,
    TreeItem,
)

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100

_branches = TypeAdapter(list[Branch])
_tags = TypeAdapter(list[Tag])
_commits = TypeAdapter(list[RepoCommit])


def _segment(value: str, what: str) -> str:
    if not value or not value.strip():
        raise InvalidParameter(f"{what} must not be empty")
    return quote(value, safe="/")


class GitDataAPI:
    """Object client for one repository."""

    def __init__(self, client: GitHubClient, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        self.client = client
        self.max_concurrency = max_concurrency

    @classmethod
    @asynccontextmanager
    async def connect(cls, config: GitHubConfig) -> AsyncIterator["GitDataAPI"]:
        """Open a session for ``config`` and close it on exit."""
        async with aiohttp.ClientSession() as session:
            yield cls(
                GitHubClient.from_config(config, session),
                max_concurrency=config.max_concurrency,
            )

    # Repository APIs

    async def branches(self) -> list[Branch]:
        payload = await self.client.get("/branches", params={"per_page": MAX_PER_PAGE})
        return decode_with(_branches, payload, "branch list")

    async def resolve_branch(self, name: str) -> BranchDetail:
        """Look up a branch and its head commit.

        Raises InvalidBranch when the branch does not exist.
        """
        path = "/branches/" + _segment(name, "branch name")
        try:
            payload = await self.client.get(path)
        except UnexpectedStatus as e:
            if e.status == 404:
                raise InvalidBranch(name) from e
            raise
        return decode_model(BranchDetail, payload)

    async def assert_branch_exists(self, name: str) -> None:
        await self.resolve_branch(name)

    async def contents(self, path: str, branch: str) -> list[DirectoryEntry]:
        """Lists the content of a directory"""
        payload = await self.client.get(
            "/contents/" + quote(path.strip("/"), safe="/"),
            params={"ref": branch},
        )
        if isinstance(payload, dict):
            return [decode_entry(payload)]
        return decode_entries(payload)

    async def content(self, path: str, branch: str) -> DirectoryEntry:
        """Content of a single file"""
        payload = await self.client.get(
            "/contents/" + _segment(path.strip("/"), "path"),
            params={"ref": branch},
        )
        return decode_entry(payload)

    async def tags(self) -> list[Tag]:
        payload = await self.client.get("/tags")
        return decode_with(_tags, payload, "tag list")

    async def commits(
        self,
        sha: Optional[str] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        path: Optional[str] = None,
    ) -> list[RepoCommit]:
        """Returns a list of commits in reverse chronological order

        Args:
            sha: Starting commit or branch
            page: Index of the requested page, from 1
            per_page: Number of commits per page, at most 100
            path: Only commits touching this path are returned
        """
        params: dict[str, str] = {}
        if sha is not None:
            if not sha.strip():
                raise InvalidParameter("sha must not be empty")
            params["sha"] = sha
        if page is not None:
            if page < 1:
                raise InvalidParameter(f"page must be >= 1, got {page}")
            params["page"] = str(page)
        if per_page is not None:
            if not 1 <= per_page <= MAX_PER_PAGE:
                raise InvalidParameter(
                    f"per_page must be between 1 and {MAX_PER_PAGE}, got {per_page}"
                )
            params["per_page"] = str(per_page)
        if path is not None:
            if not path.strip():
                raise InvalidParameter("path must not be empty")
            params["path"] = path

        payload = await self.client.get("/commits", params=params)
        return decode_with(_commits, payload, "commit list")

    # Git APIs

    async def get_commit(self, sha: str) -> GitCommit:
        payload = await self.client.get("/git/commits/" + _segment(sha, "commit sha"))
        return decode_model(GitCommit, payload)

    async def get_tree(self, sha: str, recursive: bool = True) -> Tree:
        params = {"recursive": "1"} if recursive else None
        payload = await self.client.get(
            "/git/trees/" + _segment(sha, "tree sha"), params=params
        )
        return decode_model(Tree, payload)

    async def get_blob(self, sha: str) -> Blob:
        payload = await self.client.get("/git/blobs/" + _segment(sha, "blob sha"))
        return decode_model(Blob, payload)

    async def get_blob_content(self, sha: str) -> bytes:
        blob = await self.get_blob(sha)
        return blob.content

    async def create_blob(self, content: bytes) -> str:
        payload = await self.client.post("/git/blobs", NewBlob(content=content).to_wire())
        created = decode_model(CreatedObject, payload)
        logger.debug(f"Created blob {created.sha} ({len(content)} bytes)")
        return created.sha

    async def create_tree(self, base_sha: str, items: Sequence[TreeItem]) -> str:
        """Create a tree from ``base_sha`` plus the changed entries only.

        The store keeps every entry of the base tree that ``items`` does not
        list.
        """
        body = NewTree(base_tree=base_sha, items=list(items)).to_wire()
        payload = await self.client.post("/git/trees", body)
        created = decode_model(CreatedObject, payload)
        logger.debug(f"Created tree {created.sha} on base {base_sha} ({len(items)} changed)")
        return created.sha

    async def create_commit(
        self, author: Author, message: str, parent_sha: str, tree_sha: str
    ) -> str:
        """https://docs.github.com/rest/git/commits#create-a-commit"""
        body = NewCommit(
            message=message,
            tree=tree_sha,
            parents=[parent_sha],
            author=author,
            committer=author,
        ).to_wire()
        payload = await self.client.post("/git/commits", body)
        created = decode_model(CreatedObject, payload)
        logger.debug(f"Created commit {created.sha} (parent {parent_sha})")
        return created.sha

    async def update_ref(self, branch: str, sha: str, force: bool = False) -> Reference:
        """Point ``refs/heads/{branch}`` at ``sha``.

        Raises RefUpdateConflict when the store refuses a non-forced update
        because the branch moved.
        """
        path = "/git/refs/heads/" + _segment(branch, "branch name")
        try:
            payload = await self.client.patch(path, ReferencePatch(sha=sha, force=force).to_wire())
        except UnexpectedStatus as e:
            if _is_fast_forward_rejection(e):
                raise RefUpdateConflict(branch, sha, e.body) from e
            raise
        return decode_model(Reference, payload)


def _is_fast_forward_rejection(error: UnexpectedStatus) -> bool:
    if error.status not in (409, 422):
        return False
    return "fast forward" in (error.body or "").lower()
