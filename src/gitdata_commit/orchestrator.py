"""One new commit from a batch of content transforms.

The Git Data API has no transaction spanning calls. A run therefore walks a
fixed sequence of states; every object created before the final ref update
is unreachable from the branch, so a run that stops early leaves the branch
as it was. The ref update is the commit point.

    PENDING -> BRANCH_RESOLVED -> COMMIT_RESOLVED -> TREE_RESOLVED
            -> ITEMS_UPDATED -> TREE_CREATED -> COMMIT_CREATED -> REF_UPDATED

An empty selection ends in NO_CHANGES without writing anything; a failure in
any step ends in ABORTED and re-raises the original error.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import DEFAULT_MAX_CONCURRENCY
from .errors import DecodingFailure, ErrorContext, RefUpdateConflict, UnexpectedStatus
from .github.api import GitDataAPI
from .github.models import Author, TreeItem
from .updater import BatchItemUpdater, ItemUpdater

logger = logging.getLogger(__name__)


class CommitState(Enum):
    PENDING = "pending"
    BRANCH_RESOLVED = "branch_resolved"
    COMMIT_RESOLVED = "commit_resolved"
    TREE_RESOLVED = "tree_resolved"
    ITEMS_UPDATED = "items_updated"
    TREE_CREATED = "tree_created"
    COMMIT_CREATED = "commit_created"
    REF_UPDATED = "ref_updated"
    NO_CHANGES = "no_changes"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (CommitState.REF_UPDATED, CommitState.NO_CHANGES, CommitState.ABORTED)


# The step each state leads to, used to name the operation that failed.
_NEXT_STEP = {
    CommitState.PENDING: "resolve branch",
    CommitState.BRANCH_RESOLVED: "fetch commit",
    CommitState.COMMIT_RESOLVED: "fetch tree",
    CommitState.TREE_RESOLVED: "update items",
    CommitState.ITEMS_UPDATED: "create tree",
    CommitState.TREE_CREATED: "create commit",
    CommitState.COMMIT_CREATED: "update ref",
}

_READ_ONLY_STEPS = {CommitState.PENDING, CommitState.BRANCH_RESOLVED, CommitState.COMMIT_RESOLVED}


@dataclass
class CommitResult:
    branch: str
    state: CommitState
    parent_sha: Optional[str] = None
    base_tree_sha: Optional[str] = None
    tree_sha: Optional[str] = None
    commit_sha: Optional[str] = None
    updated_items: list[TreeItem] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.state == CommitState.REF_UPDATED

    @property
    def updated_paths(self) -> list[str]:
        return sorted(item.path for item in self.updated_items)


class BatchCommit:
    """A single run turning ``updater`` into one commit on ``branch``.

    The caller's ``author`` is used as both author and committer. A run is
    single-use: call ``run()`` once.
    """

    def __init__(
        self,
        api: GitDataAPI,
        updater: ItemUpdater,
        branch: str,
        author: Author,
        message: str,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        self.api = api
        self.updater = updater
        self.branch = branch
        self.author = author
        self.message = message
        self.max_concurrency = max_concurrency
        self.state = CommitState.PENDING
        self.history: list[CommitState] = [CommitState.PENDING]
        self.error_context: Optional[ErrorContext] = None
        self.result = CommitResult(branch=branch, state=CommitState.PENDING)

    def _advance(self, state: CommitState) -> None:
        logger.debug(f"{self.branch}: {self.state.value} -> {state.value}")
        self.state = state
        self.result.state = state
        self.history.append(state)

    def _abort(self, error: BaseException) -> None:
        failed_at = self.state
        self.error_context = ErrorContext(
            error=error,
            operation=_NEXT_STEP.get(failed_at, failed_at.value),
            branch=self.branch,
            before_commit_point=_branch_untouched(failed_at, error),
            read_only=failed_at in _READ_ONLY_STEPS,
            metadata={"state": failed_at.value, "parent_sha": self.result.parent_sha},
        )
        self._advance(CommitState.ABORTED)
        logger.error(
            f"Commit on '{self.branch}' aborted: {self.error_context.describe()}",
            extra={"branch": self.branch, "state": failed_at.value},
        )

    async def run(self) -> CommitResult:
        if self.state != CommitState.PENDING:
            raise RuntimeError(f"BatchCommit already ran (state {self.state.value})")

        started = time.monotonic()
        try:
            await self._run()
        except BaseException as e:
            self._abort(e)
            raise

        duration_ms = round((time.monotonic() - started) * 1000, 1)
        if self.state == CommitState.NO_CHANGES:
            logger.info(
                f"Nothing to commit on '{self.branch}'",
                extra={"branch": self.branch, "duration_ms": duration_ms},
            )
        else:
            logger.info(
                f"✅ '{self.branch}' now at {self.result.commit_sha} "
                f"({len(self.result.updated_items)} files)",
                extra={
                    "branch": self.branch,
                    "sha": self.result.commit_sha,
                    "duration_ms": duration_ms,
                },
            )
        return self.result

    async def _run(self) -> None:
        result = self.result

        branch = await self.api.resolve_branch(self.branch)
        result.parent_sha = branch.head_sha
        self._advance(CommitState.BRANCH_RESOLVED)

        commit = await self.api.get_commit(result.parent_sha)
        result.base_tree_sha = commit.tree_sha
        self._advance(CommitState.COMMIT_RESOLVED)

        tree = await self.api.get_tree(result.base_tree_sha, recursive=True)
        if tree.truncated:
            raise DecodingFailure(
                f"tree {tree.sha} listing was truncated by the server"
            )
        self._advance(CommitState.TREE_RESOLVED)

        batch = BatchItemUpdater(tree.items, self.updater, self.max_concurrency)
        result.updated_items = await batch.update(self.api)
        if not result.updated_items:
            self._advance(CommitState.NO_CHANGES)
            return
        self._advance(CommitState.ITEMS_UPDATED)

        result.tree_sha = await self.api.create_tree(result.base_tree_sha, result.updated_items)
        self._advance(CommitState.TREE_CREATED)

        new_commit_sha = await self.api.create_commit(
            self.author, self.message, result.parent_sha, result.tree_sha
        )
        self._advance(CommitState.COMMIT_CREATED)

        # Commit point: the branch changes only if this call succeeds.
        await self.api.update_ref(self.branch, new_commit_sha, force=False)
        result.commit_sha = new_commit_sha
        self._advance(CommitState.REF_UPDATED)


def _branch_untouched(failed_at: CommitState, error: BaseException) -> bool:
    if failed_at != CommitState.COMMIT_CREATED:
        return True
    # The ref update itself failed. Only an explicit 4xx refusal leaves the
    # branch as it was; anything else may have reached the store.
    if isinstance(error, RefUpdateConflict):
        return True
    return isinstance(error, UnexpectedStatus) and 400 <= error.status < 500


async def new_commit_updating_items(
    api: GitDataAPI,
    updater: ItemUpdater,
    branch: str,
    author: Author,
    message: str,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> CommitResult:
    """Apply ``updater`` to ``branch`` and commit the result in one commit."""
    return await BatchCommit(
        api, updater, branch, author, message, max_concurrency=max_concurrency
    ).run()
