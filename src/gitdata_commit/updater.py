"""Batch item updates over a tree snapshot.

An ``ItemUpdater`` decides which tree items change and how their text
changes. ``BatchItemUpdater`` runs it in two phases:

1. fetch and transform every selected blob, concurrently;
2. only if every transform succeeded, store the new blobs.

A failing transform therefore creates no blob at all. The result is the set
of replacement items for a tree delta; unselected items never appear in it.
"""

import asyncio
import fnmatch
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence, Union, runtime_checkable

from .config import DEFAULT_MAX_CONCURRENCY
from .errors import DecodingFailure, InvalidParameter
from .github.api import GitDataAPI
from .github.models import TreeItem

logger = logging.getLogger(__name__)

UpdateResult = Union[str, Awaitable[str]]


@runtime_checkable
class ItemUpdater(Protocol):
    def items_to_update(self, items: Sequence[TreeItem]) -> list[TreeItem]:
        """Pick the items whose content should change."""
        ...

    def update(self, item: TreeItem, content: str) -> UpdateResult:
        """Return the new text for ``item``. May raise to abort the batch."""
        ...


@dataclass
class FunctionItemUpdater:
    """ItemUpdater built from a selection callable and a transform callable."""

    select: Callable[[Sequence[TreeItem]], Sequence[TreeItem]]
    transform: Callable[[TreeItem, str], UpdateResult]

    def items_to_update(self, items: Sequence[TreeItem]) -> list[TreeItem]:
        return list(self.select(items))

    def update(self, item: TreeItem, content: str) -> UpdateResult:
        return self.transform(item, content)


def path_matches(path: str, pattern: str) -> bool:
    """Match a slash-separated path against a glob, segment by segment."""
    return _match_segments(path.split("/"), pattern.strip("/").split("/"))


def _match_segments(parts: list[str], globs: list[str]) -> bool:
    if not globs:
        return not parts
    head, rest = globs[0], globs[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts or not fnmatch.fnmatchcase(parts[0], head):
        return False
    return _match_segments(parts[1:], rest)


class RegexItemUpdater:
    """Rewrite blobs whose path matches a glob with ``re.sub``.

    The glob is matched one path segment at a time: ``*`` stays within a
    directory and a ``**`` segment spans any number of directories.
    With ``require_match`` a selected file in which ``regex`` finds nothing
    fails the whole batch.
    """

    def __init__(
        self,
        pattern: str,
        regex: Union[str, "re.Pattern[str]"],
        replacement: str,
        require_match: bool = True,
    ):
        self.pattern = pattern
        try:
            self.regex = re.compile(regex, re.MULTILINE) if isinstance(regex, str) else regex
        except re.error as e:
            raise InvalidParameter(f"invalid regex {regex!r}: {e}") from e
        self.replacement = replacement
        self.require_match = require_match

    def items_to_update(self, items: Sequence[TreeItem]) -> list[TreeItem]:
        return [
            item
            for item in items
            if item.type == "blob" and path_matches(item.path, self.pattern)
        ]

    def update(self, item: TreeItem, content: str) -> str:
        new_content, count = self.regex.subn(self.replacement, content)
        if count == 0 and self.require_match:
            raise ValueError(f"{item.path}: no match for {self.regex.pattern!r}")
        return new_content


class BatchItemUpdater:
    def __init__(
        self,
        items: Sequence[TreeItem],
        updater: ItemUpdater,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if max_concurrency < 1:
            raise InvalidParameter(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.items = list(items)
        self.updater = updater
        self.max_concurrency = max_concurrency

    def select(self) -> list[TreeItem]:
        selected = list(self.updater.items_to_update(self.items))
        seen: set[str] = set()
        for item in selected:
            if item.type != "blob":
                raise InvalidParameter(
                    f"'{item.path}' is a {item.type}, only blobs can be updated"
                )
            if item.path in seen:
                raise InvalidParameter(f"'{item.path}' selected more than once")
            seen.add(item.path)
        return selected

    async def update(self, api: GitDataAPI) -> list[TreeItem]:
        """Transform the selected items and return their replacements."""
        selected = self.select()
        if not selected:
            logger.info("No items selected for update")
            return []

        logger.info(f"Updating {len(selected)} of {len(self.items)} items")
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def transform(item: TreeItem) -> bytes:
            async with semaphore:
                raw = await api.get_blob_content(item.sha)
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodingFailure(f"{item.path} is not UTF-8 text: {e}") from e
            result = self.updater.update(item, text)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, str):
                raise TypeError(
                    f"{item.path}: update returned {type(result).__name__}, expected str"
                )
            return result.encode("utf-8")

        async def store(item: TreeItem, content: bytes) -> TreeItem:
            async with semaphore:
                sha = await api.create_blob(content)
            logger.debug(f"{item.path}: {item.sha} -> {sha}")
            return item.with_sha(sha)

        contents = await _gather_all(transform(item) for item in selected)
        return await _gather_all(
            store(item, content) for item, content in zip(selected, contents)
        )


async def _gather_all(coroutines) -> list:
    """Run coroutines concurrently; on the first failure cancel the rest and raise it."""
    tasks = [asyncio.ensure_future(coro) for coro in coroutines]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
