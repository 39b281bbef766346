"""Pydantic models for the Git Data API"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import Field, ValidationInfo, field_serializer, field_validator

from .codec import WireModel, decode_base64, encode_base64

TreeItemType = Literal["blob", "tree", "commit"]


class Author(WireModel):
    name: str
    email: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("date")
    def _iso_date(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# Git data objects


class ObjectLink(WireModel):
    sha: str
    url: Optional[str] = None


class GitCommit(WireModel):
    sha: Optional[str] = None
    message: str
    author: Author
    committer: Author
    tree: ObjectLink
    parents: list[ObjectLink] = Field(default_factory=list)

    @property
    def tree_sha(self) -> str:
        return self.tree.sha

    @property
    def parent_shas(self) -> list[str]:
        return [parent.sha for parent in self.parents]


class TreeItem(WireModel):
    path: str
    mode: str
    type: TreeItemType
    sha: str
    size: Optional[int] = None

    def with_sha(self, sha: str) -> "TreeItem":
        """Replacement entry: same path, mode and type, new object."""
        return TreeItem(path=self.path, mode=self.mode, type=self.type, sha=sha)

    def to_delta(self) -> dict:
        return self.model_dump(
            mode="json", by_alias=True, include={"path", "mode", "type", "sha"}
        )


class Tree(WireModel):
    sha: str
    items: list[TreeItem] = Field(alias="tree")
    truncated: bool = False


class Blob(WireModel):
    sha: str
    encoding: str = "base64"
    content: bytes
    size: Optional[int] = None

    @field_validator("content", mode="before")
    @classmethod
    def _decode_content(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, bytes):
            return value
        encoding = info.data.get("encoding", "base64")
        if encoding == "utf-8" and isinstance(value, str):
            return value.encode("utf-8")
        return decode_base64(value)


class NewBlob(WireModel):
    content: bytes
    encoding: Literal["base64"] = "base64"

    @field_serializer("content")
    def _encode_content(self, value: bytes) -> str:
        return encode_base64(value)


class NewTree(WireModel):
    base_tree: str
    items: list[TreeItem] = Field(alias="tree")

    def to_wire(self) -> dict:
        return {
            "base_tree": self.base_tree,
            "tree": [item.to_delta() for item in self.items],
        }


class NewCommit(WireModel):
    message: str
    tree: str
    parents: list[str]
    author: Author
    committer: Author


class CreatedObject(WireModel):
    sha: str
    url: Optional[str] = None


class ReferencePatch(WireModel):
    sha: str
    force: bool = False


class Reference(WireModel):
    ref: str
    object: ObjectLink


# Repository endpoints


class Branch(WireModel):
    name: str
    protected: Optional[bool] = None


class RepoCommitDetail(WireModel):
    message: str
    author: Optional[Author] = None
    committer: Optional[Author] = None
    tree: Optional[ObjectLink] = None


class RepoCommit(WireModel):
    sha: str
    url: Optional[str] = None
    commit: Optional[RepoCommitDetail] = None


class BranchDetail(WireModel):
    name: str
    commit: RepoCommit

    @property
    def head_sha(self) -> str:
        return self.commit.sha


class Tag(WireModel):
    name: str
    commit: ObjectLink
