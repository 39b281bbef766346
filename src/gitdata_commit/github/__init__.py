"""Git Data API client"""

from .api import GitDataAPI
from .client import GitHubClient
from .codec import (
    DirEntry,
    DirectoryEntry,
    FileEntry,
    SubmoduleEntry,
    SymlinkEntry,
    decode_base64,
    decode_entries,
    decode_entry,
    encode_base64,
    encode_entry,
)
from .models import (
    Author,
    Blob,
    Branch,
    BranchDetail,
    GitCommit,
    Reference,
    RepoCommit,
    Tag,
    Tree,
    TreeItem,
)

__all__ = [
    "GitDataAPI",
    "GitHubClient",
    # Codec
    "DirectoryEntry",
    "FileEntry",
    "DirEntry",
    "SymlinkEntry",
    "SubmoduleEntry",
    "decode_base64",
    "encode_base64",
    "decode_entry",
    "decode_entries",
    "encode_entry",
    # Models
    "Author",
    "Blob",
    "Branch",
    "BranchDetail",
    "GitCommit",
    "Reference",
    "RepoCommit",
    "Tag",
    "Tree",
    "TreeItem",
]
