"""Pure-Python git object access for control file history."""

from .blobs import content_at
from .errors import CorruptObjectError, HistoryError
from .object_store import RepositoryHandle, resolve_commit, resolve_root
from .walker import CommitDescriptor, CommitGraph, iter_commits, walk

__all__ = [
    "CommitDescriptor",
    "CommitGraph",
    "CorruptObjectError",
    "HistoryError",
    "RepositoryHandle",
    "content_at",
    "iter_commits",
    "resolve_commit",
    "resolve_root",
    "walk",
]
