"""Commit history walking.

Commits are emitted descendant-first in commit-graph order: a commit is only
yielded after every reachable child of it has been yielded. Among commits
that are eligible at the same time the newer commit timestamp goes first,
then the lower object id, so output is deterministic. Timestamps never
override ancestry, two commits with identical dates still come out in graph
order.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, replace

from dulwich.objects import Commit

from controlhist.git.object_store import (
    RepositoryHandle,
    read_commit,
    resolve_commit,
    tree_entry,
)


@dataclass(frozen=True)
class CommitDescriptor:
    oid: str
    tree: str
    parents: tuple[str, ...]
    author_name: str
    author_email: str
    author_time: int
    author_timezone: int
    commit_time: int
    message: str


def _decode(value: bytes, encoding: bytes | None) -> str:
    codec = encoding.decode("ascii") if encoding else "utf-8"
    try:
        return value.decode(codec, errors="replace")
    except LookupError:
        return value.decode("utf-8", errors="replace")


def parse_identity(identity: str) -> tuple[str, str]:
    """Split ``Name <email>`` into its parts."""
    name, sep, rest = identity.rpartition("<")
    if not sep:
        return identity.strip(), ""
    return name.strip(), rest.rstrip().rstrip(">").strip()


def describe_commit(oid: str, commit: Commit) -> CommitDescriptor:
    author_name, author_email = parse_identity(_decode(commit.author, commit.encoding))
    return CommitDescriptor(
        oid=oid,
        tree=commit.tree.decode("ascii"),
        parents=tuple(parent.decode("ascii") for parent in commit.parents),
        author_name=author_name,
        author_email=author_email,
        author_time=commit.author_time,
        author_timezone=commit.author_timezone,
        commit_time=commit.commit_time,
        message=_decode(commit.message, commit.encoding),
    )


class CommitGraph:
    """Every commit reachable from one starting commit.

    Commit headers are loaded eagerly (they are small); trees and blobs are
    only read when a path is checked.
    """

    def __init__(self, handle: RepositoryHandle, start_oid: str) -> None:
        self.handle = handle
        self.start_oid = start_oid
        self.commits: dict[str, CommitDescriptor] = {}
        self._child_counts: dict[str, int] = {start_oid: 0}
        self._load()

    def _load(self) -> None:
        # Shallow clones list parents that are not in the object store
        shallow = {sha.decode("ascii") for sha in self.handle.repo.get_shallow()}

        to_visit = deque([self.start_oid])
        while to_visit:
            oid = to_visit.popleft()
            if oid in self.commits:
                continue
            descriptor = describe_commit(oid, read_commit(self.handle, oid))
            if oid in shallow:
                descriptor = replace(descriptor, parents=())
            self.commits[oid] = descriptor

            for parent in descriptor.parents:
                self._child_counts[parent] = self._child_counts.get(parent, 0) + 1
                if parent not in self.commits:
                    to_visit.append(parent)

    def __len__(self) -> int:
        return len(self.commits)

    def topo_order(self) -> Iterator[CommitDescriptor]:
        """Yield commits descendant-first."""
        remaining = dict(self._child_counts)
        start = self.commits[self.start_oid]
        ready: list[tuple[int, str]] = [(-start.commit_time, start.oid)]

        while ready:
            _, oid = heapq.heappop(ready)
            descriptor = self.commits[oid]
            yield descriptor
            for parent in descriptor.parents:
                remaining[parent] -= 1
                if remaining[parent] == 0:
                    parent_commit = self.commits[parent]
                    heapq.heappush(ready, (-parent_commit.commit_time, parent))

    def touches(self, descriptor: CommitDescriptor, path: str) -> bool:
        """Whether ``descriptor`` changed ``path`` relative to its parents.

        A merge that keeps the path identical to any one parent did not touch
        it.
        """
        entry = tree_entry(self.handle, descriptor.tree, path)
        if not descriptor.parents:
            return entry is not None

        for parent in descriptor.parents:
            parent_tree = self.commits[parent].tree
            if tree_entry(self.handle, parent_tree, path) == entry:
                return False
        return True


def iter_commits(handle: RepositoryHandle, start_oid: str) -> Iterator[CommitDescriptor]:
    """All commits reachable from ``start_oid``, descendant-first."""
    return CommitGraph(handle, start_oid).topo_order()


def walk(
    handle: RepositoryHandle,
    start_ref: str = "HEAD",
    path_filter: str | None = None,
    max_depth: int | None = None,
) -> Iterator[CommitDescriptor]:
    """Yield the commits that touched ``path_filter``, newest first.

    Commit headers of everything reachable from ``start_ref`` are read up
    front, since graph order needs every child before its parent. Trees are
    only read as each commit is checked against the path, so stopping early
    skips the tree reads of older commits.

    Without a path filter every reachable commit is yielded. Stops after
    ``max_depth`` commits; when it does, the last commit yielded is the
    oldest one examined, not necessarily where the path was created.
    An unknown start ref or a path that was never touched yields nothing.
    """
    if max_depth is not None and max_depth <= 0:
        return

    start_oid = resolve_commit(handle, start_ref)
    if start_oid is None:
        return

    graph = CommitGraph(handle, start_oid)
    emitted = 0
    for descriptor in graph.topo_order():
        if path_filter is not None and not graph.touches(descriptor, path_filter):
            continue
        yield descriptor
        emitted += 1
        if max_depth is not None and emitted >= max_depth:
            return
