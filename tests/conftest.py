"""Shared pytest fixtures for all tests.

Repositories are built by writing blobs, trees and commits straight into a
dulwich object store, which gives exact control over timestamps, merges and
nested paths without a git binary.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

import pytest
from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

BASE_TIME = 1_700_000_000
FILE_MODE = 0o100644


class RepoBuilder:
    """Writes commits from full-snapshot dicts of ``{path: text}``."""

    def __init__(self, root: Path):
        self.root = root
        self.repo = Repo.init(str(root))
        self.repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
        self.snapshots: dict[str, dict[str, str]] = {}
        self.head: str | None = None
        self._clock = BASE_TIME

    def close(self) -> None:
        self.repo.close()

    def _store_tree(self, node: dict) -> bytes:
        tree = Tree()
        for name, value in node.items():
            if isinstance(value, dict):
                tree.add(name.encode("utf-8"), stat.S_IFDIR, self._store_tree(value))
            else:
                blob = Blob.from_string(value)
                self.repo.object_store.add_object(blob)
                tree.add(name.encode("utf-8"), FILE_MODE, blob.id)
        self.repo.object_store.add_object(tree)
        return tree.id

    def _write_tree(self, files: dict[str, str | bytes]) -> bytes:
        root: dict = {}
        for path, content in files.items():
            parts = path.split("/")
            node = root
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = content.encode("utf-8") if isinstance(content, str) else content
        return self._store_tree(root)

    def commit(
        self,
        files: dict[str, str | bytes],
        message: str = "update",
        *,
        parents: list[str] | None = None,
        timestamp: int | None = None,
        author: str = "Alice Auditor <alice@example.com>",
        ref: bytes | None = b"refs/heads/master",
    ) -> str:
        """Commit ``files`` as the complete tree. Parents default to the last commit."""
        if timestamp is None:
            self._clock += 60
            timestamp = self._clock
        if parents is None:
            parents = [self.head] if self.head else []

        commit = Commit()
        commit.tree = self._write_tree(files)
        commit.parents = [parent.encode("ascii") for parent in parents]
        commit.author = commit.committer = author.encode("utf-8")
        commit.author_time = commit.commit_time = timestamp
        commit.author_timezone = commit.commit_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message.encode("utf-8")
        self.repo.object_store.add_object(commit)

        oid = commit.id.decode("ascii")
        if ref is not None:
            self.repo.refs[ref] = commit.id
        if ref == b"refs/heads/master":
            self.head = oid
        self.snapshots[oid] = {
            path: content if isinstance(content, str) else content.decode("utf-8", "replace")
            for path, content in files.items()
        }
        return oid

    def change(self, updates: dict[str, str | None], message: str = "update", **kwargs) -> str:
        """Commit on top of HEAD, applying updates; None deletes a path."""
        files = dict(self.snapshots[self.head]) if self.head else {}
        for path, content in updates.items():
            if content is None:
                files.pop(path, None)
            else:
                files[path] = content
        return self.commit(files, message, **kwargs)

    def checkout(self, oid: str | None = None) -> None:
        """Write a snapshot into the working tree."""
        for path, content in self.snapshots[oid or self.head].items():
            target = self.root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content.encode("utf-8"))


@pytest.fixture
def git_repo():
    """Empty repository (HEAD -> refs/heads/master, no commits yet)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        builder = RepoBuilder(Path(tmpdir).resolve())
        try:
            yield builder
        finally:
            builder.close()


@pytest.fixture
def plain_dir():
    """Directory that is not inside any repository."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep CONTROLHIST_* settings from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("CONTROLHIST_"):
            monkeypatch.delenv(key, raising=False)
