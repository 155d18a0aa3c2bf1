"""Read-only access to a git object store through dulwich.

Everything here is a thin lookup: find the repository, resolve a committish,
decode one commit/tree/blob, descend a tree to a path. No history logic.

Note: dulwich is a pure Python git implementation, the git binary is never
invoked.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass
from pathlib import Path

from dulwich.errors import NotGitRepository
from dulwich.objects import S_ISGITLINK, Blob, Commit, ShaFile, Tag, Tree
from dulwich.objectspec import parse_commit
from dulwich.repo import Repo

from controlhist.git.errors import CorruptObjectError
from controlhist.utils.logger import get_logger

logger = get_logger("git.object_store")

SYMREF_PREFIX = b"ref: "
HEADS_PREFIX = b"refs/heads/"
REMOTES_PREFIX = b"refs/remotes"


@dataclass
class RepositoryHandle:
    """Open repository for the duration of one operation.

    Handles are not shared between calls; close them (or use ``with``) when
    the operation is done.
    """

    root: Path
    repo: Repo

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> RepositoryHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def resolve_root(start_path: str | Path) -> RepositoryHandle | None:
    """Walk upward from ``start_path`` looking for a git repository.

    ``start_path`` may be a file or a directory and does not have to exist.
    Returns None when no repository is found up to the filesystem root.
    """
    try:
        current = Path(start_path).expanduser().absolute()
    except (OSError, RuntimeError):
        return None

    if current.is_file():
        current = current.parent

    for candidate in (current, *current.parents):
        try:
            repo = Repo(str(candidate))
        except NotGitRepository:
            continue
        except OSError as e:
            logger.debug(
                "Cannot open candidate repository", path=str(candidate), error=str(e)
            )
            continue
        return RepositoryHandle(root=Path(repo.path).resolve(), repo=repo)
    return None


def resolve_commit(handle: RepositoryHandle, committish: str | bytes) -> str | None:
    """Resolve a hash, abbreviated hash, branch, tag or HEAD to a commit id.

    Returns None when nothing matches, including HEAD of an empty repository.
    """
    try:
        obj = parse_commit(handle.repo, committish)
    except KeyError:
        return None
    except Exception as e:
        # Ambiguous short ids and malformed names end up here
        logger.debug("Unresolvable committish", committish=str(committish), error=str(e))
        return None

    while isinstance(obj, Tag):
        obj = handle.repo[obj.object[1]]
    if not isinstance(obj, Commit):
        return None
    return obj.id.decode("ascii")


def read_object(handle: RepositoryHandle, oid: str, expected: str = "object") -> ShaFile:
    """Decode a single object by id."""
    try:
        return handle.repo.object_store[oid.encode("ascii")]
    except KeyError as e:
        raise CorruptObjectError(oid, expected) from e


def read_commit(handle: RepositoryHandle, oid: str) -> Commit:
    obj = read_object(handle, oid, "commit")
    if not isinstance(obj, Commit):
        raise CorruptObjectError(oid, "commit", obj.type_name.decode("ascii"))
    return obj


def read_tree(handle: RepositoryHandle, oid: str) -> Tree:
    obj = read_object(handle, oid, "tree")
    if not isinstance(obj, Tree):
        raise CorruptObjectError(oid, "tree", obj.type_name.decode("ascii"))
    return obj


def split_path(path: str) -> list[str]:
    """Split a repository-relative path into its segments."""
    return [part for part in path.replace("\\", "/").split("/") if part and part != "."]


def tree_entry(
    handle: RepositoryHandle, tree_oid: str, path: str
) -> tuple[int, str] | None:
    """Return ``(mode, oid)`` of ``path`` inside a tree, or None if absent.

    Descends one directory at a time and stops at the first missing segment.
    """
    parts = split_path(path)
    if not parts:
        return None

    tree = read_tree(handle, tree_oid)
    for index, part in enumerate(parts):
        try:
            mode, sha = tree[part.encode("utf-8")]
        except KeyError:
            return None
        if index == len(parts) - 1:
            return mode, sha.decode("ascii")
        if not stat.S_ISDIR(mode):
            return None
        tree = read_tree(handle, sha.decode("ascii"))
    return None


def read_blob(handle: RepositoryHandle, object_id: str, path: str) -> bytes | None:
    """Read the blob at ``path`` under a commit or tree.

    Returns None when the path does not exist there or is not a file.
    """
    obj = read_object(handle, object_id)
    if isinstance(obj, Commit):
        tree_oid = obj.tree.decode("ascii")
    elif isinstance(obj, Tree):
        tree_oid = object_id
    else:
        raise CorruptObjectError(object_id, "commit or tree", obj.type_name.decode("ascii"))

    entry = tree_entry(handle, tree_oid, path)
    if entry is None:
        return None
    mode, blob_oid = entry
    if stat.S_ISDIR(mode) or S_ISGITLINK(mode):
        return None

    blob = read_object(handle, blob_oid, "blob")
    if not isinstance(blob, Blob):
        raise CorruptObjectError(blob_oid, "blob", blob.type_name.decode("ascii"))
    return blob.data


def current_branch(handle: RepositoryHandle) -> str | None:
    """Short name of the branch HEAD points to, None when detached."""
    head = handle.repo.refs.read_ref(b"HEAD")
    if not head or not head.startswith(SYMREF_PREFIX):
        return None
    target = head[len(SYMREF_PREFIX) :].strip()
    if not target.startswith(HEADS_PREFIX):
        return None
    return target[len(HEADS_PREFIX) :].decode("utf-8")


def remote_tracking_refs(handle: RepositoryHandle, branch: str) -> dict[str, str]:
    """Map ``<remote>/<branch>`` to commit id for every known remote copy of ``branch``."""
    found: dict[str, str] = {}
    for name, sha in handle.repo.refs.as_dict(REMOTES_PREFIX).items():
        remote_ref = name.decode("utf-8")
        remote, _, remote_branch = remote_ref.partition("/")
        if remote_branch == branch:
            found[f"{remote}/{branch}"] = sha.decode("ascii")
    return found
