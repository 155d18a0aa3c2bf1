"""File content at a given commit."""

from __future__ import annotations

from controlhist.git.object_store import RepositoryHandle, read_blob


def content_at(handle: RepositoryHandle, commit_id: str, path: str) -> str | None:
    """Text of ``path`` as of ``commit_id``, or None if it did not exist there.

    Content that is not valid UTF-8 is treated as absent; control files are
    always text.
    """
    data = read_blob(handle, commit_id, path)
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None
