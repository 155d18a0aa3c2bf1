"""Tests for repository discovery and object reads."""

import pytest

from controlhist.git import CorruptObjectError, content_at, resolve_commit, resolve_root
from controlhist.git.object_store import (
    current_branch,
    read_blob,
    read_commit,
    remote_tracking_refs,
    split_path,
    tree_entry,
)


def test_resolve_root_from_nested_subdirectory(git_repo):
    nested = git_repo.root / "controls" / "ac"
    nested.mkdir(parents=True)

    handle = resolve_root(nested)
    assert handle is not None
    with handle:
        assert handle.root == git_repo.root


def test_resolve_root_from_file_and_missing_path(git_repo):
    control = git_repo.root / "ac-1.yaml"
    control.write_text("id: ac-1\n")

    for start in (control, git_repo.root / "does" / "not" / "exist"):
        handle = resolve_root(start)
        assert handle is not None
        handle.close()


def test_resolve_root_outside_repository(plain_dir):
    assert resolve_root(plain_dir) is None


def test_resolve_commit_variants(git_repo):
    oid = git_repo.commit({"a.yaml": "a: 1\n"}, "first")

    with resolve_root(git_repo.root) as handle:
        assert resolve_commit(handle, "HEAD") == oid
        assert resolve_commit(handle, oid) == oid
        assert resolve_commit(handle, oid[:10]) == oid
        assert resolve_commit(handle, "master") == oid
        assert resolve_commit(handle, "refs/heads/master") == oid
        assert resolve_commit(handle, "no-such-branch") is None
        assert resolve_commit(handle, "0" * 40) is None


def test_resolve_commit_on_empty_repository(git_repo):
    with resolve_root(git_repo.root) as handle:
        assert resolve_commit(handle, "HEAD") is None


def test_split_path_normalizes_separators():
    assert split_path("controls/ac/ac-1.yaml") == ["controls", "ac", "ac-1.yaml"]
    assert split_path("./controls//ac\\ac-1.yaml") == ["controls", "ac", "ac-1.yaml"]
    assert split_path("") == []


def test_tree_entry_descends_nested_directories(git_repo):
    oid = git_repo.commit(
        {"controls/ac/ac-1.yaml": "id: ac-1\n", "readme.md": "hello\n"}, "init"
    )

    with resolve_root(git_repo.root) as handle:
        tree = read_commit(handle, oid).tree.decode("ascii")
        mode, blob_oid = tree_entry(handle, tree, "controls/ac/ac-1.yaml")
        assert mode == 0o100644
        assert len(blob_oid) == 40

        assert tree_entry(handle, tree, "controls/ac/ac-2.yaml") is None
        assert tree_entry(handle, tree, "controls/zz/ac-1.yaml") is None
        # A file used as a directory segment
        assert tree_entry(handle, tree, "readme.md/child") is None


def test_read_blob_returns_none_for_directories(git_repo):
    oid = git_repo.commit({"controls/ac/ac-1.yaml": "id: ac-1\n"}, "init")

    with resolve_root(git_repo.root) as handle:
        assert read_blob(handle, oid, "controls/ac") is None
        assert read_blob(handle, oid, "controls/ac/ac-1.yaml") == b"id: ac-1\n"

        tree = read_commit(handle, oid).tree.decode("ascii")
        assert read_blob(handle, tree, "controls/ac/ac-1.yaml") == b"id: ac-1\n"


def test_content_at_round_trip(git_repo):
    first = git_repo.commit({"ac-1.yaml": "status: planned\n"}, "plan")
    second = git_repo.change({"ac-1.yaml": "status: implemented\n"}, "implement")

    with resolve_root(git_repo.root) as handle:
        assert content_at(handle, first, "ac-1.yaml") == "status: planned\n"
        assert content_at(handle, second, "ac-1.yaml") == "status: implemented\n"
        assert content_at(handle, second, "missing.yaml") is None


def test_content_at_non_utf8_is_absent(git_repo):
    oid = git_repo.commit({"logo.bin": b"\xff\xfe\x00binary"}, "binary")

    with resolve_root(git_repo.root) as handle:
        assert content_at(handle, oid, "logo.bin") is None


def test_missing_object_raises_corrupt_object_error(git_repo):
    git_repo.commit({"a.yaml": "a: 1\n"}, "first")

    with resolve_root(git_repo.root) as handle:
        with pytest.raises(CorruptObjectError) as exc_info:
            read_commit(handle, "1" * 40)
    assert exc_info.value.oid == "1" * 40
    assert exc_info.value.expected == "commit"


def test_reading_a_blob_as_commit_is_corrupt(git_repo):
    oid = git_repo.commit({"a.yaml": "a: 1\n"}, "first")

    with resolve_root(git_repo.root) as handle:
        tree = read_commit(handle, oid).tree.decode("ascii")
        _, blob_oid = tree_entry(handle, tree, "a.yaml")
        with pytest.raises(CorruptObjectError) as exc_info:
            read_commit(handle, blob_oid)
    assert exc_info.value.actual == "blob"


def test_current_branch_and_remote_tracking_refs(git_repo):
    oid = git_repo.commit({"a.yaml": "a: 1\n"}, "first")
    git_repo.repo.refs[b"refs/remotes/origin/master"] = oid.encode("ascii")
    git_repo.repo.refs[b"refs/remotes/origin/feature"] = oid.encode("ascii")

    with resolve_root(git_repo.root) as handle:
        assert current_branch(handle) == "master"
        assert remote_tracking_refs(handle, "master") == {"origin/master": oid}


def test_current_branch_detached_head(git_repo):
    oid = git_repo.commit({"a.yaml": "a: 1\n"}, "first")
    (git_repo.root / ".git" / "HEAD").write_text(f"{oid}\n")

    with resolve_root(git_repo.root) as handle:
        assert current_branch(handle) is None
