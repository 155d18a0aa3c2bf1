"""Tests for commit graph ordering and path filtering."""

from controlhist.git import CommitGraph, iter_commits, resolve_root, walk
from controlhist.git.walker import parse_identity


def _oids(descriptors):
    return [descriptor.oid for descriptor in descriptors]


def test_linear_history_is_newest_first(git_repo):
    first = git_repo.commit({"a.yaml": "v: 1\n"}, "one")
    second = git_repo.change({"a.yaml": "v: 2\n"}, "two")
    third = git_repo.change({"a.yaml": "v: 3\n"}, "three")

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle)) == [third, second, first]


def test_descriptor_fields(git_repo):
    oid = git_repo.commit(
        {"a.yaml": "v: 1\n"},
        "Initial control",
        timestamp=1_704_067_200,
        author="Bob Builder <bob@example.com>",
    )

    with resolve_root(git_repo.root) as handle:
        (descriptor,) = list(walk(handle))

    assert descriptor.oid == oid
    assert descriptor.parents == ()
    assert descriptor.author_name == "Bob Builder"
    assert descriptor.author_email == "bob@example.com"
    assert descriptor.author_time == 1_704_067_200
    assert descriptor.message == "Initial control"


def test_identical_timestamps_keep_graph_order(git_repo):
    # Same second for every commit; the child must still precede its parent
    oids = []
    for index in range(6):
        oids.append(
            git_repo.change({"a.yaml": f"v: {index}\n"}, f"c{index}", timestamp=1_700_000_000)
        )

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle)) == list(reversed(oids))


def test_parent_with_later_timestamp_still_follows_child(git_repo):
    # Clock skew: the parent claims to be newer than its child
    parent = git_repo.commit({"a.yaml": "v: 1\n"}, "parent", timestamp=2_000_000_000)
    child = git_repo.change({"a.yaml": "v: 2\n"}, "child", timestamp=1_000_000_000)

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle)) == [child, parent]


def test_merge_emits_both_branches_before_common_ancestor(git_repo):
    base = git_repo.commit({"a.yaml": "v: 0\n", "b.yaml": "v: 0\n"}, "base")
    left = git_repo.commit(
        {"a.yaml": "v: 1\n", "b.yaml": "v: 0\n"}, "left", parents=[base], timestamp=1_700_000_100
    )
    right = git_repo.commit(
        {"a.yaml": "v: 0\n", "b.yaml": "v: 1\n"},
        "right",
        parents=[base],
        timestamp=1_700_000_200,
        ref=b"refs/heads/feature",
    )
    merge = git_repo.commit(
        {"a.yaml": "v: 1\n", "b.yaml": "v: 1\n"},
        "merge",
        parents=[left, right],
        timestamp=1_700_000_300,
    )

    with resolve_root(git_repo.root) as handle:
        order = _oids(walk(handle))

    assert order[0] == merge
    assert order[-1] == base
    # Newer commit first among the two independent branch tips
    assert order[1:3] == [right, left]


def test_merge_touches_path_only_when_differing_from_every_parent(git_repo):
    base = git_repo.commit({"a.yaml": "v: 0\n", "b.yaml": "v: 0\n"}, "base")
    left = git_repo.commit({"a.yaml": "v: 1\n", "b.yaml": "v: 0\n"}, "left", parents=[base])
    right = git_repo.commit(
        {"a.yaml": "v: 0\n", "b.yaml": "v: 1\n"}, "right", parents=[base], ref=None
    )
    # a.yaml resolved to a new value, b.yaml taken from the right side
    merge = git_repo.commit(
        {"a.yaml": "v: 2\n", "b.yaml": "v: 1\n"}, "merge", parents=[left, right]
    )

    with resolve_root(git_repo.root) as handle:
        a_history = _oids(walk(handle, path_filter="a.yaml"))
        b_history = _oids(walk(handle, path_filter="b.yaml"))

    assert a_history == [merge, left, base]
    assert b_history == [right, base]


def test_path_filter_includes_deletion_and_skips_unrelated(git_repo):
    created = git_repo.commit({"a.yaml": "v: 1\n", "other.txt": "x\n"}, "create")
    git_repo.change({"other.txt": "y\n"}, "unrelated")
    deleted = git_repo.change({"a.yaml": None}, "delete")

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle, path_filter="a.yaml")) == [deleted, created]
        assert list(walk(handle, path_filter="never.yaml")) == []


def test_nested_path_filter(git_repo):
    created = git_repo.commit({"controls/ac/ac-1.yaml": "v: 1\n"}, "create")
    git_repo.change({"controls/ac/ac-2.yaml": "v: 1\n"}, "sibling")
    changed = git_repo.change({"controls/ac/ac-1.yaml": "v: 2\n"}, "change")

    with resolve_root(git_repo.root) as handle:
        history = _oids(walk(handle, path_filter="controls/ac/ac-1.yaml"))

    assert history == [changed, created]


def test_max_depth_limits_touching_commits(git_repo):
    oids = [git_repo.change({"a.yaml": f"v: {i}\n"}, f"c{i}") for i in range(5)]

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle, path_filter="a.yaml", max_depth=2)) == [oids[4], oids[3]]
        assert list(walk(handle, max_depth=0)) == []


def test_stopping_early_skips_tree_reads_of_older_commits(git_repo):
    first = git_repo.commit({"a.yaml": "v: 1\n"}, "first")
    git_repo.change({"a.yaml": "v: 2\n"}, "second")
    third = git_repo.change({"a.yaml": "v: 3\n"}, "third")
    first_tree = git_repo.repo[first.encode("ascii")].tree.decode("ascii")
    (git_repo.root / ".git" / "objects" / first_tree[:2] / first_tree[2:]).unlink()

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle, path_filter="a.yaml", max_depth=1)) == [third]


def test_walk_on_empty_repository_and_unknown_ref(git_repo):
    with resolve_root(git_repo.root) as handle:
        assert list(walk(handle)) == []

    git_repo.commit({"a.yaml": "v: 1\n"}, "first")
    with resolve_root(git_repo.root) as handle:
        assert list(walk(handle, start_ref="no-such-ref")) == []


def test_walk_from_other_branch(git_repo):
    base = git_repo.commit({"a.yaml": "v: 0\n"}, "base")
    feature = git_repo.commit(
        {"a.yaml": "v: 1\n"}, "feature", parents=[base], ref=b"refs/heads/feature"
    )

    with resolve_root(git_repo.root) as handle:
        assert _oids(walk(handle, start_ref="feature")) == [feature, base]
        assert _oids(walk(handle)) == [base]


def test_shallow_boundary_is_treated_as_root(git_repo):
    first = git_repo.commit({"a.yaml": "v: 1\n"}, "first")
    second = git_repo.change({"a.yaml": "v: 2\n"}, "second")
    # The parent is still in the store but lies beyond the shallow boundary
    (git_repo.root / ".git" / "shallow").write_text(f"{second}\n")

    with resolve_root(git_repo.root) as handle:
        graph = CommitGraph(handle, second)
        assert len(graph) == 1
        assert _oids(iter_commits(handle, second)) == [second]
        assert first not in graph.commits


def test_parse_identity():
    assert parse_identity("Alice Auditor <alice@example.com>") == (
        "Alice Auditor",
        "alice@example.com",
    )
    assert parse_identity("no-email") == ("no-email", "")
