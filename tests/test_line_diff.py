"""Tests for whole-file line diffs and change counting."""

import pytest

from controlhist.diff import count_changes, create_simple_diff, diff_texts, split_lines


def test_split_lines_trailing_newline_adds_no_line():
    assert split_lines("a\nb\n") == ["a", "b"]
    assert split_lines("a\nb") == ["a", "b"]
    assert split_lines("") == []
    assert split_lines(None) == []
    assert split_lines("\n") == [""]


def test_single_line_change_counts_one_each():
    result = diff_texts("a\nb\n", "a\nc\n", "x.yaml")

    assert result.insertions == 1
    assert result.deletions == 1
    assert result.diff_text == "\n".join(
        ["--- a/x.yaml", "+++ b/x.yaml", "@@ -1,2 +1,2 @@", " a", "-b", "+c"]
    )


def test_creation_diff():
    result = diff_texts(None, "a\nb\n", "x.yaml")

    assert (result.insertions, result.deletions) == (2, 0)
    assert result.diff_text == "\n".join(
        ["--- /dev/null", "+++ b/x.yaml", "@@ -0,0 +1,2 @@", "+a", "+b"]
    )


def test_empty_old_text_is_a_creation():
    result = diff_texts("", "a\n", "x.yaml")

    assert result.diff_text.startswith("--- /dev/null")
    assert (result.insertions, result.deletions) == (1, 0)


def test_deletion_diff():
    result = diff_texts("a\nb\nc\n", None, "x.yaml")

    assert (result.insertions, result.deletions) == (0, 3)
    assert result.diff_text == "\n".join(
        ["--- a/x.yaml", "+++ /dev/null", "@@ -1,3 +0,0 @@", "-a", "-b", "-c"]
    )


def test_greedy_scan_drops_old_line_on_first_mismatch():
    # An inserted line at the top makes the greedy scan delete and re-add
    # the rest instead of finding the common suffix
    diff = create_simple_diff(["a", "b"], ["x", "a", "b"], "f")

    assert diff.split("\n")[3:] == ["-a", "-b", "+x", "+a", "+b"]


def test_minimal_algorithm_keeps_common_lines():
    result = diff_texts("a\nb\n", "x\na\nb\n", "f", algorithm="minimal")

    assert result.diff_text.split("\n")[3:] == ["+x", " a", " b"]
    # Counts are positional regardless of the alignment
    assert (result.insertions, result.deletions) == (3, 2)


def test_unknown_algorithm_rejected():
    with pytest.raises(ValueError, match="Unknown diff algorithm"):
        diff_texts("a\n", "b\n", "f", algorithm="patience")


def test_identical_texts_have_no_changes():
    result = diff_texts("a\nb\n", "a\nb\n", "f")

    assert (result.insertions, result.deletions) == (0, 0)
    assert all(line.startswith(" ") for line in result.diff_text.split("\n")[3:])


@pytest.mark.parametrize(
    "old,new",
    [
        ("a\nb\n", "a\nc\n"),
        ("a\n", "a\nb\nc\n"),
        ("a\nb\nc\nd\n", "b\n"),
        ("x\ny\n", "y\nx\n"),
        ("one\n", "one\n"),
    ],
)
def test_counts_track_net_line_change(old, new):
    old_lines, new_lines = split_lines(old), split_lines(new)
    insertions, deletions = count_changes(old_lines, new_lines)

    assert insertions - deletions == len(new_lines) - len(old_lines)
