"""Line diffs between two whole-file snapshots.

The rendered diff is always a single hunk spanning the whole file. The
default alignment is a greedy forward scan: on the first mismatch the old
line is dropped and the scan re-checks, so output is not edit-distance
minimal. ``minimal`` switches alignment to difflib's matcher while keeping
the same textual shape.

Insertion and deletion counts come from a separate positional comparison
and do not depend on the alignment used for the text.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Literal

DiffAlgorithm = Literal["greedy", "minimal"]
DIFF_ALGORITHMS: tuple[str, ...] = ("greedy", "minimal")

DEV_NULL = "/dev/null"


@dataclass(frozen=True)
class LineDiff:
    diff_text: str
    insertions: int
    deletions: int


def split_lines(text: str | None) -> list[str]:
    """Split text into lines; a final newline does not add an empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def _header(old_label: str, new_label: str, old_range: str, new_range: str) -> list[str]:
    return [f"--- {old_label}", f"+++ {new_label}", f"@@ -{old_range} +{new_range} @@"]


def create_simple_diff(old_lines: list[str], new_lines: list[str], filepath: str) -> str:
    """Greedy forward-scan diff rendered as one hunk."""
    diff_lines = _header(
        f"a/{filepath}", f"b/{filepath}", f"1,{len(old_lines)}", f"1,{len(new_lines)}"
    )

    i = j = 0
    while i < len(old_lines) or j < len(new_lines):
        if i < len(old_lines) and j < len(new_lines) and old_lines[i] == new_lines[j]:
            diff_lines.append(f" {old_lines[i]}")
            i += 1
            j += 1
        elif i < len(old_lines):
            diff_lines.append(f"-{old_lines[i]}")
            i += 1
        else:
            diff_lines.append(f"+{new_lines[j]}")
            j += 1

    return "\n".join(diff_lines)


def create_minimal_diff(old_lines: list[str], new_lines: list[str], filepath: str) -> str:
    """Same shape as create_simple_diff, aligned with difflib.SequenceMatcher."""
    diff_lines = _header(
        f"a/{filepath}", f"b/{filepath}", f"1,{len(old_lines)}", f"1,{len(new_lines)}"
    )

    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            diff_lines.extend(f" {line}" for line in old_lines[i1:i2])
            continue
        if tag in ("replace", "delete"):
            diff_lines.extend(f"-{line}" for line in old_lines[i1:i2])
        if tag in ("replace", "insert"):
            diff_lines.extend(f"+{line}" for line in new_lines[j1:j2])

    return "\n".join(diff_lines)


def create_creation_diff(new_lines: list[str], filepath: str) -> str:
    """Diff for a file that did not exist before: every line is an insertion."""
    diff_lines = _header(DEV_NULL, f"b/{filepath}", "0,0", f"1,{len(new_lines)}")
    diff_lines.extend(f"+{line}" for line in new_lines)
    return "\n".join(diff_lines)


def create_deletion_diff(old_lines: list[str], filepath: str) -> str:
    """Diff for a file that no longer exists: every line is a deletion."""
    diff_lines = _header(f"a/{filepath}", DEV_NULL, f"1,{len(old_lines)}", "0,0")
    diff_lines.extend(f"-{line}" for line in old_lines)
    return "\n".join(diff_lines)


def count_changes(old_lines: list[str], new_lines: list[str]) -> tuple[int, int]:
    """Count (insertions, deletions) position by position.

    A position that differs counts as one insertion and one deletion, so
    ``insertions - deletions == len(new_lines) - len(old_lines)``.
    """
    insertions = 0
    deletions = 0
    for index in range(max(len(old_lines), len(new_lines))):
        if index >= len(old_lines):
            insertions += 1
        elif index >= len(new_lines):
            deletions += 1
        elif old_lines[index] != new_lines[index]:
            insertions += 1
            deletions += 1
    return insertions, deletions


def diff_texts(
    old_text: str | None,
    new_text: str | None,
    filepath: str,
    algorithm: DiffAlgorithm = "greedy",
) -> LineDiff:
    """Diff two snapshots of the same file. None means the file was absent."""
    if algorithm not in DIFF_ALGORITHMS:
        raise ValueError(
            f"Unknown diff algorithm '{algorithm}'. Allowed: {', '.join(DIFF_ALGORITHMS)}"
        )

    old_lines = split_lines(old_text)
    new_lines = split_lines(new_text)

    if not old_text:
        return LineDiff(create_creation_diff(new_lines, filepath), len(new_lines), 0)
    if new_text is None:
        return LineDiff(create_deletion_diff(old_lines, filepath), 0, len(old_lines))

    if algorithm == "minimal":
        text = create_minimal_diff(old_lines, new_lines, filepath)
    else:
        text = create_simple_diff(old_lines, new_lines, filepath)
    insertions, deletions = count_changes(old_lines, new_lines)
    return LineDiff(text, insertions, deletions)
