"""Line and YAML-aware diffs between file snapshots."""

from .lines import (
    DIFF_ALGORITHMS,
    LineDiff,
    count_changes,
    create_simple_diff,
    diff_texts,
    split_lines,
)
from .semantic import semantic_diff

__all__ = [
    "DIFF_ALGORITHMS",
    "LineDiff",
    "count_changes",
    "create_simple_diff",
    "diff_texts",
    "semantic_diff",
    "split_lines",
]
