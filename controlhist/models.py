"""Value objects returned by the history service.

Attributes are snake_case in Python and camelCase on the wire, which is what
the editor UI renders verbatim. All models are frozen; they are built once
per query and never mutated.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class HistoryStatus(str, Enum):
    """How complete a history answer is."""

    OK = "ok"
    PARTIAL = "partial"  # history present, diff enrichment failed for some commits
    EMPTY = "empty"


class SemanticChange(WireModel):
    """One field-level difference between two YAML documents."""

    type: Literal["added", "removed", "modified"]
    path: str = Field(..., description="Dotted path, 'root' for the whole document")
    old_value: Any = None
    new_value: Any = None
    description: str


class SemanticDiffResult(WireModel):
    has_changes: bool
    changes: list[SemanticChange] = Field(default_factory=list)
    summary: str
    available: bool = Field(
        True, description="False when either side failed to parse as YAML"
    )


class ChangeSummary(WireModel):
    insertions: int = 0
    deletions: int = 0
    files: int = 1


class CommitRecord(WireModel):
    hash: str
    short_hash: str
    author: str
    author_email: str
    date: str = Field(..., description="ISO-8601 author date in UTC")
    message: str
    changes: ChangeSummary = Field(default_factory=ChangeSummary)
    diff: str | None = None
    yaml_diff: SemanticDiffResult | None = None

    @model_serializer(mode="wrap")
    def _omit_missing_payload(self, handler):
        data = handler(self)
        for key in ("diff", "yaml_diff", "yamlDiff"):
            if key in data and data[key] is None:
                del data[key]
        return data


class FileHistoryResult(WireModel):
    file_path: str
    commits: list[CommitRecord] = Field(default_factory=list)
    total_commits: int = 0
    first_commit: CommitRecord | None = Field(
        None, description="Oldest commit retained, bounded by the depth limit"
    )
    last_commit: CommitRecord | None = Field(None, description="Most recent commit")
    truncated: bool = Field(
        False, description="True when the depth limit cut the walk short"
    )
    status: HistoryStatus = HistoryStatus.EMPTY

    @classmethod
    def empty(cls, file_path: str) -> FileHistoryResult:
        return cls(file_path=file_path)


class RepositoryStats(WireModel):
    total_commits: int = 0
    contributors: int = 0
    last_commit_date: str | None = None
    first_commit_date: str | None = None


class GitBranchInfo(WireModel):
    current_branch: str
    remote_ref: str | None = None
    is_ahead: bool = False
    is_behind: bool = False
    ahead_count: int = 0
    behind_count: int = 0
    last_commit_date: str | None = None
    last_commit_message: str | None = None
    has_unpushed_changes: bool = False


class GitStatus(WireModel):
    is_git_repository: bool = False
    current_branch: str | None = None
    branch_info: GitBranchInfo | None = None
    can_pull: bool = False
    can_push: bool = False


class TrackedFile(WireModel):
    """A file taking part in a unified timeline, e.g. a control or its mappings."""

    type: str
    path: str
    file_type: str


class UnifiedHistoryEntry(CommitRecord):
    type: str
    file_type: str
    is_pending: bool = False


class UnifiedHistory(WireModel):
    commits: list[UnifiedHistoryEntry] = Field(default_factory=list)
    total_commits: int = 0
    commits_by_type: dict[str, int] = Field(default_factory=dict)
    file_paths: dict[str, str] = Field(default_factory=dict)
