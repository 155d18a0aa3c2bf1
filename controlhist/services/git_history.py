"""History of control files, read straight from the git object store.

This is the only entry point the editor layer calls. Every public operation
is async and runs its object-store walk in a worker thread. Nothing is cached
between calls: each query opens the repository, walks, and closes it again.

"Not a repository", "path outside the repository" and "no history" are
steady states, not faults, and come back as empty results. Anything
unexpected (a corrupt or missing object) is logged and also answered with the
empty shape, so a history panel never takes the caller down with it.

Note: Uses dulwich (pure Python) for all git operations.
Git binary is not required on the system.
"""

from __future__ import annotations

import asyncio
import stat
from collections.abc import Iterable
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
from typing import TYPE_CHECKING

from controlhist.config.constants import (
    DEFAULT_DIFF_ALGORITHM,
    DEFAULT_DIFF_COMMIT_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAPPING_FILE_SUFFIX,
    DEFAULT_SEMANTIC_DIFF_EXTENSIONS,
    PENDING_AUTHOR,
    PENDING_HASH,
    PENDING_MESSAGE,
)
from controlhist.diff.lines import DIFF_ALGORITHMS, DiffAlgorithm, diff_texts
from controlhist.diff.semantic import semantic_diff
from controlhist.git.blobs import content_at
from controlhist.git.errors import HistoryError
from controlhist.git.object_store import (
    RepositoryHandle,
    current_branch,
    read_commit,
    remote_tracking_refs,
    resolve_commit,
    resolve_root,
    tree_entry,
)
from controlhist.git.walker import CommitDescriptor, CommitGraph, walk
from controlhist.models import (
    ChangeSummary,
    CommitRecord,
    FileHistoryResult,
    GitBranchInfo,
    GitStatus,
    HistoryStatus,
    RepositoryStats,
    SemanticDiffResult,
    TrackedFile,
    UnifiedHistory,
    UnifiedHistoryEntry,
)
from controlhist.utils.logger import get_logger

if TYPE_CHECKING:
    from controlhist.config.settings import Settings

logger = get_logger("git.history")


def iso_timestamp(seconds: int | float) -> str:
    """Epoch seconds as ``2024-01-31T12:00:00.000Z``."""
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class GitHistoryService:
    """Git history, diffs and stats for files under ``base_dir``.

    Paths passed to the public methods may be absolute or relative to
    ``base_dir``. The repository is found by walking up from ``base_dir``.
    """

    def __init__(
        self,
        base_dir: str | Path,
        *,
        diff_commit_limit: int = DEFAULT_DIFF_COMMIT_LIMIT,
        default_limit: int = DEFAULT_HISTORY_LIMIT,
        diff_algorithm: DiffAlgorithm = DEFAULT_DIFF_ALGORITHM,
        mapping_file_suffix: str = DEFAULT_MAPPING_FILE_SUFFIX,
        semantic_extensions: Iterable[str] = DEFAULT_SEMANTIC_DIFF_EXTENSIONS,
    ) -> None:
        if diff_algorithm not in DIFF_ALGORITHMS:
            raise ValueError(
                f"Unknown diff algorithm '{diff_algorithm}'. "
                f"Allowed: {', '.join(DIFF_ALGORITHMS)}"
            )
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.diff_commit_limit = diff_commit_limit
        self.default_limit = default_limit
        self.diff_algorithm = diff_algorithm
        self.mapping_file_suffix = mapping_file_suffix
        self.semantic_extensions = tuple(ext.lower() for ext in semantic_extensions)

    @classmethod
    def from_settings(cls, base_dir: str | Path, settings: Settings) -> GitHistoryService:
        return cls(
            base_dir,
            diff_commit_limit=settings.history_diff_commits,
            default_limit=settings.history_limit,
            diff_algorithm=settings.diff_algorithm,
            mapping_file_suffix=settings.mapping_file_suffix,
            semantic_extensions=settings.semantic_diff_extensions,
        )

    # ---- public API ----
    async def is_repository(self) -> bool:
        return await asyncio.to_thread(self._is_repository)

    async def get_file_history(
        self, file_path: str, limit: int | None = None
    ) -> FileHistoryResult:
        """Commits that touched ``file_path``, newest first.

        Only the first ``diff_commit_limit`` commits carry a diff and change
        counts; older ones are listed without payload. When ``truncated`` is
        set, ``first_commit`` is the oldest commit examined, not the commit
        that created the file.
        """
        return await asyncio.to_thread(self._file_history, file_path, limit)

    async def get_file_commit_count(self, file_path: str) -> int:
        """Number of commits that touched ``file_path``. No depth limit."""
        return await asyncio.to_thread(self._file_commit_count, file_path)

    async def get_latest_commit(self, file_path: str) -> CommitRecord | None:
        history = await self.get_file_history(file_path, 1)
        return history.last_commit

    async def get_file_content_at_commit(
        self, file_path: str, commit_id: str
    ) -> str | None:
        return await asyncio.to_thread(self._file_content_at_commit, file_path, commit_id)

    async def get_repository_stats(self) -> RepositoryStats:
        return await asyncio.to_thread(self._repository_stats)

    async def get_current_branch(self) -> str | None:
        return await asyncio.to_thread(self._current_branch)

    async def get_git_status(self) -> GitStatus:
        """Branch and ahead/behind counts against the known remote-tracking ref.

        Remotes are not fetched; counts reflect whatever was last fetched.
        """
        return await asyncio.to_thread(self._git_status)

    async def get_pending_change(self, file_path: str) -> CommitRecord | None:
        """Uncommitted modifications of ``file_path`` as a synthetic record."""
        return await asyncio.to_thread(self._pending_change, file_path)

    async def get_unified_history(
        self, files: list[TrackedFile], limit: int | None = None
    ) -> UnifiedHistory:
        """One timeline over several files, pending changes first."""
        return await asyncio.to_thread(self._unified_history, files, limit)

    # ---- repository access ----
    def _open(self) -> RepositoryHandle | None:
        return resolve_root(self.base_dir)

    def _relative_path(self, handle: RepositoryHandle, file_path: str) -> str | None:
        path = Path(file_path).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        try:
            relative = path.resolve().relative_to(handle.root)
        except ValueError:
            logger.debug(
                "Path is outside the repository",
                file_path=file_path,
                repository=str(handle.root),
            )
            return None
        posix = relative.as_posix()
        if posix == ".":
            return None
        if path.is_dir() or self._is_directory_at_head(handle, posix):
            logger.debug("Path is a directory, not a file", file_path=file_path)
            return None
        return posix

    def _is_directory_at_head(self, handle: RepositoryHandle, relative_path: str) -> bool:
        head_oid = resolve_commit(handle, "HEAD")
        if head_oid is None:
            return False
        head_tree = read_commit(handle, head_oid).tree.decode("ascii")
        entry = tree_entry(handle, head_tree, relative_path)
        return entry is not None and stat.S_ISDIR(entry[0])

    def _is_repository(self) -> bool:
        try:
            handle = self._open()
        except Exception as e:
            logger.debug("Repository lookup failed", error=str(e))
            return False
        if handle is None:
            return False
        handle.close()
        return True

    # ---- history ----
    def _file_history(self, file_path: str, limit: int | None) -> FileHistoryResult:
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return FileHistoryResult.empty(file_path)

        try:
            handle = self._open()
            if handle is None:
                logger.debug("Not a git repository", base_dir=str(self.base_dir))
                return FileHistoryResult.empty(file_path)

            with handle:
                relative_path = self._relative_path(handle, file_path)
                if relative_path is None:
                    return FileHistoryResult.empty(file_path)

                # One extra commit tells whether the limit cut the walk short
                descriptors = list(
                    islice(walk(handle, "HEAD", relative_path), limit + 1)
                )
                truncated = len(descriptors) > limit
                descriptors = descriptors[:limit]
                if not descriptors:
                    logger.debug("No history for file", file_path=relative_path)
                    return FileHistoryResult.empty(file_path)

                commits, failures = self._build_records(
                    handle, descriptors, relative_path
                )
        except Exception as e:
            logger.error(
                "Unexpected error getting git history",
                file_path=file_path,
                error=str(e),
                exc_info=True,
            )
            return FileHistoryResult.empty(file_path)

        return FileHistoryResult(
            file_path=file_path,
            commits=commits,
            total_commits=len(commits),
            first_commit=commits[-1],
            last_commit=commits[0],
            truncated=truncated,
            status=HistoryStatus.PARTIAL if failures else HistoryStatus.OK,
        )

    def _build_records(
        self,
        handle: RepositoryHandle,
        descriptors: list[CommitDescriptor],
        relative_path: str,
    ) -> tuple[list[CommitRecord], int]:
        records: list[CommitRecord] = []
        failures = 0

        for index, descriptor in enumerate(descriptors):
            changes = ChangeSummary()
            diff: str | None = None
            yaml_diff: SemanticDiffResult | None = None

            # Diffing is the expensive part; only the newest commits get it
            if index < self.diff_commit_limit:
                try:
                    changes, diff, yaml_diff = self._commit_diff(
                        handle, descriptor, relative_path
                    )
                except (HistoryError, ValueError) as e:
                    failures += 1
                    logger.warning(
                        "Could not compute diff for commit",
                        commit=descriptor.oid,
                        file_path=relative_path,
                        error=str(e),
                    )

            records.append(
                CommitRecord(
                    hash=descriptor.oid,
                    short_hash=descriptor.oid[:7],
                    author=descriptor.author_name,
                    author_email=descriptor.author_email,
                    date=iso_timestamp(descriptor.author_time),
                    message=descriptor.message,
                    changes=changes,
                    diff=diff,
                    yaml_diff=yaml_diff,
                )
            )

        return records, failures

    def _commit_diff(
        self,
        handle: RepositoryHandle,
        descriptor: CommitDescriptor,
        relative_path: str,
    ) -> tuple[ChangeSummary, str | None, SemanticDiffResult | None]:
        """Diff ``relative_path`` in a commit against its first parent."""
        current = content_at(handle, descriptor.oid, relative_path)
        previous = None
        if descriptor.parents:
            previous = content_at(handle, descriptor.parents[0], relative_path)

        if current is None and previous is None:
            return ChangeSummary(), None, None

        line_diff = diff_texts(previous, current, relative_path, self.diff_algorithm)
        changes = ChangeSummary(
            insertions=line_diff.insertions, deletions=line_diff.deletions
        )
        return changes, line_diff.diff_text, self._semantic(previous, current, relative_path)

    def _semantic(
        self, old_text: str | None, new_text: str | None, relative_path: str
    ) -> SemanticDiffResult | None:
        """YAML-aware diff, or None when the file is not YAML or did not parse."""
        if not relative_path.lower().endswith(self.semantic_extensions):
            return None
        result = semantic_diff(
            old_text or "",
            new_text or "",
            is_array_file=relative_path.endswith(self.mapping_file_suffix),
        )
        return result if result.available else None

    def _file_commit_count(self, file_path: str) -> int:
        try:
            handle = self._open()
            if handle is None:
                return 0
            with handle:
                relative_path = self._relative_path(handle, file_path)
                if relative_path is None:
                    return 0
                return sum(1 for _ in walk(handle, "HEAD", relative_path))
        except Exception as e:
            logger.error(
                "Unexpected error counting commits",
                file_path=file_path,
                error=str(e),
                exc_info=True,
            )
            return 0

    def _file_content_at_commit(self, file_path: str, commit_id: str) -> str | None:
        try:
            handle = self._open()
            if handle is None:
                return None
            with handle:
                relative_path = self._relative_path(handle, file_path)
                oid = resolve_commit(handle, commit_id)
                if relative_path is None or oid is None:
                    return None
                return content_at(handle, oid, relative_path)
        except Exception as e:
            logger.error(
                "Error getting file content at commit",
                file_path=file_path,
                commit=commit_id,
                error=str(e),
                exc_info=True,
            )
            return None

    # ---- repository-wide ----
    def _repository_stats(self) -> RepositoryStats:
        try:
            handle = self._open()
            if handle is None:
                return RepositoryStats()
            with handle:
                commits = list(walk(handle, "HEAD"))
        except Exception as e:
            logger.error("Error getting repository stats", error=str(e), exc_info=True)
            return RepositoryStats()

        if not commits:
            return RepositoryStats()

        contributors = {commit.author_email for commit in commits}
        return RepositoryStats(
            total_commits=len(commits),
            contributors=len(contributors),
            last_commit_date=iso_timestamp(commits[0].author_time),
            first_commit_date=iso_timestamp(commits[-1].author_time),
        )

    def _current_branch(self) -> str | None:
        try:
            handle = self._open()
            if handle is None:
                return None
            with handle:
                return current_branch(handle)
        except Exception as e:
            logger.error("Error getting current branch", error=str(e), exc_info=True)
            return None

    def _git_status(self) -> GitStatus:
        try:
            handle = self._open()
            if handle is None:
                return GitStatus()
            with handle:
                branch = current_branch(handle)
                if not branch:
                    return GitStatus(is_git_repository=True)
                info = self._branch_info(handle, branch)
        except Exception as e:
            logger.error("Error getting git status", error=str(e), exc_info=True)
            return GitStatus()

        return GitStatus(
            is_git_repository=True,
            current_branch=branch,
            branch_info=info,
            can_pull=info.is_behind,
            can_push=info.is_ahead,
        )

    def _branch_info(self, handle: RepositoryHandle, branch: str) -> GitBranchInfo:
        local_oid = resolve_commit(handle, f"refs/heads/{branch}")
        if local_oid is None:
            # Unborn branch: HEAD points at a branch with no commits yet
            return GitBranchInfo(current_branch=branch)

        local_graph = CommitGraph(handle, local_oid)
        latest = local_graph.commits[local_oid]
        base = GitBranchInfo(
            current_branch=branch,
            last_commit_date=iso_timestamp(latest.author_time),
            last_commit_message=latest.message,
        )

        remotes = remote_tracking_refs(handle, branch)
        # Prefer origin, then alphabetical
        for remote_ref in sorted(remotes, key=lambda ref: (not ref.startswith("origin/"), ref)):
            try:
                remote_graph = CommitGraph(handle, remotes[remote_ref])
            except HistoryError as e:
                logger.warning(
                    "Could not read remote-tracking branch",
                    remote_ref=remote_ref,
                    error=str(e),
                )
                continue

            ahead = len(local_graph.commits.keys() - remote_graph.commits.keys())
            behind = len(remote_graph.commits.keys() - local_graph.commits.keys())
            return base.model_copy(
                update={
                    "remote_ref": remote_ref,
                    "is_ahead": ahead > 0,
                    "is_behind": behind > 0,
                    "ahead_count": ahead,
                    "behind_count": behind,
                    "has_unpushed_changes": ahead > 0,
                }
            )

        return base

    # ---- working tree ----
    def _pending_change(self, file_path: str) -> CommitRecord | None:
        try:
            handle = self._open()
            if handle is None:
                return None
            with handle:
                relative_path = self._relative_path(handle, file_path)
                if relative_path is None:
                    return None
                return self._pending_record(handle, relative_path)
        except Exception as e:
            logger.error(
                "Could not check pending changes",
                file_path=file_path,
                error=str(e),
                exc_info=True,
            )
            return None

    def _pending_record(
        self, handle: RepositoryHandle, relative_path: str
    ) -> CommitRecord | None:
        working_file = handle.root / relative_path
        current: str | None = None
        if working_file.is_file():
            try:
                current = working_file.read_bytes().decode("utf-8")
            except UnicodeDecodeError:
                return None

        head_oid = resolve_commit(handle, "HEAD")
        committed = content_at(handle, head_oid, relative_path) if head_oid else None
        if current == committed:
            return None

        line_diff = diff_texts(committed, current, relative_path, self.diff_algorithm)
        return CommitRecord(
            hash=PENDING_HASH,
            short_hash=PENDING_HASH,
            author=PENDING_AUTHOR,
            author_email="",
            date=iso_timestamp(datetime.now(tz=timezone.utc).timestamp()),
            message=PENDING_MESSAGE,
            changes=ChangeSummary(
                insertions=line_diff.insertions, deletions=line_diff.deletions
            ),
            diff=line_diff.diff_text,
            yaml_diff=self._semantic(committed, current, relative_path),
        )

    def _unified_history(
        self, files: list[TrackedFile], limit: int | None
    ) -> UnifiedHistory:
        entries: list[UnifiedHistoryEntry] = []
        commits_by_type: dict[str, int] = {}
        file_paths: dict[str, str] = {}

        for tracked in files:
            file_paths[tracked.type] = tracked.path
            labels = {"type": tracked.type, "file_type": tracked.file_type}

            history = self._file_history(tracked.path, limit)
            for commit in history.commits:
                entries.append(UnifiedHistoryEntry(**commit.model_dump(), **labels))

            pending = self._pending_change(tracked.path)
            if pending is not None:
                entries.append(
                    UnifiedHistoryEntry(**pending.model_dump(), **labels, is_pending=True)
                )

            commits_by_type[tracked.type] = commits_by_type.get(tracked.type, 0) + (
                len(history.commits) + (1 if pending is not None else 0)
            )

        # Newest first, then pending entries ahead of everything (sort is stable)
        entries.sort(key=lambda entry: entry.date, reverse=True)
        entries.sort(key=lambda entry: not entry.is_pending)

        logger.debug(
            "Unified history assembled",
            files=len(files),
            total_commits=len(entries),
        )
        return UnifiedHistory(
            commits=entries,
            total_commits=len(entries),
            commits_by_type=commits_by_type,
            file_paths=file_paths,
        )
