"""Git history API routes.

Read-only views over the repository holding the control set:
- per-file history with diffs for the newest commits
- file content at a commit
- repository stats and branch status
- a unified control + mappings timeline including uncommitted changes

None of these return 5xx for "not a repository" or "no history"; the
service answers those with empty shapes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from controlhist.api.deps import get_history_service
from controlhist.api.schemas import CommitCountResponse, FileContentResponse
from controlhist.models import (
    CommitRecord,
    FileHistoryResult,
    GitStatus,
    RepositoryStats,
    TrackedFile,
    UnifiedHistory,
)
from controlhist.services.git_history import GitHistoryService
from controlhist.utils.logger import get_logger

logger = get_logger("api.git")

router = APIRouter(prefix="/api/git", tags=["git"])

MAX_HISTORY_LIMIT = 1000


@router.get("/status", response_model=GitStatus)
async def git_status(
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> GitStatus:
    return await service.get_git_status()


@router.get("/stats", response_model=RepositoryStats)
async def repository_stats(
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> RepositoryStats:
    return await service.get_repository_stats()


@router.get("/history", response_model=FileHistoryResult)
async def file_history(
    path: str = Query(
        ..., min_length=1, description="File path, absolute or relative to the workdir"
    ),
    limit: int | None = Query(None, ge=1, le=MAX_HISTORY_LIMIT),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> FileHistoryResult:
    """Commits that touched a file, newest first."""
    result = await service.get_file_history(path, limit)
    logger.debug(
        "File history served",
        file_path=path,
        commits=result.total_commits,
        status=result.status.value,
    )
    return result


@router.get("/commit-count", response_model=CommitCountResponse)
async def file_commit_count(
    path: str = Query(
        ..., min_length=1, description="File path, absolute or relative to the workdir"
    ),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> CommitCountResponse:
    count = await service.get_file_commit_count(path)
    return CommitCountResponse(file_path=path, count=count)


@router.get("/latest", response_model=CommitRecord | None)
async def latest_commit(
    path: str = Query(
        ..., min_length=1, description="File path, absolute or relative to the workdir"
    ),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> CommitRecord | None:
    return await service.get_latest_commit(path)


@router.get("/file/{commit}", response_model=FileContentResponse)
async def file_at_commit(
    commit: str,
    path: str = Query(
        ..., min_length=1, description="File path, absolute or relative to the workdir"
    ),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> FileContentResponse:
    """File text as of a commit (full or abbreviated hash, branch or tag)."""
    content = await service.get_file_content_at_commit(path, commit)
    return FileContentResponse(file_path=path, commit_hash=commit, content=content)


@router.get("/pending", response_model=CommitRecord | None)
async def pending_change(
    path: str = Query(
        ..., min_length=1, description="File path, absolute or relative to the workdir"
    ),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> CommitRecord | None:
    """Uncommitted modifications of a file, or null when it matches HEAD."""
    return await service.get_pending_change(path)


@router.get("/unified", response_model=UnifiedHistory)
async def unified_history(
    control: str | None = Query(None, description="Control file path"),
    mappings: str | None = Query(None, description="Mappings file path"),
    limit: int | None = Query(None, ge=1, le=MAX_HISTORY_LIMIT),
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> UnifiedHistory:
    """Control and mappings history merged into one timeline."""
    files: list[TrackedFile] = []
    if control:
        files.append(TrackedFile(type="control", path=control, file_type="Control File"))
    if mappings:
        files.append(TrackedFile(type="mapping", path=mappings, file_type="Mappings"))
    return await service.get_unified_history(files, limit)
