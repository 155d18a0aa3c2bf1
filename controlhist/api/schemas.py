"""API response schemas that are not history value objects."""

from __future__ import annotations

from pydantic import Field

from controlhist.models import WireModel


class HealthResponse(WireModel):
    status: str = "ok"
    service: str = "controlhist-server"
    version: str
    pid: int | None = None
    workdir: str
    is_git_repository: bool = False


class CommitCountResponse(WireModel):
    file_path: str
    count: int = Field(..., description="Commits that touched the file, unbounded")


class FileContentResponse(WireModel):
    file_path: str
    commit_hash: str
    content: str | None = Field(
        None, description="File text at the commit; null when absent or unreadable"
    )
