from __future__ import annotations

import os

from fastapi import APIRouter, Depends

from controlhist import __version__
from controlhist.api.deps import get_history_service
from controlhist.api.schemas import HealthResponse
from controlhist.services.git_history import GitHistoryService

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    service: GitHistoryService = Depends(get_history_service),  # noqa: B008
) -> HealthResponse:
    """Liveness, plus whether the working directory is inside a repository."""
    return HealthResponse(
        version=__version__,
        pid=os.getpid(),
        workdir=str(service.base_dir),
        is_git_repository=await service.is_repository(),
    )
