from __future__ import annotations

from fastapi import Request

from controlhist.services.git_history import GitHistoryService


def get_history_service(request: Request) -> GitHistoryService:
    """History service bound to the app; replaced when config reloads."""
    return request.app.state.history_service
