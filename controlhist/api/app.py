from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from controlhist import __version__
from controlhist.api.routes.git import router as git_router
from controlhist.api.routes.health import router as health_router
from controlhist.config import settings
from controlhist.services.git_history import GitHistoryService
from controlhist.utils.logger import api_logger, request_log


@asynccontextmanager
async def lifespan(app: FastAPI):
    config_manager = getattr(app.state, "config_manager", None)
    if config_manager is not None:

        def on_config_change(new_config):
            # Services are stateless between calls, so swapping is safe
            current = app.state.history_service
            try:
                app.state.history_service = GitHistoryService.from_settings(
                    current.base_dir, settings
                )
            except ValueError as e:
                api_logger.warning(
                    "Ignoring invalid history settings, keeping previous",
                    error=str(e),
                )
                return
            api_logger.info(
                "Configuration changed, history service rebuilt",
                changed_keys=list(new_config.keys()),
            )

        config_manager.register_change_callback(on_config_change)
        await config_manager.start_watching()
        api_logger.info("Config file watcher started with change callback")

    yield

    if config_manager is not None:
        try:
            await config_manager.stop_watching()
            api_logger.info("Config file watcher stopped")
        except asyncio.CancelledError:
            api_logger.debug("Config watcher stop cancelled during shutdown")


def create_app(service: GitHistoryService | None = None) -> FastAPI:
    """Build the app around a history service.

    Without one, a service rooted at the current directory is built from
    the global settings.
    """
    app = FastAPI(
        title="Control History Server",
        description="Git history, line diffs and YAML-aware diffs for compliance control files",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.history_service = service or GitHistoryService.from_settings(
        Path.cwd(), settings
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(git_router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        request_log(
            api_logger,
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    return app
