"""
FastAPI application factory.

DESIGN DECISION: Domain errors are plain exceptions raised by the
services; this module is the only place that knows about HTTP status
codes. Every error body is ``{"detail": "<message>"}``.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from budgety import __version__
from budgety.api.dependencies import ServiceContainer
from budgety.api.routes import ROUTERS
from budgety.audit import configure_logging
from budgety.config import Settings, get_settings
from budgety.services.errors import (
    BudgetyError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnauthenticatedError,
)
from budgety.services.storage import SqlStorage, StorageError, StorageInterface

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
}


async def _budgety_error_handler(request: Request, exc: BudgetyError) -> JSONResponse:
    code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(status_code=code, content={"detail": exc.message})


async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("storage_error", path=request.url.path, method=request.method, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable"},
    )


def create_app(
    storage: Optional[StorageInterface] = None,
    settings: Optional[Settings] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        storage: Backend to use; a SqlStorage on DATABASE_URL by default
        settings: Settings to use; the cached environment settings by default
        start_scheduler: Run the daily tick in-process; SCHEDULER_ENABLED by default
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(
        app_settings.log_level,
        json_logs=app_settings.json_logs and not app_settings.debug_mode,
    )

    if storage is None:
        storage = SqlStorage()
    services = ServiceContainer(storage, settings)
    if start_scheduler is None:
        start_scheduler = settings.scheduler.enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(storage, SqlStorage):
            storage.database.init_schema()
            logger.info("database_ready", url=storage.database.url)

        scheduler_task = None
        if start_scheduler:
            scheduler_task = asyncio.create_task(services.job_runner.run_forever())

        yield

        if scheduler_task is not None:
            scheduler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scheduler_task
        if isinstance(storage, SqlStorage):
            storage.database.dispose()

    app = FastAPI(
        title="Budgety API",
        description="Family budget tracker API",
        version=__version__,
        debug=app_settings.debug_mode,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BudgetyError, _budgety_error_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": __version__}

    return app
