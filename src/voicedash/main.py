"""
FastAPI application entry point.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voicedash import __version__
from voicedash.config import get_settings
from voicedash.executions.router import router as executions_router
from voicedash.shared.database import get_database_manager
from voicedash.shared.exceptions import (
    AppException,
    NormalizationError,
    ProviderUnavailableError,
    StoreUnavailableError,
)
from voicedash.shared.logging import get_logger, setup_logging
from voicedash.summary.router import router as summary_router

logger = get_logger(__name__)

UNAVAILABLE_MESSAGE = "data temporarily unavailable"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env})

    db_manager = get_database_manager()
    await db_manager.create_all()
    app.state.append_lock = asyncio.Lock()

    yield

    logger.info("Shutting down application")
    await db_manager.close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="voicedash API",
        description="Call-execution event aggregator for voice campaigns",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Map domain exceptions to HTTP responses
    @app.exception_handler(NormalizationError)
    async def _normalization(_: Request, exc: NormalizationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": {"code": exc.code, "message": exc.message, "details": exc.details}},
        )

    async def _unavailable(_: Request, exc: AppException) -> JSONResponse:
        logger.error(
            "Backing service unavailable",
            extra={"code": exc.code, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": {"code": exc.code, "message": UNAVAILABLE_MESSAGE}},
        )

    app.add_exception_handler(StoreUnavailableError, _unavailable)
    app.add_exception_handler(ProviderUnavailableError, _unavailable)

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=422,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(executions_router)
    app.include_router(summary_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
