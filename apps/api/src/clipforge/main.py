"""
FastAPI application entry point.

Run with ``uvicorn clipforge.main:app``. Pipeline work happens in Celery
workers; this process only records requests and dispatches tasks.
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipforge import __version__
from clipforge.api.v1 import api_router
from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ClipForgeException
from clipforge.schemas.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(f"Starting ClipForge API v{__version__} in {settings.environment} mode")
    yield
    logger.info("Shutting down ClipForge API")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    # API docs are only served outside production-like environments
    docs_enabled = settings.is_development
    app = FastAPI(
        title=settings.app_name,
        description="Short-form video generation and publishing pipeline",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
        },
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    register_exception_handlers(app)
    register_middleware(app)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {"name": settings.app_name, "version": __version__, "docs": "/docs"}

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render every error as ``{"error": {"code", "message", "details"}}``.

    ClipForge exceptions keep their own status and code. Anything else is
    logged with its traceback and reported as a generic 500; exception
    text is only exposed in development.
    """

    @app.exception_handler(ClipForgeException)
    async def clipforge_exception_handler(request: Request, exc: ClipForgeException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                f"{exc.code}: {exc.message}",
                extra={"path": request.url.path, "error_code": exc.code},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception",
            extra={"path": request.url.path, "request_id": getattr(request.state, "request_id", None)},
        )
        details: dict[str, Any] = {}
        if get_settings().is_development:
            details = {"error_type": type(exc).__name__, "error": str(exc)}

        body = ErrorResponse(
            error=ErrorDetail(code="INTERNAL_ERROR", message="An unexpected error occurred", details=details)
        )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


def register_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next: Any) -> Any:
        # Honor an upstream request id so logs line up across services
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.6f}"
        return response


app = create_app()
