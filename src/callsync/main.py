"""
FastAPI application entry point.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callsync.calls.router import router as calls_router
from callsync.config import get_settings
from callsync.notifications.router import router as notifications_router
from callsync.numbers.router import router as numbers_router
from callsync.realtime.hub import RealtimePushHub
from callsync.realtime.router import router as realtime_router
from callsync.shared.database import get_database_manager
from callsync.shared.exceptions import AppException, InternalError, UpstreamError
from callsync.shared.logging import correlation_id_var, get_logger, setup_logging
from callsync.telephony.factory import get_provider_gateway
from callsync.telephony.webhooks.router import router as voice_webhooks_router

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Owns the push hub: created here, exposed on ``app.state.push_hub`` and
    stopped on shutdown.
    """
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env})

    await get_database_manager().create_all()

    hub = getattr(app.state, "push_hub", None)
    if hub is None:
        hub = RealtimePushHub(ping_interval_seconds=settings.push_ping_interval_seconds)
        app.state.push_hub = hub
    hub.start()

    yield

    logger.info("Shutting down application")

    await hub.stop()
    if get_provider_gateway.cache_info().currsize:
        await get_provider_gateway().close()
    await get_database_manager().close()
    logger.info("Application shutdown complete")


def _error_body(exc: AppException) -> dict[str, Any]:
    body: dict[str, Any] = {"code": exc.code, "message": exc.message}
    # Upstream and internal failures never expose their details
    if exc.details and not isinstance(exc, (UpstreamError, InternalError)):
        body["details"] = exc.details
    return {"detail": body}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="callsync API",
        description="Call-state synchronization for the telephony dashboard",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Map domain exceptions to HTTP responses
    @app.exception_handler(AppException)
    async def _app_exception(request: Request, exc: AppException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "code": exc.code},
            )
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

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
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(InternalError()),
        )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Any:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid4().hex
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(calls_router)
    app.include_router(numbers_router)
    app.include_router(notifications_router)
    app.include_router(realtime_router)
    app.include_router(voice_webhooks_router)

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        hub = getattr(request.app.state, "push_hub", None)
        return {
            "status": "healthy",
            "push": hub.stats() if hub is not None else None,
        }

    return app


app = create_app()
