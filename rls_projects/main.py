"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rls_projects.core.config import settings
from rls_projects.core.exceptions import (
    AccessError,
    ContextSetupFailure,
    NoTenantInScope,
    NoUserInScope,
    NotFound,
    ValidationFailure,
)
from rls_projects.core.rls import AccessContextExecutor
from rls_projects.implementations.events import create_event_bus
from rls_projects.models.database import async_session_factory, close_db
from rls_projects.api.routes import router as api_router
from rls_projects.api.middleware import LoggingMiddleware, RequestIdMiddleware
from rls_projects.utils.context import configure_logging
from rls_projects.utils.health import HealthChecker, HealthStatus, check_database, check_event_bus

logger = structlog.get_logger()

ERROR_STATUS: dict[type[AccessError], int] = {
    NoUserInScope: 401,
    NoTenantInScope: 403,
    NotFound: 404,
    ValidationFailure: 422,
}


def _status_for(exc: AccessError) -> int:
    for cls, code in ERROR_STATUS.items():
        if isinstance(exc, cls):
            return code
    return 500


def _internal_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": str(exc) if settings.debug else "An error occurred",
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire the executor and event bus onto app.state."""
    configure_logging(settings.log_level, settings.log_format)

    app.state.executor = AccessContextExecutor.from_settings(async_session_factory, settings.rls)
    app.state.session_factory = async_session_factory
    app.state.event_bus = create_event_bus(settings.events, settings.redis)
    await app.state.event_bus.start()
    logger.info(
        "Application started",
        environment=settings.environment,
        events_backend=settings.events.backend,
    )

    yield

    await app.state.event_bus.stop()
    await close_db()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Last added is outermost: request id is bound before logging runs
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api")

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        """Map access errors to HTTP responses."""
        status_code = _status_for(exc)
        if status_code == 500:
            # ContextSetupFailure and other defects: never an authorization outcome
            logger.error(
                "Access context failure",
                path=request.url.path,
                error_code=exc.code,
                error=str(exc),
                setup_failure=isinstance(exc, ContextSetupFailure),
            )
            return _internal_error(exc)

        content = {"error": exc.code, "message": str(exc)}
        if isinstance(exc, ValidationFailure):
            content["errors"] = exc.errors
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies get the same shape as service-level validation."""
        return await access_error_handler(request, ValidationFailure.from_pydantic(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return _internal_error(exc)

    @app.get("/health")
    async def health_check():
        """Liveness probe; touches no dependencies."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/health/detailed")
    async def health_check_detailed(request: Request):
        """Database (including RLS enforcement) and event bus status."""
        checker = HealthChecker(
            version=settings.app_version,
            environment=settings.environment,
        )
        checker.add_check("database", lambda: check_database(request.app.state.session_factory))
        checker.add_check("events", lambda: check_event_bus(request.app.state.event_bus))

        health = await checker.run()
        status_code = 503 if health.status is HealthStatus.UNHEALTHY else 200
        return JSONResponse(content=health.to_dict(), status_code=status_code)

    return app


app = create_app()
