from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from url_shortener.api import redirect, urls
from url_shortener.config import Settings, settings as default_settings
from url_shortener.dependencies import build_services
from url_shortener.exceptions import ShortenerError
from url_shortener.observability import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    configure_logging,
)
from url_shortener.schemas.url import HealthResponse

logger = structlog.get_logger()


def create_app(settings: Optional[Settings] = None, **service_overrides) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-loaded ones
        service_overrides: Passed to build_services (e.g. store=..., code_strategy=...)
    """
    settings = settings or default_settings
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting URL shortener", version=settings.app_version, environment=settings.environment)
        services = await build_services(settings, **service_overrides)
        await services.start()
        app.state.services = services

        yield

        logger.info("Shutting down URL shortener")
        await services.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="A URL shortener with asynchronous click analytics",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Order matters: RequestID must wrap logging so the id is bound first
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(ShortenerError)
    async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed", error=exc.error, detail=exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "InvalidInput", "detail": "invalid request body"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal", "detail": "internal server error"},
        )

    @app.get("/")
    def read_root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Liveness only: does not touch the store or the cache"""
        return HealthResponse(status="healthy", time=datetime.now(timezone.utc))

    ######## Include routers (redirect last: it matches any single path segment)
    app.include_router(urls.router)
    app.include_router(redirect.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
