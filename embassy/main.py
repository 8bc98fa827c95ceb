"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from embassy.api.v1.router import api_router
from embassy.config import Settings, settings
from embassy.core.exceptions import AppException
from embassy.core.redis_client import close_redis_connection, get_redis_client
from embassy.database import check_database_connection, engine
from embassy.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from embassy.middleware.logging import REQUEST_ID_HEADER, LoggingMiddleware, configure_logging

configure_logging()
logger = structlog.get_logger()

# Most specific first; Exception catches whatever the others miss.
EXCEPTION_HANDLERS = (
    (AppException, app_exception_handler),
    (StarletteHTTPException, http_exception_handler),
    (RequestValidationError, validation_exception_handler),
    (Exception, general_exception_handler),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Check backing services on startup and release them on shutdown."""
    logger.info(
        "application_startup",
        environment=settings.environment,
        office_hours=f"{settings.office_open_hour:02d}:00-{settings.office_close_hour:02d}:00",
        office_timezone=settings.office_timezone,
    )

    if not await check_database_connection():
        logger.error("database_connection_failed")

    try:
        get_redis_client().ping()
    except Exception as e:
        # Booking rate limits fail open, so the API still serves without redis.
        logger.warning("redis_unavailable", error=str(e))

    yield

    await engine.dispose()
    close_redis_connection()
    logger.info("application_shutdown")


def create_app(config: Settings = settings) -> FastAPI:
    """Build the appointments API."""
    application = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Appointment scheduling backend for embassy services",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    application.add_middleware(LoggingMiddleware)

    for exc_class, handler in EXCEPTION_HANDLERS:
        application.add_exception_handler(exc_class, handler)  # type: ignore[arg-type]

    application.include_router(api_router, prefix=config.api_v1_prefix)

    Instrumentator(
        should_group_status_codes=True,
        excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    ).instrument(application).expose(application, endpoint="/metrics", include_in_schema=False)

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {
            "message": f"Welcome to {config.app_name}",
            "version": config.app_version,
            "docs": application.docs_url or "",
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "embassy.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
