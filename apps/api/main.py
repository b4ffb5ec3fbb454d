"""
FastAPI application entry point for the lesson booking service.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.container import ServiceContainer, build_container
from apps.api.routers import availability, bookings, contact, payments
from core.logging import get_logger, setup_logging
from core.settings import Settings, get_settings
from domain.errors import StorageError


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use instead of the environment
        container: Prebuilt services; built at startup when omitted
    """
    settings = settings or (container.settings if container else get_settings())
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan context manager.
        Handles startup and shutdown events.
        """
        logger.info(
            "Starting lesson booking service",
            extra={"app_name": settings.app_name, "environment": settings.app_env},
        )
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container(settings)
        if settings.is_development:
            await app.state.container.database.init_db()
            logger.info("Database tables created")

        yield

        logger.info("Shutting down lesson booking service")
        await app.state.container.close()

    app = FastAPI(
        title=settings.app_name,
        description="Lesson booking backend",
        version="1.0.0",
        debug=settings.debug,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "予約を保存できませんでした。", "retryable": True},
        )

    for router in (availability.router, bookings.router, payments.router, contact.router):
        app.include_router(router, prefix=settings.api_prefix)

    @app.get("/health")
    @app.get(f"{settings.api_prefix}/health")
    async def health_check():
        """
        Health check endpoint.
        Returns application health status.
        """
        return {
            "status": "healthy",
            "app_name": settings.app_name,
            "environment": settings.app_env,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apps.api.main:app",
        host=get_settings().api_host,
        port=get_settings().api_port,
        reload=get_settings().api_reload,
        log_level=get_settings().log_level.lower(),
    )
