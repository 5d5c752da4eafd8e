"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Tests can inject their own blob storage provider

The blob storage provider is created exactly once, in the lifespan,
and shared by every request handler for the life of the process.
Serving the app (host, port, TLS) is left to the ASGI server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health
from .config.settings import get_settings
from .core.storage.provider import BlobStorageProvider
from .infrastructure.storage.factory import StorageFactory

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


async def provision_containers(storage: BlobStorageProvider, containers: list[str]) -> None:
    """Create every container the service writes to before the first request."""
    for container in containers:
        await storage.create_container(container)
        logger.info("Provisioned container", extra={"container": container})


def create_app(storage: Optional[BlobStorageProvider] = None) -> FastAPI:
    """
    Application factory.

    Args:
        storage: Provider to use instead of building one from settings.
            Tests pass a fake here.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Builds the storage provider (failing fast on bad configuration)
        and provisions the containers the service needs.
        """
        logger.info(
            "Blob storage service starting",
            extra={"version": settings.api_version, "storage_type": settings.storage_type},
        )

        provider = storage or StorageFactory.create_blob_storage_provider(settings)

        containers = [settings.health_check_container, *settings.provision_containers_list]
        await provision_containers(provider, list(dict.fromkeys(containers)))

        app.state.blob_storage = provider

        yield

        logger.info("Blob storage service shutting down")

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="Blob storage over Azure Blob Storage or S3-compatible backends.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message,
        so storage error details and stack traces don't leak to clients.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    return app


# Create the application instance
# This is what the ASGI server imports: blobstore.main:app
app = create_app()
