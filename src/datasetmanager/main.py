"""Main application entrypoint for the Dataset Manager gateway."""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from datasetmanager.api.v1 import routes_health
from datasetmanager.api.v1.routes_files import router as files_router
from datasetmanager.core.config import Settings, settings as default_settings
from datasetmanager.core.logging import setup_logging
from datasetmanager.storage.base import ObjectStore
from datasetmanager.storage.factory import get_object_store


def create_app(
    settings: Optional[Settings] = None, store: Optional[ObjectStore] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use, defaults to the environment settings
        store: Object store to serve, defaults to the configured backend

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = settings or default_settings

    # Initialize logging first
    setup_logging(settings)

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
    )
    app.state.settings = settings
    app.state.object_store = store or get_object_store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(files_router)

    return app


# Export app instance for ASGI servers
app = create_app()
