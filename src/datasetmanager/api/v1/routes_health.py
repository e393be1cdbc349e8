"""Health check endpoint for the Dataset Manager gateway."""

from fastapi import APIRouter, Request

from datasetmanager.core.config import settings as default_settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns service status, name, and version information without
    touching the object store.
    """
    settings = getattr(request.app.state, "settings", default_settings)
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }
