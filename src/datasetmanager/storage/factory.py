"""Object store backend selection."""

from datasetmanager.core.config import Settings
from datasetmanager.storage.base import ObjectStore
from datasetmanager.storage.gcs import GCSObjectStore
from datasetmanager.storage.local import LocalObjectStore


def get_object_store(settings: Settings) -> ObjectStore:
    """Build the object store configured by STORAGE_BACKEND.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "gcs":
        return GCSObjectStore(settings.store_config())
    if backend == "local":
        return LocalObjectStore(settings.store_config())
    raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")
