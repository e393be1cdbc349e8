"""Pytest configuration and shared fixtures."""

import io
import zipfile

import pytest
from fastapi.testclient import TestClient

from datasetmanager.core.config import Settings, StoreConfig
from datasetmanager.main import create_app
from datasetmanager.storage.local import LocalObjectStore


@pytest.fixture
def local_store(tmp_path):
    """Object store backed by a temporary directory."""
    return LocalObjectStore(StoreConfig(bucket="datasets", base_path=str(tmp_path)))


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        _env_file=None,
        ENV="local",
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_PATH=str(tmp_path),
        MAX_UPLOAD_MB=1,
        ARCHIVE_MAX_ENTRIES=100,
    )


@pytest.fixture
def client(app_settings, local_store):
    """Test client serving the temporary local store."""
    app = create_app(settings=app_settings, store=local_store)
    return TestClient(app)


def _make_zip(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries:
            if name.endswith("/"):
                archive.writestr(zipfile.ZipInfo(name), b"")
            else:
                archive.writestr(name, data)
    buffer.seek(0)
    return buffer


async def _read_object(store, key):
    stream = await store.get(key)
    try:
        return stream.read()
    finally:
        stream.close()


@pytest.fixture
def make_zip():
    """Build an in-memory ZIP archive from (name, bytes) pairs.

    A name ending in "/" is written as a directory entry.
    """
    return _make_zip


@pytest.fixture
def read_object():
    """Read a whole object from a store."""
    return _read_object
