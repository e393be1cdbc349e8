"""Tests for settings and backend selection."""

import pytest

from datasetmanager.core.config import Settings, StoreConfig
from datasetmanager.storage.factory import get_object_store
from datasetmanager.storage.gcs import GCSObjectStore
from datasetmanager.storage.local import LocalObjectStore


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.STORAGE_BACKEND == "local"
    assert settings.GCS_BUCKET_NAME == "datasets"
    assert settings.cors_origins == ["http://localhost:3000"]


def test_derived_values():
    settings = Settings(
        _env_file=None,
        MAX_UPLOAD_MB=2,
        ARCHIVE_MAX_ENTRY_SIZE_MB=3,
        CORS_ORIGINS="http://a.example, http://b.example,",
    )

    assert settings.max_upload_bytes == 2 * 1024 * 1024
    assert settings.archive_max_entry_size_bytes == 3 * 1024 * 1024
    assert settings.cors_origins == ["http://a.example", "http://b.example"]


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "gcs")
    monkeypatch.setenv("GCS_BUCKET_NAME", "raw-datasets")

    settings = Settings(_env_file=None)

    assert settings.STORAGE_BACKEND == "gcs"
    assert settings.store_config() == StoreConfig(
        bucket="raw-datasets", project_id="", base_path="data/objects"
    )


def test_factory_selects_backend(tmp_path):
    local = get_object_store(Settings(_env_file=None, LOCAL_STORAGE_PATH=str(tmp_path)))
    gcs = get_object_store(Settings(_env_file=None, STORAGE_BACKEND="gcs"))

    assert isinstance(local, LocalObjectStore)
    assert local.bucket_name == "datasets"
    assert isinstance(gcs, GCSObjectStore)


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unknown storage backend"):
        get_object_store(Settings(_env_file=None, STORAGE_BACKEND="s3"))
