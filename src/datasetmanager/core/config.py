"""Configuration management for the Dataset Manager gateway."""

from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class StoreConfig:
    """Connection settings injected into an object store backend."""

    bucket: str
    project_id: str = ""
    base_path: str = "data/objects"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "dataset-manager"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Storage Configuration
    STORAGE_BACKEND: str = "local"  # "gcs" or "local"
    GCS_BUCKET_NAME: str = "datasets"
    GCP_PROJECT_ID: str = ""
    LOCAL_STORAGE_PATH: str = "data/objects"

    # Upload Constraints
    MAX_UPLOAD_MB: int = 1024

    # Archive Extraction Configuration
    ARCHIVE_MAX_ENTRIES: int = 10_000
    ARCHIVE_MAX_ENTRY_SIZE_MB: int = 500

    # Comma-separated list of origins allowed by CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def max_upload_bytes(self) -> int:
        """Convert MAX_UPLOAD_MB to bytes."""
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def archive_max_entry_size_bytes(self) -> int:
        """Convert ARCHIVE_MAX_ENTRY_SIZE_MB to bytes."""
        return self.ARCHIVE_MAX_ENTRY_SIZE_MB * 1024 * 1024

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def store_config(self) -> StoreConfig:
        """Build the object store configuration for the active backend."""
        return StoreConfig(
            bucket=self.GCS_BUCKET_NAME,
            project_id=self.GCP_PROJECT_ID,
            base_path=self.LOCAL_STORAGE_PATH,
        )


# Singleton settings instance
settings = Settings()
