"""
Configuration and settings for the creative canvas relay.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Vertex AI
    google_cloud_project: str = Field(default="hxhdemo")
    google_cloud_location: str = Field(default="global")
    # Veo is only served from regional endpoints.
    video_location: str = Field(default="us-central1")

    understand_model: str = Field(default="gemini-2.5-flash-lite")
    image_model: str = Field(default="gemini-3-pro-image-preview")
    video_model: str = Field(default="veo-3.1-generate-001")

    # Cloud Storage
    gcs_bucket: Optional[str] = Field(default=None)
    storage_prefix: str = Field(default="creative-canvas")
    signed_url_ttl_seconds: int = Field(default=15 * 60, ge=60, le=7 * 24 * 3600)

    # Metadata store
    metadata_backend: Literal["memory", "sql", "firestore"] = Field(
        default="firestore"
    )
    database_url: Optional[str] = Field(default=None)
    firestore_database: str = Field(default="creative-canvas")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
