"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends, Request

from creative_canvas.config import get_settings
from creative_canvas.db import (
    DbClient,
    FirestoreDbClient,
    InMemoryDbClient,
    PostgresDbClient,
)
from creative_canvas.relay import CreativeRelay, User
from creative_canvas.storage import GcsStorageClient, InMemoryStorageClient, StorageClient
from models.gemini import GeminiClient

USER_ID_HEADER = "x-goog-authenticated-user-id"
USER_EMAIL_HEADER = "x-goog-authenticated-user-email"
IAP_ACCOUNT_PREFIX = "accounts.google.com:"

GUEST_USER = User(id="guest", email="guest@example.com")

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_gemini_client: GeminiClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton metadata client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or settings.metadata_backend == "memory":
        _db_client = InMemoryDbClient()
    elif settings.metadata_backend == "sql":
        _db_client = PostgresDbClient(settings.database_url or "")
    else:
        _db_client = FirestoreDbClient(
            project=settings.google_cloud_project,
            database=settings.firestore_database,
        )
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.gcs_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = GcsStorageClient(
            bucket=settings.gcs_bucket,
            project=settings.google_cloud_project,
        )
    return _storage_client


def get_gemini_client() -> GeminiClient:
    global _gemini_client
    if _gemini_client:
        return _gemini_client

    settings = get_settings()
    _gemini_client = GeminiClient.for_vertex(
        project=settings.google_cloud_project,
        location=settings.google_cloud_location,
        video_location=settings.video_location,
    )
    return _gemini_client


def get_relay(
    gemini: GeminiClient = Depends(get_gemini_client),
    storage: StorageClient = Depends(get_storage_client),
    db: DbClient = Depends(get_db_client),
) -> CreativeRelay:
    settings = get_settings()
    return CreativeRelay(
        gemini=gemini,
        storage=storage,
        db=db,
        storage_prefix=settings.storage_prefix,
        understand_model=settings.understand_model,
        image_model=settings.image_model,
        video_model=settings.video_model,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )


def _strip_account_prefix(value: str) -> str:
    return value.replace(IAP_ACCOUNT_PREFIX, "")


def get_current_user(request: Request) -> User:
    """
    Identity comes from headers injected by the IAP proxy in front of us.
    Without them every caller shares the guest identity.
    """
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        return GUEST_USER
    email = request.headers.get(USER_EMAIL_HEADER)
    return User(
        id=_strip_account_prefix(user_id),
        email=_strip_account_prefix(email) if email else "unknown",
    )
