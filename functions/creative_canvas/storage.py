"""
Storage abstraction for Google Cloud Storage and in-memory testing.

Artifacts are referenced by ``gs://<bucket>/<path>`` URIs so that references
written by the video model and references written by us look the same.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol
import logging

import google.auth
from google.auth import credentials as auth_credentials
from google.auth.transport import requests as auth_requests
from google.cloud import storage as gcs

logger = logging.getLogger(__name__)

GCS_SCHEME = "gs://"


def split_gcs_uri(uri: str) -> tuple[str, str]:
    """Split ``gs://bucket/some/path`` into ``("bucket", "some/path")``."""
    if not uri.startswith(GCS_SCHEME):
        raise ValueError(f"Not a gs:// URI: {uri}")
    bucket, _, path = uri[len(GCS_SCHEME):].partition("/")
    if not bucket or not path:
        raise ValueError(f"Incomplete gs:// URI: {uri}")
    return bucket, path


class StorageClient(Protocol):
    """Defines the operations the relay needs from object storage."""

    bucket_name: str

    def uri_for(self, path: str) -> str:
        ...

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        ...

    def sign_url(self, uri: str, expires_in: int = 900) -> str:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket_name: str = "in-memory"
    base_url: str = "https://example.test/storage"
    stored_objects: dict[str, bytes] = field(default_factory=dict)
    content_types: dict[str, str] = field(default_factory=dict)
    signed_uris: list[str] = field(default_factory=list)

    def uri_for(self, path: str) -> str:
        return f"{GCS_SCHEME}{self.bucket_name}/{path}"

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        self.stored_objects[path] = data
        self.content_types[path] = content_type
        return self.uri_for(path)

    def sign_url(self, uri: str, expires_in: int = 900) -> str:
        _, path = split_gcs_uri(uri)
        self.signed_uris.append(uri)
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def delete_prefix(self, prefix: str) -> int:
        doomed = [
            path for path in list(self.stored_objects) if path.startswith(prefix)
        ]
        for path in doomed:
            del self.stored_objects[path]
            self.content_types.pop(path, None)
        return len(doomed)

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()
        self.signed_uris.clear()


class GcsStorageClient:
    """
    Google Cloud Storage client bound to a single bucket.

    Signed URLs are V4. When the ambient credentials cannot sign locally
    (Cloud Run, GCE metadata server) signing goes through the IAM signBlob
    API using the service account email and a fresh access token.
    """

    def __init__(self, bucket: str, project: str | None = None):
        if not bucket:
            raise ValueError("GCS_BUCKET is required for GcsStorageClient")
        self.bucket_name = bucket
        self._credentials, default_project = google.auth.default(
            scopes=["https://www.googleapis.com/auth/cloud-platform"]
        )
        self._client = gcs.Client(
            project=project or default_project, credentials=self._credentials
        )
        self._bucket = self._client.bucket(bucket)

    def uri_for(self, path: str) -> str:
        return f"{GCS_SCHEME}{self.bucket_name}/{path}"

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        self._bucket.blob(path).upload_from_string(data, content_type=content_type)
        logger.info("Uploaded %d bytes to gs://%s/%s", len(data), self.bucket_name, path)
        return self.uri_for(path)

    def _signing_kwargs(self) -> dict:
        if isinstance(self._credentials, auth_credentials.Signing):
            return {}
        if not self._credentials.valid:
            self._credentials.refresh(auth_requests.Request())
        return {
            "service_account_email": self._credentials.service_account_email,
            "access_token": self._credentials.token,
        }

    def sign_url(self, uri: str, expires_in: int = 900) -> str:
        bucket, path = split_gcs_uri(uri)
        blob = self._client.bucket(bucket).blob(path)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expires_in),
            method="GET",
            **self._signing_kwargs(),
        )

    def delete_prefix(self, prefix: str) -> int:
        blobs = list(self._client.list_blobs(self.bucket_name, prefix=prefix))
        if blobs:
            self._bucket.delete_blobs(blobs)
        logger.info(
            "Deleted %d object(s) under gs://%s/%s", len(blobs), self.bucket_name, prefix
        )
        return len(blobs)
