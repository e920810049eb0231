from __future__ import annotations

import base64
import logging
import threading
import uuid
from pathlib import PurePath
from typing import Protocol

from google.cloud import storage

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        """Store ``content`` and return a URL it can be fetched from."""
        ...


def object_name(filename: str) -> str:
    suffix = PurePath(filename or "file").suffix.lower()
    return f"uploads/{uuid.uuid4().hex}{suffix}"


class GCSFileStorage:
    """Uploads to a Cloud Storage bucket and hands back the object's public URL."""

    def __init__(self, *, project_id: str, bucket_name: str) -> None:
        self.client = storage.Client(project=project_id)
        self.bucket = self.client.bucket(bucket_name)

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        blob = self.bucket.blob(object_name(filename))
        blob.upload_from_string(content, content_type=content_type)
        logger.info(
            "Uploaded file to Cloud Storage",
            extra={"bucket": self.bucket.name, "object": blob.name, "size": len(content)},
        )
        return blob.public_url


class InMemoryFileStorage:
    """Keeps uploads in memory and returns them as ``data:`` URLs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.files: dict[str, tuple[str, bytes]] = {}

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        with self._lock:
            self.files[object_name(filename)] = (content_type, content)
        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"


__all__ = ["FileStorage", "GCSFileStorage", "InMemoryFileStorage", "object_name"]
