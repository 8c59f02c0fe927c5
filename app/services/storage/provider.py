"""Object storage for thumbnails, videos and assignment files.

Two backends share the ``ObjectStorage`` interface: a local directory served
under ``/uploads`` and the Supabase Storage REST API. ``store`` raises
``DependencyError`` because it backs a primary write; ``release`` is
best-effort and only logs.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Optional

import requests

from app.core.config import settings
from app.core.errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

THUMBNAILS = "thumbnails"
VIDEOS = "videos"
ASSIGNMENTS = "assignments"
SUBMISSIONS = "submissions"


@dataclass(frozen=True)
class FilePayload:
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename or "").suffix.lower()


@dataclass(frozen=True)
class StoredObject:
    url: str
    storage_ref: str
    bytes: int
    format: Optional[str] = None
    original_name: Optional[str] = None


def _object_key(folder: str, payload: FilePayload) -> str:
    return f"{folder}/{uuid.uuid4().hex}{payload.extension}"


def _check_payload(payload: FilePayload) -> None:
    if payload is None or not payload.content:
        raise ValidationError("Uploaded file is empty")
    if payload.size > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"Uploaded file exceeds the {settings.MAX_UPLOAD_BYTES} bytes limit"
        )


class ObjectStorage:
    """Base class: subclasses implement ``_put`` and ``_delete``."""

    name = "abstract"

    def store(self, payload: FilePayload, folder: str) -> StoredObject:
        _check_payload(payload)
        key = _object_key(folder, payload)
        try:
            url = self._put(key, payload)
        except DependencyError:
            raise
        except (OSError, requests.RequestException) as exc:
            logger.error("Storage upload failed (%s, %s): %s", self.name, key, exc)
            raise DependencyError(f"Could not store '{payload.filename}'") from exc

        logger.info("Stored %s (%d bytes) as %s", payload.filename, payload.size, key)
        return StoredObject(
            url=url,
            storage_ref=key,
            bytes=payload.size,
            format=payload.extension.lstrip(".") or None,
            original_name=payload.filename,
        )

    def release(self, storage_ref: Optional[str]) -> None:
        if not storage_ref:
            return
        try:
            self._delete(storage_ref)
        except (OSError, requests.RequestException) as exc:
            logger.warning("Storage release failed for %s (ignored): %s", storage_ref, exc)
        else:
            logger.info("Released stored object %s", storage_ref)

    def _put(self, key: str, payload: FilePayload) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def _delete(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    """Writes under ``UPLOAD_DIR``; ``app.main`` mounts it at ``/uploads``."""

    name = "local"

    def __init__(self, root: str | Path | None = None, base_url: str | None = None):
        self.root = Path(root or settings.UPLOAD_DIR)
        self.base_url = (base_url or f"{str(settings.BACKEND_BASE_URL).rstrip('/')}/uploads").rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise OSError(f"Refusing to touch {key} outside the upload directory")
        return path

    def _put(self, key: str, payload: FilePayload) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload.content)
        return f"{self.base_url}/{key}"

    def _delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)


class SupabaseObjectStorage(ObjectStorage):
    name = "supabase"

    def __init__(self, base_url: str, service_key: str, bucket: str):
        self.base_url = str(base_url).rstrip("/")
        self.bucket = bucket
        self._service_key = service_key

    def _headers(self, content_type: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _put(self, key: str, payload: FilePayload) -> str:
        content_type = (
            payload.content_type
            or mimetypes.guess_type(payload.filename or "")[0]
            or "application/octet-stream"
        )
        response = requests.post(
            f"{self.base_url}/storage/v1/object/{self.bucket}/{key}",
            data=payload.content,
            headers={**self._headers(content_type), "x-upsert": "false"},
            timeout=120,
        )
        if response.status_code >= 400:
            logger.error("Supabase upload refused (%s): %s", response.status_code, response.text)
            raise DependencyError(f"Storage rejected '{payload.filename}' ({response.status_code})")
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    def _delete(self, key: str) -> None:
        response = requests.delete(
            f"{self.base_url}/storage/v1/object/{self.bucket}",
            json={"prefixes": [key]},
            headers=self._headers("application/json"),
            timeout=30,
        )
        if response.status_code >= 400 and response.status_code != 404:
            raise requests.RequestException(
                f"Supabase delete failed ({response.status_code}): {response.text}"
            )


@lru_cache
def get_storage() -> ObjectStorage:
    provider = (settings.STORAGE_PROVIDER or "local").lower()
    if provider == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY manquants")
        return SupabaseObjectStorage(
            str(settings.SUPABASE_URL),
            settings.SUPABASE_SERVICE_ROLE_KEY,
            settings.SUPABASE_STORAGE_BUCKET,
        )
    if provider != "local":
        logger.warning("Unknown STORAGE_PROVIDER '%s', using local storage.", provider)
    return LocalObjectStorage()
