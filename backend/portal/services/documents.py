"""
Document Store Adapter - validates and uploads application documents.

Validation happens before any call to the blob store:
1. Category must be passport, transcripts or motivation_letter
2. Declared media type must be PDF or ZIP
3. Size must not exceed MAX_UPLOAD_BYTES (10 MiB)

Uploaded objects are namespaced as <owner>/<category>_<unix-millis>.<ext>
so a student re-submitting never overwrites an earlier document.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote

import httpx

from portal.config import (
    SUPABASE_URL, SUPABASE_SERVICE_KEY, STORAGE_BUCKET, UPLOAD_DIR,
    PUBLIC_BASE_URL, MAX_UPLOAD_BYTES, HTTP_TIMEOUT_SECONDS
)
from portal.errors import UploadError
from portal.logging_config import get_logger, log_with_context

logger = get_logger("storage")

DOCUMENT_CATEGORIES = ("passport", "transcripts", "motivation_letter")

ALLOWED_MEDIA_TYPES = {
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
}


@dataclass
class DocumentFile:
    """An uploaded file as received from the client."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class BlobStore(ABC):
    """Blob storage interface"""

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes under path"""
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Publicly dereferenceable URL for path"""
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the object at path"""
        pass


class HttpBlobStore(BlobStore):
    """Supabase Storage API client."""

    def __init__(self, base_url: str = None, api_key: str = None, bucket: str = None,
                 timeout: float = None, transport: httpx.BaseTransport = None):
        self.base_url = (base_url or SUPABASE_URL).rstrip("/") + "/storage/v1"
        self.api_key = api_key if api_key is not None else SUPABASE_SERVICE_KEY
        self.bucket = bucket or STORAGE_BUCKET
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"},
            transport=self.transport,
        )

    def _object_path(self, path: str) -> str:
        return f"/object/{self.bucket}/{quote(path)}"

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            with self._client() as client:
                response = client.post(self._object_path(path), content=data,
                                       headers={"Content-Type": content_type, "x-upsert": "false"})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UploadError("storage rejected upload: {}".format(_message_of(e.response)),
                              kind="store_failure") from e
        except httpx.HTTPError as e:
            raise UploadError("storage service unreachable", kind="store_failure") from e

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{quote(path)}"

    def delete(self, path: str) -> None:
        try:
            with self._client() as client:
                client.delete(self._object_path(path)).raise_for_status()
        except httpx.HTTPError as e:
            raise UploadError("could not delete {}".format(path), kind="store_failure") from e


def _message_of(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or str(response.status_code)
    return body.get("message") or body.get("error") or str(response.status_code)


class LocalBlobStore(BlobStore):
    """Stores documents on the local filesystem, served by the app under /files."""

    def __init__(self, base_path: str = None, public_base_url: str = None):
        self.base_path = Path(base_path or UPLOAD_DIR)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or PUBLIC_BASE_URL).rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.base_path / path).resolve()
        if self.base_path.resolve() not in target.parents:
            raise UploadError("invalid storage path: {}".format(path), kind="store_failure")
        return target

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as f:
                f.write(data)
        except OSError as e:
            raise UploadError("failed to save file: {}".format(e), kind="store_failure") from e

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/files/{quote(path)}"

    def delete(self, path: str) -> None:
        try:
            self._resolve(path).unlink(missing_ok=True)
        except OSError as e:
            raise UploadError("could not delete {}".format(path), kind="store_failure") from e


def validate_document(category: str, file: DocumentFile, max_bytes: int = None):
    """Raise UploadError unless the file may be uploaded under category."""
    max_bytes = max_bytes or MAX_UPLOAD_BYTES
    if category not in DOCUMENT_CATEGORIES:
        raise UploadError("unknown document category: {}".format(category), kind="invalid_category")
    if file.content_type not in ALLOWED_MEDIA_TYPES:
        raise UploadError("Please upload a PDF or ZIP file for {}".format(category), kind="invalid_type")
    if file.size > max_bytes:
        raise UploadError("File size must be less than {}MB for {}".format(max_bytes // (1024 * 1024), category),
                          kind="too_large")


def build_object_path(owner_id: str, category: str, file: DocumentFile, now_ms: int = None) -> str:
    """<owner>/<category>_<millis>.<ext>; extension from the filename when it is pdf or zip, else from the media type."""
    suffix = Path(file.filename or "").suffix.lstrip(".").lower()
    extension = suffix if suffix in ("pdf", "zip") else ALLOWED_MEDIA_TYPES[file.content_type]
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{owner_id}/{category}_{timestamp}.{extension}"


class DocumentStore:
    """Validates documents and pushes them to a BlobStore."""

    def __init__(self, blob_store: BlobStore, max_bytes: int = None):
        self.blob_store = blob_store
        self.max_bytes = max_bytes or MAX_UPLOAD_BYTES

    def upload(self, owner_id: str, category: str, file: DocumentFile) -> str:
        """Upload one document and return its public locator."""
        validate_document(category, file, self.max_bytes)

        path = build_object_path(owner_id, category, file)
        start_time = time.time()
        self.blob_store.upload(path, file.data, file.content_type)
        locator = self.blob_store.get_public_url(path)

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "INFO", "Uploaded {} ({} bytes)".format(category, file.size),
                         context={"principal_id": owner_id},
                         extra_data={"path": path, "duration_ms": round(duration_ms, 2)})
        return locator

    def path_of(self, locator: str) -> str:
        """Recover the object path from a locator produced by this store."""
        marker = self.blob_store.get_public_url("")
        if locator.startswith(marker):
            return unquote(locator[len(marker):])
        return locator

    def discard(self, locator: str):
        self.blob_store.delete(self.path_of(locator))
