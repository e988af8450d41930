"""
Blob Storage for Narrated Audio.

Article narration uploads each synthesized segment under a stable name:

    articles/{article_id}/{speaker}_part{NN}_{millis}.mp3

Backends:
    LocalBlobStore: files under base_dir, served by the app at
        public_base_url (default ``/audio``). Writes go to a temp file
        first and are renamed into place.
    SupabaseBlobStore: Supabase Storage REST upload with upsert.

Both return the public URL of the stored object and raise
StorageUploadFailedError when the write does not succeed.
"""
from __future__ import annotations

import contextlib
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from voice_proxy.core.config import StorageConfig, StoreConfig
from voice_proxy.core.errors import InvalidInputError, StorageUploadFailedError
from voice_proxy.core.logging import get_logger, info, warn
from voice_proxy.utils.timeit import timeit

_LOG = get_logger("voice-proxy.storage")

AUDIO_CONTENT_TYPE = "audio/mpeg"


def segment_name(article_id: str, speaker: str, index: int, millis: Optional[int] = None) -> str:
    """
    Object name for one narration segment.

    >>> segment_name("42", "sam_altman", 3, 1700000000000)
    'articles/42/sam_altman_part03_1700000000000.mp3'
    """
    if millis is None:
        millis = int(time.time() * 1000)
    return f"articles/{article_id}/{speaker}_part{index:02d}_{millis}.mp3"


class BlobStore(ABC):
    @abstractmethod
    def upload(self, name: str, data: bytes, content_type: str = AUDIO_CONTENT_TYPE) -> str:
        """Store ``data`` under ``name`` and return its public URL."""

    def close(self) -> None:
        pass


class LocalBlobStore(BlobStore):
    def __init__(self, base_dir: str, public_base_url: str = "/audio"):
        self.base_dir = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, name: str) -> Path:
        path = (self.base_dir / name).resolve()
        if not path.is_relative_to(self.base_dir.resolve()):
            raise InvalidInputError(f"Invalid object name: {name}")
        return path

    def upload(self, name: str, data: bytes, content_type: str = AUDIO_CONTENT_TYPE) -> str:
        path = self._path(name)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with timeit("storage_write") as t:
                tmp.write_bytes(data)
                tmp.replace(path)
        except OSError as e:
            warn(_LOG, "storage_write_error", name=name, error=str(e))
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise StorageUploadFailedError(f"Failed to store {name}: {e}", {"name": name}) from e

        info(_LOG, "stored", name=name, bytes=len(data), seconds=round(t.timing.seconds, 4) if t.timing else None)
        return f"{self.public_base_url}/{name}"


class SupabaseBlobStore(BlobStore):
    """
    Supabase Storage bucket.

        POST {url}/storage/v1/object/{bucket}/{name}   (x-upsert: true)
        public URL: {url}/storage/v1/object/public/{bucket}/{name}
    """

    def __init__(self, url: str, api_key: str, bucket: str, http_client: Optional[httpx.Client] = None,
                 timeout_s: float = 30.0):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout_s = timeout_s
        self._client = http_client or httpx.Client()
        self._owns_client = http_client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def public_url(self, name: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{name}"

    def upload(self, name: str, data: bytes, content_type: str = AUDIO_CONTENT_TYPE) -> str:
        endpoint = f"{self.url}/storage/v1/object/{self.bucket}/{name}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        try:
            response = self._client.post(endpoint, content=data, headers=headers, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            warn(_LOG, "upload_error", name=name, error=str(e))
            raise StorageUploadFailedError(f"Upload failed for {name}: {e}", {"name": name}) from e
        if response.status_code >= 300:
            warn(_LOG, "upload_rejected", name=name, status=response.status_code)
            raise StorageUploadFailedError(
                f"Upload failed for {name}: HTTP {response.status_code}",
                {"name": name, "status": response.status_code, "body": response.text[:200]},
            )
        info(_LOG, "uploaded", name=name, bytes=len(data))
        return self.public_url(name)


def create_blob_store(storage: StorageConfig, store: StoreConfig) -> BlobStore:
    """Build the configured blob backend. Supabase storage shares the data-store credentials."""
    if storage.backend == "supabase":
        return SupabaseBlobStore(store.url, store.api_key, storage.bucket, timeout_s=store.timeout_s)
    return LocalBlobStore(storage.base_dir, storage.public_base_url)
