"""Tests for narration blob storage."""
from __future__ import annotations

import re

import httpx
import pytest

from voice_proxy.core.config import StorageConfig, StoreConfig
from voice_proxy.core.errors import InvalidInputError, StorageUploadFailedError
from voice_proxy.tts.storage import (
    LocalBlobStore,
    SupabaseBlobStore,
    create_blob_store,
    segment_name,
)


def test_segment_name_format():
    assert segment_name("42", "sam_altman", 3, 1700000000000) == "articles/42/sam_altman_part03_1700000000000.mp3"


def test_segment_name_uses_current_millis():
    name = segment_name("42", "wuenda", 12)
    assert re.fullmatch(r"articles/42/wuenda_part12_\d{13}\.mp3", name)


class TestLocalBlobStore:

    def test_upload_writes_file(self, tmp_path):
        store = LocalBlobStore(str(tmp_path), "/audio/")
        url = store.upload("articles/1/wuenda_part01_1.mp3", b"ID3data")

        assert url == "/audio/articles/1/wuenda_part01_1.mp3"
        assert (tmp_path / "articles/1/wuenda_part01_1.mp3").read_bytes() == b"ID3data"
        assert not list(tmp_path.rglob("*.tmp"))

    def test_overwrite(self, tmp_path):
        store = LocalBlobStore(str(tmp_path))
        store.upload("a.mp3", b"one")
        store.upload("a.mp3", b"two")
        assert (tmp_path / "a.mp3").read_bytes() == b"two"

    def test_path_traversal_rejected(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "root"))
        with pytest.raises(InvalidInputError):
            store.upload("../escape.mp3", b"x")

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        store = LocalBlobStore(str(blocker))
        with pytest.raises(StorageUploadFailedError):
            store.upload("a/b.mp3", b"x")
        assert not (blocker / "a").exists()


class TestSupabaseBlobStore:

    def test_close_owned_client_only(self, mock_http):
        shared = mock_http(lambda r: httpx.Response(200))
        SupabaseBlobStore("https://proj.supabase.co", "key", "b", http_client=shared).close()
        assert not shared.is_closed

        owned = SupabaseBlobStore("https://proj.supabase.co", "key", "b")
        owned.close()
        assert owned._client.is_closed

    def test_upload(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"Key": "voice-articles/a.mp3"})

        store = SupabaseBlobStore("https://proj.supabase.co/", "key", "voice-articles", http_client=mock_http(handler))
        url = store.upload("articles/1/a.mp3", b"ID3")

        assert url == "https://proj.supabase.co/storage/v1/object/public/voice-articles/articles/1/a.mp3"
        request = seen[0]
        assert request.url.path == "/storage/v1/object/voice-articles/articles/1/a.mp3"
        assert request.headers["x-upsert"] == "true"
        assert request.headers["Content-Type"] == "audio/mpeg"
        assert request.content == b"ID3"

    def test_rejected_upload(self, mock_http):
        store = SupabaseBlobStore(
            "https://proj.supabase.co", "key", "b", http_client=mock_http(lambda r: httpx.Response(403, text="denied"))
        )
        with pytest.raises(StorageUploadFailedError) as exc_info:
            store.upload("a.mp3", b"x")
        assert exc_info.value.details["status"] == 403

    def test_transport_failure(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        store = SupabaseBlobStore("https://proj.supabase.co", "key", "b", http_client=mock_http(handler))
        with pytest.raises(StorageUploadFailedError):
            store.upload("a.mp3", b"x")


def test_create_blob_store_backends(tmp_path):
    local = create_blob_store(StorageConfig(base_dir=str(tmp_path)), StoreConfig())
    remote = create_blob_store(
        StorageConfig(backend="supabase", bucket="b"), StoreConfig(url="https://proj.supabase.co", api_key="k")
    )
    assert isinstance(local, LocalBlobStore)
    assert isinstance(remote, SupabaseBlobStore)
