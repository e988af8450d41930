"""Tests for the VoiceService facade."""
from __future__ import annotations

import httpx
import pytest

from voice_proxy.core.config import ConfigValidationError, Settings
from voice_proxy.core.errors import EmptyTextError, InvalidInputError, NoContentError, NotFoundError

from conftest import COMMENT_ID, SPARSE_COMMENT_ID


class TestConstruction:

    def test_mock_mode(self, service):
        assert service.mock_mode is True
        assert service.config.voices["wuenda"] == "voice-ng"

    def test_invalid_settings_rejected(self):
        from voice_proxy.services.voice_service import VoiceService

        with pytest.raises(ConfigValidationError):
            VoiceService(Settings(raw={"chunking": {"max_chars": -1}}))

    def test_default_store_is_memory(self, tmp_path):
        from voice_proxy.services.voice_service import VoiceService
        from voice_proxy.store import InMemorySubjectStore

        svc = VoiceService(Settings(raw={"storage": {"base_dir": str(tmp_path)}}))
        assert isinstance(svc.store, InMemorySubjectStore)
        svc.close()

    def test_close_releases_blob_store(self, settings, store, blob_store, sleeps, monkeypatch):
        from voice_proxy.services.voice_service import VoiceService

        closed = []
        monkeypatch.setattr(blob_store, "close", lambda: closed.append("blob"))
        VoiceService(settings, store=store, blob_store=blob_store, sleep=sleeps).close()
        assert closed == ["blob"]


class TestSynthesis:

    def test_synthesize_text(self, service):
        artifact = service.synthesize_text("  Hello.  ", "feifeili")
        assert artifact.speaker == "feifeili"
        assert artifact.text_preview == "Hello."

    def test_empty_text(self, service):
        with pytest.raises(EmptyTextError):
            service.synthesize_text("   ", "feifeili")

    def test_text_id_empty_article(self, service):
        with pytest.raises(NoContentError):
            service.synthesize_text_id("2", "wuenda")

    def test_text_id_missing(self, service):
        with pytest.raises(NotFoundError):
            service.synthesize_text_id("999", "wuenda")


class TestComments:

    def test_list_and_summary(self, service):
        page = service.list_comments()
        assert page.total == 2

        summary = service.comment_summary(page.items[1])
        assert summary["id"] == SPARSE_COMMENT_ID
        assert summary["textPreviews"]["wuenda"] == {"hasText": False, "preview": None, "length": 0}

    def test_summary_reflects_cache(self, service):
        service.audio_for(COMMENT_ID, "wuenda")
        page = service.list_comments()
        assert service.comment_summary(page.items[0])["hasAudio"]["wuenda"] is True

    def test_cached_audio_skips_speakers_without_text(self, service):
        data = service.cached_audio(SPARSE_COMMENT_ID)
        assert data["statistics"]["missingSpeakers"] == ["sam_altman"]

    def test_invalid_language(self, service):
        with pytest.raises(InvalidInputError):
            service.audio_for(COMMENT_ID, "wuenda", "fr")


class TestNarration:

    def test_status_missing(self, service):
        with pytest.raises(NotFoundError):
            service.narration_status("1", "wuenda")

    def test_status_after_narration(self, service):
        service.narrate("1", "wuenda")
        assert service.narration_status("1", "wuenda").segments_count == 1


class TestHealth:

    def test_healthy_in_mock_mode(self, service):
        info = service.get_health_info()
        assert info["status"] == "healthy"
        assert info["cache"]["size"] == 0

    def test_degraded_when_store_fails(self, settings, blob_store, sleeps):
        from voice_proxy.core.config import StoreConfig
        from voice_proxy.services.voice_service import VoiceService
        from voice_proxy.store.postgrest import SupabaseSubjectStore

        http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        store = SupabaseSubjectStore(StoreConfig(backend="supabase", url="https://x.supabase.co"), http_client=http)
        svc = VoiceService(settings, store=store, blob_store=blob_store, sleep=sleeps)

        assert svc.get_health_info()["status"] == "degraded"
        http.close()


def test_settings_fallback_without_file(tmp_path, monkeypatch):
    from voice_proxy.api.dependencies import get_settings

    monkeypatch.setenv("VOICE_PROXY_SETTINGS", str(tmp_path / "missing.yaml"))
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert isinstance(settings, Settings)
    finally:
        get_settings.cache_clear()
