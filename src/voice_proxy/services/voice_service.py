"""
Voice Service: the facade used by the API and the CLI.

Wires every component once per process and exposes the operations the
REST surface needs:

    ProviderClient ──┐
    CacheLayer ──────┼── GenerationCoordinator ── BatchDriver
    SubjectStore ────┤
    BlobStore ───────┘

The service object is built by the application factory and handed to
request handlers through ``app.state``; there is no module-level instance.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from voice_proxy.core.config import ServiceConfig, Settings
from voice_proxy.core.errors import NoContentError, NotFoundError
from voice_proxy.core.logging import get_logger, info
from voice_proxy.services import validators
from voice_proxy.store import SubjectKind, SubjectStore, create_store
from voice_proxy.store.models import STATS_PREVIEW_CHARS, GenerationRecord, Page, SubjectRecord
from voice_proxy.tts.batch import BatchDriver, SubjectOutcome
from voice_proxy.tts.cache import AudioCache, CacheKey, CacheLayer, InFlightSet
from voice_proxy.tts.coordinator import BatchResult, GenerationCoordinator
from voice_proxy.tts.provider import AudioArtifact, ProviderClient
from voice_proxy.tts.storage import BlobStore, create_blob_store
from voice_proxy.tts.voices import Language, Speaker, SpeakerInfo, VoiceMap

_LOG = get_logger("voice-proxy.service")


def _text_preview(text: str) -> Dict[str, Any]:
    if not text:
        return {"hasText": False, "preview": None, "length": 0}
    suffix = "..." if len(text) > STATS_PREVIEW_CHARS else ""
    return {"hasText": True, "preview": text[:STATS_PREVIEW_CHARS] + suffix, "length": len(text)}


class VoiceService:
    """
    Args:
        settings: Application settings.
        store: Data store; built from ``store`` settings when omitted.
        blob_store: Narration storage; built from ``storage`` settings when omitted.
        http_client: httpx client for the provider (tests pass a MockTransport one).
        sleep: Sleep function for backoff, mock delays and pacing.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[SubjectStore] = None,
        blob_store: Optional[BlobStore] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._config = ServiceConfig.from_settings(settings)
        cfg = self._config

        self.voices = VoiceMap(cfg.voices)
        self.provider = ProviderClient(cfg.provider, self.voices, http_client=http_client, sleep=sleep)
        self.cache_layer = CacheLayer(cache=AudioCache(), in_flight=InFlightSet())
        self.store = store if store is not None else create_store(cfg.store)
        self.blob_store = blob_store if blob_store is not None else create_blob_store(cfg.storage, cfg.store)
        self.coordinator = GenerationCoordinator(
            self.provider, self.cache_layer, self.store, self.blob_store,
            pacing=cfg.pacing, chunking=cfg.chunking, sleep=sleep,
        )
        self.batch = BatchDriver(self.coordinator, self.store, pacing=cfg.pacing, sleep=sleep)

        info(
            _LOG, "service_ready",
            mock=self.provider.mock_mode, store=cfg.store.backend, storage=cfg.storage.backend,
            speakers=len(self.voices.mapped()),
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def mock_mode(self) -> bool:
        return self.provider.mock_mode

    def close(self) -> None:
        self.provider.close()
        self.store.close()
        self.blob_store.close()

    # =========================================================================
    # Direct synthesis
    # =========================================================================

    def speakers(self) -> List[SpeakerInfo]:
        return self.provider.supported_speakers()

    def synthesize_text(self, text: str, speaker: "str | Speaker") -> AudioArtifact:
        """Synthesize caller text. Provider failures are raised after retries."""
        clean = validators.validate_text(text)
        spk = Speaker.parse(speaker)
        return self.provider.synthesize(clean, spk).unwrap()

    def synthesize_text_id(self, text_id: str, speaker: "str | Speaker") -> AudioArtifact:
        """Synthesize the content of a stored article."""
        spk = Speaker.parse(speaker)
        self.voices.voice_id(spk)
        record = self.store.get_subject(validators.validate_article_id(text_id), SubjectKind.ARTICLE)
        if not record.content.strip():
            raise NoContentError(f"Text {text_id} has no content", {"textId": text_id})
        return self.provider.synthesize(record.content, spk).unwrap().for_subject(record.id, None)

    # =========================================================================
    # Comments
    # =========================================================================

    def list_comments(self, page: Optional[int] = None, limit: Optional[int] = None,
                      search: Optional[str] = None) -> Page:
        api = self._config.api
        page, limit = validators.validate_pagination(page, limit, api.list_default_limit, api.list_max_limit)
        query = validators.validate_search(search)
        offset = (page - 1) * limit
        if query:
            records, total = self.store.search(query, limit, offset)
        else:
            records, total = self.store.list_recent(limit, offset)
        return Page(items=records, page=page, limit=limit, total=total, query=query)

    def comment_summary(self, record: SubjectRecord) -> Dict[str, Any]:
        """List item: metadata, English cache state and text previews per speaker."""
        cache = self.cache_layer.cache
        return {
            **record.metadata(),
            "hasAudio": {s.value: cache.has(CacheKey.of(record.id, s, Language.EN)) for s in Speaker},
            "textPreviews": {
                s.value: _text_preview(text) for s, text in record.speaker_texts(Language.EN).items()
            },
        }

    def comment_detail(self, comment_id: str) -> Dict[str, Any]:
        record = self.store.get_subject(validators.validate_comment_id(comment_id))
        return {"data": record.to_dict(), "stats": record.statistics()}

    def cached_audio(self, comment_id: str) -> Dict[str, Any]:
        """
        Cached English artifacts of a comment.

        Only speakers with non-empty English text are reported, split into
        available (cached) and missing.
        """
        comment_id = validators.validate_comment_id(comment_id)
        record = self.store.get_subject(comment_id)
        cache = self.cache_layer.cache
        audios: Dict[str, Any] = {}
        available: List[str] = []
        missing: List[str] = []
        for speaker, text in record.speaker_texts(Language.EN).items():
            if not text.strip():
                continue
            artifact = cache.get(CacheKey.of(comment_id, speaker, Language.EN))
            if artifact is not None:
                audios[speaker.value] = artifact.to_dict()
                available.append(speaker.value)
            else:
                missing.append(speaker.value)

        metadata = record.metadata()
        metadata.pop("id")
        return {
            "commentId": comment_id,
            "audios": audios,
            "metadata": metadata,
            "statistics": {
                "available": len(available),
                "missing": len(missing),
                "availableSpeakers": available,
                "missingSpeakers": missing,
            },
        }

    def audio_for(self, comment_id: str, speaker: str, language: Optional[str] = None) -> AudioArtifact:
        comment_id = validators.validate_comment_id(comment_id)
        spk = validators.validate_speaker(speaker)
        lang = validators.validate_language(language)
        return self.coordinator.generate_one(comment_id, spk, lang)

    def generate_all(self, comment_id: str, language: Optional[str] = None) -> BatchResult:
        comment_id = validators.validate_comment_id(comment_id)
        return self.coordinator.generate_all(comment_id, validators.validate_language(language))

    def invalidate(self, comment_id: str) -> int:
        return self.cache_layer.cache.invalidate(validators.validate_comment_id(comment_id))

    def clear_cache(self) -> int:
        return self.cache_layer.cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache_layer.stats()

    def warmup(self, limit: Optional[int] = None) -> List[SubjectOutcome]:
        return self.batch.warmup(limit)

    # =========================================================================
    # Articles
    # =========================================================================

    def narrate(self, article_id: str, speaker: str, force_regenerate: bool = False) -> GenerationRecord:
        spk = validators.validate_speaker(speaker)
        return self.coordinator.narrate(validators.validate_article_id(article_id), spk, force_regenerate)

    def narration_status(self, article_id: str, speaker: str) -> GenerationRecord:
        article_id = validators.validate_article_id(article_id)
        spk = validators.validate_speaker(speaker)
        record = self.store.get_generation(article_id, spk.value)
        if record is None:
            raise NotFoundError(
                f"No narration for article {article_id} and {spk.value}",
                {"articleId": article_id, "speaker": spk.value},
            )
        return record

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """
        Aggregate provider and data-store health.

        ``status`` is ``healthy`` only when the provider is healthy (or in
        mock mode) and the store is healthy.
        """
        provider = self.provider.health_check()
        store = self.store.health_check()
        ok = provider.get("status") in ("healthy", "mock") and store.get("status") == "healthy"
        return {
            "status": "healthy" if ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mockMode": self.mock_mode,
            "provider": provider,
            "store": store,
            "cache": self.cache_stats(),
        }
