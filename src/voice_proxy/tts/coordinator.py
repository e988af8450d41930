"""
Generation Coordinator.

Turns stored text into cached audio artifacts.

Operations:
    generate_all(subject, language)
        Every speaker of a comment in one pass. Claims the subject-wide
        in-flight key, so a second concurrent batch for the same subject
        fails immediately with AlreadyInProgressError.

        For each speaker, in order:
            empty text   -> skipped (never attempted)
            cache hit    -> generated, no provider call
            cache miss   -> provider call; success is cached, failure is
                            recorded and the loop continues

        ``between_calls_s`` is slept before every provider call except
        the first; hits and skips do not count as calls.

    generate_one(subject, speaker, language)
        A single text variant. Cached artifacts are returned as is; an
        empty variant raises NoContentError.

    narrate(article, speaker, force_regenerate)
        Chunk an article, synthesize every chunk, upload each segment to
        blob storage and persist the aggregate GenerationRecord. Failed
        chunks are skipped; the record fails only when no segment succeeds.

No lock is held across provider, store or storage calls; the in-flight
membership is the only exclusion spanning them.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from voice_proxy.core.config import ChunkingConfig, PacingConfig
from voice_proxy.core.errors import NoContentError, VoiceProxyError
from voice_proxy.core.logging import fail, get_logger, info, success, verbose, warn
from voice_proxy.core.metrics import metrics
from voice_proxy.store.models import GenerationRecord, GenerationState, SubjectKind, SubjectStore
from voice_proxy.tts.cache import CacheKey, CacheLayer
from voice_proxy.tts.chunker import chunk_text
from voice_proxy.tts.provider import AudioArtifact, ProviderClient
from voice_proxy.tts.storage import AUDIO_CONTENT_TYPE, BlobStore, segment_name
from voice_proxy.tts.voices import Language, Speaker
from voice_proxy.utils.text import preview

_LOG = get_logger("voice-proxy.coordinator")

NARRATION_FAILED_MESSAGE = "All segments failed"


@dataclass
class BatchResult:
    """
    Aggregate outcome of generate_all().

    Attributes:
        subject_id: Comment id.
        language: Language tag of the generated variants.
        audios: speaker -> artifact for every generated speaker.
        generated: Speakers with an artifact (fresh or cached).
        failed: {speaker, error, language} per failed speaker.
        skipped: Speakers without text.
        total_time: Elapsed seconds.
    """
    subject_id: str
    language: str
    audios: Dict[str, AudioArtifact] = field(default_factory=dict)
    generated: List[str] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    total_time: float = 0.0

    @property
    def success(self) -> bool:
        return len(self.generated) > 0

    @property
    def total(self) -> int:
        return len(self.generated) + len(self.failed) + len(self.skipped)

    @property
    def message(self) -> str:
        return (
            f"Voice generation finished: {len(self.generated)} generated, "
            f"{len(self.failed)} failed, {len(self.skipped)} skipped"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "commentId": self.subject_id,
            "language": self.language,
            "audios": {speaker: a.to_dict() for speaker, a in self.audios.items()},
            "generated": list(self.generated),
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "totalTime": self.total_time,
            "statistics": {
                "total": self.total,
                "generated": len(self.generated),
                "failed": len(self.failed),
                "skipped": len(self.skipped),
            },
            "message": self.message,
        }


class GenerationCoordinator:
    """
    Orchestrates provider calls, the cache layer, the data store and blob storage.

    Args:
        provider: Provider client.
        cache_layer: Audio cache plus in-flight set.
        store: Subject/generation store.
        blob_store: Destination for narration segments.
        pacing: Delay configuration.
        chunking: Chunk bound for narration.
        sleep: Sleep function (tests pass a recorder).
    """

    def __init__(
        self,
        provider: ProviderClient,
        cache_layer: CacheLayer,
        store: SubjectStore,
        blob_store: BlobStore,
        pacing: Optional[PacingConfig] = None,
        chunking: Optional[ChunkingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.cache = cache_layer.cache
        self.in_flight = cache_layer.in_flight
        self.store = store
        self.blob_store = blob_store
        self.pacing = pacing or PacingConfig()
        self.chunking = chunking or ChunkingConfig()
        self._sleep = sleep

    def _pace(self, calls_made: int) -> None:
        if calls_made > 0 and self.pacing.between_calls_s > 0:
            verbose(_LOG, "pacing", seconds=self.pacing.between_calls_s)
            self._sleep(self.pacing.between_calls_s)

    # ─────────────────────────────────────────────────────────────────────────
    # Comments
    # ─────────────────────────────────────────────────────────────────────────

    def generate_all(
        self,
        subject_id: str,
        language: "str | Language" = Language.EN,
        speaker_texts: Optional[Mapping[str, str]] = None,
    ) -> BatchResult:
        """
        Generate audio for every speaker of a subject.

        Args:
            subject_id: Comment id.
            language: Text variant language.
            speaker_texts: speaker -> text. Read from the store when omitted.

        Raises:
            AlreadyInProgressError: Another batch for this subject is running.
            NotFoundError: The subject does not exist.
        """
        subject_id = str(subject_id)
        lang = Language.parse(language)
        if speaker_texts is None:
            record = self.store.get_subject(subject_id, SubjectKind.COMMENT)
            texts: Dict[Speaker, str] = record.speaker_texts(lang)
        else:
            texts = {Speaker.parse(s): t or "" for s, t in speaker_texts.items()}

        result = BatchResult(subject_id=subject_id, language=lang.value)
        with self.in_flight.claim(CacheKey.subject(subject_id)):
            info(_LOG, "batch_start", subject_id=subject_id, language=lang.value, speakers=len(texts))
            start = time.perf_counter()
            calls = 0

            for speaker, text in texts.items():
                if not text.strip():
                    verbose(_LOG, "skipped", subject_id=subject_id, speaker=speaker.value)
                    result.skipped.append(speaker.value)
                    continue

                key = CacheKey.of(subject_id, speaker, lang)
                cached = self.cache.get(key)
                if cached is not None:
                    result.audios[speaker.value] = cached
                    result.generated.append(speaker.value)
                    continue

                self._pace(calls)
                calls += 1
                provider_result = self.provider.synthesize(text, speaker)
                if provider_result.success:
                    artifact = provider_result.unwrap().for_subject(subject_id, lang.value)
                    self.cache.put(key, artifact)
                    result.audios[speaker.value] = artifact
                    result.generated.append(speaker.value)
                else:
                    error = provider_result.error
                    result.failed.append({
                        "speaker": speaker.value,
                        "error": error.message if error else "unknown error",
                        "language": lang.value,
                    })

            result.total_time = round(time.perf_counter() - start, 3)

        status = "success" if result.success else "failed"
        metrics.record_generation("comment_batch", status)
        log = success if result.success else fail
        log(
            _LOG, "batch_done",
            subject_id=subject_id, generated=len(result.generated), failed=len(result.failed),
            skipped=len(result.skipped), seconds=result.total_time,
        )
        return result

    def generate_one(
        self,
        subject_id: str,
        speaker: "str | Speaker",
        language: "str | Language" = Language.EN,
    ) -> AudioArtifact:
        """
        Return the artifact for one (subject, speaker, language), generating on a miss.

        Raises:
            NoContentError: The text variant is empty or absent.
            AlreadyInProgressError: The same key (or the subject batch) is running.
            VoiceProxyError: The provider failure, after retries.
        """
        subject_id = str(subject_id)
        spk = Speaker.parse(speaker)
        lang = Language.parse(language)
        key = CacheKey.of(subject_id, spk, lang)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        record = self.store.get_subject(subject_id, SubjectKind.COMMENT)
        text = record.text_for(spk, lang)
        if not text.strip():
            raise NoContentError(
                f"{spk.value} has no {lang.value} text for {subject_id}",
                {"commentId": subject_id, "speaker": spk.value, "language": lang.value},
            )

        with self.in_flight.claim(key):
            if self.cache.has(key):
                return self.cache.get(key)  # type: ignore[return-value]
            info(_LOG, "generate_one", key=str(key), preview=preview(text))
            provider_result = self.provider.synthesize(text, spk)
            if not provider_result.success:
                metrics.record_generation("comment_single", "failed")
            artifact = provider_result.unwrap().for_subject(subject_id, lang.value)
            self.cache.put(key, artifact)

        metrics.record_generation("comment_single", "success")
        return artifact

    # ─────────────────────────────────────────────────────────────────────────
    # Articles
    # ─────────────────────────────────────────────────────────────────────────

    def narrate(
        self, article_id: str, speaker: "str | Speaker", force_regenerate: bool = False
    ) -> GenerationRecord:
        """
        Narrate an article into uploaded audio segments.

        Returns:
            The stored GenerationRecord (completed or failed). Without
            ``force_regenerate`` an existing completed record is returned
            untouched.

        Raises:
            UnknownSpeakerError: Speaker outside the set or unmapped.
            NotFoundError: The article does not exist.
            NoContentError: The article has no content.
            AlreadyInProgressError: The same narration is running.
        """
        article_id = str(article_id)
        spk = Speaker.parse(speaker)
        self.provider.voices.voice_id(spk)

        existing = self.store.get_generation(article_id, spk.value)
        if existing is not None and existing.state is GenerationState.COMPLETED and not force_regenerate:
            info(_LOG, "narration_reused", article_id=article_id, speaker=spk.value)
            return existing

        article = self.store.get_subject(article_id, SubjectKind.ARTICLE)
        content = article.content
        if not content.strip():
            raise NoContentError(f"Article {article_id} has no content", {"articleId": article_id})

        with self.in_flight.claim(CacheKey(article_id, spk.value)):
            record = existing or GenerationRecord(subject_id=article_id, speaker=spk.value)
            record.start()
            self.store.save_generation(record)

            start = time.perf_counter()
            chunks = chunk_text(content, self.chunking.max_chars)
            info(_LOG, "narration_start", article_id=article_id, speaker=spk.value, segments=len(chunks))

            urls: List[str] = []
            try:
                for index, chunk in chunks.numbered():
                    self._pace(index - 1)
                    url = self._narrate_segment(article_id, spk, index, chunk)
                    if url is not None:
                        urls.append(url)
            except Exception as e:
                record.mark_failed(str(e) or type(e).__name__, round(time.perf_counter() - start))
                self.store.save_generation(record)
                metrics.record_generation("narration", record.state.value)
                fail(_LOG, "narration_aborted", article_id=article_id, speaker=spk.value, error=type(e).__name__)
                raise

            elapsed = round(time.perf_counter() - start)
            if urls:
                record.complete(urls, elapsed)
            else:
                record.mark_failed(NARRATION_FAILED_MESSAGE, elapsed)
            self.store.save_generation(record)

        metrics.record_generation("narration", record.state.value)
        log = success if record.state is GenerationState.COMPLETED else fail
        log(
            _LOG, "narration_done",
            article_id=article_id, speaker=spk.value, segments=len(urls), of=len(chunks), seconds=elapsed,
        )
        return record

    def _narrate_segment(self, article_id: str, speaker: Speaker, index: int, chunk: str) -> Optional[str]:
        result = self.provider.synthesize(chunk, speaker)
        if not result.success:
            warn(
                _LOG, "segment_failed",
                article_id=article_id, segment=index, error=result.error.code if result.error else None,
            )
            return None
        try:
            data = self.provider.fetch_audio(result.unwrap().audio_url)
            return self.blob_store.upload(
                segment_name(article_id, speaker.value, index), data, AUDIO_CONTENT_TYPE
            )
        except VoiceProxyError as e:
            warn(_LOG, "segment_upload_failed", article_id=article_id, segment=index, error=e.code)
            return None
