"""
Remote Voice-Cloning Provider Client.

Wraps the provider's single synthesis endpoint:

    POST {api_url}
    Authorization: Bearer {api_token}
    {"voice_id": ..., "text": ..., "model": "speech-02-hd",
     "need_noise_reduction": true, "need_volume_normalization": true}

    200 -> {"voice_id": ..., "demo_audio_url": ..., "status": ...}

Result Contract:
    synthesize() never raises for provider-class failures. It returns a
    ProviderResult whose ``error`` carries one of UnknownSpeakerError,
    EmptyTextError, ProviderTransportError, ProviderRejectedError or
    MissingAudioUrlError, so batch callers can keep going.

Retry Policy:
    Only transport errors are retried (timeouts, connection/read/write
    failures, DNS and TLS failures surfaced as connect errors, and the
    server dropping the connection). Attempt ``n`` is followed by a wait
    of ``n * backoff_s`` seconds, up to ``max_retries`` extra attempts.
    HTTP error statuses and malformed bodies surface immediately.

Mock Mode:
    With no API token, or with mock_mode enabled, synthesize() sleeps a
    random delay within [mock_delay_min_s, mock_delay_max_s] and returns
    an artifact pointing at mock_audio_url with ``mock=True``.
"""
from __future__ import annotations

import random
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from voice_proxy import __version__
from voice_proxy.core.config import ProviderConfig
from voice_proxy.core.errors import (
    EmptyTextError,
    MissingAudioUrlError,
    ProviderRejectedError,
    ProviderTransportError,
    VoiceProxyError,
)
from voice_proxy.core.logging import fail, get_logger, info, success, verbose, warn
from voice_proxy.core.metrics import metrics
from voice_proxy.tts.voices import Speaker, SpeakerInfo, VoiceMap
from voice_proxy.utils.text import normalize_whitespace, preview, truncate_for_provider
from voice_proxy.utils.timeit import timeit

_LOG = get_logger("voice-proxy.provider")

# Transport failures worth another attempt. Everything else is final.
RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)

MOCK_AUDIO_PREFIX = b"MOCK-AUDIO\n"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AudioArtifact:
    """
    One synthesized audio result. Immutable; regeneration builds a new one.

    Attributes:
        audio_url: Playable URL returned by the provider (or the mock URL).
        speaker: Speaker id.
        voice_id: Provider voice id used.
        timestamp: ISO-8601 UTC creation time.
        text_preview: First 50 characters of the synthesized text.
        text_length: Length of the synthesized text.
        mock: True when produced by mock mode.
        subject_id: Subject the text came from, when known.
        language: Language tag of the text variant, when known.
    """
    audio_url: str
    speaker: str
    voice_id: str
    timestamp: str
    text_preview: str
    text_length: int
    mock: bool = False
    subject_id: Optional[str] = None
    language: Optional[str] = None

    def for_subject(self, subject_id: str, language: Optional[str]) -> "AudioArtifact":
        return replace(self, subject_id=subject_id, language=language)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "audioUrl": self.audio_url,
            "speaker": self.speaker,
            "displayName": Speaker(self.speaker).display_name,
            "voiceId": self.voice_id,
            "timestamp": self.timestamp,
            "textPreview": self.text_preview,
            "textLength": self.text_length,
            "mockMode": self.mock,
        }
        if self.subject_id is not None:
            data["subjectId"] = self.subject_id
        if self.language is not None:
            data["language"] = self.language
        return data


@dataclass
class ProviderResult:
    """
    Outcome of synthesize(): an artifact or the error that ended the call.

    Attributes:
        speaker: Requested speaker id (as given).
        artifact: Set on success.
        error: Set on failure.
        attempts: Provider calls made (0 when rejected before any call).
    """
    speaker: str
    artifact: Optional[AudioArtifact] = None
    error: Optional[VoiceProxyError] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.artifact is not None and self.error is None

    def unwrap(self) -> AudioArtifact:
        """Return the artifact or raise the carried error."""
        if self.error is not None:
            raise self.error
        assert self.artifact is not None
        return self.artifact


class ProviderClient:
    """
    Synchronous client for the voice-cloning provider.

    Thread Safety:
        httpx.Client is safe to share across threads; the client holds no
        other mutable state besides the random generator used for mock delays.

    Args:
        config: Provider configuration.
        voices: Speaker -> voice id mapping.
        http_client: Optional pre-built httpx.Client (tests pass one with a
            MockTransport). Created lazily when omitted.
        sleep: Sleep function used for backoff and mock delays.
        rng: Random generator used for mock delays.
    """

    def __init__(
        self,
        config: ProviderConfig,
        voices: VoiceMap,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.voices = voices
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def mock_mode(self) -> bool:
        return self.config.mock_active

    @property
    def http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(headers={"User-Agent": f"voice-proxy/{__version__}"})
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def preprocess_text(self, text: str) -> str:
        """
        Normalize whitespace and bound text to the provider limit.

        Raises:
            EmptyTextError: If nothing is left after normalization.
        """
        if not isinstance(text, str):
            raise EmptyTextError("Text must be a non-empty string")
        clean = normalize_whitespace(text)
        if not clean:
            raise EmptyTextError()
        bounded = truncate_for_provider(clean, self.config.max_text_chars)
        if len(bounded) < len(clean):
            warn(_LOG, "text_truncated", chars_in=len(clean), chars_out=len(bounded))
        return bounded

    def synthesize(self, text: str, speaker: "str | Speaker") -> ProviderResult:
        """
        Synthesize ``text`` with ``speaker``'s voice.

        Returns:
            ProviderResult; check ``success`` or call ``unwrap()``.
        """
        speaker_name = speaker.value if isinstance(speaker, Speaker) else str(speaker)

        try:
            voice_id = self.voices.voice_id(speaker)
            clean = self.preprocess_text(text)
        except VoiceProxyError as e:
            fail(_LOG, "provider_rejected_input", speaker=speaker_name, error=e.code)
            metrics.record_provider_call(speaker_name, e.code, 0.0, mock=self.mock_mode)
            return ProviderResult(speaker=speaker_name, error=e, attempts=0)

        spk = Speaker.parse(speaker)
        info(
            _LOG, "provider_call",
            speaker=spk.value, voice_id=voice_id, chars=len(clean), mock=self.mock_mode,
        )

        with timeit("provider_call") as t:
            if self.mock_mode:
                result = self._mock(clean, spk, voice_id)
            else:
                result = self._call_with_retries(clean, spk, voice_id)

        seconds = round(t.timing.seconds if t.timing else 0.0, 3)
        outcome = "success" if result.success else (result.error.code if result.error else "error")
        metrics.record_provider_call(spk.value, outcome, seconds, mock=self.mock_mode)

        if result.success:
            success(_LOG, "provider_done", speaker=spk.value, attempts=result.attempts, seconds=seconds)
        else:
            fail(
                _LOG, "provider_failed",
                speaker=spk.value, attempts=result.attempts,
                error=result.error.code if result.error else None, seconds=seconds,
            )
        return result

    def fetch_audio(self, url: str) -> bytes:
        """
        Download the audio behind a provider URL.

        In mock mode no request is made; a placeholder payload derived from
        the URL is returned instead.

        Raises:
            ProviderTransportError: On network-class failures.
            ProviderRejectedError: On HTTP error statuses.
        """
        if self.mock_mode:
            return MOCK_AUDIO_PREFIX + url.encode("utf-8")

        try:
            response = self.http.get(url, timeout=self.config.timeout_s, follow_redirects=True)
        except RETRYABLE_EXCEPTIONS as e:
            raise ProviderTransportError(f"Audio download failed: {e}", {"url": url}) from e
        except httpx.HTTPError as e:
            raise ProviderRejectedError(f"Audio download failed: {type(e).__name__}: {e}") from e
        if response.status_code >= 400:
            raise ProviderRejectedError(
                f"Audio download failed with HTTP {response.status_code}",
                status=response.status_code,
                body=response.text,
            )
        return response.content

    def supported_speakers(self) -> List[SpeakerInfo]:
        """Every known speaker with its voice id (None when unmapped) and display name."""
        return self.voices.speakers()

    def health_check(self) -> Dict[str, Any]:
        """
        Probe the provider with an OPTIONS request.

        Any HTTP answer counts as reachable; only transport failures make
        the provider unhealthy. Mock mode reports ``mock`` without probing.
        """
        base: Dict[str, Any] = {
            "apiUrl": self.config.api_url,
            "mockMode": self.mock_mode,
            "supportedSpeakers": [s.value for s in self.voices.mapped()],
            "timestamp": _utc_now(),
        }
        if self.mock_mode:
            return {"status": "mock", **base}

        try:
            response = self.http.request(
                "OPTIONS",
                self.config.api_url,
                headers=self._auth_headers(),
                timeout=self.config.health_timeout_s,
            )
        except httpx.HTTPError as e:
            warn(_LOG, "provider_unhealthy", error=str(e))
            return {"status": "unhealthy", "error": str(e) or type(e).__name__, **base}

        return {"status": "healthy", "statusCode": response.status_code, **base}

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_token}"}

    def _payload(self, text: str, voice_id: str) -> Dict[str, Any]:
        return {
            "voice_id": voice_id,
            "text": text,
            "model": self.config.model,
            "need_noise_reduction": self.config.need_noise_reduction,
            "need_volume_normalization": self.config.need_volume_normalization,
        }

    def _artifact(self, text: str, speaker: Speaker, voice_id: str, url: str, mock: bool) -> AudioArtifact:
        return AudioArtifact(
            audio_url=url,
            speaker=speaker.value,
            voice_id=voice_id,
            timestamp=_utc_now(),
            text_preview=preview(text),
            text_length=len(text),
            mock=mock,
        )

    def _mock(self, text: str, speaker: Speaker, voice_id: str) -> ProviderResult:
        delay = self._rng.uniform(self.config.mock_delay_min_s, self.config.mock_delay_max_s)
        verbose(_LOG, "mock_delay", speaker=speaker.value, seconds=round(delay, 3))
        self._sleep(delay)
        artifact = self._artifact(text, speaker, voice_id, self.config.mock_audio_url, mock=True)
        return ProviderResult(speaker=speaker.value, artifact=artifact, attempts=1)

    def _call_with_retries(self, text: str, speaker: Speaker, voice_id: str) -> ProviderResult:
        max_attempts = self.config.max_retries + 1
        last_error: Optional[VoiceProxyError] = None

        for attempt in range(1, max_attempts + 1):
            verbose(_LOG, "provider_attempt", speaker=speaker.value, attempt=attempt, of=max_attempts)
            try:
                artifact = self._call_once(text, speaker, voice_id)
                return ProviderResult(speaker=speaker.value, artifact=artifact, attempts=attempt)
            except ProviderTransportError as e:
                last_error = e
                if attempt == max_attempts:
                    break
                wait_s = attempt * self.config.backoff_s
                warn(
                    _LOG, "provider_retry",
                    speaker=speaker.value, attempt=attempt, wait_s=wait_s, error=e.message,
                )
                metrics.record_retry(speaker.value)
                self._sleep(wait_s)
            except VoiceProxyError as e:
                return ProviderResult(speaker=speaker.value, error=e, attempts=attempt)

        return ProviderResult(speaker=speaker.value, error=last_error, attempts=max_attempts)

    def _call_once(self, text: str, speaker: Speaker, voice_id: str) -> AudioArtifact:
        try:
            response = self.http.post(
                self.config.api_url,
                json=self._payload(text, voice_id),
                headers=self._auth_headers(),
                timeout=self.config.timeout_s,
            )
        except RETRYABLE_EXCEPTIONS as e:
            raise ProviderTransportError(
                str(e) or type(e).__name__, {"exception": type(e).__name__}
            ) from e
        except httpx.HTTPError as e:
            raise ProviderRejectedError(f"Provider call failed: {type(e).__name__}: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise ProviderRejectedError(
                f"Provider call failed: {response.status_code} - {response.text[:200]}",
                status=response.status_code,
                body=response.text,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderRejectedError(
                "Provider returned a malformed body", status=response.status_code, body=response.text
            ) from e

        url = body.get("demo_audio_url") if isinstance(body, dict) else None
        if not url:
            raise MissingAudioUrlError(details={"status": body.get("status") if isinstance(body, dict) else None})

        return self._artifact(text, speaker, body.get("voice_id") or voice_id, url, mock=False)
