"""
Tests for the provider client.

Tests cover:
- Request payload and auth header
- Transport retries with linear backoff
- Non-retryable failures (HTTP status, malformed body, missing URL)
- Input rejection before any network call
- Mock mode
- Health probe
"""
from __future__ import annotations

import json

import httpx
import pytest

from voice_proxy.core.config import ProviderConfig
from voice_proxy.core.errors import (
    EmptyTextError,
    MissingAudioUrlError,
    ProviderRejectedError,
    ProviderTransportError,
    UnknownSpeakerError,
)
from voice_proxy.tts.provider import MOCK_AUDIO_PREFIX, ProviderClient
from voice_proxy.tts.voices import VoiceMap

from conftest import VOICES

API_URL = "https://provider.example/v3/voice"
AUDIO_URL = "https://cdn.example/audio/1.mp3"


def live_config(**overrides) -> ProviderConfig:
    values = {"api_url": API_URL, "api_token": "tok", "mock_mode": False}
    values.update(overrides)
    return ProviderConfig(**values)


def ok_response(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"voice_id": body["voice_id"], "demo_audio_url": AUDIO_URL, "status": "ok"})


def corrupt_gzip(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"not-gzip")


class TestLiveCalls:
    """Calls against a MockTransport provider."""

    def test_success_payload_and_headers(self, mock_http, sleeps):
        seen = []

        def handler(request):
            seen.append(request)
            return ok_response(request)

        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        result = client.synthesize("  Hello   there. ", "sam_altman")

        assert result.success
        assert result.attempts == 1
        artifact = result.unwrap()
        assert artifact.audio_url == AUDIO_URL
        assert artifact.voice_id == "voice-sam"
        assert artifact.mock is False
        assert artifact.text_length == len("Hello there.")

        payload = json.loads(seen[0].content)
        assert payload == {
            "voice_id": "voice-sam",
            "text": "Hello there.",
            "model": "speech-02-hd",
            "need_noise_reduction": True,
            "need_volume_normalization": True,
        }
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert sleeps.calls == []

    def test_hyphenated_speaker_accepted(self, mock_http, sleeps):
        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(ok_response), sleep=sleeps)
        assert client.synthesize("Hi.", "paul-graham").unwrap().speaker == "paul_graham"

    def test_long_text_truncated_to_provider_limit(self, mock_http, sleeps):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content)["text"])
            return ok_response(request)

        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        client.synthesize("word " * 300, "wuenda")

        assert len(sent[0]) <= 500


class TestRetries:
    """Only transport failures are retried."""

    def test_two_transport_failures_then_success(self, mock_http, sleeps):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] <= 2:
                raise httpx.ConnectError("connection reset", request=request)
            return ok_response(request)

        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        result = client.synthesize("Hello.", "wuenda")

        assert result.success
        assert result.attempts == 3
        assert sleeps.calls == [2.0, 4.0]

    def test_transport_failures_exhaust_retries(self, mock_http, sleeps):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = ProviderClient(
            live_config(max_retries=3), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps
        )
        result = client.synthesize("Hello.", "wuenda")

        assert not result.success
        assert isinstance(result.error, ProviderTransportError)
        assert result.attempts == 4
        assert sleeps.calls == [2.0, 4.0, 6.0]

    def test_http_error_not_retried(self, mock_http, sleeps):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            return httpx.Response(400, text="bad voice")

        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        result = client.synthesize("Hello.", "wuenda")

        assert calls["n"] == 1
        assert isinstance(result.error, ProviderRejectedError)
        assert result.error.status == 400
        assert sleeps.calls == []

    def test_server_error_not_retried(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(503, text="busy")), sleep=sleeps,
        )
        result = client.synthesize("Hello.", "wuenda")
        assert result.attempts == 1
        assert isinstance(result.error, ProviderRejectedError)

    def test_missing_audio_url(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(200, json={"status": "queued"})), sleep=sleeps,
        )
        result = client.synthesize("Hello.", "wuenda")
        assert isinstance(result.error, MissingAudioUrlError)

    def test_malformed_body(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(200, text="<html>")), sleep=sleeps,
        )
        result = client.synthesize("Hello.", "wuenda")
        assert isinstance(result.error, ProviderRejectedError)

    def test_unwrap_raises_carried_error(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(401, text="no")), sleep=sleeps,
        )
        with pytest.raises(ProviderRejectedError):
            client.synthesize("Hello.", "wuenda").unwrap()

    def test_corrupt_body_is_a_failed_result(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(corrupt_gzip), sleep=sleeps,
        )
        result = client.synthesize("Hello.", "wuenda")

        assert not result.success
        assert isinstance(result.error, ProviderRejectedError)
        assert result.attempts == 1
        assert sleeps.calls == []


class TestInputRejection:
    """Rejected input never reaches the network."""

    def _counting_client(self, mock_http, sleeps, voices=None):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            return ok_response(request)

        voices = VOICES if voices is None else voices
        client = ProviderClient(live_config(), VoiceMap(voices), http_client=mock_http(handler), sleep=sleeps)
        return client, calls

    def test_unknown_speaker(self, mock_http, sleeps):
        client, calls = self._counting_client(mock_http, sleeps)
        result = client.synthesize("Hello.", "elon")

        assert isinstance(result.error, UnknownSpeakerError)
        assert result.attempts == 0
        assert calls["n"] == 0

    def test_unmapped_speaker(self, mock_http, sleeps):
        client, calls = self._counting_client(mock_http, sleeps, voices={"wuenda": "v"})
        result = client.synthesize("Hello.", "sam_altman")

        assert isinstance(result.error, UnknownSpeakerError)
        assert calls["n"] == 0

    def test_empty_text(self, mock_http, sleeps):
        client, calls = self._counting_client(mock_http, sleeps)
        result = client.synthesize("   \n ", "wuenda")

        assert isinstance(result.error, EmptyTextError)
        assert calls["n"] == 0


class TestMockMode:
    """Mock mode answers without touching the network."""

    def test_mock_artifact(self, mock_http, sleeps):
        def handler(request):
            raise AssertionError("network used in mock mode")

        config = ProviderConfig(mock_mode=True, mock_delay_min_s=1.0, mock_delay_max_s=3.0)
        client = ProviderClient(config, VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        artifact = client.synthesize("Hello there.", "feifeili").unwrap()

        assert artifact.mock is True
        assert artifact.audio_url == config.mock_audio_url
        assert len(sleeps.calls) == 1
        assert 1.0 <= sleeps.calls[0] <= 3.0

    def test_missing_token_means_mock(self, sleeps):
        client = ProviderClient(ProviderConfig(api_token=""), VoiceMap(VOICES), sleep=sleeps)
        assert client.mock_mode is True

    def test_mock_still_requires_mapping(self, sleeps):
        client = ProviderClient(ProviderConfig(mock_mode=True), VoiceMap({}), sleep=sleeps)
        result = client.synthesize("Hello.", "wuenda")
        assert isinstance(result.error, UnknownSpeakerError)

    def test_mock_fetch_audio(self, sleeps):
        client = ProviderClient(ProviderConfig(mock_mode=True), VoiceMap(VOICES), sleep=sleeps)
        data = client.fetch_audio("https://x.example/a.wav")
        assert data.startswith(MOCK_AUDIO_PREFIX)


class TestFetchAudio:

    def test_downloads_bytes(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(200, content=b"ID3audio")), sleep=sleeps,
        )
        assert client.fetch_audio(AUDIO_URL) == b"ID3audio"

    def test_http_error_raises(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(404)), sleep=sleeps,
        )
        with pytest.raises(ProviderRejectedError):
            client.fetch_audio(AUDIO_URL)

    def test_corrupt_download_raises(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(corrupt_gzip), sleep=sleeps,
        )
        with pytest.raises(ProviderRejectedError):
            client.fetch_audio(AUDIO_URL)


class TestHealthCheck:

    def test_mock_reports_mock(self, sleeps):
        client = ProviderClient(ProviderConfig(mock_mode=True), VoiceMap(VOICES), sleep=sleeps)
        health = client.health_check()
        assert health["status"] == "mock"
        assert health["supportedSpeakers"] == ["wuenda", "paul_graham", "feifeili", "sam_altman"]

    def test_any_http_answer_is_healthy(self, mock_http, sleeps):
        client = ProviderClient(
            live_config(), VoiceMap(VOICES),
            http_client=mock_http(lambda r: httpx.Response(405)), sleep=sleeps,
        )
        health = client.health_check()
        assert health["status"] == "healthy"
        assert health["statusCode"] == 405

    def test_transport_failure_is_unhealthy(self, mock_http, sleeps):
        def handler(request):
            raise httpx.ConnectError("dns failure", request=request)

        client = ProviderClient(live_config(), VoiceMap(VOICES), http_client=mock_http(handler), sleep=sleeps)
        assert client.health_check()["status"] == "unhealthy"
