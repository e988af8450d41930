"""Shared fixtures: mock-mode settings, seeded stores and recording sleeps."""
from __future__ import annotations

from typing import Callable, List

import httpx
import pytest

from voice_proxy.core.config import Settings
from voice_proxy.store.memory import InMemorySubjectStore
from voice_proxy.tts.storage import LocalBlobStore

COMMENT_ID = "3f6c2a1e-8b4d-4c7a-9e2f-1a2b3c4d5e6f"
SPARSE_COMMENT_ID = "7d1e9b20-4f3a-4e8b-a1c2-d3e4f5a6b7c8"
MISSING_COMMENT_ID = "00000000-0000-4000-8000-000000000000"

VOICES = {
    "wuenda": "voice-ng",
    "paul_graham": "voice-paul",
    "feifeili": "voice-li",
    "sam_altman": "voice-sam",
}


class SleepRecorder:
    """Drop-in for time.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def comment_rows():
    return [
        {
            "id": COMMENT_ID,
            "gmail": "builder@example.com",
            "github_repo_url": "https://github.com/example/voice-demo",
            "created_at": "2025-03-02T09:30:00+00:00",
            "comment_en_ng": "Nice use of retrieval.",
            "comment_en_paul": "Talk to users first.",
            "comment_en_li": "The dataset matters.",
            "comment_en_sam": "Ship it.",
            "comment_cn_sam": "先发布。",
        },
        {
            "id": SPARSE_COMMENT_ID,
            "gmail": "another@example.com",
            "github_repo_url": "https://github.com/example/agent-lab",
            "created_at": "2025-03-01T15:00:00+00:00",
            "comment_en_sam": "Strong agent loop.",
            "comment_en_ng": "",
        },
    ]


def article_rows():
    return [
        {"id": "1", "title": "Welcome", "content": "First sentence. Second sentence. Third sentence."},
        {"id": "2", "title": "Empty", "content": ""},
    ]


def make_settings(**sections) -> Settings:
    raw = {
        "provider": {"mock_mode": True, "mock_delay_min_s": 0.0, "mock_delay_max_s": 0.0},
        "voices": dict(VOICES),
        "pacing": {"between_calls_s": 2.0, "between_subjects_s": 5.0},
        "store": {"backend": "memory"},
        "storage": {"backend": "local"},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    return Settings(raw=raw)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemorySubjectStore:
    return InMemorySubjectStore(comments=comment_rows(), articles=article_rows())


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "audio"), "/audio")


@pytest.fixture
def service(settings, store, blob_store, sleeps):
    """Mock-mode VoiceService over the seeded in-memory store."""
    from voice_proxy.services.voice_service import VoiceService

    svc = VoiceService(settings, store=store, blob_store=blob_store, sleep=sleeps)
    yield svc
    svc.close()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Build an httpx.Client answered by a handler function."""
    clients: List[httpx.Client] = []

    def build(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield build
    for client in clients:
        client.close()
