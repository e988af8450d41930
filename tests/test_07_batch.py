"""Tests for warmup batches over recent comments."""
from __future__ import annotations

import pytest

from voice_proxy.core.config import PacingConfig, ProviderConfig
from voice_proxy.tts.batch import BatchDriver
from voice_proxy.tts.cache import AudioCache, CacheKey, CacheLayer, InFlightSet
from voice_proxy.tts.coordinator import GenerationCoordinator
from voice_proxy.tts.provider import ProviderClient
from voice_proxy.tts.voices import VoiceMap

from conftest import COMMENT_ID, SPARSE_COMMENT_ID, VOICES


@pytest.fixture
def driver(store, blob_store, sleeps):
    provider = ProviderClient(
        ProviderConfig(mock_mode=True, mock_delay_min_s=0.0, mock_delay_max_s=0.0),
        VoiceMap(VOICES), sleep=sleeps,
    )
    layer = CacheLayer(cache=AudioCache(), in_flight=InFlightSet())
    pacing = PacingConfig(between_calls_s=0.0, between_subjects_s=5.0)
    coordinator = GenerationCoordinator(provider, layer, store, blob_store, pacing=pacing, sleep=sleeps)
    return BatchDriver(coordinator, store, pacing=pacing, sleep=sleeps)


class TestClampLimit:

    @pytest.mark.parametrize("value,expected", [(None, 5), (0, 5), (-3, 5), (3, 3), (10, 10), (50, 10)])
    def test_clamp(self, driver, value, expected):
        assert driver.clamp_limit(value) == expected


class TestWarmup:

    def test_newest_first(self, driver):
        outcomes = driver.warmup(limit=2)

        assert [o.subject_id for o in outcomes] == [COMMENT_ID, SPARSE_COMMENT_ID]
        assert all(o.success for o in outcomes)
        assert outcomes[0].to_dict() == {
            "commentId": COMMENT_ID, "success": True, "generated": 4, "failed": 0, "skipped": 0,
        }

    def test_pause_between_subjects_not_after_last(self, driver, sleeps):
        driver.warmup(limit=2)
        assert [s for s in sleeps.calls if s == 5.0] == [5.0]

    def test_limit_respected(self, driver):
        assert len(driver.warmup(limit=1)) == 1

    def test_fills_cache(self, driver):
        driver.warmup(limit=1)
        assert driver.coordinator.cache.has(CacheKey.of(COMMENT_ID, "wuenda", "en"))


class TestRun:

    def test_failing_subject_does_not_stop_batch(self, driver):
        missing = "00000000-0000-4000-8000-000000000000"
        outcomes = driver.run([missing, COMMENT_ID])

        assert outcomes[0].success is False
        assert outcomes[0].to_dict()["code"] == "NOT_FOUND"
        assert outcomes[1].success is True

    def test_busy_subject_reported(self, driver):
        with driver.coordinator.in_flight.claim(CacheKey.subject(COMMENT_ID)):
            outcomes = driver.run([COMMENT_ID])
        assert outcomes[0].code == "ALREADY_IN_PROGRESS"

    def test_empty_batch(self, driver, sleeps):
        assert driver.run([]) == []
        assert sleeps.calls == []
