"""Tests for Prometheus metrics and resource snapshots."""
from __future__ import annotations


def sample(metrics, name, **labels):
    value = metrics.registry.get_sample_value(name, labels)
    return value or 0.0


class TestMetricsModule:
    """Metrics collector behaviour."""

    def test_provider_call_counted(self):
        from voice_proxy.core.metrics import VoiceMetrics

        metrics = VoiceMetrics()
        metrics.record_provider_call("wuenda", "success", 0.7, mock=True)
        metrics.record_provider_call("wuenda", "PROVIDER_REJECTED", 0.2)

        assert sample(metrics, "voice_provider_calls_total", speaker="wuenda", outcome="success", mode="mock") == 1
        assert sample(
            metrics, "voice_provider_calls_total", speaker="wuenda", outcome="PROVIDER_REJECTED", mode="live"
        ) == 1

    def test_cache_and_retry_counters(self):
        from voice_proxy.core.metrics import VoiceMetrics

        metrics = VoiceMetrics()
        metrics.record_cache("hit")
        metrics.record_cache("miss")
        metrics.record_cache("miss")
        metrics.record_retry("sam_altman")

        assert sample(metrics, "voice_cache_hits_total") == 1
        assert sample(metrics, "voice_cache_misses_total") == 2
        assert sample(metrics, "voice_provider_retries_total", speaker="sam_altman") == 1

    def test_generation_and_in_flight(self):
        from voice_proxy.core.metrics import VoiceMetrics

        metrics = VoiceMetrics()
        metrics.record_generation("narration", "completed")
        metrics.set_in_flight(3)

        assert sample(metrics, "voice_generations_total", kind="narration", status="completed") == 1
        assert sample(metrics, "voice_generations_in_flight") == 3

    def test_separate_registries(self):
        """Two collectors never share counts."""
        from voice_proxy.core.metrics import VoiceMetrics

        a, b = VoiceMetrics(), VoiceMetrics()
        a.record_cache("hit")
        assert sample(b, "voice_cache_hits_total") == 0

    def test_exposition_format(self):
        from voice_proxy.core.metrics import metrics

        content, content_type = metrics.get_metrics_response()
        assert b"voice_provider_calls_total" in content
        assert content_type.startswith("text/plain")


class TestResources:

    def test_memory_snapshot(self):
        from voice_proxy.core.resources import memory_snapshot

        data = memory_snapshot().to_dict()
        assert set(data) == {"rss_mb", "vms_mb", "system_available_mb", "percent"}
        assert data["rss_mb"] >= 0


class TestTimeit:

    def test_timing_after_block(self):
        from voice_proxy.utils.timeit import timeit

        with timeit("block") as t:
            pass
        assert t.timing.name == "block"
        assert t.timing.seconds >= 0
        assert t.elapsed == t.timing.seconds

    def test_timing_recorded_on_error(self):
        import pytest

        from voice_proxy.utils.timeit import timeit

        t = timeit("failing")
        with pytest.raises(ValueError):
            with t:
                raise ValueError("x")
        assert t.timing is not None


class TestTextHelpers:

    def test_truncate_prefers_sentence_break(self):
        from voice_proxy.utils.text import truncate_for_provider

        text = "a" * 90 + ". " + "b" * 50
        assert truncate_for_provider(text, 100) == "a" * 90 + "."

    def test_truncate_hard_cut_when_break_too_early(self):
        from voice_proxy.utils.text import truncate_for_provider

        text = "a" * 10 + ". " + "b" * 200
        assert len(truncate_for_provider(text, 100)) == 100

    def test_preview(self):
        from voice_proxy.utils.text import preview

        assert preview("short") == "short"
        assert preview("x" * 60) == "x" * 50 + "..."
