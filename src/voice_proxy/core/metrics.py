"""
Prometheus Metrics for voice-proxy.

Metrics Exposed:
    voice_provider_calls_total            - Provider calls by speaker and outcome
    voice_provider_retries_total          - Transport retries by speaker
    voice_provider_call_duration_seconds  - Provider call latency (all attempts)
    voice_cache_hits_total                - Audio cache hits
    voice_cache_misses_total              - Audio cache misses
    voice_generations_total               - Generations by kind and status
    voice_generations_in_flight           - Current in-flight generation keys

Usage:
    from voice_proxy.core.metrics import metrics

    metrics.record_provider_call("wuenda", "success", 1.2, mock=False)
    metrics.record_cache("hit")
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class VoiceMetrics:
    """
    Metrics collector backed by a private CollectorRegistry.

    A private registry keeps repeated instantiation (tests, reloads) from
    colliding with the default global registry.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._provider_calls = Counter(
            "voice_provider_calls_total",
            "Provider synthesize calls",
            ["speaker", "outcome", "mode"],
            registry=self._registry,
        )
        self._provider_retries = Counter(
            "voice_provider_retries_total",
            "Provider retries after transport errors",
            ["speaker"],
            registry=self._registry,
        )
        self._provider_duration = Histogram(
            "voice_provider_call_duration_seconds",
            "Provider call duration including retries",
            ["mode"],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )
        self._cache_hits = Counter(
            "voice_cache_hits_total",
            "Audio cache hits",
            registry=self._registry,
        )
        self._cache_misses = Counter(
            "voice_cache_misses_total",
            "Audio cache misses",
            registry=self._registry,
        )
        self._generations = Counter(
            "voice_generations_total",
            "Generations by kind and status",
            ["kind", "status"],
            registry=self._registry,
        )
        self._in_flight = Gauge(
            "voice_generations_in_flight",
            "Generation keys currently claimed",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_provider_call(self, speaker: str, outcome: str, duration: float, mock: bool = False) -> None:
        """
        Record a finished synthesize() call.

        Args:
            speaker: Speaker id.
            outcome: "success" or an error code.
            duration: Seconds spent including retries and backoff.
            mock: Whether the call was answered by mock mode.
        """
        mode = "mock" if mock else "live"
        self._provider_calls.labels(speaker=speaker, outcome=outcome, mode=mode).inc()
        self._provider_duration.labels(mode=mode).observe(duration)

    def record_retry(self, speaker: str) -> None:
        self._provider_retries.labels(speaker=speaker).inc()

    def record_cache(self, result: str) -> None:
        """Record a cache lookup: "hit" or "miss"."""
        if result == "hit":
            self._cache_hits.inc()
        else:
            self._cache_misses.inc()

    def record_generation(self, kind: str, status: str) -> None:
        self._generations.labels(kind=kind, status=status).inc()

    def set_in_flight(self, count: int) -> None:
        self._in_flight.set(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Process-wide collector; import this to record metrics.
metrics = VoiceMetrics()
