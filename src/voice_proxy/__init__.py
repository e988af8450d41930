"""
voice-proxy: Text-to-Speech Proxy for Stored Comments and Articles.

A small orchestration service that turns stored text into speech through a
remote voice-cloning provider, caches the resulting audio URLs and serves
them over a REST interface.

Key Features:
    - Sentence-respecting text chunking for single provider calls
    - Provider client with classified retries, linear backoff and mock mode
    - Per-subject generation with pacing and partial-failure tolerance
    - In-memory audio cache with an in-flight set for deduplication
    - Warmup batches over the most recent subjects
    - Article narration uploaded to blob storage
    - Prometheus metrics and structured logging

Example Usage:
    >>> from voice_proxy.core.config import Settings
    >>> from voice_proxy.services import VoiceService
    >>>
    >>> service = VoiceService(Settings(raw={"provider": {"mock_mode": True}}))
    >>> artifact = service.synthesize_text("Hello there.", "sam_altman")
    >>> artifact.mock
    True
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
