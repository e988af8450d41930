"""
Audio Cache and In-Flight Set.

Two process-local structures guard generation:

    AudioCache: (subject, speaker, language) -> AudioArtifact
        - No expiry; entries leave only through invalidate() or clear()
        - Writes to the same key are last-write-wins
        - Hit/miss counters for statistics

    InFlightSet: keys currently being generated
        - claim(key) is an atomic check-and-set; a second claim for a held
          key fails immediately with AlreadyInProgressError
        - Membership is released when the claiming block exits, whatever
          the outcome

A key with ``speaker=None`` and ``language=None`` stands for the whole
subject; batch generation claims it so two batches for the same subject
cannot overlap.

Neither structure holds its lock while a provider call is running. The
in-flight membership flag is the only exclusion that spans a call.

Example:
    >>> cache = AudioCache()
    >>> key = CacheKey("c1", "wuenda", "en")
    >>> cache.put(key, artifact)
    >>> cache.has(key)
    True
    >>> cache.invalidate("c1")
    1
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from voice_proxy.core.errors import AlreadyInProgressError
from voice_proxy.core.logging import get_logger, info, verbose
from voice_proxy.core.metrics import metrics
from voice_proxy.core.resources import memory_snapshot
from voice_proxy.tts.provider import AudioArtifact
from voice_proxy.tts.voices import Language, Speaker

_LOG = get_logger("voice-proxy.cache")


class CacheKey(NamedTuple):
    """
    Cache and in-flight key.

    The string form matches the public key format ``{subject}_{speaker}_{lang}``.
    """
    subject_id: str
    speaker: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def of(cls, subject_id: str, speaker: "str | Speaker", language: "str | Language") -> "CacheKey":
        return cls(str(subject_id), Speaker.parse(speaker).value, Language.parse(language).value)

    @classmethod
    def subject(cls, subject_id: str) -> "CacheKey":
        """Key covering every speaker and language of a subject."""
        return cls(str(subject_id))

    def __str__(self) -> str:
        return f"{self.subject_id}_{self.speaker or '*'}_{self.language or '*'}"


class AudioCache:
    """
    Thread-safe in-memory artifact cache with explicit invalidation.
    """

    def __init__(self):
        self._d: Dict[CacheKey, AudioArtifact] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> Optional[AudioArtifact]:
        """Look up an artifact, counting the hit or miss."""
        with self._lock:
            artifact = self._d.get(key)
            if artifact is None:
                self._misses += 1
            else:
                self._hits += 1

        metrics.record_cache("hit" if artifact is not None else "miss")
        verbose(_LOG, "hit" if artifact is not None else "miss", key=str(key))
        return artifact

    def has(self, key: CacheKey) -> bool:
        """Membership test that does not touch hit/miss counters."""
        with self._lock:
            return key in self._d

    def put(self, key: CacheKey, artifact: AudioArtifact) -> None:
        with self._lock:
            self._d[key] = artifact
        info(_LOG, "cached", key=str(key), mock=artifact.mock)

    def invalidate(self, subject_id: str) -> int:
        """
        Remove every entry of a subject (all speakers, both languages).

        Idempotent: absent entries are skipped.

        Returns:
            Number of entries removed.
        """
        removed = 0
        with self._lock:
            for speaker in Speaker:
                for language in Language:
                    if self._d.pop(CacheKey(str(subject_id), speaker.value, language.value), None) is not None:
                        removed += 1
        info(_LOG, "invalidated", subject_id=subject_id, removed=removed)
        return removed

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        with self._lock:
            count = len(self._d)
            self._d.clear()
        info(_LOG, "cleared", removed=count)
        return count

    def keys(self) -> List[CacheKey]:
        with self._lock:
            return list(self._d.keys())

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._d),
                "hits": self._hits,
                "misses": self._misses,
                "keys": [str(k) for k in self._d],
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._d


class InFlightSet:
    """
    Set of keys currently being generated.

    Usage:
        with in_flight.claim(CacheKey.subject("c1")):
            ...  # only one holder at a time; others get AlreadyInProgressError
    """

    def __init__(self):
        self._keys: set[CacheKey] = set()
        self._lock = threading.Lock()

    def try_claim(self, key: CacheKey) -> bool:
        """
        Atomically add ``key``.

        A per-speaker key also conflicts with a held subject-wide key for
        the same subject, and a subject-wide key conflicts with any held
        key of that subject.
        """
        with self._lock:
            if self._conflicts(key):
                return False
            self._keys.add(key)
            count = len(self._keys)
        metrics.set_in_flight(count)
        return True

    def release(self, key: CacheKey) -> None:
        with self._lock:
            self._keys.discard(key)
            count = len(self._keys)
        metrics.set_in_flight(count)

    @contextmanager
    def claim(self, key: CacheKey) -> Iterator[CacheKey]:
        """
        Hold ``key`` for the duration of the block.

        Raises:
            AlreadyInProgressError: If the key (or an overlapping one) is held.
        """
        if not self.try_claim(key):
            info(_LOG, "in_flight_conflict", key=str(key))
            raise AlreadyInProgressError(str(key))
        try:
            yield key
        finally:
            self.release(key)

    def _conflicts(self, key: CacheKey) -> bool:
        if key in self._keys:
            return True
        subject_wide = CacheKey.subject(key.subject_id)
        if key == subject_wide:
            return any(k.subject_id == key.subject_id for k in self._keys)
        return subject_wide in self._keys

    def is_active(self, subject_id: str) -> bool:
        with self._lock:
            return any(k.subject_id == str(subject_id) for k in self._keys)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def keys(self) -> List[str]:
        with self._lock:
            return [str(k) for k in self._keys]


@dataclass
class CacheLayer:
    """Cache plus in-flight set, reported together."""
    cache: AudioCache
    in_flight: InFlightSet

    def stats(self) -> Dict[str, Any]:
        """
        Combined statistics.

        Returns:
            Dictionary with size, inFlightCount, keys, activeGenerations,
            hits, misses and a process memory snapshot.
        """
        cache_stats = self.cache.stats()
        return {
            "size": cache_stats["size"],
            "inFlightCount": len(self.in_flight),
            "keys": cache_stats["keys"],
            "activeGenerations": self.in_flight.keys(),
            "hits": cache_stats["hits"],
            "misses": cache_stats["misses"],
            "memory": memory_snapshot().to_dict(),
        }
