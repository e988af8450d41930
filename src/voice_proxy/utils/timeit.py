"""
Timing Utilities.

Measures wall-clock time of code blocks with perf_counter(). Used for
provider latency, batch totals and narration processing time.

Example:
    with timeit("provider_call") as t:
        result = client.synthesize(text, speaker)
    print(f"Took {t.timing.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed.
        seconds: Duration in seconds.
        meta: Optional metadata dictionary.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The result is available as ``timing`` after the block exits, even when
    the block raised.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(perf_counter() - self._t0), meta=self.meta)

    @property
    def elapsed(self) -> float:
        """Seconds so far (inside the block) or total (after it)."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
