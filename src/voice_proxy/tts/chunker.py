"""
Text Chunking for Provider Calls.

Splits stored text into bounded segments, each small enough for a single
provider call, without breaking sentences when it can be avoided.

Strategy:
    1. Split on sentence terminators, ASCII and full-width (. ! ? 。 ！ ？ ．)
    2. Normalize whitespace inside each sentence and drop empty ones
    3. Greedily join sentences with a space; every sentence ends with "."
    4. Flush the buffer when the next sentence would make it reach max_length
    5. A sentence that cannot fit alone is wrapped at word boundaries, and a
       single word longer than the bound is sliced

If the split leaves nothing (text made only of terminators), the first
max_length characters of the stripped text become the only chunk.
Whitespace-only text yields no chunks.

Example:
    >>> chunk_text("Hello world. This is great!", 500).chunks
    ['Hello world. This is great.']
    >>> chunk_text("One. Two. Three.", 10).chunks
    ['One. Two.', 'Three.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from voice_proxy.core.logging import get_logger, verbose
from voice_proxy.utils.text import normalize_whitespace
from voice_proxy.utils.timeit import timeit

_LOG = get_logger("voice-proxy.chunker")

_SENT_SPLIT = re.compile(r"[.!?。！？．]")

CHUNK_TERMINATOR = "."


@dataclass
class ChunkResult:
    """
    Result of a chunking operation.

    Attributes:
        chunks: Ordered chunks ready for synthesis.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]

    def numbered(self) -> List[Tuple[int, str]]:
        """Chunks paired with their 1-based position."""
        return list(enumerate(self.chunks, start=1))

    def __len__(self) -> int:
        return len(self.chunks)


def _wrap_words(sentence: str, width: int) -> Iterator[str]:
    """Pack words into pieces of at most ``width`` characters."""
    current = ""
    for word in sentence.split(" "):
        while len(word) > width:
            if current:
                yield current
                current = ""
            yield word[:width]
            word = word[width:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            yield current
            current = word
    if current:
        yield current


def _units(text: str, max_length: int) -> Iterator[str]:
    """Sentence units, each ending with the terminator and bounded by max_length."""
    width = max(1, max_length - len(CHUNK_TERMINATOR))
    for raw in _SENT_SPLIT.split(text):
        sentence = normalize_whitespace(raw)
        if not sentence:
            continue
        if len(sentence) <= width:
            yield sentence + CHUNK_TERMINATOR
        else:
            for piece in _wrap_words(sentence, width):
                yield piece + CHUNK_TERMINATOR


def chunk_text(text: str, max_length: int = 500) -> ChunkResult:
    """
    Split text into ordered, bounded chunks.

    Deterministic and side-effect free apart from a VERBOSE log line.

    Args:
        text: Source text.
        max_length: Upper bound per chunk in characters.

    Returns:
        ChunkResult with the chunks in reading order.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    timings: Dict[str, float] = {}
    out: List[str] = []

    with timeit("chunk") as t:
        stripped = text.strip() if text else ""
        if stripped:
            buf = ""
            for unit in _units(stripped, max_length):
                if not buf:
                    buf = unit
                    continue
                candidate = f"{buf} {unit}"
                if len(candidate) >= max_length:
                    out.append(buf)
                    buf = unit
                else:
                    buf = candidate
            if buf:
                out.append(buf)

            if not out:
                out = [stripped[:max_length]]

    timings["chunk"] = t.timing.seconds if t.timing else -1.0
    verbose(_LOG, "chunked", chunks=len(out), chars=len(text or ""), max_length=max_length)

    return ChunkResult(chunks=out, timings_s=timings)
