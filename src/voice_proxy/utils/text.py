"""
Text Helpers.

Preprocessing applied before text reaches the provider, plus the bounded
previews used in artifacts and log lines.

Provider truncation:
    Text longer than the provider limit is cut to the limit. If the last
    sentence terminator (``。`` or ``.``) in the cut text sits past 80% of
    the limit, the text is cut right after it instead, so the provider
    does not read half a sentence.

Example:
    >>> normalize_whitespace("  Hello \\n\\n  world  ")
    'Hello world'
    >>> preview("x" * 60)
    'xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx...'
"""
from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")

# Cut points accepted by truncate_for_provider
_TRUNCATE_TERMINATORS = ("。", ".")

# Fraction of the limit a cut point must reach to be used
_TRUNCATE_MIN_RATIO = 0.8

ARTIFACT_PREVIEW_CHARS = 50


def normalize_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace (including newlines) to one space."""
    return _WS_RE.sub(" ", text.strip())


def preview(text: str, limit: int = ARTIFACT_PREVIEW_CHARS) -> str:
    """First ``limit`` characters, with ``...`` appended when text is longer."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def truncate_for_provider(text: str, max_chars: int) -> str:
    """
    Bound text to ``max_chars``, preferring a sentence boundary.

    Args:
        text: Already normalized text.
        max_chars: Provider text limit.

    Returns:
        The text unchanged when within the limit, otherwise a prefix.
    """
    if len(text) <= max_chars:
        return text

    cut = text[:max_chars]
    last_break = max(cut.rfind(t) for t in _TRUNCATE_TERMINATORS)
    if last_break > max_chars * _TRUNCATE_MIN_RATIO:
        return cut[: last_break + 1]
    return cut
