"""
Input Validation for the Voice Service.

Malformed caller input is rejected here, before any store, storage or
provider call. Every function raises InvalidInputError (HTTP 400) or, for
speakers, UnknownSpeakerError.

Rules:
    - Comment id: UUID, versions 1-5, RFC 4122 variant, case-insensitive
    - Text: required, max 4000 characters
    - Speaker: one of the closed set, hyphenated slugs accepted
    - Language: en or cn
    - Pagination: page >= 1, 1 <= limit, limit capped at the list maximum
"""
from __future__ import annotations

import re
from typing import Optional, Tuple

from voice_proxy.core.errors import EmptyTextError, InvalidInputError
from voice_proxy.core.logging import get_logger, warn
from voice_proxy.tts.voices import Language, Speaker

_LOG = get_logger("voice-proxy.validators")

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MAX_TEXT_CHARS = 4000
MAX_SEARCH_CHARS = 200


def is_valid_uuid(value: Optional[str]) -> bool:
    return bool(value) and _UUID_RE.match(value) is not None  # type: ignore[arg-type]


def validate_comment_id(comment_id: Optional[str]) -> str:
    """
    Validate a comment id.

    Raises:
        InvalidInputError: If the id is not a UUID.
    """
    if not is_valid_uuid(comment_id):
        warn(_LOG, "invalid_comment_id", comment_id=comment_id)
        raise InvalidInputError("Invalid comment id format", {"id": comment_id})
    return str(comment_id)


def validate_article_id(article_id: Optional[str]) -> str:
    if article_id is None or not str(article_id).strip():
        raise InvalidInputError("Article id is required")
    return str(article_id).strip()


def validate_text(text: Optional[str], max_length: int = MAX_TEXT_CHARS) -> str:
    """
    Validate direct synthesis text.

    Raises:
        EmptyTextError: Missing or whitespace-only.
        InvalidInputError: Longer than ``max_length``.
    """
    if not text or not text.strip():
        raise EmptyTextError("Text is required")
    text = text.strip()
    if len(text) > max_length:
        raise InvalidInputError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            {"length": len(text), "max": max_length},
        )
    return text


def validate_speaker(speaker: Optional[str]) -> Speaker:
    if not speaker:
        raise InvalidInputError("Speaker is required")
    return Speaker.parse(speaker)


def validate_language(language: Optional[str]) -> Language:
    return Language.parse(language or Language.EN.value)


def validate_search(query: Optional[str]) -> Optional[str]:
    """Blank queries mean no search."""
    if query is None or not query.strip():
        return None
    query = query.strip()
    if len(query) > MAX_SEARCH_CHARS:
        raise InvalidInputError(f"Search query exceeds maximum length ({len(query)} > {MAX_SEARCH_CHARS})")
    return query


def validate_pagination(
    page: Optional[int], limit: Optional[int], default_limit: int, max_limit: int
) -> Tuple[int, int]:
    """
    Normalize page/limit.

    Missing values take defaults and ``limit`` is capped at ``max_limit``.

    Raises:
        InvalidInputError: Negative or zero page/limit.
    """
    page = 1 if page is None else page
    limit = default_limit if limit is None else limit
    if page < 1:
        raise InvalidInputError(f"page must be >= 1, got {page}")
    if limit < 1:
        raise InvalidInputError(f"limit must be >= 1, got {limit}")
    return page, min(limit, max_limit)
