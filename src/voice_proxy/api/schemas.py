"""
API Request Schemas.

Pydantic models for request bodies. Field names follow the public JSON
contract (camelCase where clients send camelCase).

Example Request (POST /api/tts):
    {"text": "Hello there.", "speaker": "sam_altman"}
    {"textId": "42", "speaker": "paul_graham"}
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from voice_proxy.services.validators import MAX_TEXT_CHARS


class TTSRequest(BaseModel):
    """
    Direct synthesis request. Exactly one of ``text`` and ``textId`` is required.

    Attributes:
        text: Text to synthesize (max 4000 characters).
        text_id: Id of a stored article whose content is synthesized.
        speaker: Speaker id; hyphenated slugs are accepted.
    """
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = Field(default=None, max_length=MAX_TEXT_CHARS, description="Text to synthesize")
    text_id: str | None = Field(default=None, alias="textId", description="Stored article id")
    speaker: str | None = Field(default=None, description="Speaker id, e.g. sam_altman")


class SpeakerTTSRequest(BaseModel):
    text: str | None = Field(default=None, max_length=MAX_TEXT_CHARS)


class NarrationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    speaker: str | None = Field(default=None, description="Speaker id")
    force_regenerate: bool = Field(
        default=False, alias="forceRegenerate",
        description="Regenerate even when a completed narration exists",
    )


class WarmupRequest(BaseModel):
    limit: int | None = Field(default=None, description="Number of recent comments (capped)")
