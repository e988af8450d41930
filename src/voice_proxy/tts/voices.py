"""
Speakers, Languages and Voice Mapping.

The speaker set is closed. Each speaker maps to a provider voice id taken
from configuration; a speaker without one is "unmapped" and cannot be
synthesized.

Iteration order (used by batch generation and statistics):
    wuenda, paul_graham, feifeili, sam_altman
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

from voice_proxy.core.errors import InvalidInputError, UnknownSpeakerError


class Speaker(str, Enum):
    WUENDA = "wuenda"
    PAUL_GRAHAM = "paul_graham"
    FEIFEILI = "feifeili"
    SAM_ALTMAN = "sam_altman"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: "str | Speaker") -> "Speaker":
        """
        Parse a speaker id. Accepts hyphenated slugs (``paul-graham``).

        Raises:
            UnknownSpeakerError: If the value is outside the closed set.
        """
        if isinstance(value, Speaker):
            return value
        key = str(value or "").strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise UnknownSpeakerError(str(value), [s.value for s in cls]) from None


class Language(str, Enum):
    EN = "en"
    CN = "cn"

    @classmethod
    def parse(cls, value: "str | Language") -> "Language":
        if isinstance(value, Language):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise InvalidInputError(
                f"Unsupported language: {value}. Supported: en, cn",
                {"language": value},
            ) from None


DISPLAY_NAMES = {
    Speaker.SAM_ALTMAN: "Sam Altman",
    Speaker.FEIFEILI: "李飞飞",
    Speaker.WUENDA: "吴恩达",
    Speaker.PAUL_GRAHAM: "Paul Graham",
}


@dataclass(frozen=True)
class SpeakerInfo:
    name: str
    voice_id: Optional[str]
    display_name: str

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "voiceId": self.voice_id, "displayName": self.display_name}


class VoiceMap:
    """
    Immutable speaker -> provider voice id mapping.

    Unknown keys in the configured mapping are ignored.
    """

    def __init__(self, voices: Mapping[str, str]):
        resolved: Dict[Speaker, str] = {}
        for name, voice_id in voices.items():
            try:
                speaker = Speaker.parse(name)
            except UnknownSpeakerError:
                continue
            if voice_id:
                resolved[speaker] = str(voice_id)
        self._voices = resolved

    def voice_id(self, speaker: "str | Speaker") -> str:
        """
        Resolve a speaker to its voice id.

        Raises:
            UnknownSpeakerError: Outside the closed set or unmapped.
        """
        spk = Speaker.parse(speaker)
        voice_id = self._voices.get(spk)
        if not voice_id:
            raise UnknownSpeakerError(spk.value, [s.value for s in self.mapped()])
        return voice_id

    def mapped(self) -> List[Speaker]:
        return [s for s in Speaker if s in self._voices]

    def speakers(self) -> List[SpeakerInfo]:
        """Every speaker of the closed set, mapped or not."""
        return [
            SpeakerInfo(name=s.value, voice_id=self._voices.get(s), display_name=s.display_name)
            for s in Speaker
        ]

    def __contains__(self, speaker: object) -> bool:
        try:
            return Speaker.parse(speaker) in self._voices  # type: ignore[arg-type]
        except UnknownSpeakerError:
            return False
