"""
Subject and Generation Records.

Subjects are read-only text-bearing records owned by the external data
store: comments (one text per speaker and language) and articles (one
body of content). Generation records track article narration.

Comment Column Mapping:
    Text for (speaker, language) lives in ``comment_{language}_{suffix}``:

        wuenda      -> ng      e.g. comment_en_ng, comment_cn_ng
        paul_graham -> paul
        feifeili    -> li
        sam_altman  -> sam

Generation States:
    pending -> processing -> completed | failed

    A new attempt overwrites the previous terminal state; records are
    never deleted.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from voice_proxy.tts.voices import Language, Speaker

_FIELD_SUFFIX = {
    Speaker.WUENDA: "ng",
    Speaker.PAUL_GRAHAM: "paul",
    Speaker.FEIFEILI: "li",
    Speaker.SAM_ALTMAN: "sam",
}

# Columns matched by comment search
SEARCH_COLUMNS = ("gmail", "github_repo_url") + tuple(
    f"comment_en_{suffix}" for suffix in _FIELD_SUFFIX.values()
)

STATS_PREVIEW_CHARS = 100

# Article body columns, first non-empty wins
ARTICLE_CONTENT_COLUMNS = ("content", "text", "output", "response")


def text_field(speaker: "str | Speaker", language: "str | Language") -> str:
    """Column holding a comment's text for one speaker and language."""
    return f"comment_{Language.parse(language).value}_{_FIELD_SUFFIX[Speaker.parse(speaker)]}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubjectKind(str, Enum):
    COMMENT = "comment"
    ARTICLE = "article"


@dataclass(frozen=True)
class SubjectRecord:
    """
    A subject row as returned by the data store.

    Attributes:
        id: Subject identifier (UUID for comments, any id for articles).
        kind: Comment or article.
        row: The raw column values.
    """
    id: str
    kind: SubjectKind
    row: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def comment(cls, row: Dict[str, Any]) -> "SubjectRecord":
        return cls(id=str(row["id"]), kind=SubjectKind.COMMENT, row=dict(row))

    @classmethod
    def article(cls, row: Dict[str, Any]) -> "SubjectRecord":
        return cls(id=str(row["id"]), kind=SubjectKind.ARTICLE, row=dict(row))

    @property
    def created_at(self) -> Optional[str]:
        return self.row.get("created_at")

    @property
    def content(self) -> str:
        """Article body. Comments have none."""
        for column in ARTICLE_CONTENT_COLUMNS:
            if self.row.get(column):
                return str(self.row[column])
        return ""

    @property
    def title(self) -> str:
        return str(self.row.get("title") or self.row.get("name") or f"Article {self.id}")

    def text_for(self, speaker: "str | Speaker", language: "str | Language") -> str:
        """Text variant for (speaker, language); empty string when absent."""
        return str(self.row.get(text_field(speaker, language)) or "")

    def speaker_texts(self, language: "str | Language") -> Dict[Speaker, str]:
        """Every speaker's text for a language, in speaker order."""
        return {s: self.text_for(s, language) for s in Speaker}

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gmail": self.row.get("gmail"),
            "github_repo_url": self.row.get("github_repo_url"),
            "created_at": self.created_at,
        }

    def statistics(self) -> Dict[str, Any]:
        """
        Per-language, per-speaker text statistics.

        Returns:
            Metadata plus ``english``/``chinese`` maps of
            {hasText, length, preview} and ``total_characters``.
        """
        stats: Dict[str, Any] = {**self.metadata(), "english": {}, "chinese": {}, "total_characters": 0}
        for language, bucket in ((Language.EN, "english"), (Language.CN, "chinese")):
            for speaker, text in self.speaker_texts(language).items():
                stats[bucket][speaker.value] = {
                    "hasText": bool(text.strip()),
                    "length": len(text),
                    "preview": _stats_preview(text),
                }
                stats["total_characters"] += len(text)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.row)


def _stats_preview(text: str) -> Optional[str]:
    if not text:
        return None
    if len(text) > STATS_PREVIEW_CHARS:
        return text[:STATS_PREVIEW_CHARS] + "..."
    return text


@dataclass
class Page:
    """One page of subjects plus pagination numbers."""
    items: List[SubjectRecord]
    page: int
    limit: int
    total: int
    query: Optional[str] = None

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)

    def pagination(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }
        if self.query is not None:
            data["query"] = self.query
        return data


class GenerationState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (GenerationState.COMPLETED, GenerationState.FAILED)


@dataclass
class GenerationRecord:
    """
    Aggregate status of one narration (subject, speaker).

    Row columns: id, article_id, speaker_id, status, audio_urls,
    segments_count, processing_time, error_message, updated_at, completed_at.
    """
    subject_id: str
    speaker: str
    state: GenerationState = GenerationState.PENDING
    audio_urls: List[str] = field(default_factory=list)
    processing_time: Optional[float] = None
    error_message: Optional[str] = None
    id: Optional[Any] = None
    updated_at: str = field(default_factory=_now)
    completed_at: Optional[str] = None

    @property
    def segments_count(self) -> int:
        return len(self.audio_urls)

    def start(self) -> None:
        self.state = GenerationState.PROCESSING
        self.error_message = None
        self.audio_urls = []
        self.processing_time = None
        self.completed_at = None
        self.updated_at = _now()

    def complete(self, audio_urls: List[str], processing_time: float) -> None:
        self.state = GenerationState.COMPLETED
        self.audio_urls = list(audio_urls)
        self.processing_time = processing_time
        self.error_message = None
        self.completed_at = self.updated_at = _now()

    def mark_failed(self, message: str, processing_time: float) -> None:
        self.state = GenerationState.FAILED
        self.error_message = message
        self.processing_time = processing_time
        self.updated_at = _now()

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "article_id": self.subject_id,
            "speaker_id": self.speaker,
            "status": self.state.value,
            "audio_urls": list(self.audio_urls),
            "segments_count": self.segments_count,
            "processing_time": self.processing_time,
            "error_message": self.error_message,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "GenerationRecord":
        return cls(
            subject_id=str(row["article_id"]),
            speaker=str(row["speaker_id"]),
            state=GenerationState(row.get("status") or GenerationState.PENDING.value),
            audio_urls=list(row.get("audio_urls") or []),
            processing_time=row.get("processing_time"),
            error_message=row.get("error_message"),
            id=row.get("id"),
            updated_at=row.get("updated_at") or _now(),
            completed_at=row.get("completed_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "articleId": self.subject_id,
            "speaker": self.speaker,
            "status": self.state.value,
            "audioUrls": list(self.audio_urls),
            "segmentsCount": self.segments_count,
            "processingTime": self.processing_time,
            "errorMessage": self.error_message,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
        }


class SubjectStore(ABC):
    """
    External data store collaborator.

    Implementations raise NotFoundError for absent subjects and
    DataStoreError when the backend itself fails.
    """

    @abstractmethod
    def get_subject(self, subject_id: str, kind: SubjectKind = SubjectKind.COMMENT) -> SubjectRecord:
        ...

    @abstractmethod
    def list_recent(
        self, limit: int, offset: int = 0, kind: SubjectKind = SubjectKind.COMMENT
    ) -> Tuple[List[SubjectRecord], int]:
        """Newest first. Returns (records, total)."""

    @abstractmethod
    def search(self, query: str, limit: int, offset: int = 0) -> Tuple[List[SubjectRecord], int]:
        """Case-insensitive substring search over comment SEARCH_COLUMNS."""

    @abstractmethod
    def get_generation(self, subject_id: str, speaker: str) -> Optional[GenerationRecord]:
        ...

    @abstractmethod
    def save_generation(self, record: GenerationRecord) -> GenerationRecord:
        """Insert or overwrite the record for (subject_id, speaker)."""

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        ...

    def close(self) -> None:
        return None
