"""
In-Memory Subject Store.

Holds comments, articles and generation records in process memory. Used
for development, mock deployments and tests. Can be seeded from a YAML
fixtures file:

    comments:
      - id: 6f1c0c2e-...
        gmail: someone@example.com
        github_repo_url: https://github.com/someone/project
        created_at: "2025-01-02T10:00:00Z"
        comment_en_sam: "Ship it."
    articles:
      - id: "42"
        title: Launch notes
        content: "First sentence. Second sentence."
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from voice_proxy.core.errors import NotFoundError
from voice_proxy.core.logging import get_logger, info
from voice_proxy.store.models import (
    SEARCH_COLUMNS,
    GenerationRecord,
    SubjectKind,
    SubjectRecord,
    SubjectStore,
)

_LOG = get_logger("voice-proxy.store")


def _newest_first(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Rows without created_at sort last
    dated = [r for r in rows if r.get("created_at")]
    undated = [r for r in rows if not r.get("created_at")]
    dated.sort(key=lambda r: str(r["created_at"]), reverse=True)
    return dated + undated


class InMemorySubjectStore(SubjectStore):
    """Thread-safe dictionary-backed store."""

    def __init__(
        self,
        comments: Optional[Iterable[Dict[str, Any]]] = None,
        articles: Optional[Iterable[Dict[str, Any]]] = None,
    ):
        self._lock = threading.Lock()
        self._rows: Dict[SubjectKind, Dict[str, Dict[str, Any]]] = {
            SubjectKind.COMMENT: {},
            SubjectKind.ARTICLE: {},
        }
        self._generations: Dict[Tuple[str, str], GenerationRecord] = {}
        self._next_generation_id = 1
        for row in comments or ():
            self.add_comment(row)
        for row in articles or ():
            self.add_article(row)

    @classmethod
    def from_fixtures(cls, path: str | Path) -> "InMemorySubjectStore":
        """
        Load a store from a YAML fixtures file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Fixtures not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        store = cls(comments=data.get("comments") or (), articles=data.get("articles") or ())
        info(
            _LOG, "fixtures_loaded",
            path=str(path), comments=len(store._rows[SubjectKind.COMMENT]),
            articles=len(store._rows[SubjectKind.ARTICLE]),
        )
        return store

    def add_comment(self, row: Dict[str, Any]) -> SubjectRecord:
        return self._add(SubjectKind.COMMENT, row)

    def add_article(self, row: Dict[str, Any]) -> SubjectRecord:
        return self._add(SubjectKind.ARTICLE, row)

    def _add(self, kind: SubjectKind, row: Dict[str, Any]) -> SubjectRecord:
        row = {k: v for k, v in row.items()}
        row["id"] = str(row["id"])
        with self._lock:
            self._rows[kind][row["id"]] = row
        return SubjectRecord(id=row["id"], kind=kind, row=row)

    # ─────────────────────────────────────────────────────────────────────────
    # SubjectStore
    # ─────────────────────────────────────────────────────────────────────────

    def get_subject(self, subject_id: str, kind: SubjectKind = SubjectKind.COMMENT) -> SubjectRecord:
        with self._lock:
            row = self._rows[kind].get(str(subject_id))
        if row is None:
            raise NotFoundError(f"{kind.value.capitalize()} not found: {subject_id}", {"id": subject_id})
        return SubjectRecord(id=row["id"], kind=kind, row=dict(row))

    def list_recent(
        self, limit: int, offset: int = 0, kind: SubjectKind = SubjectKind.COMMENT
    ) -> Tuple[List[SubjectRecord], int]:
        with self._lock:
            rows = _newest_first(self._rows[kind].values())
        page = rows[offset:offset + limit]
        return [SubjectRecord(id=r["id"], kind=kind, row=dict(r)) for r in page], len(rows)

    def search(self, query: str, limit: int, offset: int = 0) -> Tuple[List[SubjectRecord], int]:
        needle = query.lower()
        with self._lock:
            rows = _newest_first(self._rows[SubjectKind.COMMENT].values())
        matches = [
            r for r in rows
            if any(needle in str(r.get(col) or "").lower() for col in SEARCH_COLUMNS)
        ]
        page = matches[offset:offset + limit]
        return [SubjectRecord.comment(r) for r in page], len(matches)

    def get_generation(self, subject_id: str, speaker: str) -> Optional[GenerationRecord]:
        with self._lock:
            record = self._generations.get((str(subject_id), speaker))
        if record is None:
            return None
        return GenerationRecord.from_row(record.to_row())

    def save_generation(self, record: GenerationRecord) -> GenerationRecord:
        key = (record.subject_id, record.speaker)
        with self._lock:
            existing = self._generations.get(key)
            if record.id is None:
                if existing is not None:
                    record.id = existing.id
                else:
                    record.id = self._next_generation_id
                    self._next_generation_id += 1
            self._generations[key] = GenerationRecord.from_row(record.to_row())
        return record

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "status": "healthy",
                "backend": "memory",
                "accessible": True,
                "comments": len(self._rows[SubjectKind.COMMENT]),
                "articles": len(self._rows[SubjectKind.ARTICLE]),
            }
