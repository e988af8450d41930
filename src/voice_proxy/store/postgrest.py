"""
Supabase (PostgREST) Subject Store.

Talks to the REST interface of a Supabase project over httpx:

    GET  {url}/rest/v1/{table}?select=*&id=eq.{id}
    GET  {url}/rest/v1/{table}?select=*&order=created_at.desc&offset=&limit=
         Prefer: count=exact  ->  Content-Range: 0-9/42
    POST {url}/rest/v1/{generations}?on_conflict=article_id,speaker_id
         Prefer: resolution=merge-duplicates,return=representation

Table names come from configuration; nothing is probed at runtime.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from voice_proxy import __version__
from voice_proxy.core.config import StoreConfig
from voice_proxy.core.errors import DataStoreError, NotFoundError
from voice_proxy.core.logging import get_logger, verbose, warn
from voice_proxy.store.models import (
    SEARCH_COLUMNS,
    GenerationRecord,
    SubjectKind,
    SubjectRecord,
    SubjectStore,
)

_LOG = get_logger("voice-proxy.store")

# Characters with meaning inside a PostgREST or=(...) filter
_FILTER_UNSAFE = re.compile(r"[,()*\"\\]")


def parse_content_range(header: Optional[str]) -> Optional[int]:
    """
    Total row count from a ``Content-Range`` header.

    >>> parse_content_range("0-9/42")
    42
    >>> parse_content_range("*/0")
    0
    """
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class SupabaseSubjectStore(SubjectStore):
    """
    Subject store backed by Supabase PostgREST.

    Args:
        config: Store configuration (url, api_key, table names, timeout).
        http_client: Optional pre-built httpx.Client (tests pass one with a
            MockTransport).
    """

    def __init__(self, config: StoreConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=config.timeout_s)
        self._base = f"{config.url.rstrip('/')}/rest/v1"
        self._tables = {
            SubjectKind.COMMENT: config.comments_table,
            SubjectKind.ARTICLE: config.articles_table,
        }

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": f"voice-proxy/{__version__}",
        }
        headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        table: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self._base}/{table}"
        verbose(_LOG, "store_request", method=method, table=table)
        try:
            response = self._client.request(
                method, url, params=params, headers=self._headers(**(headers or {})), json=json,
                timeout=self.config.timeout_s,
            )
        except httpx.HTTPError as e:
            warn(_LOG, "store_unreachable", table=table, error=str(e))
            raise DataStoreError(f"Data store unreachable: {e}", {"table": table}) from e
        if response.status_code >= 400:
            warn(_LOG, "store_error", table=table, status=response.status_code)
            raise DataStoreError(
                f"Data store error {response.status_code}: {response.text[:200]}",
                {"table": table, "status": response.status_code},
            )
        return response

    def _rows(self, response: httpx.Response) -> List[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as e:
            raise DataStoreError("Data store returned a malformed body") from e
        if not isinstance(data, list):
            raise DataStoreError("Data store returned an unexpected body")
        return data

    # ─────────────────────────────────────────────────────────────────────────
    # SubjectStore
    # ─────────────────────────────────────────────────────────────────────────

    def get_subject(self, subject_id: str, kind: SubjectKind = SubjectKind.COMMENT) -> SubjectRecord:
        response = self._request("GET", self._tables[kind], {"select": "*", "id": f"eq.{subject_id}"})
        rows = self._rows(response)
        if not rows:
            raise NotFoundError(f"{kind.value.capitalize()} not found: {subject_id}", {"id": subject_id})
        return SubjectRecord(id=str(rows[0]["id"]), kind=kind, row=rows[0])

    def list_recent(
        self, limit: int, offset: int = 0, kind: SubjectKind = SubjectKind.COMMENT
    ) -> Tuple[List[SubjectRecord], int]:
        return self._page(kind, {}, limit, offset)

    def search(self, query: str, limit: int, offset: int = 0) -> Tuple[List[SubjectRecord], int]:
        term = _FILTER_UNSAFE.sub(" ", query).strip()
        if not term:
            return self.list_recent(limit, offset)
        clauses = ",".join(f"{col}.ilike.*{term}*" for col in SEARCH_COLUMNS)
        return self._page(SubjectKind.COMMENT, {"or": f"({clauses})"}, limit, offset)

    def _page(
        self, kind: SubjectKind, filters: Dict[str, Any], limit: int, offset: int
    ) -> Tuple[List[SubjectRecord], int]:
        params = {"select": "*", "order": "created_at.desc", "offset": offset, "limit": limit, **filters}
        response = self._request("GET", self._tables[kind], params, headers={"Prefer": "count=exact"})
        rows = self._rows(response)
        total = parse_content_range(response.headers.get("content-range"))
        records = [SubjectRecord(id=str(r["id"]), kind=kind, row=r) for r in rows]
        return records, total if total is not None else offset + len(records)

    def get_generation(self, subject_id: str, speaker: str) -> Optional[GenerationRecord]:
        params = {
            "select": "*",
            "article_id": f"eq.{subject_id}",
            "speaker_id": f"eq.{speaker}",
            "order": "updated_at.desc",
            "limit": 1,
        }
        rows = self._rows(self._request("GET", self.config.generations_table, params))
        return GenerationRecord.from_row(rows[0]) if rows else None

    def save_generation(self, record: GenerationRecord) -> GenerationRecord:
        response = self._request(
            "POST",
            self.config.generations_table,
            {"on_conflict": "article_id,speaker_id"},
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            json=record.to_row(),
        )
        rows = self._rows(response)
        if rows and rows[0].get("id") is not None:
            record.id = rows[0]["id"]
        return record

    def health_check(self) -> Dict[str, Any]:
        table = self.config.comments_table
        try:
            self._request("GET", table, {"select": "id", "limit": 1})
        except DataStoreError as e:
            return {"status": "unhealthy", "backend": "supabase", "table": table,
                    "accessible": False, "error": e.message}
        return {"status": "healthy", "backend": "supabase", "table": table, "accessible": True}
