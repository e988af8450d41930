"""
Comment Routes.

Endpoints:
    GET    /api/comments                      - paginated list (search optional)
    GET    /api/comments/cache/stats          - cache statistics
    POST   /api/comments/cache/warmup         - warmup over recent comments
    DELETE /api/comments/cache                - clear the whole cache
    GET    /api/comments/{id}                 - record plus text statistics
    GET    /api/comments/{id}/audio           - cached English artifacts
    GET    /api/comments/{id}/audio/{speaker} - one artifact, generated on a miss
    POST   /api/comments/{id}/generate-all    - every speaker; 409 while running
    DELETE /api/comments/{id}/cache           - invalidate one comment

Comment ids are validated as UUIDs before any store access. Cache routes
are registered first so ``cache`` is never taken for an id.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from voice_proxy.api.dependencies import get_service
from voice_proxy.api.schemas import WarmupRequest
from voice_proxy.core.logging import get_logger, info
from voice_proxy.services.voice_service import VoiceService

router = APIRouter(prefix="/api/comments", tags=["comments"])

_LOG = get_logger("voice-proxy.api")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def list_comments(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None),
    service: VoiceService = Depends(get_service),
):
    result = service.list_comments(page, limit, search)
    return {
        "success": True,
        "data": [service.comment_summary(record) for record in result.items],
        "pagination": result.pagination(),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/cache/stats")
def cache_stats(service: VoiceService = Depends(get_service)):
    return {"success": True, "cache": service.cache_stats(), "timestamp": _now()}


@router.post("/cache/warmup")
def cache_warmup(
    req: Optional[WarmupRequest] = Body(default=None),
    service: VoiceService = Depends(get_service),
):
    """
    Generate English audio for the most recent comments.

    ``limit`` defaults to 5 and is capped at 10. Per-comment failures are
    reported in ``results``; the call itself still succeeds.
    """
    outcomes = service.warmup(req.limit if req else None)
    info(_LOG, "warmup_request", subjects=len(outcomes))
    return {
        "success": True,
        "results": [o.to_dict() for o in outcomes],
        "message": f"Warmup finished for {len(outcomes)} comments",
    }


@router.delete("/cache")
def clear_cache(service: VoiceService = Depends(get_service)):
    cleared = service.clear_cache()
    return {"success": True, "clearedCount": cleared, "message": f"Cleared {cleared} cached audio entries"}


# ─────────────────────────────────────────────────────────────────────────────
# Single comment
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/{comment_id}")
def comment_detail(comment_id: str, service: VoiceService = Depends(get_service)):
    return {"success": True, **service.comment_detail(comment_id)}


@router.get("/{comment_id}/audio")
def comment_audio(comment_id: str, service: VoiceService = Depends(get_service)):
    return {"success": True, **service.cached_audio(comment_id)}


@router.get("/{comment_id}/audio/{speaker}")
def comment_speaker_audio(
    comment_id: str,
    speaker: str,
    lang: Optional[str] = Query(default=None),
    service: VoiceService = Depends(get_service),
):
    artifact = service.audio_for(comment_id, speaker, lang)
    return {"success": True, "commentId": comment_id, **artifact.to_dict()}


@router.post("/{comment_id}/generate-all")
def generate_all(
    comment_id: str,
    lang: Optional[str] = Query(default=None),
    service: VoiceService = Depends(get_service),
):
    """Partial failures still answer 200 with per-speaker detail."""
    return service.generate_all(comment_id, lang).to_dict()


@router.delete("/{comment_id}/cache")
def invalidate(comment_id: str, service: VoiceService = Depends(get_service)):
    cleared = service.invalidate(comment_id)
    return {
        "success": True,
        "commentId": comment_id,
        "clearedCount": cleared,
        "message": f"Cleared {cleared} cached audio entries",
    }
