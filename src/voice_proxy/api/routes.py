"""
Direct Synthesis, Health and Metrics Routes.

Endpoints:
    POST /api/tts               - {text | textId, speaker} -> audio URL
    POST /api/tts/{speaker}     - {text} with the speaker in the path
    GET  /api/tts/speakers      - configured speakers
    GET  /api/tts/health        - provider reachability
    GET  /health                - provider + data store + cache
    GET  /metrics               - Prometheus metrics

Error Handling:
    Handlers raise VoiceProxyError subclasses; the application-level
    handler turns them into

        {"success": false, "error": "<ERROR_CODE>", "message": "..."}

    with the status from core.errors.HTTP_STATUS.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from voice_proxy import __version__
from voice_proxy.api.dependencies import get_service
from voice_proxy.api.schemas import SpeakerTTSRequest, TTSRequest
from voice_proxy.core.errors import ErrorCode, InvalidInputError, VoiceProxyError, http_status_for
from voice_proxy.core.logging import error, get_logger, get_request_id, info
from voice_proxy.core.metrics import metrics
from voice_proxy.services.voice_service import VoiceService

router = APIRouter()
tts_router = APIRouter(prefix="/api/tts", tags=["tts"])

_LOG = get_logger("voice-proxy.api")


def error_response(exc: VoiceProxyError) -> JSONResponse:
    """Standardized JSON error response for a VoiceProxyError."""
    return JSONResponse(status_code=http_status_for(exc), content=exc.to_dict())


def handle_voice_proxy_error(request: Request, exc: VoiceProxyError) -> JSONResponse:
    info(_LOG, "request_failed", path=request.url.path, error=exc.code)
    return error_response(exc)


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return error_response(InvalidInputError("Invalid request", {"errors": problems}))


def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    error(_LOG, "unhandled_error", path=request.url.path, error=type(exc).__name__, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": get_request_id(),
        },
    )


# ─────────────────────────────────────────────────────────────────────────────
# /api/tts
# ─────────────────────────────────────────────────────────────────────────────

@tts_router.post("")
def tts(req: TTSRequest, service: VoiceService = Depends(get_service)):
    """
    Synthesize caller text or the content of a stored article.

    Returns:
        {success, audioUrl, speaker, displayName, voiceId, timestamp,
         textPreview, textLength, mockMode}
    """
    if not req.speaker:
        raise InvalidInputError(
            "Missing required parameter: speaker",
            {"supportedSpeakers": [s.to_dict() for s in service.speakers()]},
        )
    if req.text and req.text_id:
        raise InvalidInputError("Provide either text or textId, not both")
    if not req.text and not req.text_id:
        raise InvalidInputError("One of text or textId is required")

    if req.text_id:
        artifact = service.synthesize_text_id(req.text_id, req.speaker)
    else:
        artifact = service.synthesize_text(req.text or "", req.speaker)
    return {"success": True, **artifact.to_dict()}


@tts_router.get("/speakers")
def speakers(service: VoiceService = Depends(get_service)):
    items = [s.to_dict() for s in service.speakers()]
    return {"success": True, "speakers": items, "total": len(items)}


@tts_router.get("/health")
def tts_health(service: VoiceService = Depends(get_service)):
    health = service.provider.health_check()
    status_code = 200 if health["status"] in ("healthy", "mock") else 503
    return JSONResponse(status_code=status_code, content={"success": status_code == 200, **health})


@tts_router.post("/{speaker}")
def tts_for_speaker(speaker: str, req: SpeakerTTSRequest, service: VoiceService = Depends(get_service)):
    """Shortcut for POST /api/tts with the speaker in the path (``paul-graham`` works)."""
    artifact = service.synthesize_text(req.text or "", speaker)
    return {"success": True, **artifact.to_dict()}


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/")
def index():
    return {
        "name": "voice-proxy",
        "version": __version__,
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "tts": "/api/tts",
            "speakers": "/api/tts/speakers",
            "comments": "/api/comments",
            "articles": "/api/articles",
        },
    }


@router.get("/health")
def health(service: VoiceService = Depends(get_service)):
    """
    Aggregate health for probes and load balancers.

    ``status`` is ``healthy`` or ``degraded``; degraded answers with 503.
    """
    report = service.get_health_info()
    status_code = 200 if report["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content={"version": __version__, **report})


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
