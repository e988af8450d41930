"""
Article Narration Routes.

Endpoints:
    POST /api/articles/{id}/voice            - {speaker, forceRegenerate}
    GET  /api/articles/{id}/voice/{speaker}  - stored narration record

Narration runs synchronously; the response carries the final record.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from voice_proxy.api.dependencies import get_service
from voice_proxy.api.schemas import NarrationRequest
from voice_proxy.core.errors import ErrorCode, InvalidInputError
from voice_proxy.services.voice_service import VoiceService
from voice_proxy.store.models import GenerationState

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.post("/{article_id}/voice")
def narrate(article_id: str, req: NarrationRequest, service: VoiceService = Depends(get_service)):
    """
    Narrate an article with one speaker.

    Returns:
        {success, data: {id, audioUrls, segmentsCount, processingTime},
         record: GenerationRecord}. Answers 502 with ``success`` false when
        every segment failed.
    """
    if not req.speaker:
        raise InvalidInputError("Missing required parameter: speaker")
    record = service.narrate(article_id, req.speaker, req.force_regenerate)
    completed = record.state is GenerationState.COMPLETED
    body = {
        "success": completed,
        "data": {
            "id": record.id,
            "audioUrls": list(record.audio_urls),
            "segmentsCount": record.segments_count,
            "processingTime": record.processing_time,
        },
        "record": record.to_dict(),
    }
    if not completed:
        body["error"] = ErrorCode.PROVIDER_REJECTED
        body["message"] = record.error_message
        return JSONResponse(status_code=502, content=body)
    return body


@router.get("/{article_id}/voice/{speaker}")
def narration_status(article_id: str, speaker: str, service: VoiceService = Depends(get_service)):
    return {"success": True, "record": service.narration_status(article_id, speaker).to_dict()}
