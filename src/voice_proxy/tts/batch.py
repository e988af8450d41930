"""
Batch Driver: warmup over the most recent subjects.

Runs generate_all() for each subject in turn, sleeping
``between_subjects_s`` between subjects (not after the last). A failing
subject is recorded in its outcome and the loop moves on.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from voice_proxy.core.config import PacingConfig
from voice_proxy.core.errors import VoiceProxyError
from voice_proxy.core.logging import get_logger, info, success, warn
from voice_proxy.store.models import SubjectStore
from voice_proxy.tts.coordinator import BatchResult, GenerationCoordinator
from voice_proxy.tts.voices import Language

_LOG = get_logger("voice-proxy.batch")


@dataclass
class SubjectOutcome:
    subject_id: str
    result: Optional[BatchResult] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result is not None and self.result.success

    def to_dict(self) -> Dict[str, Any]:
        if self.result is None:
            return {"commentId": self.subject_id, "success": False, "error": self.error, "code": self.code}
        return {
            "commentId": self.subject_id,
            "success": self.result.success,
            "generated": len(self.result.generated),
            "failed": len(self.result.failed),
            "skipped": len(self.result.skipped),
        }


class BatchDriver:
    def __init__(
        self,
        coordinator: GenerationCoordinator,
        store: SubjectStore,
        pacing: Optional[PacingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.coordinator = coordinator
        self.store = store
        self.pacing = pacing or PacingConfig()
        self._sleep = sleep

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Missing or non-positive limits use the default; large ones are capped."""
        if not limit or limit <= 0:
            return self.pacing.warmup_default_limit
        return min(limit, self.pacing.warmup_max_limit)

    def warmup(self, limit: Optional[int] = None, language: "str | Language" = Language.EN) -> List[SubjectOutcome]:
        """
        Generate every speaker's audio for the ``limit`` most recent comments.

        Args:
            limit: Number of subjects; clamped with clamp_limit().
            language: Text variant language.

        Returns:
            One outcome per subject, in store order (newest first).
        """
        limit = self.clamp_limit(limit)
        records, _ = self.store.list_recent(limit)
        info(_LOG, "warmup_start", limit=limit, subjects=len(records))
        return self.run([r.id for r in records], language)

    def run(self, subject_ids: Iterable[str], language: "str | Language" = Language.EN) -> List[SubjectOutcome]:
        ids = list(subject_ids)
        outcomes: List[SubjectOutcome] = []
        for position, subject_id in enumerate(ids):
            try:
                result = self.coordinator.generate_all(subject_id, language)
                outcomes.append(SubjectOutcome(subject_id=subject_id, result=result))
            except VoiceProxyError as e:
                warn(_LOG, "warmup_subject_failed", subject_id=subject_id, error=e.code)
                outcomes.append(SubjectOutcome(subject_id=subject_id, error=e.message, code=e.code))

            if position < len(ids) - 1 and self.pacing.between_subjects_s > 0:
                self._sleep(self.pacing.between_subjects_s)

        success(
            _LOG, "warmup_done",
            subjects=len(outcomes), succeeded=sum(1 for o in outcomes if o.success),
        )
        return outcomes
