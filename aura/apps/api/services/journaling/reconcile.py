from __future__ import annotations

import logging
from typing import Optional, Sequence

from aura.apps.api.core import metrics
from aura.apps.api.services.media.staging import MediaStagingService
from aura.libs.logging_utils import log_context
from aura.libs.schemas.report import MediaFile, Report

from .pipeline import (
    EntryPipeline,
    build_history_context,
    compose_text,
    is_real_transcription,
)

logger = logging.getLogger(__name__)

REANALYSIS_TEXT = "Reanálise."

# Fields a reanalysis owns. Everything else (scene art, night ritual, checklist
# toggles) may be patched concurrently and belongs to the report as stored.
RECONCILED_FIELDS = (
    "emotion",
    "text_emotion",
    "image_emotion",
    "final_explanation",
    "summary",
    "suggestion",
    "mood_color",
    "energy_level",
    "positivity_level",
    "semantic_analysis",
    "poetry",
    "avatar_ref",
    "audio_summary_ref",
    "suggested_places",
    "echo",
    "self_care_checklist",
    "transcription",
    "pending_analysis",
)


class ReconciliationError(RuntimeError):
    """Reconciliation was requested offline or for a report that is already finished."""


def merge_reconciled(current: Report, reconciled: Report) -> Report:
    """Carry the reanalysed fields of ``reconciled`` onto the latest stored ``current``."""

    return current.model_copy(update={name: getattr(reconciled, name) for name in RECONCILED_FIELDS})


class ReconciliationFlow:
    """Promotes a pending report to finished once connectivity is back.

    Weather and location stay as captured at submission time. The caller persists
    the returned report; nothing here retries on its own.
    """

    def __init__(self, pipeline: EntryPipeline, media: MediaStagingService) -> None:
        self._pipeline = pipeline
        self._media = media

    async def reanalyze(self, report: Report, history: Sequence[Report], *, online: bool) -> Report:
        if not online:
            raise ReconciliationError("cannot reconcile while offline")
        if not report.pending_analysis:
            raise ReconciliationError(f"report {report.id} is already analysed")

        with log_context(user_id=report.user_id, report_id=report.id):
            return await self._reanalyze(report, history)

    async def _reanalyze(self, report: Report, history: Sequence[Report]) -> Report:
        transcription = report.transcription
        if report.audio_ref and not is_real_transcription(transcription):
            audio = await self._load(report.audio_ref)
            if audio is not None:
                if report.audio_mime_type:
                    audio = audio.model_copy(update={"content_type": report.audio_mime_type})
                transcription = await self._retranscribe(audio, transcription)

        combined = compose_text(report.text, transcription)
        image = await self._load(report.photo_ref) if report.photo_ref else None

        try:
            derived = await self._pipeline.analyze_and_enrich(
                combined or REANALYSIS_TEXT,
                image=image,
                weather=report.weather,
                location=report.location,
                history_context=build_history_context(history, exclude_id=report.id),
            )
        except Exception:
            metrics.reconciliations.labels(outcome="failed").inc()
            raise

        metrics.reconciliations.labels(outcome="finished").inc()
        logger.info("[Reconcile] report %s promoted to finished", report.id)
        return report.model_copy(
            update={**derived, "transcription": transcription, "pending_analysis": False}
        )

    async def _retranscribe(self, audio: MediaFile, current: Optional[str]) -> Optional[str]:
        try:
            text = await self._pipeline.gateway.transcribe(audio)
        except Exception as exc:
            logger.warning("[Reconcile] transcription retry failed: %s", exc, extra={"feature": "transcription"})
            return current
        return text or current

    async def _load(self, ref: str) -> Optional[MediaFile]:
        try:
            return await self._media.fetch(ref)
        except Exception as exc:
            logger.warning("[Reconcile] could not load staged media %s: %s", ref, exc)
            return None


__all__ = [
    "REANALYSIS_TEXT",
    "RECONCILED_FIELDS",
    "ReconciliationError",
    "ReconciliationFlow",
    "merge_reconciled",
]
