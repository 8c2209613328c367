"""Entry pipeline: turns a raw journal submission into a finished or pending report.

Online, the mood analysis runs first (everything else depends on it) and the six
optional generations fan out concurrently; any of them failing leaves its field
empty. Offline, no inference is attempted and the report is stored with
placeholders and ``pending_analysis=True`` until reconciliation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from aura.apps.api.core import metrics
from aura.apps.api.services.inference.gateway import InferenceGateway
from aura.apps.api.services.media.staging import MediaStagingService
from aura.apps.api.services.weather.client import WeatherLookup
from aura.libs.logging_utils import log_context
from aura.libs.schemas.inference import MoodAnalysis
from aura.libs.schemas.report import (
    HistoryContextItem,
    LocationInfo,
    MediaFile,
    Report,
    WeatherInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

OFFLINE_TRANSCRIPTION = "(Transcrição pendente - Offline)"
OFFLINE_TEXT = "Registro Offline"
EMPTY_TEXT_PROMPT = "Sem texto, apenas presença."
HISTORY_CONTEXT_LIMIT = 10

OFFLINE_PLACEHOLDERS: Dict[str, Any] = {
    "emotion": "Offline",
    "text_emotion": "Neutro",
    "summary": "Registro salvo localmente. Conecte-se para analisar.",
    "suggestion": "Este momento está guardado com segurança.",
    "mood_color": "#64748b",
    "energy_level": 5,
    "positivity_level": 5,
}


class EntryProcessingError(RuntimeError):
    """The mandatory mood analysis failed while online; no report was created."""


def _local_now() -> datetime:
    return datetime.now().astimezone()


def is_real_transcription(transcription: Optional[str]) -> bool:
    return bool(transcription and transcription.strip()) and transcription != OFFLINE_TRANSCRIPTION


def compose_text(text: str, transcription: Optional[str]) -> str:
    """User text plus the quoted transcript, when a real transcript exists."""

    combined = text or ""
    if is_real_transcription(transcription):
        combined += f'\n(Transcrição de Áudio: "{transcription}")'
    return combined.strip()


def build_history_context(
    history: Sequence[Report],
    *,
    exclude_id: Optional[str] = None,
    limit: int = HISTORY_CONTEXT_LIMIT,
) -> List[HistoryContextItem]:
    """Newest-first projection of up to ``limit`` finished reports for echo search."""

    finished = [
        report
        for report in history
        if not report.pending_analysis
        and report.id != exclude_id
        and report.emotion
        and report.summary
    ]
    finished.sort(key=lambda report: report.created_at, reverse=True)
    return [
        HistoryContextItem(date=report.created_at, emotion=report.emotion, summary=report.summary)
        for report in finished[:limit]
    ]


class EntryPipeline:
    def __init__(
        self,
        gateway: InferenceGateway,
        media: MediaStagingService,
        weather: WeatherLookup,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._gateway = gateway
        self._media = media
        self._weather = weather
        self._clock = clock or _local_now
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    @property
    def gateway(self) -> InferenceGateway:
        return self._gateway

    async def process(
        self,
        text: str,
        user_id: str,
        *,
        photo: MediaFile | None = None,
        audio: MediaFile | None = None,
        location: LocationInfo | None = None,
        history: Sequence[Report] = (),
        online: bool,
    ) -> Report:
        created_at = self._clock()
        report_id = self._id_factory()
        with log_context(user_id=user_id, report_id=report_id):
            return await self._build(
                report_id,
                created_at,
                text,
                user_id,
                photo=photo,
                audio=audio,
                location=location,
                history=history,
                online=online,
            )

    async def _build(
        self,
        report_id: str,
        created_at: datetime,
        text: str,
        user_id: str,
        *,
        photo: MediaFile | None,
        audio: MediaFile | None,
        location: LocationInfo | None,
        history: Sequence[Report],
        online: bool,
    ) -> Report:
        photo_ref = await self._stage(photo, user_id, "photo") if photo is not None else None

        audio_ref: Optional[str] = None
        transcription: Optional[str] = None
        if audio is not None:
            audio_ref = await self._stage(audio, user_id, "audio")
            if audio_ref is not None:
                if online:
                    transcription = await self._transcribe(audio)
                else:
                    transcription = OFFLINE_TRANSCRIPTION

        weather: Optional[WeatherInfo] = None
        if location is not None and online:
            weather = await self._lookup_weather(location)

        base = Report(
            id=report_id,
            user_id=user_id,
            created_at=created_at,
            text=text or "",
            photo_ref=photo_ref,
            audio_ref=audio_ref,
            audio_mime_type=audio.content_type if audio_ref and audio is not None else None,
            transcription=transcription,
            location=location,
            weather=weather,
        )

        if not online:
            metrics.entries_processed.labels(mode="offline").inc()
            logger.info(
                "[Pipeline] offline entry %s stored pending analysis", report_id, extra={"mode": "offline"}
            )
            return base.model_copy(
                update={"text": text or OFFLINE_TEXT, "pending_analysis": True, **OFFLINE_PLACEHOLDERS}
            )

        combined = compose_text(base.text, transcription)
        with metrics.pipeline_latency.time():
            derived = await self.analyze_and_enrich(
                combined or EMPTY_TEXT_PROMPT,
                image=photo,
                weather=weather,
                location=location,
                history_context=build_history_context(history),
            )
        metrics.entries_processed.labels(mode="online").inc()
        logger.info(
            "[Pipeline] entry %s analysed as %s", report_id, derived.get("emotion"), extra={"mode": "online"}
        )
        return base.model_copy(update={**derived, "pending_analysis": False})

    async def analyze_and_enrich(
        self,
        analysis_text: str,
        *,
        image: MediaFile | None,
        weather: WeatherInfo | None,
        location: LocationInfo | None,
        history_context: Sequence[HistoryContextItem],
    ) -> Dict[str, Any]:
        """Mood analysis followed by the concurrent enrichment fan-out.

        Returns the derived report fields. Raises ``EntryProcessingError`` when the
        analysis call itself fails.
        """

        try:
            analysis = await self._gateway.analyze_mood(analysis_text, image, weather)
        except Exception as exc:
            logger.error("[Pipeline] mood analysis failed: %s", exc)
            raise EntryProcessingError(f"mood analysis failed: {exc}") from exc

        enrichments = await self._fan_out(analysis_text, analysis, location, history_context)
        return {
            "emotion": analysis.emotion,
            "text_emotion": analysis.text_emotion,
            "image_emotion": analysis.image_emotion,
            "final_explanation": analysis.final_explanation,
            "summary": analysis.summary,
            "suggestion": analysis.suggestion,
            "mood_color": analysis.mood_color,
            "energy_level": analysis.energy_level,
            "positivity_level": analysis.positivity_level,
            "semantic_analysis": analysis.semantic(),
            **enrichments,
        }

    async def _fan_out(
        self,
        text: str,
        analysis: MoodAnalysis,
        location: LocationInfo | None,
        history_context: Sequence[HistoryContextItem],
    ) -> Dict[str, Any]:
        gateway = self._gateway

        places: Awaitable[Any] = _resolved([])
        if location is not None:
            places = self._settle(
                "places", gateway.suggest_places(analysis.emotion, location.lat, location.lng)
            )
        echo: Awaitable[Any] = _resolved(None)
        if history_context:
            echo = self._settle("echo", gateway.find_echo(text, analysis.emotion, history_context))

        poetry, avatar_ref, audio_summary_ref, suggested_places, found_echo, checklist = await asyncio.gather(
            self._settle("poem", gateway.generate_poem(text, analysis.emotion)),
            self._settle("avatar", gateway.generate_avatar(analysis.emotion, analysis.mood_color)),
            self._settle("narration", gateway.generate_narration(analysis.summary)),
            places,
            echo,
            self._settle("checklist", gateway.generate_checklist(analysis.emotion, analysis.summary)),
        )
        return {
            "poetry": poetry,
            "avatar_ref": avatar_ref,
            "audio_summary_ref": audio_summary_ref,
            "suggested_places": list(suggested_places or []),
            "echo": found_echo,
            "self_care_checklist": list(checklist or []),
        }

    async def _settle(self, feature: str, call: Awaitable[T]) -> Optional[T]:
        try:
            return await call
        except Exception as exc:
            metrics.enrichment_failures.labels(feature=feature).inc()
            logger.warning(
                "[Pipeline] %s enrichment unavailable: %s", feature, exc, extra={"feature": feature}
            )
            return None

    async def _stage(self, file: MediaFile, user_id: str, kind: str) -> Optional[str]:
        try:
            return await self._media.stage(file, user_id)
        except Exception as exc:
            metrics.enrichment_failures.labels(feature=f"{kind}_staging").inc()
            logger.warning("[Pipeline] %s staging failed, continuing without it: %s", kind, exc)
            return None

    async def _transcribe(self, audio: MediaFile) -> Optional[str]:
        try:
            return await self._gateway.transcribe(audio) or None
        except Exception as exc:
            metrics.enrichment_failures.labels(feature="transcription").inc()
            logger.warning("[Pipeline] transcription failed: %s", exc)
            return None

    async def _lookup_weather(self, location: LocationInfo) -> Optional[WeatherInfo]:
        try:
            return await self._weather.current(location.lat, location.lng)
        except Exception as exc:
            metrics.enrichment_failures.labels(feature="weather").inc()
            logger.warning("[Pipeline] weather lookup failed: %s", exc)
            return None


async def _resolved(value: T) -> T:
    return value


__all__ = [
    "EMPTY_TEXT_PROMPT",
    "EntryPipeline",
    "EntryProcessingError",
    "OFFLINE_PLACEHOLDERS",
    "OFFLINE_TEXT",
    "OFFLINE_TRANSCRIPTION",
    "build_history_context",
    "compose_text",
    "is_real_transcription",
]
