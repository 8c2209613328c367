"""Journal entry models shared by the pipeline, engines and store."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class LocationInfo(_Frozen):
    lat: float
    lng: float
    city: Optional[str] = None
    region: Optional[str] = None


class WeatherInfo(_Frozen):
    temperature: float
    condition_code: int
    condition_text: str
    is_day: bool


class SuggestedPlace(_Frozen):
    name: str
    type: str = ""
    address: Optional[str] = None
    maps_url: Optional[str] = None
    distance_km: Optional[float] = None
    reason: Optional[str] = None


class EmotionalEcho(_Frozen):
    type: Literal["recurrence", "resilience", "contrast"]
    title: str
    message: str
    reference_date: Optional[datetime] = None
    reference_summary: Optional[str] = None


class SelfCareTask(_Frozen):
    id: str
    text: str
    is_completed: bool = False


class NightRitual(_Frozen):
    story: str
    meditation: str
    poem: str
    audio_ref: Optional[str] = None


class SemanticAnalysis(_Frozen):
    stress_index: int = Field(default=0, ge=0, le=100)
    keywords: List[str] = Field(default_factory=list)
    metaphors: List[str] = Field(default_factory=list)
    writing_style: str = "Neutro"
    insight_message: str = ""


class Report(_Frozen):
    """One journal entry after processing.

    Derived fields stay ``None`` until computed. When ``pending_analysis`` is true they
    hold offline placeholders and a reconciliation pass is owed.
    """

    id: str
    user_id: str
    created_at: datetime

    text: str = ""
    photo_ref: Optional[str] = None
    audio_ref: Optional[str] = None
    audio_mime_type: Optional[str] = None
    transcription: Optional[str] = None
    location: Optional[LocationInfo] = None

    emotion: Optional[str] = None
    text_emotion: Optional[str] = None
    image_emotion: Optional[str] = None
    final_explanation: Optional[str] = None
    summary: Optional[str] = None
    suggestion: Optional[str] = None
    mood_color: Optional[str] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=10)
    positivity_level: Optional[int] = Field(default=None, ge=1, le=10)
    semantic_analysis: Optional[SemanticAnalysis] = None

    poetry: Optional[str] = None
    avatar_ref: Optional[str] = None
    audio_summary_ref: Optional[str] = None
    scene_ref: Optional[str] = None
    scene_style: Optional[str] = None
    weather: Optional[WeatherInfo] = None
    suggested_places: List[SuggestedPlace] = Field(default_factory=list)
    echo: Optional[EmotionalEcho] = None
    self_care_checklist: List[SelfCareTask] = Field(default_factory=list)
    night_ritual: Optional[NightRitual] = None

    pending_analysis: bool = False


class HistoryContextItem(_Frozen):
    """Trimmed projection of a finished report sent as echo context."""

    date: datetime
    emotion: str
    summary: str


class MediaFile(_Frozen):
    """Raw captured media handed to the pipeline (photo or voice clip)."""

    data: bytes
    filename: str = "upload.bin"
    content_type: str = "application/octet-stream"


__all__ = [
    "EmotionalEcho",
    "HistoryContextItem",
    "LocationInfo",
    "MediaFile",
    "NightRitual",
    "Report",
    "SelfCareTask",
    "SemanticAnalysis",
    "SuggestedPlace",
    "WeatherInfo",
]
