"""Typed request/response contracts for every inference operation.

Model output arrives as JSON in camelCase; every payload accepts both camelCase and
snake_case keys and clamps numeric ranges so that a slightly-off response still
validates.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .report import EmotionalEcho, SemanticAnalysis, SuggestedPlace


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class MoodAnalysis(_Payload):
    emotion: str
    text_emotion: Optional[str] = None
    image_emotion: Optional[str] = None
    final_explanation: Optional[str] = None
    summary: str
    suggestion: str
    mood_color: str
    energy_level: int
    positivity_level: int
    stress_index: int = 0
    keywords: List[str] = Field(default_factory=list)
    metaphors: List[str] = Field(default_factory=list)
    writing_style: str = "Neutro"
    insight_message: str = ""

    @field_validator("energy_level", "positivity_level", mode="before")
    @classmethod
    def _scale_1_10(cls, value: Any) -> int:
        return _clamp(value, 1, 10, 5)

    @field_validator("stress_index", mode="before")
    @classmethod
    def _scale_0_100(cls, value: Any) -> int:
        return _clamp(value, 0, 100, 0)

    @field_validator("keywords", "metaphors", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @classmethod
    def neutral(cls) -> "MoodAnalysis":
        """Documented fallback used when the analysis response cannot be parsed."""

        return cls(
            emotion="Reflexivo",
            summary="Um momento registrado.",
            suggestion="Continue respirando.",
            mood_color="#888888",
            energy_level=5,
            positivity_level=5,
            stress_index=0,
            keywords=[],
            metaphors=[],
            writing_style="Neutro",
            insight_message="Registrado com sucesso.",
        )

    def semantic(self) -> SemanticAnalysis:
        return SemanticAnalysis(
            stress_index=self.stress_index,
            keywords=list(self.keywords),
            metaphors=list(self.metaphors),
            writing_style=self.writing_style or "Neutro",
            insight_message=self.insight_message or "",
        )


class EchoPayload(_Payload):
    type: Optional[Literal["recurrence", "resilience", "contrast"]] = None
    title: str = ""
    message: str = ""
    reference_date: Optional[datetime] = None

    @field_validator("reference_date", mode="before")
    @classmethod
    def _epoch_to_datetime(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            # Millisecond timestamps are what the model sees in the history context.
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        return value

    def to_echo(self) -> Optional[EmotionalEcho]:
        if not self.type:
            return None
        return EmotionalEcho(
            type=self.type,
            title=self.title,
            message=self.message,
            reference_date=self.reference_date,
        )


class PlaceItem(_Payload):
    name: str
    type: str = ""
    address: Optional[str] = None
    maps_url: Optional[str] = None
    distance_km: Optional[float] = None
    reason: Optional[str] = None


class PlacesPayload(_Payload):
    places: List[PlaceItem] = Field(default_factory=list)

    def to_places(self) -> List[SuggestedPlace]:
        return [SuggestedPlace(**item.model_dump()) for item in self.places]


class ChecklistItem(_Payload):
    text: str


class ChecklistPayload(_Payload):
    tasks: List[ChecklistItem] = Field(default_factory=list)


class NightContentPayload(_Payload):
    story: str
    meditation: str
    poem: str


class MissionVerdict(_Payload):
    valid: bool = False

    @field_validator("valid", mode="before")
    @classmethod
    def _loose_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in {"true", "sim", "yes", "1"}
        return value


class ForecastStats(_Payload):
    best_day: str
    challenging_day: str
    peak_time: str
    sensitive_time: str


class CompanionGreetingPayload(_Payload):
    text: str
    type: Literal["encouragement", "celebration", "reflection"] = "reflection"

    @field_validator("type", mode="before")
    @classmethod
    def _known_tone(cls, value: Any) -> Any:
        if value in {"encouragement", "celebration", "reflection"}:
            return value
        return "reflection"


__all__ = [
    "ChecklistItem",
    "ChecklistPayload",
    "CompanionGreetingPayload",
    "EchoPayload",
    "ForecastStats",
    "MissionVerdict",
    "MoodAnalysis",
    "NightContentPayload",
    "PlaceItem",
    "PlacesPayload",
]
