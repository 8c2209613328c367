"""Derived statistics models: leveling, achievements, missions, forecast, weekly digest."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class LevelInfo(_Frozen):
    level: int
    current_xp: int
    progress: float


class Achievement(_Frozen):
    id: str
    title: str
    description: str
    icon: str
    color: str
    is_unlocked: bool = False
    unlocked_at: Optional[datetime] = None


class Mission(_Frozen):
    id: str
    title: str
    description: str
    type: Literal["text", "photo", "timer"]
    target: Optional[str] = None
    duration: Optional[int] = None
    completed: bool = False
    xp_reward: int


TrendIcon = Literal["sun", "cloud", "rain", "storm"]


class ForecastResult(_Frozen):
    best_day: str
    challenging_day: str
    peak_time: str
    sensitive_time: str
    insight: str
    trend_icon: TrendIcon


class DigestMoment(_Frozen):
    report_id: str
    date: str
    emotion: str
    summary: str


class TenseMoment(_Frozen):
    report_id: str
    date: str
    emotion: str
    trigger: str


class ArtifactPick(_Frozen):
    report_id: str
    emotion: str
    poem: Optional[str] = None
    avatar_ref: Optional[str] = None


class WeeklyDigest(_Frozen):
    range: str
    range_start: date
    range_end: date
    best_day: DigestMoment
    tense_moment: Optional[TenseMoment] = None
    dominant_mood: str
    best_artifact: ArtifactPick
    top_places: List[str] = Field(default_factory=list)
    total_entries: int


CompanionTone = Literal["encouragement", "celebration", "reflection"]


class CompanionMessage(_Frozen):
    text: str
    date: datetime
    type: CompanionTone = "reflection"


class Companion(_Frozen):
    """The journaling companion: one greeting per local day and a level-based visual."""

    name: str = "Aura"
    stage: int = 1
    visual_description: str = "Glowing light orb"
    image_ref: Optional[str] = None
    traits: List[str] = Field(default_factory=lambda: ["Calmo"])
    last_message: CompanionMessage


__all__ = [
    "Achievement",
    "ArtifactPick",
    "Companion",
    "CompanionMessage",
    "CompanionTone",
    "DigestMoment",
    "ForecastResult",
    "LevelInfo",
    "Mission",
    "TenseMoment",
    "TrendIcon",
    "WeeklyDigest",
]
