"""Pydantic models and schema utilities."""

from .report import (
    EmotionalEcho,
    HistoryContextItem,
    LocationInfo,
    MediaFile,
    NightRitual,
    Report,
    SelfCareTask,
    SemanticAnalysis,
    SuggestedPlace,
    WeatherInfo,
)
from .settings import AppSettings, get_settings
from .stats import Achievement, ForecastResult, LevelInfo, Mission, WeeklyDigest

__all__ = [
    "Achievement",
    "AppSettings",
    "EmotionalEcho",
    "ForecastResult",
    "HistoryContextItem",
    "LevelInfo",
    "LocationInfo",
    "MediaFile",
    "Mission",
    "NightRitual",
    "Report",
    "SelfCareTask",
    "SemanticAnalysis",
    "SuggestedPlace",
    "WeatherInfo",
    "WeeklyDigest",
    "get_settings",
]
