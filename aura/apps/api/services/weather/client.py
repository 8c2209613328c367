from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from aura.libs.schemas.report import WeatherInfo
from aura.libs.schemas.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


class WeatherLookup(Protocol):
    async def current(self, lat: float, lng: float) -> Optional[WeatherInfo]:
        ...


def describe_weather_code(code: int) -> str:
    """Portuguese label for a WMO weather interpretation code."""

    if code == 0:
        return "Céu Limpo"
    if code == 1:
        return "Principalmente Limpo"
    if code == 2:
        return "Parcialmente Nublado"
    if code == 3:
        return "Nublado"
    if code in (45, 48):
        return "Nevoeiro"
    if 51 <= code <= 57:
        return "Chuvisco"
    if 61 <= code <= 67:
        return "Chuva"
    if 71 <= code <= 77:
        return "Neve"
    if 80 <= code <= 82:
        return "Pancadas de Chuva"
    if 95 <= code <= 99:
        return "Tempestade"
    return "Clima Variável"


class OpenMeteoWeather:
    """Current conditions from the Open-Meteo forecast API (no key required)."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = settings.weather_base_url
        self._timeout = settings.weather_timeout
        self._transport = transport

    async def current(self, lat: float, lng: float) -> Optional[WeatherInfo]:
        params = {"latitude": lat, "longitude": lng, "current_weather": "true"}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(self._base_url, params=params)
        response.raise_for_status()

        current = response.json().get("current_weather")
        if not current:
            logger.info("[Weather] no current_weather block for %.3f,%.3f", lat, lng)
            return None

        code = int(current.get("weathercode") or 0)
        return WeatherInfo(
            temperature=float(current.get("temperature") or 0.0),
            condition_code=code,
            condition_text=describe_weather_code(code),
            is_day=bool(current.get("is_day", 1)),
        )


__all__ = ["OpenMeteoWeather", "WeatherLookup", "describe_weather_code"]
