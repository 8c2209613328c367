"""Journaling companion: a daily greeting and a visual that evolves with the user's level."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Dict, Optional, Protocol, Sequence

from aura.apps.engine.forecast.engine import to_local
from aura.libs.schemas.inference import CompanionGreetingPayload
from aura.libs.schemas.report import Report
from aura.libs.schemas.stats import Companion, CompanionMessage

logger = logging.getLogger(__name__)

VISUAL_EMOTION_WINDOW = 5

STAGE_DESCRIPTIONS: Dict[int, str] = {
    1: "Glowing light orb",
    2: "Small animal spirit made of light",
    3: "Majestic ethereal guardian",
}


class CompanionKeeper(Protocol):
    async def generate_companion_greeting(
        self, name: str, history: Sequence[Report]
    ) -> CompanionGreetingPayload:
        ...

    async def generate_companion_visual(self, level: int, emotions: Sequence[str]) -> Optional[str]:
        ...


def stage_for_level(level: int) -> int:
    if level < 5:
        return 1
    if level < 10:
        return 2
    return 3


def first_name(user_name: str) -> str:
    parts = user_name.split()
    return parts[0] if parts else user_name


def initial_companion(user_name: str, now: datetime) -> Companion:
    return Companion(
        last_message=CompanionMessage(
            text=f"Olá, {first_name(user_name)}. Estou aqui com você.",
            date=now,
            type="reflection",
        )
    )


async def refresh_companion(
    companion: Optional[Companion],
    history: Sequence[Report],
    *,
    user_name: str,
    level: int,
    online: bool,
    gateway: CompanionKeeper | None,
    now: datetime,
    tz: tzinfo | None = None,
) -> Companion:
    """Bring the companion up to date for ``now``.

    A missing companion is created even offline. Online, the greeting is replaced at
    most once per local day (and only once there is history), and the visual is
    generated when absent or when the level moved the companion to a new stage.
    Inference failures keep the previous greeting or visual.
    """

    if companion is None:
        companion = initial_companion(user_name, now)
        logger.info("[Companion] created for %s", first_name(user_name))
    if not online or gateway is None or not history:
        return companion

    last_day = to_local(companion.last_message.date, tz).date()
    if last_day < to_local(now, tz).date():
        try:
            greeting = await gateway.generate_companion_greeting(user_name, history)
        except Exception as exc:
            logger.warning("[Companion] greeting unavailable, keeping the previous one: %s", exc)
        else:
            companion = companion.model_copy(
                update={"last_message": CompanionMessage(text=greeting.text, date=now, type=greeting.type)}
            )

    stage = stage_for_level(level)
    if companion.image_ref is None or stage != companion.stage:
        emotions = [report.emotion for report in history[:VISUAL_EMOTION_WINDOW] if report.emotion]
        try:
            image_ref = await gateway.generate_companion_visual(level, emotions)
        except Exception as exc:
            logger.warning("[Companion] visual unavailable: %s", exc)
            image_ref = None
        if image_ref is not None:
            companion = companion.model_copy(
                update={
                    "image_ref": image_ref,
                    "stage": stage,
                    "visual_description": STAGE_DESCRIPTIONS[stage],
                }
            )
    return companion


__all__ = [
    "STAGE_DESCRIPTIONS",
    "initial_companion",
    "refresh_companion",
    "stage_for_level",
]
