"""Daily missions: three picks from a fixed pool, regenerated once per local day."""

from __future__ import annotations

import logging
import random
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from aura.libs.schemas.report import MediaFile
from aura.libs.schemas.stats import Mission

logger = logging.getLogger(__name__)

DAILY_MISSION_COUNT = 3

MISSION_POOL: Tuple[Dict[str, Any], ...] = (
    {
        "title": "Gratidão",
        "description": "Escreva uma coisa pela qual você é grato hoje.",
        "type": "text",
        "xp_reward": 50,
    },
    {
        "title": "Olhe para o céu",
        "description": "Fotografe o céu agora.",
        "type": "photo",
        "target": "céu",
        "xp_reward": 75,
    },
    {
        "title": "Toque verde",
        "description": "Encontre e fotografe uma planta ou árvore.",
        "type": "photo",
        "target": "planta ou natureza",
        "xp_reward": 75,
    },
    {
        "title": "Pausa consciente",
        "description": "Respire fundo por 30 segundos.",
        "type": "timer",
        "duration": 30,
        "xp_reward": 30,
    },
    {
        "title": "Hidratação",
        "description": "Fotografe seu copo de água.",
        "type": "photo",
        "target": "copo ou garrafa de água",
        "xp_reward": 75,
    },
    {
        "title": "Afirmação",
        "description": "Escreva uma frase gentil sobre você mesmo.",
        "type": "text",
        "xp_reward": 50,
    },
    {
        "title": "Silêncio",
        "description": "Fique um minuto em silêncio, sem telas.",
        "type": "timer",
        "duration": 60,
        "xp_reward": 30,
    },
    {
        "title": "Desconectar",
        "description": "Conte o que você fez hoje longe do celular.",
        "type": "text",
        "xp_reward": 50,
    },
)


class MissionJudge(Protocol):
    async def verify_mission(self, mission: Mission, evidence: str | MediaFile) -> bool:
        ...


def refresh_missions(
    current: Sequence[Mission],
    last_date: Optional[date],
    today: date,
    *,
    rng: random.Random | None = None,
) -> Tuple[List[Mission], date]:
    """Return the day's missions and the date they belong to.

    A new set replaces ``current`` when there is none yet or it was generated on an
    earlier day; completion state never carries over.
    """

    if current and last_date is not None and last_date >= today:
        return list(current), last_date

    picks = (rng or random).sample(MISSION_POOL, DAILY_MISSION_COUNT)
    missions = [Mission(id=f"mission-{uuid.uuid4().hex[:8]}", **template) for template in picks]
    logger.info("[Missions] generated %s missions for %s", len(missions), today.isoformat())
    return missions, today


def complete_mission(missions: Sequence[Mission], mission_id: str) -> List[Mission]:
    if not any(mission.id == mission_id for mission in missions):
        raise KeyError(mission_id)
    return [
        mission.model_copy(update={"completed": True}) if mission.id == mission_id else mission
        for mission in missions
    ]


async def verify_mission(
    mission: Mission,
    evidence: str | MediaFile | None,
    *,
    online: bool,
    gateway: MissionJudge | None = None,
) -> bool:
    if mission.type == "timer":
        return True
    if evidence is None or (isinstance(evidence, str) and not evidence.strip()):
        return False
    if not online or gateway is None:
        return True
    try:
        return await gateway.verify_mission(mission, evidence)
    except Exception as exc:
        logger.warning("[Missions] verification unavailable, trusting user: %s", exc)
        return True


__all__ = [
    "DAILY_MISSION_COUNT",
    "MISSION_POOL",
    "complete_mission",
    "refresh_missions",
    "verify_mission",
]
