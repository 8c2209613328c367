from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from aura.libs.schemas.report import Report
from aura.libs.schemas.stats import Achievement, LevelInfo

XP_PER_ENTRY = 100
XP_PER_LEVEL = 500

CALM_TOKENS = ("calm", "paz")
SAD_TOKENS = ("triste", "ansios")

ALL_ACHIEVEMENTS: Tuple[Achievement, ...] = (
    Achievement(
        id="first_step",
        title="Primeiro Passo",
        description="Fez o primeiro registro no diário.",
        icon="footprints",
        color="#22c55e",
    ),
    Achievement(
        id="streak_3",
        title="Constância",
        description="Chegou a 3 registros.",
        icon="flame",
        color="#f97316",
    ),
    Achievement(
        id="zen_master",
        title="Mestre Zen",
        description="Registrou calma ou paz 3 vezes.",
        icon="leaf",
        color="#14b8a6",
    ),
    Achievement(
        id="resilient",
        title="Resiliente",
        description="Acolheu um momento de tristeza ou ansiedade.",
        icon="shield",
        color="#6366f1",
    ),
    Achievement(
        id="poet",
        title="Alma de Poeta",
        description="Recebeu 5 poesias.",
        icon="feather",
        color="#ec4899",
    ),
    Achievement(
        id="explorer",
        title="Explorador",
        description="Fez um registro com localização.",
        icon="map-pin",
        color="#0ea5e9",
    ),
    Achievement(
        id="voice",
        title="Voz Interior",
        description="Registrou um momento por voz.",
        icon="mic",
        color="#a855f7",
    ),
)


def calculate_level(history: Sequence[Report]) -> LevelInfo:
    """XP is 100 per entry; every 500 XP is a level."""

    xp = XP_PER_ENTRY * len(history)
    return LevelInfo(
        level=xp // XP_PER_LEVEL + 1,
        current_xp=xp,
        progress=(xp % XP_PER_LEVEL) / XP_PER_LEVEL * 100,
    )


def _emotion_has(report: Report, tokens: Sequence[str]) -> bool:
    label = (report.emotion or "").lower()
    return any(token in label for token in tokens)


_RULES: Dict[str, Callable[[Sequence[Report]], bool]] = {
    "first_step": lambda history: len(history) >= 1,
    # Count threshold, not a verified run of consecutive days.
    "streak_3": lambda history: len(history) >= 3,
    "zen_master": lambda history: sum(1 for r in history if _emotion_has(r, CALM_TOKENS)) >= 3,
    "resilient": lambda history: any(_emotion_has(r, SAD_TOKENS) for r in history),
    "poet": lambda history: sum(1 for r in history if r.poetry) >= 5,
    "explorer": lambda history: any(r.location is not None for r in history),
    "voice": lambda history: any(r.transcription for r in history),
}


def check_achievements(
    history: Sequence[Report],
    unlocked: Mapping[str, datetime],
    *,
    now: datetime,
) -> Dict[str, datetime]:
    """Union of ``unlocked`` with every rule the whole history now satisfies.

    Existing unlock timestamps are kept as-is; ids never leave the result.
    """

    result = dict(unlocked)
    for achievement_id, rule in _RULES.items():
        if achievement_id not in result and rule(history):
            result[achievement_id] = now
    return result


def display_achievements(unlocked: Mapping[str, datetime]) -> List[Achievement]:
    return [
        achievement.model_copy(
            update={"is_unlocked": achievement.id in unlocked, "unlocked_at": unlocked.get(achievement.id)}
        )
        for achievement in ALL_ACHIEVEMENTS
    ]


__all__ = [
    "ALL_ACHIEVEMENTS",
    "XP_PER_ENTRY",
    "XP_PER_LEVEL",
    "calculate_level",
    "check_achievements",
    "display_achievements",
]
