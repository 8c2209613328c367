from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, tzinfo
from typing import List, Optional, Sequence

from aura.apps.engine.forecast.engine import day_index, to_local
from aura.libs.schemas.report import Report
from aura.libs.schemas.stats import ArtifactPick, DigestMoment, TenseMoment, WeeklyDigest

WINDOW_DAYS = 7
MIN_REPORTS = 2
TENSE_POSITIVITY = 5
TENSE_STRESS = 50
DEFAULT_TRIGGER = "Sobrecarga"

SHORT_DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _stress(report: Report) -> int:
    return report.semantic_analysis.stress_index if report.semantic_analysis else 0


def _artifact_score(report: Report) -> float:
    score = 0.0
    if report.poetry:
        score += 2
    if report.avatar_ref:
        score += 1
    return score + (report.positivity_level or 0) / 10


def _short_day(report: Report, tz: tzinfo | None) -> str:
    return SHORT_DAY_LABELS[day_index(to_local(report.created_at, tz))]


def _top_places(window: Sequence[Report], limit: int = 3) -> List[str]:
    names: List[str] = []
    for report in window:
        for place in report.suggested_places:
            if place.name and place.name not in names:
                names.append(place.name)
    return names[:limit]


def compute_weekly_digest(
    history: Sequence[Report],
    *,
    now: datetime,
    tz: tzinfo | None = None,
) -> Optional[WeeklyDigest]:
    """Best-of digest for finished reports from the trailing seven days.

    ``history`` order is iteration order for every tie-break below.
    """

    cutoff = now - timedelta(days=WINDOW_DAYS)
    window = [r for r in history if not r.pending_analysis and r.created_at >= cutoff]
    if len(window) < MIN_REPORTS:
        return None

    best = sorted(window, key=lambda r: r.positivity_level or 0, reverse=True)[0]

    tense = sorted(window, key=lambda r: (-_stress(r), r.positivity_level or 0))[0]
    tense_moment: Optional[TenseMoment] = None
    if (tense.positivity_level or 10) < TENSE_POSITIVITY or _stress(tense) > TENSE_STRESS:
        keywords = tense.semantic_analysis.keywords if tense.semantic_analysis else []
        tense_moment = TenseMoment(
            report_id=tense.id,
            date=_short_day(tense, tz),
            emotion=tense.emotion or "",
            trigger=keywords[0] if keywords else DEFAULT_TRIGGER,
        )

    dominant_mood = Counter(r.emotion or "" for r in window).most_common(1)[0][0]
    artifact = max(window, key=_artifact_score)

    dates = [to_local(r.created_at, tz).date() for r in window]
    start, end = min(dates), max(dates)

    return WeeklyDigest(
        range=f"{start.day}/{start.month} - {end.day}/{end.month}",
        range_start=start,
        range_end=end,
        best_day=DigestMoment(
            report_id=best.id,
            date=_short_day(best, tz),
            emotion=best.emotion or "",
            summary=best.summary or "",
        ),
        tense_moment=tense_moment,
        dominant_mood=dominant_mood,
        best_artifact=ArtifactPick(
            report_id=artifact.id,
            emotion=artifact.emotion or "",
            poem=artifact.poetry,
            avatar_ref=artifact.avatar_ref,
        ),
        top_places=_top_places(window),
        total_entries=len(window),
    )


__all__ = ["SHORT_DAY_LABELS", "compute_weekly_digest"]
