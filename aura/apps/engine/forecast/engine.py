"""Statistical mood forecast over day-of-week and time-of-day buckets.

The numbers never depend on the network; only the one-line insight is asked of
the inference gateway, with fixed fallbacks offline or on failure.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import List, NamedTuple, Optional, Protocol, Sequence

from aura.libs.schemas.inference import ForecastStats
from aura.libs.schemas.report import Report
from aura.libs.schemas.stats import ForecastResult, TrendIcon

logger = logging.getLogger(__name__)

MIN_REPORTS = 3
TREND_WINDOW = 3

DAY_LABELS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
TIME_LABELS = ("Madrugada", "Manhã", "Tarde", "Noite")

OFFLINE_INSIGHT = "Continue registrando para previsões mais precisas."
FALLBACK_INSIGHT = "Os ventos estão mudando. Mantenha-se atento aos seus sentimentos."


class InsightSource(Protocol):
    async def forecast_insight(self, stats: ForecastStats) -> Optional[str]:
        ...


class BucketSummary(NamedTuple):
    stats: ForecastStats
    trend_icon: TrendIcon


def to_local(moment: datetime, tz: tzinfo | None = None) -> datetime:
    if tz is not None and moment.tzinfo is not None:
        return moment.astimezone(tz)
    return moment


def day_index(moment: datetime) -> int:
    """Sunday-first weekday index."""

    return (moment.weekday() + 1) % 7


def time_index(moment: datetime) -> int:
    if moment.hour < 6:
        return 0
    if moment.hour < 12:
        return 1
    if moment.hour < 18:
        return 2
    return 3


def _extremes(sums: List[float], counts: List[int], labels: Sequence[str]) -> tuple[str, str]:
    # Strict comparisons keep the first bucket on ties.
    best, worst = labels[0], labels[0]
    best_avg, worst_avg = -1.0, 11.0
    for index, count in enumerate(counts):
        if count == 0:
            continue
        average = sums[index] / count
        if average > best_avg:
            best_avg, best = average, labels[index]
        if average < worst_avg:
            worst_avg, worst = average, labels[index]
    return best, worst


def trend_icon_for(average: float) -> TrendIcon:
    if average >= 7:
        return "sun"
    if average >= 5:
        return "cloud"
    if average >= 3:
        return "rain"
    return "storm"


def compute_bucket_stats(history: Sequence[Report], *, tz: tzinfo | None = None) -> Optional[BucketSummary]:
    finished = [report for report in history if not report.pending_analysis]
    if len(finished) < MIN_REPORTS:
        return None

    day_sums, day_counts = [0.0] * 7, [0] * 7
    time_sums, time_counts = [0.0] * 4, [0] * 4
    for report in finished:
        moment = to_local(report.created_at, tz)
        positivity = report.positivity_level or 5
        day, slot = day_index(moment), time_index(moment)
        day_sums[day] += positivity
        day_counts[day] += 1
        time_sums[slot] += positivity
        time_counts[slot] += 1

    best_day, challenging_day = _extremes(day_sums, day_counts, DAY_LABELS)
    peak_time, sensitive_time = _extremes(time_sums, time_counts, TIME_LABELS)

    recent = sorted(finished, key=lambda report: report.created_at, reverse=True)[:TREND_WINDOW]
    recent_average = sum(report.positivity_level or 5 for report in recent) / len(recent)

    return BucketSummary(
        stats=ForecastStats(
            best_day=best_day,
            challenging_day=challenging_day,
            peak_time=peak_time,
            sensitive_time=sensitive_time,
        ),
        trend_icon=trend_icon_for(recent_average),
    )


async def compute_forecast(
    history: Sequence[Report],
    *,
    online: bool,
    gateway: InsightSource | None = None,
    tz: tzinfo | None = None,
) -> Optional[ForecastResult]:
    summary = compute_bucket_stats(history, tz=tz)
    if summary is None:
        return None

    insight = OFFLINE_INSIGHT
    if online and gateway is not None:
        try:
            insight = await gateway.forecast_insight(summary.stats) or OFFLINE_INSIGHT
        except Exception as exc:
            logger.warning("[Forecast] insight unavailable: %s", exc)
            insight = FALLBACK_INSIGHT

    return ForecastResult(**summary.stats.model_dump(), insight=insight, trend_icon=summary.trend_icon)


__all__ = [
    "BucketSummary",
    "DAY_LABELS",
    "FALLBACK_INSIGHT",
    "OFFLINE_INSIGHT",
    "TIME_LABELS",
    "compute_bucket_stats",
    "compute_forecast",
    "day_index",
    "time_index",
    "trend_icon_for",
]
