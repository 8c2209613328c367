from datetime import timedelta, timezone

import pytest

from aura.apps.engine.forecast.engine import (
    FALLBACK_INSIGHT,
    OFFLINE_INSIGHT,
    compute_bucket_stats,
    compute_forecast,
    time_index,
)

from conftest import FakeGateway


def _scenario(report_factory, days):
    # Monday morning 8, Wednesday evening 3, Friday afternoon 6.
    return [
        report_factory(created_at=days(4, 14), positivity=6),
        report_factory(created_at=days(2, 20), positivity=3),
        report_factory(created_at=days(0, 9), positivity=8),
    ]


@pytest.mark.asyncio
async def test_weekly_pattern_forecast(report_factory, days, gateway):
    result = await compute_forecast(_scenario(report_factory, days), online=True, gateway=gateway)

    assert result.best_day == "Monday"
    assert result.challenging_day == "Wednesday"
    assert result.peak_time == "Manhã"
    assert result.sensitive_time == "Noite"
    assert result.insight == "Suas manhãs brilham."
    # (6 + 3 + 8) / 3
    assert result.trend_icon == "cloud"


def test_requires_three_finished_reports(report_factory, days):
    history = _scenario(report_factory, days)[:2]
    history.append(report_factory(created_at=days(1, 9), pending=True))
    assert compute_bucket_stats(history) is None


def test_ties_resolve_to_earliest_bucket(report_factory, days):
    # Sunday (offset -1) and Tuesday share the same average; Sunday comes first.
    history = [
        report_factory(created_at=days(1, 13), positivity=7),
        report_factory(created_at=days(-1, 13), positivity=7),
        report_factory(created_at=days(3, 13), positivity=2),
    ]
    stats = compute_bucket_stats(history).stats
    assert stats.best_day == "Sunday"
    assert stats.challenging_day == "Thursday"
    assert stats.peak_time == stats.sensitive_time == "Tarde"


def test_trend_uses_three_most_recent(report_factory, days):
    history = [
        report_factory(created_at=days(0, 1), positivity=10),
        report_factory(created_at=days(0, 2), positivity=10),
        report_factory(created_at=days(0, 3), positivity=2),
        report_factory(created_at=days(0, 4), positivity=2),
        report_factory(created_at=days(0, 5), positivity=2),
    ]
    assert compute_bucket_stats(history).trend_icon == "storm"


def test_timezone_shifts_buckets(report_factory, days):
    # 02:00 UTC on Monday is Sunday evening in UTC-5.
    history = [report_factory(created_at=days(0, 2), positivity=9) for _ in range(3)]
    stats = compute_bucket_stats(history, tz=timezone(timedelta(hours=-5))).stats
    assert stats.best_day == "Sunday"
    assert stats.peak_time == "Noite"


def test_time_bucket_cut_points(days):
    assert [time_index(days(0, h)) for h in (0, 5, 6, 11, 12, 17, 18, 23)] == [0, 0, 1, 1, 2, 2, 3, 3]


@pytest.mark.asyncio
async def test_offline_insight_skips_gateway(report_factory, days, gateway):
    result = await compute_forecast(_scenario(report_factory, days), online=False, gateway=gateway)
    assert result.insight == OFFLINE_INSIGHT
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_insight_failure_uses_fallback(report_factory, days):
    gateway = FakeGateway(fail={"forecast_insight"})
    result = await compute_forecast(_scenario(report_factory, days), online=True, gateway=gateway)
    assert result.insight == FALLBACK_INSIGHT
    assert result.best_day == "Monday"


@pytest.mark.asyncio
async def test_empty_insight_uses_generic_message(report_factory, days, gateway):
    gateway.insight = None
    result = await compute_forecast(_scenario(report_factory, days), online=True, gateway=gateway)
    assert result.insight == OFFLINE_INSIGHT
