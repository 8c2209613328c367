import random
from datetime import date

import pytest

from aura.apps.engine.missions.engine import (
    DAILY_MISSION_COUNT,
    complete_mission,
    refresh_missions,
    verify_mission,
)
from aura.libs.schemas.report import MediaFile

from conftest import FakeGateway

TODAY = date(2024, 5, 15)


def test_refresh_generates_once_per_day():
    missions, generated_on = refresh_missions([], None, TODAY, rng=random.Random(7))
    assert len(missions) == DAILY_MISSION_COUNT
    assert generated_on == TODAY
    assert len({m.id for m in missions}) == DAILY_MISSION_COUNT
    assert not any(m.completed for m in missions)

    same, same_day = refresh_missions(missions, TODAY, TODAY)
    assert same == missions and same_day == TODAY


def test_new_day_resets_completion():
    missions, _ = refresh_missions([], None, TODAY, rng=random.Random(1))
    done = complete_mission(missions, missions[0].id)
    assert done[0].completed

    fresh, generated_on = refresh_missions(done, TODAY, date(2024, 5, 16), rng=random.Random(1))
    assert generated_on == date(2024, 5, 16)
    assert not any(m.completed for m in fresh)
    assert {m.id for m in fresh}.isdisjoint({m.id for m in done})


def test_complete_unknown_mission():
    with pytest.raises(KeyError):
        complete_mission([], "nope")


def _mission(kind):
    missions, _ = refresh_missions([], None, TODAY, rng=random.Random(0))
    template = missions[0]
    return template.model_copy(update={"type": kind})


@pytest.mark.asyncio
async def test_timer_missions_always_pass(gateway):
    assert await verify_mission(_mission("timer"), None, online=True, gateway=gateway)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_offline_trusts_user(gateway):
    assert await verify_mission(_mission("text"), "obrigado", online=False, gateway=gateway)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_gateway_judges_online():
    gateway = FakeGateway()
    gateway.verdict = False
    photo = MediaFile(data=b"jpg", content_type="image/jpeg")
    assert await verify_mission(_mission("photo"), photo, online=True, gateway=gateway) is False
    assert gateway.calls == ["verify_mission"]


@pytest.mark.asyncio
async def test_gateway_failure_trusts_user():
    gateway = FakeGateway(fail={"verify_mission"})
    assert await verify_mission(_mission("text"), "obrigado", online=True, gateway=gateway)


@pytest.mark.asyncio
async def test_missing_evidence_fails(gateway):
    assert await verify_mission(_mission("text"), "  ", online=True, gateway=gateway) is False
