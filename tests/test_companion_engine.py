from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from aura.apps.engine.companion.engine import (
    initial_companion,
    refresh_companion,
    stage_for_level,
)

from conftest import FakeGateway


def test_stage_follows_level():
    assert [stage_for_level(level) for level in (1, 4, 5, 9, 10, 30)] == [1, 1, 2, 2, 3, 3]


def test_initial_companion_uses_first_name(now):
    companion = initial_companion("Ana Maria Souza", now)

    assert companion.name == "Aura"
    assert companion.stage == 1
    assert companion.image_ref is None
    assert companion.last_message.text == "Olá, Ana. Estou aqui com você."
    assert companion.last_message.date == now


@pytest.mark.asyncio
async def test_offline_creates_without_inference(now, report_factory):
    gateway = FakeGateway()
    history = [report_factory(created_at=now)]

    companion = await refresh_companion(
        None, history, user_name="Ana", level=1, online=False, gateway=gateway, now=now
    )

    assert companion.last_message.text == "Olá, Ana. Estou aqui com você."
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_no_history_skips_inference(now):
    gateway = FakeGateway()
    yesterday = initial_companion("Ana", now - timedelta(days=1))

    companion = await refresh_companion(
        yesterday, [], user_name="Ana", level=1, online=True, gateway=gateway, now=now
    )

    assert companion == yesterday
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_greeting_refreshes_on_new_local_day(report_factory):
    gateway = FakeGateway()
    sao_paulo = ZoneInfo("America/Sao_Paulo")
    # 23:30 local on the 14th, then 01:30 local on the 15th.
    evening = datetime(2024, 5, 15, 2, 30, tzinfo=timezone.utc)
    after_midnight = evening + timedelta(hours=2)
    companion = initial_companion("Ana", evening).model_copy(update={"image_ref": "data:image/png;base64,OLD"})
    history = [report_factory(created_at=evening)]

    async def refresh_at(moment):
        return await refresh_companion(
            companion, history, user_name="Ana", level=1, online=True, gateway=gateway, now=moment, tz=sao_paulo
        )

    same_day = await refresh_at(evening)
    next_day = await refresh_at(after_midnight)

    assert same_day == companion
    assert next_day.last_message.text == "Que bom te ver."
    assert next_day.last_message.date == after_midnight
    assert gateway.calls == ["generate_companion_greeting"]


@pytest.mark.asyncio
async def test_failures_keep_previous_state(now, report_factory):
    gateway = FakeGateway(fail={"generate_companion_greeting", "generate_companion_visual"})
    yesterday = initial_companion("Ana", now - timedelta(days=1))
    history = [report_factory(created_at=now)]

    companion = await refresh_companion(
        yesterday, history, user_name="Ana", level=1, online=True, gateway=gateway, now=now
    )

    assert companion == yesterday


@pytest.mark.asyncio
async def test_visual_regenerates_when_stage_changes(now, report_factory):
    gateway = FakeGateway()
    seen = []

    async def visual(level, emotions):
        seen.append((level, list(emotions)))
        return "data:image/png;base64,NEW"

    gateway.generate_companion_visual = visual
    companion = initial_companion("Ana", now).model_copy(update={"image_ref": "data:image/png;base64,OLD"})
    history = [report_factory(created_at=now - timedelta(hours=n), emotion=f"e{n}") for n in range(7)]

    unchanged = await refresh_companion(
        companion, history, user_name="Ana", level=4, online=True, gateway=gateway, now=now
    )
    evolved = await refresh_companion(
        companion, history, user_name="Ana", level=6, online=True, gateway=gateway, now=now
    )

    assert unchanged == companion
    assert evolved.stage == 2
    assert evolved.image_ref == "data:image/png;base64,NEW"
    assert evolved.visual_description == "Small animal spirit made of light"
    assert seen == [(6, ["e0", "e1", "e2", "e3", "e4"])]
