import pytest

from aura.apps.api.services.journaling.pipeline import OFFLINE_TRANSCRIPTION, EntryPipeline
from aura.apps.api.services.journaling.reconcile import (
    ReconciliationError,
    ReconciliationFlow,
    merge_reconciled,
)
from aura.libs.schemas.report import LocationInfo, MediaFile, WeatherInfo

from conftest import FakeGateway, FakeMedia, FakeWeather, FixedClock

AUDIO = MediaFile(data=b"OggS", filename="a.webm", content_type="audio/webm")


@pytest.mark.asyncio
async def test_reanalyze_requires_connectivity(pipeline, media):
    pending = await pipeline.process("texto", "u1", online=False)
    flow = ReconciliationFlow(pipeline, media)

    with pytest.raises(ReconciliationError):
        await flow.reanalyze(pending, [pending], online=False)


@pytest.mark.asyncio
async def test_reanalyze_rejects_finished_report(pipeline, media):
    finished = await pipeline.process("texto", "u1", online=True)
    flow = ReconciliationFlow(pipeline, media)

    with pytest.raises(ReconciliationError):
        await flow.reanalyze(finished, [finished], online=True)


@pytest.mark.asyncio
async def test_reanalyze_transcribes_and_keeps_submission_context(gateway, media, now, report_factory, days):
    weather = FakeWeather()
    pipeline = EntryPipeline(gateway, media, weather, clock=FixedClock(now))
    location = LocationInfo(lat=1.0, lng=2.0)
    pending = await pipeline.process("dia cheio", "u1", audio=AUDIO, location=location, online=False)
    snowy = WeatherInfo(temperature=-2, condition_code=71, condition_text="Neve", is_day=False)
    pending = pending.model_copy(update={"weather": snowy})

    other_pending = report_factory(created_at=days(0, 9), pending=True, emotion="Offline")
    finished = report_factory(created_at=days(0, 10), emotion="Alegria")
    flow = ReconciliationFlow(pipeline, media)

    result = await flow.reanalyze(pending, [pending, other_pending, finished], online=True)

    assert result.pending_analysis is False
    assert result.id == pending.id
    assert result.created_at == pending.created_at
    assert result.transcription == "falei sobre o dia"
    assert result.weather == snowy
    assert weather.calls == 0
    assert gateway.analysis_texts[-1] == 'dia cheio\n(Transcrição de Áudio: "falei sobre o dia")'
    assert [item.emotion for item in gateway.history_seen] == ["Alegria"]
    assert "suggest_places" in gateway.calls


@pytest.mark.asyncio
async def test_failed_retranscription_keeps_marker(media, now):
    gateway = FakeGateway(fail={"transcribe"})
    pipeline = EntryPipeline(gateway, media, FakeWeather(), clock=FixedClock(now))
    pending = await pipeline.process("", "u1", audio=AUDIO, online=False)

    result = await ReconciliationFlow(pipeline, media).reanalyze(pending, [pending], online=True)

    assert result.transcription == OFFLINE_TRANSCRIPTION
    assert result.pending_analysis is False
    assert gateway.analysis_texts == ["Registro Offline"]


@pytest.mark.asyncio
async def test_reconciling_twice_through_store_is_idempotent(store_factory):
    store = store_factory(online=False, auto_reconcile=False)
    pending = await store.submit_entry("offline")
    await store.set_online(True)

    first = await store.reconcile(pending.id)
    second = await store.reconcile(pending.id)

    assert first.pending_analysis is False
    assert second.pending_analysis is False
    assert first == second
    assert len(store.snapshot().history) == 1


class GuessingMedia(FakeMedia):
    """Hands staged files back with the type a file-extension lookup would give."""

    async def fetch(self, ref):
        staged = await super().fetch(ref)
        return staged.model_copy(update={"content_type": "video/webm"}) if staged else None


@pytest.mark.asyncio
async def test_retranscription_uses_recorded_audio_type(gateway, now):
    media = GuessingMedia()
    pipeline = EntryPipeline(gateway, media, FakeWeather(), clock=FixedClock(now))
    pending = await pipeline.process("voz", "u1", audio=AUDIO, online=False)

    await ReconciliationFlow(pipeline, media).reanalyze(pending, [pending], online=True)

    assert pending.audio_mime_type == "audio/webm"
    assert [audio.content_type for audio in gateway.transcribed] == ["audio/webm"]


def test_merge_keeps_fields_patched_during_reanalysis(report_factory, days):
    pending = report_factory(created_at=days(0, 9), pending=True, emotion="Offline")
    current = pending.model_copy(update={"scene_ref": "data:image/png;base64,DDDD", "scene_style": "anime"})
    reconciled = pending.model_copy(update={"emotion": "Calma", "poetry": "versos", "pending_analysis": False})

    merged = merge_reconciled(current, reconciled)

    assert merged.emotion == "Calma"
    assert merged.poetry == "versos"
    assert merged.pending_analysis is False
    assert merged.scene_ref == "data:image/png;base64,DDDD"
    assert merged.scene_style == "anime"
