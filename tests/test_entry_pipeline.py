import pytest

from aura.apps.api.services.journaling.pipeline import (
    EntryPipeline,
    EntryProcessingError,
    OFFLINE_TRANSCRIPTION,
    build_history_context,
    compose_text,
)
from aura.libs.schemas.report import LocationInfo, MediaFile

from conftest import FakeGateway, FakeMedia, FakeWeather, FixedClock

PHOTO = MediaFile(data=b"\x89PNG", filename="p.png", content_type="image/png")
AUDIO = MediaFile(data=b"OggS", filename="a.webm", content_type="audio/webm")
LISBON = LocationInfo(lat=38.72, lng=-9.14, city="Lisboa")


@pytest.mark.asyncio
async def test_offline_entry_short_circuits_inference(pipeline, gateway, weather):
    report = await pipeline.process("", "u1", photo=PHOTO, audio=AUDIO, location=LISBON, online=False)

    assert gateway.calls == []
    assert weather.calls == 0
    assert report.pending_analysis is True
    assert report.emotion == "Offline"
    assert report.text_emotion == "Neutro"
    assert report.energy_level == 5 and report.positivity_level == 5
    assert report.mood_color == "#64748b"
    assert report.text == "Registro Offline"
    assert report.transcription == OFFLINE_TRANSCRIPTION
    assert report.photo_ref and report.audio_ref
    assert report.weather is None
    assert report.poetry is None and report.self_care_checklist == []


@pytest.mark.asyncio
async def test_online_entry_runs_analysis_and_fan_out(pipeline, gateway, report_factory, days):
    history = [report_factory(created_at=days(0, h)) for h in range(12)]
    history.append(report_factory(created_at=days(1, 0), pending=True, emotion="Offline"))

    report = await pipeline.process(
        "Hoje foi bom", "u1", photo=PHOTO, audio=AUDIO, location=LISBON, history=history, online=True
    )

    assert report.pending_analysis is False
    assert report.emotion == "Calma"
    assert report.semantic_analysis.stress_index == 20
    assert report.transcription == "falei sobre o dia"
    assert report.weather.condition_text == "Céu Limpo"
    assert report.poetry == "versos"
    assert report.avatar_ref.startswith("data:image/png")
    assert report.audio_summary_ref.startswith("data:audio")
    assert [p.name for p in report.suggested_places] == ["Parque"]
    assert report.echo.type == "recurrence"
    assert [t.id for t in report.self_care_checklist] == ["task-a", "task-b"]
    assert report.text == "Hoje foi bom"
    assert gateway.analysis_texts == ['Hoje foi bom\n(Transcrição de Áudio: "falei sobre o dia")']
    assert len(gateway.history_seen) == 10
    assert all(item.emotion != "Offline" for item in gateway.history_seen)


@pytest.mark.asyncio
async def test_single_enrichment_failure_leaves_only_that_field_absent(media, weather, now):
    gateway = FakeGateway(fail={"generate_avatar"})
    pipeline = EntryPipeline(gateway, media, weather, clock=FixedClock(now))

    report = await pipeline.process("texto", "u1", location=LISBON, online=True)

    assert report.pending_analysis is False
    assert report.avatar_ref is None
    assert report.poetry == "versos"
    assert report.audio_summary_ref is not None
    assert report.suggested_places
    assert report.self_care_checklist


@pytest.mark.asyncio
async def test_analysis_failure_is_fatal(media, weather, now):
    gateway = FakeGateway(fail={"analyze_mood"})
    pipeline = EntryPipeline(gateway, media, weather, clock=FixedClock(now))

    with pytest.raises(EntryProcessingError):
        await pipeline.process("texto", "u1", online=True)
    assert gateway.calls == ["analyze_mood"]


@pytest.mark.asyncio
async def test_optional_steps_skip_without_inputs(pipeline, gateway):
    await pipeline.process("texto", "u1", online=True)

    assert "suggest_places" not in gateway.calls
    assert "find_echo" not in gateway.calls
    assert "transcribe" not in gateway.calls


@pytest.mark.asyncio
async def test_staging_and_weather_failures_are_absorbed(gateway, now):
    pipeline = EntryPipeline(gateway, FakeMedia(fail=True), FakeWeather(fail=True), clock=FixedClock(now))

    report = await pipeline.process("texto", "u1", photo=PHOTO, audio=AUDIO, location=LISBON, online=True)

    assert report.photo_ref is None
    assert report.audio_ref is None
    assert report.transcription is None
    assert report.weather is None
    assert report.pending_analysis is False
    assert "transcribe" not in gateway.calls


@pytest.mark.asyncio
async def test_empty_text_gets_presence_prompt(pipeline, gateway):
    await pipeline.process("", "u1", online=True)
    assert gateway.analysis_texts == ["Sem texto, apenas presença."]


def test_compose_text_ignores_offline_marker():
    assert compose_text("oi", OFFLINE_TRANSCRIPTION) == "oi"
    assert compose_text("oi", None) == "oi"
    assert compose_text("oi", "tudo bem") == 'oi\n(Transcrição de Áudio: "tudo bem")'


def test_history_context_is_newest_first_and_excludes(report_factory, days):
    older = report_factory(created_at=days(0, 8), id="old")
    newer = report_factory(created_at=days(1, 8), id="new")
    pending = report_factory(created_at=days(2, 8), id="pending", pending=True)

    context = build_history_context([older, pending, newer], exclude_id="new")
    assert [item.date for item in context] == [older.created_at]

    context = build_history_context([older, newer])
    assert [item.date for item in context] == [newer.created_at, older.created_at]
