from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from aura.apps.api.services.journaling.pipeline import EntryPipeline
from aura.apps.api.services.journaling.reconcile import ReconciliationFlow
from aura.apps.api.services.storage.reports_repo import InMemoryReportRepository
from aura.apps.api.services.store import Store
from aura.libs.schemas.inference import (
    CompanionGreetingPayload,
    ForecastStats,
    MoodAnalysis,
    NightContentPayload,
)
from aura.libs.schemas.report import (
    EmotionalEcho,
    MediaFile,
    Report,
    SelfCareTask,
    SemanticAnalysis,
    SuggestedPlace,
    WeatherInfo,
)

UTC = timezone.utc


class FakeGateway:
    """Inference gateway double; names in ``fail`` raise instead of answering."""

    def __init__(self, fail: Optional[set[str]] = None) -> None:
        self.fail = set(fail or ())
        self.calls: List[str] = []
        self.analysis = MoodAnalysis(
            emotion="Calma",
            text_emotion="Calma",
            summary="Um dia tranquilo.",
            suggestion="Caminhe um pouco.",
            mood_color="#38bdf8",
            energy_level=6,
            positivity_level=7,
            stress_index=20,
            keywords=["trabalho"],
        )
        self.insight: Optional[str] = "Suas manhãs brilham."
        self.transcript = "falei sobre o dia"
        self.verdict = True
        self.history_seen: List[Any] = []
        self.analysis_texts: List[str] = []
        self.transcribed: List[MediaFile] = []
        self.greeting = CompanionGreetingPayload(text="Que bom te ver.", type="celebration")

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    async def analyze_mood(self, text, image=None, weather=None):
        self._enter("analyze_mood")
        self.analysis_texts.append(text)
        return self.analysis

    async def generate_poem(self, text, emotion):
        self._enter("generate_poem")
        return "versos"

    async def generate_avatar(self, emotion, color_hex):
        self._enter("generate_avatar")
        return "data:image/png;base64,AAAA"

    async def generate_narration(self, text, *, voice="nova"):
        self._enter("generate_narration")
        return "data:audio/mpeg;base64,BBBB"

    async def suggest_places(self, emotion, lat, lng):
        self._enter("suggest_places")
        return [SuggestedPlace(name="Parque", type="park")]

    async def find_echo(self, text, emotion, history):
        self._enter("find_echo")
        self.history_seen = list(history)
        return EmotionalEcho(type="recurrence", title="De novo", message="Já sentiu isso.")

    async def generate_checklist(self, emotion, summary):
        self._enter("generate_checklist")
        return [SelfCareTask(id="task-a", text="Beber água"), SelfCareTask(id="task-b", text="Respirar")]

    async def transcribe(self, audio):
        self._enter("transcribe")
        self.transcribed.append(audio)
        return self.transcript

    async def forecast_insight(self, stats: ForecastStats):
        self._enter("forecast_insight")
        return self.insight

    async def generate_night_content(self, summary, emotion):
        self._enter("generate_night_content")
        return NightContentPayload(story="Era uma vez", meditation="Inspire", poem="Lua calma")

    async def generate_night_audio(self, story):
        self._enter("generate_night_audio")
        return "data:audio/mpeg;base64,CCCC"

    async def generate_scene(self, emotion, summary, style):
        self._enter("generate_scene")
        return "data:image/png;base64,DDDD"

    async def verify_mission(self, mission, evidence):
        self._enter("verify_mission")
        return self.verdict

    async def generate_companion_greeting(self, name, history):
        self._enter("generate_companion_greeting")
        return self.greeting

    async def generate_companion_visual(self, level, emotions):
        self._enter("generate_companion_visual")
        return "data:image/png;base64,EEEE"


class FakeMedia:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.files: Dict[str, MediaFile] = {}
        self._counter = itertools.count(1)

    async def stage(self, file: MediaFile, user_id: str) -> str:
        if self.fail:
            raise OSError("disk full")
        ref = f"media://{user_id}/{next(self._counter)}"
        self.files[ref] = file
        return ref

    async def fetch(self, ref: str) -> Optional[MediaFile]:
        return self.files.get(ref)


class FakeWeather:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    async def current(self, lat: float, lng: float) -> Optional[WeatherInfo]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("weather down")
        return WeatherInfo(temperature=21.5, condition_code=0, condition_text="Céu Limpo", is_day=True)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


_ids = itertools.count(1)


def make_report(
    *,
    created_at: datetime,
    positivity: Optional[int] = 5,
    emotion: str = "Neutro",
    stress: int = 0,
    pending: bool = False,
    **overrides: Any,
) -> Report:
    fields: Dict[str, Any] = {
        "id": overrides.pop("id", f"r{next(_ids)}"),
        "user_id": "u1",
        "created_at": created_at,
        "text": "texto",
        "emotion": emotion,
        "summary": f"resumo {emotion}",
        "suggestion": "respire",
        "mood_color": "#888888",
        "energy_level": 5,
        "positivity_level": positivity,
        "semantic_analysis": SemanticAnalysis(stress_index=stress),
        "pending_analysis": pending,
    }
    fields.update(overrides)
    return Report(**fields)


@pytest.fixture
def report_factory():
    return make_report


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def weather() -> FakeWeather:
    return FakeWeather()


@pytest.fixture
def pipeline(gateway, media, weather, now) -> EntryPipeline:
    ids = (f"entry-{n}" for n in itertools.count(1))
    return EntryPipeline(gateway, media, weather, clock=FixedClock(now), id_factory=lambda: next(ids))


@pytest.fixture
def store_factory(gateway, media, now):
    def _build(*, online: bool = True, pipeline: Optional[EntryPipeline] = None, **kwargs: Any) -> Store:
        clock = kwargs.pop("clock", FixedClock(now))
        active = pipeline or EntryPipeline(gateway, media, FakeWeather(), clock=clock)
        return Store(
            user_id="u1",
            repository=kwargs.pop("repository", InMemoryReportRepository()),
            pipeline=active,
            reconciler=ReconciliationFlow(active, media),
            gateway=gateway,
            online=online,
            clock=clock,
            **kwargs,
        )

    return _build


@pytest.fixture
def days():
    """Helper producing aware datetimes relative to a Monday at midnight UTC."""

    monday = datetime(2024, 5, 13, tzinfo=UTC)

    def _at(day_offset: int, hour: int) -> datetime:
        return monday + timedelta(days=day_offset, hours=hour)

    return _at
