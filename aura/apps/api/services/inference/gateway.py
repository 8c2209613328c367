"""Inference gateway: every AI-derived value in Aura is requested through here.

Each operation has a typed response contract (``aura.libs.schemas.inference``).
Transport failures propagate after the router's bounded retries; malformed model
output degrades to the documented default (neutral analysis) or to absence.
"""

from __future__ import annotations

import base64
import logging
import uuid
from typing import List, Optional, Sequence

from aura.apps.api.core.llm import LLMResponseError, call_llm
from aura.libs.llm_router.router import LLMRouter
from aura.libs.schemas.inference import (
    ChecklistPayload,
    CompanionGreetingPayload,
    EchoPayload,
    ForecastStats,
    MissionVerdict,
    MoodAnalysis,
    NightContentPayload,
    PlacesPayload,
)
from aura.libs.schemas.report import (
    EmotionalEcho,
    HistoryContextItem,
    MediaFile,
    Report,
    SelfCareTask,
    SuggestedPlace,
    WeatherInfo,
)
from aura.libs.schemas.settings import AppSettings, get_settings
from aura.libs.schemas.stats import Mission

logger = logging.getLogger(__name__)

NARRATION_VOICE = "nova"
NIGHT_VOICE = "onyx"

ANALYSIS_PROMPT = """Analise a entrada de diário abaixo (e a imagem, se houver).

{weather_block}
1. Identifique a emoção do texto (textEmotion) e da imagem (imageEmotion) e combine-as na emoção final (emotion).
2. Escreva um resumo de uma frase (summary) e uma sugestão prática (suggestion). Se houver clima, deixe-o influenciar a sugestão de forma sutil.
3. Escolha uma cor hexadecimal para o humor (moodColor) e dê notas de 1 a 10 para energyLevel e positivityLevel.
4. Calcule um stressIndex de 0 a 100 pela tensão do texto, liste keywords emocionais fortes e metaphors marcantes,
   defina o writingStyle (Analítico, Poético, Caótico, Urgente...) e uma insightMessage curta sobre os padrões de linguagem.
5. Em finalExplanation, explique em uma frase como texto e imagem se combinaram.

Campos JSON: emotion, textEmotion, imageEmotion, finalExplanation, summary, suggestion, moodColor,
energyLevel, positivityLevel, stressIndex, keywords, metaphors, writingStyle, insightMessage.

Texto do usuário: "{text}"
"""

WEATHER_BLOCK = """Clima no momento do registro: {temperature}°C, {condition}, {period}.
Com frio ou chuva e humor baixo, prefira conforto; com sol e humor baixo, um pouco de ar livre;
com humor alto, algo para celebrar ou criar."""

ECHO_PROMPT = """Hoje a pessoa sente "{emotion}" e escreveu: "{text}".

Registros anteriores (mais recentes primeiro):
{history}

Procure UM eco significativo entre hoje e o passado: recurrence (o sentimento se repete),
resilience (algo que ajudou antes pode ajudar de novo) ou contrast (hoje está muito diferente).
Se não houver ligação clara, responda {{}}.

Campos JSON: type, title, message (no máximo 2 frases), referenceDate (o valor ref do registro citado).
"""

PLACES_PROMPT = """A pessoa está nas coordenadas {lat}, {lng} e o humor dela é "{emotion}".
Sugira 3 lugares reais a até 5 km que combinem com esse humor.
Responda em JSON: {{"places": [{{"name", "type", "address", "reason", "mapsUrl"}}]}}"""

CHECKLIST_PROMPT = """Emoção: "{emotion}". Resumo do dia: "{summary}".
Monte uma lista de autocuidado com 3 a 5 ações simples de até 10 minutos.
Responda em JSON: {{"tasks": [{{"text": "..."}}]}}"""

NIGHT_PROMPT = """Crie um ritual noturno para alguém cujo dia foi: "{summary}" (emoção principal: "{emotion}").
story: micro-história para dormir em segunda pessoa, até 100 palavras.
meditation: guia de respiração de até 30 palavras.
poem: um haicai ou frase calmante sobre descanso.
Responda em JSON com story, meditation e poem."""

FORECAST_PROMPT = """Você faz a "previsão do tempo emocional" da pessoa a partir destes padrões:
- Melhor dia da semana: {best_day}
- Dia mais difícil: {challenging_day}
- Horário de pico: {peak_time}
- Horário sensível: {sensitive_time}
Escreva uma única frase empática de até 20 palavras interpretando esses dados, sem repeti-los mecanicamente."""

COMPANION_GREETING_PROMPT = """Você é a "Aura", companheira de diário de "{name}".

Registro mais recente: emoção "{emotion}", positividade {positivity}/10. Resumo: "{summary}".

Escreva uma mensagem muito curta (no máximo 15 palavras) para a tela inicial de hoje.
Se o último registro foi difícil (positividade abaixo de 5), encoraje e mostre orgulho da força da pessoa.
Caso contrário, celebre ou inspire.
Responda em JSON: {{"text": "...", "type": "encouragement" | "celebration" | "reflection"}}"""

COMPANION_VISUAL_PROMPT = """Based on the emotions [{emotions}] and level {level},
write an image prompt for a spirit companion avatar.
Levels 1-5: a small floating orb or wisp. Levels 5-10: a small animal spirit (fox, owl, cat) made of light or crystal.
Level 10 and up: a majestic ethereal guardian.
Return only the prompt, describing an abstract, bioluminescent 3D render style."""


def _data_uri(media_type: str | None, payload: str, fallback: str) -> str:
    return f"data:{media_type or fallback};base64,{payload}"


class InferenceGateway:
    """Typed facade over the LLM router for every Aura inference operation."""

    def __init__(self, router: LLMRouter, settings: AppSettings | None = None) -> None:
        self._router = router
        self._settings = settings or get_settings()

    async def analyze_mood(
        self,
        text: str,
        image: MediaFile | None = None,
        weather: WeatherInfo | None = None,
    ) -> MoodAnalysis:
        weather_block = ""
        if weather is not None:
            weather_block = WEATHER_BLOCK.format(
                temperature=weather.temperature,
                condition=weather.condition_text,
                period="dia" if weather.is_day else "noite",
            )
        prompt = ANALYSIS_PROMPT.format(weather_block=weather_block, text=text)
        content: list[dict] = [{"type": "text", "text": prompt}]
        if image is not None:
            encoded = base64.b64encode(image.data).decode("ascii")
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": _data_uri(image.content_type, encoded, "image/jpeg")},
                }
            )

        try:
            return await call_llm(
                messages=[{"role": "user", "content": content}],
                schema=MoodAnalysis,
                model=self._settings.model_analysis,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] mood analysis unparseable, using neutral default: %s", exc)
            return MoodAnalysis.neutral()

    async def generate_poem(self, text: str, emotion: str) -> Optional[str]:
        prompt = (
            f'Escreva uma poesia concreta curta em português sobre: "{text}", '
            f'com o sentimento "{emotion}". Foco visual, sem título.'
        )
        poem = await call_llm(prompt, model=self._settings.model_analysis, router=self._router)
        return poem.strip() or None

    async def generate_avatar(self, emotion: str, color_hex: str) -> Optional[str]:
        prompt = (
            f"Abstract 3D glossy orb representing '{emotion}', glowing with {color_hex}, "
            "minimal, ethereal background."
        )
        response = await self._router.generate_image(prompt=prompt, model=self._settings.model_image)
        if not response.media:
            return None
        return _data_uri(response.media_type, response.media, "image/png")

    async def generate_narration(self, text: str, *, voice: str = NARRATION_VOICE) -> Optional[str]:
        if not text:
            return None
        response = await self._router.synthesize_speech(
            text=text, model=self._settings.model_speech, voice=voice
        )
        if not response.media:
            return None
        return _data_uri(response.media_type, response.media, "audio/mpeg")

    async def suggest_places(self, emotion: str, lat: float, lng: float) -> List[SuggestedPlace]:
        try:
            payload = await call_llm(
                PLACES_PROMPT.format(emotion=emotion, lat=lat, lng=lng),
                schema=PlacesPayload,
                model=self._settings.model_chat,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] place suggestions unparseable: %s", exc)
            return []
        return payload.to_places()

    async def find_echo(
        self,
        text: str,
        emotion: str,
        history: Sequence[HistoryContextItem],
    ) -> Optional[EmotionalEcho]:
        if not history:
            return None
        lines = "\n".join(
            f"- {item.date:%d/%m/%Y} (ref {int(item.date.timestamp() * 1000)}): "
            f"emoção {item.emotion}; resumo: {item.summary}"
            for item in history
        )
        try:
            payload = await call_llm(
                ECHO_PROMPT.format(emotion=emotion, text=text, history=lines),
                schema=EchoPayload,
                model=self._settings.model_analysis,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] echo unparseable: %s", exc)
            return None
        echo = payload.to_echo()
        if echo is None or echo.reference_date is None:
            return echo
        # Attach the summary of the referenced entry when the model points at one we sent.
        for item in history:
            if abs(item.date.timestamp() - echo.reference_date.timestamp()) < 1:
                return echo.model_copy(update={"reference_summary": item.summary})
        return echo

    async def generate_checklist(self, emotion: str, summary: str) -> List[SelfCareTask]:
        try:
            payload = await call_llm(
                CHECKLIST_PROMPT.format(emotion=emotion, summary=summary),
                schema=ChecklistPayload,
                model=self._settings.model_chat,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] checklist unparseable: %s", exc)
            return []
        batch = uuid.uuid4().hex[:8]
        return [
            SelfCareTask(id=f"task-{batch}-{index}", text=task.text)
            for index, task in enumerate(payload.tasks)
            if task.text.strip()
        ]

    async def transcribe(self, audio: MediaFile) -> str:
        response = await self._router.transcribe(
            audio=audio.data,
            model=self._settings.model_transcribe,
            filename=audio.filename,
            content_type=audio.content_type,
        )
        return (response.text or "").strip()

    async def forecast_insight(self, stats: ForecastStats) -> Optional[str]:
        text = await call_llm(
            FORECAST_PROMPT.format(**stats.model_dump()),
            model=self._settings.model_chat,
            router=self._router,
        )
        return text.strip() or None

    async def generate_night_content(self, summary: str, emotion: str) -> Optional[NightContentPayload]:
        try:
            return await call_llm(
                NIGHT_PROMPT.format(summary=summary, emotion=emotion),
                schema=NightContentPayload,
                model=self._settings.model_analysis,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] night ritual unparseable: %s", exc)
            return None

    async def generate_night_audio(self, story: str) -> Optional[str]:
        return await self.generate_narration(story, voice=NIGHT_VOICE)

    async def generate_scene(self, emotion: str, summary: str, style: str) -> Optional[str]:
        prompt = (
            f"Cinematic scene in {style} style that captures the feeling '{emotion}'. "
            f"Moment: {summary}. No text, no people facing the camera, wide shot."
        )
        response = await self._router.generate_image(prompt=prompt, model=self._settings.model_image)
        if not response.media:
            return None
        return _data_uri(response.media_type, response.media, "image/png")

    async def verify_mission(self, mission: Mission, evidence: str | MediaFile) -> bool:
        if isinstance(evidence, MediaFile):
            encoded = base64.b64encode(evidence.data).decode("ascii")
            content: list[dict] | str = [
                {
                    "type": "text",
                    "text": (
                        f'A missão é encontrar: "{mission.target}". Responda em JSON {{"valid": true}} se a '
                        'imagem mostrar algo relacionado, ou {"valid": false} caso contrário.'
                    ),
                },
                {
                    "type": "image_url",
                    "image_url": {"url": _data_uri(evidence.content_type, encoded, "image/jpeg")},
                },
            ]
        else:
            content = (
                f'Frase: "{evidence}". Missão: "{mission.description}". '
                'Responda em JSON {"valid": true} se a frase cumprir a missão, ou {"valid": false} '
                "se for spam ou sem sentido."
            )
        verdict = await call_llm(
            messages=[{"role": "user", "content": content}],
            schema=MissionVerdict,
            model=self._settings.model_chat,
            router=self._router,
        )
        return verdict.valid

    async def generate_companion_greeting(
        self, name: str, history: Sequence[Report]
    ) -> CompanionGreetingPayload:
        """Daily greeting keyed on the newest finished entry.

        Without finished entries no call is made and a welcome is returned; an
        unparseable reply yields a gentle fallback instead of an error.
        """

        recent = [report for report in history if not report.pending_analysis][:3]
        if not recent:
            return CompanionGreetingPayload(
                text=f"Olá, {name}. Estou aqui para começar essa jornada com você.", type="encouragement"
            )
        latest = recent[0]
        prompt = COMPANION_GREETING_PROMPT.format(
            name=name,
            emotion=latest.emotion or "",
            positivity=latest.positivity_level or 5,
            summary=latest.summary or "",
        )
        try:
            return await call_llm(
                prompt,
                schema=CompanionGreetingPayload,
                model=self._settings.model_chat,
                router=self._router,
            )
        except LLMResponseError as exc:
            logger.warning("[Gateway] companion greeting unparseable: %s", exc)
            return CompanionGreetingPayload(text=f"Olá, {name}. Espero que hoje seja um dia leve.")

    async def generate_companion_visual(self, level: int, emotions: Sequence[str]) -> Optional[str]:
        description = await call_llm(
            COMPANION_VISUAL_PROMPT.format(emotions=", ".join(emotions), level=level),
            model=self._settings.model_chat,
            router=self._router,
        )
        prompt = (
            f"A centralized, cute and mystical spirit avatar. {description.strip()}. "
            "Dark background, glowing, minimalist character design."
        )
        response = await self._router.generate_image(prompt=prompt, model=self._settings.model_image)
        if not response.media:
            return None
        return _data_uri(response.media_type, response.media, "image/png")


__all__ = ["InferenceGateway"]
