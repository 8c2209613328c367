"""OpenRouter provider implementation (OpenAI-compatible REST surface)."""

from __future__ import annotations

import base64
import logging
from typing import Any, Mapping, Sequence

import httpx

from .base import BaseProvider, ProviderHTTPError
from .types import LLMResponse, Task

OPENROUTER_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(BaseProvider):
    """Provider that proxies chat, image, speech and transcription requests.

    Chat and image generation use ``/chat/completions`` (images via the ``modalities``
    extension). Speech and transcription use the OpenAI-compatible ``/audio`` routes,
    so ``base_url`` must point at a gateway that serves them.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float = 60.0,
        tenant: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OpenRouter API key is required")

        super().__init__(name="openrouter")
        self._api_key = api_key
        self._base_url = base_url or OPENROUTER_DEFAULT_BASE_URL
        self._timeout = timeout
        self._tenant = tenant
        self._transport = transport
        self._logger = logging.getLogger(__name__)

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: str,
        **kwargs: Any,
    ) -> LLMResponse:
        """Execute a chat completion request."""

        payload = {
            "model": model,
            "messages": [self._serialise_message(message) for message in messages],
            **kwargs,
        }
        response_json = await self._post_json("/chat/completions", payload)
        message = self._first_message(response_json)

        return LLMResponse(
            model=response_json.get("model") or model,
            task=Task.CHAT,
            text=self._message_text(message),
            usage=response_json.get("usage") or {},
            provider=self.name,
            raw=response_json,
        )

    async def generate_image(self, *, prompt: str, model: str, **kwargs: Any) -> LLMResponse:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "modalities": ["image", "text"],
            **kwargs,
        }
        response_json = await self._post_json("/chat/completions", payload)
        message = self._first_message(response_json)

        media, media_type = None, None
        for image in message.get("images") or []:
            url = (image.get("image_url") or {}).get("url") or ""
            if url.startswith("data:") and "," in url:
                header, media = url.split(",", 1)
                media_type = header[5:].split(";", 1)[0] or "image/png"
                break

        return LLMResponse(
            model=response_json.get("model") or model,
            task=Task.IMAGE,
            text=self._message_text(message),
            media=media,
            media_type=media_type,
            usage=response_json.get("usage") or {},
            provider=self.name,
            raw=response_json,
        )

    async def synthesize_speech(
        self, *, text: str, model: str, voice: str | None = None, **kwargs: Any
    ) -> LLMResponse:
        payload = {
            "model": model,
            "input": text,
            "voice": voice or "alloy",
            "response_format": kwargs.pop("response_format", "mp3"),
            **kwargs,
        }
        response = await self._request("POST", "/audio/speech", json=payload)
        return LLMResponse(
            model=model,
            task=Task.SPEECH,
            media=base64.b64encode(response.content).decode("ascii"),
            media_type=response.headers.get("content-type", "audio/mpeg"),
            provider=self.name,
        )

    async def transcribe(
        self,
        *,
        audio: bytes,
        model: str,
        filename: str = "audio.webm",
        content_type: str = "audio/webm",
        **kwargs: Any,
    ) -> LLMResponse:
        files = {"file": (filename, audio, content_type)}
        data = {"model": model, **{key: str(value) for key, value in kwargs.items()}}
        response = await self._request("POST", "/audio/transcriptions", files=files, data=data)
        payload = self._decode_json(response)
        return LLMResponse(
            model=model,
            task=Task.TRANSCRIBE,
            text=payload.get("text") or "",
            provider=self.name,
            raw=payload,
        )

    async def _post_json(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", path, json=payload)
        return self._decode_json(response)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "HTTP-Referer": self._tenant or "http://localhost:3000",
            "X-Title": "Aura",
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, url, headers=headers, **kwargs)
            except httpx.RequestError as exc:
                raise RuntimeError(
                    f"OpenRouter network error: {exc}. Check API key or connectivity."
                ) from exc
        if not response.is_success:
            raise ProviderHTTPError(
                response.status_code,
                f"OpenRouter {response.status_code} on {url}. Body: {response.text[:400]}",
            )
        return response

    def _decode_json(self, response: httpx.Response) -> dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            raise RuntimeError(
                f"OpenRouter returned non-JSON (CT={content_type}). Body: {response.text[:400]}"
            )
        return response.json()

    @staticmethod
    def _first_message(response_json: Mapping[str, Any]) -> Mapping[str, Any]:
        choice = (response_json.get("choices") or [{}])[0]
        return choice.get("message") or {}

    @staticmethod
    def _message_text(message: Mapping[str, Any]) -> str | None:
        content = message.get("content")
        if isinstance(content, list):
            parts = [part.get("text", "") for part in content if isinstance(part, Mapping)]
            return "".join(parts) or None
        return content

    def _serialise_message(self, message: Mapping[str, Any]) -> dict[str, Any]:
        data = dict(message)
        role = data.get("role")
        content = data.get("content")
        if role is None or content is None:
            raise ValueError("Chat messages must include 'role' and 'content'")

        serialized = {"role": role, "content": content}
        if "name" in data:
            serialized["name"] = data["name"]
        return serialized


__all__ = ["OpenRouterProvider", "OPENROUTER_DEFAULT_BASE_URL"]
