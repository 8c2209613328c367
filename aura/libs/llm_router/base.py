"""Abstract provider interfaces for the LLM router."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from .types import LLMResponse


class ProviderHTTPError(RuntimeError):
    """Raised when a provider answers with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retriable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class BaseProvider(ABC):
    """Common interface all providers must implement."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: str,
        **kwargs: Any,
    ) -> LLMResponse:
        """Perform a chat completion request."""

    async def generate_image(self, *, prompt: str, model: str, **kwargs: Any) -> LLMResponse:
        raise NotImplementedError(f"Provider '{self.name}' does not generate images")

    async def synthesize_speech(
        self, *, text: str, model: str, voice: str | None = None, **kwargs: Any
    ) -> LLMResponse:
        raise NotImplementedError(f"Provider '{self.name}' does not synthesize speech")

    async def transcribe(
        self,
        *,
        audio: bytes,
        model: str,
        filename: str = "audio.webm",
        content_type: str = "audio/webm",
        **kwargs: Any,
    ) -> LLMResponse:
        raise NotImplementedError(f"Provider '{self.name}' does not transcribe audio")


__all__ = ["BaseProvider", "ProviderHTTPError"]
