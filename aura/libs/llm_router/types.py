"""Shared type utilities for the LLM router."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class Task(str, Enum):
    """Supported inference task types."""

    CHAT = "chat"
    IMAGE = "image"
    SPEECH = "speech"
    TRANSCRIBE = "transcribe"


@dataclass(slots=True)
class LLMResponse:
    """Normalised response payload returned by providers.

    ``media`` carries a base64 payload for image and speech tasks.
    """

    model: str
    task: Task
    text: str | None = None
    media: str | None = None
    media_type: str | None = None
    usage: Mapping[str, Any] | None = None
    provider: str | None = None
    raw: Mapping[str, Any] | None = None


__all__ = ["LLMResponse", "Task"]
