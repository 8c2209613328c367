"""Policy-aware LLM router with provider failover and bounded retries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Sequence

from .base import BaseProvider, ProviderHTTPError
from .types import LLMResponse, Task

Sleep = Callable[[float], Awaitable[None]]
RetryHook = Callable[[Task, str, int, BaseException], None]

_TASK_METHODS = {
    Task.CHAT: "chat",
    Task.IMAGE: "generate_image",
    Task.SPEECH: "synthesize_speech",
    Task.TRANSCRIBE: "transcribe",
}


class AllProvidersFailedError(RuntimeError):
    """Raised when every candidate provider failed for a task."""

    def __init__(self, task: Task, errors: Sequence[str]) -> None:
        super().__init__(f"All providers failed for task '{task.value}': {'; '.join(errors)}")
        self.task = task
        self.errors = list(errors)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff applied to retriable provider failures (429, 5xx)."""

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (1-indexed)."""

        return self.base_delay * self.multiplier ** max(attempt - 1, 0)


def is_retriable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderHTTPError) and exc.retriable


@dataclass
class LLMRouteConfig:
    """Configuration payload controlling provider selection and retries."""

    policy: dict[Task, list[str]] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class LLMRouter:
    """Orchestrate inference requests across configurable providers."""

    def __init__(
        self,
        *,
        config: LLMRouteConfig | None = None,
        logger: logging.Logger | None = None,
        sleep: Sleep | None = None,
        on_retry: RetryHook | None = None,
    ) -> None:
        self._providers: dict[str, BaseProvider] = {}
        self._logger = logger or logging.getLogger(__name__)
        self._config = config or LLMRouteConfig()
        self._sleep = sleep or asyncio.sleep
        self._on_retry = on_retry

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._config.retry

    def register_provider(self, key: str, provider: BaseProvider) -> None:
        """Register or replace a provider under ``key``."""

        self._providers[key] = provider

    def set_policy(self, task: Task, providers: Sequence[str]) -> None:
        """Assign an ordered list of providers for the given task."""

        if not providers:
            raise ValueError("Provider policy requires at least one provider key")
        self._config.policy[task] = list(dict.fromkeys(providers))

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: str,
        provider: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Execute a chat request with automatic provider failover."""

        message_payload = [dict(message) for message in messages]
        return await self._dispatch(
            Task.CHAT,
            provider_override=provider,
            call_kwargs={"messages": message_payload, "model": model, **kwargs},
        )

    async def generate_image(
        self, *, prompt: str, model: str, provider: str | None = None, **kwargs: Any
    ) -> LLMResponse:
        return await self._dispatch(
            Task.IMAGE,
            provider_override=provider,
            call_kwargs={"prompt": prompt, "model": model, **kwargs},
        )

    async def synthesize_speech(
        self, *, text: str, model: str, provider: str | None = None, **kwargs: Any
    ) -> LLMResponse:
        return await self._dispatch(
            Task.SPEECH,
            provider_override=provider,
            call_kwargs={"text": text, "model": model, **kwargs},
        )

    async def transcribe(
        self, *, audio: bytes, model: str, provider: str | None = None, **kwargs: Any
    ) -> LLMResponse:
        return await self._dispatch(
            Task.TRANSCRIBE,
            provider_override=provider,
            call_kwargs={"audio": audio, "model": model, **kwargs},
        )

    async def _dispatch(
        self,
        task: Task,
        *,
        provider_override: str | None,
        call_kwargs: dict[str, Any],
    ) -> LLMResponse:
        errors: list[str] = []
        last_exc: BaseException | None = None
        for candidate in self._resolve_candidates(task, provider_override=provider_override):
            try:
                return await self._execute_with_retry(task, candidate, call_kwargs=call_kwargs)
            except Exception as exc:
                self._logger.warning(
                    "Provider %s failed for %s task: %s", candidate, task.value, exc
                )
                errors.append(f"{candidate}: {exc}")
                last_exc = exc
                continue
        raise AllProvidersFailedError(task, errors) from last_exc

    async def _execute_with_retry(
        self,
        task: Task,
        provider_key: str,
        *,
        call_kwargs: dict[str, Any],
    ) -> LLMResponse:
        policy = self._config.retry
        attempt = 1
        while True:
            try:
                return await self._execute(task, provider_key, call_kwargs=call_kwargs)
            except Exception as exc:
                if attempt >= policy.max_attempts or not is_retriable(exc):
                    raise
                delay = policy.delay_for(attempt)
                self._logger.info(
                    "llm_retry task=%s provider=%s attempt=%s delay=%.2fs error=%s",
                    task.value,
                    provider_key,
                    attempt,
                    delay,
                    exc,
                )
                if self._on_retry is not None:
                    self._on_retry(task, provider_key, attempt, exc)
                await self._sleep(delay)
                attempt += 1

    async def _execute(
        self,
        task: Task,
        provider_key: str,
        *,
        call_kwargs: dict[str, Any],
    ) -> LLMResponse:
        provider = self._providers.get(provider_key)
        if provider is None:
            raise ValueError(f"Provider '{provider_key}' is not registered")

        method = getattr(provider, _TASK_METHODS[task])
        response = await method(**call_kwargs)

        if response.provider is None:
            response.provider = provider_key
        self._log_usage(provider_key, response)
        return response

    def _resolve_candidates(self, task: Task, *, provider_override: str | None) -> list[str]:
        """Return providers for the given task in priority order."""

        if provider_override:
            if provider_override not in self._providers:
                raise ValueError(f"Override provider '{provider_override}' is not registered")
            return [provider_override]

        candidates = self._config.policy.get(task)
        if not candidates:
            raise ValueError(f"No providers configured for task '{task.value}'")

        resolved = [candidate for candidate in candidates if candidate in self._providers]
        if not resolved:
            raise ValueError(f"No registered providers available for task '{task.value}'")
        return resolved

    def _log_usage(self, provider_key: str, response: LLMResponse) -> None:
        usage = response.usage or {}
        self._logger.info(
            "llm_task=%s provider=%s model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s",
            response.task.value,
            provider_key,
            response.model,
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
            usage.get("total_tokens"),
        )


__all__ = [
    "AllProvidersFailedError",
    "LLMRouteConfig",
    "LLMRouter",
    "RetryPolicy",
    "is_retriable",
]
